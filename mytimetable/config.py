"""
Runtime configuration from the environment.

    MYTIMETABLE_HOME   data directory (default: ~/.mytimetable)
    GEMINI_API_KEY     enables the AI scan path
    GEMINI_MODEL       model name (default: gemini-2.5-flash)

A .env file in the working directory is loaded first, so keys do not have
to be exported in the shell.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from mytimetable.vision import DEFAULT_MODEL


@dataclass
class Config:
    data_dir: Path
    gemini_api_key: Optional[str]
    gemini_model: str


def load_config(env_file: Optional[Path] = None) -> Config:
    # existing environment variables win over .env entries
    load_dotenv(dotenv_path=env_file, override=False)

    home = os.environ.get("MYTIMETABLE_HOME", "").strip()
    data_dir = Path(home).expanduser() if home else Path.home() / ".mytimetable"

    api_key = os.environ.get("GEMINI_API_KEY", "").strip() or None
    model = os.environ.get("GEMINI_MODEL", "").strip() or DEFAULT_MODEL

    return Config(data_dir=data_dir, gemini_api_key=api_key, gemini_model=model)

"""
Persistent storage for the CLI host.

This module manages three files inside the data directory:

    courses.json    {"courses": [Course, ...]}
    settings.json   Settings (camelCase keys, as in the app)
    terms.json      {"terms": [Term, ...], "current": "2026-Spring"}

The core (parsers, reconciler, time calculator) never touches these files;
only the CLI reads and writes them.

A missing or corrupted file never crashes the application,
it just yields the defaults.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional, Tuple

from mytimetable.model import Course, Settings, Term

LOG = logging.getLogger(__name__)

COURSES_FILE = "courses.json"
SETTINGS_FILE = "settings.json"
TERMS_FILE = "terms.json"


def _read_json(path: Path) -> Any:
    """
    Return parsed JSON, or None if the file is missing or unreadable.
    """
    if not path.exists():
        return None
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        LOG.warning("ignoring unreadable %s: %s", path, exc)
        return None


def _write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")


def load_courses(data_dir: Path) -> List[Course]:
    data = _read_json(Path(data_dir) / COURSES_FILE)
    raw = data.get("courses", []) if isinstance(data, dict) else []
    if not isinstance(raw, list):
        return []
    out: List[Course] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        try:
            out.append(Course.from_dict(item))
        except ValueError as exc:
            LOG.warning("skipping stored course: %s", exc)
    return out


def save_courses(data_dir: Path, courses: Iterable[Course]) -> None:
    _write_json(Path(data_dir) / COURSES_FILE, {"courses": [c.to_dict() for c in courses]})


def load_settings(data_dir: Path) -> Settings:
    data = _read_json(Path(data_dir) / SETTINGS_FILE)
    if not isinstance(data, dict):
        return Settings()
    return Settings.from_dict(data)


def save_settings(data_dir: Path, settings: Settings) -> None:
    _write_json(Path(data_dir) / SETTINGS_FILE, settings.to_dict())


def load_terms(data_dir: Path) -> Tuple[List[Term], Optional[str]]:
    """
    Return (terms, current term id). Both may be empty / None on first run.
    """
    data = _read_json(Path(data_dir) / TERMS_FILE)
    if not isinstance(data, dict):
        return [], None
    raw = data.get("terms", [])
    terms = [Term.from_dict(t) for t in raw if isinstance(t, dict) and t.get("id")] if isinstance(raw, list) else []
    current = data.get("current")
    return terms, current if isinstance(current, str) and current else None


def save_terms(data_dir: Path, terms: Iterable[Term], current: Optional[str]) -> None:
    _write_json(Path(data_dir) / TERMS_FILE, {"terms": [t.to_dict() for t in terms], "current": current})

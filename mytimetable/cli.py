"""
CLI (Command Line Interface).

Quick terminal commands around the timetable core, e.g.:

    mytimetable parse ocr.txt --save
    mytimetable scan photo.jpg
    mytimetable import friend.json
    mytimetable share --qr --out share.json
    mytimetable add --name 英語 --day Mon --period 1
    mytimetable list
    mytimetable time 3 --day Mon
    mytimetable terms --set 2026-Fall

Note:
- data lives in --data-dir (default: $MYTIMETABLE_HOME or ~/.mytimetable)
- every command exits with 0 on success and 1 on a user-facing failure
"""

from __future__ import annotations

import argparse
import asyncio
import base64
import logging
import mimetypes
import sys
from datetime import date
from pathlib import Path
from typing import Iterable, List, Optional

from rich import box
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from mytimetable.config import load_config
from mytimetable.errors import MyTimetableError, SlotConflictError
from mytimetable.merge import (
    ConflictPolicy,
    add_course,
    commit_selection,
    expand_max_period,
    import_courses,
    unify_colors,
)
from mytimetable.model import DAYS, Course, Settings, Term, new_course_id, parse_day
from mytimetable.parse import classify_layout, parse_raw_text_to_courses
from mytimetable.share import decode_share_payload, dumps_share_payload
from mytimetable.storage import load_courses, load_settings, load_terms, save_courses, save_settings, save_terms
from mytimetable.terms import default_terms, predict_current_term, sort_terms, term_label
from mytimetable.timecalc import courses_for_day, period_time
from mytimetable.vision import GeminiVisionClient, VisionLock, VisionPipeline

console = Console()


def _read_input(source: str) -> str:
    """
    Read text from a file path, or from stdin for "-".
    """
    if source == "-":
        return sys.stdin.read()
    return Path(source).read_text(encoding="utf-8")


def _current_term(data_dir: Path, override: Optional[str]) -> str:
    if override:
        return override.strip()
    _, current = load_terms(data_dir)
    return current or predict_current_term(date.today())


def _course_table(courses: Iterable[Course], settings: Settings, title: str) -> Table:
    table = Table(title=title, box=box.SIMPLE)
    table.add_column("Day")
    table.add_column("Per.", justify="right")
    table.add_column("Time")
    table.add_column("Course")
    table.add_column("Code")
    table.add_column("Room")
    table.add_column("Professor")
    for c in courses:
        t = period_time(c.period, settings, c.day)
        name = f"[{c.color}]■[/] {escape(c.name)}" if c.color else escape(c.name)
        table.add_row(
            c.day.value,
            str(c.period),
            f"{t.start}-{t.end}",
            name,
            c.code or "",
            escape(c.room or ""),
            escape(c.professor or ""),
        )
    return table


def _save_candidates(data_dir: Path, candidates: List[Course], term: str) -> int:
    """
    Commit recognised candidates into `term` (colours unified by name).
    """
    stored = load_courses(data_dir)
    unified = unify_colors(candidates, stored)
    save_courses(data_dir, commit_selection(stored, unified, term))

    settings = load_settings(data_dir)
    expanded = expand_max_period(settings, unified)
    if expanded is not settings:
        save_settings(data_dir, expanded)

    console.print(f"Added {len(unified)} courses to {term}.")
    return 0


def _cmd_parse(args: argparse.Namespace) -> int:
    """
    Parse an OCR text dump into candidate courses.
    """
    text = _read_input(args.source)
    courses = parse_raw_text_to_courses(text)
    if not courses:
        console.print("No courses found.")
        return 1

    settings = load_settings(args.data_dir)
    layout = classify_layout(text)
    console.print(_course_table(courses, settings, f"Candidates ({layout.value})"))

    if args.save:
        return _save_candidates(args.data_dir, courses, _current_term(args.data_dir, args.term))
    return 0


def _cmd_scan(args: argparse.Namespace) -> int:
    """
    Recognise a timetable photo with Gemini.
    """
    config = load_config()
    client = GeminiVisionClient(config.gemini_api_key or "", model=config.gemini_model)
    pipeline = VisionPipeline(VisionLock(), client=client)

    image = Path(args.image)
    mime = mimetypes.guess_type(image.name)[0] or "image/jpeg"
    if not mime.startswith("image/"):
        console.print(f"Not an image: {image}")
        return 1
    image_b64 = base64.b64encode(image.read_bytes()).decode("ascii")

    courses = asyncio.run(pipeline.recognize_image(image_b64, mime))
    if courses is None:
        console.print("Another recognition is still running. Please try again later.")
        return 1

    settings = load_settings(args.data_dir)
    console.print(_course_table(courses, settings, "Candidates (AI)"))

    if args.save:
        return _save_candidates(args.data_dir, courses, _current_term(args.data_dir, args.term))
    return 0


def _cmd_import(args: argparse.Namespace) -> int:
    """
    Append a friend's shared timetable to the current term.
    """
    imported = decode_share_payload(_read_input(args.source))
    term = _current_term(args.data_dir, args.term)

    stored = load_courses(args.data_dir)
    save_courses(args.data_dir, import_courses(stored, imported, term))

    settings = load_settings(args.data_dir)
    expanded = expand_max_period(settings, imported)
    if expanded is not settings:
        save_settings(args.data_dir, expanded)

    console.print(f"Imported {len(imported)} courses into {term}.")
    return 0


def _cmd_share(args: argparse.Namespace) -> int:
    """
    Write the current term as a share payload (stdout or --out).
    """
    term = _current_term(args.data_dir, args.term)
    courses = [c for c in load_courses(args.data_dir) if c.term == term]
    if not courses:
        console.print(f"No courses in {term}.")
        return 1

    text = dumps_share_payload(courses, for_qr=args.qr)
    if args.out:
        out = Path(args.out)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(text, encoding="utf-8")
        console.print(f"Wrote {len(courses)} courses to: {out}")
    else:
        print(text)
    return 0


def _cmd_add(args: argparse.Namespace) -> int:
    """
    Add a single course. An occupied slot needs --on-conflict.
    """
    day = parse_day(args.day)
    if day is None:
        console.print(f"Unknown day: {args.day!r} (use Mon..Sat)")
        return 1
    if args.period < 1:
        console.print("Period must be 1 or higher.")
        return 1

    term = _current_term(args.data_dir, args.term)
    course = Course(
        id=new_course_id(),
        name=args.name.strip(),
        day=day,
        period=args.period,
        room=args.room,
        professor=args.professor,
        code=args.code,
        color=args.color,
    )

    stored = load_courses(args.data_dir)
    policy = ConflictPolicy(args.on_conflict) if args.on_conflict else None
    try:
        updated = add_course(stored, course, term, policy=policy)
    except SlotConflictError as exc:
        console.print(f"{day.value} {args.period} is already taken in {term}:")
        for c in exc.conflicts:
            console.print(f"- {c.name}")
        console.print("Re-run with --on-conflict append|overwrite|cancel.")
        return 1

    if policy is ConflictPolicy.CANCEL and len(updated) == len(stored):
        console.print("Cancelled.")
        return 0

    save_courses(args.data_dir, updated)
    settings = load_settings(args.data_dir)
    expanded = expand_max_period(settings, [course])
    if expanded is not settings:
        save_settings(args.data_dir, expanded)
    console.print(f"Added: {course.name} ({day.value} {args.period})")
    return 0


def _cmd_list(args: argparse.Namespace) -> int:
    term = _current_term(args.data_dir, args.term)
    courses = [c for c in load_courses(args.data_dir) if c.term == term]

    if args.day:
        day = parse_day(args.day)
        if day is None:
            console.print(f"Unknown day: {args.day!r} (use Mon..Sat)")
            return 1
        courses = courses_for_day(courses, day)
    else:
        courses = sorted(courses, key=lambda c: (DAYS.index(c.day), c.period))

    if not courses:
        console.print(f"No courses in {term}.")
        return 0

    settings = load_settings(args.data_dir)
    console.print(_course_table(courses, settings, term_label(term)))
    return 0


def _cmd_time(args: argparse.Namespace) -> int:
    day_value = None
    if args.day:
        day_value = parse_day(args.day)
        if day_value is None:
            console.print(f"Unknown day: {args.day!r} (use Mon..Sat)")
            return 1

    settings = load_settings(args.data_dir)
    t = period_time(args.period, settings, day_value)
    day = f" ({day_value.value})" if day_value else ""
    console.print(f"Period {args.period}{day}: {t.start}-{t.end}")
    return 0


def _cmd_terms(args: argparse.Namespace) -> int:
    terms, current = load_terms(args.data_dir)
    if not terms:
        terms = default_terms(date.today().year)

    if args.set:
        term_id = args.set.strip()
        if all(t.id != term_id for t in terms):
            terms.append(Term(id=term_id, label=term_label(term_id)))
        current = term_id
        save_terms(args.data_dir, sort_terms(terms), current)

    current = current or predict_current_term(date.today())
    for t in sort_terms(terms):
        marker = "*" if t.id == current else " "
        console.print(f"{marker} {t.id} | {t.label}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """
    Build the argparse CLI parser with sub-commands.
    """
    config = load_config()

    parser = argparse.ArgumentParser(prog="mytimetable", description="MyTimetable CLI")
    parser.add_argument("--data-dir", type=Path, default=config.data_dir, help="Data directory")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p_parse = sub.add_parser("parse", help="Parse OCR text into courses")
    p_parse.add_argument("source", type=str, help="Text file, or - for stdin")
    p_parse.add_argument("--save", action="store_true", help="Add the parsed courses to the term")
    p_parse.add_argument("--term", type=str, default=None, help="Term id (default: current)")

    p_scan = sub.add_parser("scan", help="Recognise a timetable photo with Gemini")
    p_scan.add_argument("image", type=str, help="Image file")
    p_scan.add_argument("--save", action="store_true", help="Add the recognised courses to the term")
    p_scan.add_argument("--term", type=str, default=None, help="Term id (default: current)")

    p_import = sub.add_parser("import", help="Import a shared timetable (JSON)")
    p_import.add_argument("source", type=str, help="Payload file, or - for stdin")
    p_import.add_argument("--term", type=str, default=None, help="Term id (default: current)")

    p_share = sub.add_parser("share", help="Export the term as a share payload")
    p_share.add_argument("--qr", action="store_true", help="Minify for a QR code (max 15 courses)")
    p_share.add_argument("--out", type=str, default=None, help="Output file (default: stdout)")
    p_share.add_argument("--term", type=str, default=None, help="Term id (default: current)")

    p_add = sub.add_parser("add", help="Add a single course")
    p_add.add_argument("--name", type=str, required=True)
    p_add.add_argument("--day", type=str, required=True, help="Mon..Sat or 月..土")
    p_add.add_argument("--period", type=int, required=True)
    p_add.add_argument("--room", type=str, default=None)
    p_add.add_argument("--professor", type=str, default=None)
    p_add.add_argument("--code", type=str, default=None)
    p_add.add_argument("--color", type=str, default=None)
    p_add.add_argument("--term", type=str, default=None, help="Term id (default: current)")
    p_add.add_argument(
        "--on-conflict", choices=[p.value for p in ConflictPolicy], default=None, help="What to do if the slot is taken"
    )

    p_list = sub.add_parser("list", help="List the courses of a term")
    p_list.add_argument("--day", type=str, default=None, help="Only one day (Mon..Sat)")
    p_list.add_argument("--term", type=str, default=None, help="Term id (default: current)")

    p_time = sub.add_parser("time", help="Show the clock time of a period")
    p_time.add_argument("period", type=int)
    p_time.add_argument("--day", type=str, default=None, help="Apply day-specific durations (Mon..Sat)")

    p_terms = sub.add_parser("terms", help="List terms / set the current term")
    p_terms.add_argument("--set", type=str, default=None, help="Make this term id current")

    return parser


COMMANDS = {
    "parse": _cmd_parse,
    "scan": _cmd_scan,
    "import": _cmd_import,
    "share": _cmd_share,
    "add": _cmd_add,
    "list": _cmd_list,
    "time": _cmd_time,
    "terms": _cmd_terms,
}


def main(argv: list[str] | None = None) -> None:
    """
    CLI entry point. Parses args, dispatches to command handlers,
    and exits via SystemExit with a return code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    handler = COMMANDS.get(args.command)
    if handler is None:
        raise SystemExit(2)

    try:
        code = handler(args)
    except (MyTimetableError, ValueError, OSError) as exc:
        console.print(f"Error: {exc}")
        code = 1
    raise SystemExit(code)

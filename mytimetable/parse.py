"""
Parsing (OCR text -> candidate courses).

The OCR provider hands over one text blob per photographed timetable.
classify_layout() decides which of three parsers reads it:

- GRID_WITH_CODES: a grid whose cells start with 7-digit course codes,
  read row by row with period markers ("1", "2限") between rows
- BLOCK_HEADER:    a list of "12345: Course name" headers, each followed by
  schedule lines such as "月1: 2161 / 火2"
- HEURISTIC_LINE:  anything else; every line must carry its own day and
  period ("英語(月)(1)", "Mon 2 Physics")

Important rules (DO NOT CHANGE):
- a candidate without day AND period is dropped
- parsers never assign a term; the caller does that after parsing
- parsing has no side effects
"""

from __future__ import annotations

import logging
import random
import re
from enum import Enum
from typing import Callable, Dict, List, Optional, Tuple

from mytimetable.model import COLORS, DAYS, UNKNOWN_NAME, Course, Day, new_course_id
from mytimetable.normalize import clean_course_name

LOG = logging.getLogger(__name__)

IdFactory = Callable[[], str]


class Layout(Enum):
    GRID_WITH_CODES = "grid_with_codes"
    BLOCK_HEADER = "block_header"
    HEURISTIC_LINE = "heuristic_line"


# ---------------------------------------------------------------------------
# Shared patterns
# ---------------------------------------------------------------------------

JAPANESE_DAY_MAP: Dict[str, Day] = {
    "月": Day.MON,
    "火": Day.TUE,
    "水": Day.WED,
    "木": Day.THU,
    "金": Day.FRI,
    "土": Day.SAT,
}

_SEVEN_DIGITS_RE = re.compile(r"(?<!\d)\d{7}(?!\d)")
_LINE_SPLIT_RE = re.compile(r"\r?\n|;")

_PERIOD_MARKER_RE = re.compile(r"^([1-6])(?:限)?$")
_CODE_LINE_RE = re.compile(r"^(\d{7})(?:[\s:：]+(.+))?$")
_CODE_START_RE = re.compile(r"^\d{7}")
_QUARTER_LINE_RE = re.compile(r"^[(\[{]?(?:[1-4][Qq]|[Qq][1-4])[)\]}]?$")

BLOCK_HEADER_RE = re.compile(r"^(\d{4,})\s*[:：]\s*(.+)")
_ROOM_SLOT_RE = re.compile(
    r"([月火水木金土])曜?\s*(\d)\s*[:：;.,\s]\s*([^/()\[\]\s].*?)(?=\s*[/()\[\]]|$)"
)
_SLOT_RE = re.compile(r"([月火水木金土])曜?\s*(\d)")
_ROOM_TAIL_RE = re.compile(r"(\d)[^\d]+$")

_KANJI_DAY_TOKEN_RE = re.compile(r"[(\[{]\s*[月火水木金土](?:曜日?)?\s*[)\]}]|[月火水木金土](?:曜日?)?")
_EXPLICIT_PERIOD_RE = re.compile(r"([1-6])\s*限")
_BRACKET_PERIOD_RE = re.compile(r"[(\[{]([1-6])[)\]}]")
_WEAK_PERIOD_RE = re.compile(r"(?<!\d)([1-6])(?!\d)")
_NAME_EDGE_RE = re.compile(r"^[:.\-\s]+|[:.\-\s]+$")


def _english_day_re(day: Day) -> re.Pattern:
    return re.compile(rf"\b{day.value}\b", re.IGNORECASE)


_ENGLISH_DAY_RES: List[Tuple[Day, re.Pattern]] = [(d, _english_day_re(d)) for d in DAYS]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def split_lines(text: str) -> List[str]:
    """
    Split on newlines and ';', trim, drop empty lines.
    """
    return [ln.strip() for ln in _LINE_SPLIT_RE.split(text) if ln.strip()]


def split_blocks(lines: List[str]) -> List[List[str]]:
    """
    Group lines into blocks; a block header line starts a new block.
    Lines before the first header form a block of their own.
    """
    blocks: List[List[str]] = []
    current: List[str] = []
    for line in lines:
        if BLOCK_HEADER_RE.match(line):
            if current:
                blocks.append(current)
            current = [line]
        else:
            current.append(line)
    if current:
        blocks.append(current)
    return blocks


def classify_layout(text: str) -> Layout:
    """
    Pick the parser for a raw OCR text blob.
    """
    if _SEVEN_DIGITS_RE.search(text):
        return Layout.GRID_WITH_CODES
    blocks = split_blocks(split_lines(text))
    if any(BLOCK_HEADER_RE.match(b[0]) for b in blocks):
        return Layout.BLOCK_HEADER
    return Layout.HEURISTIC_LINE


def is_marker_line(line: str) -> bool:
    """
    True for lines that open something new in the grid layout
    (a period marker or a course code) and must never be read as
    name, room or professor.
    """
    s = line.strip()
    return bool(_CODE_START_RE.match(s) or _PERIOD_MARKER_RE.match(s))


def _is_quarter_line(line: str) -> bool:
    return bool(_QUARTER_LINE_RE.match(line.strip()))


def _next_day(current: Day) -> Day:
    # reading goes left to right over one grid row; Saturday is the last column
    idx = DAYS.index(current)
    return DAYS[min(idx + 1, len(DAYS) - 1)]


# ---------------------------------------------------------------------------
# Grid with 7-digit codes
# ---------------------------------------------------------------------------


def parse_grid_with_codes(lines: List[str], id_factory: IdFactory = new_course_id) -> List[Course]:
    courses: List[Course] = []
    current_day = Day.MON
    current_period = 1
    color_index = 0

    def peek(i: int) -> Optional[str]:
        # next line if it exists and is not a marker
        if i + 1 < len(lines) and not is_marker_line(lines[i + 1]):
            return lines[i + 1].strip()
        return None

    i = 0
    while i < len(lines):
        line = lines[i].strip()

        period_match = _PERIOD_MARKER_RE.match(line)
        if period_match:
            current_period = int(period_match.group(1))
            current_day = Day.MON  # new grid row
            i += 1
            continue

        code_match = _CODE_LINE_RE.match(line)
        if not code_match:
            i += 1
            continue

        code = code_match.group(1)
        name = (code_match.group(2) or "").strip()
        room = ""
        professor = ""

        if not name:
            nxt = peek(i)
            if nxt is not None:
                name = nxt
                i += 1

        nxt = peek(i)
        if nxt is not None and _is_quarter_line(nxt):
            name = f"{name} {nxt}"
            i += 1
            nxt = peek(i)
        if nxt is not None:
            room = nxt
            i += 1
            nxt = peek(i)
            if nxt is not None and not _is_quarter_line(nxt):
                professor = nxt
                i += 1

        courses.append(
            Course(
                id=id_factory(),
                name=clean_course_name(name) or UNKNOWN_NAME,
                code=code,
                day=current_day,
                period=current_period,
                room=room,
                professor=professor,
                color=COLORS[color_index % len(COLORS)],
            )
        )
        color_index += 1
        current_day = _next_day(current_day)
        i += 1

    return courses


# ---------------------------------------------------------------------------
# Block header ("12345: Name" + schedule lines)
# ---------------------------------------------------------------------------


def _block_courses(block: List[str], color: str, id_factory: IdFactory) -> List[Course]:
    header = BLOCK_HEADER_RE.match(block[0])
    if not header:
        return []
    code = header.group(1)
    name = clean_course_name(header.group(2))

    rooms: Dict[Tuple[Day, int], str] = {}
    slots: List[Tuple[Day, int]] = []
    professor = ""

    for line in block[1:]:
        for m in _ROOM_SLOT_RE.finditer(line):
            period = int(m.group(2))
            room = _ROOM_TAIL_RE.sub(r"\1", m.group(3).strip())
            if period and room:
                rooms[(JAPANESE_DAY_MAP[m.group(1)], period)] = room

        for m in _SLOT_RE.finditer(line):
            slot = (JAPANESE_DAY_MAP[m.group(1)], int(m.group(2)))
            if slot[1] and slot not in slots:
                slots.append(slot)

        if not re.search(r"\d", line) and "セメスター" not in line and "年度" not in line:
            professor = line.strip()

    return [
        Course(
            id=id_factory(),
            name=name,
            code=code,
            day=day,
            period=period,
            room=rooms.get((day, period), ""),
            professor=professor,
            color=color,
        )
        for day, period in slots
    ]


def parse_block_header(
    lines: List[str],
    id_factory: IdFactory = new_course_id,
    rng: Optional[random.Random] = None,
) -> List[Course]:
    rng = rng or random.Random()
    color_index = rng.randrange(len(COLORS))
    courses: List[Course] = []
    for block in split_blocks(lines):
        if not BLOCK_HEADER_RE.match(block[0]):
            continue
        # one colour per block, shared by all of its slots
        color = COLORS[color_index % len(COLORS)]
        color_index += 1
        courses.extend(_block_courses(block, color, id_factory))
    return courses


# ---------------------------------------------------------------------------
# Heuristic per line
# ---------------------------------------------------------------------------


def _detect_day(line: str) -> Optional[Day]:
    for kanji, day in JAPANESE_DAY_MAP.items():
        if kanji in line:
            return day
    for day, pattern in _ENGLISH_DAY_RES:
        if pattern.search(line):
            return day
    return None


def _detect_period(line: str, day_found: bool) -> Tuple[Optional[int], Optional[re.Pattern]]:
    """
    Return (period, pattern that matched it).
    A bare digit only counts once a day has been seen on the line.
    """
    candidates = [_EXPLICIT_PERIOD_RE, _BRACKET_PERIOD_RE]
    if day_found:
        candidates.append(_WEAK_PERIOD_RE)
    for pattern in candidates:
        m = pattern.search(line)
        if m:
            return int(m.group(1)), pattern
    return None, None


def _strip_tokens(line: str, period_pattern: re.Pattern) -> str:
    name = _KANJI_DAY_TOKEN_RE.sub("", line)
    for _, pattern in _ENGLISH_DAY_RES:
        name = pattern.sub("", name)
    name = period_pattern.sub("", name, count=1)
    name = re.sub(r"[(\[{]\s*[)\]}]", "", name)
    return _NAME_EDGE_RE.sub("", name).strip()


def parse_heuristic_lines(
    lines: List[str],
    id_factory: IdFactory = new_course_id,
    rng: Optional[random.Random] = None,
) -> List[Course]:
    rng = rng or random.Random()
    color_index = rng.randrange(len(COLORS))
    courses: List[Course] = []

    for line in lines:
        line = line.strip()
        if not line:
            continue

        day = _detect_day(line)
        period, period_pattern = _detect_period(line, day is not None)
        if day is None or period is None or period_pattern is None:
            continue

        name = clean_course_name(_strip_tokens(line, period_pattern))
        if len(name) <= 1:
            continue

        courses.append(
            Course(
                id=id_factory(),
                name=name,
                day=day,
                period=period,
                color=COLORS[color_index % len(COLORS)],
            )
        )
        color_index += 1

    return courses


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def parse_raw_text_to_courses(
    text: str,
    id_factory: IdFactory = new_course_id,
    rng: Optional[random.Random] = None,
) -> List[Course]:
    """
    Classify the OCR text and run the matching parser.
    """
    layout = classify_layout(text)
    lines = split_lines(text)

    if layout is Layout.GRID_WITH_CODES:
        courses = parse_grid_with_codes(lines, id_factory=id_factory)
    elif layout is Layout.BLOCK_HEADER:
        courses = parse_block_header(lines, id_factory=id_factory, rng=rng)
    else:
        courses = parse_heuristic_lines(lines, id_factory=id_factory, rng=rng)

    LOG.debug("layout=%s lines=%d courses=%d", layout.value, len(lines), len(courses))
    return courses

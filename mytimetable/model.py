"""
Central data model definitions used across the project.

This module defines the canonical structure of Course (and its attached
records), Term and Settings so that:
- parsers, the reconciler, the share codec and the CLI share the same fields
- JSON stays compatible with the mobile app (camelCase keys on disk)

Records are plain dataclasses. The core never mutates them in place;
dataclasses.replace() is used wherever a changed copy is needed.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

LOG = logging.getLogger(__name__)


class Day(str, Enum):
    MON = "Mon"
    TUE = "Tue"
    WED = "Wed"
    THU = "Thu"
    FRI = "Fri"
    SAT = "Sat"


DAYS: List[Day] = [Day.MON, Day.TUE, Day.WED, Day.THU, Day.FRI, Day.SAT]
PERIODS: List[int] = list(range(1, 11))
MAX_PERIOD_CEILING = 10

# Kanji labels used on Japanese timetables (and by the share UI)
DAY_LABELS: Dict[Day, str] = {
    Day.MON: "月",
    Day.TUE: "火",
    Day.WED: "水",
    Day.THU: "木",
    Day.FRI: "金",
    Day.SAT: "土",
}

# Swatch identifiers, assigned cyclically to recognised courses
COLORS: List[str] = [
    "#dbeafe",  # blue
    "#dcfce7",  # green
    "#fce7f3",  # pink
    "#fef3c7",  # yellow
    "#e0e7ff",  # indigo
    "#ffedd5",  # orange
    "#f3e8ff",  # purple
    "#fee2e2",  # red
    "#ccfbf1",  # teal
]

UNKNOWN_NAME = "名称不明"


def new_course_id() -> str:
    """
    Return a fresh opaque id (9 lowercase hex chars, like the app's ids).
    """
    return uuid.uuid4().hex[:9]


def parse_day(value: Any) -> Optional[Day]:
    """
    Accept 'Mon' / 'mon' / 'Monday' / '月' / '月曜' / Day.MON.
    Returns None for anything else (including Sunday).
    """
    if isinstance(value, Day):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    for day, label in DAY_LABELS.items():
        if text in (label, label + "曜", label + "曜日"):
            return day
    key = text.lower()
    for day in DAYS:
        if key == day.value.lower() or key == _FULL_NAMES[day]:
            return day
    return None


_FULL_NAMES: Dict[Day, str] = {
    Day.MON: "monday",
    Day.TUE: "tuesday",
    Day.WED: "wednesday",
    Day.THU: "thursday",
    Day.FRI: "friday",
    Day.SAT: "saturday",
}


def _opt_str(x: Any) -> Optional[str]:
    return None if x is None else str(x)


def _attendance_records(history: List[Any]) -> List[AttendanceRecord]:
    # an unknown status drops that record only, never the whole course
    records: List[AttendanceRecord] = []
    for raw in history:
        if not isinstance(raw, dict):
            continue
        try:
            records.append(AttendanceRecord.from_dict(raw))
        except ValueError as exc:
            LOG.warning("skipping attendance record %r: %s", raw, exc)
    return records


@dataclass
class Assignment:
    id: str
    title: str
    deadline: Optional[str] = None
    completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "title": self.title, "completed": self.completed}
        if self.deadline is not None:
            out["deadline"] = self.deadline
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Assignment":
        return cls(
            id=str(data.get("id") or new_course_id()),
            title=str(data.get("title", "")),
            deadline=_opt_str(data.get("deadline")),
            completed=bool(data.get("completed", False)),
        )


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    CANCELLED = "cancelled"


@dataclass
class AttendanceRecord:
    date: str
    status: AttendanceStatus
    id: str = field(default_factory=new_course_id)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "date": self.date, "status": self.status.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AttendanceRecord":
        return cls(
            date=str(data.get("date", "")),
            status=AttendanceStatus(str(data.get("status", "present"))),
            id=str(data.get("id") or new_course_id()),
        )


@dataclass
class Course:
    """
    One weekly course slot, either a freshly recognised candidate or a
    stored course. A course is only meaningful with both day and period.
    """

    id: str
    name: str
    day: Day
    period: int
    code: Optional[str] = None
    room: Optional[str] = None
    professor: Optional[str] = None
    color: Optional[str] = None
    term: Optional[str] = None
    syllabus_url: Optional[str] = None
    notes: Optional[str] = None
    assignments: List[Assignment] = field(default_factory=list)
    attendance_history: List[AttendanceRecord] = field(default_factory=list)
    images: List[str] = field(default_factory=list)
    skip_notification_until: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize with the app's camelCase keys. Unset optionals are left out.
        """
        out: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "day": self.day.value,
            "period": self.period,
        }
        optional = {
            "code": self.code,
            "room": self.room,
            "professor": self.professor,
            "color": self.color,
            "term": self.term,
            "syllabusUrl": self.syllabus_url,
            "notes": self.notes,
            "skipNotificationUntil": self.skip_notification_until,
        }
        for key, value in optional.items():
            if value is not None:
                out[key] = value
        if self.assignments:
            out["assignments"] = [a.to_dict() for a in self.assignments]
        if self.attendance_history:
            out["attendanceHistory"] = [r.to_dict() for r in self.attendance_history]
        if self.images:
            out["images"] = list(self.images)
        return out

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Course":
        """
        Build a Course from a stored/legacy dict.
        Raises ValueError if day or period is missing or invalid.
        """
        day = parse_day(data.get("day"))
        if day is None:
            raise ValueError(f"Invalid day: {data.get('day')!r}")
        try:
            period = int(data.get("period"))
        except (TypeError, ValueError):
            raise ValueError(f"Invalid period: {data.get('period')!r}") from None
        if period < 1:
            raise ValueError(f"Invalid period: {period}")

        assignments = data.get("assignments") or []
        history = data.get("attendanceHistory") or []
        images = data.get("images") or []

        return cls(
            id=str(data.get("id") or new_course_id()),
            name=str(data.get("name") or UNKNOWN_NAME),
            day=day,
            period=period,
            code=_opt_str(data.get("code")),
            room=_opt_str(data.get("room")),
            professor=_opt_str(data.get("professor")),
            color=_opt_str(data.get("color")),
            term=_opt_str(data.get("term")),
            syllabus_url=_opt_str(data.get("syllabusUrl")),
            notes=_opt_str(data.get("notes")),
            assignments=[Assignment.from_dict(a) for a in assignments if isinstance(a, dict)],
            attendance_history=_attendance_records(history),
            images=[str(x) for x in images],
            skip_notification_until=_opt_str(data.get("skipNotificationUntil")),
        )


@dataclass
class Term:
    id: str
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "label": self.label}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Term":
        term_id = str(data.get("id", ""))
        return cls(id=term_id, label=str(data.get("label") or term_id))


@dataclass
class Settings:
    """
    The subset of app settings the core reads.

    custom_period_durations is kept flat, exactly as stored:
    "3" is a global override, "Mon-3" a day-specific one.
    """

    visible_days: List[Day] = field(default_factory=lambda: DAYS[:5])
    max_period: int = 5
    first_period_start: str = "09:00"
    third_period_start: Optional[str] = "13:00"
    period_duration: int = 90
    break_duration: int = 10
    lates_equivalent_to_absence: int = 3
    custom_period_durations: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "visibleDays": [d.value for d in self.visible_days],
            "maxPeriod": self.max_period,
            "firstPeriodStart": self.first_period_start,
            "thirdPeriodStart": self.third_period_start,
            "periodDuration": self.period_duration,
            "breakDuration": self.break_duration,
            "latesEquivalentToAbsence": self.lates_equivalent_to_absence,
            "customPeriodDurations": dict(self.custom_period_durations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """
        Merge stored settings over the defaults.

        Missing or falsy values fall back to the defaults, like the app does.
        The legacy key firstPeriodTime.start is still understood.
        An explicit null thirdPeriodStart disables the 3rd-period reset.
        """
        defaults = cls()

        first = data.get("firstPeriodStart")
        if not first:
            legacy = data.get("firstPeriodTime")
            if isinstance(legacy, dict):
                first = legacy.get("start")

        if "thirdPeriodStart" in data:
            third = data.get("thirdPeriodStart") or None
        else:
            third = defaults.third_period_start

        visible: List[Day] = []
        for raw in data.get("visibleDays") or []:
            d = parse_day(raw)
            if d is not None and d not in visible:
                visible.append(d)

        custom: Dict[str, int] = {}
        raw_custom = data.get("customPeriodDurations") or {}
        if isinstance(raw_custom, dict):
            for key, value in raw_custom.items():
                try:
                    custom[str(key)] = int(value)
                except (TypeError, ValueError):
                    continue

        return cls(
            visible_days=visible or defaults.visible_days,
            max_period=int(data.get("maxPeriod") or defaults.max_period),
            first_period_start=str(first or defaults.first_period_start),
            third_period_start=third,
            period_duration=int(data.get("periodDuration") or defaults.period_duration),
            break_duration=int(data.get("breakDuration") or defaults.break_duration),
            lates_equivalent_to_absence=int(
                data.get("latesEquivalentToAbsence") or defaults.lates_equivalent_to_absence
            ),
            custom_period_durations=custom,
        )

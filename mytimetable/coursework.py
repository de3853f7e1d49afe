"""
Attendance statistics, assignment deadlines and notification skips.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple

from mytimetable.model import Assignment, AttendanceRecord, AttendanceStatus, Course


@dataclass
class AttendanceStats:
    present: int
    absent: int
    late: int
    total: int
    rate: int


def attendance_stats(records: Iterable[AttendanceRecord], lates_equivalent_to_absence: int = 3) -> AttendanceStats:
    """
    Cancelled classes do not count. Every N lates become one absence;
    leftover lates count as present. rate is a rounded percentage.
    """
    valid = [r for r in records if r.status is not AttendanceStatus.CANCELLED]
    present = sum(1 for r in valid if r.status is AttendanceStatus.PRESENT)
    late = sum(1 for r in valid if r.status is AttendanceStatus.LATE)
    absent = sum(1 for r in valid if r.status is AttendanceStatus.ABSENT)

    limit = lates_equivalent_to_absence or 3
    effective_present = present + late % limit
    effective_absent = absent + late // limit
    effective_total = effective_present + effective_absent

    rate = 0 if effective_total == 0 else int(effective_present * 100 / effective_total + 0.5)
    return AttendanceStats(present=present, absent=absent, late=late, total=len(valid), rate=rate)


_MD_RE = re.compile(r"^(?:(\d{4})[/-])?(\d{1,2})/(\d{1,2})(?:\s+(\d{1,2}):(\d{2}))?$")


def parse_deadline(text: Optional[str], now: datetime) -> Optional[datetime]:
    """
    Understands "M/D", "M/D HH:MM", "YYYY/M/D[ HH:MM]" and ISO-8601.
    Dates without a time mean the end of that day. Returns None for
    anything else; never raises.
    """
    if not text or not text.strip():
        return None
    s = text.strip()

    m = _MD_RE.match(s)
    if m:
        year = int(m.group(1)) if m.group(1) else now.year
        try:
            day = datetime(year, int(m.group(2)), int(m.group(3)), tzinfo=now.tzinfo)
            if m.group(4) is None:
                return day.replace(hour=23, minute=59)
            return day.replace(hour=int(m.group(4)), minute=int(m.group(5)))
        except ValueError:
            return None

    try:
        parsed = datetime.fromisoformat(s.replace("Z", "+00:00"))
    except ValueError:
        return None
    # keep the result comparable with `now`
    if parsed.tzinfo is not None and now.tzinfo is None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    elif parsed.tzinfo is None and now.tzinfo is not None:
        parsed = parsed.replace(tzinfo=now.tzinfo)
    return parsed


def deadline_urgency(deadline: Optional[str], now: datetime) -> Optional[str]:
    target = parse_deadline(deadline, now)
    if target is None:
        return None
    diff = target - now
    if diff < timedelta(0):
        return "overdue"
    if diff <= timedelta(days=1):
        return "urgent"
    if diff <= timedelta(days=3):
        return "warning"
    return "ok"


def pending_assignments(courses: Iterable[Course], now: datetime) -> List[Tuple[Course, Assignment]]:
    """
    Open assignments of all courses, soonest deadline first.
    Assignments without a readable deadline go last.
    """
    seen = set()
    pending: List[Tuple[Course, Assignment]] = []
    for course in courses:
        for a in course.assignments:
            if a.completed or a.id in seen:
                continue
            seen.add(a.id)
            pending.append((course, a))

    def key(pair: Tuple[Course, Assignment]) -> Tuple[int, datetime]:
        due = parse_deadline(pair[1].deadline, now)
        return (0, due) if due is not None else (1, datetime.max)

    return sorted(pending, key=key)


def notifications_suppressed(course: Course, now: datetime) -> bool:
    until = parse_deadline(course.skip_notification_until, now)
    return until is not None and now < until

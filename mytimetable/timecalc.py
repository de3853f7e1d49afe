"""
Period -> wall-clock time calculation.

Walks periods 1..N, adding each period's duration plus the break.
At period 3 the clock jumps to the configured 3rd-period start
(a lunch break of arbitrary length) when one is set.

Duration priority for period p on day D:
    day-specific override (D, p) > global override p > default duration

Times past midnight wrap the hour (25:10 -> "01:10"); there is no date
rollover tracking.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from mytimetable.errors import InvalidPeriodError
from mytimetable.model import DAYS, Course, Day, Settings, parse_day


def _time_to_minutes(hhmm: str) -> int:
    """
    Convert 'HH:MM' to minutes since midnight.
    Raises ValueError for invalid formats.
    """
    parts = hhmm.strip().split(":")
    if len(parts) != 2:
        raise ValueError(f"Invalid time format: {hhmm!r}")
    h = int(parts[0])
    m = int(parts[1])
    if not (0 <= h <= 23 and 0 <= m <= 59):
        raise ValueError(f"Invalid time value: {hhmm!r}")
    return h * 60 + m


def minutes_to_hhmm(minutes: int) -> str:
    return f"{(minutes // 60) % 24:02d}:{minutes % 60:02d}"


@dataclass
class DurationOverrides:
    """
    Two-level duration lookup: per-day map first, then the global map.
    """

    global_: Dict[int, int] = field(default_factory=dict)
    per_day: Dict[Day, Dict[int, int]] = field(default_factory=dict)

    def duration_for(self, period: int, day: Optional[Day], default: int) -> int:
        if day is not None:
            day_map = self.per_day.get(day, {})
            if period in day_map:
                return day_map[period]
        return self.global_.get(period, default)

    @classmethod
    def from_flat(cls, flat: Optional[Mapping[str, int]]) -> "DurationOverrides":
        """
        Build from the stored form {"3": 60, "Mon-3": 45}.
        Keys that are neither shape are ignored.
        """
        out = cls()
        for key, minutes in (flat or {}).items():
            key = str(key).strip()
            if key.isdigit():
                out.global_[int(key)] = int(minutes)
                continue
            day_part, sep, period_part = key.partition("-")
            day = parse_day(day_part)
            if sep and day is not None and period_part.isdigit():
                out.per_day.setdefault(day, {})[int(period_part)] = int(minutes)
        return out

    def to_flat(self) -> Dict[str, int]:
        flat: Dict[str, int] = {str(p): m for p, m in sorted(self.global_.items())}
        for day in DAYS:
            for p, m in sorted(self.per_day.get(day, {}).items()):
                flat[f"{day.value}-{p}"] = m
        return flat


@dataclass
class PeriodTime:
    start: str
    end: str
    start_minutes: int
    end_minutes: int

    @property
    def duration(self) -> int:
        return self.end_minutes - self.start_minutes


OverridesLike = Union[DurationOverrides, Mapping[str, int], None]


def calculate_time(
    period: int,
    first_start: str,
    third_start: Optional[str] = None,
    duration: int = 90,
    break_duration: int = 10,
    overrides: OverridesLike = None,
    day: Union[Day, str, None] = None,
) -> PeriodTime:
    """
    Return start/end of `period` ("HH:MM" plus minutes since midnight).

    Raises InvalidPeriodError for period < 1 and ValueError for malformed
    "HH:MM" strings.
    """
    if period < 1:
        raise InvalidPeriodError(f"Period must be >= 1, got {period}")

    if not isinstance(overrides, DurationOverrides):
        overrides = DurationOverrides.from_flat(overrides)
    day_key = parse_day(day) if day is not None else None

    current = _time_to_minutes(first_start)
    for p in range(1, period + 1):
        # lunch break: restart the clock at the configured anchor
        if p == 3 and third_start:
            current = _time_to_minutes(third_start)

        p_duration = overrides.duration_for(p, day_key, duration)

        if p == period:
            end = current + p_duration
            return PeriodTime(
                start=minutes_to_hhmm(current),
                end=minutes_to_hhmm(end),
                start_minutes=current,
                end_minutes=end,
            )

        current += p_duration + break_duration

    raise AssertionError("unreachable")  # pragma: no cover


def period_time(period: int, settings: Settings, day: Union[Day, str, None] = None) -> PeriodTime:
    """
    calculate_time() with every parameter taken from Settings.
    """
    return calculate_time(
        period,
        settings.first_period_start,
        settings.third_period_start,
        settings.period_duration,
        settings.break_duration,
        settings.custom_period_durations,
        day,
    )


def period_start_time(period: int, settings: Settings, day: Union[Day, str, None] = None) -> str:
    return period_time(period, settings, day).start


def period_time_for(course: Course, settings: Settings) -> PeriodTime:
    return period_time(course.period, settings, course.day)


def courses_for_day(courses: Iterable[Course], day: Day) -> List[Course]:
    return sorted((c for c in courses if c.day == day), key=lambda c: c.period)


def day_for_date(d: date) -> Optional[Day]:
    # weekday(): Monday == 0, Sunday == 6 (no classes)
    idx = d.weekday()
    return DAYS[idx] if idx < len(DAYS) else None


def next_busy_day(courses: Iterable[Course], settings: Settings, now: datetime) -> Optional[Tuple[int, Day]]:
    """
    The day a "next class" view should open on, as (offset in days, Day).

    Today counts until its last class has ended; after that (or on a free
    day) the next weekday with at least one course wins. Sunday is skipped.
    Returns None when there are no courses at all.
    """
    courses = list(courses)
    today = day_for_date(now.date())
    if today is not None:
        todays = [c for c in courses if c.day == today]
        if todays:
            last_end = max(period_time_for(c, settings).end_minutes for c in todays)
            if now.hour * 60 + now.minute <= last_end:
                return 0, today

    busy = {c.day for c in courses}
    for offset in range(1, 8):
        day = day_for_date((now + timedelta(days=offset)).date())
        if day is not None and day in busy:
            return offset, day
    return None

"""
Exception types shared across the package.

Everything raised on purpose derives from MyTimetableError, so the CLI
(and any other host) can catch one base class for user-facing failures.

Note: a busy vision lock is NOT an error. VisionLock.acquire() returns False
and the pipeline returns None instead of raising.
"""

from __future__ import annotations

from typing import Any, List


class MyTimetableError(Exception):
    """Base class for all errors raised by mytimetable."""


class InvalidPeriodError(MyTimetableError, ValueError):
    """A period number below 1 was passed to the time calculator."""


class SharePayloadError(MyTimetableError):
    """A share payload could not be decoded (bad JSON, unknown shape, no courses)."""


class ShareLimitError(SharePayloadError):
    """Too many courses were selected for a QR payload."""


class NoCoursesFoundError(MyTimetableError):
    """Recognition finished but did not produce a single course."""


class SlotConflictError(MyTimetableError):
    """
    Raised by merge.add_course when the day/period slot is already taken
    and the caller did not say how to resolve it.
    """

    def __init__(self, conflicts: List[Any]) -> None:
        self.conflicts = list(conflicts)
        names = ", ".join(getattr(c, "name", "?") for c in self.conflicts)
        super().__init__(f"Slot already taken by: {names}")


class VisionError(MyTimetableError):
    """Fatal failure of the remote vision provider (no retry)."""


class VisionRateLimitError(VisionError):
    """The provider kept answering 429/503 until the retries ran out."""

    def __init__(self, status_code: int, attempts: int) -> None:
        self.status_code = status_code
        self.attempts = attempts
        super().__init__(f"Vision API still unavailable (HTTP {status_code}) after {attempts} attempts")

"""
Committing candidates into the stored course list.

Rules:
- colours are unified by course name before the user sees candidates
- a manual add into an occupied slot (same term/day/period, other id)
  needs a ConflictPolicy: APPEND keeps both (quarter system),
  OVERWRITE drops everything in that slot, CANCEL keeps the list as is
- editing an existing course (same id) replaces it in place, no prompt
- bulk commits (scan selection, import) never check slots; only the same
  id is replaced
- the visible period count grows with the courses, up to 10

All functions return new lists / objects and leave their inputs untouched.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from enum import Enum
from typing import Dict, Iterable, List, Optional

from mytimetable.errors import SlotConflictError
from mytimetable.model import MAX_PERIOD_CEILING, Course, Settings, new_course_id
from mytimetable.parse import IdFactory

LOG = logging.getLogger(__name__)


class ConflictPolicy(Enum):
    APPEND = "append"
    OVERWRITE = "overwrite"
    CANCEL = "cancel"


def unify_colors(candidates: Iterable[Course], stored: Iterable[Course]) -> List[Course]:
    """
    Give every candidate the colour already used for its name.
    Names seen for the first time keep their own colour, which then
    becomes the colour for later candidates with the same name.
    """
    name_to_color: Dict[str, Optional[str]] = {}
    for c in stored:
        if c.color:
            name_to_color[c.name] = c.color

    out: List[Course] = []
    for c in candidates:
        known = name_to_color.get(c.name)
        if known:
            out.append(replace(c, color=known))
        else:
            name_to_color[c.name] = c.color
            out.append(c)
    return out


def find_slot_conflicts(courses: Iterable[Course], course: Course, term: Optional[str]) -> List[Course]:
    return [
        c
        for c in courses
        if c.term == term and c.day == course.day and c.period == course.period and c.id != course.id
    ]


def add_course(
    courses: List[Course],
    course: Course,
    term: Optional[str],
    policy: Optional[ConflictPolicy] = None,
) -> List[Course]:
    """
    Add (or edit) a single course in `term` and return the new list.

    Raises SlotConflictError if the slot is taken and no policy was given,
    so the host can ask the user and call again with a policy.
    """
    with_term = replace(course, term=term)

    if any(c.id == course.id for c in courses):
        return [with_term if c.id == course.id else c for c in courses]

    conflicts = find_slot_conflicts(courses, course, term)
    if conflicts:
        if policy is None:
            raise SlotConflictError(conflicts)
        LOG.debug(
            "slot %s/%s taken by %d course(s), policy=%s",
            course.day.value,
            course.period,
            len(conflicts),
            policy.value,
        )
        if policy is ConflictPolicy.CANCEL:
            return list(courses)
        if policy is ConflictPolicy.OVERWRITE:
            conflict_ids = {c.id for c in conflicts}
            return [c for c in courses if c.id not in conflict_ids] + [with_term]

    return list(courses) + [with_term]


def commit_selection(courses: List[Course], selected: Iterable[Course], term: Optional[str]) -> List[Course]:
    """
    Commit scanned candidates chosen by the user. Several courses may share
    a slot; a candidate replaces an existing course only when the ids match.
    """
    current = list(courses)
    for new_course in selected:
        to_add = replace(new_course, term=term)
        current = [c for c in current if c.id != to_add.id]
        current.append(to_add)
    return current


def import_courses(
    courses: List[Course],
    imported: Iterable[Course],
    term: Optional[str],
    id_factory: IdFactory = new_course_id,
) -> List[Course]:
    """
    Append courses from a share payload with fresh ids in `term`.
    """
    fresh = [replace(c, id=id_factory(), term=term) for c in imported]
    return list(courses) + fresh


def expand_max_period(settings: Settings, courses: Iterable[Course]) -> Settings:
    """
    Raise settings.max_period to fit the courses (capped at 10).
    Returns the same object when nothing changes.
    """
    highest = max((c.period for c in courses), default=0)
    if highest <= settings.max_period:
        return settings
    return replace(settings, max_period=min(MAX_PERIOD_CEILING, highest))

"""
Share payloads (QR code / text) for exchanging timetables with friends.

Current format (v2, minified to fit a QR code):

    {"v": 2, "data": [{"n": name, "r": room, "t": professor,
                       "d": day index (0 = Mon .. 5 = Sat), "p": period,
                       "c": color, "s": syllabus url, "code": ..., "term": ...}]}

"s" is only written for text sharing, never for QR codes.
The legacy form {"courses": [Course, ...]} is still accepted on import.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Iterable, List, Union

from mytimetable.errors import ShareLimitError, SharePayloadError
from mytimetable.model import DAYS, UNKNOWN_NAME, Course, new_course_id
from mytimetable.parse import IdFactory

SHARE_VERSION = 2
QR_COURSE_LIMIT = 15


def _minify(course: Course, for_qr: bool) -> Dict[str, Any]:
    item: Dict[str, Any] = {
        "n": course.name,
        "r": course.room,
        "t": course.professor,
        "d": DAYS.index(course.day),
        "p": course.period,
        "c": course.color,
        "code": course.code,
        "term": course.term,
    }
    if not for_qr and course.syllabus_url:
        item["s"] = course.syllabus_url
    # unset fields are left out, like JSON.stringify does with undefined
    return {k: v for k, v in item.items() if v is not None}


def encode_share_payload(courses: Iterable[Course], for_qr: bool = False) -> Dict[str, Any]:
    """
    Build the v2 payload. Raises ShareLimitError for more than
    QR_COURSE_LIMIT courses when for_qr is set.
    """
    courses = list(courses)
    if for_qr and len(courses) > QR_COURSE_LIMIT:
        raise ShareLimitError(f"A QR code holds at most {QR_COURSE_LIMIT} courses (got {len(courses)})")
    return {"v": SHARE_VERSION, "data": [_minify(c, for_qr) for c in courses]}


def dumps_share_payload(courses: Iterable[Course], for_qr: bool = False) -> str:
    payload = encode_share_payload(courses, for_qr=for_qr)
    if for_qr:
        return json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
    return json.dumps(payload, ensure_ascii=False)


def _expand(item: Any, id_factory: IdFactory) -> Course:
    if not isinstance(item, dict):
        raise SharePayloadError(f"Course entry is not an object: {item!r}")
    day_index = item.get("d")
    if not isinstance(day_index, int) or isinstance(day_index, bool) or not 0 <= day_index < len(DAYS):
        raise SharePayloadError(f"Invalid day index: {day_index!r}")
    period = item.get("p")
    if not isinstance(period, int) or isinstance(period, bool) or period < 1:
        raise SharePayloadError(f"Invalid period: {period!r}")

    def opt(key: str) -> Any:
        value = item.get(key)
        return None if value is None else str(value)

    return Course(
        id=id_factory(),
        name=str(item.get("n") or UNKNOWN_NAME),
        day=DAYS[day_index],
        period=period,
        room=opt("r"),
        professor=opt("t"),
        color=opt("c"),
        syllabus_url=opt("s"),
        code=opt("code"),
        term=opt("term"),
    )


def decode_share_payload(payload: Union[str, bytes, Dict[str, Any]], id_factory: IdFactory = new_course_id) -> List[Course]:
    """
    Decode a v2 or legacy payload (JSON text or an already parsed dict).

    Raises SharePayloadError for invalid JSON, an unknown shape, a broken
    entry or an empty course list. Nothing is returned partially.
    """
    if isinstance(payload, (str, bytes)):
        try:
            data = json.loads(payload)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise SharePayloadError(f"Not valid JSON: {exc}") from exc
    else:
        data = payload

    if not isinstance(data, dict):
        raise SharePayloadError("Unknown format")

    if data.get("v") == SHARE_VERSION and isinstance(data.get("data"), list):
        courses = [_expand(item, id_factory) for item in data["data"]]
    elif isinstance(data.get("courses"), list):
        try:
            courses = [Course.from_dict(item) for item in data["courses"]]
        except (AttributeError, TypeError, ValueError) as exc:
            raise SharePayloadError(f"Invalid course in legacy payload: {exc}") from exc
    else:
        raise SharePayloadError("Unknown format")

    if not courses:
        raise SharePayloadError("No courses found")
    return courses

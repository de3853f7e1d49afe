"""
Academic terms: display order, labels and the term for "today".

Term ids look like "2026-Spring" / "2026-Fall". Labels are free text
("2026 / 春セメスター"), so sorting looks at the label only.
"""

from __future__ import annotations

import re
from datetime import date
from functools import cmp_to_key
from typing import Dict, Iterable, List

from mytimetable.model import Term

SEASON_ORDER: Dict[str, int] = {
    "spring": 1,
    "春": 1,
    "summer": 2,
    "夏": 2,
    "fall": 3,
    "autumn": 3,
    "秋": 3,
    "winter": 4,
    "冬": 4,
}

_SEASON_LABELS = {"Spring": "春", "Fall": "秋"}


def _year(label: str) -> int:
    m = re.search(r"\d{4}", label)
    return int(m.group(0)) if m else 0


def _season(label: str) -> int:
    # last match wins, like scanning the whole table
    rank = 0
    for key, value in SEASON_ORDER.items():
        if key in label:
            rank = value
    return rank


def _compare(a: Term, b: Term) -> int:
    a_label = a.label.lower()
    b_label = b.label.lower()

    a_year, b_year = _year(a_label), _year(b_label)
    if a_year != b_year:
        return b_year - a_year

    a_season, b_season = _season(a_label), _season(b_label)
    if a_season != b_season and a_season and b_season:
        return b_season - a_season

    return (a_label < b_label) - (a_label > b_label)


def sort_terms(terms: Iterable[Term]) -> List[Term]:
    """
    Newest first: year desc, then season desc, then label desc.
    """
    return sorted(terms, key=cmp_to_key(_compare))


def predict_current_term(today: date) -> str:
    """
    Japanese academic year: April-September is Spring, October-March is
    Fall of the year the academic year started in.
    """
    if 4 <= today.month <= 9:
        return f"{today.year}-Spring"
    academic_year = today.year if today.month >= 10 else today.year - 1
    return f"{academic_year}-Fall"


def term_label(term_id: str) -> str:
    year, _, season = term_id.partition("-")
    if year.isdigit() and season in _SEASON_LABELS:
        return f"{year} / {_SEASON_LABELS[season]}セメスター"
    return term_id


def default_terms(around_year: int, years_back: int = 2, years_ahead: int = 1) -> List[Term]:
    terms = [
        Term(id=f"{y}-{s}", label=term_label(f"{y}-{s}"))
        for y in range(around_year - years_back, around_year + years_ahead + 1)
        for s in ("Spring", "Fall")
    ]
    return sort_terms(terms)

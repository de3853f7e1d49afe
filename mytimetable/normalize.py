"""
Course name cleanup for OCR output.

OCR engines mangle timetable cells in predictable ways: fullwidth
characters, '|' instead of 'I', 'B'/'8' instead of 'β', stray symbols and
spaces inserted inside Japanese words. clean_course_name() undoes the
common cases. Every step runs unconditionally, in this order:

1. NFKC normalization
2. quarter tag extraction ("(Q2)", "3Q", "[x1]" -> "[Q2]" ...)
3. '|' -> 'I'
4. '<numeral>B' / '<numeral>8' (+ noise like 'UO', '00') -> '<numeral>β'
5. drop noise symbols  ! _ > ¥
6. trim separators at both ends
7. collapse spaces between CJK / Greek / Roman numeral characters
8. known misreads (KNOWN_MISREADS)
9. final trim
"""

from __future__ import annotations

import re
import unicodedata
from typing import List, Optional, Tuple


_QUARTER_RE = re.compile(r"(?:^|[\s(\[{])([XQ][1-4]|[1-4][QX])(?:$|[\s)\]}])", re.IGNORECASE)

_BETA_RE = re.compile(r"([IVX\u2160-\u216B\d])\s*[B8](?:UO|U0|OO|00|O|0)?(?![0-9A-Za-z_])")

_NOISE_RE = re.compile(r"[!_>¥]+")

_EDGE_RE = re.compile(r"^[:：;.\-=\s]+|[:：;.\-=\s]+$")

# Hiragana, Katakana (incl. ー), CJK ideographs, parentheses, Greek,
# Roman numeral letters and the Unicode number forms block.
_DENSE_CHARS = r"\u3041-\u3096\u30A1-\u30FA\u30FC\u4E00-\u9FFF\u3005\uFF08\uFF09()IVX\u0370-\u03FF\u2160-\u2188"
_DENSE_SPACE_RE = re.compile(rf"(?<=[{_DENSE_CHARS}])\s+(?=[{_DENSE_CHARS}])")

# Institution-specific misreads seen in the wild: (pattern, replacement)
KNOWN_MISREADS: List[Tuple[re.Pattern, str]] = [
    (re.compile(r"OUC"), "JC"),
    (re.compile(r"F3\s*E"), "英語"),
]


def extract_quarter_tag(text: str) -> Tuple[Optional[str], str]:
    """
    Find an explicit quarter token and return ("[Qn]", text_without_it).
    Returns (None, text) when no token is present; absence is never
    interpreted as a quarter.
    """
    m = _QUARTER_RE.search(text)
    if not m:
        return None, text
    digit = re.search(r"\d", m.group(1)).group(0)  # type: ignore[union-attr]
    return f"[Q{digit}]", _QUARTER_RE.sub(" ", text)


def clean_course_name(raw: str) -> str:
    cleaned = unicodedata.normalize("NFKC", raw)

    q_tag, cleaned = extract_quarter_tag(cleaned)

    cleaned = cleaned.replace("|", "I")
    cleaned = _BETA_RE.sub(r"\1β", cleaned)
    cleaned = _NOISE_RE.sub("", cleaned)
    cleaned = _EDGE_RE.sub("", cleaned)
    cleaned = _DENSE_SPACE_RE.sub("", cleaned)

    for pattern, replacement in KNOWN_MISREADS:
        cleaned = pattern.sub(replacement, cleaned)

    cleaned = cleaned.strip()

    if q_tag:
        return f"{q_tag} {cleaned}"
    return cleaned

"""HTS code helpers.

Codes are digit strings internally (``"6912004810"``) and dotted for display
(``"6912.00.48.10"``).  Each hierarchy level adds two digits.
"""

from __future__ import annotations

import re
from typing import Dict, List, Optional

_NON_DIGIT_RE = re.compile(r"\D")

CHAPTER = "chapter"
HEADING = "heading"
SUBHEADING = "subheading"
TARIFF_LINE = "tariff_line"
STATISTICAL = "statistical"

LEVELS = (CHAPTER, HEADING, SUBHEADING, TARIFF_LINE, STATISTICAL)

_LEVEL_BY_LENGTH: Dict[int, str] = {
    2: CHAPTER,
    4: HEADING,
    6: SUBHEADING,
    8: TARIFF_LINE,
    10: STATISTICAL,
}

LEVEL_DEPTH: Dict[str, int] = {level: index for index, level in enumerate(LEVELS)}


def normalize_code(code: object) -> str:
    """Strip punctuation from a code and left-pad odd lengths with a zero."""
    digits = _NON_DIGIT_RE.sub("", str(code or ""))
    if len(digits) % 2 == 1:
        digits = digits.zfill(len(digits) + 1)
    return digits


def level_for_code(code: str) -> Optional[str]:
    return _LEVEL_BY_LENGTH.get(len(normalize_code(code)))


def level_depth(level: str) -> int:
    return LEVEL_DEPTH.get(level, -1)


def format_code(code: str) -> str:
    """Return the dotted display form of a code."""
    digits = normalize_code(code)
    if len(digits) <= 4:
        return digits
    parts = [digits[:4]]
    for start in range(4, len(digits), 2):
        parts.append(digits[start:start + 2])
    return ".".join(parts)


def chapter_of(code: str) -> str:
    return normalize_code(code)[:2]


def parent_code(code: str) -> Optional[str]:
    digits = normalize_code(code)
    if len(digits) <= 2:
        return None
    return digits[:-2]


def ancestor_codes(code: str) -> List[str]:
    """Return every ancestor from the chapter down to the code's parent."""
    digits = normalize_code(code)
    return [digits[:length] for length in range(2, len(digits), 2)]


def is_prefix_chain(codes: List[str], final_code: str) -> bool:
    """True when each code is a strict prefix of the next and of ``final_code``."""
    final = normalize_code(final_code)
    previous = ""
    for code in codes:
        digits = normalize_code(code)
        if not final.startswith(digits):
            return False
        if previous and (not digits.startswith(previous) or len(digits) <= len(previous)):
            return False
        previous = digits
    return True

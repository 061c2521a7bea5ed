"""Duty rate text parsing.

Handles the common General-column formats found in the schedule:
  - "Free"
  - "2.5%"
  - "3.4¢/kg"
  - "6.5% + 2.1¢/kg"
  - bare numerals ("5.3") which are read as percentages
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

_PERCENT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*%")
_CENTS_PER_UNIT_RE = re.compile(r"(\d+(?:\.\d+)?)\s*¢\s*/\s*(\w+)")
_DOLLAR_PER_UNIT_RE = re.compile(r"\$\s*(\d+(?:\.\d+)?)\s*/\s*(\w+)")
_BARE_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)?$")

_FREE_TOKENS = frozenset(["free", "0", "0%", "0.0%", "0.00%"])


@dataclass(frozen=True)
class ParsedDutyRate:
    """Structured representation of a duty rate string."""

    raw: str
    ad_valorem_pct: Optional[float] = None
    specific_amount: Optional[float] = None  # dollars per unit
    specific_unit: Optional[str] = None
    is_free: bool = False
    is_compound: bool = False
    is_unknown: bool = False


def is_blank_rate(raw: Optional[str]) -> bool:
    return raw is None or not str(raw).strip()


def normalize_rate_text(raw: Optional[str]) -> str:
    """Normalize a rate for display.

    Empty and free-equivalent text become ``"Free"``; bare numerals gain a
    ``%`` suffix; anything already carrying ``%`` or a specific unit is kept.
    """
    if is_blank_rate(raw):
        return "Free"
    cleaned = str(raw).strip()
    if cleaned.lower() in _FREE_TOKENS:
        return "Free"
    if _BARE_NUMBER_RE.match(cleaned):
        return f"{cleaned}%"
    return cleaned


def parse_duty_rate(raw: Optional[str]) -> ParsedDutyRate:
    """Parse a duty rate string into structured form."""
    if is_blank_rate(raw):
        return ParsedDutyRate(raw=raw or "", is_unknown=True)

    cleaned = normalize_rate_text(raw)
    if cleaned == "Free":
        return ParsedDutyRate(raw=str(raw), ad_valorem_pct=0.0, is_free=True)

    ad_valorem = None
    specific = None
    specific_unit = None

    pct_match = _PERCENT_RE.search(cleaned)
    if pct_match:
        ad_valorem = float(pct_match.group(1))

    cents_match = _CENTS_PER_UNIT_RE.search(cleaned)
    if cents_match:
        specific = float(cents_match.group(1)) / 100.0
        specific_unit = cents_match.group(2).lower()

    dollar_match = _DOLLAR_PER_UNIT_RE.search(cleaned)
    if dollar_match and specific is None:
        specific = float(dollar_match.group(1))
        specific_unit = dollar_match.group(2).lower()

    if ad_valorem is None and specific is None:
        return ParsedDutyRate(raw=str(raw), is_unknown=True)

    return ParsedDutyRate(
        raw=str(raw),
        ad_valorem_pct=ad_valorem,
        specific_amount=specific,
        specific_unit=specific_unit,
        is_compound=ad_valorem is not None and specific is not None,
    )


def duty_rate_as_float(parsed: ParsedDutyRate) -> Optional[float]:
    """Extract the ad valorem percentage, or None for specific-only rates."""
    if parsed.is_free:
        return 0.0
    return parsed.ad_valorem_pct


def format_percentage(value: float) -> str:
    return "Free" if value == 0 else f"{value:.1f}%"

"""Duty rate resolution with inheritance across the code hierarchy."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional

from tariffnav.classification.models import ClassificationCandidate, DutyInfo, DutyRange
from tariffnav.hts.codes import normalize_code
from tariffnav.hts.rates import (
    duty_rate_as_float,
    format_percentage,
    is_blank_rate,
    normalize_rate_text,
    parse_duty_rate,
)
from tariffnav.hts.store import HierarchyStore

logger = logging.getLogger(__name__)

# Ancestors consulted for an empty rate, nearest first.
INHERITANCE_LENGTHS = (8, 6)


@dataclass(frozen=True)
class ResolvedDuty:
    code: str
    rate: str
    inherited_from: Optional[str] = None

    @property
    def percentage(self) -> Optional[float]:
        return duty_rate_as_float(parse_duty_rate(self.rate))

    def to_model(self) -> DutyInfo:
        return DutyInfo(
            code=self.code,
            base_rate=self.rate,
            inherited_from=self.inherited_from,
            percentage=self.percentage,
        )


def resolve_duty(store: HierarchyStore, code: str) -> ResolvedDuty:
    """Resolve the General rate for ``code``.

    A code without its own rate inherits from its 8-digit parent, then its
    6-digit parent.  If none of them publishes a rate the result is
    ``"Free"``: an absent rate means duty-free, never "not available".
    """

    digits = normalize_code(code)
    node = store.get_node(digits)
    if node is not None and not is_blank_rate(node.general_rate):
        return ResolvedDuty(code=digits, rate=normalize_rate_text(node.general_rate))

    for length in INHERITANCE_LENGTHS:
        if len(digits) <= length:
            continue
        ancestor = store.get_node(digits[:length])
        if ancestor is not None and not is_blank_rate(ancestor.general_rate):
            logger.debug("Rate for %s inherited from %s", digits, ancestor.code)
            return ResolvedDuty(
                code=digits,
                rate=normalize_rate_text(ancestor.general_rate),
                inherited_from=ancestor.code,
            )
    return ResolvedDuty(code=digits, rate="Free")


def duty_range(
    store: HierarchyStore,
    candidates: Iterable[ClassificationCandidate],
    limit: int = 10,
) -> Optional[DutyRange]:
    """Spread of ad valorem rates across the top ranked candidates.

    Present only when at least two candidates have a percentage and the
    spread is at least one percentage point.
    """

    rated: List[tuple] = []
    for candidate in list(candidates)[:limit]:
        pct = resolve_duty(store, candidate.hts_code).percentage
        if pct is not None:
            rated.append((pct, candidate.hts_code))
    if len(rated) < 2:
        return None
    low = min(rated)
    high = max(rated)
    if high[0] - low[0] < 1.0:
        return None
    return DutyRange(
        min_rate=low[0],
        max_rate=high[0],
        min_code=low[1],
        max_code=high[1],
        formatted=f"{format_percentage(low[0])} - {format_percentage(high[0])}",
    )

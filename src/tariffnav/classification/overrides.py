"""Function-over-material rules mandated by the General Rules of Interpretation.

This list is closed.  Material-specific logic belongs in
:mod:`tariffnav.classification.material_routes`, never here.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Tuple

from tariffnav.classification.models import ProductUnderstanding, Resolution

LEGAL_OVERRIDE = "legal_override"


def _names_any(product_type: str, terms: Tuple[str, ...]) -> bool:
    return any(re.search(rf"\b{re.escape(term)}s?\b", product_type) for term in terms)


@dataclass(frozen=True)
class HeadingRule:
    """Heading inside an override's chapter, picked by product-type terms."""

    heading: str
    terms: Tuple[str, ...]


@dataclass(frozen=True)
class LegalOverride:
    flag: str
    rule: str
    chapter: str
    heading: str
    reason: str
    # When set, the product type must also contain one of these terms.
    product_terms: Tuple[str, ...] = ()
    heading_rules: Tuple[HeadingRule, ...] = ()

    def applies(self, understanding: ProductUnderstanding) -> bool:
        if not getattr(understanding, self.flag, False):
            return False
        if not self.product_terms:
            return True
        return _names_any(understanding.product_type.value, self.product_terms)

    def heading_for(self, understanding: ProductUnderstanding) -> str:
        for rule in self.heading_rules:
            if _names_any(understanding.product_type.value, rule.terms):
                return rule.heading
        return self.heading


LEGAL_OVERRIDES: Tuple[LegalOverride, ...] = (
    LegalOverride(
        flag="is_for_carrying",
        rule="GRI 3(a) - Cases",
        chapter="42",
        heading="4202",
        reason="Cases and containers for carrying items classified under 4202 regardless of material",
    ),
    LegalOverride(
        flag="is_toy",
        rule="GRI 3(a) - Toys",
        chapter="95",
        heading="9503",
        reason="Toys designed for children classified under Chapter 95 regardless of material",
    ),
    LegalOverride(
        flag="is_jewelry",
        rule="GRI 3(a) - Jewelry",
        chapter="71",
        heading="7117",
        reason="Imitation jewelry classified under 7117 regardless of material",
    ),
    LegalOverride(
        flag="is_furniture",
        rule="GRI 3(a) - Furniture",
        chapter="94",
        heading="9403",
        reason="Furniture classified under Chapter 94 regardless of material",
        heading_rules=(
            HeadingRule("9401", ("chair", "seat", "stool", "sofa", "couch", "bench")),
        ),
    ),
    LegalOverride(
        flag="is_lighting",
        rule="Function - Lighting",
        chapter="85",
        heading="8539",
        reason="Electric lamps and lighting equipment classified under 8539",
    ),
    LegalOverride(
        flag="is_electronic",
        rule="Function - Cables",
        chapter="85",
        heading="8544",
        reason="Insulated wire and cables classified under 8544",
        product_terms=("cable", "cord"),
    ),
)


def check_legal_overrides(understanding: ProductUnderstanding) -> Optional[Resolution]:
    """Return the first override that applies, else None."""
    for override in LEGAL_OVERRIDES:
        if override.applies(understanding):
            return Resolution(
                source=LEGAL_OVERRIDE,
                rule=override.rule,
                chapter=override.chapter,
                heading=override.heading_for(understanding),
                reason=override.reason,
                material_used=False,
            )
    return None

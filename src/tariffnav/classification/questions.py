"""Clarifying questions for unresolved attributes that change the outcome."""

from __future__ import annotations

import re
from typing import Dict, Iterable, List, Optional

from tariffnav.classification.extractor import is_knitted_garment
from tariffnav.classification.models import (
    DecisionOption,
    DecisionPoint,
    ProductUnderstanding,
    Resolution,
)

_IMPACT_ORDER = {"high": 3, "medium": 2, "low": 1}

# Attribute keys that ask about the same concept collapse to one question.
SEMANTIC_GROUPS = (
    ("use", ("use", "intended_use", "purpose", "application")),
)

MATERIAL_OPTIONS = (
    ("plastic", "Plastic", "Chapter 39"),
    ("ceramic", "Ceramic", "Chapter 69"),
    ("glass", "Glass", "Chapter 70"),
    ("steel", "Steel / iron", "Chapter 73"),
    ("aluminum", "Aluminum", "Chapter 76"),
    ("wood", "Wood", "Chapter 44"),
    ("rubber", "Rubber", "Chapter 40"),
)

_KNIT_FIBER_IMPACTS = {"cotton": "6109.10", "synthetic": "6109.90", "wool": "6109.90", "other": "6109.90"}
_WOVEN_FIBER_IMPACTS = {"cotton": "6205.20", "synthetic": "6205.30", "wool": "6205.90", "other": "6205.90"}
_BLANKET_FIBER_IMPACTS = {"cotton": "6301.30", "synthetic": "6301.40", "wool": "6301.20", "other": "6301.90"}
_FIBER_LABELS = {
    "cotton": "Cotton",
    "synthetic": "Synthetic (polyester, nylon)",
    "wool": "Wool",
    "other": "Other fiber",
}

USE_OPTIONS = (
    ("household", "Household / personal use"),
    ("commercial", "Commercial (hotel, restaurant, retail)"),
    ("industrial", "Industrial"),
    ("agricultural", "Agricultural"),
)


def material_question(understanding: ProductUnderstanding) -> DecisionPoint:
    return DecisionPoint(
        id="q_material",
        attribute="material",
        question=f"What is the {understanding.product_type.value or 'product'} primarily made of?",
        options=[DecisionOption(value=v, label=l, hts_impact=i) for v, l, i in MATERIAL_OPTIONS],
        impact="high",
        current_value=understanding.material.value,
        current_source=understanding.material.source,
    )


def _fiber_impacts(understanding: ProductUnderstanding) -> Dict[str, str]:
    if re.search(r"\bblankets?\b|\bthrows?\b", understanding.product_type.value):
        return _BLANKET_FIBER_IMPACTS
    construction = understanding.construction.value if understanding.construction else None
    if construction == "woven":
        return _WOVEN_FIBER_IMPACTS
    if construction == "knit" or is_knitted_garment(understanding.product_type.value):
        return _KNIT_FIBER_IMPACTS
    return _WOVEN_FIBER_IMPACTS


def fiber_question(understanding: ProductUnderstanding) -> DecisionPoint:
    impacts = _fiber_impacts(understanding)
    return DecisionPoint(
        id="q_fiber",
        attribute="fiber",
        question="What is the main fiber content?",
        options=[
            DecisionOption(value=fiber, label=_FIBER_LABELS[fiber], hts_impact=impacts[fiber])
            for fiber in ("cotton", "synthetic", "wool", "other")
        ],
        impact="high",
    )


def construction_question() -> DecisionPoint:
    return DecisionPoint(
        id="q_construction",
        attribute="construction",
        question="Is the fabric knitted or woven?",
        options=[
            DecisionOption(value="knit", label="Knitted or crocheted", hts_impact="Chapter 61"),
            DecisionOption(value="woven", label="Woven", hts_impact="Chapter 62"),
        ],
        impact="high",
    )


def use_question(understanding: ProductUnderstanding) -> DecisionPoint:
    return DecisionPoint(
        id="q_use",
        attribute="use",
        question="Where will this product be used?",
        options=[DecisionOption(value=v, label=l) for v, l in USE_OPTIONS],
        impact="medium",
        current_value=understanding.use_context.value,
        current_source=understanding.use_context.source,
    )


def semantic_key(attribute: str) -> str:
    lowered = attribute.lower()
    for key, members in SEMANTIC_GROUPS:
        if any(member in lowered for member in members):
            return key
    return lowered


def deduplicate(questions: Iterable[DecisionPoint]) -> List[DecisionPoint]:
    """Keep the highest-impact question per semantic group, first wins on ties."""

    kept: Dict[str, DecisionPoint] = {}
    for question in questions:
        key = semantic_key(question.attribute)
        existing = kept.get(key)
        if existing is None or _IMPACT_ORDER[question.impact] > _IMPACT_ORDER[existing.impact]:
            kept[key] = question
    return list(kept.values())


def generate_questions(
    understanding: ProductUnderstanding,
    resolution: Optional[Resolution],
    oracle_unavailable: bool = False,
) -> List[DecisionPoint]:
    """Questions for attributes that are unresolved and would change the code."""

    questions: List[DecisionPoint] = []
    overridden = resolution is not None and resolution.source == "legal_override"
    textile = understanding.is_wearable or understanding.is_textile

    if not understanding.material_known and not overridden and not textile:
        questions.append(material_question(understanding))
    if textile and not overridden:
        if understanding.construction is None:
            questions.append(construction_question())
        if understanding.fiber is None:
            questions.append(fiber_question(understanding))
    if resolution is None and oracle_unavailable and understanding.use_context.source != "stated":
        questions.append(use_question(understanding))
    return deduplicate(questions)


def has_high_impact(questions: Iterable[DecisionPoint]) -> bool:
    return any(q.impact == "high" for q in questions)

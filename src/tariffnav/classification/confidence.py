"""Overall confidence and the stated/inferred/assumed disclosure."""

from __future__ import annotations

from typing import Dict, Optional, Tuple

from tariffnav.classification.models import (
    ASSUMED,
    INFERRED,
    STATED,
    ConfidenceLabel,
    ProductUnderstanding,
    Resolution,
    Transparency,
    TransparencyEntry,
)
from tariffnav.classification.overrides import LEGAL_OVERRIDES

BASE_CONFIDENCE = 0.5
IDENTIFICATION_WEIGHT = 0.2
STATED_SHARE_WEIGHT = 0.2
GAP_BONUS = 0.1
GAP_THRESHOLDS = (20.0, 40.0)
HIGH_IMPACT_PENALTY = 0.15
OVERRIDE_BONUS = 0.05
MAX_ROUTE_CONFIDENCE = 0.95

ATTRIBUTE_LABELS: Dict[str, str] = {
    "material": "Material",
    "product_type": "Product type",
    "use_context": "Use context",
    "construction": "Construction",
    "gender": "Gender / age group",
    "fiber": "Fiber content",
    "is_for_carrying": "Carrying case or container",
    "is_toy": "Toy",
    "is_jewelry": "Imitation jewelry",
    "is_wearable": "Wearable apparel",
    "is_lighting": "Lighting product",
    "is_textile": "Textile article",
    "is_electronic": "Electronic product",
    "is_furniture": "Furniture",
}


def confidence_label(value: float) -> ConfidenceLabel:
    if value >= 0.8:
        return "high"
    if value >= 0.6:
        return "medium"
    return "low"


def route_confidence(resolution: Optional[Resolution], navigation_confidence: float) -> float:
    """Identification confidence for the chosen route.

    Oracle routes average the oracle's chapter and heading confidence with
    the navigator's.  Static routes use the navigator's confidence, with a
    small bonus when a legal override fixed the heading.
    """

    if resolution is None:
        return navigation_confidence
    if resolution.chapter_confidence is not None and resolution.heading_confidence is not None:
        return (resolution.chapter_confidence + resolution.heading_confidence + navigation_confidence) / 3
    if resolution.source == "legal_override":
        return min(MAX_ROUTE_CONFIDENCE, navigation_confidence + OVERRIDE_BONUS)
    return navigation_confidence


def identification_confidence(
    understanding: ProductUnderstanding,
    resolution: Optional[Resolution],
    navigation_confidence: float,
) -> float:
    """Blend how well the product was understood with how well it was routed."""

    return (understanding.confidence + route_confidence(resolution, navigation_confidence)) / 2


def overall_confidence(
    identification: float,
    understanding: ProductUnderstanding,
    score_gap: Optional[float],
    high_impact_unresolved: bool,
) -> Tuple[float, ConfidenceLabel]:
    attributes = understanding.attributes()
    stated = sum(1 for attr in attributes.values() if attr.source == STATED)

    value = BASE_CONFIDENCE
    value += identification * IDENTIFICATION_WEIGHT
    value += (stated / len(attributes)) * STATED_SHARE_WEIGHT if attributes else 0.0
    if score_gap is not None:
        for threshold in GAP_THRESHOLDS:
            if score_gap > threshold:
                value += GAP_BONUS
    if high_impact_unresolved:
        value -= HIGH_IMPACT_PENALTY
    value = round(max(0.0, min(1.0, value)), 4)
    return value, confidence_label(value)


def build_transparency(
    understanding: ProductUnderstanding,
    resolution: Optional[Resolution] = None,
) -> Transparency:
    """Place every attribute that influenced the result in exactly one bucket."""

    buckets: Dict[str, list] = {STATED: [], INFERRED: [], ASSUMED: []}
    override_flag = next(
        (o.flag for o in LEGAL_OVERRIDES if resolution is not None and o.rule == resolution.rule),
        None,
    )
    for name, attr in understanding.attributes().items():
        note = None
        if name == "material" and resolution is not None and not resolution.material_used:
            note = "not used for chapter selection"
        elif attr.source == ASSUMED:
            note = "assumed so classification can proceed"
        buckets[attr.source].append(
            TransparencyEntry(attribute=name, label=ATTRIBUTE_LABELS.get(name, name), value=attr.value, note=note)
        )

    for flag, enabled in understanding.function_flags().items():
        if not enabled:
            continue
        note = resolution.rule if flag == override_flag and resolution is not None else None
        buckets[INFERRED].append(
            TransparencyEntry(attribute=flag, label=ATTRIBUTE_LABELS.get(flag, flag), value="yes", note=note)
        )

    return Transparency(stated=buckets[STATED], inferred=buckets[INFERRED], assumed=buckets[ASSUMED])

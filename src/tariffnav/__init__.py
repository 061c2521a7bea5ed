"""tariffnav: HTS classification with duty and confidence reporting."""

from __future__ import annotations

from functools import lru_cache
from typing import Mapping, Optional

from tariffnav.classification.engine import ClassificationEngine, build_engine
from tariffnav.classification.models import ClassificationResult

__version__ = "0.1.0"


@lru_cache(maxsize=1)
def get_engine() -> ClassificationEngine:
    """Process-wide engine built from the environment."""
    return build_engine()


def classify(
    description: str,
    hints: Optional[Mapping[str, object]] = None,
    answers: Optional[Mapping[str, object]] = None,
) -> ClassificationResult:
    return get_engine().classify(description, hints, answers)


__all__ = ["ClassificationEngine", "ClassificationResult", "build_engine", "classify", "get_engine"]

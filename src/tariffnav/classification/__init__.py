"""Product classification pipeline."""

from tariffnav.classification.engine import ClassificationEngine, build_engine
from tariffnav.classification.models import ClassificationResult, DecisionPoint

__all__ = ["ClassificationEngine", "ClassificationResult", "DecisionPoint", "build_engine"]

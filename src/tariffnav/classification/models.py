"""Data model for a classification request.

Internal working objects (understanding, candidates, tree paths) are plain
dataclasses recomputed per request.  The objects handed back to callers are
pydantic models serialized with camelCase aliases.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Source = Literal["stated", "inferred", "assumed"]
Impact = Literal["high", "medium", "low"]
ConfidenceLabel = Literal["high", "medium", "low"]
UseContext = Literal["household", "commercial", "industrial", "agricultural"]

STATED = "stated"
INFERRED = "inferred"
ASSUMED = "assumed"
UNKNOWN_MATERIAL = "unknown"


# ---------------------------------------------------------------------------
# Product understanding
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AttributeValue:
    """An attribute value tagged with where it came from."""

    value: str
    source: str  # stated | inferred | assumed


@dataclass
class ProductUnderstanding:
    """Structured reading of one product description."""

    description: str
    product_type: AttributeValue
    material: AttributeValue
    use_context: AttributeValue
    keywords: List[str] = field(default_factory=list)
    construction: Optional[AttributeValue] = None
    gender: Optional[AttributeValue] = None
    fiber: Optional[AttributeValue] = None
    is_for_carrying: bool = False
    is_toy: bool = False
    is_jewelry: bool = False
    is_wearable: bool = False
    is_lighting: bool = False
    is_textile: bool = False
    is_electronic: bool = False
    is_furniture: bool = False
    confidence: float = 0.5

    @property
    def material_known(self) -> bool:
        return self.material.value != UNKNOWN_MATERIAL

    @property
    def is_household(self) -> bool:
        return self.use_context.value == "household"

    def attributes(self) -> Dict[str, AttributeValue]:
        """Every attribute that feeds routing or scoring, in a stable order."""
        attrs: Dict[str, AttributeValue] = {
            "material": self.material,
            "product_type": self.product_type,
            "use_context": self.use_context,
        }
        for name in ("construction", "gender", "fiber"):
            value = getattr(self, name)
            if value is not None:
                attrs[name] = value
        return attrs

    def function_flags(self) -> Dict[str, bool]:
        return {
            "is_for_carrying": self.is_for_carrying,
            "is_toy": self.is_toy,
            "is_jewelry": self.is_jewelry,
            "is_wearable": self.is_wearable,
            "is_lighting": self.is_lighting,
            "is_textile": self.is_textile,
            "is_electronic": self.is_electronic,
            "is_furniture": self.is_furniture,
        }


# ---------------------------------------------------------------------------
# Chapter/heading resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Resolution:
    """Chapter and heading chosen by one resolver in the chain."""

    source: str                  # legal_override | material_route | oracle
    rule: str
    chapter: str
    heading: str
    reason: str
    material_used: bool
    avoid_chapters: Tuple[str, ...] = ()
    chapter_confidence: Optional[float] = None
    heading_confidence: Optional[float] = None


# ---------------------------------------------------------------------------
# Navigation and candidates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class NavigationStep:
    level: str
    code: str
    description: str
    confidence: float
    reasoning: str = ""


@dataclass
class TreePath:
    steps: List[NavigationStep]
    final_code: str
    confidence: float
    complete: bool = True


@dataclass
class ClassificationCandidate:
    hts_code: str
    description: str
    level: str
    general_rate: Optional[str]
    match_score: float = 0.0
    match_reasons: List[str] = field(default_factory=list)
    uncertainties: List[str] = field(default_factory=list)


@dataclass
class CandidateRanking:
    """Ordered output of the candidate scorer."""

    ranked: List[ClassificationCandidate]
    success: bool
    message: str = ""

    @property
    def best_match(self) -> Optional[ClassificationCandidate]:
        return self.ranked[0] if self.ranked else None

    @property
    def alternatives(self) -> List[ClassificationCandidate]:
        return self.ranked[1:6]

    def score_gap(self) -> Optional[float]:
        if len(self.ranked) < 2:
            return None
        return self.ranked[0].match_score - self.ranked[1].match_score


# ---------------------------------------------------------------------------
# Caller-facing models
# ---------------------------------------------------------------------------

class _ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
    )


class DecisionOption(_ApiModel):
    value: str
    label: str
    hts_impact: Optional[str] = None


class DecisionPoint(_ApiModel):
    """A clarifying question for an unresolved, outcome-changing attribute."""

    id: str
    attribute: str
    question: str
    options: List[DecisionOption] = Field(default_factory=list)
    impact: Impact
    current_value: Optional[str] = None
    current_source: Optional[Source] = None


class HierarchyLevel(_ApiModel):
    level: str
    code: str
    code_formatted: str
    description: str
    duty_rate: Optional[str] = None


class Hierarchy(_ApiModel):
    levels: List[HierarchyLevel]
    breadcrumb: str
    full_description: str


class TransparencyEntry(_ApiModel):
    attribute: str
    label: str
    value: str
    note: Optional[str] = None


class Transparency(_ApiModel):
    stated: List[TransparencyEntry] = Field(default_factory=list)
    inferred: List[TransparencyEntry] = Field(default_factory=list)
    assumed: List[TransparencyEntry] = Field(default_factory=list)

    def bucket_of(self, attribute: str) -> Optional[str]:
        for bucket in ("stated", "inferred", "assumed"):
            if any(entry.attribute == attribute for entry in getattr(self, bucket)):
                return bucket
        return None


class DutyInfo(_ApiModel):
    code: str
    base_rate: str
    inherited_from: Optional[str] = None
    percentage: Optional[float] = None


class DutyRange(_ApiModel):
    min_rate: float
    max_rate: float
    min_code: str
    max_code: str
    formatted: str


class Alternative(_ApiModel):
    hts_code: str
    hts_code_formatted: str
    description: str
    level: str
    general_rate: Optional[str] = None
    match_score: float
    match_reasons: List[str] = Field(default_factory=list)
    uncertainties: List[str] = Field(default_factory=list)


class NavigationStepModel(_ApiModel):
    level: str
    code: str
    code_formatted: str
    description: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str = ""


class TreePathModel(_ApiModel):
    steps: List[NavigationStepModel]
    final_code: str
    confidence: float = Field(ge=0.0, le=1.0)
    complete: bool


class ClassificationResult(_ApiModel):
    """Terminal object returned to the caller.

    Either ``needs_input`` with ``questions``, or a full classification.
    """

    needs_input: bool
    questions: List[DecisionPoint] = Field(default_factory=list)
    hts_code: Optional[str] = None
    hts_code_formatted: Optional[str] = None
    description: Optional[str] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    confidence_label: Optional[ConfidenceLabel] = None
    hierarchy: Optional[Hierarchy] = None
    alternatives: List[Alternative] = Field(default_factory=list)
    transparency: Optional[Transparency] = None
    duty: Optional[DutyInfo] = None
    duty_range: Optional[DutyRange] = None
    route_applied: Optional[str] = None
    tree_path: Optional[TreePathModel] = None
    message: Optional[str] = None
    processing_time_ms: int = 0

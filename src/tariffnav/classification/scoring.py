"""Candidate scoring.

A candidate's score is the sum of the adjustments produced by an ordered
list of named rules.  Each rule is a plain function of (node, context,
weights) so it can be tested with a single fixture node.  Scores are
heuristic units, not probabilities.

Weights are configuration (:class:`ScoringWeights`); loading validates their
relative ordering so that explicit exclusions always dominate softer signals.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, List, Mapping, Optional, Sequence, Tuple

from tariffnav.classification.extractor import core_product_term, material_terms
from tariffnav.classification.models import (
    CandidateRanking,
    ClassificationCandidate,
    ProductUnderstanding,
)
from tariffnav.errors import ConfigurationError
from tariffnav.hts.codes import (
    CHAPTER,
    HEADING,
    STATISTICAL,
    SUBHEADING,
    TARIFF_LINE,
    level_depth,
)
from tariffnav.hts.store import HtsNode, text_matches, tokenize

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Weights
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoringWeights:
    exact_term: float = 80.0
    partial_term_base: float = 30.0
    partial_term_per_overlap: float = 5.0
    raw_material: float = -30.0
    avoided_chapter: float = -150.0
    household_exclusion: float = -200.0
    household_term: float = 50.0
    domestic_term: float = 40.0
    hotel_restaurant: float = -100.0
    industrial_use: float = -80.0
    material_term: float = 25.0
    construction_match: float = 20.0
    construction_mismatch: float = -30.0
    gender_match: float = 10.0
    adult_vs_children: float = -50.0
    suggested_chapter: float = 40.0
    outside_suggested_chapter: float = -25.0
    level_statistical: float = 50.0
    level_tariff_line: float = 35.0
    level_subheading: float = 15.0
    level_heading: float = -20.0
    level_chapter: float = -50.0
    special_program: float = -100.0

    def level_bonus(self, level: str) -> float:
        return {
            STATISTICAL: self.level_statistical,
            TARIFF_LINE: self.level_tariff_line,
            SUBHEADING: self.level_subheading,
            HEADING: self.level_heading,
            CHAPTER: self.level_chapter,
        }.get(level, 0.0)

    def validate(self) -> "ScoringWeights":
        """Check signs and the exclusion > wrong category > generic ordering."""

        penalties = {
            "raw_material": self.raw_material,
            "avoided_chapter": self.avoided_chapter,
            "household_exclusion": self.household_exclusion,
            "hotel_restaurant": self.hotel_restaurant,
            "industrial_use": self.industrial_use,
            "construction_mismatch": self.construction_mismatch,
            "adult_vs_children": self.adult_vs_children,
            "outside_suggested_chapter": self.outside_suggested_chapter,
            "special_program": self.special_program,
        }
        positive = [name for name, value in penalties.items() if value > 0]
        if positive:
            raise ConfigurationError(f"Penalty weights must not be positive: {', '.join(positive)}")

        generic = max(
            abs(self.raw_material),
            abs(self.construction_mismatch),
            abs(self.adult_vs_children),
            abs(self.outside_suggested_chapter),
        )
        ordering = [
            ("household_exclusion", abs(self.household_exclusion), "avoided_chapter", abs(self.avoided_chapter), False),
            ("avoided_chapter", abs(self.avoided_chapter), "hotel_restaurant", abs(self.hotel_restaurant), False),
            ("hotel_restaurant", abs(self.hotel_restaurant), "industrial_use", abs(self.industrial_use), True),
            ("industrial_use", abs(self.industrial_use), "generic mismatch penalties", generic, False),
        ]
        for stronger, s_value, weaker, w_value, allow_equal in ordering:
            ok = s_value >= w_value if allow_equal else s_value > w_value
            if not ok:
                raise ConfigurationError(
                    f"Scoring weight ordering violated: {stronger} ({s_value}) must outweigh {weaker} ({w_value})"
                )
        return self


def load_weights(path: Optional[Path] = None, overrides: Optional[Mapping[str, float]] = None) -> ScoringWeights:
    """Defaults, then a JSON file, then explicit overrides; always validated."""

    values = {}
    if path is not None:
        try:
            values.update(json.loads(Path(path).read_text(encoding="utf-8")))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read scoring weights from {path}: {exc}") from exc
    values.update(overrides or {})

    known = {f.name for f in fields(ScoringWeights)}
    unknown = sorted(set(values) - known)
    if unknown:
        raise ConfigurationError(f"Unknown scoring weights: {', '.join(unknown)}")
    try:
        weights = replace(ScoringWeights(), **{k: float(v) for k, v in values.items()})
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Scoring weights must be numbers: {exc}") from exc
    weights.validate()
    if values:
        logger.info("Loaded %d scoring weight overrides", len(values))
    return weights


# ---------------------------------------------------------------------------
# Context and rules
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ScoringContext:
    """Everything the rules may read about the product."""

    understanding: ProductUnderstanding
    core_term: str
    product_tokens: FrozenSet[str]
    suggested_chapters: FrozenSet[str] = frozenset()
    avoid_chapters: FrozenSet[str] = frozenset()

    @classmethod
    def build(
        cls,
        understanding: ProductUnderstanding,
        suggested_chapters: Iterable[str] = (),
        avoid_chapters: Iterable[str] = (),
    ) -> "ScoringContext":
        core = core_product_term(understanding.product_type.value)
        tokens = set(tokenize(understanding.product_type.value))
        tokens.update(tokenize(" ".join(understanding.keywords)))
        return cls(
            understanding=understanding,
            core_term=core,
            product_tokens=frozenset(tokens),
            suggested_chapters=frozenset(suggested_chapters),
            avoid_chapters=frozenset(avoid_chapters),
        )


@dataclass(frozen=True)
class Adjustment:
    delta: float
    reason: str
    uncertain: bool = False


Rule = Callable[[HtsNode, ScoringContext, ScoringWeights], Optional[Adjustment]]

_RAW_MATERIAL_RE = re.compile(r"\b(?:raw|scrap|unprocessed|waste|not carded)\b")
_HOUSEHOLD_EXCLUSION_RE = re.compile(r"\b(?:not|other than)\s+household\b")
_HOTEL_RE = re.compile(r"\b(?:hotel|restaurant)s?\b")
_INDUSTRIAL_RE = re.compile(r"\b(?:industrial|commercial|machinery|agricultural)\b")
_DOMESTIC_RE = re.compile(r"\b(?:domestic|tableware|kitchenware)\b")
_NOT_KNIT_RE = re.compile(r"\bnot\s+knitted\b")
_KNIT_RE = re.compile(r"\bknitted\b|\bcrocheted\b")
_CHILDREN_RE = re.compile(r"\b(?:bab(?:y|ies)|infants?|toddlers?|child(?:ren)?|girls?|boys?)(?:'|'s)?")
_ADULT_RE = re.compile(r"\b(?:men|women)(?:'|'s)?")
_SPECIAL_PROGRAM_RE = re.compile(r"\b(?:subject to|classifiable in|provisions of)\b")

_GENDER_TERMS = {
    "men": re.compile(r"\bmen(?:'|'s)?"),
    "women": re.compile(r"\bwomen(?:'|'s)?"),
    "boys": re.compile(r"\bboys?(?:'|'s)?"),
    "girls": re.compile(r"\bgirls?(?:'|'s)?"),
    "infant": re.compile(r"\b(?:bab(?:y|ies)|infants?)\b"),
}


def _text(node: HtsNode) -> str:
    return node.description.lower()


def excludes_household(description: str) -> bool:
    """True for descriptions such as "Other ware, not household ware"."""
    return bool(_HOUSEHOLD_EXCLUSION_RE.search(description.lower()))


def term_match(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    if ctx.core_term and text_matches(ctx.core_term, node.description):
        return Adjustment(w.exact_term, f"Exact match: '{ctx.core_term}'")
    overlap = ctx.product_tokens & set(tokenize(node.description))
    if overlap:
        return Adjustment(
            w.partial_term_base + w.partial_term_per_overlap * len(overlap),
            f"Partial match: {', '.join(sorted(overlap))}",
        )
    return None


def raw_material(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    if not _RAW_MATERIAL_RE.search(_text(node)):
        return None
    if ctx.core_term and text_matches(ctx.core_term, node.description):
        return None
    return Adjustment(w.raw_material, "Raw material code for a finished good", uncertain=True)


def avoided_chapter(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    if node.chapter in ctx.avoid_chapters:
        return Adjustment(w.avoided_chapter, f"Chapter {node.chapter} flagged as the wrong category")
    return None


def household_exclusion(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    if ctx.understanding.is_household and _HOUSEHOLD_EXCLUSION_RE.search(_text(node)):
        return Adjustment(w.household_exclusion, "Code excludes household articles")
    return None


def household_vocabulary(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    text = _text(node)
    if not ctx.understanding.is_household or _HOUSEHOLD_EXCLUSION_RE.search(text):
        return None
    if re.search(r"\bhousehold\b", text):
        return Adjustment(w.household_term, "Household use matches")
    if _DOMESTIC_RE.search(text):
        return Adjustment(w.domestic_term, "Domestic/tableware use matches")
    return None


def commercial_use(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    if not ctx.understanding.is_household:
        return None
    text = _text(node)
    if _HOTEL_RE.search(text):
        return Adjustment(w.hotel_restaurant, "Hotel/restaurant code for a household product")
    if _INDUSTRIAL_RE.search(text):
        return Adjustment(w.industrial_use, "Industrial/commercial code for a household product")
    return None


def material_match(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    if not ctx.understanding.material_known:
        return None
    text = _text(node)
    for term in material_terms(ctx.understanding.material.value):
        if re.search(rf"\b{re.escape(term)}", text):
            return Adjustment(w.material_term, f"Material '{term}' in description")
    return None


def construction(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    attr = ctx.understanding.construction
    if attr is None:
        return None
    text = _text(node)
    says_not_knit = bool(_NOT_KNIT_RE.search(text))
    says_knit = bool(_KNIT_RE.search(text)) and not says_not_knit
    if not (says_knit or says_not_knit):
        return None
    is_knit = attr.value == "knit"
    if is_knit == says_knit:
        return Adjustment(w.construction_match, f"Construction ({attr.value}) matches")
    return Adjustment(w.construction_mismatch, f"Construction ({attr.value}) mismatch", uncertain=True)


def gender(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    attr = ctx.understanding.gender
    if attr is None or attr.value not in _GENDER_TERMS:
        return None
    if _GENDER_TERMS[attr.value].search(_text(node)):
        return Adjustment(w.gender_match, f"Gender ({attr.value}) matches")
    return None


def adult_vs_children(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    attr = ctx.understanding.gender
    if attr is not None and attr.value in ("infant", "children", "boys", "girls"):
        return None
    text = _text(node)
    if _CHILDREN_RE.search(text) and not _ADULT_RE.search(text):
        return Adjustment(w.adult_vs_children, "Code is scoped to infants or children", uncertain=True)
    return None


def suggested_chapter(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    if not ctx.suggested_chapters:
        return None
    if node.chapter in ctx.suggested_chapters:
        return Adjustment(w.suggested_chapter, f"Chapter {node.chapter} suggested")
    return Adjustment(w.outside_suggested_chapter, f"Chapter {node.chapter} not suggested")


def specificity(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    delta = w.level_bonus(node.level)
    return Adjustment(delta, f"Level: {node.level}") if delta else None


def special_program(node: HtsNode, ctx: ScoringContext, w: ScoringWeights) -> Optional[Adjustment]:
    if node.chapter in ("98", "99") or _SPECIAL_PROGRAM_RE.search(_text(node)):
        return Adjustment(w.special_program, "Special program or cross-reference code", uncertain=True)
    return None


@dataclass(frozen=True)
class ScoringRule:
    name: str
    apply: Rule


DEFAULT_RULES: Tuple[ScoringRule, ...] = (
    ScoringRule("term_match", term_match),
    ScoringRule("raw_material", raw_material),
    ScoringRule("avoided_chapter", avoided_chapter),
    ScoringRule("household_exclusion", household_exclusion),
    ScoringRule("household_vocabulary", household_vocabulary),
    ScoringRule("commercial_use", commercial_use),
    ScoringRule("material_match", material_match),
    ScoringRule("construction", construction),
    ScoringRule("gender", gender),
    ScoringRule("adult_vs_children", adult_vs_children),
    ScoringRule("suggested_chapter", suggested_chapter),
    ScoringRule("specificity", specificity),
    ScoringRule("special_program", special_program),
)


# ---------------------------------------------------------------------------
# Scoring and ranking
# ---------------------------------------------------------------------------

@dataclass
class CandidateScorer:
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    rules: Sequence[ScoringRule] = DEFAULT_RULES

    def score(self, node: HtsNode, ctx: ScoringContext) -> ClassificationCandidate:
        total = 0.0
        reasons: List[str] = []
        uncertainties: List[str] = []
        for rule in self.rules:
            adjustment = rule.apply(node, ctx, self.weights)
            if adjustment is None:
                continue
            total += adjustment.delta
            reasons.append(f"{adjustment.reason} ({adjustment.delta:+g})")
            if adjustment.uncertain:
                uncertainties.append(adjustment.reason)
        if not ctx.understanding.material_known:
            uncertainties.append("Material not confirmed")
        return ClassificationCandidate(
            hts_code=node.code,
            description=node.description,
            level=node.level,
            general_rate=node.general_rate,
            match_score=total,
            match_reasons=reasons,
            uncertainties=uncertainties,
        )

    def rank(self, nodes: Iterable[HtsNode], ctx: ScoringContext) -> CandidateRanking:
        scored = [self.score(node, ctx) for node in nodes]
        household = ctx.understanding.is_household
        # A household product never ranks a "not household" code first while
        # any code without that phrase is available.
        scored.sort(
            key=lambda c: (
                household and excludes_household(c.description),
                -c.match_score,
                -level_depth(c.level),
                c.hts_code,
            )
        )
        if not scored:
            return CandidateRanking(
                ranked=[],
                success=False,
                message="No matching codes found; please provide a more detailed description",
            )
        return CandidateRanking(ranked=scored, success=True)


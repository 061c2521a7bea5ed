"""Tree navigation from a chapter or heading down to a terminal code.

At each level the navigator fetches the children of the current node and
picks one:

  1. a single child is taken outright
  2. carve-outs the product does not match are set aside (nursing nipples,
     sanitary ware, ...) as long as another child remains
  3. a child naming the product's material ("of ceramic", "cotton,") wins
     with local confidence 0.95
  4. otherwise the siblings are scored and the top one is taken, with a
     local confidence derived from its margin over the runner-up

Path confidence is the mean of the step confidences.
"""

from __future__ import annotations

import logging
import re
from statistics import mean
from typing import List, Optional, Sequence, Tuple

from tariffnav.classification.extractor import material_terms
from tariffnav.classification.models import NavigationStep, ProductUnderstanding, TreePath
from tariffnav.classification.scoring import (
    CandidateScorer,
    ScoringContext,
    avoided_chapter,
    household_exclusion,
)
from tariffnav.hts.codes import normalize_code
from tariffnav.hts.store import HierarchyStore, HtsNode

logger = logging.getLogger(__name__)

MATERIAL_MATCH_CONFIDENCE = 0.95
SINGLE_CHILD_CONFIDENCE = 0.95
DEAD_END_CONFIDENCE = 0.5
MIN_STEP_CONFIDENCE = 0.5
MAX_STEP_CONFIDENCE = 0.95
MARGIN_SCALE = 0.005

KNOWN_CARVE_OUTS = tuple(
    re.compile(pattern)
    for pattern in (
        r"nursing nipples", r"finger cots", r"baby bottles", r"ice bags",
        r"toilets?\b", r"bidets?", r"lavator", r"medical", r"surgical",
        r"hypodermic", r"syringes", r"catheters", r"sanitary ware",
        r"\bsinks\b", r"wash basins", r"toilet bowls", r"precious metal",
        r"gold-plated", r"silver-plated", r"cooking appliances",
        r"central heating", r"radiators", r"x-ray", r"video games",
        r"slot machines", r"coin-operated",
    )
)

_NEGATED_PREFIXES = ("other than ", "not ", "except ")


def is_other_catch_all(description: str) -> bool:
    desc = description.lower().strip()
    if desc in ("other", "other:"):
        return True
    if desc.startswith(("other ", "other,", "other:")):
        return True
    return desc.endswith((", other", ": other")) or "nesoi" in desc


def carve_out_pattern(description: str) -> Optional["re.Pattern[str]"]:
    desc = description.lower().strip()
    # A qualified "...: Other" keeps its qualifier; only a leading "Other" is general.
    if desc.startswith("other"):
        return None
    for pattern in KNOWN_CARVE_OUTS:
        if pattern.search(desc):
            return pattern
    return None


def product_matches_carve_out(understanding: ProductUnderstanding, description: str) -> bool:
    pattern = carve_out_pattern(description)
    if pattern is None:
        return True
    haystack = " ".join([understanding.product_type.value, understanding.description])
    return bool(pattern.search(haystack.lower()))


def margin_confidence(margin: float) -> float:
    """Map the top-vs-runner-up score margin to a local confidence."""
    return max(MIN_STEP_CONFIDENCE, min(MAX_STEP_CONFIDENCE, 0.5 + margin * MARGIN_SCALE))


def _mentions(description: str, term: str) -> bool:
    desc = description.lower()
    for pattern in (f"of {term}", f"{term},", f"{term} ", f": {term}"):
        start = desc.find(pattern)
        while start != -1:
            if not desc[:start].endswith(_NEGATED_PREFIXES):
                return True
            start = desc.find(pattern, start + 1)
    return desc.strip(" :") == term


class TreeNavigator:
    def __init__(self, store: HierarchyStore, scorer: Optional[CandidateScorer] = None) -> None:
        self._store = store
        self._scorer = scorer or CandidateScorer()

    def _children(self, node: HtsNode) -> List[HtsNode]:
        # Only strict descendants keep the path a prefix chain.
        return [
            child for child in self._store.get_children(node.code)
            if child.code.startswith(node.code) and len(child.code) > len(node.code)
        ]

    def _material_match(
        self,
        children: Sequence[HtsNode],
        ctx: ScoringContext,
    ) -> Optional[Tuple[HtsNode, str]]:
        understanding = ctx.understanding
        if not understanding.material_known:
            return None
        weights = self._scorer.weights
        usable = [
            child for child in children
            if not is_other_catch_all(child.description)
            and not household_exclusion(child, ctx, weights)
            and not avoided_chapter(child, ctx, weights)
        ]
        # Synonyms are ordered most specific first; the first one that hits wins.
        for term in material_terms(understanding.material.value):
            hits = [child for child in usable if _mentions(child.description, term)]
            if not hits:
                continue
            if len(hits) == 1:
                chosen = hits[0]
            else:
                top = self._scorer.rank(hits, ctx).ranked[0]
                chosen = next(c for c in hits if c.code == top.hts_code)
            return chosen, f"Material '{understanding.material.value}' matches \"{chosen.description}\""
        return None

    def select_child(
        self,
        children: Sequence[HtsNode],
        ctx: ScoringContext,
    ) -> Tuple[HtsNode, float, str]:
        if len(children) == 1:
            return children[0], SINGLE_CHILD_CONFIDENCE, "Only option at this level"

        eligible = [c for c in children if product_matches_carve_out(ctx.understanding, c.description)]
        if not eligible:
            eligible = list(children)

        matched = self._material_match(eligible, ctx)
        if matched is not None:
            return matched[0], MATERIAL_MATCH_CONFIDENCE, matched[1]

        ranking = self._scorer.rank(eligible, ctx)
        top = ranking.ranked[0]
        margin = ranking.score_gap() or 0.0
        chosen = next(c for c in eligible if c.code == top.hts_code)
        if margin <= 0:
            tied = {c.hts_code for c in ranking.ranked if c.match_score == top.match_score}
            for child in eligible:
                if child.code in tied and is_other_catch_all(child.description):
                    return child, MIN_STEP_CONFIDENCE, 'No specific match; classified under "Other" catch-all'
        reasons = "; ".join(top.match_reasons[:3]) or "highest score"
        return chosen, margin_confidence(margin), f"Best scoring option ({reasons})"

    def navigate(self, start_code: str, ctx: ScoringContext) -> TreePath:
        start = self._store.get_node(normalize_code(start_code))
        if start is None:
            logger.warning("Navigation start %s is not in the hierarchy", start_code)
            return TreePath(steps=[], final_code=normalize_code(start_code), confidence=0.0, complete=False)

        children = self._children(start)
        if not children:
            step = NavigationStep(
                level=start.level,
                code=start.code,
                description=start.description,
                confidence=DEAD_END_CONFIDENCE,
                reasoning="No children below the starting code",
            )
            return TreePath(steps=[step], final_code=start.code, confidence=DEAD_END_CONFIDENCE, complete=False)

        steps: List[NavigationStep] = []
        current = start
        while children:
            child, confidence, reasoning = self.select_child(children, ctx)
            steps.append(
                NavigationStep(
                    level=child.level,
                    code=child.code,
                    description=child.description,
                    confidence=round(confidence, 4),
                    reasoning=reasoning,
                )
            )
            current = child
            children = self._children(current)

        path_confidence = round(mean(step.confidence for step in steps), 4)
        logger.debug("Navigated %s -> %s in %d steps", start.code, current.code, len(steps))
        return TreePath(steps=steps, final_code=current.code, confidence=path_confidence, complete=True)

"""Classification engine: wires the pipeline together.

extract -> resolve chapter/heading (override, material route, oracle)
-> navigate the tree -> gather and rank candidates -> duty -> confidence.

Each call is independent; the engine holds only read-only collaborators.
"""

from __future__ import annotations

import logging
import time
from typing import List, Mapping, Optional

from tariffnav.caching.memory import ChapterCache, TTLCache
from tariffnav.classification.candidates import CandidateGatherer, plan_strategies
from tariffnav.classification.confidence import (
    build_transparency,
    identification_confidence,
    overall_confidence,
)
from tariffnav.classification.duty import duty_range, resolve_duty
from tariffnav.classification.extractor import apply_answers, extract_understanding
from tariffnav.classification.hierarchy import build_hierarchy
from tariffnav.classification.material_routes import MaterialRouteTable
from tariffnav.classification.models import (
    Alternative,
    CandidateRanking,
    ClassificationCandidate,
    ClassificationResult,
    NavigationStepModel,
    ProductUnderstanding,
    Resolution,
    TreePath,
    TreePathModel,
)
from tariffnav.classification.navigator import TreeNavigator
from tariffnav.classification.oracle import ClassificationOracle, HttpClassificationOracle
from tariffnav.classification.questions import (
    generate_questions,
    has_high_impact,
    material_question,
)
from tariffnav.classification.resolvers import ResolverChain, default_chain
from tariffnav.classification.scoring import (
    CandidateScorer,
    ScoringContext,
    excludes_household,
    load_weights,
)
from tariffnav.config import Settings, load_settings
from tariffnav.errors import ClassificationFailure
from tariffnav.hts.chapters import ChapterCatalog
from tariffnav.hts.codes import format_code
from tariffnav.hts.store import HierarchyStore, InMemoryHierarchyStore
from tariffnav.observability import log_event, timed_event

logger = logging.getLogger(__name__)

def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


def _alternative(candidate: ClassificationCandidate) -> Alternative:
    return Alternative(
        hts_code=candidate.hts_code,
        hts_code_formatted=format_code(candidate.hts_code),
        description=candidate.description,
        level=candidate.level,
        general_rate=candidate.general_rate or None,
        match_score=candidate.match_score,
        match_reasons=list(candidate.match_reasons),
        uncertainties=list(candidate.uncertainties),
    )


def _tree_path_model(path: TreePath) -> TreePathModel:
    return TreePathModel(
        steps=[
            NavigationStepModel(
                level=step.level,
                code=step.code,
                code_formatted=format_code(step.code),
                description=step.description,
                confidence=step.confidence,
                reasoning=step.reasoning,
            )
            for step in path.steps
        ],
        final_code=path.final_code,
        confidence=path.confidence,
        complete=path.complete,
    )


class ClassificationEngine:
    """Single entry point: ``classify(description, hints, answers)``."""

    def __init__(
        self,
        store: HierarchyStore,
        routes: MaterialRouteTable,
        *,
        oracle: Optional[ClassificationOracle] = None,
        scorer: Optional[CandidateScorer] = None,
        cache: Optional[ChapterCache] = None,
        search_workers: int = 3,
        chain: Optional[ResolverChain] = None,
    ) -> None:
        self.store = store
        self.routes = routes
        self.scorer = scorer or CandidateScorer()
        self.catalog = ChapterCatalog(store, cache)
        self.chain = chain or default_chain(routes, store, oracle, self.catalog)
        self.navigator = TreeNavigator(store, self.scorer)
        self.gatherer = CandidateGatherer(store, workers=search_workers)

    # -- pipeline steps -----------------------------------------------------

    def _start_code(self, resolution: Resolution) -> Optional[str]:
        for code in (resolution.heading, resolution.chapter):
            if code and self.store.get_node(code) is not None:
                return code
        return None

    def _pick_primary(
        self,
        path: TreePath,
        ranking: CandidateRanking,
        start_code: str,
        understanding: ProductUnderstanding,
    ) -> ClassificationCandidate:
        by_code = {c.hts_code: c for c in ranking.ranked}
        primary = by_code[path.final_code]
        best = ranking.best_match
        if not path.complete and best is not None:
            if best.hts_code.startswith(start_code) and len(best.hts_code) > len(primary.hts_code):
                primary = best
        if understanding.is_household and excludes_household(primary.description):
            primary = next(
                (c for c in ranking.ranked if not excludes_household(c.description)),
                primary,
            )
        return primary

    def _needs_input(
        self,
        understanding: ProductUnderstanding,
        questions: List,
        message: str,
        started: float,
    ) -> ClassificationResult:
        if not questions:
            questions = [material_question(understanding)]
        log_event(
            "classification.needs_input",
            questions=[q.attribute for q in questions],
            reason=message,
        )
        return ClassificationResult(
            needs_input=True,
            questions=questions,
            transparency=build_transparency(understanding),
            message=message,
            processing_time_ms=_elapsed_ms(started),
        )

    # -- entry point --------------------------------------------------------

    def classify(
        self,
        description: str,
        hints: Optional[Mapping[str, object]] = None,
        answers: Optional[Mapping[str, object]] = None,
    ) -> ClassificationResult:
        """Classify a product description.

        ``answers`` to earlier questions are merged into ``hints`` and marked
        stated.  Raises :class:`ClassificationFailure` only for validation
        errors; every resolution gap comes back as ``needs_input``.
        """

        started = time.perf_counter()
        if not str(description or "").strip():
            raise ClassificationFailure("A product description is required", detail={"field": "description"})

        stated = apply_answers(hints, answers)
        understanding = extract_understanding(description, stated)
        log_event(
            "classification.started",
            product_type=understanding.product_type.value,
            material=understanding.material.value,
            material_source=understanding.material.source,
            answered=sorted((answers or {}).keys()),
        )

        with timed_event("classification.resolve", product_type=understanding.product_type.value) as event:
            outcome = self.chain.resolve(understanding)
            event["attempted"] = outcome.attempted
            event["oracle_unavailable"] = outcome.oracle_unavailable
            if outcome.resolution is not None:
                event.update(
                    source=outcome.resolution.source,
                    rule=outcome.resolution.rule,
                    chapter=outcome.resolution.chapter,
                    heading=outcome.resolution.heading,
                )
        resolution = outcome.resolution
        questions = generate_questions(understanding, resolution, outcome.oracle_unavailable)

        start_code = self._start_code(resolution) if resolution is not None else None
        if resolution is None or start_code is None:
            if outcome.oracle_unavailable:
                message = "The classification service is unavailable; please answer the questions below"
            elif not understanding.material_known:
                message = "The product's material determines its chapter; please specify it"
            else:
                message = f"No classification route for material '{understanding.material.value}'"
            return self._needs_input(understanding, questions, message, started)

        suggested = {resolution.chapter}
        ctx = ScoringContext.build(
            understanding,
            suggested_chapters=suggested,
            avoid_chapters=set(resolution.avoid_chapters) - suggested,
        )
        path = self.navigator.navigate(start_code, ctx)

        pool, strategy = self.gatherer.gather(plan_strategies(understanding, ctx.core_term, suggested))
        final_node = self.store.get_node(path.final_code)
        if final_node is not None and all(node.code != final_node.code for node in pool):
            pool.append(final_node)
        ranking = self.scorer.rank(pool, ctx)
        logger.debug("Ranked %d candidates (strategy=%s)", len(ranking.ranked), strategy)

        primary = self._pick_primary(path, ranking, start_code, understanding)
        alternatives = [c for c in ranking.ranked if c.hts_code != primary.hts_code][:5]
        gap = primary.match_score - alternatives[0].match_score if alternatives else None

        duty = resolve_duty(self.store, primary.hts_code)
        identification = identification_confidence(understanding, resolution, path.confidence)
        confidence, label = overall_confidence(identification, understanding, gap, has_high_impact(questions))

        result = ClassificationResult(
            needs_input=False,
            questions=questions,
            hts_code=primary.hts_code,
            hts_code_formatted=format_code(primary.hts_code),
            description=primary.description,
            confidence=confidence,
            confidence_label=label,
            hierarchy=build_hierarchy(self.store, primary.hts_code),
            alternatives=[_alternative(c) for c in alternatives],
            transparency=build_transparency(understanding, resolution),
            duty=duty.to_model(),
            duty_range=duty_range(self.store, ranking.ranked),
            route_applied=f"{resolution.rule}: {resolution.reason}",
            tree_path=_tree_path_model(path),
            processing_time_ms=_elapsed_ms(started),
        )
        log_event(
            "classification.completed",
            hts_code=result.hts_code,
            confidence=confidence,
            confidence_label=label,
            duration_ms=result.processing_time_ms,
        )
        return result


# ---------------------------------------------------------------------------
# Construction from settings
# ---------------------------------------------------------------------------

def build_store(settings: Settings) -> HierarchyStore:
    if settings.database_url:
        from tariffnav.db.session import make_engine, make_session_factory
        from tariffnav.hts.sql_store import SqlHierarchyStore

        return SqlHierarchyStore(make_session_factory(make_engine(settings.database_url)))
    return InMemoryHierarchyStore.load_jsonl(settings.hts_data_path)


def build_cache(settings: Settings) -> ChapterCache:
    if settings.redis_url:
        from tariffnav.caching.redis_client import RedisChapterCache

        return RedisChapterCache(settings.redis_url, ttl_seconds=settings.chapter_cache_ttl_sec)
    return TTLCache(ttl_seconds=settings.chapter_cache_ttl_sec)


def build_engine(
    settings: Optional[Settings] = None,
    *,
    store: Optional[HierarchyStore] = None,
    oracle: Optional[ClassificationOracle] = None,
) -> ClassificationEngine:
    """Assemble an engine from settings; explicit collaborators win."""

    settings = settings or load_settings()
    store = store or build_store(settings)
    if oracle is None and settings.oracle_enabled:
        oracle = HttpClassificationOracle(
            settings.oracle_url or "",
            api_key=settings.oracle_api_key,
            timeout=settings.oracle_timeout_sec,
        )
    return ClassificationEngine(
        store,
        MaterialRouteTable.load(settings.material_routes_path),
        oracle=oracle,
        scorer=CandidateScorer(load_weights(settings.scoring_weights_path)),
        cache=build_cache(settings),
        search_workers=settings.search_workers,
    )

"""Candidate pool gathering.

Strategies are tried in order and a later strategy only runs when every
earlier one came back empty:

  1. core product term inside each suggested chapter
  2. core product term across the whole schedule
  3. material-augmented fallback terms

The searches inside one strategy are independent reads and run on a thread
pool; results are de-duplicated by code, keeping first-seen order.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from tariffnav.classification.extractor import extract_keywords, material_terms
from tariffnav.classification.models import ProductUnderstanding
from tariffnav.hts.store import HierarchyStore, HtsNode

logger = logging.getLogger(__name__)

Query = Tuple[str, Optional[str]]  # (term, chapter)


@dataclass(frozen=True)
class SearchStrategy:
    name: str
    queries: Tuple[Query, ...]


def plan_strategies(
    understanding: ProductUnderstanding,
    core_term: str,
    suggested_chapters: Iterable[str] = (),
) -> List[SearchStrategy]:
    chapters = sorted(set(suggested_chapters))
    strategies: List[SearchStrategy] = []
    if core_term and chapters:
        strategies.append(
            SearchStrategy("core_term_in_chapters", tuple((core_term, c) for c in chapters))
        )
    if core_term:
        strategies.append(SearchStrategy("core_term_global", ((core_term, None),)))

    fallback: List[Query] = []
    terms = [k for k in extract_keywords(understanding.product_type.value) if k != core_term][:3]
    if understanding.material_known:
        terms.extend(material_terms(understanding.material.value)[:1])
    for term in terms:
        fallback.extend((term, c) for c in chapters)
        fallback.append((term, None))
    if fallback:
        strategies.append(SearchStrategy("material_fallback", tuple(dict.fromkeys(fallback))))
    return strategies


class CandidateGatherer:
    def __init__(self, store: HierarchyStore, workers: int = 3) -> None:
        self._store = store
        self._workers = max(1, workers)

    def _run(self, query: Query) -> List[HtsNode]:
        term, chapter = query
        return self._store.search(term, chapter=chapter)

    def _run_all(self, queries: Sequence[Query]) -> List[List[HtsNode]]:
        if self._workers == 1 or len(queries) == 1:
            return [self._run(q) for q in queries]
        with ThreadPoolExecutor(max_workers=min(self._workers, len(queries))) as executor:
            return list(executor.map(self._run, queries))

    def gather(self, strategies: Sequence[SearchStrategy]) -> Tuple[List[HtsNode], Optional[str]]:
        """Return the de-duplicated pool and the name of the strategy that filled it."""

        for strategy in strategies:
            pool: Dict[str, HtsNode] = {}
            for nodes in self._run_all(strategy.queries):
                for node in nodes:
                    pool.setdefault(node.code, node)
            logger.debug("Strategy %s found %d candidates", strategy.name, len(pool))
            if pool:
                return list(pool.values()), strategy.name
        return [], None

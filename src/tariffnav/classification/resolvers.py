"""Prioritized chain of chapter/heading resolvers.

Resolvers are tried in order and the first non-null resolution wins.  The
default chain is legal override, then material route, then oracle; adding or
reordering resolvers only changes the list passed to :class:`ResolverChain`.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import List, Optional, Protocol, Sequence

from tariffnav.classification.material_routes import MaterialRouteTable
from tariffnav.classification.models import ProductUnderstanding, Resolution
from tariffnav.classification.oracle import (
    ClassificationOracle,
    build_request,
    to_resolution,
    validate_suggestion,
)
from tariffnav.classification.overrides import check_legal_overrides
from tariffnav.errors import OracleUnavailableError
from tariffnav.hts.chapters import ChapterCatalog
from tariffnav.hts.store import HierarchyStore

logger = logging.getLogger(__name__)


class Resolver(Protocol):
    name: str

    def resolve(self, understanding: ProductUnderstanding) -> Optional[Resolution]: ...


class LegalOverrideResolver:
    name = "legal_override"

    def __init__(self, routes: Optional[MaterialRouteTable] = None) -> None:
        self._routes = routes

    def resolve(self, understanding: ProductUnderstanding) -> Optional[Resolution]:
        resolution = check_legal_overrides(understanding)
        if resolution is None or self._routes is None or not understanding.material_known:
            return resolution
        # The material's own chapter is the wrong category once function wins.
        material_chapter = self._routes.chapter_for_material(understanding.material.value)
        if material_chapter and material_chapter != resolution.chapter:
            resolution = replace(resolution, avoid_chapters=(material_chapter,))
        return resolution


class MaterialRouteResolver:
    name = "material_route"

    def __init__(self, routes: MaterialRouteTable) -> None:
        self._routes = routes

    def resolve(self, understanding: ProductUnderstanding) -> Optional[Resolution]:
        return self._routes.route(understanding)


class OracleResolver:
    """Consults the oracle once; validation failures propagate."""

    name = "oracle"

    def __init__(
        self,
        oracle: ClassificationOracle,
        store: HierarchyStore,
        catalog: Optional[ChapterCatalog] = None,
    ) -> None:
        self._oracle = oracle
        self._store = store
        self._catalog = catalog

    def resolve(self, understanding: ProductUnderstanding) -> Optional[Resolution]:
        response = self._oracle.suggest(build_request(understanding, self._catalog))
        validate_suggestion(response, self._store)
        return to_resolution(response)


@dataclass
class ChainOutcome:
    resolution: Optional[Resolution]
    attempted: List[str] = field(default_factory=list)
    oracle_unavailable: bool = False


class ResolverChain:
    def __init__(self, resolvers: Sequence[Resolver]) -> None:
        self.resolvers = list(resolvers)

    @property
    def names(self) -> List[str]:
        return [r.name for r in self.resolvers]

    def resolve(self, understanding: ProductUnderstanding) -> ChainOutcome:
        outcome = ChainOutcome(resolution=None)
        for resolver in self.resolvers:
            outcome.attempted.append(resolver.name)
            try:
                resolution = resolver.resolve(understanding)
            except OracleUnavailableError as exc:
                logger.warning("Resolver %s unavailable: %s", resolver.name, exc)
                outcome.oracle_unavailable = True
                continue
            if resolution is not None:
                outcome.resolution = resolution
                return outcome
        return outcome


def default_chain(
    routes: MaterialRouteTable,
    store: HierarchyStore,
    oracle: Optional[ClassificationOracle] = None,
    catalog: Optional[ChapterCatalog] = None,
) -> ResolverChain:
    resolvers: List[Resolver] = [LegalOverrideResolver(routes), MaterialRouteResolver(routes)]
    if oracle is not None:
        resolvers.append(OracleResolver(oracle, store, catalog))
    return ResolverChain(resolvers)

"""Material decision tree router.

The routing table lives in ``data/material_routes.json`` so that adding a
material class is a data change that can be reviewed and versioned on its
own.  Lookup is an exact match on the normalized material token; an entry
may additionally require function context (``requires``), e.g. cotton only
routes to chapter 61 for knitted apparel.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from tariffnav.classification.extractor import normalize_material
from tariffnav.classification.models import ProductUnderstanding, Resolution
from tariffnav.errors import ConfigurationError
from tariffnav.hts.codes import normalize_code

logger = logging.getLogger(__name__)

MATERIAL_ROUTE = "material_route"


@dataclass(frozen=True)
class MaterialRoute:
    material: str
    chapter: str
    heading: Optional[str]
    description: str
    requires: Mapping[str, Any] = field(default_factory=dict)
    avoid_chapters: Tuple[str, ...] = ()

    def applies_to(self, understanding: ProductUnderstanding) -> bool:
        for key, expected in self.requires.items():
            actual = getattr(understanding, key, None)
            if hasattr(actual, "value"):
                actual = actual.value
            if actual != expected:
                return False
        return True


def _parse_route(raw: Mapping[str, Any], index: int) -> MaterialRoute:
    material = normalize_material(raw.get("material"))
    chapter = normalize_code(raw.get("chapter"))
    heading = normalize_code(raw.get("heading")) if raw.get("heading") else None
    if not raw.get("material") or len(chapter) != 2:
        raise ConfigurationError(f"Route #{index} needs a material and a 2-digit chapter: {dict(raw)!r}")
    if heading is not None and (len(heading) != 4 or not heading.startswith(chapter)):
        raise ConfigurationError(
            f"Route #{index} heading {raw.get('heading')!r} is not a heading of chapter {chapter}"
        )
    requires = raw.get("requires") or {}
    if not isinstance(requires, Mapping):
        raise ConfigurationError(f"Route #{index} 'requires' must be an object")
    return MaterialRoute(
        material=material,
        chapter=chapter,
        heading=heading,
        description=str(raw.get("description") or ""),
        requires=dict(requires),
        avoid_chapters=tuple(normalize_code(c) for c in raw.get("avoid_chapters") or ()),
    )


class MaterialRouteTable:
    """Versioned material -> chapter/heading table."""

    def __init__(self, routes: List[MaterialRoute], version: str = "unversioned") -> None:
        self.version = version
        self._routes: Dict[str, List[MaterialRoute]] = {}
        for route in routes:
            self._routes.setdefault(route.material, []).append(route)
        # Context-specific entries are tried before the plain material entry.
        for entries in self._routes.values():
            entries.sort(key=lambda r: 0 if r.requires else 1)

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "MaterialRouteTable":
        raw_routes = payload.get("routes")
        if not isinstance(raw_routes, list):
            raise ConfigurationError("Material route table must contain a 'routes' list")
        routes = [_parse_route(raw, i) for i, raw in enumerate(raw_routes)]
        return cls(routes, version=str(payload.get("version", "unversioned")))

    @classmethod
    def load(cls, path: Path) -> "MaterialRouteTable":
        try:
            payload = json.loads(Path(path).read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigurationError(f"Cannot read material routes from {path}: {exc}") from exc
        table = cls.from_mapping(payload)
        logger.info("Loaded material route table %s (%d materials)", table.version, len(table))
        return table

    def __len__(self) -> int:
        return len(self._routes)

    def materials(self) -> List[str]:
        return sorted(self._routes)

    def lookup(self, understanding: ProductUnderstanding) -> Optional[MaterialRoute]:
        for route in self._routes.get(normalize_material(understanding.material.value), []):
            if route.applies_to(understanding):
                return route
        return None

    def chapter_for_material(self, material: str) -> Optional[str]:
        """Chapter of the plain (context-free) route for a material, if any."""
        for route in self._routes.get(normalize_material(material), []):
            if not route.requires:
                return route.chapter
        return None

    def route(self, understanding: ProductUnderstanding) -> Optional[Resolution]:
        if not understanding.material_known:
            return None
        match = self.lookup(understanding)
        if match is None:
            return None
        return Resolution(
            source=MATERIAL_ROUTE,
            rule=f"Material: {match.material}",
            chapter=match.chapter,
            heading=match.heading or "",
            reason=match.description or f"Classified by material ({match.material})",
            material_used=True,
            avoid_chapters=match.avoid_chapters,
        )

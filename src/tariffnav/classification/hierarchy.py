"""Human-readable hierarchy for a final code (chapter down to the code)."""

from __future__ import annotations

import re

from tariffnav.classification.models import Hierarchy, HierarchyLevel
from tariffnav.hts.chapters import chapter_name
from tariffnav.hts.codes import ancestor_codes, format_code, level_for_code, normalize_code
from tariffnav.hts.store import HierarchyStore

_CATEGORY_SUFFIX_RE = re.compile(r"\s*\(\d{3}\)\s*$")


def clean_description(text: str) -> str:
    """Drop a trailing colon and textile category numbers such as "(338)"."""
    cleaned = _CATEGORY_SUFFIX_RE.sub("", (text or "").strip())
    return cleaned.rstrip(":").strip()


def build_hierarchy(store: HierarchyStore, code: str) -> Hierarchy:
    levels = []
    digits = normalize_code(code)
    for ancestor in ancestor_codes(digits) + [digits]:
        node = store.get_node(ancestor)
        if node is None:
            if len(ancestor) != 2:
                continue
            description = chapter_name(ancestor)
            level = "chapter"
            rate = None
        else:
            description = node.description
            level = node.level
            rate = node.general_rate or None
        levels.append(
            HierarchyLevel(
                level=level or level_for_code(ancestor) or "",
                code=ancestor,
                code_formatted=format_code(ancestor),
                description=clean_description(description),
                duty_rate=rate,
            )
        )
    descriptions = [level.description for level in levels if level.description]
    return Hierarchy(
        levels=levels,
        breadcrumb=" > ".join(descriptions),
        full_description=": ".join(descriptions),
    )

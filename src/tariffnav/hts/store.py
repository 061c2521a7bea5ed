"""Read-only access to the HTS code tree.

The store is loaded once from a JSONL seed (one record per code) and never
written by the classification engine.  Lookups are safe to run from many
threads at once because nothing is mutated after construction.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Mapping, Optional, Protocol, Set

from tariffnav.errors import HierarchyDataError
from tariffnav.hts.chapters import chapter_name
from tariffnav.hts.codes import (
    CHAPTER,
    chapter_of,
    format_code,
    level_for_code,
    normalize_code,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HtsNode:
    """A single published HTS code."""

    code: str                      # digits only, e.g. "6912004810"
    level: str                     # chapter | heading | subheading | tariff_line | statistical
    description: str
    parent_code: Optional[str]     # None for chapters
    general_rate: Optional[str]    # "" or None means inherit from an ancestor

    @property
    def formatted(self) -> str:
        return format_code(self.code)

    @property
    def chapter(self) -> str:
        return chapter_of(self.code)


class HierarchyStore(Protocol):
    """Interface every hierarchy backend implements."""

    @property
    def version(self) -> str: ...

    def get_node(self, code: str) -> Optional[HtsNode]: ...

    def get_children(self, code: str) -> List[HtsNode]: ...

    def search(
        self,
        term: str,
        chapter: Optional[str] = None,
        level: Optional[str] = None,
    ) -> List[HtsNode]: ...

    def chapters(self) -> List[HtsNode]: ...


# ---------------------------------------------------------------------------
# Text matching
# ---------------------------------------------------------------------------

_STOPWORDS: Set[str] = {
    "a", "an", "the", "of", "for", "and", "or", "in", "to", "with",
    "at", "by", "from", "as", "is", "are", "be", "on",
}


def _stem(token: str) -> str:
    if len(token) > 4 and token.endswith("ies"):
        return token[:-3] + "y"
    if len(token) > 4 and token.endswith(("ches", "shes", "sses", "xes")):
        return token[:-2]
    if len(token) > 3 and token.endswith("s") and not token.endswith("ss"):
        return token[:-1]
    return token


def tokenize(text: str) -> List[str]:
    """Lowercase, split on non-alphanumerics, drop stopwords, stem plurals."""
    words = re.split(r"[^a-z0-9]+", (text or "").lower())
    return [_stem(w) for w in words if w and len(w) > 1 and w not in _STOPWORDS]


def text_matches(term: str, description: str) -> bool:
    """True when every token of ``term`` occurs in ``description``."""
    wanted = tokenize(term)
    if not wanted:
        return False
    available = set(tokenize(description))
    return all(token in available for token in wanted)


# ---------------------------------------------------------------------------
# Record parsing
# ---------------------------------------------------------------------------

def _record_code(record: Mapping[str, object]) -> str:
    for key in ("code", "hts_code", "htsno"):
        if record.get(key):
            return normalize_code(record[key])
    return ""


def _record_rate(record: Mapping[str, object]) -> Optional[str]:
    for key in ("general_rate", "general", "base_duty_rate"):
        if key in record:
            value = record[key]
            return None if value is None else str(value).strip()
    return None


def _nearest_ancestor(code: str, known: Mapping[str, object]) -> Optional[str]:
    for length in range(len(code) - 2, 1, -2):
        prefix = code[:length]
        if prefix in known:
            return prefix
    return None


def build_nodes(records: Iterable[Mapping[str, object]]) -> Dict[str, HtsNode]:
    """Validate raw records and link each node to its parent.

    Missing chapter nodes are synthesized from the chapter name table.  Every
    other node must have an ancestor present in the data.
    """
    raw: Dict[str, Mapping[str, object]] = {}
    for index, record in enumerate(records):
        code = _record_code(record)
        if not code:
            raise HierarchyDataError(f"record {index} has no code: {dict(record)!r}")
        if level_for_code(code) is None:
            raise HierarchyDataError(f"record {index} has invalid code length: {code}")
        raw[code] = record

    for code in list(raw):
        chapter = chapter_of(code)
        if chapter not in raw:
            raw[chapter] = {"code": chapter, "description": chapter_name(chapter)}

    nodes: Dict[str, HtsNode] = {}
    for code in sorted(raw):
        record = raw[code]
        level = level_for_code(code) or CHAPTER
        declared_parent = record.get("parent_code")
        if level == CHAPTER:
            parent = None
        elif declared_parent:
            parent = normalize_code(declared_parent)
            if parent not in raw or not code.startswith(parent) or parent == code:
                raise HierarchyDataError(
                    f"code {code} declares parent {parent} which is not a known strict prefix"
                )
        else:
            parent = _nearest_ancestor(code, raw)
            if parent is None:
                raise HierarchyDataError(f"code {code} has no ancestor in the hierarchy")
        nodes[code] = HtsNode(
            code=code,
            level=level,
            description=str(record.get("description") or "").strip(),
            parent_code=parent,
            general_rate=_record_rate(record),
        )
    return nodes


def read_jsonl(path: Path) -> List[Dict[str, object]]:
    records: List[Dict[str, object]] = []
    with path.open(encoding="utf-8") as fh:
        for line_no, line in enumerate(fh, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                records.append(json.loads(line))
            except json.JSONDecodeError as exc:
                raise HierarchyDataError(f"{path.name}:{line_no}: invalid JSON ({exc})") from exc
    return records


# ---------------------------------------------------------------------------
# In-memory store
# ---------------------------------------------------------------------------

class InMemoryHierarchyStore:
    """Dictionary-backed hierarchy, the default store for the engine."""

    def __init__(self, nodes: Mapping[str, HtsNode]) -> None:
        self._nodes: Dict[str, HtsNode] = dict(nodes)
        self._children: Dict[str, List[HtsNode]] = {}
        for node in sorted(self._nodes.values(), key=lambda n: n.code):
            if node.parent_code is not None:
                self._children.setdefault(node.parent_code, []).append(node)
        self._tokens: Dict[str, Set[str]] = {
            code: set(tokenize(node.description)) for code, node in self._nodes.items()
        }
        digest = hashlib.sha256()
        for code in sorted(self._nodes):
            node = self._nodes[code]
            digest.update(f"{code}|{node.description}|{node.general_rate or ''}\n".encode("utf-8"))
        self._version = digest.hexdigest()[:16]

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, object]]) -> "InMemoryHierarchyStore":
        return cls(build_nodes(records))

    @classmethod
    def load_jsonl(cls, path: Path) -> "InMemoryHierarchyStore":
        store = cls.from_records(read_jsonl(path))
        logger.info("Loaded %d HTS nodes from %s", len(store), path.name)
        return store

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def version(self) -> str:
        return self._version

    def get_node(self, code: str) -> Optional[HtsNode]:
        return self._nodes.get(normalize_code(code))

    def get_children(self, code: str) -> List[HtsNode]:
        return list(self._children.get(normalize_code(code), []))

    def search(
        self,
        term: str,
        chapter: Optional[str] = None,
        level: Optional[str] = None,
    ) -> List[HtsNode]:
        wanted = tokenize(term)
        if not wanted:
            return []
        chapter_digits = normalize_code(chapter) if chapter else None
        results: List[HtsNode] = []
        for code in sorted(self._nodes):
            node = self._nodes[code]
            if chapter_digits and not code.startswith(chapter_digits):
                continue
            if level and node.level != level:
                continue
            tokens = self._tokens[code]
            if all(token in tokens for token in wanted):
                results.append(node)
        return results

    def chapters(self) -> List[HtsNode]:
        return sorted(
            (node for node in self._nodes.values() if node.level == CHAPTER),
            key=lambda n: n.code,
        )

    def iter_nodes(self) -> List[HtsNode]:
        return [self._nodes[code] for code in sorted(self._nodes)]

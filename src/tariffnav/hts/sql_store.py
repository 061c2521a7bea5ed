"""SQLAlchemy-backed hierarchy store.

Same interface as :class:`~tariffnav.hts.store.InMemoryHierarchyStore`, for
deployments that keep the schedule in PostgreSQL.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Iterable, List, Mapping, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from tariffnav.db.models import HtsCodeRecord
from tariffnav.db.session import session_scope
from tariffnav.hts.codes import CHAPTER, normalize_code
from tariffnav.hts.store import HtsNode, build_nodes, tokenize

logger = logging.getLogger(__name__)


def _to_node(record: HtsCodeRecord) -> HtsNode:
    return HtsNode(
        code=record.code,
        level=record.level,
        description=record.description or "",
        parent_code=record.parent_code,
        general_rate=record.general_rate,
    )


def import_records(factory: sessionmaker, records: Iterable[Mapping[str, object]]) -> int:
    """Validate records and upsert them into ``hts_codes``."""

    nodes = build_nodes(records)
    with session_scope(factory) as session:
        for node in nodes.values():
            session.merge(
                HtsCodeRecord(
                    code=node.code,
                    level=node.level,
                    description=node.description,
                    parent_code=node.parent_code,
                    general_rate=node.general_rate,
                )
            )
    logger.info("Imported %d HTS codes into the database", len(nodes))
    return len(nodes)


class SqlHierarchyStore:
    """Read-only hierarchy over the ``hts_codes`` table."""

    def __init__(self, factory: sessionmaker) -> None:
        self._factory = factory
        self._version: Optional[str] = None

    @property
    def version(self) -> str:
        if self._version is None:
            with self._factory() as session:
                count, latest = session.execute(
                    select(func.count(HtsCodeRecord.code), func.max(HtsCodeRecord.updated_at))
                ).one()
            digest = hashlib.sha256(f"{count}|{latest}".encode("utf-8"))
            self._version = digest.hexdigest()[:16]
        return self._version

    def refresh(self) -> None:
        """Drop the memoized version after the table has been reloaded."""
        self._version = None

    def get_node(self, code: str) -> Optional[HtsNode]:
        with self._factory() as session:
            record = session.get(HtsCodeRecord, normalize_code(code))
            return _to_node(record) if record is not None else None

    def get_children(self, code: str) -> List[HtsNode]:
        parent = normalize_code(code)
        with self._factory() as session:
            records = session.scalars(
                select(HtsCodeRecord)
                .where(HtsCodeRecord.parent_code == parent)
                .order_by(HtsCodeRecord.code)
            ).all()
            return [_to_node(r) for r in records]

    def search(
        self,
        term: str,
        chapter: Optional[str] = None,
        level: Optional[str] = None,
    ) -> List[HtsNode]:
        wanted = tokenize(term)
        if not wanted:
            return []
        stmt = select(HtsCodeRecord).order_by(HtsCodeRecord.code)
        for token in wanted:
            needle = token[:-1] if len(token) > 4 else token  # battery ~ batteries
            stmt = stmt.where(HtsCodeRecord.description.ilike(f"%{needle}%"))
        if chapter:
            stmt = stmt.where(HtsCodeRecord.code.like(f"{normalize_code(chapter)}%"))
        if level:
            stmt = stmt.where(HtsCodeRecord.level == level)
        with self._factory() as session:
            records = session.scalars(stmt).all()
            nodes = [_to_node(r) for r in records]
        # SQL LIKE narrows by substring; confirm on whole tokens.
        return [
            node for node in nodes
            if all(token in set(tokenize(node.description)) for token in wanted)
        ]

    def chapters(self) -> List[HtsNode]:
        with self._factory() as session:
            records = session.scalars(
                select(HtsCodeRecord)
                .where(HtsCodeRecord.level == CHAPTER)
                .order_by(HtsCodeRecord.code)
            ).all()
            return [_to_node(r) for r in records]

"""SQLAlchemy models for the relational hierarchy backend.

One row per published HTS code.  The classification engine only reads this
table; rows are written by ``tariffnav import-db`` or external loaders.
"""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Index, String, Text, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class HtsCodeRecord(Base):
    """A single HTS code with its General-column rate."""

    __tablename__ = "hts_codes"

    code = Column(String(10), primary_key=True)
    level = Column(String(16), nullable=False)
    description = Column(Text, nullable=False, default="")
    parent_code = Column(String(10), nullable=True)
    general_rate = Column(String(128), nullable=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        Index("idx_hts_codes_parent", "parent_code"),
        Index("idx_hts_codes_level", "level"),
    )

    def __repr__(self) -> str:
        return f"<HtsCodeRecord(code={self.code}, level={self.level})>"

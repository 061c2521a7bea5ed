"""Database engine and session factory."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

_MEMORY_URLS = ("sqlite://", "sqlite:///:memory:")


def make_engine(database_url: str) -> Engine:
    """Create an engine; SQLite URLs skip the connection-pool tuning."""

    if database_url in _MEMORY_URLS:
        # A single shared connection keeps one in-memory database alive.
        return create_engine(
            database_url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url)
    return create_engine(
        database_url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,  # Verify connections before using
        pool_recycle=3600,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autoflush=False, bind=engine)


@contextmanager
def session_scope(factory: sessionmaker) -> Generator[Session, None, None]:
    """Context manager for standalone sessions.

    Usage in scripts and the CLI:
        with session_scope(factory) as session:
            session.add(record)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db(engine: Engine) -> None:
    """Create tables (tests and local development)."""
    from tariffnav.db.models import Base

    Base.metadata.create_all(bind=engine)

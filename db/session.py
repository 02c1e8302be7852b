"""
db/session.py

Engine and session factory for the product store.

The engine is created lazily on first use so importing models or running
tests never opens a connection. Monitor polls and refresh cycles run on
scheduler threads and each opens its own short-lived session.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Generator
from dataclasses import dataclass

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import resolve_database_url

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EngineSettings:
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_recycle_seconds: int = 1800

    @classmethod
    def from_env(cls) -> "EngineSettings":
        def _int(name: str, default: int) -> int:
            try:
                return int(os.getenv(name, default))
            except ValueError:
                logger.warning("Ignoring non-integer %s; using %s", name, default)
                return default

        return cls(
            echo=os.getenv("SQL_ECHO", "").strip().lower() in {"1", "true", "yes", "on"},
            pool_size=max(1, _int("DB_POOL_SIZE", 5)),
            max_overflow=max(0, _int("DB_MAX_OVERFLOW", 10)),
            pool_recycle_seconds=_int("DB_POOL_RECYCLE", 1800),
        )


def create_db_engine(database_url: str | None = None, settings: EngineSettings | None = None) -> Engine:
    url = database_url or resolve_database_url()
    if not url.startswith("postgresql"):
        raise RuntimeError("Only PostgreSQL URLs are supported.")

    settings = settings or EngineSettings.from_env()
    return create_engine(
        url,
        echo=settings.echo,
        pool_pre_ping=True,
        pool_recycle=settings.pool_recycle_seconds,
        pool_size=settings.pool_size,
        max_overflow=settings.max_overflow,
    )


_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        _engine = create_db_engine()
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)
    return _session_factory


def SessionLocal() -> Session:
    """Open a new session on the shared engine."""
    return get_session_factory()()


def dispose_engine() -> None:
    """Close pooled connections and forget the engine. Called on app shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

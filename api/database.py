"""Async database engine and session management.

The engine is created once by `init_db()` (called from the app lifespan)
and shared by every request. Sessions are handed to route handlers through
the `get_session` dependency.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .models import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key support in SQLite."""
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(database_url: str, echo: bool = False) -> AsyncEngine:
    """Create an async engine, enforcing foreign keys on SQLite."""
    engine = create_async_engine(database_url, echo=echo)
    if database_url.startswith("sqlite"):
        event.listen(engine.sync_engine, "connect", _enable_sqlite_fk)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(database_url: str, echo: bool = False) -> None:
    """Create the engine and all tables.

    Args:
        database_url: SQLAlchemy async URL (asyncpg or aiosqlite).
        echo: Log emitted SQL.
    """
    global _engine, _session_factory

    if _engine is not None:
        logger.debug("Database already initialized")
        return

    _engine = create_engine(database_url, echo=echo)
    _session_factory = create_session_factory(_engine)

    async with _engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    logger.info("Database initialized")


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a database session.

    Raises:
        RuntimeError: If init_db() has not been called.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")

    async with _session_factory() as session:
        yield session


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory for code running outside a request (scripts, seeding).

    Raises:
        RuntimeError: If init_db() has not been called.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def close_db() -> None:
    """Dispose the engine and forget the session factory."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        logger.info("Database connection closed")

    _engine = None
    _session_factory = None


def is_initialized() -> bool:
    return _engine is not None

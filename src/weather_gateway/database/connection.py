"""Database engine and sessions.

The credential store, user accounts and the admin endpoints share one async
engine (SQLAlchemy + asyncpg). It is created once per process by `init_db()`
in the application lifespan and disposed by `close_db()`.

## Configuration

- DATABASE_URL: PostgreSQL connection string
- DATABASE_POOL_SIZE / DATABASE_MAX_OVERFLOW: pool sizing (PostgreSQL only)
- DATABASE_CREATE_TABLES: create tables on startup (development and tests)

An in-memory SQLite URL (`sqlite+aiosqlite:///:memory:`) runs on a single
shared connection so every session sees the same tables.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from weather_gateway.config import Settings, get_settings
from weather_gateway.database.models import Base

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def _engine_options(settings: Settings) -> dict[str, Any]:
    url = settings.database_url
    options: dict[str, Any] = {"echo": settings.database_echo}
    if url.startswith("sqlite"):
        if ":memory:" in url:
            options["poolclass"] = StaticPool
            options["connect_args"] = {"check_same_thread": False}
        return options
    options.update(
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
        pool_timeout=settings.store_timeout_seconds,
        # asyncpg cancels statements that run longer than this
        connect_args={"command_timeout": settings.store_timeout_seconds},
    )
    return options


def _require_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _engine


async def init_db(settings: Settings | None = None) -> None:
    """Create the engine and session factory for this process."""
    global _engine, _session_factory

    settings = settings or get_settings()
    _engine = create_async_engine(settings.database_url, **_engine_options(settings))
    _session_factory = async_sessionmaker(
        _engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    logger.info(f"Database engine ready ({_engine.dialect.name})")


async def close_db() -> None:
    """Dispose of the engine. Safe to call when not initialized."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        logger.info("Database engine disposed")
    _engine = None
    _session_factory = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return the session factory created by `init_db()`.

    The SQL credential store opens its own short-lived sessions from it.
    """
    if _session_factory is None:
        raise RuntimeError("Database not initialized. Call init_db() first.")
    return _session_factory


async def create_tables() -> None:
    """Create users and credentials tables. Use migrations in production."""
    async with _require_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables created")


async def ping_db() -> bool:
    """Return True if the database answers a trivial query."""
    try:
        async with _require_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"Database ping failed: {e}")
        return False
    return True


@asynccontextmanager
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Open a session; rolled back on error, never committed implicitly."""
    session = get_session_factory()()
    try:
        yield session
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency yielding a request-scoped session."""
    async with get_db() as session:
        yield session

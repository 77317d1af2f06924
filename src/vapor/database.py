"""
Async SQLAlchemy engine and session management.

Deployments run on PostgreSQL through asyncpg; tests and local runs may point
``VAPOR_DATABASE_URL`` at an aiosqlite file instead.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from vapor.audit import register_audit_listeners
from vapor.config import get_settings

NOT_INITIALIZED = "Database not initialized. Call init_db() first."

_engine: AsyncEngine | None = None
_sessions: async_sessionmaker[AsyncSession] | None = None


def engine_options(url: str) -> dict[str, Any]:
    """Pool settings for server databases; SQLite keeps SQLAlchemy's defaults."""
    if make_url(url).get_backend_name() == "sqlite":
        return {}
    settings = get_settings()
    return {
        "pool_size": settings.db_pool_size,
        "max_overflow": settings.db_max_overflow,
        "pool_pre_ping": True,
        "connect_args": {"statement_cache_size": 0},
    }


async def init_db(url: str) -> None:
    global _engine, _sessions  # noqa: PLW0603
    _engine = create_async_engine(url, **engine_options(url))
    _sessions = async_sessionmaker(_engine, expire_on_commit=False)
    register_audit_listeners()


async def close_db() -> None:
    global _engine, _sessions  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _sessions = None


def get_engine() -> AsyncEngine:
    if _engine is None:
        raise RuntimeError(NOT_INITIALIZED)
    return _engine


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: one session per request, closed afterwards."""
    if _sessions is None:
        raise RuntimeError(NOT_INITIALIZED)
    async with _sessions() as session:
        yield session

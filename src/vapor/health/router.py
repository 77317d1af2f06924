"""Liveness, readiness and version probes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Response
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.config import get_settings
from vapor.database import get_session
from vapor.redis_client import get_redis_optional

router = APIRouter()

HEALTHY = frozenset({"ok", "disabled"})


async def check_database(db: AsyncSession) -> str:
    try:
        await db.scalar(text("SELECT 1"))
    except SQLAlchemyError as exc:
        return f"error: {exc}"
    return "ok"


async def check_redis() -> str:
    redis = get_redis_optional()
    if redis is None:
        return "disabled"
    try:
        await redis.ping()
    except RedisError as exc:
        return f"error: {exc}"
    return "ok"


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    response: Response,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> dict[str, object]:
    """503 with per-dependency details while the database or an enabled Redis is unreachable."""
    checks = {"database": await check_database(db), "redis": await check_redis()}
    ready = set(checks.values()) <= HEALTHY
    if not ready:
        response.status_code = 503
    return {"status": "ready" if ready else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    settings = get_settings()
    return {"name": "vapor-api", "version": settings.app_version, "environment": settings.environment}

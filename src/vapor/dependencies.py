"""Shared FastAPI dependencies."""

from __future__ import annotations

from redis.asyncio import Redis

from vapor.redis_client import get_redis_optional


async def get_redis_dep() -> Redis | None:
    """The Redis client for the request, or None when Redis is disabled."""
    return get_redis_optional()

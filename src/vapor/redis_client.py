"""
Process-wide Redis client.

Redis backs the request quota, login lockout, verification resend cooldown
and email throttling. With ``redis_enabled`` off the client stays None and
each of those features steps aside.
"""

from __future__ import annotations

import redis.asyncio as redis

_client: redis.Redis | None = None


async def init_redis(url: str, max_connections: int = 50) -> redis.Redis:
    global _client  # noqa: PLW0603
    _client = redis.Redis.from_url(url, decode_responses=True, max_connections=max_connections)
    return _client


async def close_redis() -> None:
    global _client  # noqa: PLW0603
    client, _client = _client, None
    if client is not None:
        await client.aclose()


def get_redis_optional() -> redis.Redis | None:
    """The shared client, or None when Redis is disabled."""
    return _client

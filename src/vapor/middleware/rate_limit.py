"""
Fixed-window request quota per client address, counted in Redis.

Without Redis, or while it is unreachable, requests pass straight through
and no quota headers are sent.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

import structlog
from redis.exceptions import RedisError
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from vapor.redis_client import get_redis_optional

logger = structlog.get_logger()

EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})


@dataclass(frozen=True)
class Quota:
    limit: int
    used: int
    reset_in: int

    @property
    def exceeded(self) -> bool:
        return self.used > self.limit

    def headers(self) -> dict[str, str]:
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(max(0, self.limit - self.used)),
        }


class RateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: Any, requests_per_window: int = 100, window_seconds: int = 60) -> None:  # noqa: ANN401
        super().__init__(app)
        self.limit = requests_per_window
        self.window_seconds = window_seconds

    async def count(self, client: str) -> Quota | None:
        """Record one request from ``client``; None when the counter is unavailable."""
        redis = get_redis_optional()
        if redis is None:
            return None

        now = int(time.time())
        window_start = now - now % self.window_seconds
        key = f"ratelimit:{client}:{window_start}"
        try:
            async with redis.pipeline(transaction=True) as pipe:
                used, _ = await pipe.incr(key).expire(key, self.window_seconds + 1).execute()
        except RedisError:
            logger.warning("rate_limit_unavailable", client=client)
            return None
        return Quota(limit=self.limit, used=int(used), reset_in=window_start + self.window_seconds - now)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        quota = await self.count(request.client.host if request.client else "unknown")
        if quota is None:
            return await call_next(request)

        if quota.exceeded:
            logger.info("rate_limited", path=request.url.path)
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={**quota.headers(), "Retry-After": str(quota.reset_in)},
            )

        response = await call_next(request)
        response.headers.update(quota.headers())
        return response

"""Debounced store search for interactive input."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any

import structlog

from vapor.client.api import VaporClient

logger = structlog.get_logger()

DEFAULT_DELAY = 0.25

SearchFn = Callable[..., Awaitable[list[dict[str, Any]]]]


class DebouncedSearch:
    """
    Coalesces rapid ``search()`` calls into one request.

    Each call restarts the delay; only the last query within the window is
    sent. A response for a query that has since been superseded is dropped,
    so ``results`` always belongs to the newest query.
    """

    def __init__(self, api: VaporClient, delay: float = DEFAULT_DELAY, search_fn: SearchFn | None = None) -> None:
        self.delay = delay
        self._search_fn = search_fn or api.search_apps
        self._generation = 0
        self._pending: asyncio.Task[list[dict[str, Any]] | None] | None = None
        self.results: list[dict[str, Any]] = []
        self.query: str | None = None
        self.requests_sent = 0

    async def _run(self, generation: int, query: str, filters: dict[str, Any]) -> list[dict[str, Any]] | None:
        try:
            await asyncio.sleep(self.delay)
            self.requests_sent += 1
            results = await self._search_fn(query, **filters)
        except asyncio.CancelledError:
            if generation != self._generation:
                return None
            raise
        if generation != self._generation:
            logger.debug("search_response_stale", query=query)
            return None
        self.results = results
        self.query = query
        return results

    def search(self, query: str, **filters: Any) -> asyncio.Task[list[dict[str, Any]] | None]:
        """
        Schedule a search and cancel the previous one.

        A superseded task that already started resolves to None; one still
        waiting to start ends cancelled.
        """
        self._generation += 1
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = asyncio.create_task(self._run(self._generation, query, filters))
        return self._pending

    async def wait(self) -> list[dict[str, Any]]:
        """Wait for the latest scheduled search and return the current results."""
        if self._pending is not None:
            await self._pending
        return self.results

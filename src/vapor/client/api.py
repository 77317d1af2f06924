"""Async HTTP client for the Vapor API.

Holds the access/refresh token pair. A 401 triggers one refresh and one
retry of the original request.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

logger = structlog.get_logger()


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, detail: Any) -> None:  # noqa: ANN401
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")

    @property
    def is_permanent(self) -> bool:
        """The server rejected the request itself; retrying will not help."""
        return self.status_code in (400, 404, 409, 422)


@dataclass
class AuthTokens:
    access_token: str
    refresh_token: str


class VaporClient:
    """Thin wrapper over ``httpx.AsyncClient`` with bearer auth."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)
        self.tokens: AuthTokens | None = None
        self.user: dict[str, Any] | None = None

    async def aclose(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> VaporClient:
        return self

    async def __aexit__(self, *_exc: object) -> None:
        await self.aclose()

    @property
    def is_authenticated(self) -> bool:
        return self.tokens is not None

    # ── transport ──

    def _headers(self) -> dict[str, str]:
        if self.tokens is None:
            return {}
        return {"Authorization": f"Bearer {self.tokens.access_token}"}

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            body = response.json()
        except ValueError:
            body = response.text
        detail = body.get("detail", body) if isinstance(body, dict) else body
        raise ApiError(response.status_code, detail)

    async def request(self, method: str, path: str, **kwargs: Any) -> Any:  # noqa: ANN401
        """
        Send a request and return the decoded JSON body.

        Raises:
            ApiError: Non-2xx response (after one refresh attempt on 401).
            httpx.HTTPError: Network failure.
        """
        response = await self._http.request(method, path, headers=self._headers(), **kwargs)
        if response.status_code == 401 and self.tokens is not None and await self.refresh():
            response = await self._http.request(method, path, headers=self._headers(), **kwargs)
        self._raise_for_status(response)
        if not response.content:
            return None
        return response.json()

    # ── auth ──

    async def login(self, login: str, password: str) -> dict[str, Any]:
        response = await self._http.post("/api/v1/auth/login", json={"login": login, "password": password})
        self._raise_for_status(response)
        data = response.json()
        self.tokens = AuthTokens(data["access_token"], data["refresh_token"])
        self.user = data["user"]
        return data

    async def refresh(self) -> bool:
        """Rotate the token pair. Returns False (and logs out) if the refresh token is rejected."""
        if self.tokens is None:
            return False
        response = await self._http.post(
            "/api/v1/auth/refresh", json={"refresh_token": self.tokens.refresh_token}
        )
        if not response.is_success:
            logger.info("client_refresh_failed", status=response.status_code)
            self.tokens = None
            self.user = None
            return False
        data = response.json()
        self.tokens = AuthTokens(data["access_token"], data["refresh_token"])
        return True

    async def logout(self) -> None:
        if self.tokens is not None:
            try:
                await self.request("POST", "/api/v1/auth/logout", json={"refresh_token": self.tokens.refresh_token})
            except (ApiError, httpx.HTTPError):
                logger.warning("client_logout_failed")
        self.tokens = None
        self.user = None

    # ── catalog ──

    async def search_apps(
        self,
        query: str | None = None,
        *,
        is_free: bool | None = None,
        genres: list[str] | None = None,
        price_sort: str | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {}
        if query:
            params["query"] = query
        if is_free is not None:
            params["is_free"] = str(is_free).lower()
        if genres:
            params["genres"] = genres
        if price_sort:
            params["price_sort"] = price_sort
        return await self.request("GET", "/api/v1/apps/search", params=params)

    async def get_reviews(self, app_id: int) -> dict[str, Any]:
        return await self.request("GET", f"/api/v1/apps/{app_id}/reviews")

    async def add_review(self, app_id: int, is_recommended: bool, text: str) -> dict[str, Any]:
        return await self.request(
            "POST",
            f"/api/v1/apps/{app_id}/reviews",
            json={"is_recommended": is_recommended, "review_text": text},
        )

    async def update_review(self, review_id: int, is_recommended: bool, text: str) -> dict[str, Any]:
        return await self.request(
            "PUT",
            f"/api/v1/apps/reviews/{review_id}",
            json={"is_recommended": is_recommended, "review_text": text},
        )

    # ── cart & checkout ──

    async def get_cart(self) -> dict[str, Any]:
        return await self.request("GET", "/api/v1/cart")

    async def add_to_cart(self, app_id: int) -> dict[str, Any]:
        return await self.request("POST", "/api/v1/cart/add", json={"app_id": app_id})

    async def remove_from_cart(self, app_id: int) -> None:
        await self.request("DELETE", f"/api/v1/cart/{app_id}")

    async def clear_cart(self) -> None:
        await self.request("DELETE", "/api/v1/cart")

    async def merge_cart(self, app_ids: list[int]) -> dict[str, Any]:
        return await self.request("POST", "/api/v1/cart/merge", json={"app_ids": app_ids})

    async def purchase(self, points_to_use: int = 0) -> dict[str, Any]:
        return await self.request("POST", "/api/v1/store/purchase", json={"points_to_use": points_to_use})

    # ── wishlist ──

    async def get_wishlist(self) -> dict[str, Any]:
        return await self.request("GET", "/api/v1/wishlist")

    async def add_to_wishlist(self, app_id: int) -> dict[str, Any]:
        return await self.request("POST", "/api/v1/wishlist", json={"app_id": app_id})

    async def remove_from_wishlist(self, app_id: int) -> dict[str, Any]:
        return await self.request("DELETE", f"/api/v1/wishlist/{app_id}")

    async def move_wishlist_item(self, app_id: int, new_priority: int) -> dict[str, Any]:
        return await self.request(
            "PUT", "/api/v1/wishlist/priority", json={"app_id": app_id, "new_priority": new_priority}
        )

    # ── notifications ──

    async def get_notifications(self, page: int = 1, per_page: int = 20) -> dict[str, Any]:
        return await self.request("GET", "/api/v1/notifications", params={"page": page, "per_page": per_page})

    async def mark_notification_read(self, notification_id: int) -> None:
        await self.request("POST", f"/api/v1/notifications/{notification_id}/read")

    async def clear_notifications(self) -> None:
        await self.request("DELETE", "/api/v1/notifications")

    async def get_unread_count(self) -> int:
        data = await self.request("GET", "/api/v1/notifications/unread-count")
        return data["unread_count"]

    async def mark_all_notifications_read(self) -> None:
        await self.request("POST", "/api/v1/notifications/read-all")

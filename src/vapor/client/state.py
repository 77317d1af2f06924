"""Client-side state for reviews, the wishlist and the notification inbox."""

from __future__ import annotations

from typing import Any

from vapor.catalog.summary import ReviewSummary, summarize_reviews
from vapor.client.api import VaporClient


class ReviewState:
    """Reviews of one app. The summary is recomputed from the list after every change."""

    def __init__(self, api: VaporClient, app_id: int) -> None:
        self.api = api
        self.app_id = app_id
        self.reviews: list[dict[str, Any]] = []
        self.summary = summarize_reviews([])

    def _recompute(self) -> ReviewSummary:
        self.summary = summarize_reviews(self.reviews)
        return self.summary

    async def load(self) -> ReviewSummary:
        data = await self.api.get_reviews(self.app_id)
        self.reviews = data["reviews"]
        return self._recompute()

    async def add(self, is_recommended: bool, text: str) -> dict[str, Any]:
        review = await self.api.add_review(self.app_id, is_recommended, text)
        self.reviews.insert(0, review)
        self._recompute()
        return review

    async def edit(self, review_id: int, is_recommended: bool, text: str) -> dict[str, Any]:
        updated = await self.api.update_review(review_id, is_recommended, text)
        self.reviews = [updated if r["id"] == review_id else r for r in self.reviews]
        self._recompute()
        return updated

    def user_review(self, user_id: int) -> dict[str, Any] | None:
        return next((r for r in self.reviews if r.get("user_id") == user_id), None)


class WishlistState:
    """The signed-in user's wishlist, kept in server order (priority 1..n)."""

    def __init__(self, api: VaporClient) -> None:
        self.api = api
        self.items: list[dict[str, Any]] = []

    @property
    def app_ids(self) -> list[int]:
        return [item["app_id"] for item in self.items]

    def __contains__(self, app_id: int) -> bool:
        return app_id in self.app_ids

    def _replace(self, data: dict[str, Any]) -> list[dict[str, Any]]:
        self.items = data["items"]
        return self.items

    async def load(self) -> list[dict[str, Any]]:
        return self._replace(await self.api.get_wishlist())

    async def add(self, app_id: int) -> list[dict[str, Any]]:
        return self._replace(await self.api.add_to_wishlist(app_id))

    async def remove(self, app_id: int) -> list[dict[str, Any]]:
        return self._replace(await self.api.remove_from_wishlist(app_id))

    async def move(self, app_id: int, new_priority: int) -> list[dict[str, Any]]:
        return self._replace(await self.api.move_wishlist_item(app_id, new_priority))

    def forget(self, app_ids: list[int]) -> None:
        """Drop purchased apps locally; the server removes them at checkout."""
        gone = set(app_ids)
        self.items = [item for item in self.items if item["app_id"] not in gone]


class NotificationInbox:
    """Polled notification list with local read tracking."""

    def __init__(self, api: VaporClient, per_page: int = 20) -> None:
        self.api = api
        self.per_page = per_page
        self.notifications: list[dict[str, Any]] = []
        self.total = 0

    @property
    def unread_count(self) -> int:
        return sum(1 for n in self.notifications if not n["is_read"])

    async def poll(self, page: int = 1) -> list[dict[str, Any]]:
        data = await self.api.get_notifications(page=page, per_page=self.per_page)
        self.notifications = data["notifications"]
        self.total = data["total"]
        return self.notifications

    async def mark_read(self, notification_id: int) -> None:
        await self.api.mark_notification_read(notification_id)
        for n in self.notifications:
            if n["id"] == notification_id:
                n["is_read"] = True

    async def mark_all_read(self) -> None:
        await self.api.mark_all_notifications_read()
        for n in self.notifications:
            n["is_read"] = True

    async def clear(self) -> None:
        await self.api.clear_notifications()
        self.notifications = []
        self.total = 0

"""
Client-side cart state.

Changes apply locally first and are then persisted. Items whose persistence
failed stay in the cart marked unsynced until ``sync()`` either stores them
or the server rejects them for good.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

import httpx
import structlog

from vapor.client.api import ApiError, VaporClient
from vapor.client.guest_store import GuestCartStore

logger = structlog.get_logger()


@dataclass
class CartItem:
    app_id: int
    app_name: str = ""
    price: str = "Free"
    header_image: str | None = None
    base_app_id: int | None = None
    synced: bool = True

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> CartItem:
        return cls(
            app_id=data["app_id"],
            app_name=data.get("app_name", ""),
            price=str(data.get("price", "Free")),
            header_image=data.get("header_image"),
            base_app_id=data.get("base_app_id"),
        )

    @property
    def price_value(self) -> Decimal:
        return Decimal("0") if self.price == "Free" else Decimal(self.price)


class CartState:
    """Cart shared by the client's views. Guest carts live in a ``GuestCartStore``."""

    def __init__(self, api: VaporClient, guest_store: GuestCartStore) -> None:
        self.api = api
        self.guest_store = guest_store
        self.items: list[CartItem] = []
        # Removals the server has not acknowledged yet
        self._pending_removals: set[int] = set()

    # ── reads ──

    @property
    def app_ids(self) -> list[int]:
        return [item.app_id for item in self.items]

    @property
    def unsynced(self) -> list[int]:
        return [item.app_id for item in self.items if not item.synced]

    @property
    def total(self) -> Decimal:
        return sum((item.price_value for item in self.items), Decimal("0"))

    def __contains__(self, app_id: int) -> bool:
        return any(item.app_id == app_id for item in self.items)

    def __len__(self) -> int:
        return len(self.items)

    # ── writes ──

    def _fall_back_to_guest(self) -> bool:
        """
        Keep the cart in the guest store once the session is gone.

        Returns True when the client is signed out (e.g. a refresh was
        rejected mid-request); the items are merged again on the next login.
        """
        if self.api.is_authenticated:
            return False
        self.guest_store.save(self.app_ids)
        for item in self.items:
            item.synced = True
        logger.info("cart_kept_as_guest", count=len(self.items))
        return True

    async def load(self) -> None:
        """Fetch the server cart, or read the guest store when signed out."""
        if not self.api.is_authenticated:
            self.items = [CartItem(app_id=app_id) for app_id in self.guest_store.load()]
            return
        data = await self.api.get_cart()
        self.items = [CartItem.from_api(item) for item in data["items"]]

    async def add(self, item: CartItem) -> bool:
        """Add an item. Returns False when it was already in the cart."""
        if item.app_id in self:
            return False
        self.items.append(item)
        self._pending_removals.discard(item.app_id)
        if not self.api.is_authenticated:
            self.guest_store.save(self.app_ids)
            return True
        try:
            await self.api.add_to_cart(item.app_id)
        except (ApiError, httpx.HTTPError) as e:
            item.synced = False
            logger.warning("cart_add_not_persisted", app_id=item.app_id, error=str(e))
            self._fall_back_to_guest()
        else:
            item.synced = True
        return True

    async def remove(self, app_id: int) -> None:
        item = next((i for i in self.items if i.app_id == app_id), None)
        if item is None:
            return
        self.items.remove(item)
        if not self.api.is_authenticated:
            self.guest_store.save(self.app_ids)
            return
        if not item.synced:
            return
        try:
            await self.api.remove_from_cart(app_id)
        except ApiError as e:
            if e.status_code != 404:
                self._pending_removals.add(app_id)
                logger.warning("cart_remove_not_persisted", app_id=app_id, error=str(e))
                self._fall_back_to_guest()
        except httpx.HTTPError as e:
            self._pending_removals.add(app_id)
            logger.warning("cart_remove_not_persisted", app_id=app_id, error=str(e))

    async def clear(self) -> None:
        """
        Empty the cart.

        When the server cannot be reached, every cleared item is queued as a
        pending removal for ``sync()``.
        """
        cleared = self.app_ids
        self.items = []
        if not self.api.is_authenticated:
            self._pending_removals.clear()
            self.guest_store.clear()
            return
        try:
            await self.api.clear_cart()
        except (ApiError, httpx.HTTPError) as e:
            self._pending_removals.update(cleared)
            logger.warning("cart_clear_not_persisted", count=len(cleared), error=str(e))
            if not self.api.is_authenticated:
                self.guest_store.clear()
        else:
            self._pending_removals.clear()

    async def sync(self) -> list[int]:
        """
        Retry persistence of unsynced changes.

        Items the server rejects permanently (unknown, owned, missing DLC
        base) are dropped locally. Returns the dropped app ids. When signed
        out, unsynced items move to the guest store instead.
        """
        if not self.api.is_authenticated:
            if self.unsynced:
                self._fall_back_to_guest()
            return []
        dropped: list[int] = []
        for item in [i for i in self.items if not i.synced]:
            try:
                await self.api.add_to_cart(item.app_id)
            except ApiError as e:
                if e.is_permanent:
                    self.items.remove(item)
                    dropped.append(item.app_id)
                    logger.info("cart_item_dropped", app_id=item.app_id, status=e.status_code)
                else:
                    logger.warning("cart_sync_failed", app_id=item.app_id, error=str(e))
            except httpx.HTTPError as e:
                logger.warning("cart_sync_failed", app_id=item.app_id, error=str(e))
            else:
                item.synced = True

        for app_id in sorted(self._pending_removals):
            try:
                await self.api.remove_from_cart(app_id)
            except ApiError as e:
                if e.status_code == 404:
                    self._pending_removals.discard(app_id)
            except httpx.HTTPError as e:
                logger.warning("cart_sync_failed", app_id=app_id, error=str(e))
            else:
                self._pending_removals.discard(app_id)
        return dropped

    async def merge_guest_cart(self) -> bool:
        """
        Push the guest cart into the server cart after login.

        On a network or server failure the guest cart stays in place (and in
        the store) and False is returned.
        """
        guest_ids = self.guest_store.load()
        try:
            data = await self.api.merge_cart(guest_ids)
        except (ApiError, httpx.HTTPError) as e:
            logger.warning("cart_merge_failed", count=len(guest_ids), error=str(e))
            self.items = [CartItem(app_id=app_id, synced=False) for app_id in guest_ids]
            return False
        self.items = [CartItem.from_api(item) for item in data["items"]]
        self.guest_store.clear()
        logger.info("cart_merged", guest=len(guest_ids), total=len(self.items))
        return True

    async def login(self, login: str, password: str) -> dict[str, Any]:
        """Sign in and fold the guest cart into the account."""
        data = await self.api.login(login, password)
        await self.merge_guest_cart()
        return data

"""Client cart: guest persistence, optimistic updates, sync and merge on login."""

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio

from vapor.client.api import VaporClient
from vapor.client.cart import CartItem, CartState
from vapor.client.guest_store import GuestCartStore
from vapor.main import create_app


class TestGuestCartStore:
    def test_missing_file_is_empty(self, tmp_path):
        assert GuestCartStore(tmp_path / "cart.json").load() == []

    def test_save_and_load(self, tmp_path):
        store = GuestCartStore(tmp_path / "nested" / "cart.json")
        store.save([3, 1, 2])
        assert store.load() == [3, 1, 2]
        assert json.loads(store.path.read_text()) == {"app_ids": [3, 1, 2]}
        assert [p.name for p in store.path.parent.iterdir()] == ["cart.json"]

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "cart.json"
        path.write_text("{not json")
        assert GuestCartStore(path).load() == []

    @pytest.mark.parametrize("content", ["[1, 2]", "{\"app_ids\": [\"x\"]}", "{\"app_ids\": 3}", "{}"])
    def test_malformed_payload(self, tmp_path, content):
        path = tmp_path / "cart.json"
        path.write_text(content)
        assert GuestCartStore(path).load() == []

    def test_clear(self, tmp_path):
        store = GuestCartStore(tmp_path / "cart.json")
        store.save([1])
        store.clear()
        store.clear()
        assert not store.path.exists()


class FlakyCartServer:
    """In-memory cart endpoint that can be switched offline."""

    def __init__(self) -> None:
        self.cart: list[int] = []
        self.offline = False
        self.rejected: dict[int, int] = {}
        self.revoked = False

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.offline:
            raise httpx.ConnectError("offline", request=request)
        path = request.url.path
        if path == "/api/v1/auth/login":
            return httpx.Response(200, json={"access_token": "a", "refresh_token": "r", "user": {"id": 1}})
        if path == "/api/v1/auth/refresh" or self.revoked:
            return httpx.Response(401, json={"detail": "Refresh token has been revoked"})
        if path == "/api/v1/cart/add":
            app_id = json.loads(request.content)["app_id"]
            if app_id in self.rejected:
                return httpx.Response(self.rejected[app_id], json={"detail": "rejected"})
            if app_id not in self.cart:
                self.cart.append(app_id)
            return httpx.Response(200, json={"added": True, "item_count": len(self.cart)})
        if path == "/api/v1/cart/merge":
            for app_id in json.loads(request.content)["app_ids"]:
                if app_id not in self.cart:
                    self.cart.append(app_id)
            return self._cart()
        if path == "/api/v1/cart" and request.method == "GET":
            return self._cart()
        if path == "/api/v1/cart" and request.method == "DELETE":
            self.cart.clear()
            return httpx.Response(200, json={"detail": "Cart cleared"})
        if path.startswith("/api/v1/cart/") and request.method == "DELETE":
            app_id = int(path.rsplit("/", 1)[1])
            if app_id not in self.cart:
                return httpx.Response(404, json={"detail": "App is not in your cart."})
            self.cart.remove(app_id)
            return httpx.Response(200, json={"detail": "Removed"})
        return httpx.Response(404, json={"detail": "Not Found"})

    def _cart(self) -> httpx.Response:
        items = [{"app_id": i, "app_name": f"App {i}", "price": "5.00"} for i in self.cart]
        return httpx.Response(200, json={"items": items, "total": str(5 * len(items))})


@pytest.fixture
def server() -> FlakyCartServer:
    return FlakyCartServer()


@pytest_asyncio.fixture
async def cart(server: FlakyCartServer, tmp_path):
    api = VaporClient("http://vapor.test", transport=httpx.MockTransport(server))
    yield CartState(api, GuestCartStore(tmp_path / "cart.json"))
    await api.aclose()


class TestGuestCart:
    async def test_guest_changes_are_saved_locally(self, cart: CartState, server: FlakyCartServer):
        assert await cart.add(CartItem(app_id=1, price="5.00"))
        assert not await cart.add(CartItem(app_id=1))
        await cart.add(CartItem(app_id=2, price="Free"))
        await cart.remove(1)

        assert cart.guest_store.load() == [2]
        assert server.cart == []
        assert cart.total == Decimal("0")

    async def test_load_from_store(self, cart: CartState):
        cart.guest_store.save([4, 5])
        await cart.load()
        assert cart.app_ids == [4, 5]


class TestSignedInCart:
    async def test_optimistic_add_survives_outage(self, cart: CartState, server: FlakyCartServer):
        await cart.api.login("alice", "x")
        server.offline = True
        assert await cart.add(CartItem(app_id=7, price="5.00"))
        assert 7 in cart
        assert cart.unsynced == [7]

        server.offline = False
        assert await cart.sync() == []
        assert cart.unsynced == []
        assert server.cart == [7]

    async def test_sync_drops_permanently_rejected_items(self, cart: CartState, server: FlakyCartServer):
        await cart.api.login("alice", "x")
        server.rejected[8] = 409
        await cart.add(CartItem(app_id=8))
        assert cart.unsynced == [8]

        assert await cart.sync() == [8]
        assert 8 not in cart

    async def test_transient_rejection_is_retried(self, cart: CartState, server: FlakyCartServer):
        await cart.api.login("alice", "x")
        server.rejected[9] = 503
        await cart.add(CartItem(app_id=9))
        assert await cart.sync() == []
        assert cart.unsynced == [9]

    async def test_removal_retried_after_outage(self, cart: CartState, server: FlakyCartServer):
        await cart.api.login("alice", "x")
        await cart.add(CartItem(app_id=3))
        server.offline = True
        await cart.remove(3)
        assert 3 not in cart
        assert server.cart == [3]

        server.offline = False
        await cart.sync()
        assert server.cart == []

    async def test_remove_unsynced_item_needs_no_request(self, cart: CartState, server: FlakyCartServer):
        await cart.api.login("alice", "x")
        server.offline = True
        await cart.add(CartItem(app_id=3))
        await cart.remove(3)
        server.offline = False
        await cart.sync()
        assert server.cart == []

    async def test_clear_retried_after_outage(self, cart: CartState, server: FlakyCartServer):
        await cart.api.login("alice", "x")
        await cart.add(CartItem(app_id=3))
        await cart.add(CartItem(app_id=4))
        server.offline = True
        await cart.clear()
        assert len(cart) == 0
        assert server.cart == [3, 4]

        server.offline = False
        await cart.add(CartItem(app_id=4))
        await cart.sync()
        assert server.cart == [4]
        assert cart.app_ids == [4]

    async def test_rejected_session_keeps_cart_as_guest(self, cart: CartState, server: FlakyCartServer):
        await cart.api.login("alice", "x")
        await cart.add(CartItem(app_id=1))
        server.revoked = True

        assert await cart.add(CartItem(app_id=9))
        assert not cart.api.is_authenticated
        assert cart.unsynced == []
        assert cart.guest_store.load() == [1, 9]
        assert await cart.sync() == []

        server.revoked = False
        await cart.login("alice", "x")
        assert server.cart == [1, 9]
        assert cart.app_ids == [1, 9]
        assert not cart.guest_store.path.exists()


class TestMergeOnLogin:
    async def test_merge_replaces_with_server_cart(self, cart: CartState, server: FlakyCartServer):
        server.cart = [1]
        await cart.add(CartItem(app_id=1))
        await cart.add(CartItem(app_id=2))

        await cart.login("alice", "x")
        assert cart.app_ids == [1, 2]
        assert cart.items[1].app_name == "App 2"
        assert not cart.guest_store.path.exists()

    async def test_merge_failure_keeps_guest_cart(self, cart: CartState, server: FlakyCartServer):
        await cart.add(CartItem(app_id=1))
        await cart.api.login("alice", "x")
        server.offline = True

        assert not await cart.merge_guest_cart()
        assert cart.app_ids == [1]
        assert cart.unsynced == [1]
        assert cart.guest_store.load() == [1]

        server.offline = False
        await cart.sync()
        assert server.cart == [1]


class TestAgainstApi:
    async def test_guest_cart_merged_into_account(self, client, user, catalog, tmp_path):
        transport = httpx.ASGITransport(app=create_app())
        async with VaporClient("http://test", transport=transport) as api:
            cart = CartState(api, GuestCartStore(tmp_path / "guest.json"))
            await cart.add(CartItem(app_id=catalog["hollow"].id))
            await cart.add(CartItem(app_id=catalog["racer"].id))

            await cart.login("alice", "SecureP@ss1")
            assert sorted(i.app_name for i in cart.items) == ["Hollow Depths", "Neon Racer"]
            assert cart.total == Decimal("29.98")

            receipt = await api.purchase()
            assert Decimal(receipt["wallet"]) == Decimal("70.02")
            await cart.load()
            assert len(cart) == 0

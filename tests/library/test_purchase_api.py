"""Wallet checkout, points, free claims, library and purchase history."""

from __future__ import annotations

from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.db.models import App, AppLibrary, CartItem, PurchaseHistory, User, Wishlist


async def _fill_cart(client: AsyncClient, *app_ids: int) -> None:
    for app_id in app_ids:
        response = await client.post("/api/v1/cart/add", json={"app_id": app_id})
        assert response.status_code == 200


async def _purchase(client: AsyncClient, points: int = 0):
    return await client.post("/api/v1/store/purchase", json={"points_to_use": points})


async def _reload_user(db: AsyncSession, user: User) -> User:
    await db.refresh(user)
    return user


class TestWalletPurchase:
    async def test_purchase_debits_wallet_and_awards_points(
        self, authed_client: AsyncClient, db_session: AsyncSession, user, catalog, mock_email_service
    ):
        await _fill_cart(authed_client, catalog["hollow"].id, catalog["racer"].id)
        response = await _purchase(authed_client)
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["total"]) == Decimal("29.98")
        assert Decimal(data["wallet"]) == Decimal("70.02")
        assert data["points_awarded"] == 29
        assert data["points"] == 29

        user = await _reload_user(db_session, user)
        assert user.wallet == Decimal("70.02")

        owned = (await db_session.execute(
            select(AppLibrary.app_id).where(AppLibrary.user_id == user.id)
        )).scalars().all()
        assert set(owned) == {catalog["hollow"].id, catalog["racer"].id}

        cart_left = (await db_session.execute(
            select(func.count()).select_from(CartItem).where(CartItem.user_id == user.id)
        )).scalar_one()
        assert cart_left == 0

        templates = [c.kwargs["template_name"] for c in mock_email_service.send_template.call_args_list]
        assert "purchase_invoice" in templates

    async def test_history_rows_carry_running_balance(
        self, authed_client: AsyncClient, db_session: AsyncSession, user, catalog
    ):
        await _fill_cart(authed_client, catalog["hollow"].id, catalog["racer"].id)
        await _purchase(authed_client)

        rows = (await db_session.execute(
            select(PurchaseHistory).where(PurchaseHistory.user_id == user.id).order_by(PurchaseHistory.id)
        )).scalars().all()
        assert [r.payment_method for r in rows] == ["Wallet", "Wallet"]
        assert [r.wallet_change for r in rows] == [Decimal("-19.99"), Decimal("-9.99")]
        assert rows[-1].wallet_balance_after == Decimal("70.02")

    async def test_purchase_count_incremented(self, authed_client: AsyncClient, db_session: AsyncSession, catalog):
        await _fill_cart(authed_client, catalog["racer"].id)
        await _purchase(authed_client)
        count = (await db_session.execute(
            select(App.purchase_count).where(App.id == catalog["racer"].id)
        )).scalar_one()
        assert count == 11

    async def test_points_discount(self, client: AsyncClient, factory, db_session: AsyncSession, catalog):
        buyer = await factory.user("richy", wallet="100.00", points=300)
        client.headers.update(factory.headers(buyer))
        await _fill_cart(client, catalog["hollow"].id)

        response = await _purchase(client, 250)
        assert response.status_code == 200
        data = response.json()
        assert Decimal(data["subtotal"]) == Decimal("19.99")
        assert Decimal(data["total"]) == Decimal("14.99")
        assert data["points_used"] == 250
        assert data["points_awarded"] == 0
        assert data["points"] == 50

    async def test_invalid_discount(self, client: AsyncClient, factory, catalog):
        buyer = await factory.user("richy", wallet="100.00", points=300)
        client.headers.update(factory.headers(buyer))
        await _fill_cart(client, catalog["hollow"].id)
        response = await _purchase(client, 150)
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid discount attempt."

    async def test_not_enough_points(self, authed_client: AsyncClient, catalog):
        await _fill_cart(authed_client, catalog["hollow"].id)
        response = await _purchase(authed_client, 100)
        assert response.status_code == 400
        assert response.json()["detail"] == "Not enough points."

    async def test_empty_cart(self, authed_client: AsyncClient):
        response = await _purchase(authed_client)
        assert response.status_code == 400
        assert response.json()["detail"] == "Cart is empty."

    async def test_insufficient_funds_changes_nothing(
        self, client: AsyncClient, factory, db_session: AsyncSession, catalog
    ):
        buyer = await factory.user("poorly", wallet="5.00")
        client.headers.update(factory.headers(buyer))
        await _fill_cart(client, catalog["hollow"].id)

        response = await _purchase(client)
        assert response.status_code == 400
        assert response.json()["detail"] == "Insufficient wallet balance."

        buyer = await _reload_user(db_session, buyer)
        assert buyer.wallet == Decimal("5.00")
        assert buyer.points == 0
        history = (await db_session.execute(
            select(func.count()).select_from(PurchaseHistory).where(PurchaseHistory.user_id == buyer.id)
        )).scalar_one()
        assert history == 0
        cart = (await client.get("/api/v1/cart")).json()
        assert len(cart["items"]) == 1

    async def test_purchase_removes_wishlist_entries(
        self, authed_client: AsyncClient, db_session: AsyncSession, user, catalog
    ):
        for app in (catalog["racer"], catalog["hollow"]):
            await authed_client.post("/api/v1/wishlist", json={"app_id": app.id})
        await _fill_cart(authed_client, catalog["racer"].id)
        await _purchase(authed_client)

        rows = (await db_session.execute(
            select(Wishlist.app_id, Wishlist.priority).where(Wishlist.user_id == user.id)
        )).all()
        assert rows == [(catalog["hollow"].id, 1)]

    async def test_invoice_failure_keeps_purchase(self, authed_client: AsyncClient, catalog, mock_email_service):
        mock_email_service.send_template.side_effect = RuntimeError("smtp down")
        await _fill_cart(authed_client, catalog["racer"].id)
        response = await _purchase(authed_client)
        assert response.status_code == 200


class TestFreeClaim:
    async def test_claim_free_app(self, authed_client: AsyncClient, db_session: AsyncSession, user, catalog):
        response = await authed_client.post(f"/api/v1/store/free/{catalog['free'].id}")
        assert response.status_code == 200
        assert response.json()["app_name"] == "Free Arena"

        row = (await db_session.execute(
            select(PurchaseHistory).where(PurchaseHistory.user_id == user.id)
        )).scalar_one()
        assert row.payment_method == "Free"
        assert row.wallet_change is None

    async def test_claim_paid_app(self, authed_client: AsyncClient, catalog):
        response = await authed_client.post(f"/api/v1/store/free/{catalog['racer'].id}")
        assert response.status_code == 400
        assert response.json()["detail"] == "This app is not free."

    async def test_claim_twice(self, authed_client: AsyncClient, catalog):
        await authed_client.post(f"/api/v1/store/free/{catalog['free'].id}")
        response = await authed_client.post(f"/api/v1/store/free/{catalog['free'].id}")
        assert response.status_code == 409


class TestLibrary:
    async def test_library_groups_related_apps(self, authed_client: AsyncClient, factory, user, catalog):
        await factory.give(user, catalog["hollow"])
        await factory.give(user, catalog["dlc"])

        response = await authed_client.get("/api/v1/store/library")
        assert response.status_code == 200
        apps = response.json()["apps"]
        assert [a["app_name"] for a in apps] == ["Hollow Depths"]
        related = {r["app_name"]: r["is_owned"] for r in apps[0]["related"]}
        assert related == {"Hollow Depths: Abyss": True, "Hollow Depths Soundtrack": False}

    async def test_public_library(self, client: AsyncClient, factory, user, catalog):
        await factory.give(user, catalog["racer"])
        response = await client.get("/api/v1/store/library/alice")
        assert response.status_code == 200
        assert response.json()["username"] == "alice"
        assert [a["app_name"] for a in response.json()["apps"]] == ["Neon Racer"]

    async def test_public_library_unknown_user(self, client: AsyncClient):
        response = await client.get("/api/v1/store/library/nobody")
        assert response.status_code == 404

    async def test_purchase_history_newest_first(self, authed_client: AsyncClient, catalog):
        await _fill_cart(authed_client, catalog["racer"].id)
        await _purchase(authed_client)
        await authed_client.post(f"/api/v1/store/free/{catalog['free'].id}")

        history = (await authed_client.get("/api/v1/store/purchase-history")).json()
        assert [h["app_name"] for h in history] == ["Free Arena", "Neon Racer"]
        assert Decimal(history[1]["wallet_balance_after"]) == Decimal("90.01")

"""Store listing, details, related apps, genres and search."""

from __future__ import annotations

from decimal import Decimal

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.db.models import AppImage, AppVideo, Developer


class TestStoreListing:
    async def test_first_page(self, client: AsyncClient, catalog):
        response = await client.get("/api/v1/apps", params={"limit": 4})
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 6
        assert data["limit"] == 4
        assert [a["app_name"] for a in data["items"]] == [
            "Hollow Depths", "Neon Racer", "Free Arena", "Hollow Depths: Abyss",
        ]

    async def test_second_page(self, client: AsyncClient, catalog):
        data = (await client.get("/api/v1/apps", params={"page": 2, "limit": 4})).json()
        assert len(data["items"]) == 2

    async def test_default_page_size(self, client: AsyncClient, catalog):
        data = (await client.get("/api/v1/apps")).json()
        assert data["limit"] == 21

    async def test_price_labels(self, client: AsyncClient, catalog):
        items = {a["app_name"]: a for a in (await client.get("/api/v1/apps")).json()["items"]}
        assert items["Free Arena"]["price_label"] == "Free"
        assert items["Free Arena"]["is_free"] is True
        assert items["Neon Racer"]["price_label"] == "9.99"
        assert items["Hollow Depths"]["header_image"].endswith("Hollow Depths.jpg")


class TestTopSellers:
    async def test_games_by_purchase_count(self, client: AsyncClient, catalog):
        response = await client.get("/api/v1/apps/top")
        assert response.status_code == 200
        names = [a["app_name"] for a in response.json()]
        assert names == ["Hollow Depths", "Neon Racer", "Free Arena"]


class TestAppDetails:
    async def test_details(self, client: AsyncClient, db_session: AsyncSession, catalog):
        hollow = catalog["hollow"]
        db_session.add_all([
            AppImage(app_id=hollow.id, image_url="https://cdn.example.com/s1.jpg",
                     thumbnail_url="https://cdn.example.com/s1_t.jpg", image_type="screenshot"),
            AppVideo(app_id=hollow.id, video_url="https://cdn.example.com/t.mp4", thumbnail_url="t.jpg"),
        ])
        await db_session.commit()

        response = await client.get(f"/api/v1/apps/{hollow.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["app_name"] == "Hollow Depths"
        assert Decimal(data["price"]) == Decimal("19.99")
        assert data["genres"] == ["Action", "RPG"]
        assert data["app_type_name"] == "Game"
        assert len(data["screenshots"]) == 1
        assert data["videos"][0]["video_url"].endswith("t.mp4")

    async def test_developers_listed(self, client: AsyncClient, db_session: AsyncSession, catalog):
        from sqlalchemy import select
        from sqlalchemy.orm import selectinload

        from vapor.db.models import App

        app = (await db_session.execute(
            select(App).options(selectinload(App.developers)).where(App.id == catalog["racer"].id)
        )).scalar_one()
        app.developers.append(Developer(name="Neon Works"))
        await db_session.commit()

        data = (await client.get(f"/api/v1/apps/{catalog['racer'].id}")).json()
        assert data["developers"] == ["Neon Works"]

    async def test_not_found(self, client: AsyncClient):
        response = await client.get("/api/v1/apps/9999")
        assert response.status_code == 404
        assert response.json()["detail"] == "App not found."


class TestRelatedAndGenres:
    async def test_related_apps(self, client: AsyncClient, catalog):
        response = await client.get(f"/api/v1/apps/related/{catalog['hollow'].id}")
        assert response.status_code == 200
        types = {a["app_name"]: a["app_type_name"] for a in response.json()}
        assert types == {
            "Hollow Depths: Abyss": "DLC",
            "Hollow Depths Demo": "Demo",
            "Hollow Depths Soundtrack": "Soundtrack",
        }

    async def test_genres(self, client: AsyncClient, catalog):
        response = await client.get("/api/v1/apps/genres")
        assert response.json()["genres"] == ["Action", "RPG"]


class TestSearch:
    async def test_name_substring_case_insensitive(self, client: AsyncClient, catalog):
        names = [a["app_name"] for a in (await client.get("/api/v1/apps/search", params={"query": "HOLLOW"})).json()]
        assert set(names) == {
            "Hollow Depths", "Hollow Depths: Abyss", "Hollow Depths Soundtrack", "Hollow Depths Demo",
        }

    async def test_free_only(self, client: AsyncClient, catalog):
        names = [a["app_name"] for a in (await client.get("/api/v1/apps/search", params={"is_free": "true"})).json()]
        assert set(names) == {"Free Arena", "Hollow Depths Demo"}

    async def test_paid_only(self, client: AsyncClient, catalog):
        data = (await client.get("/api/v1/apps/search", params={"is_free": "false"})).json()
        assert all(not a["is_free"] for a in data)
        assert len(data) == 4

    async def test_all_genres_must_match(self, client: AsyncClient, catalog):
        response = await client.get("/api/v1/apps/search", params=[("genres", "action"), ("genres", "RPG")])
        assert [a["app_name"] for a in response.json()] == ["Hollow Depths"]

    async def test_price_ascending_skips_free(self, client: AsyncClient, catalog):
        data = (await client.get("/api/v1/apps/search", params={"price_sort": "asc"})).json()
        prices = [Decimal(a["price"]) for a in data]
        assert prices == sorted(prices)
        assert Decimal("0") not in prices

    async def test_price_descending(self, client: AsyncClient, catalog):
        data = (await client.get("/api/v1/apps/search", params={"price_sort": "desc"})).json()
        assert data[0]["app_name"] == "Hollow Depths"

    async def test_invalid_sort(self, client: AsyncClient, catalog):
        response = await client.get("/api/v1/apps/search", params={"price_sort": "sideways"})
        assert response.status_code == 422

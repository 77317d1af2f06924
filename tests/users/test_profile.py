"""Profile, email change, password, username and Google unlink."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

PASSWORD = "SecureP@ss1"


class TestProfile:
    async def test_me_includes_wallet_and_points(self, authed_client: AsyncClient):
        response = await authed_client.get("/api/v1/users/me")
        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "alice"
        assert data["points"] == 0
        assert data["has_password"] is True

    async def test_update_display_name(self, authed_client: AsyncClient):
        response = await authed_client.patch("/api/v1/users/me", json={"display_name": "Alice W"})
        assert response.status_code == 200
        assert response.json()["display_name"] == "Alice W"

    async def test_invalid_display_name(self, authed_client: AsyncClient):
        response = await authed_client.patch("/api/v1/users/me", json={"display_name": "!!"})
        assert response.status_code == 400

    async def test_public_profile(self, client: AsyncClient, user):
        response = await client.get("/api/v1/users/alice")
        assert response.status_code == 200
        data = response.json()
        assert data["username"] == "alice"
        assert "email" not in data

    async def test_public_profile_not_found(self, client: AsyncClient):
        response = await client.get("/api/v1/users/nobody")
        assert response.status_code == 404


class TestEmailChange:
    async def test_change_flow(self, authed_client: AsyncClient, mock_email_service):
        response = await authed_client.post("/api/v1/users/me/email-change", json={"new_email": "new@example.com"})
        assert response.status_code == 200

        url = mock_email_service.send_template.call_args.kwargs["context"]["confirm_url"]
        token = parse_qs(urlparse(url).query)["token"][0]
        response = await authed_client.post("/api/v1/users/confirm-email-change", json={"token": token})
        assert response.status_code == 200
        assert response.json()["email"] == "new@example.com"

    async def test_email_in_use(self, authed_client: AsyncClient, other_user):
        response = await authed_client.post(
            "/api/v1/users/me/email-change", json={"new_email": "bobby@example.com"}
        )
        assert response.status_code == 409

    async def test_same_email(self, authed_client: AsyncClient):
        response = await authed_client.post(
            "/api/v1/users/me/email-change", json={"new_email": "alice@example.com"}
        )
        assert response.status_code == 400


class TestPasswordAndUsername:
    async def test_change_password(self, authed_client: AsyncClient, mock_email_service):
        response = await authed_client.put("/api/v1/users/me/password", json={
            "current_password": PASSWORD,
            "new_password": "An0ther!Pass",
        })
        assert response.status_code == 200
        templates = [c.kwargs["template_name"] for c in mock_email_service.send_template.call_args_list]
        assert "password_changed" in templates

    async def test_change_password_wrong_current(self, authed_client: AsyncClient):
        response = await authed_client.put("/api/v1/users/me/password", json={
            "current_password": "WrongP@ss1",
            "new_password": "An0ther!Pass",
        })
        assert response.status_code == 401

    async def test_change_username(self, authed_client: AsyncClient):
        response = await authed_client.put("/api/v1/users/me/username", json={"new_username": "alicia"})
        assert response.status_code == 200
        assert response.json()["username"] == "alicia"

    async def test_username_taken(self, authed_client: AsyncClient, other_user):
        response = await authed_client.put("/api/v1/users/me/username", json={"new_username": "bobby"})
        assert response.status_code == 409


class TestGoogleUnlink:
    async def test_not_linked(self, authed_client: AsyncClient):
        response = await authed_client.post("/api/v1/users/me/unlink-google")
        assert response.status_code == 400

    async def test_unlink_requires_password(self, authed_client: AsyncClient, db_session: AsyncSession, user):
        user.google_id = "google-123"
        user.is_google_authenticated = True
        user.password_hash = None
        await db_session.commit()

        response = await authed_client.post("/api/v1/users/me/unlink-google")
        assert response.status_code == 400
        assert "password" in response.json()["detail"].lower()

    async def test_unlink(self, authed_client: AsyncClient, db_session: AsyncSession, user):
        user.google_id = "google-123"
        user.is_google_authenticated = True
        await db_session.commit()

        response = await authed_client.post("/api/v1/users/me/unlink-google")
        assert response.status_code == 200
        assert response.json()["is_google_linked"] is False

"""Google sign-in: token verification, account linking and creation."""

from __future__ import annotations

import httpx
import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.google import GoogleTokenVerifier, set_google_verifier
from vapor.db.models import User

CLIENT_ID = "vapor-web.apps.googleusercontent.com"


class FakeTokenInfo:
    """Answers tokeninfo lookups from a table of known ID tokens."""

    def __init__(self) -> None:
        self.tokens: dict[str, dict[str, str]] = {}
        self.down = False

    def add(self, token: str, sub: str, email: str, name: str | None = None, **overrides: str) -> None:
        claims = {
            "iss": "https://accounts.google.com",
            "aud": CLIENT_ID,
            "sub": sub,
            "email": email,
            "email_verified": "true",
        }
        if name:
            claims["name"] = name
        claims.update(overrides)
        self.tokens[token] = claims

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.down:
            return httpx.Response(503, text="unavailable")
        claims = self.tokens.get(request.url.params["id_token"])
        if claims is None:
            return httpx.Response(400, json={"error": "invalid_token"})
        return httpx.Response(200, json=claims)


@pytest.fixture
def google(client: AsyncClient) -> FakeTokenInfo:
    fake = FakeTokenInfo()
    set_google_verifier(GoogleTokenVerifier(CLIENT_ID, "https://google.test/tokeninfo", transport=httpx.MockTransport(fake)))
    return fake


async def _google_login(client: AsyncClient, token: str) -> httpx.Response:
    return await client.post("/api/v1/auth/google", json={"id_token": token})


def _sent_templates(mock_email_service) -> list[str]:
    return [c.kwargs["template_name"] for c in mock_email_service.send_template.call_args_list]


class TestGoogleAccountCreation:
    async def test_creates_verified_account_without_password(
        self, client: AsyncClient, google: FakeTokenInfo, mock_email_service
    ):
        google.add("tok-new", "g-100", "newbie@example.com", "New Player")
        response = await _google_login(client, "tok-new")
        assert response.status_code == 200

        body = response.json()
        assert body["access_token"]
        assert body["user"]["username"] == "newbie"
        assert body["user"]["display_name"] == "New Player"
        assert body["user"]["is_email_verified"] is True
        assert body["user"]["is_google_linked"] is True
        assert body["user"]["has_password"] is False
        assert _sent_templates(mock_email_service) == ["google_welcome"]

    async def test_taken_username_gets_numeric_suffix(self, client: AsyncClient, google: FakeTokenInfo, user, factory):
        await factory.user("alice1")

        google.add("tok-alice", "g-200", "alice@gmail.com")
        response = await _google_login(client, "tok-alice")
        assert response.status_code == 200
        assert response.json()["user"]["username"] == "alice2"

    async def test_email_prefix_is_made_a_valid_username(self, client: AsyncClient, google: FakeTokenInfo):
        google.add("tok-short", "g-300", "j.o@example.com")
        response = await _google_login(client, "tok-short")
        assert response.status_code == 200
        assert response.json()["user"]["username"] == "userjo"


class TestGoogleLinking:
    async def test_links_existing_account_by_email(
        self, client: AsyncClient, google: FakeTokenInfo, db_session: AsyncSession, user, mock_email_service
    ):
        google.add("tok-link", "g-400", "ALICE@example.com")
        response = await _google_login(client, "tok-link")
        assert response.status_code == 200
        assert response.json()["user"]["id"] == user.id
        assert response.json()["user"]["has_password"] is True
        assert _sent_templates(mock_email_service) == ["google_linked"]

        db_session.expunge_all()
        linked = (await db_session.execute(select(User).where(User.id == user.id))).scalar_one()
        assert linked.google_id == "g-400"
        assert linked.is_google_authenticated is True

    async def test_google_id_wins_over_email(
        self, client: AsyncClient, google: FakeTokenInfo, user, mock_email_service
    ):
        google.add("tok-first", "g-500", "alice@example.com")
        google.add("tok-later", "g-500", "alice.new@example.com")
        await _google_login(client, "tok-first")
        mock_email_service.send_template.reset_mock()

        response = await _google_login(client, "tok-later")
        assert response.status_code == 200
        assert response.json()["user"]["id"] == user.id
        assert _sent_templates(mock_email_service) == []

    async def test_linked_account_can_unlink_with_password(self, client: AsyncClient, google: FakeTokenInfo, user):
        google.add("tok-link", "g-600", "alice@example.com")
        token = (await _google_login(client, "tok-link")).json()["access_token"]
        response = await client.post(
            "/api/v1/users/me/unlink-google", headers={"Authorization": f"Bearer {token}"}
        )
        assert response.status_code == 200
        assert response.json()["is_google_linked"] is False


class TestGoogleTokenRejection:
    async def test_unknown_token(self, client: AsyncClient, google: FakeTokenInfo):
        response = await _google_login(client, "forged")
        assert response.status_code == 401
        assert response.json()["detail"] == "Invalid Google token"

    async def test_token_for_another_client(self, client: AsyncClient, google: FakeTokenInfo):
        google.add("tok-other", "g-700", "eve@example.com", aud="someone-else")
        response = await _google_login(client, "tok-other")
        assert response.status_code == 401

    async def test_unverified_google_email(self, client: AsyncClient, google: FakeTokenInfo):
        google.add("tok-unverified", "g-800", "eve@example.com", email_verified="false")
        response = await _google_login(client, "tok-unverified")
        assert response.status_code == 401
        assert response.json()["detail"] == "Google account has no verified email"

    async def test_google_unavailable(self, client: AsyncClient, google: FakeTokenInfo):
        google.down = True
        response = await _google_login(client, "tok-any")
        assert response.status_code == 502

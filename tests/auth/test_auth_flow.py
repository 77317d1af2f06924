"""Registration, verification, login and token rotation."""

from __future__ import annotations

from urllib.parse import parse_qs, urlparse

from httpx import AsyncClient

PASSWORD = "SecureP@ss1"


def _token_from_email(mock_email_service, template: str, url_key: str) -> str:
    for call in mock_email_service.send_template.call_args_list:
        if call.kwargs["template_name"] == template:
            url = call.kwargs["context"][url_key]
            return parse_qs(urlparse(url).query)["token"][0]
    raise AssertionError(f"no {template} email sent")


async def _register(client: AsyncClient, username: str = "carol", email: str = "carol@example.com"):
    return await client.post("/api/v1/auth/register", json={
        "username": username,
        "display_name": "Carol",
        "email": email,
        "password": PASSWORD,
    })


class TestRegistration:
    async def test_register_sends_verification(self, client: AsyncClient, mock_email_service):
        response = await _register(client)
        assert response.status_code == 201
        data = response.json()
        assert data["username"] == "carol"
        assert data["is_email_verified"] is False
        assert data["role"] == "User"
        mock_email_service.send_template.assert_awaited()

    async def test_duplicate_username(self, client: AsyncClient):
        await _register(client)
        response = await _register(client, email="other@example.com")
        assert response.status_code == 409
        assert response.json()["detail"] == "Username already taken"

    async def test_duplicate_email(self, client: AsyncClient):
        await _register(client)
        response = await _register(client, username="carolyn")
        assert response.status_code == 409
        assert response.json()["detail"] == "Email already registered"

    async def test_weak_password(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/register", json={
            "username": "carol",
            "display_name": "Carol",
            "email": "carol@example.com",
            "password": "weak",
        })
        assert response.status_code == 400

    async def test_invalid_username(self, client: AsyncClient):
        response = await _register(client, username="ab1")
        assert response.status_code == 400


class TestLogin:
    async def test_unverified_login_rejected(self, client: AsyncClient):
        await _register(client)
        response = await client.post("/api/v1/auth/login", json={"login": "carol", "password": PASSWORD})
        assert response.status_code == 403
        assert "verify" in response.json()["detail"].lower()

    async def test_verify_then_login(self, client: AsyncClient, mock_email_service):
        await _register(client)
        token = _token_from_email(mock_email_service, "verify_email", "verify_url")

        response = await client.post("/api/v1/auth/verify-email", json={"token": token})
        assert response.status_code == 200

        response = await client.post("/api/v1/auth/login", json={"login": "carol@example.com", "password": PASSWORD})
        assert response.status_code == 200
        data = response.json()
        assert data["token_type"] == "bearer"
        assert data["user"]["is_email_verified"] is True

    async def test_verification_token_single_use(self, client: AsyncClient, mock_email_service):
        await _register(client)
        token = _token_from_email(mock_email_service, "verify_email", "verify_url")
        await client.post("/api/v1/auth/verify-email", json={"token": token})
        response = await client.post("/api/v1/auth/verify-email", json={"token": token})
        assert response.status_code == 400

    async def test_wrong_password(self, client: AsyncClient, user):
        response = await client.post("/api/v1/auth/login", json={"login": "alice", "password": "WrongP@ss1"})
        assert response.status_code == 401

    async def test_unknown_user(self, client: AsyncClient):
        response = await client.post("/api/v1/auth/login", json={"login": "nobody", "password": PASSWORD})
        assert response.status_code == 401


class TestTokens:
    async def _login(self, client: AsyncClient) -> dict:
        response = await client.post("/api/v1/auth/login", json={"login": "alice", "password": PASSWORD})
        assert response.status_code == 200
        return response.json()

    async def test_access_token_reaches_protected_route(self, client: AsyncClient, user):
        tokens = await self._login(client)
        response = await client.get(
            "/api/v1/users/me", headers={"Authorization": f"Bearer {tokens['access_token']}"}
        )
        assert response.status_code == 200
        assert response.json()["username"] == "alice"

    async def test_missing_token(self, client: AsyncClient):
        response = await client.get("/api/v1/users/me")
        assert response.status_code in (401, 403)

    async def test_refresh_rotates(self, client: AsyncClient, user):
        tokens = await self._login(client)
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        assert response.json()["refresh_token"] != tokens["refresh_token"]

    async def test_refresh_reuse_revokes_all_sessions(self, client: AsyncClient, user):
        tokens = await self._login(client)
        rotated = (await client.post(
            "/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]}
        )).json()

        reuse = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert reuse.status_code == 401

        # The legitimately rotated token was revoked as well
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": rotated["refresh_token"]})
        assert response.status_code == 401

    async def test_logout_revokes_refresh_token(self, client: AsyncClient, user):
        tokens = await self._login(client)
        response = await client.post("/api/v1/auth/logout", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 200
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["refresh_token"]})
        assert response.status_code == 401

    async def test_access_token_rejected_as_refresh(self, client: AsyncClient, user):
        tokens = await self._login(client)
        response = await client.post("/api/v1/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert response.status_code == 401


class TestPasswordReset:
    async def test_forgot_password_unknown_email_is_silent(self, client: AsyncClient, mock_email_service):
        response = await client.post("/api/v1/auth/forgot-password", json={"email": "ghost@example.com"})
        assert response.status_code == 200
        mock_email_service.send_template.assert_not_awaited()

    async def test_reset_flow(self, client: AsyncClient, user, mock_email_service):
        await client.post("/api/v1/auth/forgot-password", json={"email": "alice@example.com"})
        token = _token_from_email(mock_email_service, "password_reset", "reset_url")

        response = await client.post(
            "/api/v1/auth/reset-password", json={"token": token, "new_password": "N3wP@ssword"}
        )
        assert response.status_code == 200

        old = await client.post("/api/v1/auth/login", json={"login": "alice", "password": PASSWORD})
        assert old.status_code == 401
        new = await client.post("/api/v1/auth/login", json={"login": "alice", "password": "N3wP@ssword"})
        assert new.status_code == 200


class TestAccountDeletion:
    async def test_wrong_password(self, authed_client: AsyncClient):
        response = await authed_client.request("DELETE", "/api/v1/auth/account", json={"password": "WrongP@ss1"})
        assert response.status_code == 401

    async def test_delete_account(self, authed_client: AsyncClient, mock_email_service):
        response = await authed_client.request("DELETE", "/api/v1/auth/account", json={"password": PASSWORD})
        assert response.status_code == 200
        response = await authed_client.get("/api/v1/users/me")
        assert response.status_code == 401
        templates = [c.kwargs["template_name"] for c in mock_email_service.send_template.call_args_list]
        assert "account_deleted" in templates

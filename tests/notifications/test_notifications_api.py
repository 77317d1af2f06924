"""Notification inbox endpoints."""

from __future__ import annotations

import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.notifications.service import create_notification

INBOX = "/api/v1/notifications"


@pytest_asyncio.fixture
async def inbox(db_session: AsyncSession, user, other_user) -> list[int]:
    ids = []
    for text in ("first", "second", "third"):
        n = await create_notification(db_session, user.id, text, sender_id=other_user.id)
        ids.append(n.id)
    await create_notification(db_session, other_user.id, "not yours")
    await db_session.commit()
    return ids


class TestNotifications:
    async def test_list_newest_first(self, authed_client: AsyncClient, inbox):
        response = await authed_client.get(INBOX)
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [n["message"] for n in data["notifications"]] == ["third", "second", "first"]
        assert all(n["is_read"] is False for n in data["notifications"])

    async def test_pagination(self, authed_client: AsyncClient, inbox):
        data = (await authed_client.get(INBOX, params={"page": 2, "per_page": 2})).json()
        assert [n["message"] for n in data["notifications"]] == ["first"]
        assert data["total"] == 3

    async def test_mark_read(self, authed_client: AsyncClient, inbox):
        response = await authed_client.post(f"{INBOX}/{inbox[0]}/read")
        assert response.status_code == 200
        count = (await authed_client.get(f"{INBOX}/unread-count")).json()
        assert count == {"unread_count": 2}

    async def test_mark_other_users_notification(self, client: AsyncClient, factory, inbox, other_user):
        response = await client.post(f"{INBOX}/{inbox[0]}/read", headers=factory.headers(other_user))
        assert response.status_code == 404

    async def test_mark_unknown(self, authed_client: AsyncClient):
        response = await authed_client.post(f"{INBOX}/9999/read")
        assert response.status_code == 404
        assert response.json()["detail"] == "Notification not found"

    async def test_read_all(self, authed_client: AsyncClient, inbox):
        response = await authed_client.post(f"{INBOX}/read-all")
        assert response.json()["detail"] == "Marked 3 notifications as read"
        assert (await authed_client.get(f"{INBOX}/unread-count")).json()["unread_count"] == 0

    async def test_clear(self, authed_client: AsyncClient, client: AsyncClient, factory, inbox, other_user):
        response = await authed_client.delete(INBOX)
        assert response.json()["detail"] == "Cleared 3 notifications"
        assert (await authed_client.get(INBOX)).json()["total"] == 0

        others = await client.get(INBOX, headers=factory.headers(other_user))
        assert others.json()["total"] == 1

    async def test_requires_auth(self, client: AsyncClient):
        response = await client.get(INBOX)
        assert response.status_code in (401, 403)

"""Tests for email service and templates."""

import json
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from vapor.config import Settings
from vapor.email.service import TEMPLATES, EmailService, ResendProvider, SMTPProvider, build_provider, render
from vapor.email.templates import (
    account_deleted,
    google_linked,
    google_welcome,
    password_reset,
    purchase_invoice,
    verify_email,
)


class TestEmailTemplates:
    def test_verify_email_returns_tuple(self):
        subject, html, text = verify_email("Alice", "https://example.com/verify-link")
        assert "verify" in subject.lower()
        assert "verify-link" in html
        assert "verify-link" in text
        assert "Alice" in html

    def test_password_reset_returns_tuple(self):
        subject, html, text = password_reset("https://example.com/reset-link")
        assert "password" in subject.lower()
        assert "reset-link" in html
        assert "reset-link" in text

    def test_display_name_is_escaped(self):
        _, html, _ = account_deleted("<script>")
        assert "<script>" not in html

    def test_purchase_invoice_lists_items(self):
        subject, html, text = purchase_invoice(
            "Alice",
            [{"app_name": "Hollow Depths", "price": Decimal("9.99")}],
            total=Decimal("9.99"),
            wallet_after=Decimal("90.01"),
            points_used=100,
        )
        assert "receipt" in subject.lower()
        assert "Hollow Depths" in html
        assert "9.99 EUR" in text
        assert "90.01 EUR" in text
        assert "Points redeemed: 100" in text

    def test_google_templates(self):
        subject, html, _ = google_linked("Alice")
        assert "google" in subject.lower()
        assert "Alice" in html

        _, html, text = google_welcome("New Player", "newbie")
        assert "newbie" in html
        assert "newbie" in text


class TestEmailService:
    def test_template_registry(self):
        for name in (
            "verify_email",
            "password_reset",
            "email_change",
            "password_changed",
            "account_deleted",
            "google_linked",
            "google_welcome",
            "purchase_invoice",
        ):
            assert name in TEMPLATES

    @pytest.mark.asyncio
    async def test_send_template_uses_provider(self):
        provider = MagicMock()
        provider.send = AsyncMock(return_value=True)
        service = EmailService(provider=provider)

        sent = await service.send_template(
            to="alice@example.com",
            template_name="password_changed",
            context={"display_name": "Alice"},
        )
        assert sent is True
        to, subject, _html, _text = provider.send.call_args.args
        assert to == "alice@example.com"
        assert "password" in subject.lower()

    @pytest.mark.asyncio
    async def test_unknown_template(self):
        service = EmailService(provider=MagicMock())
        with pytest.raises(ValueError, match="Unknown template"):
            await service.send_template(to="a@example.com", template_name="nope", context={})

    @pytest.mark.asyncio
    async def test_rate_limit_blocks_after_max(self):
        provider = MagicMock()
        provider.send = AsyncMock(return_value=True)
        redis = MagicMock()
        redis.incr = AsyncMock(side_effect=list(range(1, 10)))
        redis.expire = AsyncMock()
        service = EmailService(provider=provider, redis=redis)
        service.rate_limit_max = 2

        results = [await service.send_email("a@example.com", "s", "<p>h</p>", "t") for _ in range(3)]
        assert results == [True, True, False]
        assert provider.send.await_count == 2
        redis.expire.assert_awaited_once()

    def test_render_unknown_template(self):
        with pytest.raises(ValueError, match="Unknown template"):
            render("nope", {})


class TestProviders:
    def test_build_provider(self):
        assert isinstance(build_provider(Settings(email_provider="smtp")), SMTPProvider)
        assert isinstance(build_provider(Settings(email_provider="Resend")), ResendProvider)
        with pytest.raises(ValueError, match="Unsupported"):
            build_provider(Settings(email_provider="pigeon"))

    def test_smtp_message_has_both_parts(self):
        provider = SMTPProvider("localhost", 587, "noreply@vapor.store", "Vapor")
        message = provider.build_message("alice@example.com", "Hi", "<p>Hi</p>", "Hi")
        assert message["From"] == "Vapor <noreply@vapor.store>"
        assert [part.get_content_type() for part in message.iter_parts()] == ["text/plain", "text/html"]

    @pytest.mark.asyncio
    async def test_resend_payload(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"id": "em_1"})

        provider = ResendProvider(
            "re_key", "noreply@vapor.store", "Vapor", transport=httpx.MockTransport(handler)
        )
        assert await provider.send("alice@example.com", "Hi", "<p>Hi</p>", "Hi") is True
        assert seen["auth"] == "Bearer re_key"
        assert seen["body"]["to"] == ["alice@example.com"]

    @pytest.mark.asyncio
    async def test_resend_failure_returns_false(self):
        provider = ResendProvider(
            "re_key", "a@b.c", "Vapor", transport=httpx.MockTransport(lambda r: httpx.Response(500))
        )
        assert await provider.send("alice@example.com", "Hi", "<p>Hi</p>", "Hi") is False

"""
Transactional email delivery.

``EmailService`` renders a named template and hands the result to a
provider: SMTP through aiosmtplib, or the Resend HTTP API. Delivery never
raises; a failed or throttled send returns False and is logged.
"""

from __future__ import annotations

import hashlib
import ssl
from collections.abc import Callable
from email.message import EmailMessage
from typing import TYPE_CHECKING, Any, NamedTuple

import aiosmtplib
import httpx
import structlog

from vapor.config import Settings, get_settings
from vapor.email import templates

if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger()


class RenderedEmail(NamedTuple):
    subject: str
    html: str
    text: str


TemplateFn = Callable[..., tuple[str, str, str]]

TEMPLATES: dict[str, TemplateFn] = {
    "verify_email": templates.verify_email,
    "password_reset": templates.password_reset,
    "email_change": templates.email_change,
    "password_changed": templates.password_changed,
    "account_deleted": templates.account_deleted,
    "google_linked": templates.google_linked,
    "google_welcome": templates.google_welcome,
    "purchase_invoice": templates.purchase_invoice,
}


def render(template_name: str, context: dict[str, Any]) -> RenderedEmail:
    """
    Raises:
        ValueError: Unknown template name.
    """
    template = TEMPLATES.get(template_name)
    if template is None:
        msg = f"Unknown template: {template_name}"
        raise ValueError(msg)
    return RenderedEmail(*template(**context))


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------


class EmailProvider:
    """Delivers one rendered message. ``send`` returns False on failure."""

    name = "base"

    def __init__(self, from_address: str, from_name: str) -> None:
        self.sender = f"{from_name} <{from_address}>"

    async def send(self, to: str, subject: str, html: str, text: str) -> bool:
        raise NotImplementedError


class SMTPProvider(EmailProvider):
    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        from_address: str,
        from_name: str,
        *,
        username: str = "",
        password: str = "",
        use_tls: bool = True,
    ) -> None:
        super().__init__(from_address, from_name)
        self.host = host
        self.port = port
        self.username = username or None
        self.password = password or None
        self.use_tls = use_tls

    def build_message(self, to: str, subject: str, html: str, text: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        message.add_alternative(html, subtype="html")
        return message

    async def send(self, to: str, subject: str, html: str, text: str) -> bool:
        try:
            await aiosmtplib.send(
                self.build_message(to, subject, html, text),
                hostname=self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                start_tls=self.use_tls,
                tls_context=ssl.create_default_context() if self.use_tls else None,
            )
        except (aiosmtplib.SMTPException, OSError):
            logger.exception("email_send_failed", to=to, provider=self.name)
            return False
        return True


class ResendProvider(EmailProvider):
    name = "resend"

    def __init__(
        self,
        api_key: str,
        from_address: str,
        from_name: str,
        *,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(from_address, from_name)
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.transport = transport

    async def send(self, to: str, subject: str, html: str, text: str) -> bool:
        payload = {"from": self.sender, "to": [to], "subject": subject, "html": html, "text": text}
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    self.api_url, headers={"Authorization": f"Bearer {self.api_key}"}, json=payload
                )
                response.raise_for_status()
        except httpx.HTTPError:
            logger.exception("email_send_failed", to=to, provider=self.name)
            return False
        return True


def build_provider(settings: Settings) -> EmailProvider:
    """
    Raises:
        ValueError: Unsupported ``email_provider`` setting.
    """
    kind = settings.email_provider.lower()
    if kind == "smtp":
        return SMTPProvider(
            settings.smtp_host,
            settings.smtp_port,
            settings.email_from_address,
            settings.email_from_name,
            username=settings.smtp_username,
            password=settings.smtp_password,
            use_tls=settings.smtp_use_tls,
        )
    if kind == "resend":
        return ResendProvider(
            settings.resend_api_key,
            settings.email_from_address,
            settings.email_from_name,
            timeout=settings.integration_timeout_seconds,
        )
    msg = f"Unsupported email provider: {kind}"
    raise ValueError(msg)


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


class EmailService:
    """Renders templates and sends them, throttled per recipient when Redis is available."""

    THROTTLE_WINDOW_SECONDS = 3600

    def __init__(self, provider: EmailProvider | None = None, redis: Redis | None = None) -> None:
        settings = get_settings()
        self.provider = provider or build_provider(settings)
        self.redis = redis
        self.rate_limit_max = settings.email_rate_limit_per_hour

    async def _allowed(self, recipient: str) -> bool:
        if self.redis is None:
            return True
        digest = hashlib.sha256(recipient.lower().encode()).hexdigest()
        key = f"email_rate:{digest}"
        sent = await self.redis.incr(key)
        if sent == 1:
            await self.redis.expire(key, self.THROTTLE_WINDOW_SECONDS)
        return sent <= self.rate_limit_max

    async def send_email(self, to: str, subject: str, html_body: str, text_body: str) -> bool:
        """Send a pre-rendered message. False when throttled or undelivered."""
        if not await self._allowed(to):
            logger.warning("email_rate_limited", to=to, subject=subject)
            return False
        delivered = await self.provider.send(to, subject, html_body, text_body)
        if delivered:
            logger.info("email_sent", to=to, subject=subject, provider=self.provider.name)
        return delivered

    async def send_template(self, to: str, template_name: str, context: dict[str, Any]) -> bool:
        """
        Raises:
            ValueError: Unknown template name.
        """
        email = render(template_name, context)
        return await self.send_email(to, email.subject, email.html, email.text)


_email_service: EmailService | None = None


def get_email_service(redis: Redis | None = None) -> EmailService:
    global _email_service  # noqa: PLW0603
    if _email_service is None:
        _email_service = EmailService(redis=redis)
    return _email_service


def reset_email_service() -> None:
    global _email_service  # noqa: PLW0603
    _email_service = None

"""Minimal Stripe Checkout client over httpx."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from vapor.config import get_settings
from vapor.errors import ExternalServiceError

logger = structlog.get_logger()


@dataclass(frozen=True)
class CheckoutSession:
    id: str
    url: str


class StripeClient:
    """Creates and expires Checkout sessions with the form-encoded REST API."""

    def __init__(
        self,
        secret_key: str,
        api_base: str = "https://api.stripe.com/v1",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secret_key = secret_key
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def create_checkout_session(
        self,
        *,
        amount_cents: int,
        currency: str,
        product_name: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str] | None = None,
    ) -> CheckoutSession:
        """
        Create a one-item payment session.

        Raises:
            ExternalServiceError: Network failure or an error response.
        """
        form = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "line_items[0][quantity]": "1",
            "line_items[0][price_data][currency]": currency,
            "line_items[0][price_data][unit_amount]": str(amount_cents),
            "line_items[0][price_data][product_data][name]": product_name,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        for key, value in (metadata or {}).items():
            form[f"metadata[{key}]"] = value

        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.api_base}/checkout/sessions",
                    headers={"Authorization": f"Bearer {self.secret_key}"},
                    data=form,
                )
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.exception("stripe_checkout_failed", amount_cents=amount_cents)
            msg = "Payment provider unavailable."
            raise ExternalServiceError(msg) from e

        return CheckoutSession(id=payload["id"], url=payload["url"])

    async def expire_checkout_session(self, session_id: str) -> None:
        """
        Close an open session so it can no longer be paid.

        Raises:
            ExternalServiceError: Network failure or an error response.
        """
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.api_base}/checkout/sessions/{session_id}/expire",
                    headers={"Authorization": f"Bearer {self.secret_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPError as e:
            msg = "Payment provider unavailable."
            raise ExternalServiceError(msg) from e


_client: StripeClient | None = None


def get_stripe_client() -> StripeClient:
    """Get or create the Stripe client singleton."""
    global _client  # noqa: PLW0603
    if _client is None:
        settings = get_settings()
        _client = StripeClient(
            secret_key=settings.stripe_secret_key,
            api_base=settings.stripe_api_base,
            timeout=settings.integration_timeout_seconds,
        )
    return _client


def set_stripe_client(client: StripeClient | None) -> None:
    """Replace the singleton (None resets it)."""
    global _client  # noqa: PLW0603
    _client = client

"""
Wallet top-ups through Stripe Checkout.

A top-up is a short-lived PaymentToken bound to a Checkout session. The raw
token only travels in the success and cancel URLs; the database keeps its hash.
"""

from __future__ import annotations

import secrets
from datetime import timedelta
from decimal import Decimal
from urllib.parse import quote

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.tokens import hash_token
from vapor.config import get_settings
from vapor.db.base import as_utc, utcnow
from vapor.db.models import PaymentToken, PurchaseHistory, User
from vapor.errors import ExternalServiceError, ValidationFailed
from vapor.library.service import PAYMENT_STRIPE_TOP_UP
from vapor.payments.stripe import CheckoutSession, StripeClient

logger = structlog.get_logger()

INVALID_SESSION = "Invalid session or token."
EXPIRED_SESSION = "Expired session."


def validate_amount(amount: Decimal) -> Decimal:
    """
    Raises:
        ValidationFailed: Amount not in (0, max_top_up_amount].
    """
    limit = get_settings().max_top_up_amount
    if amount <= 0 or amount > limit:
        msg = f"Amount must be greater than 0 and at most {limit}."
        raise ValidationFailed(msg)
    return amount.quantize(Decimal("0.01"))


def _return_url(page: str, raw_token: str) -> str:
    base = get_settings().frontend_base_url.rstrip("/")
    # Stripe substitutes {CHECKOUT_SESSION_ID} on redirect.
    return f"{base}/payment/{page}?session_id={{CHECKOUT_SESSION_ID}}&token={quote(raw_token)}"


def build_success_url(raw_token: str, auto_purchase: bool, points_to_use: int) -> str:
    return (
        f"{_return_url('success', raw_token)}"
        f"&auto_purchase={str(auto_purchase).lower()}"
        f"&points_to_use={points_to_use}"
    )


def build_cancel_url(raw_token: str) -> str:
    return _return_url("cancel", raw_token)


async def create_top_up_session(
    db: AsyncSession,
    user: User,
    amount: Decimal,
    stripe: StripeClient,
    *,
    auto_purchase: bool = False,
    points_to_use: int = 0,
) -> CheckoutSession:
    """
    Open a Checkout session and store its PaymentToken.

    Older pending tokens of the user are discarded.

    Raises:
        ValidationFailed: Amount out of range.
        ExternalServiceError: Stripe failed; nothing is written.
    """
    settings = get_settings()
    amount = validate_amount(amount)
    raw_token = secrets.token_urlsafe(32)

    session = await stripe.create_checkout_session(
        amount_cents=int(amount * 100),
        currency=settings.stripe_currency,
        product_name="Vapor Wallet Top-Up",
        success_url=build_success_url(raw_token, auto_purchase, points_to_use),
        cancel_url=build_cancel_url(raw_token),
        metadata={"user_id": str(user.id)},
    )

    await db.execute(delete(PaymentToken).where(PaymentToken.user_id == user.id))
    now = utcnow()
    db.add(PaymentToken(
        session_id=session.id,
        user_id=user.id,
        amount=amount,
        token_hash=hash_token(raw_token),
        created_at=now,
        expires_at=now + timedelta(minutes=settings.payment_token_ttl_minutes),
    ))
    await db.flush()
    logger.info("top_up_session_created", user_id=user.id, session_id=session.id, amount=str(amount))
    return session


async def _matching_token(db: AsyncSession, user: User, session_id: str, raw_token: str) -> PaymentToken:
    result = await db.execute(
        select(PaymentToken).where(
            PaymentToken.session_id == session_id,
            PaymentToken.user_id == user.id,
            PaymentToken.token_hash == hash_token(raw_token),
        )
    )
    token = result.scalar_one_or_none()
    if token is None:
        raise ValidationFailed(INVALID_SESSION)
    return token


async def confirm_top_up(db: AsyncSession, user: User, session_id: str, raw_token: str) -> Decimal:
    """
    Credit the wallet for a completed session. Returns the new balance.

    An expired token is deleted before raising, so the caller should commit
    on that error too.

    Raises:
        ValidationFailed: Unknown or mismatched session/token, or expired.
    """
    token = await _matching_token(db, user, session_id, raw_token)
    if as_utc(token.expires_at) < utcnow():
        await db.delete(token)
        await db.flush()
        raise ValidationFailed(EXPIRED_SESSION)

    amount = Decimal(token.amount)
    user.wallet = Decimal(user.wallet) + amount
    db.add(PurchaseHistory(
        user_id=user.id,
        app_id=None,
        price_at_purchase=amount,
        payment_method=PAYMENT_STRIPE_TOP_UP,
        wallet_change=amount,
        wallet_balance_after=user.wallet,
    ))
    await db.delete(token)
    await db.flush()
    logger.info("top_up_confirmed", user_id=user.id, session_id=session_id, amount=str(amount))
    return user.wallet


async def cancel_top_up(
    db: AsyncSession, user: User, session_id: str, raw_token: str, stripe: StripeClient
) -> None:
    """
    Discard the pending top-up and expire its Checkout session.

    The token is dropped even when Stripe refuses the expiry, e.g. for a
    session that already timed out.

    Raises:
        ValidationFailed: Unknown or mismatched session/token.
    """
    token = await _matching_token(db, user, session_id, raw_token)
    try:
        await stripe.expire_checkout_session(session_id)
    except ExternalServiceError:
        logger.warning("stripe_expire_failed", user_id=user.id, session_id=session_id)
    await db.delete(token)
    await db.flush()
    logger.info("top_up_cancelled", user_id=user.id, session_id=session_id)

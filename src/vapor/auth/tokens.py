"""
Server-side records behind issued credentials.

Refresh tokens are tracked by JTI so a session can be rotated or revoked.
Presenting a refresh token that was already rotated is treated as theft and
ends every session of its owner.

One-time tokens (email verification, password reset) are random strings that
only ever leave the server inside an email link; the table keeps their
SHA-256 digest.
"""

from __future__ import annotations

import hashlib
import secrets
import uuid
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING, Any

import jwt
import structlog
from sqlalchemy import select, update

from vapor.auth.jwt import create_access_token, create_refresh_token, verify_token
from vapor.config import get_settings
from vapor.db.base import as_utc, utcnow
from vapor.db.models import EmailVerificationToken, PasswordResetToken, RefreshToken, User
from vapor.errors import AuthenticationError, ValidationFailed

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

OneTimeToken = type[EmailVerificationToken] | type[PasswordResetToken]


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode()).hexdigest()


@dataclass(frozen=True)
class ClientInfo:
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass
class IssuedTokens:
    access_token: str
    refresh_token: str
    expires_in: int
    user: User


# ---------------------------------------------------------------------------
# Refresh sessions
# ---------------------------------------------------------------------------


async def issue_tokens(
    db: AsyncSession,
    user: User,
    client: ClientInfo | None = None,
    *,
    replaces: RefreshToken | None = None,
) -> IssuedTokens:
    """Sign an access/refresh pair and record the refresh JTI. ``replaces`` is revoked and linked."""
    settings = get_settings()
    client = client or ClientInfo()
    jti = str(uuid.uuid4())
    now = utcnow()

    refresh_token = create_refresh_token(user.id, user.username, user.role_label, token_id=jti)
    if replaces is not None:
        replaces.is_revoked = True
        replaces.revoked_at = now
        replaces.replaced_by = jti

    db.add(RefreshToken(
        id=jti,
        user_id=user.id,
        token_hash=hash_token(refresh_token),
        issued_at=now,
        expires_at=now + timedelta(days=settings.jwt_refresh_token_expire_days),
        ip_address=client.ip_address,
        user_agent=client.user_agent,
    ))
    await db.flush()

    return IssuedTokens(
        access_token=create_access_token(user.id, user.username, user.role_label),
        refresh_token=refresh_token,
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        user=user,
    )


def _refresh_claims(raw_token: str) -> dict[str, Any]:
    try:
        claims = verify_token(raw_token, expected_type="refresh")
    except jwt.InvalidTokenError as e:
        raise AuthenticationError(str(e)) from e
    if not claims.get("jti"):
        msg = "Invalid refresh token"
        raise AuthenticationError(msg)
    return claims


async def rotate_tokens(db: AsyncSession, raw_token: str, client: ClientInfo | None = None) -> IssuedTokens:
    """
    Exchange a refresh token for a new pair.

    Raises:
        AuthenticationError: Bad, unknown or revoked token. A revoked token
            also revokes every other session of the user; those writes are
            flushed before raising.
    """
    claims = _refresh_claims(raw_token)
    record = await db.get(RefreshToken, claims["jti"])
    if record is None or record.token_hash != hash_token(raw_token):
        msg = "Refresh token not found"
        raise AuthenticationError(msg)

    if record.is_revoked:
        revoked = await revoke_all_tokens(db, record.user_id)
        logger.warning("refresh_token_reuse", user_id=record.user_id, revoked=revoked)
        msg = "Refresh token has been revoked"
        raise AuthenticationError(msg)

    user = await db.get(User, record.user_id)
    if user is None:
        msg = "User not found"
        raise AuthenticationError(msg)
    return await issue_tokens(db, user, client, replaces=record)


async def revoke_token(db: AsyncSession, raw_token: str) -> bool:
    """Revoke the session a refresh token belongs to. Unreadable tokens are ignored."""
    try:
        claims = _refresh_claims(raw_token)
    except AuthenticationError:
        logger.info("logout_with_invalid_token")
        return False

    record = await db.get(RefreshToken, claims["jti"])
    if record is None or record.is_revoked:
        return False
    record.is_revoked = True
    record.revoked_at = utcnow()
    await db.flush()
    return True


async def revoke_all_tokens(db: AsyncSession, user_id: int) -> int:
    """Revoke every live session of a user. Returns how many were live."""
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.is_revoked.is_(False))
        .values(is_revoked=True, revoked_at=utcnow())
    )
    await db.flush()
    return result.rowcount or 0


# ---------------------------------------------------------------------------
# One-time tokens
# ---------------------------------------------------------------------------


async def issue_one_time_token(
    db: AsyncSession,
    model: OneTimeToken,
    user_id: int,
    ttl_minutes: int,
    **extra: Any,
) -> str:
    """Store a fresh token of ``model`` for the user and return it raw. Unused older ones are spent."""
    now = utcnow()
    await db.execute(
        update(model).where(model.user_id == user_id, model.used_at.is_(None)).values(used_at=now)
    )
    raw_token = secrets.token_urlsafe(48)
    db.add(model(
        user_id=user_id,
        token_hash=hash_token(raw_token),
        created_at=now,
        expires_at=now + timedelta(minutes=ttl_minutes),
        **extra,
    ))
    await db.flush()
    return raw_token


async def redeem_one_time_token(db: AsyncSession, model: OneTimeToken, raw_token: str, label: str) -> int:
    """
    Spend a token and return its user id.

    Raises:
        ValidationFailed: Unknown, used or expired token.
    """
    token = (await db.execute(select(model).where(model.token_hash == hash_token(raw_token)))).scalar_one_or_none()
    if token is None:
        msg = f"Invalid or expired {label} token"
        raise ValidationFailed(msg)
    if token.used_at is not None:
        msg = "Token has already been used"
        raise ValidationFailed(msg)
    if as_utc(token.expires_at) < utcnow():
        msg = f"{label.capitalize()} token has expired"
        raise ValidationFailed(msg)

    token.used_at = utcnow()
    await db.flush()
    return token.user_id

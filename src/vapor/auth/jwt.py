"""
RS256 access and refresh tokens.

Both kinds carry the username and role so the storefront can render the
account menu and admin entry without another request; ``type`` keeps one
from being accepted in place of the other.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, NamedTuple

import jwt

from vapor.config import get_settings


class KeyPair(NamedTuple):
    private: str
    public: str


@lru_cache(maxsize=1)
def signing_keys() -> KeyPair:
    """PEM keys from the configured paths, read once."""
    settings = get_settings()
    return KeyPair(
        private=Path(settings.jwt_private_key_path).read_text(),
        public=Path(settings.jwt_public_key_path).read_text(),
    )


def reset_keys() -> None:
    """Forget the cached keys so changed key paths take effect."""
    signing_keys.cache_clear()


def _encode(token_type: str, user_id: int, username: str, role: str, lifetime: timedelta, **claims: Any) -> str:
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    payload = {
        "sub": str(user_id),
        "username": username,
        "role": role,
        "type": token_type,
        "iss": settings.jwt_issuer,
        "iat": issued_at,
        "exp": issued_at + lifetime,
        **claims,
    }
    return jwt.encode(payload, signing_keys().private, algorithm=settings.jwt_algorithm)


def create_access_token(user_id: int, username: str, role: str = "User") -> str:
    minutes = get_settings().jwt_access_token_expire_minutes
    return _encode("access", user_id, username, role, timedelta(minutes=minutes))


def create_refresh_token(user_id: int, username: str, role: str = "User", *, token_id: str) -> str:
    """``token_id`` is stored as the JTI and keys the server-side session record."""
    days = get_settings().jwt_refresh_token_expire_days
    return _encode("refresh", user_id, username, role, timedelta(days=days), jti=token_id)


def verify_token(token: str, expected_type: str = "access") -> dict[str, Any]:
    """
    Decode a token and check its signature, issuer, expiry and type.

    Raises:
        jwt.InvalidTokenError: Any of those checks failed.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            signing_keys().public,
            algorithms=[settings.jwt_algorithm],
            issuer=settings.jwt_issuer,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if payload.get("type") != expected_type:
        msg = f"Expected {expected_type} token"
        raise jwt.InvalidTokenError(msg)
    return payload

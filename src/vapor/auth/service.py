"""
Account lifecycle: registration, login, verification, password reset and
closing an account.

Services raise ``vapor.errors`` exceptions; sending the resulting emails is
left to the router.
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, func, or_, select, update

from vapor.auth.password import check_password_policy, hash_password, needs_rehash, verify_password
from vapor.auth.tokens import issue_one_time_token, redeem_one_time_token, revoke_all_tokens
from vapor.auth.validation import validate_display_name, validate_username
from vapor.config import get_settings
from vapor.db.base import utcnow
from vapor.db.models import (
    ROLE_USER,
    AppLibrary,
    AppReview,
    CartItem,
    EmailChangeToken,
    EmailVerificationToken,
    Notification,
    PasswordResetToken,
    PaymentToken,
    Post,
    PostComment,
    PostLike,
    PurchaseHistory,
    RefreshToken,
    User,
    Wishlist,
)
from vapor.errors import AuthenticationError, ConflictError, ForbiddenError, TooManyRequestsError, ValidationFailed

if TYPE_CHECKING:
    from redis.asyncio import Redis
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()

BAD_CREDENTIALS = "Invalid username or password"

# Rows owned privately by a user, removed with the account.
_PRIVATE_ROWS = (
    CartItem,
    AppLibrary,
    Wishlist,
    PostLike,
    Notification,
    PurchaseHistory,
    RefreshToken,
    EmailVerificationToken,
    PasswordResetToken,
    EmailChangeToken,
    PaymentToken,
)


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: int) -> User | None:
    return await db.get(User, user_id)


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Case-insensitive."""
    stmt = select(User).where(func.lower(User.email) == email.strip().lower())
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    """Case-insensitive."""
    stmt = select(User).where(func.lower(User.username) == username.strip().lower())
    return (await db.execute(stmt)).scalar_one_or_none()


async def get_user_by_login(db: AsyncSession, login: str) -> User | None:
    """Match either the username or the email."""
    value = login.strip().lower()
    stmt = select(User).where(or_(func.lower(User.username) == value, func.lower(User.email) == value))
    return (await db.execute(stmt)).scalars().first()


# ---------------------------------------------------------------------------
# Registration and verification
# ---------------------------------------------------------------------------


async def register_user(
    db: AsyncSession,
    username: str,
    display_name: str,
    email: str,
    password: str,
) -> User:
    """
    Create an unverified account with the default role and picture.

    Raises:
        ValidationFailed: Invalid username, display name or password.
        ConflictError: Username or email taken.
    """
    validate_username(username)
    display_name = validate_display_name(display_name)
    check_password_policy(password)

    if await get_user_by_username(db, username) is not None:
        msg = "Username already taken"
        raise ConflictError(msg)
    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise ConflictError(msg)

    user = User(
        username=username,
        display_name=display_name,
        email=email.strip().lower(),
        password_hash=hash_password(password),
        role_id=ROLE_USER,
        profile_picture=get_settings().default_profile_picture,
        is_email_verified=False,
        created_at=utcnow(),
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, username=username)
    return user


async def start_email_verification(db: AsyncSession, user: User) -> str:
    """Returns the raw token for the verification link."""
    ttl = get_settings().email_verification_token_ttl_minutes
    return await issue_one_time_token(db, EmailVerificationToken, user.id, ttl)


async def verify_email(db: AsyncSession, raw_token: str) -> int:
    """
    Raises:
        ValidationFailed: Unknown, used or expired token.
    """
    user_id = await redeem_one_time_token(db, EmailVerificationToken, raw_token, "verification")
    await db.execute(update(User).where(User.id == user_id).values(is_email_verified=True))
    await db.flush()
    logger.info("email_verified", user_id=user_id)
    return user_id


# ---------------------------------------------------------------------------
# Login
# ---------------------------------------------------------------------------


class LoginAttempts:
    """Failed-login counter per account, kept in Redis. Without Redis nothing is ever locked."""

    def __init__(self, redis: Redis | None) -> None:
        settings = get_settings()
        self.redis = redis
        self.threshold = settings.account_lockout_threshold
        self.window_seconds = settings.account_lockout_duration_minutes * 60

    @staticmethod
    def _key(user_id: int) -> str:
        return f"login_attempts:{user_id}"

    async def is_locked(self, user_id: int) -> bool:
        if self.redis is None:
            return False
        count = await self.redis.get(self._key(user_id))
        return count is not None and int(count) >= self.threshold

    async def record_failure(self, user_id: int) -> None:
        if self.redis is None:
            return
        key = self._key(user_id)
        if await self.redis.incr(key) == 1:
            await self.redis.expire(key, self.window_seconds)

    async def clear(self, user_id: int) -> None:
        if self.redis is not None:
            await self.redis.delete(self._key(user_id))


async def authenticate_user(db: AsyncSession, redis: Redis | None, login: str, password: str) -> User:
    """
    Check a username-or-email and password pair.

    Raises:
        AuthenticationError: Unknown login or wrong password.
        TooManyRequestsError: Account locked after repeated failures.
        ForbiddenError: Email not verified yet.
    """
    user = await get_user_by_login(db, login)
    if user is None:
        raise AuthenticationError(BAD_CREDENTIALS)

    attempts = LoginAttempts(redis)
    if await attempts.is_locked(user.id):
        msg = "Account temporarily locked. Try again later."
        raise TooManyRequestsError(msg)

    if not verify_password(password, user.password_hash):
        await attempts.record_failure(user.id)
        raise AuthenticationError(BAD_CREDENTIALS)

    if not user.is_email_verified:
        msg = "Please verify your email before logging in"
        raise ForbiddenError(msg)

    await attempts.clear(user.id)
    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(password)
        await db.flush()
        logger.info("password_rehashed", user_id=user.id)
    return user


# ---------------------------------------------------------------------------
# Google sign-in
# ---------------------------------------------------------------------------

GOOGLE_SIGNED_IN = "signed_in"
GOOGLE_LINKED = "linked"
GOOGLE_CREATED = "created"

_USERNAME_JUNK = re.compile(r"[^A-Za-z0-9_]")


def _google_username_base(email: str) -> str:
    base = _USERNAME_JUNK.sub("", email.split("@", 1)[0])[:16]
    if not base[:4].isalpha() or len(base) < 4:
        base = f"user{base}"[:16]
    return base


async def _free_username(db: AsyncSession, base: str) -> str:
    """``base``, or ``base`` with the first numeric suffix not taken yet."""
    candidate, suffix = base, 1
    while await get_user_by_username(db, candidate) is not None:
        candidate = f"{base}{suffix}"
        suffix += 1
    return candidate


async def google_login(db: AsyncSession, google_id: str, email: str, name: str | None) -> tuple[User, str]:
    """
    Resolve verified Google claims to an account.

    The account already bound to ``google_id`` wins; otherwise an account
    with the same email (case-insensitive) gets linked; otherwise a verified
    account without a password is created. Returns the user and one of
    ``GOOGLE_SIGNED_IN``, ``GOOGLE_LINKED`` or ``GOOGLE_CREATED``.
    """
    user = (await db.execute(select(User).where(User.google_id == google_id))).scalar_one_or_none()
    if user is not None:
        return user, GOOGLE_SIGNED_IN

    user = await get_user_by_email(db, email)
    if user is not None:
        user.google_id = google_id
        user.is_google_authenticated = True
        user.is_email_verified = True
        await db.flush()
        logger.info("google_account_linked", user_id=user.id)
        return user, GOOGLE_LINKED

    base = _google_username_base(email)
    try:
        display_name = validate_display_name(name or base)
    except ValidationFailed:
        display_name = base
    user = User(
        username=await _free_username(db, base),
        display_name=display_name,
        email=email.strip().lower(),
        password_hash=None,
        role_id=ROLE_USER,
        profile_picture=get_settings().default_profile_picture,
        is_email_verified=True,
        is_google_authenticated=True,
        google_id=google_id,
        created_at=utcnow(),
    )
    db.add(user)
    await db.flush()
    logger.info("user_created", user_id=user.id, username=user.username, via="google")
    return user, GOOGLE_CREATED


# ---------------------------------------------------------------------------
# Password reset
# ---------------------------------------------------------------------------


async def request_password_reset(db: AsyncSession, email: str, ip_address: str | None = None) -> tuple[User, str] | None:
    """The user and raw reset token, or None for an unknown email."""
    user = await get_user_by_email(db, email)
    if user is None:
        return None
    ttl = get_settings().password_reset_token_ttl_minutes
    raw_token = await issue_one_time_token(db, PasswordResetToken, user.id, ttl, ip_address=ip_address)
    return user, raw_token


async def reset_password(db: AsyncSession, raw_token: str, new_password: str) -> User:
    """
    Set a new password from a reset token and sign out every session.

    Raises:
        ValidationFailed: Weak password, or an unknown, used or expired token.
    """
    check_password_policy(new_password)
    user_id = await redeem_one_time_token(db, PasswordResetToken, raw_token, "reset")
    user = await db.get(User, user_id)
    if user is None:
        msg = "User not found"
        raise ValidationFailed(msg)

    user.password_hash = hash_password(new_password)
    await revoke_all_tokens(db, user.id)
    logger.info("password_reset", user_id=user.id)
    return user


# ---------------------------------------------------------------------------
# Account removal
# ---------------------------------------------------------------------------


async def delete_user(db: AsyncSession, user: User) -> None:
    """
    Remove an account and everything it owned privately.

    Posts, comments and reviews survive with a NULL author and the display
    name they were written under; notifications it sent lose their sender.
    """
    user_id = user.id
    for model in (Post, PostComment, AppReview):
        await db.execute(update(model).where(model.user_id == user_id).values(user_id=None))
    await db.execute(update(Notification).where(Notification.sender_id == user_id).values(sender_id=None))

    for model in _PRIVATE_ROWS:
        await db.execute(delete(model).where(model.user_id == user_id))

    await db.delete(user)
    await db.flush()
    logger.info("user_deleted", user_id=user_id)


async def close_account(db: AsyncSession, user: User, password: str) -> None:
    """
    Self-service deletion, confirmed with the current password.

    Raises:
        AuthenticationError: Wrong password.
    """
    if not verify_password(password, user.password_hash):
        msg = "Password is incorrect"
        raise AuthenticationError(msg)
    await delete_user(db, user)

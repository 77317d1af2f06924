"""User account business logic: profile, email, password and username changes."""

from __future__ import annotations

import secrets
from datetime import timedelta
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import delete, select, update

from vapor.auth.password import check_password_policy, hash_password, verify_password
from vapor.auth.service import get_user_by_email, get_user_by_username
from vapor.auth.tokens import hash_token, revoke_all_tokens
from vapor.auth.validation import validate_display_name, validate_username
from vapor.config import get_settings
from vapor.db.base import as_utc, utcnow
from vapor.db.models import DELETED_DISPLAY_NAME, AppReview, EmailChangeToken, Post, PostComment, User
from vapor.errors import AuthenticationError, ConflictError, ValidationFailed

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


async def update_profile(
    db: AsyncSession,
    user: User,
    display_name: str | None = None,
    profile_picture: str | None = None,
) -> User:
    """
    Update profile fields.

    A new display name is copied onto the user's posts, comments and reviews,
    except comments the user already deleted.

    Raises:
        ValidationFailed: Invalid display name.
    """
    if display_name is not None:
        display_name = validate_display_name(display_name)
        if display_name != user.display_name:
            user.display_name = display_name
            await db.execute(
                update(Post)
                .where(Post.user_id == user.id)
                .where(Post.user_display_name != DELETED_DISPLAY_NAME)
                .values(user_display_name=display_name)
            )
            await db.execute(
                update(PostComment)
                .where(PostComment.user_id == user.id)
                .where(PostComment.user_display_name != DELETED_DISPLAY_NAME)
                .values(user_display_name=display_name)
            )
            await db.execute(
                update(AppReview).where(AppReview.user_id == user.id).values(user_display_name=display_name)
            )
            logger.info("display_name_changed", user_id=user.id)

    if profile_picture is not None:
        user.profile_picture = profile_picture

    await db.flush()
    return user


async def get_public_profile(db: AsyncSession, username: str) -> User | None:
    """Look up a user for their public profile page."""
    return await get_user_by_username(db, username)


# ---------------------------------------------------------------------------
# Email change
# ---------------------------------------------------------------------------


async def initiate_email_change(db: AsyncSession, user: User, new_email: str) -> str:
    """
    Start an email change. Any earlier pending change is discarded.

    Returns the raw confirmation token to email to the new address.

    Raises:
        ValidationFailed: Address is the current one.
        ConflictError: Address belongs to another account.
    """
    new_email = new_email.lower().strip()
    if user.email and user.email.lower() == new_email:
        msg = "New email is the same as the current email"
        raise ValidationFailed(msg)
    if await get_user_by_email(db, new_email) is not None:
        msg = "Email already in use"
        raise ConflictError(msg)

    settings = get_settings()
    await db.execute(delete(EmailChangeToken).where(EmailChangeToken.user_id == user.id))

    raw_token = secrets.token_urlsafe(48)
    db.add(EmailChangeToken(
        user_id=user.id,
        new_email=new_email,
        token_hash=hash_token(raw_token),
        created_at=utcnow(),
        expires_at=utcnow() + timedelta(minutes=settings.email_change_token_ttl_minutes),
    ))
    await db.flush()
    return raw_token


async def confirm_email_change(db: AsyncSession, raw_token: str) -> User:
    """
    Apply a pending email change.

    Raises:
        ValidationFailed: Unknown or expired token, or the address was taken meanwhile.
    """
    result = await db.execute(select(EmailChangeToken).where(EmailChangeToken.token_hash == hash_token(raw_token)))
    token = result.scalar_one_or_none()
    if token is None:
        msg = "Invalid or expired email change token"
        raise ValidationFailed(msg)
    if as_utc(token.expires_at) < utcnow():
        await db.delete(token)
        await db.flush()
        msg = "Email change token has expired"
        raise ValidationFailed(msg)

    if await get_user_by_email(db, token.new_email) is not None:
        msg = "Email already in use"
        raise ValidationFailed(msg)

    user = await db.get(User, token.user_id)
    if user is None:
        msg = "User not found"
        raise ValidationFailed(msg)

    user.email = token.new_email
    user.is_email_verified = True
    await db.delete(token)
    await db.flush()
    logger.info("email_changed", user_id=user.id)
    return user


# ---------------------------------------------------------------------------
# Password / username / Google link
# ---------------------------------------------------------------------------


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    """
    Change the password after checking the current one, then sign out every session.

    Raises:
        AuthenticationError: Current password is wrong.
        WeakPasswordError: New password rejected by the policy.
    """
    if not verify_password(current_password, user.password_hash):
        msg = "Current password is incorrect"
        raise AuthenticationError(msg)
    check_password_policy(new_password)
    user.password_hash = hash_password(new_password)
    await revoke_all_tokens(db, user.id)
    logger.info("password_changed", user_id=user.id)


async def change_username(db: AsyncSession, user: User, new_username: str) -> User:
    """
    Raises:
        ValidationFailed: Invalid username.
        ConflictError: Username taken.
    """
    validate_username(new_username)
    existing = await get_user_by_username(db, new_username)
    if existing is not None and existing.id != user.id:
        msg = "Username already taken"
        raise ConflictError(msg)
    user.username = new_username
    await db.flush()
    return user


async def unlink_google(db: AsyncSession, user: User) -> User:
    """
    Detach the Google identity. The account must be able to log in with a password afterwards.

    Raises:
        ValidationFailed: No Google account linked, or no password set.
    """
    if user.google_id is None:
        msg = "No Google account linked"
        raise ValidationFailed(msg)
    if not user.password_hash:
        msg = "Set a password before unlinking Google"
        raise ValidationFailed(msg)
    user.google_id = None
    user.is_google_authenticated = False
    await db.flush()
    return user

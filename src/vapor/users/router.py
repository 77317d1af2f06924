"""User account router: all /api/v1/users/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.dependencies import get_current_user
from vapor.config import get_settings
from vapor.database import get_session
from vapor.db.models import User
from vapor.email.service import get_email_service
from vapor.errors import NotFoundError
from vapor.users import service
from vapor.users.schemas import (
    ChangePasswordRequest,
    ChangeUsernameRequest,
    ConfirmEmailChangeRequest,
    EmailChangeRequest,
    ProfileUpdateRequest,
    PublicUserResponse,
    UserResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/users", tags=["Users"])


# ── Profile ──


@router.get("/me", response_model=UserResponse)
async def get_profile(
    user: User = Depends(get_current_user),
) -> UserResponse:
    """Own account, including wallet and points."""
    return UserResponse.from_user(user)


@router.patch("/me", response_model=UserResponse)
async def update_profile(
    body: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    await service.update_profile(db, user, display_name=body.display_name, profile_picture=body.profile_picture)
    await db.commit()
    return UserResponse.from_user(user)


@router.get("/{username}", response_model=PublicUserResponse)
async def public_profile(
    username: str,
    db: AsyncSession = Depends(get_session),
) -> PublicUserResponse:
    user = await service.get_public_profile(db, username)
    if user is None:
        msg = "User not found"
        raise NotFoundError(msg)
    return PublicUserResponse.model_validate(user)


# ── Email change ──


@router.post("/me/email-change")
async def request_email_change(
    body: EmailChangeRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Mail a confirmation link to the new address. The change applies once it is followed."""
    raw_token = await service.initiate_email_change(db, user, body.new_email)
    await db.commit()

    settings = get_settings()
    try:
        await get_email_service().send_template(
            to=body.new_email,
            template_name="email_change",
            context={
                "display_name": user.display_name,
                "confirm_url": f"{settings.frontend_base_url}/confirm-email-change?token={raw_token}",
                "new_email": body.new_email,
                "expires_minutes": settings.email_change_token_ttl_minutes,
            },
        )
    except Exception:
        logger.exception("email_change_email_failed", user_id=user.id)

    return {"status": "confirmation_sent"}


@router.post("/confirm-email-change", response_model=UserResponse)
async def confirm_email_change(
    body: ConfirmEmailChangeRequest,
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    try:
        user = await service.confirm_email_change(db, body.token)
    finally:
        # an expired token is deleted even though the change is refused
        await db.commit()
    return UserResponse.from_user(user)


# ── Credentials ──


@router.put("/me/password")
async def change_password(
    body: ChangePasswordRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Change password and sign out every session."""
    await service.change_password(db, user, body.current_password, body.new_password)
    await db.commit()

    try:
        await get_email_service().send_template(
            to=user.email or "",
            template_name="password_changed",
            context={"display_name": user.display_name},
        )
    except Exception:
        logger.exception("password_changed_email_failed", user_id=user.id)

    return {"status": "password_changed"}


@router.put("/me/username", response_model=UserResponse)
async def change_username(
    body: ChangeUsernameRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    await service.change_username(db, user, body.new_username)
    await db.commit()
    return UserResponse.from_user(user)


@router.post("/me/unlink-google", response_model=UserResponse)
async def unlink_google(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Detach the linked Google identity. A password must be set first."""
    await service.unlink_google(db, user)
    await db.commit()
    return UserResponse.from_user(user)

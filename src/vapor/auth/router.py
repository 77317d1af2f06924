"""Authentication router: all /api/v1/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth import service, tokens
from vapor.auth.dependencies import get_current_user
from vapor.auth.google import get_google_verifier
from vapor.auth.schemas import (
    DeleteAccountRequest,
    ForgotPasswordRequest,
    GoogleLoginRequest,
    LoginRequest,
    LogoutRequest,
    RefreshRequest,
    RegisterRequest,
    ResendVerificationRequest,
    ResetPasswordRequest,
    TokenResponse,
    UserResponse,
    VerifyEmailRequest,
)
from vapor.config import get_settings
from vapor.database import get_session
from vapor.db.models import User
from vapor.dependencies import get_redis_dep
from vapor.email.service import get_email_service
from vapor.errors import NotFoundError, TooManyRequestsError, ValidationFailed

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/auth", tags=["Authentication"])

RESEND_COOLDOWN_SECONDS = 300


def client_info(request: Request) -> tokens.ClientInfo:
    return tokens.ClientInfo(
        ip_address=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def token_response(issued: tokens.IssuedTokens) -> TokenResponse:
    return TokenResponse(
        access_token=issued.access_token,
        refresh_token=issued.refresh_token,
        expires_in=issued.expires_in,
        user=UserResponse.from_user(issued.user),
    )


async def _mail_verification_link(db: AsyncSession, user: User) -> None:
    settings = get_settings()
    raw_token = await service.start_email_verification(db, user)
    await get_email_service().send_template(
        to=user.email or "",
        template_name="verify_email",
        context={
            "display_name": user.display_name,
            "verify_url": f"{settings.frontend_base_url}/verify-email?token={raw_token}",
            "expires_minutes": settings.email_verification_token_ttl_minutes,
        },
    )


# ── Registration ──


@router.post("/register", response_model=UserResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),
) -> UserResponse:
    """Create an unverified account and mail its verification link."""
    user = await service.register_user(
        db,
        username=body.username,
        display_name=body.display_name,
        email=body.email,
        password=body.password,
    )
    try:
        await _mail_verification_link(db, user)
    except Exception:
        logger.exception("verification_email_failed", user_id=user.id)

    await db.commit()
    return UserResponse.from_user(user)


@router.post("/verify-email")
async def verify_email(
    body: VerifyEmailRequest,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    await service.verify_email(db, body.token)
    await db.commit()
    return {"status": "email_verified"}


@router.post("/resend-verification")
async def resend_verification(
    body: ResendVerificationRequest,
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> dict[str, str]:
    """One request per five minutes per account when Redis is available."""
    user = await service.get_user_by_email(db, body.email)
    if user is None:
        msg = "No account with that email"
        raise NotFoundError(msg)
    if user.is_email_verified:
        msg = "Email is already verified"
        raise ValidationFailed(msg)

    if redis is not None:
        if not await redis.set(f"resend_cooldown:{user.id}", "1", ex=RESEND_COOLDOWN_SECONDS, nx=True):
            msg = "Please wait before requesting another verification email"
            raise TooManyRequestsError(msg)

    await _mail_verification_link(db, user)
    await db.commit()
    return {"status": "verification_email_sent"}


# ── Sessions ──


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
    redis: Redis | None = Depends(get_redis_dep),
) -> TokenResponse:
    """Username or email, plus password. The email must be verified."""
    user = await service.authenticate_user(db, redis, body.login, body.password)
    issued = await tokens.issue_tokens(db, user, client_info(request))
    await db.commit()
    logger.info("user_logged_in", user_id=user.id)
    return token_response(issued)


@router.post("/google", response_model=TokenResponse)
async def google_login(
    body: GoogleLoginRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Sign in with a Google ID token, linking or creating the account as needed."""
    identity = await get_google_verifier().verify(body.id_token)
    user, outcome = await service.google_login(db, identity.google_id, identity.email, identity.name)
    issued = await tokens.issue_tokens(db, user, client_info(request))
    await db.commit()
    logger.info("user_logged_in", user_id=user.id, via="google", outcome=outcome)

    if outcome != service.GOOGLE_SIGNED_IN:
        if outcome == service.GOOGLE_LINKED:
            template_name, context = "google_linked", {"display_name": user.display_name}
        else:
            template_name, context = "google_welcome", {"display_name": user.display_name, "username": user.username}
        try:
            await get_email_service().send_template(to=user.email or "", template_name=template_name, context=context)
        except Exception:
            logger.exception("google_email_failed", user_id=user.id, outcome=outcome)
    return token_response(issued)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    body: RefreshRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> TokenResponse:
    """Rotate the refresh token. Reusing a rotated one signs the user out everywhere."""
    try:
        issued = await tokens.rotate_tokens(db, body.refresh_token, client_info(request))
    finally:
        # revocations from reuse detection persist even though the call fails
        await db.commit()
    return token_response(issued)


@router.post("/logout")
async def logout(
    body: LogoutRequest,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Always succeeds; unreadable tokens are ignored."""
    if await tokens.revoke_token(db, body.refresh_token):
        await db.commit()
    return {"status": "logged_out"}


@router.post("/logout-all")
async def logout_all(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    revoked = await tokens.revoke_all_tokens(db, user.id)
    await db.commit()
    return {"status": "all_sessions_revoked", "revoked_count": str(revoked)}


# ── Password reset ──


@router.post("/forgot-password")
async def forgot_password(
    body: ForgotPasswordRequest,
    request: Request,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Same answer whether or not the email exists."""
    pending = await service.request_password_reset(db, body.email, client_info(request).ip_address)
    if pending is not None:
        user, raw_token = pending
        settings = get_settings()
        await db.commit()
        try:
            await get_email_service().send_template(
                to=user.email or "",
                template_name="password_reset",
                context={
                    "reset_url": f"{settings.frontend_base_url}/reset-password?token={raw_token}",
                    "expires_minutes": settings.password_reset_token_ttl_minutes,
                },
            )
        except Exception:
            logger.exception("password_reset_email_failed", user_id=user.id)

    return {"status": "If that email exists, a reset link has been sent."}


@router.post("/reset-password")
async def reset_password(
    body: ResetPasswordRequest,
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    await service.reset_password(db, body.token, body.new_password)
    await db.commit()
    return {"status": "password_reset_complete"}


# ── Account ──


@router.delete("/account")
async def delete_account(
    body: DeleteAccountRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
) -> dict[str, str]:
    """Close the current account after confirming its password."""
    email, display_name = user.email, user.display_name
    await service.close_account(db, user, body.password)
    await db.commit()

    if email:
        try:
            await get_email_service().send_template(
                to=email,
                template_name="account_deleted",
                context={"display_name": display_name},
            )
        except Exception:
            logger.exception("account_deleted_email_failed")

    return {"status": "account_deleted"}

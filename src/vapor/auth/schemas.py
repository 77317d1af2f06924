"""Request/response schemas for authentication endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from pydantic import BaseModel, EmailStr, Field, field_validator

if TYPE_CHECKING:
    from vapor.db.models import User


# ---------------------------------------------------------------------------
# Registration / login
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Account registration request."""

    username: str = Field(..., min_length=1, max_length=64)
    display_name: str = Field(..., min_length=1, max_length=64)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class LoginRequest(BaseModel):
    """Login with username or email + password."""

    login: str = Field(..., min_length=1, max_length=320)
    password: str = Field(..., min_length=1, max_length=128)


class GoogleLoginRequest(BaseModel):
    """A Google ID token obtained by the client."""

    id_token: str = Field(..., min_length=1, max_length=4096)


class VerifyEmailRequest(BaseModel):
    """Verify email address with a token."""

    token: str


class ResendVerificationRequest(BaseModel):
    """Resend the verification email for an unverified account."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class ForgotPasswordRequest(BaseModel):
    """Request a password reset email."""

    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower().strip()


class ResetPasswordRequest(BaseModel):
    """Reset password with a valid token."""

    token: str
    new_password: str = Field(..., min_length=1, max_length=128)


class DeleteAccountRequest(BaseModel):
    """Account deletion requires the current password."""

    password: str = Field(..., min_length=1, max_length=128)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


class RefreshRequest(BaseModel):
    """Refresh token rotation request."""

    refresh_token: str


class LogoutRequest(BaseModel):
    """Logout (revoke refresh token)."""

    refresh_token: str


class TokenResponse(BaseModel):
    """Token response returned after successful auth."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int = 1800
    user: UserResponse


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Full account view for the owner."""

    id: int
    username: str
    display_name: str | None = None
    email: str | None = None
    is_email_verified: bool = False
    profile_picture: str | None = None
    role: str = "User"
    wallet: Decimal = Decimal("0.00")
    points: int = 0
    has_password: bool = True
    is_google_linked: bool = False
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_user(cls, user: User) -> UserResponse:
        return cls(
            id=user.id,
            username=user.username,
            display_name=user.display_name,
            email=user.email,
            is_email_verified=user.is_email_verified,
            profile_picture=user.profile_picture,
            role=user.role_label,
            wallet=user.wallet,
            points=user.points,
            has_password=user.password_hash is not None,
            is_google_linked=user.google_id is not None,
            created_at=user.created_at,
        )


class PublicUserResponse(BaseModel):
    """Public-facing user profile."""

    id: int
    username: str
    display_name: str | None = None
    profile_picture: str | None = None
    created_at: datetime | None = None

    model_config = {"from_attributes": True}

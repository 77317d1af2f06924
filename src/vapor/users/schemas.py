"""Request/response schemas for user account endpoints."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field, field_validator

from vapor.auth.schemas import PublicUserResponse, UserResponse


class ProfileUpdateRequest(BaseModel):
    """Partial profile update. Omitted fields are left unchanged."""

    display_name: str | None = Field(None, min_length=1, max_length=64)
    profile_picture: str | None = Field(None, max_length=2048)


class EmailChangeRequest(BaseModel):
    new_email: EmailStr

    @field_validator("new_email")
    @classmethod
    def normalize_email(cls, v: str) -> str:
        return v.lower().strip()


class ConfirmEmailChangeRequest(BaseModel):
    token: str


class ChangePasswordRequest(BaseModel):
    """Change password (requires current password)."""

    current_password: str = Field(..., min_length=1, max_length=128)
    new_password: str = Field(..., min_length=1, max_length=128)


class ChangeUsernameRequest(BaseModel):
    new_username: str = Field(..., min_length=1, max_length=64)


__all__ = [
    "ChangePasswordRequest",
    "ChangeUsernameRequest",
    "ConfirmEmailChangeRequest",
    "EmailChangeRequest",
    "ProfileUpdateRequest",
    "PublicUserResponse",
    "UserResponse",
]

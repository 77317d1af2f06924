"""Pydantic schemas for the admin back-office."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, EmailStr, Field

T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    items: list[T]
    total: int
    page: int
    per_page: int


# --- Users ---


class AdminUserResponse(BaseModel):
    id: int
    username: str
    display_name: str | None = None
    email: str | None = None
    role: str
    wallet: Decimal
    points: int
    is_email_verified: bool
    is_google_authenticated: bool
    created_at: datetime


class AdminCreateUserRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    display_name: str = Field(..., min_length=1, max_length=64)
    email: EmailStr
    password: str = Field(..., min_length=1, max_length=128)
    role: str = "User"


class AdminUpdateUserRequest(BaseModel):
    role: str | None = None
    wallet: Decimal | None = Field(None, ge=0)
    points: int | None = Field(None, ge=0)
    display_name: str | None = Field(None, max_length=64)


# --- Apps ---


class AdminAppRequest(BaseModel):
    app_name: str = Field(..., min_length=1, max_length=256)
    app_type_id: int
    base_app_id: int | None = None
    release_date: str = ""
    price: Decimal | None = Field(None, ge=0)
    description: str | None = None
    genre_ids: list[int] = []
    developer_ids: list[int] = []
    publisher_ids: list[int] = []


class AdminUpdateAppRequest(BaseModel):
    app_name: str | None = Field(None, min_length=1, max_length=256)
    app_type_id: int | None = None
    base_app_id: int | None = None
    release_date: str | None = None
    price: Decimal | None = Field(None, ge=0)
    description: str | None = None
    genre_ids: list[int] | None = None
    developer_ids: list[int] | None = None
    publisher_ids: list[int] | None = None


class AdminAppResponse(BaseModel):
    id: int
    app_name: str
    app_type_id: int
    base_app_id: int | None = None
    release_date: str
    price: Decimal | None = None
    description: str | None = None
    purchase_count: int
    genres: list[str] = []
    developers: list[str] = []
    publishers: list[str] = []


# --- Lookups (developers, publishers, genres, app types) ---


class LookupKind(str, Enum):
    developers = "developers"
    publishers = "publishers"
    genres = "genres"
    app_types = "app-types"


class LookupRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=256)


class LookupResponse(BaseModel):
    id: int
    name: str


# --- Read-only listings ---


class AdminPostResponse(BaseModel):
    id: int
    user_id: int | None = None
    author: str
    app_id: int
    content: str
    created_at: datetime


class AdminCommentResponse(BaseModel):
    id: int
    post_id: int
    user_id: int | None = None
    author: str
    comment_text: str
    created_at: datetime
    is_edited: bool


class AdminReviewResponse(BaseModel):
    id: int
    app_id: int
    user_id: int | None = None
    author: str
    is_recommended: bool
    review_text: str
    created_at: datetime
    is_edited: bool


class AdminOwnershipResponse(BaseModel):
    """Row of cart_items, wishlist or app_library."""

    id: int
    user_id: int
    app_id: int
    priority: int | None = None
    created_at: datetime | None = None


class AdminPurchaseResponse(BaseModel):
    id: int
    user_id: int
    app_id: int | None = None
    purchase_date: datetime
    price_at_purchase: Decimal
    payment_method: str
    wallet_change: Decimal | None = None
    wallet_balance_after: Decimal | None = None

    model_config = {"from_attributes": True}


class AdminNotificationResponse(BaseModel):
    id: int
    user_id: int
    sender_id: int | None = None
    post_id: int | None = None
    message: str
    is_read: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogResponse(BaseModel):
    id: int
    table_name: str
    operation_type: str
    row_id: str | None = None
    operation_timestamp: datetime
    modified_by: str | None = None

    model_config = {"from_attributes": True}

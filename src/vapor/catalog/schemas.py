"""Pydantic schemas for catalog and review endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

FREE_LABEL = "Free"


def price_label(price: Decimal | None) -> str:
    """Shown price: ``"Free"`` for NULL or zero, otherwise two decimals."""
    if price is None or price == 0:
        return FREE_LABEL
    return f"{price:.2f}"


# --- Apps ---


class StoreAppResponse(BaseModel):
    app_id: int
    app_name: str
    price: Decimal | None = None
    price_label: str
    is_free: bool
    header_image: str | None = None
    app_type_name: str
    base_app_id: int | None = None


class StoreListResponse(BaseModel):
    items: list[StoreAppResponse]
    total: int
    page: int
    limit: int


class ImageResponse(BaseModel):
    image_url: str
    thumbnail_url: str | None = None


class VideoResponse(BaseModel):
    video_url: str
    thumbnail_url: str


class AppDetailsResponse(StoreAppResponse):
    release_date: str
    description: str | None = None
    purchase_count: int
    genres: list[str] = []
    developers: list[str] = []
    publishers: list[str] = []
    screenshots: list[ImageResponse] = []
    videos: list[VideoResponse] = []


class GenreListResponse(BaseModel):
    genres: list[str]


# --- Reviews ---


class CreateReviewRequest(BaseModel):
    is_recommended: bool
    review_text: str = Field(..., min_length=1, max_length=8000)


class UpdateReviewRequest(BaseModel):
    is_recommended: bool
    review_text: str = Field(..., min_length=1, max_length=8000)


class ReviewResponse(BaseModel):
    id: int
    app_id: int
    user_id: int | None = None
    username: str | None = None
    user_display_name: str
    is_recommended: bool
    review_text: str
    created_at: datetime
    is_edited: bool


class ReviewSummaryResponse(BaseModel):
    recommended: int
    not_recommended: int
    total: int
    label: str


class ReviewListResponse(BaseModel):
    reviews: list[ReviewResponse]
    summary: ReviewSummaryResponse


class BooleanResponse(BaseModel):
    value: bool

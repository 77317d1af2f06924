"""Pydantic schemas for wishlist endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class AddToWishlistRequest(BaseModel):
    app_id: int


class MoveWishlistRequest(BaseModel):
    app_id: int
    new_priority: int = Field(..., ge=1)


class WishlistItemResponse(BaseModel):
    app_id: int
    app_name: str
    price: str
    header_image: str | None = None
    priority: int
    created_at: datetime


class WishlistResponse(BaseModel):
    items: list[WishlistItemResponse]

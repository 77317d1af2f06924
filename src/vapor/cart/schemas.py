"""Pydantic schemas for cart endpoints."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class AddToCartRequest(BaseModel):
    app_id: int


class MergeCartRequest(BaseModel):
    app_ids: list[int] = Field(default_factory=list, max_length=500)


class CartItemResponse(BaseModel):
    app_id: int
    app_name: str
    price: str  # "Free" or the decimal price
    header_image: str | None = None
    base_app_id: int | None = None


class CartResponse(BaseModel):
    items: list[CartItemResponse]
    total: Decimal


class AddToCartResponse(BaseModel):
    added: bool
    item_count: int

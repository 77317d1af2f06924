"""Pydantic schemas for store checkout and library endpoints."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class PurchaseRequest(BaseModel):
    points_to_use: int = Field(0, ge=0)


class PurchasedItemResponse(BaseModel):
    app_id: int
    app_name: str
    price: Decimal


class PurchaseResponse(BaseModel):
    items: list[PurchasedItemResponse]
    subtotal: Decimal
    total: Decimal
    points_used: int
    points_awarded: int
    wallet: Decimal
    points: int


class FreeClaimResponse(BaseModel):
    app_id: int
    app_name: str


class RelatedAppResponse(BaseModel):
    app_id: int
    app_name: str
    app_type_name: str
    header_image: str | None = None
    is_owned: bool


class LibraryAppResponse(BaseModel):
    app_id: int
    app_name: str
    app_type_name: str
    header_image: str | None = None
    related: list[RelatedAppResponse] = []


class LibraryResponse(BaseModel):
    username: str
    apps: list[LibraryAppResponse]


class PurchaseHistoryItem(BaseModel):
    id: int
    app_id: int | None = None
    app_name: str
    purchase_date: datetime
    price_at_purchase: Decimal
    payment_method: str
    wallet_change: Decimal | None = None
    wallet_balance_after: Decimal | None = None

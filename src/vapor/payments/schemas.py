"""Pydantic schemas for payment endpoints."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    amount: Decimal
    auto_purchase: bool = False
    points_to_use: int = Field(0, ge=0)


class CreateSessionResponse(BaseModel):
    session_id: str
    url: str


class SessionTokenRequest(BaseModel):
    session_id: str = Field(..., min_length=1, max_length=255)
    token: str = Field(..., min_length=1, max_length=256)


class ConfirmSessionResponse(BaseModel):
    wallet: Decimal

"""Wallet top-up endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.dependencies import get_current_user
from vapor.database import get_session
from vapor.db.models import User
from vapor.errors import ValidationFailed
from vapor.payments.schemas import (
    ConfirmSessionResponse,
    CreateSessionRequest,
    CreateSessionResponse,
    SessionTokenRequest,
)
from vapor.payments.service import cancel_top_up, confirm_top_up, create_top_up_session
from vapor.payments.stripe import get_stripe_client

router = APIRouter(prefix="/api/v1/payments", tags=["Payments"])


@router.post("/create-session", response_model=CreateSessionResponse)
async def create_session(
    body: CreateSessionRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Start a Stripe Checkout top-up."""
    session = await create_top_up_session(
        db,
        user,
        body.amount,
        get_stripe_client(),
        auto_purchase=body.auto_purchase,
        points_to_use=body.points_to_use,
    )
    await db.commit()
    return CreateSessionResponse(session_id=session.id, url=session.url)


@router.post("/confirm-session", response_model=ConfirmSessionResponse)
async def confirm_session(
    body: SessionTokenRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Credit the wallet after a successful checkout."""
    try:
        wallet = await confirm_top_up(db, user, body.session_id, body.token)
    except ValidationFailed:
        # keep the expired-token cleanup
        await db.commit()
        raise
    await db.commit()
    return ConfirmSessionResponse(wallet=wallet)


@router.post("/cancel-session", status_code=200)
async def cancel_session(
    body: SessionTokenRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await cancel_top_up(db, user, body.session_id, body.token, get_stripe_client())
    await db.commit()
    return {"detail": "Payment session cancelled"}

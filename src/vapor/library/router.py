"""Store checkout, library and purchase history endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.dependencies import get_current_user
from vapor.catalog.service import header_images
from vapor.database import get_session
from vapor.db.models import User
from vapor.email.service import get_email_service
from vapor.library.schemas import (
    FreeClaimResponse,
    LibraryAppResponse,
    LibraryResponse,
    PurchasedItemResponse,
    PurchaseHistoryItem,
    PurchaseRequest,
    PurchaseResponse,
    RelatedAppResponse,
)
from vapor.library.service import (
    PurchaseResult,
    claim_free_app,
    get_library,
    get_purchase_history,
    get_user_or_404,
    history_app_name,
    purchase_cart,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/v1/store", tags=["Store"])


async def _send_invoice(user: User, result: PurchaseResult) -> None:
    """Email the receipt. Failures are logged; the purchase stands."""
    if not user.email:
        return
    try:
        await get_email_service().send_template(
            to=user.email,
            template_name="purchase_invoice",
            context={
                "display_name": user.display_name,
                "items": [{"app_name": i.app_name, "price": i.price} for i in result.items],
                "total": result.total,
                "wallet_after": result.wallet_after,
                "points_used": result.points_used,
            },
        )
    except Exception:
        logger.exception("purchase_invoice_email_failed", user_id=user.id)


async def _library_response(db: AsyncSession, user: User) -> LibraryResponse:
    entries = await get_library(db, user.id)
    ids = [e.app.id for e in entries] + [a.id for e in entries for a, _ in e.related]
    headers = await header_images(db, ids)
    return LibraryResponse(
        username=user.username,
        apps=[
            LibraryAppResponse(
                app_id=e.app.id,
                app_name=e.app.app_name,
                app_type_name=e.app.app_type.type_name,
                header_image=headers.get(e.app.id),
                related=[
                    RelatedAppResponse(
                        app_id=app.id,
                        app_name=app.app_name,
                        app_type_name=app.app_type.type_name,
                        header_image=headers.get(app.id),
                        is_owned=owned,
                    )
                    for app, owned in e.related
                ],
            )
            for e in entries
        ],
    )


@router.post("/purchase", response_model=PurchaseResponse)
async def purchase(
    body: PurchaseRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Buy the whole cart with the wallet, optionally redeeming points."""
    result = await purchase_cart(db, user, body.points_to_use)
    await db.commit()
    await _send_invoice(user, result)
    return PurchaseResponse(
        items=[PurchasedItemResponse(app_id=i.app_id, app_name=i.app_name, price=i.price) for i in result.items],
        subtotal=result.subtotal,
        total=result.total,
        points_used=result.points_used,
        points_awarded=result.points_awarded,
        wallet=user.wallet,
        points=user.points,
    )


@router.post("/free/{app_id}", response_model=FreeClaimResponse)
async def claim_free(
    app_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    app = await claim_free_app(db, user, app_id)
    await db.commit()
    return FreeClaimResponse(app_id=app.id, app_name=app.app_name)


@router.get("/library", response_model=LibraryResponse)
async def my_library(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await _library_response(db, user)


@router.get("/library/{username}", response_model=LibraryResponse)
async def public_library(username: str, db: AsyncSession = Depends(get_session)):
    """Anyone's library, by username."""
    user = await get_user_or_404(db, username)
    return await _library_response(db, user)


@router.get("/purchase-history", response_model=list[PurchaseHistoryItem])
async def purchase_history(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows = await get_purchase_history(db, user.id)
    return [
        PurchaseHistoryItem(
            id=r.id,
            app_id=r.app_id,
            app_name=history_app_name(r),
            purchase_date=r.purchase_date,
            price_at_purchase=r.price_at_purchase,
            payment_method=r.payment_method,
            wallet_change=r.wallet_change,
            wallet_balance_after=r.wallet_balance_after,
        )
        for r in rows
    ]

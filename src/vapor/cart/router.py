"""Cart API endpoints."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.dependencies import get_current_user
from vapor.cart.schemas import (
    AddToCartRequest,
    AddToCartResponse,
    CartItemResponse,
    CartResponse,
    MergeCartRequest,
)
from vapor.cart.service import add_to_cart, cart_app_ids, clear_cart, get_cart, merge_cart, remove_from_cart
from vapor.catalog.schemas import price_label
from vapor.catalog.service import header_images
from vapor.database import get_session
from vapor.db.models import User

router = APIRouter(prefix="/api/v1/cart", tags=["Cart"])


async def _cart_response(db: AsyncSession, user_id: int) -> CartResponse:
    items = await get_cart(db, user_id)
    headers = await header_images(db, (i.app_id for i in items))
    return CartResponse(
        items=[
            CartItemResponse(
                app_id=i.app_id,
                app_name=i.app.app_name,
                price=price_label(i.app.price),
                header_image=headers.get(i.app_id),
                base_app_id=i.app.base_app_id,
            )
            for i in items
        ],
        total=sum((i.app.price or Decimal("0") for i in items), Decimal("0.00")),
    )


@router.get("", response_model=CartResponse)
async def view_cart(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await _cart_response(db, user.id)


@router.post("/add", response_model=AddToCartResponse)
async def add_item(
    body: AddToCartRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Add an app. Adding an app already in the cart is a no-op."""
    added = await add_to_cart(db, user.id, body.app_id)
    await db.commit()
    return AddToCartResponse(added=added, item_count=len(await cart_app_ids(db, user.id)))


@router.delete("/{app_id}", status_code=200)
async def remove_item(
    app_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await remove_from_cart(db, user.id, app_id)
    await db.commit()
    return {"detail": "Removed from cart"}


@router.delete("", status_code=200)
async def clear(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    count = await clear_cart(db, user.id)
    await db.commit()
    return {"detail": f"Removed {count} items"}


@router.post("/merge", response_model=CartResponse)
async def merge(
    body: MergeCartRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Merge a guest cart into the server cart and return the result."""
    await merge_cart(db, user.id, body.app_ids)
    await db.commit()
    return await _cart_response(db, user.id)

"""Wishlist API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.dependencies import get_current_user
from vapor.catalog.schemas import price_label
from vapor.catalog.service import header_images
from vapor.database import get_session
from vapor.db.models import User
from vapor.wishlist.schemas import (
    AddToWishlistRequest,
    MoveWishlistRequest,
    WishlistItemResponse,
    WishlistResponse,
)
from vapor.wishlist.service import add_to_wishlist, get_wishlist, move_wishlist_item, remove_from_wishlist

router = APIRouter(prefix="/api/v1/wishlist", tags=["Wishlist"])


async def _wishlist_response(db: AsyncSession, user_id: int) -> WishlistResponse:
    entries = await get_wishlist(db, user_id)
    headers = await header_images(db, (e.app_id for e in entries))
    return WishlistResponse(
        items=[
            WishlistItemResponse(
                app_id=e.app_id,
                app_name=e.app.app_name,
                price=price_label(e.app.price),
                header_image=headers.get(e.app_id),
                priority=e.priority,
                created_at=e.created_at,
            )
            for e in entries
        ]
    )


@router.get("", response_model=WishlistResponse)
async def view_wishlist(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return await _wishlist_response(db, user.id)


@router.post("", response_model=WishlistResponse, status_code=201)
async def add_item(
    body: AddToWishlistRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await add_to_wishlist(db, user.id, body.app_id)
    await db.commit()
    return await _wishlist_response(db, user.id)


@router.delete("/{app_id}", response_model=WishlistResponse)
async def remove_item(
    app_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await remove_from_wishlist(db, user.id, app_id)
    await db.commit()
    return await _wishlist_response(db, user.id)


@router.put("/priority", response_model=WishlistResponse)
async def move_item(
    body: MoveWishlistRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Reorder: entries between the old and new position shift by one."""
    await move_wishlist_item(db, user.id, body.app_id, body.new_priority)
    await db.commit()
    return await _wishlist_response(db, user.id)

"""Server-side cart.

Adding is idempotent. A DLC can only go into the cart when its base game is
owned or already in the cart.
"""

from __future__ import annotations

from collections.abc import Iterable

import structlog
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vapor.catalog.service import get_app, owned_app_ids, user_owns_app
from vapor.db.models import App, CartItem
from vapor.errors import ConflictError, NotFoundError, ValidationFailed

logger = structlog.get_logger()

DLC_BASE_REQUIRED = "You must own the base game before adding this DLC."


async def get_cart(db: AsyncSession, user_id: int) -> list[CartItem]:
    """Cart rows with their apps, in the order they were added."""
    result = await db.execute(
        select(CartItem)
        .options(selectinload(CartItem.app))
        .where(CartItem.user_id == user_id)
        .order_by(CartItem.added_at, CartItem.id)
    )
    return list(result.scalars().all())


async def cart_app_ids(db: AsyncSession, user_id: int) -> set[int]:
    result = await db.execute(select(CartItem.app_id).where(CartItem.user_id == user_id))
    return set(result.scalars().all())


def base_available(app: App, owned: set[int], in_cart: set[int]) -> bool:
    """True when the app needs no base game, or its base is owned or in the cart."""
    if app.base_app_id is None:
        return True
    return app.base_app_id in owned or app.base_app_id in in_cart


async def add_to_cart(db: AsyncSession, user_id: int, app_id: int) -> bool:
    """
    Put an app in the cart. Returns False when it was already there.

    Raises:
        NotFoundError: Unknown app.
        ConflictError: The app is already owned.
        ValidationFailed: DLC whose base game is neither owned nor in the cart.
    """
    app = await get_app(db, app_id)
    in_cart = await cart_app_ids(db, user_id)
    if app_id in in_cart:
        return False
    if await user_owns_app(db, user_id, app_id):
        msg = "You already own this app."
        raise ConflictError(msg)
    owned = await owned_app_ids(db, user_id)
    if not base_available(app, owned, in_cart):
        raise ValidationFailed(DLC_BASE_REQUIRED)

    db.add(CartItem(user_id=user_id, app_id=app_id))
    await db.flush()
    logger.info("cart_item_added", user_id=user_id, app_id=app_id)
    return True


async def remove_from_cart(db: AsyncSession, user_id: int, app_id: int) -> None:
    """
    Raises:
        NotFoundError: The app is not in the cart.
    """
    result = await db.execute(
        delete(CartItem).where(CartItem.user_id == user_id, CartItem.app_id == app_id)
    )
    if result.rowcount == 0:
        msg = "App is not in the cart."
        raise NotFoundError(msg)
    await db.flush()


async def clear_cart(db: AsyncSession, user_id: int) -> int:
    """Empty the cart. Returns the number of removed items."""
    result = await db.execute(delete(CartItem).where(CartItem.user_id == user_id))
    await db.flush()
    return result.rowcount


async def merge_cart(db: AsyncSession, user_id: int, app_ids: Iterable[int]) -> list[int]:
    """
    Union a guest cart into the server cart.

    Unknown, owned and already present apps are skipped. Returns the ids that
    were added.
    """
    wanted = list(dict.fromkeys(app_ids))
    if not wanted:
        return []
    existing = await cart_app_ids(db, user_id)
    owned = await owned_app_ids(db, user_id)
    known = set((await db.execute(select(App.id).where(App.id.in_(wanted)))).scalars().all())

    added: list[int] = []
    for app_id in wanted:
        if app_id not in known or app_id in owned or app_id in existing:
            continue
        db.add(CartItem(user_id=user_id, app_id=app_id))
        existing.add(app_id)
        added.append(app_id)
    await db.flush()
    logger.info("cart_merged", user_id=user_id, requested=len(wanted), added=len(added))
    return added

"""Wishlist with contiguous 1..n priorities."""

from __future__ import annotations

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vapor.catalog.service import get_app, user_owns_app
from vapor.db.models import Wishlist
from vapor.errors import ConflictError, NotFoundError, ValidationFailed

logger = structlog.get_logger()


async def get_wishlist(db: AsyncSession, user_id: int) -> list[Wishlist]:
    """Entries ordered by priority."""
    result = await db.execute(
        select(Wishlist)
        .options(selectinload(Wishlist.app))
        .where(Wishlist.user_id == user_id)
        .order_by(Wishlist.priority, Wishlist.id)
    )
    return list(result.scalars().all())


async def renumber_wishlist(db: AsyncSession, user_id: int) -> None:
    """Rewrite priorities as 1..n keeping the current order."""
    entries = await get_wishlist(db, user_id)
    for position, entry in enumerate(entries, start=1):
        if entry.priority != position:
            entry.priority = position
    await db.flush()


async def add_to_wishlist(db: AsyncSession, user_id: int, app_id: int) -> Wishlist:
    """
    Append an app at the lowest priority.

    Raises:
        NotFoundError: Unknown app.
        ConflictError: Already wishlisted or already owned.
    """
    await get_app(db, app_id)
    existing = await db.execute(
        select(Wishlist.id).where(Wishlist.user_id == user_id, Wishlist.app_id == app_id)
    )
    if existing.first() is not None:
        msg = "App is already in your wishlist."
        raise ConflictError(msg)
    if await user_owns_app(db, user_id, app_id):
        msg = "You already own this app."
        raise ConflictError(msg)

    max_priority = (
        await db.execute(select(func.max(Wishlist.priority)).where(Wishlist.user_id == user_id))
    ).scalar_one()
    entry = Wishlist(user_id=user_id, app_id=app_id, priority=(max_priority or 0) + 1)
    db.add(entry)
    await db.flush()
    logger.info("wishlist_added", user_id=user_id, app_id=app_id, priority=entry.priority)
    return entry


async def remove_from_wishlist(db: AsyncSession, user_id: int, app_id: int) -> None:
    """
    Raises:
        NotFoundError: The app is not wishlisted.
    """
    result = await db.execute(
        select(Wishlist).where(Wishlist.user_id == user_id, Wishlist.app_id == app_id)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        msg = "App is not in your wishlist."
        raise NotFoundError(msg)
    await db.delete(entry)
    await db.flush()
    await renumber_wishlist(db, user_id)


async def move_wishlist_item(db: AsyncSession, user_id: int, app_id: int, new_priority: int) -> list[Wishlist]:
    """
    Move an entry to ``new_priority``; entries in between shift by one.

    Raises:
        NotFoundError: The app is not wishlisted.
        ValidationFailed: Priority outside 1..n.
    """
    entries = await get_wishlist(db, user_id)
    moving = next((e for e in entries if e.app_id == app_id), None)
    if moving is None:
        msg = "App is not in your wishlist."
        raise NotFoundError(msg)
    if not 1 <= new_priority <= len(entries):
        msg = f"Priority must be between 1 and {len(entries)}."
        raise ValidationFailed(msg)

    entries.remove(moving)
    entries.insert(new_priority - 1, moving)
    for position, entry in enumerate(entries, start=1):
        entry.priority = position
    await db.flush()
    return entries

"""Notification creation and retrieval.

Notifications are written server-side when someone interacts with a user's
content and fetched on demand by the client. There is no push channel.
"""

from __future__ import annotations

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.db.base import utcnow
from vapor.db.models import Notification

logger = structlog.get_logger()


async def create_notification(
    db: AsyncSession,
    user_id: int,
    message: str,
    sender_id: int | None = None,
    post_id: int | None = None,
) -> Notification:
    """Persist a notification for ``user_id``."""
    notification = Notification(
        user_id=user_id,
        sender_id=sender_id,
        post_id=post_id,
        message=message,
        is_read=False,
        created_at=utcnow(),
    )
    db.add(notification)
    await db.flush()
    logger.debug("notification_created", user_id=user_id, sender_id=sender_id, post_id=post_id)
    return notification


async def get_notifications(
    db: AsyncSession,
    user_id: int,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Notification], int]:
    """Get user's notifications (paginated, most recent first)."""
    offset = (page - 1) * per_page

    total_result = await db.execute(
        select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def mark_as_read(db: AsyncSession, user_id: int, notification_id: int) -> bool:
    """Mark a single notification as read. Returns True if found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(is_read=True)
    )
    await db.flush()
    return result.rowcount > 0


async def mark_all_as_read(db: AsyncSession, user_id: int) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.flush()
    return result.rowcount


async def clear_notifications(db: AsyncSession, user_id: int) -> int:
    """Delete every notification of the user. Returns count deleted."""
    result = await db.execute(delete(Notification).where(Notification.user_id == user_id))
    await db.flush()
    return result.rowcount


async def get_unread_count(db: AsyncSession, user_id: int) -> int:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return result.scalar_one()

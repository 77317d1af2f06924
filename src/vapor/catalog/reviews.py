"""App reviews: listing, eligibility, creation and editing.

Only owners may review an app, once. Editing is limited to the author and
must actually change something.
"""

from __future__ import annotations

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vapor.catalog.service import get_app, user_owns_app
from vapor.db.base import utcnow
from vapor.db.models import AppReview, User
from vapor.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailed

logger = structlog.get_logger()


async def list_reviews(db: AsyncSession, app_id: int) -> list[AppReview]:
    """Reviews of an app, newest first."""
    result = await db.execute(
        select(AppReview)
        .options(selectinload(AppReview.user))
        .where(AppReview.app_id == app_id)
        .order_by(AppReview.created_at.desc(), AppReview.id.desc())
    )
    return list(result.scalars().all())


async def has_reviewed(db: AsyncSession, user_id: int, app_id: int) -> bool:
    result = await db.execute(
        select(AppReview.id).where(AppReview.user_id == user_id, AppReview.app_id == app_id)
    )
    return result.first() is not None


async def add_review(
    db: AsyncSession,
    user: User,
    app_id: int,
    is_recommended: bool,
    review_text: str,
) -> AppReview:
    """
    Raises:
        NotFoundError: Unknown app.
        ForbiddenError: The user does not own the app.
        ConflictError: The user already reviewed the app.
        ValidationFailed: Empty review text.
    """
    await get_app(db, app_id)
    text = review_text.strip()
    if not text:
        msg = "Review text cannot be empty."
        raise ValidationFailed(msg)
    if not await user_owns_app(db, user.id, app_id):
        msg = "You must own this app to review it."
        raise ForbiddenError(msg)
    if await has_reviewed(db, user.id, app_id):
        msg = "You have already reviewed this app."
        raise ConflictError(msg)

    review = AppReview(
        app_id=app_id,
        user_id=user.id,
        user_display_name=user.public_name,
        is_recommended=is_recommended,
        review_text=text,
        created_at=utcnow(),
        is_edited=False,
    )
    db.add(review)
    await db.flush()
    logger.info("review_created", user_id=user.id, app_id=app_id, recommended=is_recommended)
    return review


async def update_review(
    db: AsyncSession,
    user: User,
    review_id: int,
    is_recommended: bool,
    review_text: str,
) -> AppReview:
    """
    Raises:
        NotFoundError: Unknown review.
        ForbiddenError: The review belongs to someone else.
        ValidationFailed: Nothing changed, or the text is empty.
    """
    review = await db.get(AppReview, review_id)
    if review is None:
        msg = "Review not found."
        raise NotFoundError(msg)
    if review.user_id != user.id:
        msg = "You can only edit your own review."
        raise ForbiddenError(msg)

    text = review_text.strip()
    if not text:
        msg = "Review text cannot be empty."
        raise ValidationFailed(msg)
    if review.is_recommended == is_recommended and review.review_text == text:
        msg = "No changes detected."
        raise ValidationFailed(msg)

    review.is_recommended = is_recommended
    review.review_text = text
    review.is_edited = True
    await db.flush()
    return review

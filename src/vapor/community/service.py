"""
Community feed: posts, likes and comments.

Posts are tied to an app the author owns. Likes and comments notify the post
owner. Comment deletion is a soft delete that keeps the thread intact.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vapor.catalog.service import get_app, user_owns_app
from vapor.db.base import utcnow
from vapor.db.models import DELETED_DISPLAY_NAME, Notification, Post, PostComment, PostLike, User
from vapor.errors import ForbiddenError, NotFoundError, ValidationFailed
from vapor.notifications.service import create_notification

logger = structlog.get_logger()

COMMENT_DELETED_BY_USER = "Comment deleted by user"
COMMENT_DELETED_BY_OWNER = "Comment deleted by post owner"


def liked_message(name: str) -> str:
    return f"{name} liked your post."


def commented_message(name: str) -> str:
    return f"{name} commented on your post."


COMMENT_REMOVED_MESSAGE = "Your comment was removed by the post owner."


def author_display(user_id: int | None, stored_name: str) -> str:
    """Name shown for content whose author may have been deleted."""
    return stored_name if user_id is not None else DELETED_DISPLAY_NAME


async def get_post(db: AsyncSession, post_id: int) -> Post:
    """
    Raises:
        NotFoundError: Unknown post.
    """
    result = await db.execute(
        select(Post).options(selectinload(Post.user), selectinload(Post.app)).where(Post.id == post_id)
    )
    post = result.scalar_one_or_none()
    if post is None:
        msg = "Post not found."
        raise NotFoundError(msg)
    return post


async def post_counts(db: AsyncSession, post_ids: Sequence[int]) -> tuple[dict[int, int], dict[int, int]]:
    """Like and comment counts keyed by post id."""
    if not post_ids:
        return {}, {}
    likes = await db.execute(
        select(PostLike.post_id, func.count()).where(PostLike.post_id.in_(post_ids)).group_by(PostLike.post_id)
    )
    comments = await db.execute(
        select(PostComment.post_id, func.count())
        .where(PostComment.post_id.in_(post_ids))
        .group_by(PostComment.post_id)
    )
    return dict(likes.all()), dict(comments.all())


# ---------------------------------------------------------------------------
# Posts
# ---------------------------------------------------------------------------


async def get_feed(
    db: AsyncSession,
    page: int = 1,
    per_page: int = 20,
    app_id: int | None = None,
) -> tuple[list[Post], int]:
    """Posts newest first, optionally for one app."""
    count_stmt = select(func.count()).select_from(Post)
    stmt = select(Post).options(selectinload(Post.user), selectinload(Post.app))
    if app_id is not None:
        count_stmt = count_stmt.where(Post.app_id == app_id)
        stmt = stmt.where(Post.app_id == app_id)
    total = (await db.execute(count_stmt)).scalar_one()
    result = await db.execute(
        stmt.order_by(Post.created_at.desc(), Post.id.desc()).offset((page - 1) * per_page).limit(per_page)
    )
    return list(result.scalars().all()), total


async def create_post(
    db: AsyncSession,
    user: User,
    app_id: int,
    content: str,
    image_url: str | None = None,
) -> Post:
    """
    Raises:
        NotFoundError: Unknown app.
        ForbiddenError: The user does not own the app.
        ValidationFailed: Empty content.
    """
    await get_app(db, app_id)
    if not await user_owns_app(db, user.id, app_id):
        msg = "You must own this app to post about it."
        raise ForbiddenError(msg)
    content = content.strip()
    if not content:
        msg = "Post content cannot be empty."
        raise ValidationFailed(msg)

    post = Post(
        user_id=user.id,
        user_display_name=user.public_name,
        content=content,
        app_id=app_id,
        image_url=image_url,
        created_at=utcnow(),
    )
    db.add(post)
    await db.flush()
    logger.info("post_created", user_id=user.id, post_id=post.id, app_id=app_id)
    return await get_post(db, post.id)


async def delete_post(db: AsyncSession, user: User, post_id: int) -> None:
    """
    Remove a post with its likes and comments.

    Raises:
        NotFoundError: Unknown post.
        ForbiddenError: Not the author.
    """
    post = await get_post(db, post_id)
    if post.user_id != user.id:
        msg = "You can only delete your own posts."
        raise ForbiddenError(msg)
    await remove_post(db, post)
    logger.info("post_deleted", user_id=user.id, post_id=post_id)


async def remove_post(db: AsyncSession, post: Post) -> None:
    """Delete a post and everything hanging off it."""
    await db.execute(delete(PostLike).where(PostLike.post_id == post.id))
    await db.execute(delete(PostComment).where(PostComment.post_id == post.id))
    await db.execute(update(Notification).where(Notification.post_id == post.id).values(post_id=None))
    await db.delete(post)
    await db.flush()


# ---------------------------------------------------------------------------
# Likes
# ---------------------------------------------------------------------------


async def toggle_like(db: AsyncSession, user: User, post_id: int) -> tuple[bool, int]:
    """
    Like or unlike a post. Returns ``(liked, like_count)``.

    A new like notifies the post owner unless they liked their own post.
    """
    post = await get_post(db, post_id)
    existing = (
        await db.execute(select(PostLike).where(PostLike.post_id == post_id, PostLike.user_id == user.id))
    ).scalar_one_or_none()

    if existing is not None:
        await db.delete(existing)
        liked = False
    else:
        db.add(PostLike(post_id=post_id, user_id=user.id, liked_at=utcnow()))
        liked = True
        if post.user_id is not None and post.user_id != user.id:
            await create_notification(
                db, post.user_id, liked_message(user.public_name), sender_id=user.id, post_id=post_id
            )
    await db.flush()

    count = (
        await db.execute(select(func.count()).select_from(PostLike).where(PostLike.post_id == post_id))
    ).scalar_one()
    return liked, count


async def get_likers(db: AsyncSession, post_id: int) -> list[User]:
    await get_post(db, post_id)
    result = await db.execute(
        select(User)
        .join(PostLike, PostLike.user_id == User.id)
        .where(PostLike.post_id == post_id)
        .order_by(PostLike.liked_at, PostLike.id)
    )
    return list(result.scalars().all())


async def liked_post_ids(db: AsyncSession, user_id: int) -> list[int]:
    result = await db.execute(select(PostLike.post_id).where(PostLike.user_id == user_id).order_by(PostLike.post_id))
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


async def list_comments(db: AsyncSession, post_id: int) -> list[PostComment]:
    """Comments oldest first."""
    await get_post(db, post_id)
    result = await db.execute(
        select(PostComment)
        .options(selectinload(PostComment.user))
        .where(PostComment.post_id == post_id)
        .order_by(PostComment.created_at, PostComment.id)
    )
    return list(result.scalars().all())


async def _get_comment(db: AsyncSession, comment_id: int) -> PostComment:
    result = await db.execute(
        select(PostComment)
        .options(selectinload(PostComment.post), selectinload(PostComment.user))
        .where(PostComment.id == comment_id)
    )
    comment = result.scalar_one_or_none()
    if comment is None:
        msg = "Comment not found."
        raise NotFoundError(msg)
    return comment


async def add_comment(db: AsyncSession, user: User, post_id: int, text: str) -> PostComment:
    """
    Comment on a post and notify its owner.

    Raises:
        NotFoundError: Unknown post.
        ValidationFailed: Empty text.
    """
    post = await get_post(db, post_id)
    text = text.strip()
    if not text:
        msg = "Comment cannot be empty."
        raise ValidationFailed(msg)

    comment = PostComment(
        post_id=post_id,
        user_id=user.id,
        user_display_name=user.public_name,
        comment_text=text,
        created_at=utcnow(),
        is_edited=False,
    )
    db.add(comment)
    if post.user_id is not None and post.user_id != user.id:
        await create_notification(
            db, post.user_id, commented_message(user.public_name), sender_id=user.id, post_id=post_id
        )
    await db.flush()
    return await _get_comment(db, comment.id)


async def edit_comment(db: AsyncSession, user: User, comment_id: int, text: str) -> PostComment:
    """
    Raises:
        NotFoundError: Unknown comment.
        ForbiddenError: Not the author.
        ValidationFailed: Empty or unchanged text.
    """
    comment = await _get_comment(db, comment_id)
    if comment.user_id != user.id:
        msg = "You can only edit your own comments."
        raise ForbiddenError(msg)
    text = text.strip()
    if not text:
        msg = "Comment cannot be empty."
        raise ValidationFailed(msg)
    if text == comment.comment_text:
        msg = "No changes detected."
        raise ValidationFailed(msg)

    comment.comment_text = text
    comment.is_edited = True
    await db.flush()
    return comment


async def delete_comment(db: AsyncSession, user: User, comment_id: int) -> PostComment:
    """
    Soft-delete a comment.

    The author's deletion anonymizes the comment. The post owner's deletion
    replaces the text and notifies the commenter.

    Raises:
        NotFoundError: Unknown comment.
        ForbiddenError: Neither the author nor the post owner.
    """
    comment = await _get_comment(db, comment_id)
    if comment.user_id is not None and comment.user_id == user.id:
        comment.user_display_name = DELETED_DISPLAY_NAME
        comment.comment_text = COMMENT_DELETED_BY_USER
        comment.user_id = None
        comment.user = None
        logger.info("comment_deleted_by_author", comment_id=comment_id)
    elif comment.post.user_id is not None and comment.post.user_id == user.id:
        comment.comment_text = COMMENT_DELETED_BY_OWNER
        if comment.user_id is not None and comment.user_id != user.id:
            await create_notification(
                db, comment.user_id, COMMENT_REMOVED_MESSAGE, sender_id=user.id, post_id=comment.post_id
            )
        logger.info("comment_deleted_by_post_owner", comment_id=comment_id)
    else:
        msg = "You cannot delete this comment."
        raise ForbiddenError(msg)
    await db.flush()
    return comment

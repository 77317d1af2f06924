"""Community API endpoints: feed, likes and comments."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.dependencies import get_current_user
from vapor.catalog.service import header_images
from vapor.community.schemas import (
    CommentRequest,
    CommentResponse,
    CreatePostRequest,
    FeedResponse,
    LikedPostsResponse,
    LikerResponse,
    LikeToggleResponse,
    PostResponse,
)
from vapor.community.service import (
    add_comment,
    author_display,
    create_post,
    delete_comment,
    delete_post,
    edit_comment,
    get_feed,
    get_likers,
    list_comments,
    liked_post_ids,
    post_counts,
    toggle_like,
)
from vapor.database import get_session
from vapor.db.models import Post, PostComment, User

router = APIRouter(prefix="/api/v1/posts", tags=["Community"])


# ── Helpers ──


async def _post_responses(db: AsyncSession, posts: list[Post]) -> list[PostResponse]:
    ids = [p.id for p in posts]
    likes, comments = await post_counts(db, ids)
    headers = await header_images(db, (p.app_id for p in posts))
    return [
        PostResponse(
            id=p.id,
            user_id=p.user_id,
            username=p.user.username if p.user is not None else None,
            user_display_name=author_display(p.user_id, p.user_display_name),
            profile_picture=p.user.profile_picture if p.user is not None else None,
            content=p.content,
            image_url=p.image_url,
            app_id=p.app_id,
            app_name=p.app.app_name,
            app_header_image=headers.get(p.app_id),
            created_at=p.created_at,
            like_count=likes.get(p.id, 0),
            comment_count=comments.get(p.id, 0),
        )
        for p in posts
    ]


def _comment_response(c: PostComment) -> CommentResponse:
    return CommentResponse(
        id=c.id,
        post_id=c.post_id,
        user_id=c.user_id,
        username=c.user.username if c.user is not None else None,
        user_display_name=author_display(c.user_id, c.user_display_name),
        profile_picture=c.user.profile_picture if c.user is not None else None,
        comment_text=c.comment_text,
        created_at=c.created_at,
        is_edited=c.is_edited,
    )


# ── Posts ──


@router.get("", response_model=FeedResponse)
async def feed(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    app_id: int | None = Query(None),
    db: AsyncSession = Depends(get_session),
):
    """Community feed, newest first."""
    posts, total = await get_feed(db, page, per_page, app_id)
    return FeedResponse(posts=await _post_responses(db, posts), total=total, page=page, per_page=per_page)


@router.post("", response_model=PostResponse, status_code=201)
async def new_post(
    body: CreatePostRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Post about an owned app."""
    post = await create_post(db, user, body.app_id, body.content, body.image_url)
    await db.commit()
    return (await _post_responses(db, [post]))[0]


@router.get("/liked", response_model=LikedPostsResponse)
async def my_liked_posts(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return LikedPostsResponse(post_ids=await liked_post_ids(db, user.id))


@router.delete("/{post_id}", status_code=200)
async def remove_post(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    await delete_post(db, user, post_id)
    await db.commit()
    return {"detail": "Post deleted"}


# ── Likes ──


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
async def like(
    post_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Toggle a like on a post."""
    liked, count = await toggle_like(db, user, post_id)
    await db.commit()
    return LikeToggleResponse(liked=liked, like_count=count)


@router.get("/{post_id}/likers", response_model=list[LikerResponse])
async def likers(post_id: int, db: AsyncSession = Depends(get_session)):
    users = await get_likers(db, post_id)
    return [
        LikerResponse(
            user_id=u.id,
            username=u.username,
            display_name=u.public_name,
            profile_picture=u.profile_picture,
        )
        for u in users
    ]


# ── Comments ──


@router.get("/{post_id}/comments", response_model=list[CommentResponse])
async def comments(post_id: int, db: AsyncSession = Depends(get_session)):
    """Comments on a post, oldest first."""
    return [_comment_response(c) for c in await list_comments(db, post_id)]


@router.post("/{post_id}/comments", response_model=CommentResponse, status_code=201)
async def comment(
    post_id: int,
    body: CommentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    created = await add_comment(db, user, post_id, body.text)
    await db.commit()
    return _comment_response(created)


@router.put("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: int,
    body: CommentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Edit one's own comment."""
    updated = await edit_comment(db, user, comment_id, body.text)
    await db.commit()
    return _comment_response(updated)


@router.delete("/comments/{comment_id}", response_model=CommentResponse)
async def remove_comment(
    comment_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Soft-delete a comment, as its author or as the post owner."""
    deleted = await delete_comment(db, user, comment_id)
    await db.commit()
    return _comment_response(deleted)

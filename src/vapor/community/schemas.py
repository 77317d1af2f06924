"""Pydantic schemas for community endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class CreatePostRequest(BaseModel):
    app_id: int
    content: str = Field(..., min_length=1, max_length=4000)
    image_url: str | None = Field(None, max_length=2048)


class CommentRequest(BaseModel):
    text: str = Field(..., min_length=1, max_length=2000)


class PostResponse(BaseModel):
    id: int
    user_id: int | None = None
    username: str | None = None  # None once the author deleted their account
    user_display_name: str
    profile_picture: str | None = None
    content: str
    image_url: str | None = None
    app_id: int
    app_name: str
    app_header_image: str | None = None
    created_at: datetime
    like_count: int = 0
    comment_count: int = 0


class FeedResponse(BaseModel):
    posts: list[PostResponse]
    total: int
    page: int
    per_page: int


class CommentResponse(BaseModel):
    id: int
    post_id: int
    user_id: int | None = None
    username: str | None = None
    user_display_name: str
    profile_picture: str | None = None
    comment_text: str
    created_at: datetime
    is_edited: bool


class LikeToggleResponse(BaseModel):
    liked: bool
    like_count: int


class LikerResponse(BaseModel):
    user_id: int
    username: str
    display_name: str
    profile_picture: str | None = None


class LikedPostsResponse(BaseModel):
    post_ids: list[int]

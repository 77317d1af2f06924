"""Catalog API endpoints: browsing, search and reviews."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.dependencies import get_current_user
from vapor.catalog.reviews import add_review, has_reviewed, list_reviews, update_review
from vapor.catalog.schemas import (
    AppDetailsResponse,
    BooleanResponse,
    CreateReviewRequest,
    GenreListResponse,
    ImageResponse,
    ReviewListResponse,
    ReviewResponse,
    ReviewSummaryResponse,
    StoreAppResponse,
    StoreListResponse,
    UpdateReviewRequest,
    VideoResponse,
    price_label,
)
from vapor.catalog.service import (
    get_app,
    get_app_details,
    get_related_apps,
    get_top_sellers,
    header_images,
    list_genres,
    list_store_apps,
    search_apps,
    user_owns_app,
)
from vapor.catalog.summary import summarize_reviews
from vapor.config import get_settings
from vapor.database import get_session
from vapor.db.models import App, AppReview, User

router = APIRouter(prefix="/api/v1/apps", tags=["Catalog"])


# ── Helpers ──


def store_app_response(app: App, header: str | None) -> StoreAppResponse:
    return StoreAppResponse(
        app_id=app.id,
        app_name=app.app_name,
        price=app.price,
        price_label=price_label(app.price),
        is_free=app.is_free,
        header_image=header,
        app_type_name=app.app_type.type_name,
        base_app_id=app.base_app_id,
    )


async def _store_list(db: AsyncSession, apps: list[App]) -> list[StoreAppResponse]:
    headers = await header_images(db, (a.id for a in apps))
    return [store_app_response(a, headers.get(a.id)) for a in apps]


def _review_response(review: AppReview) -> ReviewResponse:
    return ReviewResponse(
        id=review.id,
        app_id=review.app_id,
        user_id=review.user_id,
        username=review.user.username if review.user is not None else None,
        user_display_name=review.user_display_name,
        is_recommended=review.is_recommended,
        review_text=review.review_text,
        created_at=review.created_at,
        is_edited=review.is_edited,
    )


# ── Browsing ──


@router.get("/top", response_model=list[StoreAppResponse])
async def top_sellers(db: AsyncSession = Depends(get_session)):
    """Best-selling games."""
    apps = await get_top_sellers(db, get_settings().top_sellers_count)
    return await _store_list(db, apps)


@router.get("/genres", response_model=GenreListResponse)
async def genres(db: AsyncSession = Depends(get_session)):
    return GenreListResponse(genres=await list_genres(db))


@router.get("/search", response_model=list[StoreAppResponse])
async def search(
    query: str | None = Query(None, max_length=256),
    is_free: bool | None = Query(None),
    genres: list[str] = Query([]),
    price_sort: Literal["asc", "desc"] | None = Query(None),
    db: AsyncSession = Depends(get_session),
):
    """Filter by name, price and genres."""
    apps = await search_apps(db, query=query, is_free=is_free, genres=genres, price_sort=price_sort)
    return await _store_list(db, apps)


@router.get("/related/{base_app_id}", response_model=list[StoreAppResponse])
async def related_apps(base_app_id: int, db: AsyncSession = Depends(get_session)):
    """DLC, soundtracks and demos of a base game."""
    return await _store_list(db, await get_related_apps(db, base_app_id))


@router.get("/has-reviewed/{app_id}", response_model=BooleanResponse)
async def get_has_reviewed(
    app_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return BooleanResponse(value=await has_reviewed(db, user.id, app_id))


@router.get("/owns/{app_id}", response_model=BooleanResponse)
async def get_owns(
    app_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return BooleanResponse(value=await user_owns_app(db, user.id, app_id))


@router.get("", response_model=StoreListResponse)
async def store_page(
    page: int = Query(1, ge=1),
    limit: int | None = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_session),
):
    """Paged store listing."""
    limit = limit or get_settings().store_page_size
    apps, total = await list_store_apps(db, page, limit)
    return StoreListResponse(items=await _store_list(db, apps), total=total, page=page, limit=limit)


@router.get("/{app_id}", response_model=AppDetailsResponse)
async def app_details(app_id: int, db: AsyncSession = Depends(get_session)):
    """Full details of one app."""
    app = await get_app_details(db, app_id)
    header = next((i.image_url for i in app.images if i.image_type == "header"), None)
    base = store_app_response(app, header)
    return AppDetailsResponse(
        **base.model_dump(),
        release_date=app.release_date,
        description=app.description,
        purchase_count=app.purchase_count,
        genres=sorted(g.genre_name for g in app.genres),
        developers=[d.name for d in app.developers],
        publishers=[p.name for p in app.publishers],
        screenshots=[
            ImageResponse(image_url=i.image_url, thumbnail_url=i.thumbnail_url)
            for i in app.images
            if i.image_type == "screenshot"
        ],
        videos=[VideoResponse(video_url=v.video_url, thumbnail_url=v.thumbnail_url) for v in app.videos],
    )


# ── Reviews ──


@router.get("/{app_id}/reviews", response_model=ReviewListResponse)
async def app_reviews(app_id: int, db: AsyncSession = Depends(get_session)):
    """Reviews newest first, with the recommendation summary."""
    await get_app(db, app_id)
    reviews = await list_reviews(db, app_id)
    summary = summarize_reviews(reviews)
    return ReviewListResponse(
        reviews=[_review_response(r) for r in reviews],
        summary=ReviewSummaryResponse(
            recommended=summary.recommended,
            not_recommended=summary.not_recommended,
            total=summary.total,
            label=summary.label,
        ),
    )


@router.post("/{app_id}/reviews", response_model=ReviewResponse, status_code=201)
async def create_review(
    app_id: int,
    body: CreateReviewRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Review an owned app. One review per user and app."""
    review = await add_review(db, user, app_id, body.is_recommended, body.review_text)
    await db.commit()
    return ReviewResponse(
        id=review.id,
        app_id=review.app_id,
        user_id=user.id,
        username=user.username,
        user_display_name=review.user_display_name,
        is_recommended=review.is_recommended,
        review_text=review.review_text,
        created_at=review.created_at,
        is_edited=review.is_edited,
    )


@router.put("/reviews/{review_id}", response_model=ReviewResponse)
async def edit_review(
    review_id: int,
    body: UpdateReviewRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Edit one's own review."""
    review = await update_review(db, user, review_id, body.is_recommended, body.review_text)
    await db.commit()
    return ReviewResponse(
        id=review.id,
        app_id=review.app_id,
        user_id=user.id,
        username=user.username,
        user_display_name=review.user_display_name,
        is_recommended=review.is_recommended,
        review_text=review.review_text,
        created_at=review.created_at,
        is_edited=review.is_edited,
    )

"""Catalog queries: store listing, details, related apps, genres and search."""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Literal

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from vapor.db.models import APP_TYPE_GAME, App, AppImage, AppLibrary, Genre
from vapor.errors import NotFoundError


def free_filter():
    """SQL condition matching free apps (NULL or zero price)."""
    return or_(App.price.is_(None), App.price == 0)


async def get_app(db: AsyncSession, app_id: int) -> App:
    """
    Fetch an app with its type loaded.

    Raises:
        NotFoundError: If the app does not exist.
    """
    result = await db.execute(select(App).options(selectinload(App.app_type)).where(App.id == app_id))
    app = result.scalar_one_or_none()
    if app is None:
        msg = "App not found."
        raise NotFoundError(msg)
    return app


async def user_owns_app(db: AsyncSession, user_id: int, app_id: int) -> bool:
    result = await db.execute(
        select(AppLibrary.id).where(AppLibrary.user_id == user_id, AppLibrary.app_id == app_id)
    )
    return result.first() is not None


async def owned_app_ids(db: AsyncSession, user_id: int) -> set[int]:
    result = await db.execute(select(AppLibrary.app_id).where(AppLibrary.user_id == user_id))
    return set(result.scalars().all())


async def header_images(db: AsyncSession, app_ids: Iterable[int]) -> dict[int, str]:
    """Map app id to its header image URL for a batch of apps."""
    ids = list(set(app_ids))
    if not ids:
        return {}
    result = await db.execute(
        select(AppImage.app_id, AppImage.image_url)
        .where(AppImage.app_id.in_(ids), AppImage.image_type == "header")
        .order_by(AppImage.id)
    )
    images: dict[int, str] = {}
    for app_id, url in result:
        images.setdefault(app_id, url)
    return images


# ---------------------------------------------------------------------------
# Browsing
# ---------------------------------------------------------------------------


async def get_top_sellers(db: AsyncSession, limit: int = 5) -> list[App]:
    """Best-selling games by purchase count."""
    result = await db.execute(
        select(App)
        .options(selectinload(App.app_type))
        .where(App.app_type_id == APP_TYPE_GAME)
        .order_by(App.purchase_count.desc(), App.id)
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_store_apps(db: AsyncSession, page: int = 1, limit: int = 21) -> tuple[list[App], int]:
    """One page of the store, oldest listing first."""
    total = (await db.execute(select(func.count()).select_from(App))).scalar_one()
    result = await db.execute(
        select(App)
        .options(selectinload(App.app_type))
        .order_by(App.id)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def get_app_details(db: AsyncSession, app_id: int) -> App:
    """
    Fetch an app with every relation the details page shows.

    Raises:
        NotFoundError: If the app does not exist.
    """
    result = await db.execute(
        select(App)
        .options(
            selectinload(App.app_type),
            selectinload(App.genres),
            selectinload(App.developers),
            selectinload(App.publishers),
            selectinload(App.images),
            selectinload(App.videos),
        )
        .where(App.id == app_id)
    )
    app = result.scalar_one_or_none()
    if app is None:
        msg = "App not found."
        raise NotFoundError(msg)
    return app


async def get_related_apps(db: AsyncSession, base_app_id: int) -> list[App]:
    """DLC, soundtracks and demos attached to a base game."""
    result = await db.execute(
        select(App)
        .options(selectinload(App.app_type))
        .where(App.base_app_id == base_app_id)
        .order_by(App.app_name)
    )
    return list(result.scalars().all())


async def list_genres(db: AsyncSession) -> list[str]:
    result = await db.execute(select(Genre.genre_name).distinct().order_by(Genre.genre_name))
    return list(result.scalars().all())


async def search_apps(
    db: AsyncSession,
    query: str | None = None,
    is_free: bool | None = None,
    genres: Sequence[str] = (),
    price_sort: Literal["asc", "desc"] | None = None,
) -> list[App]:
    """
    Filter the catalog.

    Every genre listed must be present on the app. Ascending price sort leaves
    out free apps unless ``is_free`` was given explicitly.
    """
    stmt = select(App).options(selectinload(App.app_type))

    if query:
        stmt = stmt.where(func.lower(App.app_name).contains(query.strip().lower()))
    if is_free is True:
        stmt = stmt.where(free_filter())
    elif is_free is False:
        stmt = stmt.where(App.price > 0)
    for genre in genres:
        stmt = stmt.where(App.genres.any(func.lower(Genre.genre_name) == genre.lower()))

    if price_sort == "asc":
        if is_free is None:
            stmt = stmt.where(App.price > 0)
        stmt = stmt.order_by(App.price.asc(), App.app_name)
    elif price_sort == "desc":
        stmt = stmt.order_by(App.price.desc(), App.app_name)
    else:
        stmt = stmt.order_by(App.app_name)

    result = await db.execute(stmt)
    return list(result.scalars().all())

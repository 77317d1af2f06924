"""
Catalog import from the Steam storefront appdetails endpoint.

Imported apps keep their Steam app id as primary key. DLC pulls in its base
game first. Adult content is never imported.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx
import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.config import get_settings
from vapor.db.models import App, AppImage, AppType, AppVideo, Developer, Genre, Publisher
from vapor.errors import ExternalServiceError
from vapor.integrations.youtube import YouTubeClient
from vapor.payments.currency import convert_to_euro

logger = structlog.get_logger()

BANNED_WORDS = ("hentai", "nsfw", "sex", "porn", "erotic", "nude", "fetish", "futa", "18+")

# Steam "type" -> local app type name
STEAM_TYPES = {"game": "Game", "dlc": "DLC", "music": "Soundtrack", "demo": "Demo"}

DEFAULT_HEADER = "/assets/appHeader.png"


def contains_banned_words(text: str | None) -> bool:
    if not text:
        return False
    lowered = text.lower()
    return any(word in lowered for word in BANNED_WORDS)


def is_importable(details: dict[str, Any]) -> bool:
    """Named, and neither the name nor the description is adult content."""
    name = details.get("name") or ""
    if not name.strip():
        return False
    return not contains_banned_words(name) and not contains_banned_words(details.get("short_description"))


def price_in_euro(details: dict[str, Any]) -> Decimal:
    """Final price converted to EUR. Free apps and unknown currencies price at 0."""
    if details.get("is_free"):
        return Decimal("0.00")
    overview = details.get("price_overview")
    if not overview:
        return Decimal("0.00")
    amount = Decimal(overview.get("final", 0)) / 100
    try:
        return convert_to_euro(amount, overview.get("currency", ""))
    except ValueError:
        logger.warning("steam_unknown_currency", currency=overview.get("currency"))
        return Decimal("0.00")


def pick_video_url(movie: dict[str, Any]) -> str:
    mp4 = movie.get("mp4") or {}
    return mp4.get("max") or mp4.get("480") or next(iter(mp4.values()), "")


@dataclass
class ImportResult:
    imported: list[int] = field(default_factory=list)
    skipped: list[int] = field(default_factory=list)
    failed: list[int] = field(default_factory=list)


class SteamClient:
    """Fetches app details from the public store API."""

    def __init__(
        self,
        appdetails_url: str = "https://store.steampowered.com/api/appdetails",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.appdetails_url = appdetails_url
        self.timeout = timeout
        self.transport = transport

    async def fetch_app_details(self, steam_app_id: int) -> dict[str, Any] | None:
        """
        The ``data`` block for an app, or None when Steam reports no success.

        Raises:
            ExternalServiceError: Network failure or an error response.
        """
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.get(self.appdetails_url, params={"appids": str(steam_app_id)})
                response.raise_for_status()
                payload = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.exception("steam_fetch_failed", steam_app_id=steam_app_id)
            msg = "Steam store unavailable."
            raise ExternalServiceError(msg) from e

        entry = (payload or {}).get(str(steam_app_id))
        if not entry or not entry.get("success"):
            return None
        return entry.get("data")


def get_steam_client() -> SteamClient:
    settings = get_settings()
    return SteamClient(
        appdetails_url=settings.steam_appdetails_url,
        timeout=settings.integration_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Get-or-create lookups
# ---------------------------------------------------------------------------


async def _app_type_id(db: AsyncSession, steam_type: str) -> int:
    name = STEAM_TYPES.get(steam_type.lower(), steam_type.lower())
    result = await db.execute(select(AppType).where(func.lower(AppType.type_name) == name.lower()))
    app_type = result.scalar_one_or_none()
    if app_type is None:
        app_type = AppType(type_name=name)
        db.add(app_type)
        await db.flush()
    return app_type.id


async def _developer(db: AsyncSession, name: str) -> Developer:
    result = await db.execute(select(Developer).where(Developer.name == name))
    developer = result.scalar_one_or_none()
    if developer is None:
        developer = Developer(name=name)
        db.add(developer)
        await db.flush()
    return developer


async def _publisher(db: AsyncSession, name: str) -> Publisher:
    result = await db.execute(select(Publisher).where(Publisher.name == name))
    publisher = result.scalar_one_or_none()
    if publisher is None:
        publisher = Publisher(name=name)
        db.add(publisher)
        await db.flush()
    return publisher


async def _genre(db: AsyncSession, external_id: int, name: str) -> Genre:
    result = await db.execute(select(Genre).where(Genre.external_genre_id == external_id))
    genre = result.scalar_one_or_none()
    if genre is None:
        genre = Genre(genre_name=name, external_genre_id=external_id)
        db.add(genre)
        await db.flush()
    return genre


# ---------------------------------------------------------------------------
# Import
# ---------------------------------------------------------------------------


async def _insert_app(
    db: AsyncSession,
    steam_app_id: int,
    details: dict[str, Any],
    youtube: YouTubeClient | None,
    base_app_id: int | None = None,
) -> App:
    steam_type = (details.get("type") or "game").lower()
    app = App(
        id=steam_app_id,
        app_type_id=await _app_type_id(db, steam_type),
        base_app_id=base_app_id,
        app_name=details["name"].strip(),
        release_date=(details.get("release_date") or {}).get("date") or "Unknown",
        price=price_in_euro(details),
        description=details.get("short_description"),
        purchase_count=0,
    )
    app.developers = [await _developer(db, n) for n in dict.fromkeys(details.get("developers") or []) if n]
    app.publishers = [await _publisher(db, n) for n in dict.fromkeys(details.get("publishers") or []) if n]
    genres: list[Genre] = []
    for genre in details.get("genres") or []:
        try:
            external_id = int(genre.get("id"))
        except (TypeError, ValueError):
            continue
        found = await _genre(db, external_id, genre.get("description") or str(external_id))
        if found not in genres:
            genres.append(found)
    app.genres = genres

    app.images = [AppImage(image_url=details.get("header_image") or DEFAULT_HEADER, image_type="header")]
    app.images += [
        AppImage(image_url=s["path_full"], thumbnail_url=s.get("path_thumbnail"), image_type="screenshot")
        for s in details.get("screenshots") or []
        if s.get("path_full")
    ]

    movies = details.get("movies")
    if movies:
        app.videos = [
            AppVideo(video_url=url, thumbnail_url=m.get("thumbnail") or "")
            for m in movies
            if (url := pick_video_url(m))
        ]
    elif steam_type == "game" and youtube is not None:
        try:
            trailer = await youtube.find_trailer(app.app_name)
        except ExternalServiceError:
            trailer = None
        if trailer is not None:
            app.videos = [AppVideo(video_url=trailer.video_url, thumbnail_url=trailer.thumbnail_url)]

    db.add(app)
    await db.flush()
    logger.info("steam_app_imported", app_id=steam_app_id, name=app.app_name, type=steam_type)
    return app


async def _exists(db: AsyncSession, app_id: int) -> bool:
    return (await db.execute(select(App.id).where(App.id == app_id))).first() is not None


async def import_app(
    db: AsyncSession,
    steam_app_id: int,
    steam: SteamClient,
    youtube: YouTubeClient | None = None,
) -> bool:
    """
    Import one app. Returns False when it was skipped.

    Raises:
        ExternalServiceError: Steam could not be reached.
    """
    if await _exists(db, steam_app_id):
        return False
    details = await steam.fetch_app_details(steam_app_id)
    if details is None or not is_importable(details):
        return False

    base_app_id = None
    fullgame = details.get("fullgame") or {}
    if (details.get("type") or "game").lower() != "game" and fullgame.get("appid"):
        base_id = int(fullgame["appid"])
        if not await _exists(db, base_id):
            base_details = await steam.fetch_app_details(base_id)
            if base_details is None or (base_details.get("type") or "").lower() != "game":
                return False
            if not is_importable(base_details):
                return False
            await _insert_app(db, base_id, base_details, youtube)
        base_app_id = base_id

    await _insert_app(db, steam_app_id, details, youtube, base_app_id)
    return True


async def import_apps(
    db: AsyncSession,
    steam_app_ids: list[int],
    steam: SteamClient,
    youtube: YouTubeClient | None = None,
) -> ImportResult:
    """Import a batch. Each app is committed on its own so one failure keeps the rest."""
    result = ImportResult()
    for steam_app_id in dict.fromkeys(steam_app_ids):
        try:
            imported = await import_app(db, steam_app_id, steam, youtube)
        except ExternalServiceError:
            await db.rollback()
            result.failed.append(steam_app_id)
            continue
        await db.commit()
        (result.imported if imported else result.skipped).append(steam_app_id)
    logger.info(
        "steam_import_finished",
        imported=len(result.imported),
        skipped=len(result.skipped),
        failed=len(result.failed),
    )
    return result


async def backfill_trailers(db: AsyncSession, youtube: YouTubeClient) -> list[int]:
    """Attach a YouTube trailer to every game without videos. Returns the updated app ids."""
    result = await db.execute(
        select(App)
        .where(App.app_type_id == select(AppType.id).where(AppType.type_name == "Game").scalar_subquery())
        .where(~select(AppVideo.id).where(AppVideo.app_id == App.id).exists())
        .order_by(App.id)
    )
    updated: list[int] = []
    for app in result.scalars().all():
        trailer = await youtube.find_trailer(app.app_name)
        if trailer is None:
            continue
        db.add(AppVideo(app_id=app.id, video_url=trailer.video_url, thumbnail_url=trailer.thumbnail_url))
        updated.append(app.id)
    await db.flush()
    logger.info("trailer_backfill_finished", updated=len(updated))
    return updated

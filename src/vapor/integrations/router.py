"""Admin endpoints for the Steam catalog import and YouTube trailers."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from vapor.auth.dependencies import get_current_admin
from vapor.database import get_session
from vapor.db.models import User
from vapor.errors import NotFoundError
from vapor.integrations.steam_import import backfill_trailers, get_steam_client, import_apps
from vapor.integrations.youtube import get_youtube_client

router = APIRouter(prefix="/api/v1/admin", tags=["Integrations"])


class ImportAppsRequest(BaseModel):
    app_ids: list[int] = Field(..., min_length=1, max_length=100)


class ImportAppsResponse(BaseModel):
    imported: list[int]
    skipped: list[int]
    failed: list[int] = []


class TrailerResponse(BaseModel):
    video_url: str
    thumbnail_url: str


class BackfillResponse(BaseModel):
    updated: list[int]


@router.post("/import/apps", response_model=ImportAppsResponse)
async def import_steam_apps(
    body: ImportAppsRequest,
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    """Import apps by Steam app id. Existing, missing and adult apps are skipped."""
    result = await import_apps(db, body.app_ids, get_steam_client(), get_youtube_client())
    return ImportAppsResponse(imported=result.imported, skipped=result.skipped, failed=result.failed)


@router.get("/youtube/trailer/{name}", response_model=TrailerResponse)
async def find_trailer(
    name: str,
    _admin: User = Depends(get_current_admin),
):
    trailer = await get_youtube_client().find_trailer(name)
    if trailer is None:
        msg = "No trailer found."
        raise NotFoundError(msg)
    return TrailerResponse(video_url=trailer.video_url, thumbnail_url=trailer.thumbnail_url)


@router.post("/youtube/backfill", response_model=BackfillResponse)
async def backfill(
    _admin: User = Depends(get_current_admin),
    db: AsyncSession = Depends(get_session),
):
    """Attach trailers to games that have no video."""
    updated = await backfill_trailers(db, get_youtube_client())
    await db.commit()
    return BackfillResponse(updated=updated)

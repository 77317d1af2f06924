"""YouTube Data API v3 trailer lookup."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
import structlog

from vapor.config import get_settings
from vapor.errors import ExternalServiceError

logger = structlog.get_logger()

EMBED_URL = "https://www.youtube.com/embed/{video_id}"


@dataclass(frozen=True)
class Trailer:
    video_url: str
    thumbnail_url: str


class YouTubeClient:
    """Finds the most relevant gaming trailer for an app name."""

    def __init__(
        self,
        api_key: str,
        search_url: str = "https://www.googleapis.com/youtube/v3/search",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = api_key
        self.search_url = search_url
        self.timeout = timeout
        self.transport = transport

    async def find_trailer(self, app_name: str) -> Trailer | None:
        """
        Top search result for "<name> game trailer" in the Gaming category.

        Raises:
            ExternalServiceError: Network failure or an error response.
        """
        params = {
            "part": "snippet",
            "q": f"{app_name} game trailer",
            "type": "video",
            "videoCategoryId": "20",
            "order": "relevance",
            "maxResults": "1",
            "key": self.api_key,
        }
        try:
            async with httpx.AsyncClient(transport=self.transport, timeout=self.timeout) as client:
                response = await client.get(self.search_url, params=params)
                response.raise_for_status()
                payload = response.json()
        except httpx.HTTPError as e:
            logger.exception("youtube_search_failed", app_name=app_name)
            msg = "Video provider unavailable."
            raise ExternalServiceError(msg) from e

        items = payload.get("items") or []
        if not items:
            return None
        item = items[0]
        video_id = item.get("id", {}).get("videoId")
        if not video_id:
            return None
        thumbnail = item.get("snippet", {}).get("thumbnails", {}).get("high", {}).get("url", "")
        return Trailer(video_url=EMBED_URL.format(video_id=video_id), thumbnail_url=thumbnail)


_client: YouTubeClient | None = None


def get_youtube_client() -> YouTubeClient:
    global _client  # noqa: PLW0603
    if _client is None:
        settings = get_settings()
        _client = YouTubeClient(
            api_key=settings.youtube_api_key,
            search_url=settings.youtube_search_url,
            timeout=settings.integration_timeout_seconds,
        )
    return _client


def set_youtube_client(client: YouTubeClient | None) -> None:
    global _client  # noqa: PLW0603
    _client = client

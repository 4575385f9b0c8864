"""Resolve playable video sources (or a trailer) for catalog media from external providers."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import httpx
from sqlalchemy.orm import Session

from app.models import Media, VideoSource
from app.models.media import (
    MEDIA_STATUS_ERROR,
    MEDIA_STATUS_READY,
    MEDIA_STATUS_UNAVAILABLE,
    VIDEO_TYPE_MOVIE,
    VIDEO_TYPE_TRAILER,
)

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

TRAILER_QUALITY = "HD"


class MediaNotFoundError(Exception):
    """Raised when the media row to process does not exist."""

    def __init__(self, media_id: int) -> None:
        self.media_id = media_id
        self.message = f"Media {media_id} not found."
        super().__init__(self.message)


@dataclass(frozen=True)
class VideoSourceCandidate:
    """A resolved video link before it is persisted."""

    url: str
    quality: str
    type: str = VIDEO_TYPE_MOVIE


class VideoProvider:
    """
    Source of playable video links for an external film id.

    Subclasses override fetch_sources; the base implementation has no integration
    and resolves nothing.
    """

    name = "provider"

    async def fetch_sources(
        self, client: httpx.AsyncClient, source_id: str
    ) -> list[VideoSourceCandidate]:
        logger.debug(
            "Video provider has no integration configured",
            extra={"provider": self.name, "source_id": source_id},
        )
        return []


class VKVideoProvider(VideoProvider):
    name = "vk"


class RuTubeVideoProvider(VideoProvider):
    name = "rutube"


class YouTubeVideoProvider(VideoProvider):
    name = "youtube"


def default_providers() -> list[VideoProvider]:
    """Providers queried in order for released media."""
    return [VKVideoProvider(), RuTubeVideoProvider(), YouTubeVideoProvider()]


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes; stored values are UTC.
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def is_released(media: Media, now: datetime | None = None) -> bool:
    """True when the media has a release date that is not in the future."""
    if media.release_date is None:
        return False
    return _as_utc(media.release_date) <= (now or datetime.now(UTC))


class VideoProcessor:
    """
    Per-media video resolution: trailer only for unreleased media, otherwise provider
    sources with a trailer fallback. One attempt per call; no batching.
    """

    def __init__(
        self,
        session: Session,
        kinopoisk_api_key: str,
        client: httpx.AsyncClient,
        settings: Settings,
        providers: list[VideoProvider] | None = None,
    ) -> None:
        self.session = session
        self.kinopoisk_api_key = kinopoisk_api_key
        self.client = client
        self.trailer_api_url = settings.KINOPOISK_API_URL.rstrip("/")
        self.timeout = settings.PROVIDER_REQUEST_TIMEOUT_SEC
        self.providers = providers if providers is not None else default_providers()

    async def process_media_video(self, media_id: int, source_id: str) -> int:
        """
        Resolve and persist video for one media item. Returns the number of sources saved.

        Raises MediaNotFoundError for unknown ids. Any other failure marks the media
        as ERROR and is re-raised.
        """
        media = self.session.get(Media, media_id)
        if media is None:
            raise MediaNotFoundError(media_id)

        try:
            if not is_released(media):
                saved = await self.process_trailer(media_id, source_id)
            else:
                sources = await self.get_video_sources(source_id)
                if sources:
                    saved = self.save_video_sources(media_id, sources)
                else:
                    saved = await self.process_trailer(media_id, source_id)
            self.update_media_status(
                media_id, MEDIA_STATUS_READY if saved else MEDIA_STATUS_UNAVAILABLE
            )
            return saved
        except Exception:
            logger.exception(
                "Error processing media video",
                extra={"media_id": media_id, "source_id": source_id},
            )
            self.session.rollback()
            self.update_media_status(media_id, MEDIA_STATUS_ERROR)
            raise

    async def process_trailer(self, media_id: int, source_id: str) -> int:
        """Look up a trailer and store it as a VideoSource; returns 1 if stored, else 0."""
        trailer_url = await self.get_trailer_url(source_id)
        if not trailer_url:
            return 0
        self.session.add(
            VideoSource(
                media_id=media_id,
                url=trailer_url,
                quality=TRAILER_QUALITY,
                type=VIDEO_TYPE_TRAILER,
            )
        )
        self.session.commit()
        return 1

    async def get_trailer_url(self, source_id: str) -> str | None:
        """First YouTube trailer from the Kinopoisk videos endpoint; None on any HTTP or parse error."""
        url = f"{self.trailer_api_url}/{source_id}/videos"
        try:
            response = await self.client.get(
                url,
                headers={
                    "X-API-KEY": self.kinopoisk_api_key,
                    "Content-Type": "application/json",
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except (httpx.HTTPError, json.JSONDecodeError) as e:
            logger.warning(
                "Error fetching trailer",
                extra={"source_id": source_id, "error": str(e)[:200]},
            )
            return None

        items = body.get("items") if isinstance(body, dict) else None
        for item in items or []:
            if not isinstance(item, dict):
                continue
            if item.get("site") == "YOUTUBE" and item.get("type") == "TRAILER" and item.get("url"):
                return item["url"]
        return None

    async def get_video_sources(self, source_id: str) -> list[VideoSourceCandidate]:
        """Query every provider; a failing provider is logged and skipped."""
        sources: list[VideoSourceCandidate] = []
        for provider in self.providers:
            try:
                found = await provider.fetch_sources(self.client, source_id)
            except Exception as e:
                logger.warning(
                    "Error getting video sources from provider",
                    extra={"provider": provider.name, "source_id": source_id, "error": str(e)[:200]},
                )
                continue
            sources.extend(found)
        return sources

    def save_video_sources(self, media_id: int, sources: list[VideoSourceCandidate]) -> int:
        self.session.add_all(
            [
                VideoSource(media_id=media_id, url=s.url, quality=s.quality, type=s.type)
                for s in sources
            ]
        )
        self.session.commit()
        return len(sources)

    def update_media_status(self, media_id: int, status: str) -> None:
        self.session.query(Media).filter(Media.id == media_id).update(
            {Media.status: status}, synchronize_session=False
        )
        self.session.commit()

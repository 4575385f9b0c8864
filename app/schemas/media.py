"""Schemas for catalog media and video sources."""

from datetime import datetime

from pydantic import BaseModel


class VideoSourceResponse(BaseModel):
    id: int
    url: str
    quality: str
    type: str

    class Config:
        from_attributes = True


class MediaItem(BaseModel):
    """Media row as listed in the admin content page."""

    id: int
    title: str
    description: str | None = None
    release_date: datetime | None = None
    rating: float = 0.0
    views: int = 0
    media_type: str
    source_id: str | None = None
    poster_url: str | None = None
    status: str
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class MediaDetailResponse(MediaItem):
    """Single media item with its playable sources (watch page)."""

    video_sources: list[VideoSourceResponse] = []

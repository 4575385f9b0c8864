"""ORM models for catalog media and their resolved video sources."""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import relationship

from app.models.base import Base

MEDIA_TYPE_MOVIE = "movie"
MEDIA_TYPE_SERIES = "series"

# Media status lifecycle: PENDING until the parser resolves video for it.
MEDIA_STATUS_PENDING = "PENDING"
MEDIA_STATUS_READY = "READY"
MEDIA_STATUS_UNAVAILABLE = "UNAVAILABLE"
MEDIA_STATUS_ERROR = "ERROR"

VIDEO_TYPE_MOVIE = "movie"
VIDEO_TYPE_TRAILER = "trailer"


class Media(Base):
    """A movie or series in the catalog. source_id is the external (Kinopoisk) film id."""

    __tablename__ = "media"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(512), nullable=False)
    description = Column(Text, nullable=True)
    release_date = Column(DateTime(timezone=True), nullable=True)
    rating = Column(Float, nullable=False, default=0.0)
    views = Column(Integer, nullable=False, default=0)
    media_type = Column(String(16), nullable=False, default=MEDIA_TYPE_MOVIE, index=True)
    source_id = Column(String(64), nullable=True, index=True)
    poster_url = Column(String(1024), nullable=True)
    status = Column(String(16), nullable=False, default=MEDIA_STATUS_PENDING, index=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    video_sources = relationship(
        "VideoSource",
        back_populates="media",
        cascade="all, delete-orphan",
        order_by="VideoSource.id",
    )


class VideoSource(Base):
    """Playable video (or trailer) link for a media item."""

    __tablename__ = "video_sources"

    id = Column(Integer, primary_key=True, autoincrement=True)
    media_id = Column(Integer, ForeignKey("media.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(String(2048), nullable=False)
    quality = Column(String(32), nullable=False, default="HD")
    type = Column(String(16), nullable=False, default=VIDEO_TYPE_MOVIE)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    media = relationship("Media", back_populates="video_sources")

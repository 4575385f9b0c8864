"""SQLAlchemy ORM models."""

from app.models.base import Base
from app.models.media import Media, VideoSource
from app.models.parser import ParserHistory, ParserLog, ParserSettings, ParserStatus
from app.models.user import User, VerificationCode

__all__ = [
    "Base",
    "Media",
    "ParserHistory",
    "ParserLog",
    "ParserSettings",
    "ParserStatus",
    "User",
    "VerificationCode",
    "VideoSource",
]

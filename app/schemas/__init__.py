"""Pydantic request/response schemas."""

from app.schemas.admin import (
    MessageResponse,
    RoleUpdateRequest,
    RoleUpdateResponse,
    StatsResponse,
    UserListItem,
)
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    VerifyRequest,
)
from app.schemas.health import HealthResponse
from app.schemas.media import MediaDetailResponse, MediaItem, VideoSourceResponse
from app.schemas.parser import (
    ParserActionResponse,
    ParserDataResponse,
    ParserHistoryResponse,
    ParserLogResponse,
    ParserSettingsPayload,
    ParserSettingsResponse,
    ParserSettingsUpdateRequest,
    ParserStartRequest,
    ParserStatusResponse,
)
from app.schemas.profile import ProfileResponse, ProfileUpdateRequest

__all__ = [
    "CurrentUser",
    "HealthResponse",
    "LoginRequest",
    "MediaDetailResponse",
    "MediaItem",
    "MessageResponse",
    "ParserActionResponse",
    "ParserDataResponse",
    "ParserHistoryResponse",
    "ParserLogResponse",
    "ParserSettingsPayload",
    "ParserSettingsResponse",
    "ParserSettingsUpdateRequest",
    "ParserStartRequest",
    "ParserStatusResponse",
    "ProfileResponse",
    "ProfileUpdateRequest",
    "RegisterRequest",
    "RegisterResponse",
    "RoleUpdateRequest",
    "RoleUpdateResponse",
    "StatsResponse",
    "TokenResponse",
    "UserListItem",
    "VerifyRequest",
    "VideoSourceResponse",
]

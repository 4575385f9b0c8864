"""Schemas for the current user's profile."""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator

from app.schemas.auth import normalize_email


class ProfileResponse(BaseModel):
    """Profile of the authenticated user (no password hash)."""

    id: int
    username: str
    email: str
    role: str
    is_verified: bool
    avatar_url: str | None = None
    views_count: int = 0
    favorites_count: int = 0
    watchlist_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None

    class Config:
        from_attributes = True


class ProfileUpdateRequest(BaseModel):
    """Editable profile fields; omitted fields stay unchanged."""

    model_config = {"extra": "ignore"}

    username: str | None = Field(default=None, min_length=3, max_length=64)
    email: str | None = Field(default=None, min_length=3, max_length=255)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str | None) -> str | None:
        if v is None:
            return None
        v = v.strip()
        if len(v) < 3:
            raise ValueError("username must be at least 3 characters")
        return v

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str | None) -> str | None:
        if v is None:
            return None
        return normalize_email(v)

"""Schemas for admin user management and dashboard stats."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from app.schemas.auth import normalize_email


class UserListItem(BaseModel):
    """User entry for admin list (no password)."""

    id: int
    username: str
    email: str
    role: str
    is_verified: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class RoleUpdateRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=255)
    role: Literal["USER", "ADMIN"]

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class RoleUpdateResponse(BaseModel):
    message: str
    user: UserListItem


class MessageResponse(BaseModel):
    message: str


class StatsResponse(BaseModel):
    """Admin dashboard counters (camelCase on the wire)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_content: int
    active_users: int
    parser_status: str

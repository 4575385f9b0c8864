"""Pydantic schemas for the admin parser API. Wire format uses camelCase keys."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

CONTENT_TYPE_VALUES: frozenset[str] = frozenset({"movies", "series"})

ParserStatusValue = Literal["active", "inactive", "error"]


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ParserSettingsPayload(_CamelModel):
    """Editable parser settings as submitted by the admin form."""

    kinopoisk_api_key: str = Field(default="", max_length=255)
    omdb_api_key: str = Field(default="", max_length=255)
    update_interval: int = Field(default=24, ge=1, le=720, description="Hours between automatic runs")
    auto_update: bool = True
    content_types: list[str] = Field(default_factory=lambda: ["movies", "series"], max_length=2)

    @field_validator("kinopoisk_api_key", "omdb_api_key")
    @classmethod
    def strip_key(cls, v: str) -> str:
        return v.strip()

    @field_validator("content_types")
    @classmethod
    def validate_content_types(cls, v: list[str]) -> list[str]:
        seen: list[str] = []
        for item in v:
            if item not in CONTENT_TYPE_VALUES:
                raise ValueError(
                    f"content_types values must be one of {sorted(CONTENT_TYPE_VALUES)}, got {item!r}."
                )
            if item not in seen:
                seen.append(item)
        return seen


class ParserSettingsResponse(ParserSettingsPayload):
    id: int
    updated_at: datetime | None = None


class ParserSettingsUpdateRequest(BaseModel):
    """Body of PUT /admin/parser: {"settings": {...}}."""

    settings: ParserSettingsPayload


class ParserStatusResponse(_CamelModel):
    id: int
    status: ParserStatusValue
    last_run: datetime | None = None
    processed_items: int = 0
    errors: list[str] = Field(default_factory=list)


class ParserDataResponse(BaseModel):
    """GET /admin/parser payload."""

    settings: ParserSettingsResponse
    status: ParserStatusResponse


class ParserStartRequest(BaseModel):
    """Optional API keys for POST /admin/parser?action=start; blanks fall back to stored settings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    kinopoisk_api_key: str | None = None
    omdb_api_key: str | None = None


class ParserActionResponse(BaseModel):
    message: str


class ParserLogResponse(_CamelModel):
    id: int
    message: str
    error: str | None = None
    timestamp: datetime


class ParserHistoryResponse(_CamelModel):
    id: int
    status: str
    start_time: datetime
    end_time: datetime | None = None
    items_processed: int = 0
    source: str
    details: dict | None = None
    errors: list[str] = Field(default_factory=list)

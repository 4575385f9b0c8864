"""Client library configuration loaded from CATALOG_CLIENT_* environment variables."""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ClientSettings(BaseSettings):
    """Validated settings for the session client."""

    model_config = SettingsConfigDict(
        env_prefix="CATALOG_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    BASE_URL: str = "http://localhost:8000"
    API_PREFIX: str = "/api"
    TOKEN_PATH: str = "~/.media_catalog/session.json"
    # Periodic session re-check
    CHECK_INTERVAL_SEC: float = 60.0
    # Transient failures: attempts per check; retry N waits RETRY_BASE_DELAY_SEC * 2**N
    CHECK_ATTEMPTS: int = 3
    RETRY_BASE_DELAY_SEC: float = 1.0
    REQUEST_TIMEOUT_SEC: float = 20.0

    @field_validator("BASE_URL")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        s = v.strip()
        if not (s.startswith("http://") or s.startswith("https://")):
            raise ValueError("BASE_URL must use http or https")
        return s.rstrip("/")

    @field_validator("CHECK_INTERVAL_SEC")
    @classmethod
    def validate_check_interval(cls, v: float) -> float:
        if v < 0 or v > 86400:
            raise ValueError("CHECK_INTERVAL_SEC must be between 0 and 86400")
        return v

    @field_validator("CHECK_ATTEMPTS")
    @classmethod
    def validate_check_attempts(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("CHECK_ATTEMPTS must be between 1 and 10")
        return v

    @field_validator("RETRY_BASE_DELAY_SEC")
    @classmethod
    def validate_retry_base_delay(cls, v: float) -> float:
        if v < 0 or v > 60:
            raise ValueError("RETRY_BASE_DELAY_SEC must be between 0 and 60")
        return v

    @field_validator("REQUEST_TIMEOUT_SEC")
    @classmethod
    def validate_request_timeout(cls, v: float) -> float:
        if v <= 0 or v > 300:
            raise ValueError("REQUEST_TIMEOUT_SEC must be greater than 0 and at most 300")
        return v


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()

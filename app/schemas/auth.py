"""Request/response schemas for auth endpoints."""

from pydantic import BaseModel, Field, field_validator


def normalize_email(value: str) -> str:
    """Lower-case and trim; reject values that are obviously not addresses."""
    normalized = value.strip().lower()
    local, sep, domain = normalized.partition("@")
    if not sep or not local or "." not in domain or " " in normalized:
        raise ValueError("email must be a valid address")
    return normalized


class LoginRequest(BaseModel):
    """Credentials for login."""

    email: str = Field(..., min_length=3, max_length=255, description="Account email")
    password: str = Field(..., min_length=8, max_length=128, description="Password")

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class RegisterRequest(BaseModel):
    """New account; the account stays unverified until the emailed code is confirmed."""

    email: str = Field(..., min_length=3, max_length=255)
    username: str = Field(..., min_length=3, max_length=64)
    password: str = Field(..., min_length=8, max_length=128)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("username must be at least 3 characters")
        return v


class RegisterResponse(BaseModel):
    message: str


class VerifyRequest(BaseModel):
    """Email verification: address plus the emailed code."""

    email: str = Field(..., min_length=3, max_length=255)
    code: str = Field(..., min_length=1, max_length=16)

    @field_validator("email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        return normalize_email(v)


class TokenResponse(BaseModel):
    """Bearer token returned after login, verification, or refresh."""

    token: str = Field(..., description="JWT access token")
    message: str | None = Field(default=None, description="Optional human-readable note")


class CurrentUser(BaseModel):
    """Authenticated user (id, username, email, role) for dependency injection."""

    id: int
    username: str
    email: str
    role: str

    class Config:
        from_attributes = True

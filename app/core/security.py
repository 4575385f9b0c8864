"""Account credentials: bcrypt password hashes, signed JWT sessions, and email verification codes."""

import secrets
from datetime import UTC, datetime, timedelta
from typing import Any

import bcrypt
import jwt

from app.core.config import settings

BCRYPT_ROUNDS = 12
# bcrypt only reads the first 72 bytes of a password.
BCRYPT_MAX_BYTES = 72

USERNAME_MIN_LEN = 3
USERNAME_MAX_LEN = 64
PASSWORD_MIN_LEN = 8
PASSWORD_MAX_LEN = 128
EMAIL_MAX_LEN = 255

VERIFICATION_CODE_LENGTH = 6


def _password_bytes(plain_password: str) -> bytes:
    return plain_password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def _signing_key() -> str:
    return settings.JWT_SECRET.get_secret_value()


def hash_password(plain_password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(_password_bytes(plain_password), salt).decode("utf-8")


def verify_password(plain_password: str, hashed: str) -> bool:
    """False for a wrong password and for a malformed stored hash."""
    try:
        return bcrypt.checkpw(_password_bytes(plain_password), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False


def create_access_token(sub: str | int, role: str) -> str:
    """Signed session token carrying the user id as `sub` and the account role."""
    issued_at = datetime.now(UTC)
    claims: dict[str, Any] = {
        "sub": str(sub),
        "role": role,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.JWT_EXPIRE_MINUTES),
    }
    return jwt.encode(claims, _signing_key(), algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> dict[str, Any]:
    """Verified claims of a live token. Raises jwt.PyJWTError when invalid or expired."""
    return jwt.decode(token, _signing_key(), algorithms=[settings.JWT_ALGORITHM])


def decode_refreshable_token(token: str) -> dict[str, Any]:
    """
    Decode a token for refresh: the signature must be valid, and the token may be
    expired by at most JWT_REFRESH_GRACE_MINUTES.
    Raises jwt.PyJWTError otherwise.
    """
    payload = jwt.decode(
        token,
        _signing_key(),
        algorithms=[settings.JWT_ALGORITHM],
        options={"verify_exp": False, "require": ["exp", "sub"]},
    )
    expired_at = datetime.fromtimestamp(int(payload["exp"]), UTC)
    if datetime.now(UTC) - expired_at > timedelta(minutes=settings.JWT_REFRESH_GRACE_MINUTES):
        raise jwt.ExpiredSignatureError("Token is past the refresh grace period")
    return payload


def generate_verification_code() -> str:
    """Random numeric code mailed (logged) to a new account."""
    return "".join(secrets.choice("0123456789") for _ in range(VERIFICATION_CODE_LENGTH))

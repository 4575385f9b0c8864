"""Login, registration, verification, token refresh, and auth dependencies (get_current_user, require_admin)."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Annotated

import jwt
from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.core.database import get_db
from app.core.security import (
    create_access_token,
    decode_access_token,
    decode_refreshable_token,
    generate_verification_code,
    hash_password,
    verify_password,
)
from app.models import User, VerificationCode
from app.models.user import ROLE_ADMIN, ROLE_USER
from app.schemas.auth import (
    CurrentUser,
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    TokenResponse,
    VerifyRequest,
)

logger = logging.getLogger(__name__)
router = APIRouter()
security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def _user_id_from_payload(payload: dict) -> int:
    sub = payload.get("sub")
    if not sub:
        raise _unauthorized("Invalid token payload")
    try:
        return int(sub)
    except (TypeError, ValueError):
        raise _unauthorized("Invalid token payload")


@router.post("/login", response_model=TokenResponse)
def login(
    body: LoginRequest,
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """
    Authenticate with email and password; returns a JWT access token.
    Include the token in the Authorization header as: Bearer <token>
    """
    user = db.query(User).filter(User.email == body.email).first()
    if user is None or not verify_password(body.password, user.password_hash):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid email or password.",
        )
    token = create_access_token(sub=user.id, role=user.role)
    logger.info("User logged in", extra={"user_id": user.id})
    return TokenResponse(token=token)


@router.post("/register", response_model=RegisterResponse, status_code=status.HTTP_201_CREATED)
def register(
    body: RegisterRequest,
    db: Annotated[Session, Depends(get_db)],
) -> RegisterResponse:
    """Create an unverified account and issue an email verification code."""
    existing = (
        db.query(User)
        .filter(or_(User.email == body.email, User.username == body.username))
        .first()
    )
    if existing is not None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A user with this email or username already exists.",
        )
    user = User(
        email=body.email,
        username=body.username,
        password_hash=hash_password(body.password),
        role=ROLE_USER,
        is_verified=False,
    )
    db.add(user)
    db.flush()
    code = generate_verification_code()
    ttl = get_settings().VERIFICATION_CODE_TTL_MINUTES
    db.add(
        VerificationCode(
            user_id=user.id,
            email=user.email,
            code=code,
            expires_at=datetime.now(UTC) + timedelta(minutes=ttl),
        )
    )
    db.commit()
    # No mail transport is configured; the code is delivered through the application log.
    logger.info(
        "Verification code issued",
        extra={"user_id": user.id, "email": user.email, "verification_code": code},
    )
    return RegisterResponse(message="Verification code sent to your email.")


@router.post("/verify", response_model=TokenResponse)
def verify_email(
    body: VerifyRequest,
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """Confirm the emailed code, mark the user verified, and log them in."""
    code = (
        db.query(VerificationCode)
        .filter(
            VerificationCode.email == body.email,
            VerificationCode.code == body.code.strip(),
            VerificationCode.expires_at > datetime.now(UTC),
        )
        .first()
    )
    if code is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired verification code.",
        )
    user = db.query(User).filter(User.email == body.email).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    user.is_verified = True
    db.query(VerificationCode).filter(VerificationCode.email == body.email).delete(
        synchronize_session=False
    )
    db.commit()
    return TokenResponse(token=create_access_token(sub=user.id, role=user.role), message="Email verified.")


@router.post("/refresh", response_model=TokenResponse)
def refresh(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> TokenResponse:
    """Exchange a valid or recently expired token for a fresh one."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        payload = decode_refreshable_token(credentials.credentials)
    except jwt.PyJWTError:
        raise _unauthorized("Invalid or expired token")
    user = db.get(User, _user_id_from_payload(payload))
    if user is None:
        raise _unauthorized("User not found")
    return TokenResponse(token=create_access_token(sub=user.id, role=user.role))


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    db: Annotated[Session, Depends(get_db)],
) -> CurrentUser:
    """Dependency: require valid Bearer JWT and return the current user. Raises 401 if missing or invalid."""
    if credentials is None:
        raise _unauthorized("Not authenticated")
    try:
        payload = decode_access_token(credentials.credentials)
    except jwt.PyJWTError:
        raise _unauthorized("Invalid or expired token")
    user = db.get(User, _user_id_from_payload(payload))
    if user is None:
        raise _unauthorized("User not found")
    return CurrentUser(id=user.id, username=user.username, email=user.email, role=user.role)


def require_admin(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
) -> CurrentUser:
    """Dependency: require authenticated user with role 'ADMIN'. Raises 403 for non-admin."""
    if current_user.role != ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user

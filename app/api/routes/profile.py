"""Current user's profile: read, update, and avatar upload."""

import logging
import uuid
from pathlib import Path
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from app.api.routes.auth import get_current_user
from app.core.config import get_settings
from app.core.database import get_db
from app.models import User
from app.schemas.auth import CurrentUser
from app.schemas.profile import ProfileResponse, ProfileUpdateRequest

logger = logging.getLogger(__name__)
router = APIRouter()

# Content type -> file extension for accepted avatar images.
AVATAR_CONTENT_TYPES = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/gif": ".gif",
    "image/webp": ".webp",
}


def _load_user(db: Session, current_user: CurrentUser) -> User:
    user = db.get(User, current_user.id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


@router.get("", response_model=ProfileResponse)
def get_profile(
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ProfileResponse:
    """Return the authenticated user's profile."""
    return ProfileResponse.model_validate(_load_user(db, current_user))


@router.put("", response_model=ProfileResponse)
def update_profile(
    body: ProfileUpdateRequest,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ProfileResponse:
    """Update username and/or email. 409 when the new value belongs to another user."""
    user = _load_user(db, current_user)
    if body.username is not None and body.username != user.username:
        taken = db.query(User).filter(User.username == body.username, User.id != user.id).first()
        if taken is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username is already taken.")
        user.username = body.username
    if body.email is not None and body.email != user.email:
        taken = db.query(User).filter(User.email == body.email, User.id != user.id).first()
        if taken is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email is already in use.")
        user.email = body.email
    db.commit()
    db.refresh(user)
    return ProfileResponse.model_validate(user)


@router.post("/avatar", response_model=ProfileResponse)
async def upload_avatar(
    avatar: UploadFile,
    current_user: Annotated[CurrentUser, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
) -> ProfileResponse:
    """Store an uploaded image (multipart field 'avatar') and point the profile at it."""
    settings = get_settings()
    content_type = (avatar.content_type or "").split(";")[0].strip().lower()
    extension = AVATAR_CONTENT_TYPES.get(content_type)
    if extension is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Avatar must be one of: {', '.join(sorted(AVATAR_CONTENT_TYPES))}.",
        )
    content = await avatar.read(settings.AVATAR_MAX_BYTES + 1)
    if not content:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Avatar file is empty.")
    if len(content) > settings.AVATAR_MAX_BYTES:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"Avatar exceeds maximum size ({settings.AVATAR_MAX_BYTES} bytes).",
        )

    user = _load_user(db, current_user)
    filename = f"{user.id}_{uuid.uuid4().hex}{extension}"
    target_dir = Path(settings.AVATAR_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    (target_dir / filename).write_bytes(content)

    user.avatar_url = f"{settings.AVATAR_URL_PREFIX.rstrip('/')}/{filename}"
    db.commit()
    db.refresh(user)
    logger.info("Avatar uploaded", extra={"user_id": user.id, "bytes": len(content)})
    return ProfileResponse.model_validate(user)

"""Admin endpoints: catalog content, user roles, and dashboard stats."""

import logging
from datetime import UTC, datetime, timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.routes.auth import require_admin
from app.core.config import get_settings
from app.core.database import get_db
from app.models import Media, ParserStatus, User
from app.models.parser import PARSER_SINGLETON_ID, PARSER_STATUS_INACTIVE
from app.schemas.admin import (
    MessageResponse,
    RoleUpdateRequest,
    RoleUpdateResponse,
    StatsResponse,
    UserListItem,
)
from app.schemas.auth import CurrentUser
from app.schemas.media import MediaItem

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/content", response_model=list[MediaItem])
def list_content(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> list[MediaItem]:
    """All catalog media, newest first."""
    rows = db.query(Media).order_by(Media.created_at.desc(), Media.id.desc()).all()
    return [MediaItem.model_validate(m) for m in rows]


def _delete_media(db: Session, media_id: int | None) -> MessageResponse:
    if media_id is None or media_id < 1:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid content id.")
    media = db.get(Media, media_id)
    if media is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Content not found.")
    db.delete(media)
    db.commit()
    logger.info("Content deleted", extra={"media_id": media_id})
    return MessageResponse(message="Content deleted.")


@router.delete("/content", response_model=MessageResponse)
def delete_content_by_query(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    id: Annotated[int | None, Query()] = None,
) -> MessageResponse:
    """Delete a media item (and its video sources) by ?id=."""
    return _delete_media(db, id)


@router.delete("/content/{media_id}", response_model=MessageResponse)
def delete_content(
    media_id: int,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> MessageResponse:
    return _delete_media(db, media_id)


@router.get("/users", response_model=list[UserListItem])
def list_users(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> list[UserListItem]:
    rows = db.query(User).order_by(User.id).all()
    return [UserListItem.model_validate(u) for u in rows]


@router.put("/users/role", response_model=RoleUpdateResponse)
def update_user_role(
    body: RoleUpdateRequest,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> RoleUpdateResponse:
    """Grant or revoke the ADMIN role by email."""
    user = db.query(User).filter(User.email == body.email).first()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found.")
    user.role = body.role
    db.commit()
    db.refresh(user)
    logger.info(
        "User role updated",
        extra={"user_id": user.id, "role": user.role, "changed_by": admin.id},
    )
    return RoleUpdateResponse(message="Role updated.", user=UserListItem.model_validate(user))


@router.get("/stats", response_model=StatsResponse, response_model_by_alias=True)
def get_stats(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> StatsResponse:
    """Content count, recently active users, and the current parser status."""
    cutoff = datetime.now(UTC) - timedelta(days=get_settings().ACTIVE_USER_WINDOW_DAYS)
    total_content = db.query(Media).count()
    active_users = db.query(User).filter(User.updated_at >= cutoff).count()
    parser = db.get(ParserStatus, PARSER_SINGLETON_ID)
    return StatsResponse(
        total_content=total_content,
        active_users=active_users,
        parser_status=parser.status if parser is not None else PARSER_STATUS_INACTIVE,
    )

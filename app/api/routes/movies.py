"""Public catalog endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.models import Media
from app.schemas.media import MediaDetailResponse

router = APIRouter()


@router.get("/{media_id}", response_model=MediaDetailResponse)
def get_movie(
    media_id: int,
    db: Annotated[Session, Depends(get_db)],
) -> MediaDetailResponse:
    """Media item with its resolved video sources (watch page)."""
    media = db.get(Media, media_id)
    if media is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Movie not found.")
    return MediaDetailResponse.model_validate(media)

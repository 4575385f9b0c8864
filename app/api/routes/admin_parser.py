"""Admin parser endpoints: settings/status (cached), start/stop, logs, and run history."""

import logging
from collections.abc import Callable
from typing import Annotated, Literal

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, Response, status
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.api.routes.auth import require_admin
from app.core.cache import TTLCache
from app.core.config import get_settings
from app.core.database import get_db, get_session_factory
from app.core.retry import exponential_backoff, retry_call
from app.schemas.auth import CurrentUser
from app.schemas.parser import (
    ParserActionResponse,
    ParserDataResponse,
    ParserHistoryResponse,
    ParserLogResponse,
    ParserSettingsResponse,
    ParserSettingsUpdateRequest,
    ParserStartRequest,
    ParserStatusResponse,
)
from app.services.parser_orchestrator import (
    ParserAlreadyRunningError,
    ParserApiKeys,
    ParserConfigurationError,
    ParserNotRunningError,
    ParserOrchestrator,
    run_parser_job,
)
from app.services.parser_store import (
    get_parser_cache,
    list_history,
    list_logs,
    load_parser_data,
    parser_cache_key,
    update_settings,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _no_store(response: Response) -> None:
    """Polled by the admin UI; browsers must not cache it."""
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, proxy-revalidate"
    response.headers["Pragma"] = "no-cache"
    response.headers["Expires"] = "0"


@router.get("", response_model=ParserDataResponse)
def get_parser_data(
    response: Response,
    admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    cache: Annotated[TTLCache, Depends(get_parser_cache)],
) -> ParserDataResponse:
    """
    Return parser settings and status, creating the singleton rows on first use.

    Cached per admin for PARSER_CACHE_TTL_SEC. Transient database errors are retried with
    exponential backoff; after DB_RETRY_ATTEMPTS the endpoint answers 503.
    """
    _no_store(response)
    key = parser_cache_key(admin.id)
    cached = cache.get(key)
    if cached is not None:
        return cached

    settings = get_settings()
    try:
        parser_settings, parser_status = retry_call(
            lambda: load_parser_data(db),
            attempts=settings.DB_RETRY_ATTEMPTS,
            backoff=exponential_backoff(settings.DB_RETRY_BASE_DELAY_SEC, settings.DB_RETRY_MAX_DELAY_SEC),
            retry_on=(OperationalError,),
            on_retry=lambda attempt, e: db.rollback(),
        )
    except OperationalError as e:
        logger.error(
            "Database unavailable after retries",
            extra={"attempts": settings.DB_RETRY_ATTEMPTS, "reason": str(e)[:500]},
        )
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is temporarily unavailable. Please try again later.",
            headers={"Retry-After": str(int(settings.DB_RETRY_MAX_DELAY_SEC) or 1)},
        ) from e

    payload = ParserDataResponse(
        settings=ParserSettingsResponse.model_validate(parser_settings),
        status=ParserStatusResponse.model_validate(parser_status),
    )
    cache.set(key, payload)
    return payload


@router.post("", response_model=ParserActionResponse)
def post_parser_action(
    response: Response,
    background_tasks: BackgroundTasks,
    action: Annotated[Literal["start", "stop"], Query()],
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    cache: Annotated[TTLCache, Depends(get_parser_cache)],
    session_factory: Annotated[Callable[[], Session], Depends(get_session_factory)],
    body: ParserStartRequest | None = None,
) -> ParserActionResponse:
    """
    Start (?action=start) or stop (?action=stop) the parser.

    Start returns immediately; the run continues as a background task and records
    its outcome in status, logs, and history.
    """
    _no_store(response)
    settings = get_settings()
    orchestrator = ParserOrchestrator(db, settings, cache=cache)

    if action == "stop":
        try:
            orchestrator.stop()
        except ParserNotRunningError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
        return ParserActionResponse(message="Parser stopped")

    requested = None
    if body is not None and (body.kinopoisk_api_key or body.omdb_api_key):
        requested = ParserApiKeys(
            kinopoisk_api_key=body.kinopoisk_api_key or "",
            omdb_api_key=body.omdb_api_key or "",
        )
    try:
        run = orchestrator.start(requested)
    except (ParserAlreadyRunningError, ParserConfigurationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e

    background_tasks.add_task(run_parser_job, session_factory, run, settings, cache)
    return ParserActionResponse(message="Parser started")


@router.put("", response_model=ParserSettingsResponse)
def put_parser_settings(
    body: ParserSettingsUpdateRequest,
    response: Response,
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
    cache: Annotated[TTLCache, Depends(get_parser_cache)],
) -> ParserSettingsResponse:
    """Save parser settings (upsert of the singleton row)."""
    _no_store(response)
    row = update_settings(db, body.settings, cache=cache)
    return ParserSettingsResponse.model_validate(row)


@router.get("/logs", response_model=list[ParserLogResponse])
def get_parser_logs(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> list[ParserLogResponse]:
    """Most recent parser log entries, newest first."""
    return [ParserLogResponse.model_validate(entry) for entry in list_logs(db)]


@router.get("/history", response_model=list[ParserHistoryResponse])
def get_parser_history(
    _admin: Annotated[CurrentUser, Depends(require_admin)],
    db: Annotated[Session, Depends(get_db)],
) -> list[ParserHistoryResponse]:
    """Last 50 parser runs, newest start first."""
    return [ParserHistoryResponse.model_validate(run) for run in list_history(db)]

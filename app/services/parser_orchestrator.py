"""Parser job lifecycle: guarded start/stop transitions on the status singleton and the background run."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

import httpx
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from app.core.cache import TTLCache
from app.models import Media, ParserHistory, ParserStatus
from app.models.media import MEDIA_STATUS_PENDING, MEDIA_TYPE_MOVIE, MEDIA_TYPE_SERIES
from app.models.parser import (
    HISTORY_COMPLETED,
    HISTORY_ERROR,
    HISTORY_RUNNING,
    HISTORY_STOPPED,
    PARSER_SINGLETON_ID,
    PARSER_STATUS_ACTIVE,
    PARSER_STATUS_ERROR,
    PARSER_STATUS_INACTIVE,
)
from app.services.parser_store import (
    add_log,
    get_or_create_settings,
    get_or_create_status,
    invalidate_parser_cache,
)
from app.services.video_processor import MediaNotFoundError, VideoProcessor

if TYPE_CHECKING:
    from app.core.config import Settings

logger = logging.getLogger(__name__)

# Settings content types -> Media.media_type values.
CONTENT_TYPE_TO_MEDIA_TYPE = {
    "movies": MEDIA_TYPE_MOVIE,
    "series": MEDIA_TYPE_SERIES,
}

START_LOG_MESSAGE = "Parser started"
STOP_LOG_MESSAGE = "Parser stopped"
FINISH_LOG_MESSAGE = "Parser finished"
FAILURE_LOG_MESSAGE = "Parser failed"


class ParserError(Exception):
    """Base class for parser lifecycle errors; message is safe to show to admins."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ParserAlreadyRunningError(ParserError):
    """Raised when start is requested while a fresh run is active."""


class ParserNotRunningError(ParserError):
    """Raised when stop is requested while no run is active."""


class ParserConfigurationError(ParserError):
    """Raised when required API keys are missing."""


@dataclass(frozen=True)
class ParserApiKeys:
    kinopoisk_api_key: str
    omdb_api_key: str = ""


@dataclass(frozen=True)
class ParserRun:
    """Handle for a started run, passed to the background job."""

    history_id: int
    api_keys: ParserApiKeys
    started_at: datetime


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=UTC)


def _first_non_blank(*values: str | None) -> str:
    for value in values:
        if value and value.strip():
            return value.strip()
    return ""


class ParserOrchestrator:
    """
    Start/stop transitions for the parser status singleton.

    Every transition is a conditional UPDATE on `status`, so of two concurrent
    starts (or a stop racing the job's completion) exactly one wins.
    """

    def __init__(
        self,
        session: Session,
        settings: Settings,
        cache: TTLCache | None = None,
        now: Callable[[], datetime] | None = None,
    ) -> None:
        self.session = session
        self.settings = settings
        self.cache = cache
        self._now = now or (lambda: datetime.now(UTC))

    def resolve_api_keys(self, requested: ParserApiKeys | None = None) -> ParserApiKeys:
        """Request keys, then stored settings, then environment. The Kinopoisk key is required."""
        stored = get_or_create_settings(self.session)
        env_kinopoisk = (
            self.settings.KINOPOISK_API_KEY.get_secret_value()
            if self.settings.KINOPOISK_API_KEY is not None
            else None
        )
        env_omdb = (
            self.settings.OMDB_API_KEY.get_secret_value()
            if self.settings.OMDB_API_KEY is not None
            else None
        )
        kinopoisk = _first_non_blank(
            requested.kinopoisk_api_key if requested else None,
            stored.kinopoisk_api_key,
            env_kinopoisk,
        )
        omdb = _first_non_blank(
            requested.omdb_api_key if requested else None,
            stored.omdb_api_key,
            env_omdb,
        )
        if not kinopoisk:
            raise ParserConfigurationError(
                "Kinopoisk API key is not configured; save it in parser settings or set KINOPOISK_API_KEY."
            )
        return ParserApiKeys(kinopoisk_api_key=kinopoisk, omdb_api_key=omdb)

    def is_stale(self, last_run: datetime | None, now: datetime) -> bool:
        if last_run is None:
            return True
        return now - _as_utc(last_run) > timedelta(minutes=self.settings.PARSER_STALE_AFTER_MINUTES)

    def _status_query(self):
        return self.session.query(ParserStatus).filter(ParserStatus.id == PARSER_SINGLETON_ID)

    def start(self, api_keys: ParserApiKeys | None = None) -> ParserRun:
        """
        Transition the parser to active and record the run.

        Raises ParserConfigurationError without touching status when keys are missing,
        and ParserAlreadyRunningError when a non-stale run is active or a concurrent
        start won the transition.
        """
        keys = self.resolve_api_keys(api_keys)
        current = get_or_create_status(self.session)
        now = self._now()

        if current.status == PARSER_STATUS_ACTIVE:
            previous_run = current.last_run
            if not self.is_stale(previous_run, now):
                raise ParserAlreadyRunningError("Parser is already running.")
            cutoff = now - timedelta(minutes=self.settings.PARSER_STALE_AFTER_MINUTES)
            reset = (
                self._status_query()
                .filter(ParserStatus.status == PARSER_STATUS_ACTIVE)
                .filter((ParserStatus.last_run.is_(None)) | (ParserStatus.last_run < cutoff))
                .update({ParserStatus.status: PARSER_STATUS_INACTIVE}, synchronize_session=False)
            )
            self._close_running_history(HISTORY_STOPPED, now)
            self.session.commit()
            logger.warning(
                "Reset stale parser lock",
                extra={"last_run": previous_run.isoformat() if previous_run else None, "reset": reset},
            )

        activated = (
            self._status_query()
            .filter(ParserStatus.status != PARSER_STATUS_ACTIVE)
            .update(
                {
                    ParserStatus.status: PARSER_STATUS_ACTIVE,
                    ParserStatus.last_run: now,
                    ParserStatus.processed_items: 0,
                    ParserStatus.errors: [],
                },
                synchronize_session=False,
            )
        )
        if activated == 0:
            self.session.rollback()
            raise ParserAlreadyRunningError("Parser is already running.")

        history = ParserHistory(
            status=HISTORY_RUNNING,
            start_time=now,
            items_processed=0,
            source="kinopoisk",
            details={"providers": ["vk", "rutube", "youtube"]},
            errors=[],
        )
        self.session.add(history)
        self.session.flush()
        self._status_query().update({ParserStatus.run_id: history.id}, synchronize_session=False)
        add_log(self.session, START_LOG_MESSAGE)
        self.session.commit()
        invalidate_parser_cache(self.cache)
        logger.info("Parser started", extra={"history_id": history.id})
        return ParserRun(history_id=history.id, api_keys=keys, started_at=now)

    def stop(self) -> None:
        """Transition active -> inactive. Raises ParserNotRunningError otherwise."""
        get_or_create_status(self.session)
        stopped = (
            self._status_query()
            .filter(ParserStatus.status == PARSER_STATUS_ACTIVE)
            .update(
                {ParserStatus.status: PARSER_STATUS_INACTIVE, ParserStatus.errors: []},
                synchronize_session=False,
            )
        )
        if stopped == 0:
            self.session.rollback()
            raise ParserNotRunningError("Parser is not running.")
        self._close_running_history(HISTORY_STOPPED, self._now())
        add_log(self.session, STOP_LOG_MESSAGE)
        self.session.commit()
        invalidate_parser_cache(self.cache)
        logger.info("Parser stopped")

    def _owned_status_query(self, run: ParserRun):
        return self._status_query().filter(ParserStatus.run_id == run.history_id)

    def owns_lock(self, run: ParserRun) -> bool:
        """True while the status is active and still names this run (not stopped, not taken over)."""
        owned = (
            self._owned_status_query(run)
            .filter(ParserStatus.status == PARSER_STATUS_ACTIVE)
            .count()
        )
        return owned > 0

    def record_progress(self, run: ParserRun) -> None:
        """Increment processed counters in SQL (no read-modify-write); status counters only while this run owns them."""
        self._owned_status_query(run).update(
            {ParserStatus.processed_items: ParserStatus.processed_items + 1},
            synchronize_session=False,
        )
        self.session.query(ParserHistory).filter(ParserHistory.id == run.history_id).update(
            {ParserHistory.items_processed: ParserHistory.items_processed + 1},
            synchronize_session=False,
        )
        self.session.commit()
        invalidate_parser_cache(self.cache)

    def record_item_error(self, run: ParserRun, message: str) -> None:
        add_log(self.session, "Media item skipped", error=message)
        self.session.commit()

    def finish(self, run: ParserRun) -> None:
        """Close a run that ended normally; leaves status alone if it was stopped or taken over."""
        finished = (
            self._owned_status_query(run)
            .filter(ParserStatus.status == PARSER_STATUS_ACTIVE)
            .update({ParserStatus.status: PARSER_STATUS_INACTIVE}, synchronize_session=False)
        )
        history = self.session.get(ParserHistory, run.history_id)
        if history is not None and history.status == HISTORY_RUNNING:
            history.status = HISTORY_COMPLETED if finished else HISTORY_STOPPED
            history.end_time = self._now()
        items = history.items_processed if history is not None else 0
        add_log(self.session, f"{FINISH_LOG_MESSAGE}: {items} items processed")
        self.session.commit()
        invalidate_parser_cache(self.cache)
        logger.info(
            "Parser run finished",
            extra={"history_id": run.history_id, "items_processed": items, "completed": bool(finished)},
        )

    def fail(self, run: ParserRun, message: str) -> None:
        """
        Record a run-level failure: history and log always; status becomes error with the
        message appended only while this run still owns it.
        """
        status = get_or_create_status(self.session)
        if status.run_id == run.history_id:
            status.status = PARSER_STATUS_ERROR
            status.errors = [*(status.errors or []), message]
        else:
            logger.warning("Failed run no longer owns parser status", extra={"history_id": run.history_id})
        history = self.session.get(ParserHistory, run.history_id)
        if history is not None:
            history.status = HISTORY_ERROR
            history.end_time = self._now()
            history.errors = [*(history.errors or []), message]
        add_log(self.session, FAILURE_LOG_MESSAGE, error=message)
        self.session.commit()
        invalidate_parser_cache(self.cache)

    def pending_media(self) -> list[Media]:
        """PENDING media with an external id whose type is enabled in settings."""
        stored = get_or_create_settings(self.session)
        media_types = [
            CONTENT_TYPE_TO_MEDIA_TYPE[t]
            for t in (stored.content_types or [])
            if t in CONTENT_TYPE_TO_MEDIA_TYPE
        ]
        if not media_types:
            return []
        return (
            self.session.query(Media)
            .filter(Media.status == MEDIA_STATUS_PENDING)
            .filter(Media.source_id.isnot(None))
            .filter(Media.media_type.in_(media_types))
            .order_by(Media.id)
            .all()
        )

    def _close_running_history(self, status: str, now: datetime) -> None:
        self.session.query(ParserHistory).filter(ParserHistory.status == HISTORY_RUNNING).update(
            {ParserHistory.status: status, ParserHistory.end_time: now},
            synchronize_session=False,
        )


ProcessorFactory = Callable[[Session, ParserApiKeys, httpx.AsyncClient, "Settings"], VideoProcessor]


def _default_processor_factory(
    session: Session, keys: ParserApiKeys, client: httpx.AsyncClient, settings: Settings
) -> VideoProcessor:
    return VideoProcessor(session, keys.kinopoisk_api_key, client, settings)


async def run_parser_job(
    session_factory: Callable[[], Session],
    run: ParserRun,
    settings: Settings,
    cache: TTLCache | None = None,
    processor_factory: ProcessorFactory | None = None,
) -> None:
    """
    Background body of a parser run. Uses its own session (the request session is closed by now).

    Orchestrator queries run in the threadpool so they do not block the event loop.
    Any exception is caught here and recorded as a run-level failure.
    """
    factory = processor_factory or _default_processor_factory
    session = session_factory()
    orchestrator = ParserOrchestrator(session, settings, cache=cache)
    try:
        try:
            items = await run_in_threadpool(
                lambda: [(m.id, m.source_id) for m in orchestrator.pending_media()]
            )
            logger.info(
                "Parser run processing media",
                extra={"history_id": run.history_id, "pending": len(items)},
            )
            async with httpx.AsyncClient(timeout=settings.PROVIDER_REQUEST_TIMEOUT_SEC) as client:
                processor = factory(session, run.api_keys, client, settings)
                for media_id, source_id in items:
                    if not await run_in_threadpool(orchestrator.owns_lock, run):
                        logger.info(
                            "Parser run no longer owns the lock; stopping",
                            extra={"history_id": run.history_id},
                        )
                        break
                    try:
                        await processor.process_media_video(media_id, source_id)
                    except MediaNotFoundError as e:
                        await run_in_threadpool(orchestrator.record_item_error, run, e.message)
                        continue
                    await run_in_threadpool(orchestrator.record_progress, run)
        except Exception as e:
            logger.exception("Parser run failed", extra={"history_id": run.history_id})
            session.rollback()
            await run_in_threadpool(orchestrator.fail, run, str(e) or type(e).__name__)
            return
        await run_in_threadpool(orchestrator.finish, run)
    finally:
        session.close()

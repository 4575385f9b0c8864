"""Parser settings/status persistence: singleton rows, logs, history, and the response cache."""

import logging
from functools import lru_cache

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.cache import TTLCache
from app.core.config import get_settings
from app.models import ParserHistory, ParserLog, ParserSettings, ParserStatus
from app.models.parser import PARSER_SINGLETON_ID, PARSER_STATUS_INACTIVE
from app.schemas.parser import ParserSettingsPayload

logger = logging.getLogger(__name__)

# Cache keys for GET /admin/parser are per user: parser_data_<user_id>.
PARSER_CACHE_PREFIX = "parser_data_"

DEFAULT_LOG_LIMIT = 100
DEFAULT_HISTORY_LIMIT = 50


@lru_cache
def get_parser_cache() -> TTLCache:
    """Process-wide cache for parser settings/status payloads (dependency; overridable in tests)."""
    return TTLCache(get_settings().PARSER_CACHE_TTL_SEC)


def parser_cache_key(user_id: int) -> str:
    return f"{PARSER_CACHE_PREFIX}{user_id}"


def invalidate_parser_cache(cache: TTLCache | None) -> None:
    """Drop every cached parser payload after a write."""
    if cache is not None:
        cache.invalidate_prefix(PARSER_CACHE_PREFIX)


def _get_or_create(session: Session, model: type, defaults: dict) -> object:
    row = session.get(model, PARSER_SINGLETON_ID)
    if row is not None:
        return row
    row = model(id=PARSER_SINGLETON_ID, **defaults)
    session.add(row)
    try:
        session.commit()
    except IntegrityError:
        # Another request created the singleton first.
        session.rollback()
        row = session.get(model, PARSER_SINGLETON_ID)
        if row is None:
            raise
        return row
    logger.info("Initialized parser singleton row", extra={"table": model.__tablename__})
    session.refresh(row)
    return row


def get_or_create_settings(session: Session) -> ParserSettings:
    """Return the settings row, creating it with defaults on first use."""
    return _get_or_create(
        session,
        ParserSettings,
        {
            "kinopoisk_api_key": "",
            "omdb_api_key": "",
            "update_interval": 24,
            "auto_update": True,
            "content_types": ["movies", "series"],
        },
    )


def get_or_create_status(session: Session) -> ParserStatus:
    """Return the status row, creating it as inactive on first use."""
    return _get_or_create(
        session,
        ParserStatus,
        {
            "status": PARSER_STATUS_INACTIVE,
            "last_run": None,
            "processed_items": 0,
            "errors": [],
        },
    )


def load_parser_data(session: Session) -> tuple[ParserSettings, ParserStatus]:
    return get_or_create_settings(session), get_or_create_status(session)


def update_settings(
    session: Session,
    payload: ParserSettingsPayload,
    cache: TTLCache | None = None,
) -> ParserSettings:
    """Upsert the settings row with the submitted values and invalidate cached payloads."""
    row = get_or_create_settings(session)
    row.kinopoisk_api_key = payload.kinopoisk_api_key
    row.omdb_api_key = payload.omdb_api_key
    row.update_interval = payload.update_interval
    row.auto_update = payload.auto_update
    row.content_types = list(payload.content_types)
    session.commit()
    session.refresh(row)
    invalidate_parser_cache(cache)
    logger.info(
        "Parser settings updated",
        extra={
            "update_interval": row.update_interval,
            "auto_update": row.auto_update,
            "content_types": ",".join(row.content_types or []),
        },
    )
    return row


def add_log(session: Session, message: str, error: str | None = None) -> ParserLog:
    """Stage a parser log row; the caller commits."""
    entry = ParserLog(message=message, error=error)
    session.add(entry)
    return entry


def list_logs(session: Session, limit: int = DEFAULT_LOG_LIMIT) -> list[ParserLog]:
    return (
        session.query(ParserLog)
        .order_by(ParserLog.timestamp.desc(), ParserLog.id.desc())
        .limit(limit)
        .all()
    )


def list_history(session: Session, limit: int = DEFAULT_HISTORY_LIMIT) -> list[ParserHistory]:
    return (
        session.query(ParserHistory)
        .order_by(ParserHistory.start_time.desc(), ParserHistory.id.desc())
        .limit(limit)
        .all()
    )

"""ORM models for the content parser: singleton settings/status rows plus run logs and history."""

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text, func

from app.models.base import Base

# Fixed primary key of the singleton rows.
PARSER_SINGLETON_ID = 1

PARSER_STATUS_ACTIVE = "active"
PARSER_STATUS_INACTIVE = "inactive"
PARSER_STATUS_ERROR = "error"

HISTORY_RUNNING = "running"
HISTORY_COMPLETED = "completed"
HISTORY_STOPPED = "stopped"
HISTORY_ERROR = "error"


class ParserSettings(Base):
    """Admin-editable parser configuration (single row, id=1)."""

    __tablename__ = "parser_settings"

    id = Column(Integer, primary_key=True)
    kinopoisk_api_key = Column(String(255), nullable=False, default="")
    omdb_api_key = Column(String(255), nullable=False, default="")
    update_interval = Column(Integer, nullable=False, default=24)
    auto_update = Column(Boolean, nullable=False, default=True)
    content_types = Column(JSON, nullable=False, default=lambda: ["movies", "series"])
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class ParserStatus(Base):
    """
    Global parser run state (single row, id=1).

    Writers must use conditional UPDATEs on `status` so concurrent start/stop
    calls cannot both win.
    """

    __tablename__ = "parser_status"

    id = Column(Integer, primary_key=True)
    status = Column(String(16), nullable=False, default=PARSER_STATUS_INACTIVE)
    last_run = Column(DateTime(timezone=True), nullable=True)
    processed_items = Column(Integer, nullable=False, default=0)
    errors = Column(JSON, nullable=False, default=list)
    # parser_history.id of the run that last took the lock; only that run may advance or close it.
    run_id = Column(Integer, nullable=True)


class ParserLog(Base):
    """Append-only parser event."""

    __tablename__ = "parser_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    message = Column(Text, nullable=False)
    error = Column(Text, nullable=True)
    timestamp = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        index=True,
    )


class ParserHistory(Base):
    """One row per parser run."""

    __tablename__ = "parser_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    status = Column(String(16), nullable=False, default=HISTORY_RUNNING)
    start_time = Column(DateTime(timezone=True), nullable=False, index=True)
    end_time = Column(DateTime(timezone=True), nullable=True)
    items_processed = Column(Integer, nullable=False, default=0)
    source = Column(String(64), nullable=False, default="kinopoisk")
    details = Column(JSON, nullable=True)
    errors = Column(JSON, nullable=False, default=list)

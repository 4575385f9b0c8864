"""Engine and session plumbing for the catalog database."""

import logging
from collections.abc import Callable, Generator

from sqlalchemy import create_engine, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)

engine = create_engine(
    settings.DATABASE_URL,
    pool_pre_ping=True,
    echo=settings.DEBUG,
    # SQLite connections are shared with the background parser thread.
    connect_args=(
        {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
    ),
)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    """Request-scoped session; closed after the response is sent."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def get_session_factory() -> Callable[[], Session]:
    """Factory for jobs that outlive the request, such as the parser run."""
    return SessionLocal


def check_db_connected(db: Session) -> bool:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Database health probe failed", extra={"error": str(e)[:200]})
        return False
    return True

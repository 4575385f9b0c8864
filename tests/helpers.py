"""Shared builders for tests: in-memory SQLite sessions, seeded rows, and an app client."""

from collections.abc import Callable
from datetime import UTC, datetime

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.cache import TTLCache
from app.core.database import get_db, get_session_factory
from app.core.security import create_access_token, hash_password
from app.models import Base, Media, User
from app.models.media import MEDIA_STATUS_PENDING, MEDIA_TYPE_MOVIE
from app.models.user import ROLE_ADMIN, ROLE_USER
from app.services.parser_store import get_parser_cache

DEFAULT_PASSWORD = "correct-horse-battery"


def make_session_factory() -> Callable[[], Session]:
    """Fresh in-memory database with every table created; one shared connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def add_user(
    session: Session,
    email: str = "user@example.com",
    username: str = "viewer",
    password: str = DEFAULT_PASSWORD,
    role: str = ROLE_USER,
    is_verified: bool = True,
) -> User:
    user = User(
        email=email,
        username=username,
        password_hash=hash_password(password),
        role=role,
        is_verified=is_verified,
    )
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def add_admin(session: Session, email: str = "admin@example.com", username: str = "admin") -> User:
    return add_user(session, email=email, username=username, role=ROLE_ADMIN)


def add_media(
    session: Session,
    title: str = "Test Movie",
    source_id: str | None = "301",
    release_date: datetime | None = datetime(2020, 1, 1, tzinfo=UTC),
    media_type: str = MEDIA_TYPE_MOVIE,
    status: str = MEDIA_STATUS_PENDING,
) -> Media:
    media = Media(
        title=title,
        source_id=source_id,
        release_date=release_date,
        media_type=media_type,
        status=status,
    )
    session.add(media)
    session.commit()
    session.refresh(media)
    return media


def auth_headers(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(sub=user.id, role=user.role)}"}


def make_client(session_factory: Callable[[], Session], cache: TTLCache | None = None) -> TestClient:
    """TestClient for the real app with database, session factory, and parser cache overridden."""
    from app.main import app

    parser_cache = cache if cache is not None else TTLCache(60)

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_parser_cache] = lambda: parser_cache
    return TestClient(app)


def clear_overrides() -> None:
    from app.main import app

    app.dependency_overrides.clear()

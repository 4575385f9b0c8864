"""
Client-side auth session: immutable state, a pure reducer over session events, an
observable store, and the controller that checks, refreshes, and clears the session.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace
from typing import Any, Union

from app.client.api import (
    TRANSIENT_ERRORS,
    ApiClient,
    ApiError,
    AuthenticationError,
)
from app.client.config import ClientSettings, get_client_settings
from app.client.paths import is_auth_path
from app.client.token_store import FileTokenStore, MemoryTokenStore
from app.core.retry import CancelToken, RetryCancelledError, exponential_backoff, retry_call

logger = logging.getLogger(__name__)

ROLE_ADMIN = "ADMIN"

# ProfileLoaded reasons
REASON_CHECK = "check"
REASON_LOGIN = "login"
REASON_UPDATE = "update"

# LoggedOut reasons
REASON_LOGOUT = "logout"
REASON_EXPIRED = "expired"
REASON_MISSING = "missing"

TokenStore = Union[FileTokenStore, MemoryTokenStore]


class SessionSupersededError(Exception):
    """The token under check was replaced or removed by a login, logout, or another check."""


@dataclass(frozen=True)
class SessionState:
    """Snapshot of the client session. loading is True until the first check settles."""

    is_authenticated: bool = False
    token: str | None = None
    profile: dict[str, Any] | None = None
    loading: bool = True
    error: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.profile is not None and self.profile.get("role") == ROLE_ADMIN


@dataclass(frozen=True)
class CheckStarted:
    pass


@dataclass(frozen=True)
class ProfileLoaded:
    token: str
    profile: dict[str, Any]
    reason: str = REASON_CHECK


@dataclass(frozen=True)
class LoggedOut:
    reason: str = REASON_LOGOUT


@dataclass(frozen=True)
class CheckFailed:
    error: str


@dataclass(frozen=True)
class LoginStarted:
    pass


@dataclass(frozen=True)
class LoginFailed:
    error: str


@dataclass(frozen=True)
class ProfileUpdateFailed:
    error: str


SessionEvent = Union[
    CheckStarted,
    ProfileLoaded,
    LoggedOut,
    CheckFailed,
    LoginStarted,
    LoginFailed,
    ProfileUpdateFailed,
]


def reduce(state: SessionState, event: SessionEvent) -> SessionState:
    """Return the state after applying event. Never mutates state."""
    if isinstance(event, CheckStarted):
        return replace(state, loading=True)
    if isinstance(event, ProfileLoaded):
        return SessionState(
            is_authenticated=True,
            token=event.token,
            profile=event.profile,
            loading=False,
        )
    if isinstance(event, LoggedOut):
        return SessionState(loading=False)
    if isinstance(event, CheckFailed):
        # Keep token and profile: a transient failure is not a logout.
        return replace(state, loading=False, error=event.error)
    if isinstance(event, LoginStarted):
        return replace(state, loading=True, error=None)
    if isinstance(event, LoginFailed):
        return replace(state, loading=False, error=event.error)
    if isinstance(event, ProfileUpdateFailed):
        return replace(state, error=event.error)
    raise TypeError(f"Unknown session event: {event!r}")


Subscriber = Callable[[SessionState, SessionState, SessionEvent], None]


class SessionStore:
    """Holds the current SessionState and notifies subscribers with (previous, current, event)."""

    def __init__(self, state: SessionState | None = None) -> None:
        self._state = state or SessionState()
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    def subscribe(self, subscriber: Subscriber) -> Callable[[], None]:
        """Register subscriber; returns a function that unregisters it."""
        self._subscribers.append(subscriber)

        def unsubscribe() -> None:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

        return unsubscribe

    def dispatch(self, event: SessionEvent) -> SessionState:
        with self._lock:
            previous = self._state
            current = reduce(previous, event)
            self._state = current
        for subscriber in list(self._subscribers):
            subscriber(previous, current, event)
        return current


class SessionController:
    """
    Owns the bearer token and keeps the session state in sync with the server.

    check_auth validates the stored token against GET /api/profile, refreshes it once
    on 401, and clears it when the refresh is rejected. Transient failures (timeouts,
    transport errors, 5xx, unparseable bodies) are retried with doubling backoff; when
    retries run out the session is kept as-is and CheckFailed is dispatched.
    """

    def __init__(
        self,
        api: ApiClient,
        token_store: TokenStore,
        store: SessionStore | None = None,
        settings: ClientSettings | None = None,
        is_online: Callable[[], bool] | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        settings = settings or ClientSettings()
        self.api = api
        self.token_store = token_store
        self.store = store or SessionStore()
        self.check_interval = settings.CHECK_INTERVAL_SEC
        self.attempts = settings.CHECK_ATTEMPTS
        self.backoff = exponential_backoff(settings.RETRY_BASE_DELAY_SEC)
        self.is_online = is_online or (lambda: True)
        self.current_path = "/"
        self._clock = clock
        self._sleep = sleep
        self._last_check: float | None = None
        self._check_lock = threading.Lock()
        self._checked_token: str | None = None

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings | None = None,
        is_online: Callable[[], bool] | None = None,
    ) -> SessionController:
        """Controller talking to BASE_URL + API_PREFIX, with the token kept in the TOKEN_PATH file."""
        settings = settings or get_client_settings()
        api = ApiClient(
            settings.BASE_URL,
            api_prefix=settings.API_PREFIX,
            timeout=settings.REQUEST_TIMEOUT_SEC,
        )
        return cls(api, FileTokenStore(settings.TOKEN_PATH), settings=settings, is_online=is_online)

    @property
    def state(self) -> SessionState:
        return self.store.state

    def _require_token(self) -> str:
        token = self.token_store.get()
        if not token:
            raise AuthenticationError("Not authenticated.", 401)
        return token

    def _fetch_profile(self) -> tuple[str, dict[str, Any]]:
        """One check attempt with the token this check owns, refreshing it once on 401."""
        token = self._checked_token
        try:
            return token, self.api.get_profile(token)
        except AuthenticationError:
            logger.info("Session token rejected; refreshing")
        try:
            refreshed = self.api.refresh(token)
        except TRANSIENT_ERRORS:
            raise
        except ApiError as e:
            raise AuthenticationError(e.message, e.status_code) from e
        if not self.token_store.replace_if(token, refreshed):
            raise SessionSupersededError()
        self._checked_token = refreshed
        return refreshed, self.api.get_profile(refreshed)

    def check_auth(
        self,
        force: bool = False,
        reason: str = REASON_CHECK,
        cancel_token: CancelToken | None = None,
    ) -> SessionState:
        """
        Validate the stored token and update the session. Returns the resulting state.

        A forced check (page load, login, profile write) waits for a check already in
        flight; a periodic one is skipped instead. A check whose token was replaced or
        removed meanwhile dispatches nothing and leaves the newer token alone.
        """
        if not self.token_store.get():
            self.store.dispatch(LoggedOut(reason=REASON_MISSING))
            return self.state
        if not self.is_online():
            logger.debug("Offline; session check skipped")
            return self.state
        now = self._clock()
        if not force and self._last_check is not None and now - self._last_check < self.check_interval:
            return self.state
        if not self._check_lock.acquire(blocking=force):
            logger.debug("Session check already in progress")
            return self.state

        try:
            token = self.token_store.get()
            if not token:
                self.store.dispatch(LoggedOut(reason=REASON_MISSING))
                return self.state
            self._checked_token = token
            self._last_check = now
            self.store.dispatch(CheckStarted())
            try:
                token, profile = retry_call(
                    self._fetch_profile,
                    attempts=self.attempts,
                    backoff=self.backoff,
                    retry_on=TRANSIENT_ERRORS,
                    cancel_token=cancel_token,
                    sleep=self._sleep,
                )
            except SessionSupersededError:
                logger.info("Session token replaced during check; result discarded")
            except AuthenticationError:
                if self.token_store.replace_if(self._checked_token, None):
                    logger.info("Session expired; clearing token")
                    self.store.dispatch(LoggedOut(reason=REASON_EXPIRED))
                else:
                    logger.info("Session token replaced during check; result discarded")
            except RetryCancelledError as e:
                self.store.dispatch(CheckFailed(error=e.message))
            except ApiError as e:
                logger.warning(
                    "Session check failed",
                    extra={"status_code": e.status_code, "error": e.message},
                )
                self.store.dispatch(CheckFailed(error=e.message))
            else:
                if self.token_store.get() == token:
                    self.store.dispatch(ProfileLoaded(token=token, profile=profile, reason=reason))
                else:
                    logger.info("Session token replaced during check; result discarded")
        finally:
            self._checked_token = None
            self._check_lock.release()
        return self.state

    def mount(self, path: str) -> SessionState:
        """Record the current route and run a forced check (page load)."""
        self.current_path = path
        return self.check_auth(force=True)

    def watch(self, cancel_token: CancelToken) -> None:
        """Re-check every check_interval seconds until cancel_token fires; idle on auth pages."""
        while not cancel_token.cancelled:
            if not is_auth_path(self.current_path):
                try:
                    self.check_auth(cancel_token=cancel_token)
                except Exception:
                    logger.exception("Periodic session check failed")
            if cancel_token.wait(self.check_interval):
                break

    def login(self, email: str, password: str) -> bool:
        """Log in and load the profile. Returns False (with state.error set) on failure."""
        self.store.dispatch(LoginStarted())
        try:
            token = self.api.login(email, password)
        except ApiError as e:
            self.store.dispatch(LoginFailed(error=e.message))
            return False
        self.token_store.set(token)
        return self.check_auth(force=True, reason=REASON_LOGIN).is_authenticated

    def logout(self) -> None:
        """Forget the token locally; no server call is needed for stateless JWTs."""
        self.token_store.remove()
        self.store.dispatch(LoggedOut(reason=REASON_LOGOUT))

    def update_profile(self, updates: dict[str, Any]) -> dict[str, Any]:
        """PUT /api/profile; raises ApiError with the server's message on failure."""
        token = self._require_token()
        try:
            profile = self.api.update_profile(token, updates)
        except ApiError as e:
            self.store.dispatch(ProfileUpdateFailed(error=e.message))
            raise
        self.check_auth(force=True, reason=REASON_UPDATE)
        return profile

    def upload_avatar(self, filename: str, content: bytes, content_type: str) -> dict[str, Any]:
        token = self._require_token()
        try:
            profile = self.api.upload_avatar(token, filename, content, content_type)
        except ApiError as e:
            self.store.dispatch(ProfileUpdateFailed(error=e.message))
            raise
        self.check_auth(force=True, reason=REASON_UPDATE)
        return profile

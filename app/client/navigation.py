"""Route guards: where the client should go for a given session state and path."""

from __future__ import annotations

from collections.abc import Callable

from app.client.paths import HOME_PATH, LOGIN_PATH, is_admin_path, is_auth_path
from app.client.session import (
    REASON_LOGIN,
    REASON_LOGOUT,
    LoggedOut,
    ProfileLoaded,
    SessionEvent,
    SessionState,
    SessionStore,
)


def resolve_redirect(state: SessionState, path: str) -> str | None:
    """Return the path to redirect to, or None to stay."""
    if state.loading:
        return None
    if state.is_authenticated:
        if is_auth_path(path):
            return HOME_PATH
        if is_admin_path(path) and not state.is_admin:
            return HOME_PATH
        return None
    if path == HOME_PATH or is_auth_path(path):
        return None
    return LOGIN_PATH


class NavigationEffects:
    """Subscribes to a SessionStore and calls navigate(path) when the session requires a move."""

    def __init__(
        self,
        store: SessionStore,
        navigate: Callable[[str], None],
        path: str = HOME_PATH,
    ) -> None:
        self.path = path
        self._navigate = navigate
        self._unsubscribe = store.subscribe(self._on_change)

    def set_path(self, path: str) -> None:
        self.path = path

    def close(self) -> None:
        self._unsubscribe()

    def _on_change(self, previous: SessionState, current: SessionState, event: SessionEvent) -> None:
        if isinstance(event, LoggedOut) and event.reason == REASON_LOGOUT:
            target = LOGIN_PATH
        elif isinstance(event, ProfileLoaded) and event.reason == REASON_LOGIN:
            target = HOME_PATH
        else:
            target = resolve_redirect(current, self.path)
        if target is not None and target != self.path:
            self.path = target
            self._navigate(target)

"""Session client for the media catalog API."""

from app.client.api import (
    ApiClient,
    ApiError,
    ApiUnavailableError,
    AuthenticationError,
    RequestCancelledError,
    ResponseParseError,
)
from app.client.config import ClientSettings, get_client_settings
from app.client.navigation import NavigationEffects, resolve_redirect
from app.client.session import SessionController, SessionState, SessionStore, reduce
from app.client.token_store import FileTokenStore, MemoryTokenStore

__all__ = [
    "ApiClient",
    "ApiError",
    "ApiUnavailableError",
    "AuthenticationError",
    "ClientSettings",
    "FileTokenStore",
    "MemoryTokenStore",
    "NavigationEffects",
    "RequestCancelledError",
    "ResponseParseError",
    "SessionController",
    "SessionState",
    "SessionStore",
    "get_client_settings",
    "reduce",
]

"""HTTP client for the media catalog API, with server errors normalised to ApiError."""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

DEFAULT_ERROR_MESSAGE = "Request failed"


class ApiError(Exception):
    """Raised when the API answers with an error; message is safe to show to users."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class AuthenticationError(ApiError):
    """401: missing, invalid, or expired credentials."""


class RequestCancelledError(ApiError):
    """The request timed out before a response arrived."""


class ApiUnavailableError(ApiError):
    """Transport failure or 5xx response."""


class ResponseParseError(ApiError):
    """The response body was not the JSON shape expected."""


# Failures worth retrying; anything else is a definitive answer from the server.
TRANSIENT_ERRORS: tuple[type[ApiError], ...] = (
    RequestCancelledError,
    ApiUnavailableError,
    ResponseParseError,
)


def error_message(response: httpx.Response) -> str:
    """Extract a readable message from a FastAPI error body ({"detail": str | list | dict})."""
    fallback = f"{DEFAULT_ERROR_MESSAGE} ({response.status_code})"
    try:
        body = response.json()
    except ValueError:
        return response.text[:500] if response.text else fallback
    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, str) and detail.strip():
        return detail.strip()
    if isinstance(detail, list):
        messages = [item.get("msg") for item in detail if isinstance(item, dict) and item.get("msg")]
        if messages:
            return "; ".join(messages)
    if isinstance(detail, dict) and detail.get("message"):
        return str(detail["message"])
    return fallback


class ApiClient:
    """Synchronous client for the auth and profile endpoints."""

    def __init__(
        self,
        base_url: str,
        api_prefix: str = "/api",
        timeout: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=base_url.rstrip("/") + api_prefix,
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> ApiClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _request(self, method: str, path: str, token: str | None = None, **kwargs: Any) -> Any:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        try:
            response = self._client.request(method, path, headers=headers, **kwargs)
        except httpx.TimeoutException as e:
            raise RequestCancelledError("Request timed out.") from e
        except httpx.HTTPError as e:
            raise ApiUnavailableError(f"Could not reach the server: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError(error_message(response), 401)
        if response.status_code >= 500:
            logger.warning(
                "Server error",
                extra={"method": method, "path": path, "status_code": response.status_code},
            )
            raise ApiUnavailableError(error_message(response), response.status_code)
        if response.status_code >= 400:
            raise ApiError(error_message(response), response.status_code)
        try:
            return response.json()
        except ValueError as e:
            raise ResponseParseError("Invalid response from the server.", response.status_code) from e

    def _token_from(self, body: Any) -> str:
        token = body.get("token") if isinstance(body, dict) else None
        if not isinstance(token, str) or not token:
            raise ResponseParseError("Response missing token.")
        return token

    def _profile_from(self, body: Any) -> dict[str, Any]:
        if not isinstance(body, dict) or "id" not in body:
            raise ResponseParseError("Response missing profile.")
        return body

    def login(self, email: str, password: str) -> str:
        """Exchange credentials for a bearer token."""
        body = self._request("POST", "/auth/login", json={"email": email, "password": password})
        return self._token_from(body)

    def refresh(self, token: str) -> str:
        """Exchange a valid or recently expired token for a fresh one."""
        return self._token_from(self._request("POST", "/auth/refresh", token=token))

    def get_profile(self, token: str) -> dict[str, Any]:
        return self._profile_from(self._request("GET", "/profile", token=token))

    def update_profile(self, token: str, updates: dict[str, Any]) -> dict[str, Any]:
        return self._profile_from(self._request("PUT", "/profile", token=token, json=updates))

    def upload_avatar(
        self, token: str, filename: str, content: bytes, content_type: str
    ) -> dict[str, Any]:
        files = {"avatar": (filename, content, content_type)}
        return self._profile_from(self._request("POST", "/profile/avatar", token=token, files=files))

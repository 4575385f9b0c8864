"""Bearer token persistence for the session client."""

from __future__ import annotations

import json
import logging
import os
import threading
from pathlib import Path

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"


class MemoryTokenStore:
    """Token held in memory only (tests, short-lived scripts)."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token or None
        self._lock = threading.Lock()

    def get(self) -> str | None:
        return self._token

    def set(self, token: str) -> None:
        if not token:
            raise ValueError("token must be non-empty")
        with self._lock:
            self._token = token

    def remove(self) -> None:
        with self._lock:
            self._token = None

    def replace_if(self, expected: str, token: str | None) -> bool:
        """Store token (None removes it) only if expected is still stored; True when replaced."""
        with self._lock:
            if self._token != expected:
                return False
            self._token = token or None
            return True


class FileTokenStore:
    """
    Token stored under the "token" key of a JSON file.

    A missing, unreadable, or corrupt file reads as no token. Writes go through a
    temporary file and an atomic rename.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path).expanduser()
        self._lock = threading.Lock()

    def _read(self) -> dict:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable token file", extra={"path": str(self.path), "error": str(e)[:200]})
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        with tmp.open("w", encoding="utf-8") as handle:
            json.dump(data, handle)
        os.replace(tmp, self.path)

    def _store(self, data: dict, token: str | None) -> None:
        if token:
            data[TOKEN_KEY] = token
            self._write(data)
            return
        if TOKEN_KEY not in data:
            return
        del data[TOKEN_KEY]
        if data:
            self._write(data)
        else:
            self.path.unlink(missing_ok=True)

    def get(self) -> str | None:
        value = self._read().get(TOKEN_KEY)
        return value if isinstance(value, str) and value else None

    def set(self, token: str) -> None:
        if not token:
            raise ValueError("token must be non-empty")
        with self._lock:
            self._store(self._read(), token)

    def remove(self) -> None:
        with self._lock:
            self._store(self._read(), None)

    def replace_if(self, expected: str, token: str | None) -> bool:
        """Store token (None removes it) only if expected is still stored; True when replaced."""
        with self._lock:
            data = self._read()
            if data.get(TOKEN_KEY) != expected:
                return False
            self._store(data, token)
            return True

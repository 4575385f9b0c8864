"""Retryable-operation helper shared by the API (database reads) and the session client."""

import logging
import threading
import time
from collections.abc import Callable
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

BackoffFn = Callable[[int], float]


class RetryCancelledError(Exception):
    """Raised when the cancellation token fires before or between attempts."""

    def __init__(self, message: str = "Operation cancelled") -> None:
        self.message = message
        super().__init__(message)


class CancelToken:
    """Cancellation flag that can also be waited on (used for interruptible backoff sleeps)."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to timeout seconds; return True if cancelled meanwhile."""
        return self._event.wait(timeout)


def exponential_backoff(base: float, cap: float | None = None) -> BackoffFn:
    """Delay before retry N (1-based): base * 2**N, optionally capped."""

    def delay(attempt: int) -> float:
        value = base * (2 ** max(attempt, 0))
        return min(value, cap) if cap is not None else value

    return delay


def fixed_backoff(seconds: float) -> BackoffFn:
    """Same delay before every retry."""
    return lambda attempt: seconds


def retry_call(
    func: Callable[[], T],
    *,
    attempts: int,
    backoff: BackoffFn,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    cancel_token: CancelToken | None = None,
    sleep: Callable[[float], None] | None = None,
    on_retry: Callable[[int, BaseException], None] | None = None,
) -> T:
    """
    Call func up to `attempts` times, sleeping backoff(n) between failures listed in retry_on.

    Exceptions not in retry_on propagate immediately. After the last attempt the last
    exception is re-raised. A fired cancel_token raises RetryCancelledError instead of
    starting another attempt.
    """
    if attempts < 1:
        raise ValueError("attempts must be at least 1")

    for attempt in range(1, attempts + 1):
        if cancel_token is not None and cancel_token.cancelled:
            raise RetryCancelledError()
        try:
            return func()
        except retry_on as e:
            if attempt == attempts:
                raise
            delay = max(0.0, backoff(attempt))
            if on_retry is not None:
                on_retry(attempt, e)
            logger.debug(
                "Retrying after failure",
                extra={"attempt": attempt, "max_attempts": attempts, "delay_seconds": delay},
            )
            if sleep is not None:
                sleep(delay)
            elif cancel_token is not None:
                if cancel_token.wait(delay):
                    raise RetryCancelledError() from e
            elif delay > 0:
                time.sleep(delay)
    raise AssertionError("unreachable")

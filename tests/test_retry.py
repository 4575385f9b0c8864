"""Unit tests for app.core.retry: attempt counting, backoff schedule, and cancellation."""

import unittest
from unittest.mock import MagicMock

from app.core.retry import (
    CancelToken,
    RetryCancelledError,
    exponential_backoff,
    fixed_backoff,
    retry_call,
)


class TransientError(Exception):
    pass


def _flaky(failures: int, result: str = "ok"):
    """Callable that raises TransientError `failures` times, then returns result."""
    calls = {"count": 0}

    def func() -> str:
        calls["count"] += 1
        if calls["count"] <= failures:
            raise TransientError(f"failure {calls['count']}")
        return result

    return func, calls


class TestBackoff(unittest.TestCase):
    def test_exponential_doubles_from_base(self) -> None:
        backoff = exponential_backoff(1.0)
        self.assertEqual([backoff(n) for n in (1, 2, 3)], [2.0, 4.0, 8.0])

    def test_exponential_respects_cap(self) -> None:
        backoff = exponential_backoff(1.0, cap=10.0)
        self.assertEqual(backoff(3), 8.0)
        self.assertEqual(backoff(4), 10.0)
        self.assertEqual(backoff(10), 10.0)

    def test_fixed(self) -> None:
        backoff = fixed_backoff(0.5)
        self.assertEqual(backoff(1), 0.5)
        self.assertEqual(backoff(7), 0.5)


class TestRetryCall(unittest.TestCase):
    def test_returns_first_success_without_sleeping(self) -> None:
        sleep = MagicMock()
        func, calls = _flaky(0)
        self.assertEqual(retry_call(func, attempts=3, backoff=fixed_backoff(1), sleep=sleep), "ok")
        self.assertEqual(calls["count"], 1)
        sleep.assert_not_called()

    def test_retries_until_success_with_backoff_delays(self) -> None:
        sleep = MagicMock()
        func, calls = _flaky(2)
        result = retry_call(
            func,
            attempts=3,
            backoff=exponential_backoff(1.0),
            retry_on=(TransientError,),
            sleep=sleep,
        )
        self.assertEqual(result, "ok")
        self.assertEqual(calls["count"], 3)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [2.0, 4.0])

    def test_reraises_last_error_after_attempts(self) -> None:
        sleep = MagicMock()
        func, calls = _flaky(5)
        with self.assertRaises(TransientError) as ctx:
            retry_call(func, attempts=3, backoff=fixed_backoff(0), retry_on=(TransientError,), sleep=sleep)
        self.assertEqual(str(ctx.exception), "failure 3")
        self.assertEqual(calls["count"], 3)
        self.assertEqual(sleep.call_count, 2)

    def test_database_read_schedule_caps_last_wait(self) -> None:
        sleep = MagicMock()
        func, calls = _flaky(5)
        with self.assertRaises(TransientError):
            retry_call(
                func,
                attempts=5,
                backoff=exponential_backoff(1.0, cap=10.0),
                retry_on=(TransientError,),
                sleep=sleep,
            )
        self.assertEqual(calls["count"], 5)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [2.0, 4.0, 8.0, 10.0])

    def test_non_retryable_error_propagates_immediately(self) -> None:
        calls = {"count": 0}

        def func() -> None:
            calls["count"] += 1
            raise KeyError("boom")

        with self.assertRaises(KeyError):
            retry_call(func, attempts=5, backoff=fixed_backoff(0), retry_on=(TransientError,), sleep=MagicMock())
        self.assertEqual(calls["count"], 1)

    def test_on_retry_called_per_failed_attempt(self) -> None:
        on_retry = MagicMock()
        func, _ = _flaky(2)
        retry_call(func, attempts=3, backoff=fixed_backoff(0), sleep=MagicMock(), on_retry=on_retry)
        self.assertEqual([c.args[0] for c in on_retry.call_args_list], [1, 2])
        self.assertIsInstance(on_retry.call_args_list[0].args[1], TransientError)

    def test_rejects_zero_attempts(self) -> None:
        with self.assertRaises(ValueError):
            retry_call(lambda: None, attempts=0, backoff=fixed_backoff(0))


class TestCancellation(unittest.TestCase):
    def test_cancelled_before_start_never_calls(self) -> None:
        token = CancelToken()
        token.cancel()
        func = MagicMock()
        with self.assertRaises(RetryCancelledError):
            retry_call(func, attempts=3, backoff=fixed_backoff(0), cancel_token=token)
        func.assert_not_called()

    def test_cancel_during_backoff_stops_retrying(self) -> None:
        token = CancelToken()
        func, calls = _flaky(5)

        def on_retry(attempt: int, error: BaseException) -> None:
            token.cancel()

        with self.assertRaises(RetryCancelledError):
            retry_call(
                func,
                attempts=5,
                backoff=fixed_backoff(30),
                retry_on=(TransientError,),
                cancel_token=token,
                on_retry=on_retry,
            )
        self.assertEqual(calls["count"], 1)

    def test_wait_returns_immediately_when_cancelled(self) -> None:
        token = CancelToken()
        self.assertFalse(token.cancelled)
        token.cancel()
        self.assertTrue(token.cancelled)
        self.assertTrue(token.wait(30))


if __name__ == "__main__":
    unittest.main()

"""Tests for parser start/stop transitions and the background run, against in-memory SQLite."""

import asyncio
import unittest
from datetime import UTC, datetime, timedelta
from unittest.mock import patch

from pydantic import SecretStr

from app.core.cache import TTLCache
from app.core.config import get_settings
from app.models import Media, ParserHistory, ParserLog, ParserStatus
from app.models.media import MEDIA_STATUS_READY, MEDIA_TYPE_SERIES
from app.models.parser import (
    HISTORY_COMPLETED,
    HISTORY_ERROR,
    HISTORY_RUNNING,
    HISTORY_STOPPED,
    PARSER_STATUS_ACTIVE,
    PARSER_STATUS_ERROR,
    PARSER_STATUS_INACTIVE,
)
from app.services.parser_orchestrator import (
    START_LOG_MESSAGE,
    ParserAlreadyRunningError,
    ParserApiKeys,
    ParserConfigurationError,
    ParserNotRunningError,
    ParserOrchestrator,
    run_parser_job,
)
from app.services.parser_store import (
    get_or_create_settings,
    get_or_create_status,
    parser_cache_key,
)
from app.services.video_processor import MediaNotFoundError
from tests.helpers import add_media, make_session_factory

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=UTC)


def _settings(**overrides):
    values = {"KINOPOISK_API_KEY": None, "OMDB_API_KEY": None, "PARSER_STALE_AFTER_MINUTES": 30}
    values.update(overrides)
    return get_settings().model_copy(update=values)


def _configure_keys(session, kinopoisk: str = "stored-kp", omdb: str = "") -> None:
    stored = get_or_create_settings(session)
    stored.kinopoisk_api_key = kinopoisk
    stored.omdb_api_key = omdb
    session.commit()


def _set_status(session, status: str, last_run: datetime | None) -> None:
    row = get_or_create_status(session)
    row.status = status
    row.last_run = last_run
    session.commit()


def _log_messages(session) -> list[str]:
    return [entry.message for entry in session.query(ParserLog).order_by(ParserLog.id).all()]


class OrchestratorTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.factory = make_session_factory()
        self.session = self.factory()
        self.cache = TTLCache(60)
        self.orchestrator = ParserOrchestrator(
            self.session, _settings(), cache=self.cache, now=lambda: NOW
        )

    def tearDown(self) -> None:
        self.session.close()


class TestResolveApiKeys(OrchestratorTestCase):
    def test_request_keys_win(self) -> None:
        _configure_keys(self.session, "stored-kp", "stored-omdb")
        keys = self.orchestrator.resolve_api_keys(ParserApiKeys("request-kp", "request-omdb"))
        self.assertEqual(keys, ParserApiKeys("request-kp", "request-omdb"))

    def test_stored_keys_used_when_request_blank(self) -> None:
        _configure_keys(self.session, "stored-kp", "stored-omdb")
        keys = self.orchestrator.resolve_api_keys(ParserApiKeys("  ", ""))
        self.assertEqual(keys, ParserApiKeys("stored-kp", "stored-omdb"))

    def test_environment_is_last_resort(self) -> None:
        orchestrator = ParserOrchestrator(
            self.session, _settings(KINOPOISK_API_KEY=SecretStr("env-kp")), now=lambda: NOW
        )
        self.assertEqual(orchestrator.resolve_api_keys().kinopoisk_api_key, "env-kp")

    def test_missing_kinopoisk_key_raises(self) -> None:
        with self.assertRaises(ParserConfigurationError):
            self.orchestrator.resolve_api_keys()


class TestStart(OrchestratorTestCase):
    def test_start_from_inactive(self) -> None:
        _configure_keys(self.session)
        run = self.orchestrator.start()

        status = self.session.get(ParserStatus, 1)
        self.assertEqual(status.status, PARSER_STATUS_ACTIVE)
        self.assertEqual(status.processed_items, 0)
        self.assertEqual(status.errors, [])
        history = self.session.get(ParserHistory, run.history_id)
        self.assertEqual(history.status, HISTORY_RUNNING)
        self.assertEqual(_log_messages(self.session), [START_LOG_MESSAGE])
        self.assertEqual(run.api_keys.kinopoisk_api_key, "stored-kp")

    def test_start_while_active_and_fresh_raises_without_log(self) -> None:
        _configure_keys(self.session)
        _set_status(self.session, PARSER_STATUS_ACTIVE, NOW - timedelta(minutes=5))

        with self.assertRaises(ParserAlreadyRunningError):
            self.orchestrator.start()

        self.session.expire_all()
        self.assertEqual(self.session.get(ParserStatus, 1).status, PARSER_STATUS_ACTIVE)
        self.assertEqual(self.session.query(ParserLog).count(), 0)
        self.assertEqual(self.session.query(ParserHistory).count(), 0)

    def test_start_while_active_and_stale_recovers_with_one_start_log(self) -> None:
        _configure_keys(self.session)
        _set_status(self.session, PARSER_STATUS_ACTIVE, NOW - timedelta(minutes=31))
        abandoned = ParserHistory(status=HISTORY_RUNNING, start_time=NOW - timedelta(minutes=31))
        self.session.add(abandoned)
        self.session.commit()
        abandoned_id = abandoned.id

        run = self.orchestrator.start()

        self.session.expire_all()
        status = self.session.get(ParserStatus, 1)
        self.assertEqual(status.status, PARSER_STATUS_ACTIVE)
        self.assertEqual(
            status.last_run.replace(tzinfo=UTC) if status.last_run.tzinfo is None else status.last_run,
            NOW,
        )
        self.assertEqual(_log_messages(self.session), [START_LOG_MESSAGE])
        self.assertEqual(self.session.get(ParserHistory, abandoned_id).status, HISTORY_STOPPED)
        self.assertEqual(self.session.get(ParserHistory, run.history_id).status, HISTORY_RUNNING)

    def test_missing_key_leaves_status_untouched(self) -> None:
        get_or_create_status(self.session)
        with self.assertRaises(ParserConfigurationError):
            self.orchestrator.start()
        self.session.expire_all()
        self.assertEqual(self.session.get(ParserStatus, 1).status, PARSER_STATUS_INACTIVE)
        self.assertEqual(self.session.query(ParserLog).count(), 0)

    def test_second_start_loses(self) -> None:
        _configure_keys(self.session)
        self.orchestrator.start()
        other = ParserOrchestrator(self.factory(), _settings(), now=lambda: NOW)
        with self.assertRaises(ParserAlreadyRunningError):
            other.start()
        self.assertEqual(_log_messages(self.session), [START_LOG_MESSAGE])

    def test_start_invalidates_cached_payloads(self) -> None:
        _configure_keys(self.session)
        self.cache.set(parser_cache_key(1), "cached")
        self.orchestrator.start()
        self.assertIsNone(self.cache.get(parser_cache_key(1)))


class TestStop(OrchestratorTestCase):
    def test_stop_when_inactive_raises(self) -> None:
        with self.assertRaises(ParserNotRunningError):
            self.orchestrator.stop()

    def test_stop_active_run(self) -> None:
        _configure_keys(self.session)
        run = self.orchestrator.start()
        self.orchestrator.stop()

        self.session.expire_all()
        self.assertEqual(self.session.get(ParserStatus, 1).status, PARSER_STATUS_INACTIVE)
        history = self.session.get(ParserHistory, run.history_id)
        self.assertEqual(history.status, HISTORY_STOPPED)
        self.assertIsNotNone(history.end_time)
        self.assertEqual(_log_messages(self.session), [START_LOG_MESSAGE, "Parser stopped"])


class FakeProcessor:
    """Stands in for VideoProcessor; marks media READY or raises per media id."""

    def __init__(self, session, failures: dict[int, Exception] | None = None) -> None:
        self.session = session
        self.failures = failures or {}
        self.calls: list[tuple[int, str]] = []

    async def process_media_video(self, media_id: int, source_id: str) -> int:
        self.calls.append((media_id, source_id))
        if media_id in self.failures:
            raise self.failures[media_id]
        self.session.get(Media, media_id).status = MEDIA_STATUS_READY
        self.session.commit()
        return 1


class TestRunParserJob(OrchestratorTestCase):
    def _run(self, failures: dict[int, Exception] | None = None) -> tuple:
        _configure_keys(self.session)
        run = self.orchestrator.start()
        processors: list[FakeProcessor] = []

        def factory(session, keys, client, settings):
            processor = FakeProcessor(session, failures)
            processors.append(processor)
            return processor

        asyncio.run(run_parser_job(self.factory, run, _settings(), cache=self.cache, processor_factory=factory))
        self.session.expire_all()
        return run, processors[0]

    def test_processes_pending_media_and_completes(self) -> None:
        first = add_media(self.session, title="One", source_id="1")
        second = add_media(self.session, title="Two", source_id="2")
        add_media(self.session, title="No source", source_id=None)

        run, processor = self._run()

        self.assertEqual(processor.calls, [(first.id, "1"), (second.id, "2")])
        status = self.session.get(ParserStatus, 1)
        self.assertEqual(status.status, PARSER_STATUS_INACTIVE)
        self.assertEqual(status.processed_items, 2)
        history = self.session.get(ParserHistory, run.history_id)
        self.assertEqual(history.status, HISTORY_COMPLETED)
        self.assertEqual(history.items_processed, 2)
        self.assertEqual(_log_messages(self.session)[-1], "Parser finished: 2 items processed")

    def test_status_writes_are_offloaded_to_threadpool(self) -> None:
        add_media(self.session, title="One", source_id="1")
        offloaded: list[str] = []

        async def inline(func, *args):
            offloaded.append(func.__name__)
            return func(*args)

        with patch("app.services.parser_orchestrator.run_in_threadpool", inline):
            run, _ = self._run()

        self.assertEqual(offloaded[1:], ["owns_lock", "record_progress", "finish"])
        self.assertEqual(self.session.get(ParserHistory, run.history_id).status, HISTORY_COMPLETED)

    def test_skips_content_types_not_enabled(self) -> None:
        stored = get_or_create_settings(self.session)
        stored.content_types = ["movies"]
        self.session.commit()
        add_media(self.session, title="Show", media_type=MEDIA_TYPE_SERIES)

        _, processor = self._run()

        self.assertEqual(processor.calls, [])

    def test_missing_media_is_logged_and_skipped(self) -> None:
        gone = add_media(self.session, title="Gone", source_id="9")
        kept = add_media(self.session, title="Kept", source_id="10")

        run, _ = self._run({gone.id: MediaNotFoundError(gone.id)})

        status = self.session.get(ParserStatus, 1)
        self.assertEqual(status.processed_items, 1)
        self.assertEqual(self.session.get(ParserHistory, run.history_id).status, HISTORY_COMPLETED)
        errors = [entry.error for entry in self.session.query(ParserLog).all() if entry.error]
        self.assertEqual(errors, [f"Media {gone.id} not found."])
        self.assertEqual(self.session.get(Media, kept.id).status, MEDIA_STATUS_READY)

    def test_unexpected_error_marks_run_failed(self) -> None:
        media = add_media(self.session, title="Broken", source_id="5")

        run, _ = self._run({media.id: RuntimeError("provider exploded")})

        status = self.session.get(ParserStatus, 1)
        self.assertEqual(status.status, PARSER_STATUS_ERROR)
        self.assertEqual(status.errors, ["provider exploded"])
        history = self.session.get(ParserHistory, run.history_id)
        self.assertEqual(history.status, HISTORY_ERROR)
        self.assertEqual(history.errors, ["provider exploded"])
        failure = self.session.query(ParserLog).order_by(ParserLog.id.desc()).first()
        self.assertEqual(failure.message, "Parser failed")
        self.assertEqual(failure.error, "provider exploded")

    def test_stop_before_next_item_ends_run_as_stopped(self) -> None:
        add_media(self.session, title="One", source_id="1")
        add_media(self.session, title="Two", source_id="2")
        _configure_keys(self.session)
        run = self.orchestrator.start()
        stopper = ParserOrchestrator(self.factory(), _settings(), now=lambda: NOW)

        class StoppingProcessor(FakeProcessor):
            async def process_media_video(self, media_id: int, source_id: str) -> int:
                result = await super().process_media_video(media_id, source_id)
                stopper.stop()
                return result

        processors: list[FakeProcessor] = []

        def factory(session, keys, client, settings):
            processors.append(StoppingProcessor(session))
            return processors[-1]

        asyncio.run(run_parser_job(self.factory, run, _settings(), processor_factory=factory))

        self.session.expire_all()
        self.assertEqual(len(processors[0].calls), 1)
        self.assertEqual(self.session.get(ParserStatus, 1).status, PARSER_STATUS_INACTIVE)
        self.assertEqual(self.session.get(ParserHistory, run.history_id).status, HISTORY_STOPPED)


    def test_taken_over_run_leaves_new_run_alone(self) -> None:
        add_media(self.session, title="One", source_id="1")
        _configure_keys(self.session)
        old_run = self.orchestrator.start()
        _set_status(self.session, PARSER_STATUS_ACTIVE, NOW - timedelta(minutes=31))
        new_run = self.orchestrator.start()

        self.orchestrator.record_progress(old_run)
        self.assertFalse(self.orchestrator.owns_lock(old_run))
        self.assertTrue(self.orchestrator.owns_lock(new_run))

        processors: list[FakeProcessor] = []

        def factory(session, keys, client, settings):
            processors.append(FakeProcessor(session))
            return processors[-1]

        asyncio.run(run_parser_job(self.factory, old_run, _settings(), processor_factory=factory))

        self.session.expire_all()
        self.assertEqual(processors[0].calls, [])
        status = self.session.get(ParserStatus, 1)
        self.assertEqual(status.status, PARSER_STATUS_ACTIVE)
        self.assertEqual(status.run_id, new_run.history_id)
        self.assertEqual(status.processed_items, 0)
        self.assertEqual(self.session.get(ParserHistory, old_run.history_id).status, HISTORY_STOPPED)
        self.assertEqual(self.session.get(ParserHistory, new_run.history_id).status, HISTORY_RUNNING)

    def test_failure_after_takeover_keeps_new_run_active(self) -> None:
        _configure_keys(self.session)
        old_run = self.orchestrator.start()
        _set_status(self.session, PARSER_STATUS_ACTIVE, NOW - timedelta(minutes=31))
        new_run = self.orchestrator.start()

        self.orchestrator.fail(old_run, "provider exploded")

        self.session.expire_all()
        status = self.session.get(ParserStatus, 1)
        self.assertEqual(status.status, PARSER_STATUS_ACTIVE)
        self.assertEqual(status.errors, [])
        self.assertEqual(status.run_id, new_run.history_id)
        self.assertEqual(self.session.get(ParserHistory, old_run.history_id).status, HISTORY_ERROR)


if __name__ == "__main__":
    unittest.main()

"""
CLI entrypoint for scheduled parser runs. Run from cron, e.g.:

  python -m app.parser_job

Or hourly: 0 * * * * cd /path/to/media-catalog && .venv/bin/python -m app.parser_job

Starts a run only when auto_update is enabled and update_interval hours have passed
since the last run. Use --force to ignore the schedule.
"""

import argparse
import asyncio
import logging
import sys
from datetime import UTC, datetime, timedelta

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.services.parser_orchestrator import ParserError, ParserOrchestrator, run_parser_job
from app.services.parser_store import get_or_create_settings, get_or_create_status

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def is_due(last_run: datetime | None, interval_hours: int, now: datetime) -> bool:
    """True when no run happened yet or the last one started interval_hours ago or more."""
    if last_run is None:
        return True
    if last_run.tzinfo is None:
        last_run = last_run.replace(tzinfo=UTC)
    return now - last_run >= timedelta(hours=interval_hours)


def main(argv: list[str] | None = None) -> int:
    """Start a parser run if one is due and run it to completion in this process."""
    parser = argparse.ArgumentParser(description="Run the media parser once if it is due.")
    parser.add_argument("--force", action="store_true", help="Run regardless of auto_update and interval")
    args = parser.parse_args(argv)

    settings = get_settings()
    db = SessionLocal()
    try:
        stored = get_or_create_settings(db)
        current = get_or_create_status(db)
        if not args.force:
            if not stored.auto_update:
                logger.info("Auto update disabled; nothing to do")
                return 0
            if not is_due(current.last_run, stored.update_interval, datetime.now(UTC)):
                logger.info(
                    "Parser run not due yet",
                    extra={"update_interval": stored.update_interval},
                )
                return 0
        try:
            run = ParserOrchestrator(db, settings).start()
        except ParserError as e:
            logger.warning("Parser run not started: %s", e.message)
            return 1
    except Exception as e:
        logger.exception("Parser job failed to start: %s", e)
        return 1
    finally:
        db.close()

    asyncio.run(run_parser_job(SessionLocal, run, settings))
    logger.info("Parser job completed: history_id=%s", run.history_id)
    return 0


if __name__ == "__main__":
    sys.exit(main())

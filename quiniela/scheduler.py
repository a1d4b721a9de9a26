"""
Background jobs (APScheduler).

- auto_sync_results: every AUTO_SYNC_INTERVAL_SECONDS, syncs results of
  matches whose kickoff has passed and recalculates affected matchdays.
- auto_close_matchdays: every AUTO_CLOSE_INTERVAL_MINUTES, closes open
  matchdays whose deadline has passed.

Jobs never raise into the scheduler: failures are logged and recorded as
job metrics, and the next tick is the retry.
"""

import logging
import os
import time
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from quiniela.config import get_settings
from quiniela.database import get_session_with_retry
from quiniela.etl.pipeline import SyncPipeline, SyncSummary
from quiniela.etl.thesportsdb import TheSportsDBProvider
from quiniela.matchdays.service import auto_close_matchdays as close_past_deadline
from quiniela.telemetry import job_status_for_error, record_job_run

logger = logging.getLogger(__name__)

_scheduler_started = False
scheduler = AsyncIOScheduler()


async def auto_sync_results() -> Optional[SyncSummary]:
    """Scheduled results sync for every active match."""
    job_name = "auto_sync_results"
    start_time = time.time()

    try:
        provider = TheSportsDBProvider()
    except Exception as e:
        logger.error(f"[AUTO_SYNC] Feed not configured: {e}")
        record_job_run(job=job_name, status="error", duration_ms=(time.time() - start_time) * 1000)
        return None

    try:
        async with get_session_with_retry(max_retries=3, retry_delay=1.0) as session:
            pipeline = SyncPipeline(provider=provider, session=session)
            summary = await pipeline.run_auto_sync()

        duration_ms = (time.time() - start_time) * 1000
        status = "partial" if summary.failed else "ok"
        record_job_run(job=job_name, status=status, duration_ms=duration_ms)
        return summary

    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(f"[AUTO_SYNC] Failed: {e}")
        record_job_run(job=job_name, status=job_status_for_error(e), duration_ms=duration_ms)
        return None

    finally:
        await provider.close()


async def auto_close_matchdays() -> list[str]:
    """Scheduled close of matchdays past their deadline."""
    job_name = "auto_close_matchdays"
    start_time = time.time()

    try:
        async with get_session_with_retry(max_retries=3, retry_delay=1.0) as session:
            closed = await close_past_deadline(session)

        record_job_run(job=job_name, status="ok", duration_ms=(time.time() - start_time) * 1000)
        return closed

    except Exception as e:
        duration_ms = (time.time() - start_time) * 1000
        logger.error(f"[AUTO_CLOSE] Failed: {e}")
        record_job_run(job=job_name, status="error", duration_ms=duration_ms)
        return []


def start_scheduler():
    """
    Start the background scheduler.

    Uses a module-level flag to prevent duplicate scheduler instances
    when running with --reload or multiple workers.
    """
    global _scheduler_started

    if _scheduler_started:
        logger.warning("Scheduler already started, skipping duplicate initialization")
        return

    # Uvicorn sets this env var in the reloader subprocess
    if os.environ.get("UVICORN_RELOADED"):
        logger.info("Skipping scheduler in reload subprocess")
        return

    settings = get_settings()

    scheduler.add_job(
        auto_sync_results,
        trigger=IntervalTrigger(seconds=settings.AUTO_SYNC_INTERVAL_SECONDS),
        id="auto_sync_results",
        name="Results Auto Sync",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.add_job(
        auto_close_matchdays,
        trigger=CronTrigger(minute=f"*/{settings.AUTO_CLOSE_INTERVAL_MINUTES}"),
        id="auto_close_matchdays",
        name="Matchday Auto Close",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
    )

    scheduler.start()
    _scheduler_started = True

    logger.info(
        f"Scheduler started:\n"
        f"  - Results auto sync: Every {settings.AUTO_SYNC_INTERVAL_SECONDS}s\n"
        f"  - Matchday auto close: Every {settings.AUTO_CLOSE_INTERVAL_MINUTES} min"
    )


def stop_scheduler():
    """Stop the background scheduler."""
    global _scheduler_started
    if scheduler.running:
        scheduler.shutdown()
        _scheduler_started = False
        logger.info("Scheduler stopped")

"""
Scheduled collection runs.

Jobs:
- collection_cycle: full odds collection + featured picks, at
  SCHEDULER_RUN_HOURS (default 9AM and 3PM CT). The run ledger caps
  completed runs per day, so extra firings are recorded as skipped.

Scheduler: APScheduler AsyncIOScheduler
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from oddsedge.core.config import settings
from oddsedge.core.database import SessionLocal
from oddsedge.services.core.odds_api_service import OddsApiService
from oddsedge.services.pipeline.runner import run_collection_cycle

logger = logging.getLogger(__name__)

COLLECTION_JOB_ID = "collection_cycle"


async def collection_cycle_job():
    """Run one gated collection cycle with its own session and feed client."""
    db = SessionLocal()
    try:
        async with OddsApiService.from_settings(settings) as odds_service:
            outcome = await run_collection_cycle(db, odds_service, settings)
        if outcome.skipped:
            logger.info(f"Collection cycle skipped: {outcome.completed_runs_today} runs already completed today")
        elif outcome.failed:
            logger.error(f"Collection cycle {outcome.run_id} failed: {outcome.error}")
        else:
            logger.info(
                f"Collection cycle {outcome.run_id} completed "
                f"({len(outcome.results.get('errors', []))} errors)"
            )
        return outcome
    finally:
        db.close()


class CollectionScheduler:
    """Owns the AsyncIOScheduler and its collection job."""

    def __init__(self, timezone: str = "America/Chicago", run_hours: str = "9,15"):
        self.timezone = timezone
        self.run_hours = run_hours
        self.scheduler: Optional[AsyncIOScheduler] = None
        self.running = False

    async def start(self):
        if self.running:
            logger.warning("Scheduler already running")
            return

        self.scheduler = AsyncIOScheduler(
            timezone=self.timezone,
            job_defaults={
                "coalesce": True,
                "max_instances": 1,
                "misfire_grace_time": 300,
            },
        )
        self.scheduler.add_job(
            collection_cycle_job,
            trigger=CronTrigger(hour=self.run_hours, minute=0, timezone=self.timezone),
            id=COLLECTION_JOB_ID,
            name="Collect odds and regenerate featured picks",
            replace_existing=True,
        )
        self.scheduler.start()
        self.running = True

        for job in self.scheduler.get_jobs():
            logger.info(f"Scheduled job '{job.id}' next run: {job.next_run_time}")

    async def stop(self):
        if not self.running:
            return
        self.scheduler.shutdown(wait=False)
        self.running = False
        logger.info("Scheduler stopped")


_scheduler: Optional[CollectionScheduler] = None


async def start_scheduler() -> CollectionScheduler:
    """Start the global scheduler."""
    global _scheduler
    if _scheduler is None:
        _scheduler = CollectionScheduler(
            timezone=settings.SCHEDULER_TIMEZONE,
            run_hours=settings.SCHEDULER_RUN_HOURS,
        )
        await _scheduler.start()
    return _scheduler


async def stop_scheduler():
    """Stop the global scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None


def get_scheduler() -> Optional[CollectionScheduler]:
    return _scheduler

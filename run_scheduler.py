#!/usr/bin/env python3
"""
Standalone runner for the odds collection scheduler.

Runs the collection scheduler without the HTTP API. It can be run via
systemd, supervisor, or directly.

Usage:
    python run_scheduler.py              # Run in foreground
    python run_scheduler.py --once       # Run one gated collection cycle and exit
    python run_scheduler.py --list-jobs  # Show the schedule and exit
"""
import argparse
import asyncio
import signal
import sys

from oddsedge.core.config import settings
from oddsedge.core.database import init_db
from oddsedge.core.logging import configure_logging, get_logger
from oddsedge.core.scheduler import CollectionScheduler, collection_cycle_job

configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)
logger = get_logger(__name__)


class SchedulerRunner:
    """Runner for the collection scheduler."""

    def __init__(self):
        self.scheduler = CollectionScheduler(
            timezone=settings.SCHEDULER_TIMEZONE,
            run_hours=settings.SCHEDULER_RUN_HOURS,
        )
        self.shutdown = asyncio.Event()

    async def start(self):
        """Start the scheduler and run until a shutdown signal arrives."""
        logger.info("Starting scheduler runner...")
        await self.scheduler.start()
        logger.info("Scheduler is now running. Press Ctrl+C to stop")

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        await self.shutdown.wait()
        await self.scheduler.stop()
        logger.info("Scheduler runner stopped")

    def _set_shutdown(self):
        logger.info("Shutdown signal received")
        self.shutdown.set()


async def list_jobs():
    scheduler = CollectionScheduler(
        timezone=settings.SCHEDULER_TIMEZONE,
        run_hours=settings.SCHEDULER_RUN_HOURS,
    )
    await scheduler.start()
    for job in scheduler.scheduler.get_jobs():
        print(f"{job.id}: {job.name}")
        print(f"  trigger:  {job.trigger}")
        print(f"  next run: {job.next_run_time}")
    await scheduler.stop()


async def run_once() -> bool:
    outcome = await collection_cycle_job()
    print(outcome.to_response())
    return not outcome.failed


def main():
    parser = argparse.ArgumentParser(description="Run the odds collection scheduler")
    parser.add_argument("--once", action="store_true", help="Run one gated collection cycle and exit")
    parser.add_argument("--list-jobs", action="store_true", help="List scheduled jobs and exit")
    args = parser.parse_args()

    if args.list_jobs:
        asyncio.run(list_jobs())
        return 0

    init_db()

    if args.once:
        return 0 if asyncio.run(run_once()) else 1

    try:
        asyncio.run(SchedulerRunner().start())
    except KeyboardInterrupt:
        logger.info("Received interrupt, shutting down...")
    return 0


if __name__ == "__main__":
    sys.exit(main())

"""Scheduler manager for background jobs."""

import logging
from typing import Callable, Optional, Any

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from oneanddone.config import POOL_TZ, Settings
from oneanddone.models.database import Database
from oneanddone.services.events import EventService

logger = logging.getLogger(__name__)

COMPLETION_SWEEP_JOB_ID = "daily-event-completion"


async def complete_past_events_job(database: Database) -> int:
    """Flag every event that finished before today as completed."""
    async with database.session() as db:
        count = await EventService(db).complete_past_events()
    logger.info(f"Completion sweep finished: {count} event(s) completed")
    return count


class SchedulerManager:
    """Manages background job scheduling."""

    def __init__(self, database: Database, settings: Settings):
        self.database = database
        self.settings = settings
        self.scheduler = AsyncIOScheduler(timezone=POOL_TZ)
        self._started = False

    async def start(self) -> None:
        """Start the scheduler."""
        if not self._started:
            self.scheduler.start()
            self._started = True
            logger.info("Scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler."""
        if self._started:
            self.scheduler.shutdown(wait=True)
            self._started = False
            logger.info("Scheduler stopped")

    def add_cron_job(self, job_id: str, func: Callable, **trigger_kwargs) -> None:
        """Add a cron job, in pool time unless a timezone is given."""
        trigger_kwargs.setdefault("timezone", POOL_TZ)
        self.scheduler.add_job(
            func,
            CronTrigger(**trigger_kwargs),
            id=job_id,
            replace_existing=True,
            misfire_grace_time=60,
        )
        logger.info(f"Added job: {job_id} with cron trigger")

    def get_job(self, job_id: str) -> Optional[Any]:
        """Get a job by ID."""
        return self.scheduler.get_job(job_id)

    def setup_daily_jobs(self) -> None:
        """Schedule the daily completion sweep."""
        hour = self.settings.completion_sweep_hour
        minute = self.settings.completion_sweep_minute

        async def sweep():
            await complete_past_events_job(self.database)

        self.add_cron_job(COMPLETION_SWEEP_JOB_ID, sweep, hour=hour, minute=minute)
        logger.info(f"Daily completion sweep configured ({hour:02d}:{minute:02d})")

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduler for periodic jobs.

Uses APScheduler's AsyncIOScheduler inside the API process. The only
default job is the daily automatic payment reminder run.

Example:
    from src.infrastructure.background.scheduler import get_scheduler

    scheduler = get_scheduler()
    await scheduler.start()

    # Runs daily at 09:00 UTC
    scheduler.add_cron_job(
        name="Daily Payment Reminders",
        func=run_daily_reminders,
        hour=9,
        minute=0,
    )
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable
from uuid import uuid4

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from src.core.config import get_settings
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)

DAILY_REMINDER_JOB = "Daily Payment Reminders"


# =============================================================================
# JOB EXECUTORS
# =============================================================================


async def run_daily_reminders() -> dict[str, Any]:
    """Run the automatic payment reminders in a fresh session.

    Returns:
        Counters of the run.
    """
    from src.domains.reminder.service import ReminderService
    from src.infrastructure.database.connection import get_session

    async with get_session() as session:
        result = await ReminderService(session).run_scheduled_reminders()

    return result.model_dump(mode="json")


@dataclass
class ScheduledJob:
    """Configuration and statistics of a scheduled job.

    Attributes:
        id: Unique job identifier.
        name: Human-readable job name.
        func: Coroutine function to run.
        last_run: Last run timestamp.
        last_result: Value returned by the last successful run.
        run_count: Total number of runs.
        error_count: Number of failed runs.
    """

    name: str
    func: Callable[[], Awaitable[Any]]
    id: str = field(default_factory=lambda: str(uuid4()))
    last_run: datetime | None = None
    last_result: Any = None
    run_count: int = 0
    error_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "name": self.name,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_result": self.last_result,
            "run_count": self.run_count,
            "error_count": self.error_count,
        }


class JobScheduler:
    """Cron scheduler for in-process async jobs.

    Attributes:
        _scheduler: APScheduler instance.
        _jobs: Dictionary of scheduled jobs.
        _running: Whether scheduler is running.
    """

    def __init__(self) -> None:
        self._scheduler: AsyncIOScheduler | None = None
        self._jobs: dict[str, ScheduledJob] = {}
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    def add_cron_job(
        self,
        name: str,
        func: Callable[[], Awaitable[Any]],
        hour: int,
        minute: int = 0,
    ) -> ScheduledJob:
        """Add a job that runs every day at hour:minute UTC.

        Args:
            name: Job name.
            func: Coroutine function to run.
            hour: Hour of day (0-23).
            minute: Minute of hour (0-59).

        Returns:
            Created ScheduledJob.
        """
        job = ScheduledJob(name=name, func=func)
        self._jobs[job.id] = job

        if self._scheduler is not None:
            self._scheduler.add_job(
                self._execute_job,
                trigger=CronTrigger(hour=hour, minute=minute, timezone="UTC"),
                args=[job.id],
                id=job.id,
                name=name,
                coalesce=True,
                max_instances=1,
            )

        logger.info("Added cron job: %s (%02d:%02d UTC)", name, hour, minute)
        return job

    async def _execute_job(self, job_id: str) -> None:
        """Run a job, recording the outcome.

        Failures are counted and logged so that the next run still
        happens.
        """
        job = self._jobs.get(job_id)
        if job is None:
            return

        logger.debug("Executing scheduled job: %s", job.name)
        job.last_run = utc_now()
        job.run_count += 1

        try:
            job.last_result = await job.func()
        except Exception:
            job.error_count += 1
            logger.exception("Scheduled job %s failed", job.name)

    async def run_now(self, job_id: str) -> None:
        """Run a registered job immediately."""
        await self._execute_job(job_id)

    def list_jobs(self) -> list[ScheduledJob]:
        return list(self._jobs.values())

    async def start(self) -> None:
        """Start the scheduler."""
        if self._running:
            return

        self._scheduler = AsyncIOScheduler(timezone="UTC")
        self._scheduler.start()
        self._running = True

        logger.info("Job scheduler started")

    async def stop(self) -> None:
        """Stop the scheduler."""
        if not self._running:
            return

        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None

        self._running = False
        logger.info("Job scheduler stopped")

    def get_stats(self) -> dict[str, Any]:
        return {
            "is_running": self._running,
            "job_count": len(self._jobs),
            "total_runs": sum(j.run_count for j in self._jobs.values()),
            "total_errors": sum(j.error_count for j in self._jobs.values()),
            "jobs": [j.to_dict() for j in self._jobs.values()],
        }


# Singleton instance
_scheduler: JobScheduler | None = None


def get_scheduler() -> JobScheduler:
    """Get the singleton scheduler instance."""
    global _scheduler
    if _scheduler is None:
        _scheduler = JobScheduler()
    return _scheduler


async def start_scheduler() -> JobScheduler:
    """Start the scheduler and register the reminder job.

    Returns:
        Started scheduler instance.
    """
    settings = get_settings().reminders
    scheduler = get_scheduler()
    await scheduler.start()

    scheduler.add_cron_job(
        name=DAILY_REMINDER_JOB,
        func=run_daily_reminders,
        hour=settings.cron_hour,
        minute=settings.cron_minute,
    )

    logger.info("Registered %d scheduled jobs", len(scheduler.list_jobs()))
    return scheduler


async def stop_scheduler() -> None:
    """Stop the scheduler."""
    global _scheduler
    if _scheduler is not None:
        await _scheduler.stop()
        _scheduler = None

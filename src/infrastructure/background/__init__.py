# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background job infrastructure.

Periodic jobs run in the API process on APScheduler. The daily automatic
payment reminder run is registered when REMINDER_SCHEDULER_ENABLED is set.

Scheduler:
    from src.infrastructure.background import start_scheduler, stop_scheduler

    # Start scheduler with default jobs
    await start_scheduler()

    # Stop at shutdown
    await stop_scheduler()
"""

from src.infrastructure.background.scheduler import (
    DAILY_REMINDER_JOB,
    JobScheduler,
    ScheduledJob,
    get_scheduler,
    run_daily_reminders,
    start_scheduler,
    stop_scheduler,
)

__all__ = [
    "DAILY_REMINDER_JOB",
    "JobScheduler",
    "ScheduledJob",
    "get_scheduler",
    "run_daily_reminders",
    "start_scheduler",
    "stop_scheduler",
]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request/response models for payment reminders."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

ReminderType = Literal[
    "friendly",
    "due_date",
    "past_due_3",
    "past_due_7",
    "past_due_14",
    "manual",
]


class ReminderSendRequest(BaseModel):
    """Send a reminder email for a payment."""

    payment_id: str
    reminder_type: ReminderType = "manual"
    custom_message: str | None = Field(None, max_length=2000)
    lesson_ids: list[str] | None = Field(
        None, description="Only list these unpaid lessons in the email"
    )


class ReminderSendResponse(BaseModel):
    success: bool
    message: str
    email_id: str | None = None
    email_sent: bool = False
    notification_id: str | None = None
    reminder_id: str | None = None
    skipped: bool = False
    duplicate: bool = False


class CanSendResponse(BaseModel):
    can_send: bool
    reason: str | None = None


class ReminderResponse(BaseModel):
    id: str
    payment_id: str
    parent_id: str
    reminder_type: ReminderType
    email_sent: bool
    email_id: str | None = None
    notification_id: str | None = None
    message: str | None = None
    sent_at: datetime


class ReminderSummaryResponse(BaseModel):
    """Reminder history of one payment."""

    payment_id: str
    total_reminders: int = 0
    last_sent_at: datetime | None = None
    last_reminder_type: ReminderType | None = None
    counts_by_type: dict[str, int] = Field(default_factory=dict)


class ReminderBatchResponse(BaseModel):
    reminders: dict[str, list[ReminderResponse]] = Field(default_factory=dict)


class ScheduledReminderRunResponse(BaseModel):
    """Outcome of one automatic reminder run."""

    run_date: date
    reminder_type: ReminderType | None = None
    reminders_created: int = 0
    notifications_created: int = 0
    errors_count: int = 0

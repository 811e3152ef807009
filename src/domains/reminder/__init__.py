# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reminder domain - payment reminder emails and the daily reminder run."""

from src.domains.reminder.service import (
    DuplicateReminderError,
    ReminderNotificationError,
    ReminderPaymentNotFoundError,
    ReminderService,
    ReminderServiceError,
    scheduled_reminder_type,
)
from src.domains.reminder.templates import get_reminder_config, render_reminder_email

__all__ = [
    "ReminderService",
    "ReminderServiceError",
    "ReminderPaymentNotFoundError",
    "DuplicateReminderError",
    "ReminderNotificationError",
    "scheduled_reminder_type",
    "get_reminder_config",
    "render_reminder_email",
]

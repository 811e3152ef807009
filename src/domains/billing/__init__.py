# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Billing domain - lesson pricing and the tutor's rate settings."""

from src.domains.billing.rates import (
    LessonAmount,
    PrepaidUsage,
    RateTable,
    SubjectRate,
    calculate_lesson_amount,
    calculate_lesson_rate,
    calculate_prepaid_usage,
    calculate_rollover,
    derive_payment_status,
    format_rate_display,
    get_subject_rate_config,
    round_money,
    suggested_prepaid_amount,
)
from src.domains.billing.service import (
    TutorNotFoundError,
    TutorSettingsService,
    TutorSettingsServiceError,
)

__all__ = [
    # Pricing
    "LessonAmount",
    "PrepaidUsage",
    "RateTable",
    "SubjectRate",
    "calculate_lesson_amount",
    "calculate_lesson_rate",
    "calculate_prepaid_usage",
    "calculate_rollover",
    "derive_payment_status",
    "format_rate_display",
    "get_subject_rate_config",
    "round_money",
    "suggested_prepaid_amount",
    # Settings
    "TutorSettingsService",
    "TutorSettingsServiceError",
    "TutorNotFoundError",
]

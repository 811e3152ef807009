# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers for TutorDesk.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime and billing month operations
"""

from src.utils.datetime import (
    ensure_utc,
    format_month,
    month_bounds,
    month_end,
    month_start,
    previous_month,
    utc_day_bounds,
    utc_from_timestamp,
    utc_now,
)
from src.utils.logging import bind_context, clear_context, get_logger, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "get_logger",
    "bind_context",
    "clear_context",
    # Datetime
    "utc_now",
    "utc_from_timestamp",
    "ensure_utc",
    "utc_day_bounds",
    "month_start",
    "month_end",
    "month_bounds",
    "previous_month",
    "format_month",
]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for TutorDesk.

Settings are Pydantic models loaded from environment variables, one class
per concern, aggregated by Settings.

Example:
    >>> from src.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.stripe.trial_days
    14
"""

from src.core.config.settings import (
    APISettings,
    BillingSettings,
    CORSSettings,
    DatabaseSettings,
    EmailSettings,
    JWTSettings,
    RateLimitSettings,
    ReminderSettings,
    Settings,
    StripeSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "clear_settings_cache",
    # Subsettings
    "DatabaseSettings",
    "JWTSettings",
    "RateLimitSettings",
    "CORSSettings",
    "APISettings",
    "BillingSettings",
    "ReminderSettings",
    "EmailSettings",
    "StripeSettings",
]

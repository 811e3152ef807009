# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API middleware components.

This package provides middleware for request processing:
- AuthMiddleware: JWT authentication.
- limiter: slowapi rate limiter shared by the routers.

Exports:
    AuthMiddleware: JWT authentication middleware.
    CurrentUser: Authenticated account on request.state.user.
    limiter: Rate limiter instance.
"""

from src.api.middleware.auth import AuthMiddleware, CurrentUser, get_current_user
from src.api.middleware.rate_limit import (
    RATE_LIMIT_REMINDERS,
    limiter,
    rate_limit_exceeded_handler,
)

__all__ = [
    "AuthMiddleware",
    "CurrentUser",
    "get_current_user",
    "limiter",
    "rate_limit_exceeded_handler",
    "RATE_LIMIT_REMINDERS",
]

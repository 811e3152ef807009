# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Subscription domain - tutor plans billed through Stripe."""

from src.domains.subscription.service import (
    NoBillingAccountError,
    SubscriptionAccountNotFoundError,
    SubscriptionConflictError,
    SubscriptionForbiddenError,
    SubscriptionService,
    SubscriptionServiceError,
    map_subscription_status,
)

__all__ = [
    "SubscriptionService",
    "SubscriptionServiceError",
    "SubscriptionAccountNotFoundError",
    "SubscriptionForbiddenError",
    "SubscriptionConflictError",
    "NoBillingAccountError",
    "map_subscription_status",
]

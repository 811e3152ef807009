# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment provider integration (Stripe)."""

from src.infrastructure.billing.stripe_client import (
    StripeClient,
    StripeError,
    StripeSignatureError,
)

__all__ = [
    "StripeClient",
    "StripeError",
    "StripeSignatureError",
]

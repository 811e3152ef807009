# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prepaid domain - monthly session plans with rollover."""

from src.domains.prepaid.service import (
    PrepaidParentNotFoundError,
    PrepaidPlanExistsError,
    PrepaidPlanNotFoundError,
    PrepaidService,
    PrepaidServiceError,
    PrepaidUpdateError,
    prepaid_to_response,
)

__all__ = [
    "PrepaidService",
    "PrepaidServiceError",
    "PrepaidPlanNotFoundError",
    "PrepaidPlanExistsError",
    "PrepaidParentNotFoundError",
    "PrepaidUpdateError",
    "prepaid_to_response",
]

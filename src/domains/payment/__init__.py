# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment domain - monthly invoices and their collection state."""

from src.domains.payment.service import (
    DUPLICATE_PAYMENT_MESSAGE,
    PaymentExistsError,
    PaymentNotFoundError,
    PaymentParentNotFoundError,
    PaymentService,
    PaymentServiceError,
    payment_to_response,
)

__all__ = [
    "PaymentService",
    "PaymentServiceError",
    "PaymentNotFoundError",
    "PaymentExistsError",
    "PaymentParentNotFoundError",
    "DUPLICATE_PAYMENT_MESSAGE",
    "payment_to_response",
]

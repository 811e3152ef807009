# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Invoice domain - billing completed lessons and the monthly overview."""

from src.domains.invoice.service import (
    INVOICE_EXISTS_MESSAGE,
    InvoiceExistsError,
    InvoiceParentNotFoundError,
    InvoiceService,
    InvoiceServiceError,
    NothingToInvoiceError,
)

__all__ = [
    "InvoiceService",
    "InvoiceServiceError",
    "InvoiceParentNotFoundError",
    "InvoiceExistsError",
    "NothingToInvoiceError",
    "INVOICE_EXISTS_MESSAGE",
]

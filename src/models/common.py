# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Shared request/response types."""

from datetime import date
from typing import Annotated

from pydantic import AfterValidator, BaseModel, Field

from src.utils.datetime import month_start

# Any day of a month is accepted and stored as the first of that month
BillingMonth = Annotated[date, AfterValidator(month_start)]


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    success: bool = Field(default=True, description="Whether the operation succeeded")
    message: str = Field(..., description="Human readable outcome")


class DeleteResponse(BaseModel):
    """Result of a delete operation."""

    deleted: int = Field(..., ge=0, description="Number of rows deleted")

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request/response models for tutor subscription billing."""

from typing import Literal

from pydantic import BaseModel, Field

SubscriptionPlan = Literal["solo", "pro"]


class CheckoutRequest(BaseModel):
    plan: SubscriptionPlan
    success_url: str = Field(..., min_length=1)
    cancel_url: str = Field(..., min_length=1)


class CheckoutResponse(BaseModel):
    url: str = Field(..., description="Hosted checkout page")
    session_id: str


class PortalRequest(BaseModel):
    return_url: str = Field(..., min_length=1)


class PortalResponse(BaseModel):
    url: str = Field(..., description="Hosted billing portal")


class WebhookResponse(BaseModel):
    received: bool = True
    event_type: str | None = None
    handled: bool = False

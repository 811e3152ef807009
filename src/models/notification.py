# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Response models for in-app notifications."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: str = Field(..., description="Notification ID")
    type: str
    title: str
    message: str
    priority: str = "normal"
    data: dict[str, Any] = Field(default_factory=dict)
    action_url: str | None = None
    read_at: datetime | None = None
    created_at: datetime

    class Config:
        from_attributes = True


class NotificationListResponse(BaseModel):
    items: list[NotificationResponse]
    total: int
    unread: int

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification system for TutorDesk.

Notifications reach parents and tutors through two channels:
- In-app notifications (database records shown in the inbox)
- Email (Resend HTTP API)

Usage:
    from src.infrastructure.notifications import (
        NotificationPayload,
        NotificationService,
    )

    service = NotificationService(db)
    results = await service.send(payload)
"""

from src.infrastructure.notifications.channels import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    EmailChannel,
    EmailDeliveryError,
    InAppChannel,
    NotificationPayload,
)
from src.infrastructure.notifications.service import (
    NotificationNotFoundError,
    NotificationService,
    NotificationServiceError,
)

__all__ = [
    # Service
    "NotificationService",
    "NotificationServiceError",
    "NotificationNotFoundError",
    # Channel types
    "BaseChannel",
    "ChannelResult",
    "ChannelType",
    "DeliveryStatus",
    "NotificationPayload",
    # Channels
    "EmailChannel",
    "EmailDeliveryError",
    "InAppChannel",
]

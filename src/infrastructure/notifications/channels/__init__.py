# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification channels for delivering notifications.

- InAppChannel: Creates notification records in the database
- EmailChannel: Sends email through the Resend HTTP API

Usage:
    from src.infrastructure.notifications.channels import (
        InAppChannel,
        NotificationPayload,
    )

    payload = NotificationPayload(
        notification_type="payment_reminder",
        title="Invoice Due Today",
        message="Your invoice for March 2026 has a balance of $90.00.",
        recipient_id=parent_id,
    )
    result = await InAppChannel(session).send(payload)
"""

from src.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    DeliveryStatus,
    NotificationPayload,
)
from src.infrastructure.notifications.channels.email import (
    EmailChannel,
    EmailDeliveryError,
)
from src.infrastructure.notifications.channels.in_app import InAppChannel

__all__ = [
    # Base types
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

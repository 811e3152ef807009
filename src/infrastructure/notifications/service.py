# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Notification service for delivery and inbox management.

This service handles:
1. Sending a notification through the requested channels
2. Listing a user's notifications
3. Marking notifications as read
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.models.notification import Notification
from src.infrastructure.notifications.channels import (
    ChannelResult,
    ChannelType,
    EmailChannel,
    InAppChannel,
    NotificationPayload,
)
from src.models.notification import NotificationListResponse, NotificationResponse
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class NotificationServiceError(Exception):
    """Base exception for notification service errors."""

    pass


class NotificationNotFoundError(NotificationServiceError):
    """Raised when a notification is not found for the user."""

    pass


class NotificationService:
    """Service for sending and reading notifications.

    The in-app channel writes into the caller's session; commits
    happen in the calling service so reminder rows and their
    notifications land in one transaction.
    """

    def __init__(
        self,
        db: AsyncSession,
        email_channel: EmailChannel | None = None,
    ) -> None:
        self._db = db
        self._in_app = InAppChannel(db)
        self._email = email_channel

    async def send(
        self,
        payload: NotificationPayload,
        channels: tuple[ChannelType, ...] = (ChannelType.IN_APP,),
    ) -> dict[ChannelType, ChannelResult]:
        """Send a notification through the given channels.

        Args:
            payload: Notification payload.
            channels: Channels to deliver through.

        Returns:
            Channel results keyed by channel type.
        """
        results: dict[ChannelType, ChannelResult] = {}

        if ChannelType.IN_APP in channels:
            results[ChannelType.IN_APP] = await self._in_app.send(payload)

        if ChannelType.EMAIL in channels:
            if self._email is None:
                self._email = EmailChannel()
            results[ChannelType.EMAIL] = await self._email.send(payload)

        for channel, result in results.items():
            if not result.is_sent:
                logger.warning(
                    "Notification %s via %s not sent: %s",
                    payload.notification_type,
                    channel.value,
                    result.error_message,
                )
        return results

    async def list_notifications(
        self,
        recipient_id: str,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> NotificationListResponse:
        """List a user's notifications, newest first."""
        base = select(Notification).where(Notification.recipient_id == recipient_id)
        if unread_only:
            base = base.where(Notification.read_at.is_(None))

        count_result = await self._db.execute(
            select(func.count()).select_from(base.subquery())
        )
        total = count_result.scalar() or 0

        unread_result = await self._db.execute(
            select(func.count(Notification.id)).where(
                Notification.recipient_id == recipient_id,
                Notification.read_at.is_(None),
            )
        )
        unread = unread_result.scalar() or 0

        result = await self._db.execute(
            base.order_by(Notification.created_at.desc()).limit(limit).offset(offset)
        )
        notifications = result.scalars().all()

        return NotificationListResponse(
            items=[NotificationResponse.model_validate(n) for n in notifications],
            total=total,
            unread=unread,
        )

    async def mark_read(
        self, notification_id: str, recipient_id: str
    ) -> NotificationResponse:
        """Mark one notification as read.

        Raises:
            NotificationNotFoundError: If the notification does not belong to the user.
        """
        result = await self._db.execute(
            select(Notification).where(
                Notification.id == notification_id,
                Notification.recipient_id == recipient_id,
            )
        )
        notification = result.scalar_one_or_none()
        if not notification:
            raise NotificationNotFoundError(f"Notification {notification_id} not found")

        if notification.read_at is None:
            notification.read_at = utc_now()
            await self._db.commit()
            await self._db.refresh(notification)

        return NotificationResponse.model_validate(notification)

    async def mark_all_read(self, recipient_id: str) -> int:
        """Mark every unread notification of a user as read.

        Returns:
            Number of notifications updated.
        """
        result = await self._db.execute(
            update(Notification)
            .where(
                Notification.recipient_id == recipient_id,
                Notification.read_at.is_(None),
            )
            .values(read_at=utc_now())
        )
        await self._db.commit()
        count = result.rowcount or 0
        logger.info("Marked %d notifications read for %s", count, recipient_id)
        return count

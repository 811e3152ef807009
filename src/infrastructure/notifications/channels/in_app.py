# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-app notification channel.

This channel creates notification records in the database
that are displayed in the recipient's notification inbox.
"""

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.infrastructure.database.models.base import generate_uuid
from src.infrastructure.database.models.notification import Notification
from src.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    NotificationPayload,
)


class InAppChannel(BaseChannel):
    """In-app notification channel.

    The row is written inside a savepoint and flushed but not committed;
    the caller owns the transaction. A failed write rolls back only the
    savepoint, so the caller can still commit its own work.

    A database session must be provided through the constructor or
    set_session() before sending.
    """

    def __init__(self, session: AsyncSession | None = None) -> None:
        super().__init__()
        self._session = session

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.IN_APP

    def set_session(self, session: AsyncSession) -> None:
        """Set the database session for this channel."""
        self._session = session

    async def send(self, payload: NotificationPayload) -> ChannelResult:
        """Create an in-app notification record.

        Args:
            payload: The notification payload.

        Returns:
            ChannelResult whose message_id is the notification ID.
        """
        if self._session is None:
            return self.create_failure_result(
                "Database session not set. Call set_session() first."
            )

        notification = Notification(
            id=generate_uuid(),
            recipient_id=payload.recipient_id,
            sender_id=payload.sender_id,
            type=payload.notification_type,
            title=payload.title,
            message=payload.message,
            priority=payload.priority,
            data=dict(payload.data),
            action_url=payload.action_url,
        )

        try:
            async with self._session.begin_nested():
                self._session.add(notification)
                await self._session.flush()
        except SQLAlchemyError as e:
            self.logger.error(
                "Failed to create in-app notification for %s: %s",
                payload.recipient_id,
                str(e),
                exc_info=True,
            )
            return self.create_failure_result(f"Database error: {str(e)}")

        self.logger.info(
            "Created in-app notification %s for %s",
            notification.id,
            payload.recipient_id,
        )
        return self.create_success_result(
            message_id=notification.id,
            metadata={"notification_id": notification.id},
        )

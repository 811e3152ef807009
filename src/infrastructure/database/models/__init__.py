# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the TutorDesk database.

Importing this package registers every table on Base.metadata, which is
what Alembic autogeneration and relationship resolution rely on.
"""

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDMixin
from src.infrastructure.database.models.lesson import (
    LessonRequest,
    LessonSession,
    ScheduledLesson,
)
from src.infrastructure.database.models.messaging import (
    Message,
    MessageReaction,
    MessageThread,
    MessageThreadParticipant,
    ParentGroup,
    ParentGroupMember,
)
from src.infrastructure.database.models.notification import Notification
from src.infrastructure.database.models.parent import Parent, Student, TutorSettings
from src.infrastructure.database.models.payment import Payment, PaymentLesson, PaymentReminder

__all__ = [
    "Base",
    "TimestampMixin",
    "UUIDMixin",
    # Accounts
    "Parent",
    "Student",
    "TutorSettings",
    # Scheduling
    "LessonSession",
    "ScheduledLesson",
    "LessonRequest",
    # Billing
    "Payment",
    "PaymentLesson",
    "PaymentReminder",
    # Notifications
    "Notification",
    # Messaging
    "ParentGroup",
    "ParentGroupMember",
    "MessageThread",
    "Message",
    "MessageThreadParticipant",
    "MessageReaction",
]

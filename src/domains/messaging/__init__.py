# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Messaging domain - threads between the tutor and families."""

from src.domains.messaging.service import (
    InvalidRecipientsError,
    MessageNotFoundError,
    MessagingPermissionError,
    MessagingService,
    MessagingServiceError,
    NotParticipantError,
    ParentGroupNotFoundError,
    ThreadNotFoundError,
)

__all__ = [
    "MessagingService",
    "MessagingServiceError",
    "ThreadNotFoundError",
    "MessageNotFoundError",
    "ParentGroupNotFoundError",
    "NotParticipantError",
    "MessagingPermissionError",
    "InvalidRecipientsError",
]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent domain - families, their students, tutor accounts and portal invitations."""

from src.domains.parent.invitations import (
    InvitationDeliveryError,
    InvitationError,
    InvitationInvalidError,
    InvitationNotAllowedError,
    InvitationService,
)
from src.domains.parent.service import (
    ParentEmailExistsError,
    ParentNotFoundError,
    ParentService,
    ParentServiceError,
    StudentNotFoundError,
)

__all__ = [
    "ParentService",
    "ParentServiceError",
    "ParentNotFoundError",
    "ParentEmailExistsError",
    "StudentNotFoundError",
    # Invitations
    "InvitationService",
    "InvitationError",
    "InvitationNotAllowedError",
    "InvitationInvalidError",
    "InvitationDeliveryError",
]

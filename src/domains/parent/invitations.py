# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent portal invitations.

The tutor invites a family by email. The email carries a one-time
token that is valid for seven days; accepting it marks the family's
account active and signs them in.

Example:
    >>> service = InvitationService(db_session, email_channel=channel)
    >>> await service.send_invitation(parent_id)
    >>> session = await service.accept_invitation(token)
"""

import html
import logging
import uuid
from datetime import datetime, timedelta
from urllib.parse import urlencode

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.config import EmailSettings, get_settings
from src.domains.auth.jwt import JWTManager
from src.domains.parent.service import ParentNotFoundError, ParentServiceError
from src.infrastructure.database.models import Parent, Student
from src.infrastructure.database.models.base import generate_uuid
from src.infrastructure.notifications import EmailChannel, EmailDeliveryError
from src.models.parent import (
    InvitationAcceptResponse,
    InvitationSendResponse,
    InvitationStatusResponse,
)
from src.utils.datetime import ensure_utc, utc_now

logger = logging.getLogger(__name__)

INVITATION_TTL = timedelta(days=7)
INVITATION_SUBJECT = "You're Invited to the Parent Portal"


class InvitationError(ParentServiceError):
    """Base exception for invitation errors."""

    pass


class InvitationNotAllowedError(InvitationError):
    """Raised when the account cannot be invited."""

    pass


class InvitationInvalidError(InvitationError):
    """Raised when an invitation token is unknown, used or expired."""

    pass


class InvitationDeliveryError(InvitationError):
    """Raised when the invitation email could not be sent."""

    pass


def render_invitation_email(
    parent_name: str,
    students: list[Student],
    registration_url: str,
    business_name: str,
) -> tuple[str, str]:
    """Render the invitation email.

    Returns:
        Tuple of (html body, plain text body).
    """
    children = [
        (s.name, ", ".join(s.subjects or []) or "General tutoring") for s in students
    ]

    text_lines = [
        f"Hi {parent_name},",
        "",
        f"{business_name} has invited you to the parent portal, where you can "
        "see lessons, invoices and messages for your children.",
        "",
    ]
    if children:
        text_lines.extend(f"  {name} - {subjects}" for name, subjects in children)
    else:
        text_lines.append("  Your children will be linked after registration")
    text_lines.extend([
        "",
        f"Create your account: {registration_url}",
        "This invitation expires in 7 days.",
        "",
        f"Thank you, {business_name}",
    ])

    if children:
        items = "".join(
            f"<li><strong>{html.escape(name)}</strong> - {html.escape(subjects)}</li>"
            for name, subjects in children
        )
    else:
        items = "<li>Your children will be linked after registration</li>"

    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Parent Portal Invitation</title></head>
<body style="font-family: Arial, sans-serif; background: #F5F7FA; margin: 0; padding: 0;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: white; border-radius: 12px; padding: 28px;">
            <h1 style="color: #3D9CA8; margin: 0 0 16px 0; font-size: 24px;">{html.escape(business_name)}</h1>
            <p style="font-size: 16px;">Hi {html.escape(parent_name)},</p>
            <p style="font-size: 15px;">You have been invited to the parent portal, where you can
               see lessons, invoices and messages for your children.</p>
            <ul style="font-size: 15px;">{items}</ul>
            <div style="margin: 24px 0;">
                <a href="{html.escape(registration_url, quote=True)}"
                   style="background: #3D9CA8; color: white; padding: 12px 24px;
                          text-decoration: none; border-radius: 6px;">Create Your Account</a>
            </div>
            <p style="font-size: 13px; color: #757575;">This invitation expires in 7 days.</p>
        </div>
    </div>
</body>
</html>"""

    return html_body, "\n".join(text_lines)


class InvitationService:
    """Service for portal invitations.

    Attributes:
        _db: Async database session.
        _email: Email channel for the invitation email.
        _jwt: Token issuer used when an invitation is accepted.
    """

    def __init__(
        self,
        db: AsyncSession,
        email_channel: EmailChannel | None = None,
        jwt_manager: JWTManager | None = None,
        email_settings: EmailSettings | None = None,
    ):
        self._db = db
        self._email_settings = email_settings or get_settings().email
        self._email = email_channel or EmailChannel(self._email_settings)
        self._jwt = jwt_manager or JWTManager(get_settings().jwt)

    async def send_invitation(
        self, parent_id: str, now: datetime | None = None
    ) -> InvitationSendResponse:
        """Email a family a fresh invitation link.

        A new token replaces any earlier one. Nothing is stored when the
        email cannot be sent.

        Raises:
            ParentNotFoundError: If the family does not exist.
            InvitationNotAllowedError: Tutor or already active account.
            InvitationDeliveryError: If the email provider fails.
        """
        result = await self._db.execute(
            select(Parent).options(selectinload(Parent.students)).where(Parent.id == parent_id)
        )
        parent = result.scalar_one_or_none()
        if not parent:
            raise ParentNotFoundError(f"Parent {parent_id} not found")
        if parent.is_tutor:
            raise InvitationNotAllowedError("Tutor accounts cannot be invited")
        if parent.invitation_accepted_at is not None:
            raise InvitationNotAllowedError("Parent already has an active account")

        now = now or utc_now()
        token = generate_uuid()
        parent.invitation_token = token
        parent.invitation_sent_at = now
        parent.invitation_expires_at = now + INVITATION_TTL

        query = urlencode({"token": token, "email": parent.email})
        registration_url = f"{self._email_settings.app_url.rstrip('/')}/register?{query}"
        html_body, text_body = render_invitation_email(
            parent_name=parent.name,
            students=list(parent.students or []),
            registration_url=registration_url,
            business_name=self._email_settings.business_name,
        )

        try:
            email_id = await self._email.send_email(
                to=parent.email,
                subject=INVITATION_SUBJECT,
                html=html_body,
                text=text_body,
            )
        except EmailDeliveryError as e:
            await self._db.rollback()
            logger.warning("Invitation email to parent %s failed: %s", parent.id, e.message)
            raise InvitationDeliveryError("Failed to send invitation email") from e

        await self._db.commit()
        logger.info("Invitation sent to parent %s (email %s)", parent.id, email_id)

        return InvitationSendResponse(
            message=f"Invitation sent to {parent.email}",
            email_id=email_id,
            expires_at=parent.invitation_expires_at,
        )

    async def validate_invitation(
        self, token: str, now: datetime | None = None
    ) -> InvitationStatusResponse:
        """Check whether an invitation link can still be used."""
        parent = await self._get_by_token(token)
        error = self._token_error(parent, now or utc_now())
        if error:
            return InvitationStatusResponse(valid=False, error=error)
        return InvitationStatusResponse(
            valid=True, parent_id=parent.id, email=parent.email, name=parent.name
        )

    async def accept_invitation(
        self, token: str, now: datetime | None = None
    ) -> InvitationAcceptResponse:
        """Activate the invited account and sign the family in.

        The token is cleared so the link works only once.

        Raises:
            InvitationInvalidError: Unknown, used or expired token.
        """
        now = now or utc_now()
        parent = await self._get_by_token(token)
        error = self._token_error(parent, now)
        if error:
            raise InvitationInvalidError(error)

        parent.invitation_accepted_at = now
        parent.invitation_token = None
        await self._db.commit()
        logger.info("Invitation accepted by parent %s", parent.id)

        return InvitationAcceptResponse(
            access_token=self._jwt.create_access_token(parent.id, parent.role, parent.email),
            expires_in=self._jwt.expires_in,
            parent_id=parent.id,
        )

    @staticmethod
    def _token_error(parent: Parent | None, now: datetime) -> str | None:
        if parent is None:
            return "Invalid invitation token"
        if parent.invitation_accepted_at is not None:
            return "Invitation has already been used"
        if parent.invitation_expires_at is None or ensure_utc(parent.invitation_expires_at) < now:
            return "Invitation has expired"
        return None

    async def _get_by_token(self, token: str) -> Parent | None:
        try:
            token = str(uuid.UUID(token))
        except ValueError:
            return None
        result = await self._db.execute(select(Parent).where(Parent.invitation_token == token))
        return result.scalar_one_or_none()

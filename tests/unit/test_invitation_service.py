# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for InvitationService."""

import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlsplit

import pytest

from src.core.config.settings import EmailSettings, JWTSettings
from src.domains.auth.jwt import JWTManager
from src.domains.parent import (
    InvitationDeliveryError,
    InvitationInvalidError,
    InvitationNotAllowedError,
    InvitationService,
    ParentNotFoundError,
)
from src.domains.parent.invitations import render_invitation_email
from src.infrastructure.notifications import EmailDeliveryError

NOW = datetime(2026, 3, 7, 12, 0, tzinfo=timezone.utc)
TOKEN = "7c9e6679-7425-40de-944b-e07fc1f90ae7"


@pytest.fixture
def email_channel() -> MagicMock:
    channel = MagicMock()
    channel.send_email = AsyncMock(return_value="email-1")
    return channel


@pytest.fixture
def jwt_manager() -> JWTManager:
    return JWTManager(JWTSettings(secret_key="test-secret-key-for-testing-only"))


@pytest.fixture
def invitation_service(mock_db, email_channel, jwt_manager) -> InvitationService:
    return InvitationService(
        mock_db,
        email_channel=email_channel,
        jwt_manager=jwt_manager,
        email_settings=EmailSettings(
            resend_api_key="re_test",
            business_name="Tess Tutoring",
            app_url="https://app.example.com/",
        ),
    )


@pytest.fixture
def invited_parent(parent):
    parent.invitation_token = TOKEN
    parent.invitation_sent_at = NOW - timedelta(days=1)
    parent.invitation_expires_at = NOW + timedelta(days=6)
    parent.invitation_accepted_at = None
    return parent


class TestSendInvitation:
    """Tests for emailing invitations."""

    @pytest.mark.asyncio
    async def test_sends_registration_link(
        self, invitation_service, mock_db, make_result, email_channel, parent, student
    ):
        parent.students = [student]
        mock_db.execute.return_value = make_result(one=parent)

        response = await invitation_service.send_invitation(parent.id, now=NOW)

        assert response.message == "Invitation sent to pat@example.com"
        assert response.email_id == "email-1"
        assert response.expires_at == NOW + timedelta(days=7)
        assert parent.invitation_sent_at == NOW
        assert uuid.UUID(parent.invitation_token)

        kwargs = email_channel.send_email.call_args.kwargs
        assert kwargs["to"] == "pat@example.com"
        assert kwargs["subject"] == "You're Invited to the Parent Portal"
        assert "Sam Student - piano" in kwargs["text"]
        assert "This invitation expires in 7 days." in kwargs["text"]

        link = next(
            line.split(": ", 1)[1]
            for line in kwargs["text"].splitlines()
            if line.startswith("Create your account:")
        )
        parts = urlsplit(link)
        assert f"{parts.scheme}://{parts.netloc}{parts.path}" == "https://app.example.com/register"
        assert parse_qs(parts.query) == {
            "token": [parent.invitation_token],
            "email": ["pat@example.com"],
        }
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_resend_replaces_token(
        self, invitation_service, mock_db, make_result, invited_parent
    ):
        mock_db.execute.return_value = make_result(one=invited_parent)

        await invitation_service.send_invitation(invited_parent.id, now=NOW)

        assert invited_parent.invitation_token != TOKEN

    @pytest.mark.asyncio
    async def test_unknown_parent(self, invitation_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(ParentNotFoundError):
            await invitation_service.send_invitation("missing")

    @pytest.mark.asyncio
    async def test_active_account(
        self, invitation_service, mock_db, make_result, email_channel, parent
    ):
        parent.invitation_accepted_at = NOW
        mock_db.execute.return_value = make_result(one=parent)

        with pytest.raises(InvitationNotAllowedError, match="already has an active account"):
            await invitation_service.send_invitation(parent.id)

        email_channel.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tutor_cannot_be_invited(self, invitation_service, mock_db, make_result, tutor):
        mock_db.execute.return_value = make_result(one=tutor)

        with pytest.raises(InvitationNotAllowedError):
            await invitation_service.send_invitation(tutor.id)

    @pytest.mark.asyncio
    async def test_email_failure_stores_nothing(
        self, invitation_service, mock_db, make_result, email_channel, parent
    ):
        email_channel.send_email.side_effect = EmailDeliveryError("provider down", 503)
        mock_db.execute.return_value = make_result(one=parent)

        with pytest.raises(InvitationDeliveryError):
            await invitation_service.send_invitation(parent.id, now=NOW)

        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_not_awaited()


class TestValidateInvitation:
    """Tests for checking invitation links."""

    @pytest.mark.asyncio
    async def test_valid(self, invitation_service, mock_db, make_result, invited_parent):
        mock_db.execute.return_value = make_result(one=invited_parent)

        status = await invitation_service.validate_invitation(TOKEN, now=NOW)

        assert status.valid is True
        assert status.email == "pat@example.com"
        assert status.parent_id == invited_parent.id

    @pytest.mark.asyncio
    async def test_expired(self, invitation_service, mock_db, make_result, invited_parent):
        mock_db.execute.return_value = make_result(one=invited_parent)

        status = await invitation_service.validate_invitation(TOKEN, now=NOW + timedelta(days=7))

        assert status.valid is False
        assert status.error == "Invitation has expired"

    @pytest.mark.asyncio
    async def test_malformed_token_skips_lookup(self, invitation_service, mock_db):
        status = await invitation_service.validate_invitation("not-a-token")

        assert status.error == "Invalid invitation token"
        mock_db.execute.assert_not_awaited()


class TestAcceptInvitation:
    """Tests for accepting invitations."""

    @pytest.mark.asyncio
    async def test_accept_signs_family_in(
        self, invitation_service, mock_db, make_result, jwt_manager, invited_parent
    ):
        mock_db.execute.return_value = make_result(one=invited_parent)

        response = await invitation_service.accept_invitation(TOKEN, now=NOW)

        payload = jwt_manager.decode_token(response.access_token)
        assert payload.sub == invited_parent.id
        assert payload.role == "parent"
        assert response.expires_in == jwt_manager.expires_in
        assert invited_parent.invitation_accepted_at == NOW
        assert invited_parent.invitation_token is None
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_used_token(self, invitation_service, mock_db, make_result, invited_parent):
        invited_parent.invitation_accepted_at = NOW - timedelta(hours=1)
        mock_db.execute.return_value = make_result(one=invited_parent)

        with pytest.raises(InvitationInvalidError, match="already been used"):
            await invitation_service.accept_invitation(TOKEN, now=NOW)

        mock_db.commit.assert_not_awaited()


class TestRenderInvitationEmail:
    """Tests for the invitation email body."""

    def test_without_children(self):
        html_body, text_body = render_invitation_email(
            "Pat <Parent>", [], "https://app.example.com/register?token=t", "Tess Tutoring"
        )

        assert "Your children will be linked after registration" in text_body
        assert "Pat &lt;Parent&gt;" in html_body

    def test_child_without_subjects(self, student):
        student.subjects = []

        _, text_body = render_invitation_email(
            "Pat", [student], "https://app.example.com/register", "Tess Tutoring"
        )

        assert "Sam Student - General tutoring" in text_body

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for computed ORM model properties."""

import pytest

from src.infrastructure.database.models import Base, LessonRequest


class TestParent:
    """Tests for account properties."""

    def test_roles(self, tutor, parent):
        assert tutor.is_tutor is True
        assert parent.is_tutor is False

    @pytest.mark.parametrize(
        "preferences,expected",
        [
            ({}, True),
            (None, True),
            ({"notifications": {}}, True),
            ({"notifications": {"payment_due": True}}, True),
            ({"notifications": {"payment_due": False}}, False),
            ({"notifications": None}, True),
        ],
    )
    def test_payment_notifications_enabled(self, parent, preferences, expected):
        parent.preferences = preferences

        assert parent.payment_notifications_enabled is expected


class TestPayment:
    """Tests for payment balances."""

    def test_balance_due(self, payment):
        payment.amount_paid = 40.333

        assert payment.balance_due == 79.67

    def test_balance_due_with_missing_amounts(self, payment):
        payment.amount_due = None
        payment.amount_paid = None

        assert payment.balance_due == 0


class TestScheduledLesson:
    """Tests for lesson properties."""

    def test_single_lesson(self, lesson):
        assert lesson.is_combined_session is False

    def test_combined_lesson(self, lesson):
        lesson.session_id = "550e8400-e29b-41d4-a716-446655440030"

        assert lesson.is_combined_session is True


class TestLessonRequest:
    """Tests for lesson request properties."""

    @pytest.mark.parametrize(
        "status,expected",
        [("pending", True), ("approved", False), ("rejected", False), ("scheduled", False)],
    )
    def test_is_pending(self, status, expected):
        assert LessonRequest(status=status).is_pending is expected


class TestMetadata:
    """Tests for the registered tables."""

    def test_all_tables_registered(self):
        assert {
            "parents",
            "students",
            "tutor_settings",
            "scheduled_lessons",
            "lesson_sessions",
            "payments",
            "payment_lessons",
            "payment_reminders",
            "notifications",
            "parent_groups",
            "parent_group_members",
            "message_threads",
            "messages",
            "message_thread_participants",
            "message_reactions",
            "lesson_requests",
        } <= set(Base.metadata.tables)

    def test_invitation_columns(self):
        columns = Base.metadata.tables["parents"].columns

        assert {
            "invitation_token",
            "invitation_sent_at",
            "invitation_expires_at",
            "invitation_accepted_at",
        } <= set(columns.keys())
        assert columns["invitation_token"].unique is True

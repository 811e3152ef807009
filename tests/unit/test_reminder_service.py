# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for ReminderService."""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError

from src.core.config.settings import EmailSettings
from src.domains.reminder import (
    DuplicateReminderError,
    ReminderPaymentNotFoundError,
    ReminderService,
)
from src.infrastructure.database.models import Notification, PaymentLesson, PaymentReminder
from src.infrastructure.notifications import EmailDeliveryError
from src.models.parent import ReminderSettingsModel
from src.models.reminder import ReminderSendRequest


@pytest.fixture
def email_channel() -> MagicMock:
    channel = MagicMock()
    channel.send_email = AsyncMock(return_value="email-1")
    return channel


@pytest.fixture
def settings_service() -> MagicMock:
    service = MagicMock()
    service.get_reminder_settings = AsyncMock(
        return_value=ReminderSettingsModel(enabled=True, due_day_of_month=7)
    )
    return service


@pytest.fixture
def reminder_service(mock_db, email_channel, settings_service) -> ReminderService:
    return ReminderService(
        mock_db,
        email_channel=email_channel,
        settings_service=settings_service,
        email_settings=EmailSettings(
            resend_api_key="re_test",
            business_name="Tess Tutoring",
            app_url="https://app.example.com",
        ),
    )


@pytest.fixture
def unpaid_link(lesson, payment) -> PaymentLesson:
    link = PaymentLesson(
        id="link-1",
        payment_id=payment.id,
        lesson_id=lesson.id,
        amount=52.5,
        paid=False,
    )
    link.lesson = lesson
    return link


def make_reminder(reminder_id: str, reminder_type: str, day: int) -> PaymentReminder:
    return PaymentReminder(
        id=reminder_id,
        payment_id="pay-1",
        parent_id="parent-1",
        reminder_type=reminder_type,
        email_sent=True,
        sent_at=datetime(2026, 3, day, 9, tzinfo=timezone.utc),
    )


def added(mock_db, model_type) -> list:
    return [c.args[0] for c in mock_db.add.call_args_list if isinstance(c.args[0], model_type)]


class TestSendReminder:
    """Tests for manual reminder emails."""

    @pytest.mark.asyncio
    async def test_sends_email_and_logs(
        self, reminder_service, mock_db, make_result, email_channel, payment, student, unpaid_link
    ):
        mock_db.execute.side_effect = [
            make_result(one=payment),
            make_result(one=None),
            make_result(items=[unpaid_link]),
        ]

        response = await reminder_service.send_reminder(
            ReminderSendRequest(payment_id=payment.id, custom_message="Thanks!")
        )

        assert response.success is True
        assert response.email_sent is True
        assert response.email_id == "email-1"
        assert response.message == "Reminder email sent to pat@example.com"
        kwargs = email_channel.send_email.call_args.kwargs
        assert kwargs["to"] == "pat@example.com"
        assert kwargs["subject"] == "Payment Reminder: March 2026 Invoice - Tess Tutoring"
        assert "Unpaid Lessons (1):" in kwargs["text"]
        assert "Sam Student" in kwargs["text"]

        notification = added(mock_db, Notification)[0]
        assert notification.type == "payment_reminder"
        assert notification.data["balance_due"] == 120.0
        reminder = added(mock_db, PaymentReminder)[0]
        assert reminder.reminder_type == "manual"
        assert reminder.message == "Thanks!"
        assert reminder.notification_id == notification.id
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_payment_not_found(self, reminder_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(ReminderPaymentNotFoundError):
            await reminder_service.send_reminder(ReminderSendRequest(payment_id="missing"))

    @pytest.mark.asyncio
    async def test_opted_out_family_is_skipped(
        self, reminder_service, mock_db, make_result, email_channel, payment
    ):
        payment.parent.preferences = {"notifications": {"payment_due": False}}
        mock_db.execute.return_value = make_result(one=payment)

        response = await reminder_service.send_reminder(ReminderSendRequest(payment_id=payment.id))

        assert response.skipped is True
        assert response.success is True
        email_channel.send_email.assert_not_awaited()
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_already_sent_today(self, reminder_service, mock_db, make_result, payment):
        mock_db.execute.side_effect = [
            make_result(one=payment),
            make_result(one="reminder-1"),
        ]

        with pytest.raises(DuplicateReminderError):
            await reminder_service.send_reminder(
                ReminderSendRequest(payment_id=payment.id, reminder_type="friendly")
            )

        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_email_failure_still_logs(
        self, reminder_service, mock_db, make_result, email_channel, payment
    ):
        email_channel.send_email.side_effect = EmailDeliveryError("provider down")
        mock_db.execute.side_effect = [
            make_result(one=payment),
            make_result(one=None),
            make_result(items=[]),
        ]

        response = await reminder_service.send_reminder(ReminderSendRequest(payment_id=payment.id))

        assert response.success is True
        assert response.email_sent is False
        assert response.message == "Reminder logged but email failed to send"
        assert added(mock_db, PaymentReminder)[0].email_sent is False
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_notification_failure_still_logs(
        self, reminder_service, mock_db, make_result, email_channel, payment
    ):
        mock_db.execute.side_effect = [
            make_result(one=payment),
            make_result(one=None),
            make_result(items=[]),
        ]
        mock_db.flush.side_effect = OperationalError("INSERT", {}, Exception("db gone"))

        response = await reminder_service.send_reminder(ReminderSendRequest(payment_id=payment.id))

        assert response.email_sent is True
        assert response.notification_id is None
        assert mock_db.savepoints[0].rolled_back is True
        reminder = added(mock_db, PaymentReminder)[0]
        assert reminder.notification_id is None
        mock_db.rollback.assert_not_awaited()
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_duplicate(self, reminder_service, mock_db, make_result, payment):
        mock_db.execute.side_effect = [
            make_result(one=payment),
            make_result(one=None),
            make_result(items=[]),
        ]
        mock_db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(DuplicateReminderError):
            await reminder_service.send_reminder(ReminderSendRequest(payment_id=payment.id))

        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_only_selected_lessons_are_listed(
        self, reminder_service, mock_db, make_result, email_channel, payment, unpaid_link
    ):
        mock_db.execute.side_effect = [
            make_result(one=payment),
            make_result(one=None),
            make_result(items=[unpaid_link]),
        ]

        await reminder_service.send_reminder(
            ReminderSendRequest(payment_id=payment.id, lesson_ids=["another-lesson"])
        )

        assert "Unpaid Lessons" not in email_channel.send_email.call_args.kwargs["text"]


class TestReminderHistory:
    """Tests for the once-per-day check and history views."""

    @pytest.mark.asyncio
    async def test_can_send(self, reminder_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        response = await reminder_service.can_send_reminder("pay-1", "manual")

        assert response.can_send is True

    @pytest.mark.asyncio
    async def test_cannot_send_twice(self, reminder_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(one="reminder-1")

        response = await reminder_service.can_send_reminder("pay-1", "manual")

        assert response.can_send is False
        assert response.reason == "Already sent today"

    @pytest.mark.asyncio
    async def test_same_day_window_query(self, reminder_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        await reminder_service.can_send_reminder(
            "pay-1", "friendly", now=datetime(2026, 3, 7, 15, 30, tzinfo=timezone.utc)
        )

        statement = mock_db.execute.call_args.args[0]
        compiled = statement.compile()
        sql = str(compiled)
        assert "payment_reminders.sent_at >= :sent_at_1" in sql
        assert "payment_reminders.sent_at < :sent_at_2" in sql
        assert compiled.params["payment_id_1"] == "pay-1"
        assert compiled.params["reminder_type_1"] == "friendly"
        assert compiled.params["sent_at_1"] == datetime(2026, 3, 7, tzinfo=timezone.utc)
        assert compiled.params["sent_at_2"] == datetime(2026, 3, 8, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_summary(self, reminder_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(
            items=[
                make_reminder("r-3", "past_due_3", 10),
                make_reminder("r-2", "manual", 8),
                make_reminder("r-1", "manual", 2),
            ]
        )

        summary = await reminder_service.get_reminder_summary("pay-1")

        assert summary.total_reminders == 3
        assert summary.last_reminder_type == "past_due_3"
        assert summary.counts_by_type == {"past_due_3": 1, "manual": 2}

    @pytest.mark.asyncio
    async def test_batch_without_ids(self, reminder_service, mock_db):
        response = await reminder_service.get_reminders_for_payments([])

        assert response.reminders == {}
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_batch_groups_by_payment(self, reminder_service, mock_db, make_result):
        other = make_reminder("r-9", "manual", 5)
        other.payment_id = "pay-2"
        mock_db.execute.return_value = make_result(
            items=[make_reminder("r-1", "manual", 6), other]
        )

        response = await reminder_service.get_reminders_for_payments(["pay-1", "pay-2"])

        assert set(response.reminders) == {"pay-1", "pay-2"}
        assert response.reminders["pay-2"][0].id == "r-9"


class TestScheduledReminders:
    """Tests for the daily automatic run."""

    @pytest.mark.asyncio
    async def test_disabled(self, reminder_service, mock_db, settings_service):
        settings_service.get_reminder_settings.return_value = ReminderSettingsModel(enabled=False)

        run = await reminder_service.run_scheduled_reminders(today=date(2026, 3, 7))

        assert run.reminder_type is None
        assert run.reminders_created == 0
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_nothing_due_today(self, reminder_service, mock_db):
        run = await reminder_service.run_scheduled_reminders(today=date(2026, 3, 8))

        assert run.reminder_type is None
        mock_db.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_due_date_run(self, reminder_service, mock_db, make_result, payment):
        mock_db.execute.side_effect = [
            make_result(items=[payment]),
            make_result(one=None),
        ]

        run = await reminder_service.run_scheduled_reminders(today=date(2026, 3, 7))

        assert run.reminder_type == "due_date"
        assert run.reminders_created == 1
        assert run.notifications_created == 1
        assert run.errors_count == 0
        notification = added(mock_db, Notification)[0]
        assert notification.title == "Invoice Due Today"
        reminder = added(mock_db, PaymentReminder)[0]
        assert reminder.reminder_type == "due_date"
        assert reminder.email_sent is False
        assert reminder.notification_id == notification.id

    @pytest.mark.asyncio
    async def test_opted_out_and_already_sent_are_skipped(
        self, reminder_service, mock_db, make_result, payment
    ):
        opted_out = MagicMock()
        opted_out.parent.payment_notifications_enabled = False
        mock_db.execute.side_effect = [
            make_result(items=[payment, opted_out]),
            make_result(one="reminder-1"),
        ]

        run = await reminder_service.run_scheduled_reminders(today=date(2026, 3, 7))

        assert run.reminders_created == 0
        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_without_notifications(
        self, reminder_service, mock_db, make_result, settings_service, payment
    ):
        settings_service.get_reminder_settings.return_value = ReminderSettingsModel(
            enabled=True, due_day_of_month=7, send_notification=False
        )
        mock_db.execute.side_effect = [
            make_result(items=[payment]),
            make_result(one=None),
        ]

        run = await reminder_service.run_scheduled_reminders(today=date(2026, 3, 10))

        assert run.reminder_type == "past_due_3"
        assert run.reminders_created == 1
        assert run.notifications_created == 0
        assert added(mock_db, Notification) == []

    @pytest.mark.asyncio
    async def test_failure_is_counted(self, reminder_service, mock_db, make_result, payment):
        mock_db.execute.side_effect = [
            make_result(items=[payment]),
            make_result(one=None),
        ]
        mock_db.commit.side_effect = SQLAlchemyError("connection lost")

        run = await reminder_service.run_scheduled_reminders(today=date(2026, 3, 7))

        assert run.errors_count == 1
        assert run.reminders_created == 0
        mock_db.rollback.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_stop_run(
        self, reminder_service, mock_db, make_result, payment
    ):
        second = MagicMock(
            id="pay-2",
            parent_id="parent-2",
            month=date(2026, 3, 1),
            amount_due=80.0,
            amount_paid=0.0,
        )
        second.parent.payment_notifications_enabled = True
        mock_db.execute.side_effect = [
            make_result(items=[payment, second]),
            make_result(one=None),
            make_result(one=None),
        ]
        mock_db.flush.side_effect = [OperationalError("INSERT", {}, Exception("db gone")), None]

        run = await reminder_service.run_scheduled_reminders(today=date(2026, 3, 7))

        assert run.errors_count == 1
        assert run.reminders_created == 1
        assert run.notifications_created == 1
        mock_db.rollback.assert_awaited_once()
        mock_db.commit.assert_awaited_once()
        assert [r.payment_id for r in added(mock_db, PaymentReminder)] == ["pay-2"]

    @pytest.mark.asyncio
    async def test_backfill_is_stamped_on_run_day(
        self, reminder_service, mock_db, make_result, payment
    ):
        mock_db.execute.side_effect = [
            make_result(items=[payment]),
            make_result(one=None),
        ]

        await reminder_service.run_scheduled_reminders(today=date(2026, 3, 7))

        reminder = added(mock_db, PaymentReminder)[0]
        assert reminder.sent_at.date() == date(2026, 3, 7)
        assert reminder.sent_at.tzinfo == timezone.utc
        window = mock_db.execute.call_args_list[1].args[0].compile().params
        assert window["sent_at_1"] <= reminder.sent_at < window["sent_at_2"]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment reminder service.

This module provides the ReminderService that handles:
- Sending a reminder email for a payment, with an in-app notification
- At most one reminder per payment, type and UTC day
- Reminder history and summaries
- The daily automatic reminder run driven by the tutor's settings

Every reminder attempt that passes the checks is logged in
payment_reminders, including ones whose email failed.

Example:
    >>> reminder_service = ReminderService(db_session)
    >>> result = await reminder_service.send_reminder(request)
    >>> run = await reminder_service.run_scheduled_reminders()
"""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.config import EmailSettings, get_settings
from src.domains.billing.service import TutorSettingsService
from src.domains.reminder.templates import (
    HIGH_PRIORITY_TYPES,
    SCHEDULED_NOTIFICATION_TITLES,
    ReminderLessonLine,
    balance_message,
    get_reminder_config,
    render_reminder_email,
)
from src.infrastructure.database.models import (
    Parent,
    Payment,
    PaymentLesson,
    PaymentReminder,
    ScheduledLesson,
)
from src.infrastructure.database.models.base import generate_uuid
from src.infrastructure.notifications import (
    ChannelType,
    EmailChannel,
    EmailDeliveryError,
    NotificationPayload,
    NotificationService,
)
from src.models.parent import ReminderSettingsModel
from src.models.reminder import (
    CanSendResponse,
    ReminderBatchResponse,
    ReminderResponse,
    ReminderSendRequest,
    ReminderSendResponse,
    ReminderSummaryResponse,
    ScheduledReminderRunResponse,
)
from src.utils.datetime import format_month, month_start, utc_day_bounds, utc_now

logger = logging.getLogger(__name__)

NOTIFICATION_TYPE = "payment_reminder"
PAYMENTS_ACTION_URL = "/payments"
ALREADY_SENT_TODAY = "Already sent today"
PAST_DUE_TYPES = {3: "past_due_3", 7: "past_due_7", 14: "past_due_14"}


class ReminderServiceError(Exception):
    """Base exception for reminder service errors."""

    pass


class ReminderPaymentNotFoundError(ReminderServiceError):
    """Raised when the payment to remind about does not exist."""

    pass


class DuplicateReminderError(ReminderServiceError):
    """Raised when the same reminder was already sent today."""

    pass


class ReminderNotificationError(ReminderServiceError):
    """Raised when the in-app notification for a scheduled reminder fails."""

    pass


@dataclass
class _DuePayment:
    """Plain snapshot of a payment picked up by the daily run."""

    payment_id: str
    parent_id: str
    month: date
    amount_due: float
    amount_paid: float

    @property
    def balance_due(self) -> float:
        return round(self.amount_due - self.amount_paid, 2)


def reminder_to_response(reminder: PaymentReminder) -> ReminderResponse:
    return ReminderResponse(
        id=reminder.id,
        payment_id=reminder.payment_id,
        parent_id=reminder.parent_id,
        reminder_type=reminder.reminder_type,
        email_sent=reminder.email_sent,
        email_id=reminder.email_id,
        notification_id=reminder.notification_id,
        message=reminder.message,
        sent_at=reminder.sent_at,
    )


def scheduled_reminder_type(
    today: date, settings: ReminderSettingsModel
) -> tuple[date, str | None]:
    """Reminder type the daily run sends today.

    The due date is the configured day of the current month, capped
    at the 28th. A friendly reminder goes out the configured number of
    days before, a due-date reminder on the day, and past-due
    reminders 3, 7 and 14 days after when those intervals are enabled.

    Returns:
        Tuple of (due date, reminder type or None).
    """
    due_date = month_start(today) + timedelta(days=min(settings.due_day_of_month, 28) - 1)
    days_until_due = (due_date - today).days

    if settings.friendly_reminder_days_before > 0 and (
        days_until_due == settings.friendly_reminder_days_before
    ):
        return due_date, "friendly"
    if days_until_due == 0:
        return due_date, "due_date"

    days_past_due = -days_until_due
    if days_past_due in PAST_DUE_TYPES and days_past_due in settings.past_due_intervals:
        return due_date, PAST_DUE_TYPES[days_past_due]
    return due_date, None


class ReminderService:
    """Service for payment reminders.

    Attributes:
        _db: Async database session.
        _email: Email channel used for reminder emails.
        _email_settings: Sender name and app URL for email content.
    """

    def __init__(
        self,
        db: AsyncSession,
        email_channel: EmailChannel | None = None,
        settings_service: TutorSettingsService | None = None,
        email_settings: EmailSettings | None = None,
    ):
        self._db = db
        self._email_settings = email_settings or get_settings().email
        self._email = email_channel or EmailChannel(self._email_settings)
        self._notifications = NotificationService(db, email_channel=self._email)
        self._settings_service = settings_service or TutorSettingsService(db)

    # =========================================================================
    # Manual reminders
    # =========================================================================

    async def can_send_reminder(
        self,
        payment_id: str,
        reminder_type: str,
        now: datetime | None = None,
    ) -> CanSendResponse:
        """Check the once-per-day rule for a payment and reminder type."""
        if await self._sent_today(payment_id, reminder_type, now):
            return CanSendResponse(can_send=False, reason=ALREADY_SENT_TODAY)
        return CanSendResponse(can_send=True)

    async def send_reminder(self, request: ReminderSendRequest) -> ReminderSendResponse:
        """Email a family about an outstanding payment.

        Families that opted out of payment notifications or have no email
        address are skipped successfully. An email failure does not
        prevent the notification and the reminder log.

        Raises:
            ReminderPaymentNotFoundError: If the payment does not exist.
            DuplicateReminderError: If this reminder was already sent today.
        """
        result = await self._db.execute(
            select(Payment)
            .options(selectinload(Payment.parent).selectinload(Parent.students))
            .where(Payment.id == request.payment_id)
        )
        payment = result.scalar_one_or_none()
        if not payment or not payment.parent:
            raise ReminderPaymentNotFoundError("Payment not found")

        parent = payment.parent
        if not parent.payment_notifications_enabled:
            logger.info("Parent %s disabled payment notifications, skipping", parent.id)
            return ReminderSendResponse(
                success=True,
                message="Parent has disabled payment notifications, skipped",
                skipped=True,
            )

        if not parent.email:
            logger.info("Parent %s has no email address, skipping", parent.id)
            return ReminderSendResponse(
                success=True,
                message="Parent has no email, skipped",
                skipped=True,
            )

        if await self._sent_today(payment.id, request.reminder_type):
            raise DuplicateReminderError("Reminder of this type already sent today")

        lessons = await self._unpaid_lessons(payment.id, request.lesson_ids)
        month_display = format_month(payment.month)
        balance_due = payment.balance_due
        config = get_reminder_config(request.reminder_type, month_display, balance_due)
        payments_url = self._email_settings.app_url.rstrip("/") + PAYMENTS_ACTION_URL

        html_body, text_body = render_reminder_email(
            config,
            parent_name=parent.name,
            student_names=[s.name for s in parent.students],
            lessons=lessons,
            balance_due=balance_due,
            payments_url=payments_url,
            business_name=self._email_settings.business_name,
            custom_message=request.custom_message,
        )

        email_id: str | None = None
        email_sent = False
        try:
            email_id = await self._email.send_email(
                to=parent.email,
                subject=f"{config.subject} - {self._email_settings.business_name}",
                html=html_body,
                text=text_body,
            )
            email_sent = True
        except EmailDeliveryError as e:
            logger.warning("Reminder email for payment %s failed: %s", payment.id, e.message)

        results = await self._notifications.send(
            NotificationPayload(
                notification_type=NOTIFICATION_TYPE,
                title=config.notification_title,
                message=balance_message(month_display, balance_due),
                recipient_id=parent.id,
                priority=config.priority,
                data=self._notification_data(payment, request.reminder_type),
                action_url=PAYMENTS_ACTION_URL,
            ),
            channels=(ChannelType.IN_APP,),
        )
        in_app = results.get(ChannelType.IN_APP)
        notification_id = in_app.message_id if in_app and in_app.is_sent else None

        reminder = PaymentReminder(
            id=generate_uuid(),
            payment_id=payment.id,
            parent_id=parent.id,
            reminder_type=request.reminder_type,
            email_sent=email_sent,
            email_id=email_id,
            notification_id=notification_id,
            message=request.custom_message,
        )
        self._db.add(reminder)
        try:
            await self._db.commit()
        except IntegrityError as e:
            await self._db.rollback()
            raise DuplicateReminderError("Reminder of this type already sent today") from e

        logger.info(
            "Reminder %s logged for payment %s (type=%s, email_sent=%s)",
            reminder.id,
            payment.id,
            request.reminder_type,
            email_sent,
        )

        return ReminderSendResponse(
            success=True,
            message=(
                f"Reminder email sent to {parent.email}"
                if email_sent
                else "Reminder logged but email failed to send"
            ),
            email_id=email_id,
            email_sent=email_sent,
            notification_id=notification_id,
            reminder_id=reminder.id,
        )

    # =========================================================================
    # History
    # =========================================================================

    async def get_reminder_history(self, payment_id: str) -> list[ReminderResponse]:
        """Reminders of a payment, newest first."""
        result = await self._db.execute(
            select(PaymentReminder)
            .where(PaymentReminder.payment_id == payment_id)
            .order_by(PaymentReminder.sent_at.desc())
        )
        return [reminder_to_response(r) for r in result.scalars().all()]

    async def get_reminder_summary(self, payment_id: str) -> ReminderSummaryResponse:
        history = await self.get_reminder_history(payment_id)
        last = history[0] if history else None
        return ReminderSummaryResponse(
            payment_id=payment_id,
            total_reminders=len(history),
            last_sent_at=last.sent_at if last else None,
            last_reminder_type=last.reminder_type if last else None,
            counts_by_type=dict(Counter(r.reminder_type for r in history)),
        )

    async def get_reminders_for_payments(self, payment_ids: list[str]) -> ReminderBatchResponse:
        """Reminder history of several payments, grouped by payment."""
        if not payment_ids:
            return ReminderBatchResponse()

        result = await self._db.execute(
            select(PaymentReminder)
            .where(PaymentReminder.payment_id.in_(payment_ids))
            .order_by(PaymentReminder.sent_at.desc())
        )
        grouped: dict[str, list[ReminderResponse]] = defaultdict(list)
        for reminder in result.scalars().all():
            grouped[reminder.payment_id].append(reminder_to_response(reminder))
        return ReminderBatchResponse(reminders=dict(grouped))

    # =========================================================================
    # Daily run
    # =========================================================================

    async def run_scheduled_reminders(
        self, today: date | None = None
    ) -> ScheduledReminderRunResponse:
        """Create today's automatic reminders.

        Only unsettled invoices of the current month are considered.
        Families that opted out and payments already reminded today with
        the same type are skipped. A failure on one payment is counted
        and the run continues.
        """
        today = today or utc_now().date()
        run = ScheduledReminderRunResponse(run_date=today)

        settings = await self._settings_service.get_reminder_settings()
        if not settings.enabled:
            logger.info("Automatic reminders disabled, nothing to do")
            return run

        due_date, reminder_type = scheduled_reminder_type(today, settings)
        if reminder_type is None:
            logger.info("No reminder due on %s (due date %s)", today, due_date)
            return run
        run.reminder_type = reminder_type

        result = await self._db.execute(
            select(Payment)
            .options(selectinload(Payment.parent))
            .where(
                Payment.payment_type == "invoice",
                Payment.status.in_(("unpaid", "partial")),
                Payment.month == month_start(today),
            )
        )
        due_payments = [
            _DuePayment(
                payment_id=p.id,
                parent_id=p.parent_id,
                month=p.month,
                amount_due=float(p.amount_due or 0),
                amount_paid=float(p.amount_paid or 0),
            )
            for p in result.scalars().all()
            if p.parent is not None and p.parent.payment_notifications_enabled
        ]

        # Rows are stamped within the run day, which may be in the past.
        sent_at = datetime.combine(today, utc_now().time(), tzinfo=timezone.utc)
        for due in due_payments:
            try:
                if await self._sent_today(due.payment_id, reminder_type, sent_at):
                    continue
                created = await self._create_scheduled_reminder(
                    due, reminder_type, settings.send_notification, sent_at
                )
                await self._db.commit()
            except (SQLAlchemyError, ReminderServiceError):
                await self._db.rollback()
                run.errors_count += 1
                logger.exception("Scheduled reminder failed for payment %s", due.payment_id)
                continue

            run.reminders_created += 1
            if created:
                run.notifications_created += 1

        logger.info(
            "Scheduled reminders for %s (%s): %d reminders, %d notifications, %d errors",
            today,
            reminder_type,
            run.reminders_created,
            run.notifications_created,
            run.errors_count,
        )
        return run

    async def _create_scheduled_reminder(
        self,
        due: _DuePayment,
        reminder_type: str,
        send_notification: bool,
        sent_at: datetime,
    ) -> bool:
        """Add the notification and reminder rows; returns whether a notification was made.

        Raises:
            ReminderNotificationError: If the in-app notification was not created.
        """
        notification_id = None
        if send_notification:
            results = await self._notifications.send(
                NotificationPayload(
                    notification_type=NOTIFICATION_TYPE,
                    title=SCHEDULED_NOTIFICATION_TITLES[reminder_type],
                    message=balance_message(format_month(due.month), due.balance_due),
                    recipient_id=due.parent_id,
                    priority="high" if reminder_type in HIGH_PRIORITY_TYPES else "normal",
                    data={
                        "payment_id": due.payment_id,
                        "amount_due": due.amount_due,
                        "amount_paid": due.amount_paid,
                        "balance_due": due.balance_due,
                        "month": due.month.isoformat(),
                        "reminder_type": reminder_type,
                    },
                    action_url=PAYMENTS_ACTION_URL,
                ),
                channels=(ChannelType.IN_APP,),
            )
            in_app = results.get(ChannelType.IN_APP)
            if in_app is None or not in_app.is_sent:
                raise ReminderNotificationError(
                    in_app.error_message if in_app else "Notification not created"
                )
            notification_id = in_app.message_id

        self._db.add(
            PaymentReminder(
                id=generate_uuid(),
                payment_id=due.payment_id,
                parent_id=due.parent_id,
                reminder_type=reminder_type,
                email_sent=False,
                notification_id=notification_id,
                sent_at=sent_at,
            )
        )
        return notification_id is not None

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _sent_today(
        self, payment_id: str, reminder_type: str, now: datetime | None = None
    ) -> bool:
        start, end = utc_day_bounds(now)
        result = await self._db.execute(
            select(PaymentReminder.id)
            .where(
                PaymentReminder.payment_id == payment_id,
                PaymentReminder.reminder_type == reminder_type,
                PaymentReminder.sent_at >= start,
                PaymentReminder.sent_at < end,
            )
            .limit(1)
        )
        return result.scalar_one_or_none() is not None

    async def _unpaid_lessons(
        self, payment_id: str, lesson_ids: list[str] | None
    ) -> list[ReminderLessonLine]:
        result = await self._db.execute(
            select(PaymentLesson)
            .options(selectinload(PaymentLesson.lesson).selectinload(ScheduledLesson.student))
            .where(PaymentLesson.payment_id == payment_id, PaymentLesson.paid.is_(False))
        )
        links = [link for link in result.scalars().all() if link.lesson is not None]
        if lesson_ids:
            wanted = set(lesson_ids)
            links = [link for link in links if link.id in wanted or link.lesson_id in wanted]

        lines = [
            ReminderLessonLine(
                scheduled_at=link.lesson.scheduled_at,
                subject=link.lesson.subject,
                student_name=link.lesson.student.name if link.lesson.student else "Unknown",
                amount=float(link.amount or 0),
            )
            for link in links
        ]
        return sorted(lines, key=lambda line: line.scheduled_at)

    def _notification_data(self, payment: Payment, reminder_type: str) -> dict:
        return {
            "payment_id": payment.id,
            "amount_due": float(payment.amount_due or 0),
            "amount_paid": float(payment.amount_paid or 0),
            "balance_due": payment.balance_due,
            "month": payment.month.isoformat(),
            "reminder_type": reminder_type,
        }

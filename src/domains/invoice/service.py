# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Invoice service for lesson-based billing.

This module provides the InvoiceService that handles:
- Finding completed lessons that have not been billed yet
- Previewing and generating monthly invoices from those lessons
- The monthly overview of scheduled, billable, invoiced and paid lessons

An invoice is a Payment of type "invoice" plus one PaymentLesson row
per billed lesson holding the amount charged for it. A lesson can be
billed at most once.

Example:
    >>> invoice_service = InvoiceService(db_session)
    >>> preview = await invoice_service.preview_invoice(parent_id, date(2026, 3, 1))
    >>> result = await invoice_service.quick_invoice(parent_id, date(2026, 3, 1))
"""

import logging
from datetime import date

from sqlalchemy import exists, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.domains.billing.rates import RateTable, calculate_lesson_amount, round_money
from src.domains.billing.service import TutorSettingsService
from src.domains.payment.service import PaymentService, payment_to_response
from src.infrastructure.database.models import (
    Parent,
    Payment,
    PaymentLesson,
    ScheduledLesson,
    Student,
)
from src.infrastructure.database.models.base import generate_uuid
from src.models.payment import (
    FamilyLessonSummary,
    InvoiceGenerateRequest,
    InvoiceLesson,
    InvoicePreview,
    InvoiceResult,
    LessonSummaryDetail,
    MonthlyLessonSummary,
)
from src.utils.datetime import month_bounds, month_start

logger = logging.getLogger(__name__)

UNKNOWN_STUDENT = "Unknown"
INVOICE_EXISTS_MESSAGE = (
    "A payment record already exists for this family and month. "
    "Please edit the existing payment instead."
)


class InvoiceServiceError(Exception):
    """Base exception for invoice service errors."""

    pass


class InvoiceParentNotFoundError(InvoiceServiceError):
    """Raised when the family does not exist."""

    pass


class InvoiceExistsError(InvoiceServiceError):
    """Raised when the family already has an invoice for the month."""

    pass


class NothingToInvoiceError(InvoiceServiceError):
    """Raised when there are no lessons to bill."""

    pass


class InvoiceService:
    """Service for turning completed lessons into invoices.

    Attributes:
        _db: Async database session.
        _settings_service: Source of the tutor's rate table.
    """

    def __init__(
        self,
        db: AsyncSession,
        settings_service: TutorSettingsService | None = None,
    ):
        self._db = db
        self._settings_service = settings_service or TutorSettingsService(db)

    async def get_uninvoiced_lessons(
        self,
        parent_id: str,
        month: date,
        rate_table: RateTable | None = None,
    ) -> list[InvoiceLesson]:
        """Completed, unbilled lessons of a family's students in a month.

        Args:
            parent_id: Family being billed.
            month: Any day of the billing month.
            rate_table: Rate table to price with, loaded when omitted.

        Returns:
            Priced lessons in calendar order.
        """
        table = rate_table or await self._settings_service.get_rate_table()
        start, end = month_bounds(month)

        result = await self._db.execute(
            select(ScheduledLesson)
            .join(Student, Student.id == ScheduledLesson.student_id)
            .options(selectinload(ScheduledLesson.student))
            .where(
                Student.parent_id == parent_id,
                ScheduledLesson.status == "completed",
                ScheduledLesson.scheduled_at >= start,
                ScheduledLesson.scheduled_at < end,
                ~exists().where(PaymentLesson.lesson_id == ScheduledLesson.id),
            )
            .order_by(ScheduledLesson.scheduled_at.asc())
        )
        lessons = result.scalars().all()

        return [self._price_lesson(lesson, table) for lesson in lessons]

    async def preview_invoice(
        self,
        parent_id: str,
        month: date,
        lesson_ids: list[str] | None = None,
    ) -> InvoicePreview:
        """What an invoice would contain.

        Args:
            parent_id: Family being billed.
            month: Any day of the billing month.
            lesson_ids: Bill only these lessons; all unbilled lessons when None.

        Raises:
            InvoiceParentNotFoundError: If the family does not exist.
        """
        parent = await self._get_parent(parent_id)
        if not parent:
            raise InvoiceParentNotFoundError(f"Parent {parent_id} not found")

        lessons = await self.get_uninvoiced_lessons(parent_id, month)
        if lesson_ids is not None:
            selected = set(lesson_ids)
            lessons = [lesson for lesson in lessons if lesson.id in selected]

        return InvoicePreview(
            parent_id=parent.id,
            parent_name=parent.name,
            month=month_start(month),
            lessons=lessons,
            single_lessons=[lesson for lesson in lessons if not lesson.is_combined_session],
            combined_sessions=[lesson for lesson in lessons if lesson.is_combined_session],
            total_amount=round_money(sum(lesson.amount for lesson in lessons)),
            total_lessons=len(lessons),
            total_minutes=sum(lesson.duration_min for lesson in lessons),
        )

    async def generate_invoice(self, request: InvoiceGenerateRequest) -> InvoiceResult:
        """Create an unpaid invoice and link the billed lessons.

        Raises:
            InvoiceParentNotFoundError: If the family does not exist.
            NothingToInvoiceError: If no lessons are selected.
            InvoiceExistsError: If the family already has an invoice for the month.
        """
        preview = await self.preview_invoice(request.parent_id, request.month, request.lesson_ids)
        if not preview.lessons:
            raise NothingToInvoiceError("No lessons to invoice")

        month = month_start(request.month)
        existing = await PaymentService(self._db).find_payment(request.parent_id, month)
        if existing:
            raise InvoiceExistsError(INVOICE_EXISTS_MESSAGE)

        count = preview.total_lessons
        payment = Payment(
            id=generate_uuid(),
            parent_id=request.parent_id,
            month=month,
            amount_due=preview.total_amount,
            amount_paid=0,
            status="unpaid",
            notes=request.notes or f"Auto-generated invoice for {count} lesson(s)",
            payment_type="invoice",
        )
        self._db.add(payment)
        for lesson in preview.lessons:
            self._db.add(
                PaymentLesson(
                    payment_id=payment.id,
                    lesson_id=lesson.id,
                    amount=lesson.amount,
                    paid=False,
                )
            )

        try:
            await self._db.commit()
        except IntegrityError as e:
            await self._db.rollback()
            raise InvoiceExistsError(INVOICE_EXISTS_MESSAGE) from e
        await self._db.refresh(payment)

        logger.info(
            "Invoice generated: %s (parent=%s, lessons=%d, total=%.2f)",
            payment.id,
            request.parent_id,
            count,
            preview.total_amount,
        )

        return InvoiceResult(
            payment=payment_to_response(payment),
            lessons=preview.lessons,
            total_amount=preview.total_amount,
            total_lessons=count,
        )

    async def quick_invoice(self, parent_id: str, month: date) -> InvoiceResult:
        """Invoice every unbilled completed lesson of the month.

        Raises:
            InvoiceParentNotFoundError: If the family does not exist.
            InvoiceExistsError: If the month is already invoiced.
            NothingToInvoiceError: If there is nothing to bill, with the reason.
        """
        month = month_start(month)
        parent = await self._get_parent(parent_id)
        if not parent:
            raise InvoiceParentNotFoundError(f"Parent {parent_id} not found")

        if await PaymentService(self._db).find_payment(parent_id, month):
            raise InvoiceExistsError(INVOICE_EXISTS_MESSAGE)

        student_count = await self._db.execute(
            select(func.count(Student.id)).where(Student.parent_id == parent_id)
        )
        if not student_count.scalar():
            raise NothingToInvoiceError("No students found for this parent")

        start, end = month_bounds(month)
        completed_count = await self._db.execute(
            select(func.count(ScheduledLesson.id))
            .join(Student, Student.id == ScheduledLesson.student_id)
            .where(
                Student.parent_id == parent_id,
                ScheduledLesson.status == "completed",
                ScheduledLesson.scheduled_at >= start,
                ScheduledLesson.scheduled_at < end,
            )
        )
        if not completed_count.scalar():
            raise NothingToInvoiceError("No uninvoiced lessons found for this month")

        lessons = await self.get_uninvoiced_lessons(parent_id, month)
        if not lessons:
            raise NothingToInvoiceError("All completed lessons are already invoiced")

        return await self.generate_invoice(
            InvoiceGenerateRequest(
                parent_id=parent_id,
                month=month,
                lesson_ids=[lesson.id for lesson in lessons],
                notes=f"Quick invoice for {len(lessons)} lesson(s)",
            )
        )

    async def get_monthly_lesson_summary(self, month: date) -> MonthlyLessonSummary:
        """Lesson and billing state of every family for a month.

        Scheduled and completed lessons count towards the expected
        amount; completed lessons split into billable (not invoiced),
        invoiced (on an unsettled invoice) and paid. Billed lessons use
        the amount stored on the invoice. Families without lessons in
        the month are left out.
        """
        month = month_start(month)
        table = await self._settings_service.get_rate_table()
        start, end = month_bounds(month)

        result = await self._db.execute(
            select(ScheduledLesson)
            .options(selectinload(ScheduledLesson.student).selectinload(Student.parent))
            .where(
                ScheduledLesson.scheduled_at >= start,
                ScheduledLesson.scheduled_at < end,
            )
            .order_by(ScheduledLesson.scheduled_at.asc())
        )
        lessons = result.scalars().all()

        links: dict[str, PaymentLesson] = {}
        lesson_ids = [lesson.id for lesson in lessons]
        if lesson_ids:
            link_result = await self._db.execute(
                select(PaymentLesson)
                .options(selectinload(PaymentLesson.payment))
                .where(PaymentLesson.lesson_id.in_(lesson_ids))
            )
            links = {link.lesson_id: link for link in link_result.scalars().all()}

        families: dict[str, FamilyLessonSummary] = {}
        sessions_seen: dict[str, set[str]] = {}

        for lesson in lessons:
            student = lesson.student
            if student is None or student.parent is None:
                continue
            parent = student.parent
            summary = families.get(parent.id)
            if summary is None:
                summary = FamilyLessonSummary(
                    parent_id=parent.id,
                    parent_name=parent.name,
                    parent_email=parent.email,
                    billing_mode=parent.billing_mode,
                )
                families[parent.id] = summary
                sessions_seen[parent.id] = set()

            link = links.get(lesson.id)
            priced = calculate_lesson_amount(
                table,
                lesson.subject,
                lesson.duration_min,
                is_combined_session=lesson.is_combined_session,
                override_amount=lesson.override_amount,
            )
            amount = round_money(link.amount) if link is not None else priced.amount

            payment_status = "none"
            if link is not None:
                paid = link.paid or (link.payment is not None and link.payment.status == "paid")
                payment_status = "paid" if paid else "invoiced"

            summary.lessons.append(
                LessonSummaryDetail(
                    id=lesson.id,
                    student_id=lesson.student_id,
                    student_name=student.name or UNKNOWN_STUDENT,
                    subject=lesson.subject,
                    scheduled_at=lesson.scheduled_at,
                    duration_min=lesson.duration_min,
                    status=lesson.status,
                    amount=amount,
                    is_combined_session=lesson.is_combined_session,
                    session_id=lesson.session_id,
                    payment_status=payment_status,
                    payment_id=link.payment_id if link is not None else None,
                )
            )

            if lesson.is_combined_session:
                if lesson.session_id not in sessions_seen[parent.id]:
                    sessions_seen[parent.id].add(lesson.session_id)
                    summary.combined_session_count += 1
                summary.combined_session_amount += amount

            if lesson.status == "cancelled":
                summary.cancelled_count += 1
            elif lesson.status == "scheduled":
                summary.scheduled_count += 1
                summary.scheduled_amount += amount
                summary.expected_amount += amount
            elif lesson.status == "completed":
                if payment_status == "paid":
                    summary.paid_count += 1
                    summary.paid_amount += amount
                elif payment_status == "invoiced":
                    summary.invoiced_count += 1
                    summary.invoiced_amount += amount
                else:
                    summary.completed_count += 1
                    summary.completed_amount += amount
                summary.expected_amount += amount

        overview = MonthlyLessonSummary(month=month)
        for summary in sorted(families.values(), key=lambda f: f.parent_name.lower()):
            for field in (
                "scheduled_amount",
                "completed_amount",
                "invoiced_amount",
                "paid_amount",
                "expected_amount",
                "combined_session_amount",
            ):
                setattr(summary, field, round_money(getattr(summary, field)))
            overview.families.append(summary)
            overview.total_scheduled += summary.scheduled_count
            overview.total_completed += summary.completed_count
            overview.total_invoiced += summary.invoiced_count
            overview.total_paid += summary.paid_count
            overview.total_cancelled += summary.cancelled_count
            overview.total_expected_amount += summary.expected_amount
            overview.total_billable_amount += summary.completed_amount
            overview.total_invoiced_amount += summary.invoiced_amount
            overview.total_collected_amount += summary.paid_amount

        overview.total_expected_amount = round_money(overview.total_expected_amount)
        overview.total_billable_amount = round_money(overview.total_billable_amount)
        overview.total_invoiced_amount = round_money(overview.total_invoiced_amount)
        overview.total_collected_amount = round_money(overview.total_collected_amount)

        return overview

    def _price_lesson(self, lesson: ScheduledLesson, table: RateTable) -> InvoiceLesson:
        priced = calculate_lesson_amount(
            table,
            lesson.subject,
            lesson.duration_min,
            is_combined_session=lesson.is_combined_session,
            override_amount=lesson.override_amount,
        )
        return InvoiceLesson(
            id=lesson.id,
            student_id=lesson.student_id,
            student_name=lesson.student.name if lesson.student else UNKNOWN_STUDENT,
            subject=lesson.subject,
            scheduled_at=lesson.scheduled_at,
            duration_min=lesson.duration_min,
            amount=priced.amount,
            rate=priced.rate,
            base_duration=priced.base_duration,
            rate_display=priced.rate_display,
            formula=priced.formula,
            is_combined_session=priced.is_combined_session,
            session_id=lesson.session_id,
        )

    async def _get_parent(self, parent_id: str) -> Parent | None:
        result = await self._db.execute(select(Parent).where(Parent.id == parent_id))
        return result.scalar_one_or_none()

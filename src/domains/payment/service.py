# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment service for monthly family billing records.

This module provides the PaymentService that handles:
- Payment CRUD operations (one record per family, month, type and subject)
- Marking payments paid, including their billed lessons
- Overdue detection and monthly collection summaries

Example:
    >>> payment_service = PaymentService(db_session)
    >>> payment = await payment_service.create_payment(request)
    >>> summary = await payment_service.get_payment_summary(date(2026, 3, 1))
"""

import logging
from datetime import date

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.domains.billing.rates import derive_payment_status, round_money
from src.infrastructure.database.models import (
    Parent,
    Payment,
    PaymentLesson,
    ScheduledLesson,
)
from src.models.payment import (
    PaymentCreateRequest,
    PaymentLessonDetail,
    PaymentListResponse,
    PaymentResponse,
    PaymentSummaryResponse,
    PaymentUpdateRequest,
    PaymentWithLessonsResponse,
)
from src.utils.datetime import month_start, utc_now

logger = logging.getLogger(__name__)

DEFAULT_DUE_DAY = 7
DUPLICATE_PAYMENT_MESSAGE = "A payment record already exists for this family and month"


class PaymentServiceError(Exception):
    """Base exception for payment service errors."""

    pass


class PaymentNotFoundError(PaymentServiceError):
    """Raised when a payment is not found."""

    pass


class PaymentExistsError(PaymentServiceError):
    """Raised when a family already has a payment for the month."""

    pass


class PaymentParentNotFoundError(PaymentServiceError):
    """Raised when the billed family does not exist."""

    pass


def payment_to_response(payment: Payment, parent: Parent | None = None) -> PaymentResponse:
    """Build the API view of a payment.

    Args:
        payment: Payment row.
        parent: Billed family, when loaded.

    Returns:
        PaymentResponse with the balance derived from the amounts.
    """
    return PaymentResponse(
        id=payment.id,
        parent_id=payment.parent_id,
        parent_name=parent.name if parent else None,
        parent_email=parent.email if parent else None,
        month=payment.month,
        amount_due=round_money(payment.amount_due or 0),
        amount_paid=round_money(payment.amount_paid or 0),
        balance_due=payment.balance_due,
        status=payment.status,
        paid_at=payment.paid_at,
        notes=payment.notes,
        payment_type=payment.payment_type,
        subject=payment.subject,
        sessions_prepaid=payment.sessions_prepaid,
        sessions_used=payment.sessions_used or 0,
        sessions_rolled_over=payment.sessions_rolled_over or 0,
        created_at=payment.created_at,
    )


class PaymentService:
    """Service for payment records.

    Attributes:
        _db: Async database session.
    """

    def __init__(self, db: AsyncSession):
        self._db = db

    async def create_payment(
        self,
        request: PaymentCreateRequest,
        payment_type: str = "invoice",
    ) -> PaymentResponse:
        """Record a payment for a family and month.

        Raises:
            PaymentParentNotFoundError: If the family does not exist.
            PaymentExistsError: If a record already exists for the month.
        """
        parent = await self._get_parent(request.parent_id)
        if not parent:
            raise PaymentParentNotFoundError(f"Parent {request.parent_id} not found")

        month = month_start(request.month)
        if await self.find_payment(request.parent_id, month, payment_type, request.subject):
            raise PaymentExistsError(DUPLICATE_PAYMENT_MESSAGE)

        amount_due = round_money(request.amount_due)
        amount_paid = round_money(request.amount_paid)
        status = request.status or derive_payment_status(amount_due, amount_paid)

        payment = Payment(
            parent_id=request.parent_id,
            month=month,
            amount_due=amount_due,
            amount_paid=amount_paid,
            status=status,
            paid_at=utc_now() if status == "paid" else None,
            notes=request.notes,
            payment_type=payment_type,
            subject=request.subject,
        )

        self._db.add(payment)
        try:
            await self._db.commit()
        except IntegrityError as e:
            await self._db.rollback()
            raise PaymentExistsError(DUPLICATE_PAYMENT_MESSAGE) from e
        await self._db.refresh(payment)

        logger.info(
            "Payment created: %s (parent=%s, month=%s, status=%s)",
            payment.id,
            payment.parent_id,
            payment.month,
            payment.status,
        )

        return payment_to_response(payment, parent)

    async def update_payment(
        self, payment_id: str, request: PaymentUpdateRequest
    ) -> PaymentResponse:
        """Update amounts, status or notes.

        When amount_paid changes without an explicit status the status is
        recomputed. paid_at follows the status: set when it becomes paid,
        cleared when it becomes unpaid.

        Raises:
            PaymentNotFoundError: If the payment does not exist.
        """
        payment = await self._get_by_id(payment_id)
        if not payment:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")

        update_data = request.model_dump(exclude_unset=True)
        previous_status = payment.status

        if update_data.get("amount_due") is not None:
            payment.amount_due = round_money(update_data["amount_due"])
        if update_data.get("amount_paid") is not None:
            payment.amount_paid = round_money(update_data["amount_paid"])
        if "notes" in update_data:
            payment.notes = update_data["notes"]

        if update_data.get("status"):
            payment.status = update_data["status"]
        elif "amount_paid" in update_data or "amount_due" in update_data:
            payment.status = derive_payment_status(payment.amount_due, payment.amount_paid)

        if update_data.get("paid_at") is not None:
            payment.paid_at = update_data["paid_at"]
        elif payment.status == "paid" and previous_status != "paid":
            payment.paid_at = utc_now()
        elif payment.status == "unpaid":
            payment.paid_at = None

        await self._db.commit()
        await self._db.refresh(payment)

        logger.info("Payment updated: %s (status=%s)", payment.id, payment.status)

        return payment_to_response(payment, payment.parent)

    async def mark_payment_paid(
        self, payment_id: str, notes: str | None = None
    ) -> PaymentResponse:
        """Settle a payment in full and flag its billed lessons as paid.

        Raises:
            PaymentNotFoundError: If the payment does not exist.
        """
        payment = await self._get_by_id(payment_id)
        if not payment:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")

        payment.amount_paid = payment.amount_due
        payment.status = "paid"
        payment.paid_at = utc_now()
        if notes is not None:
            payment.notes = notes

        await self._db.execute(
            update(PaymentLesson)
            .where(PaymentLesson.payment_id == payment_id)
            .values(paid=True)
        )
        await self._db.commit()
        await self._db.refresh(payment)

        logger.info("Payment marked paid: %s", payment.id)

        return payment_to_response(payment, payment.parent)

    async def delete_payment(self, payment_id: str) -> None:
        """Delete a payment; its lesson links go with it."""
        payment = await self._get_by_id(payment_id)
        if not payment:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")

        await self._db.delete(payment)
        await self._db.commit()

        logger.info("Payment deleted: %s", payment_id)

    async def get_payment(self, payment_id: str) -> PaymentResponse:
        payment = await self._get_by_id(payment_id)
        if not payment:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")
        return payment_to_response(payment, payment.parent)

    async def get_payment_with_lessons(self, payment_id: str) -> PaymentWithLessonsResponse:
        """Get a payment with the lessons it bills.

        Raises:
            PaymentNotFoundError: If the payment does not exist.
        """
        payment = await self._get_by_id(payment_id)
        if not payment:
            raise PaymentNotFoundError(f"Payment {payment_id} not found")

        result = await self._db.execute(
            select(PaymentLesson)
            .options(
                selectinload(PaymentLesson.lesson).selectinload(ScheduledLesson.student)
            )
            .where(PaymentLesson.payment_id == payment_id)
        )
        links = result.scalars().all()

        lessons = []
        for link in links:
            lesson = link.lesson
            lessons.append(
                PaymentLessonDetail(
                    id=link.id,
                    lesson_id=link.lesson_id,
                    amount=round_money(link.amount),
                    paid=link.paid,
                    subject=lesson.subject if lesson else None,
                    scheduled_at=lesson.scheduled_at if lesson else None,
                    duration_min=lesson.duration_min if lesson else None,
                    status=lesson.status if lesson else None,
                    student_id=lesson.student_id if lesson else None,
                    student_name=lesson.student.name if lesson and lesson.student else None,
                )
            )
        lessons.sort(key=lambda item: (item.scheduled_at is None, item.scheduled_at))

        base = payment_to_response(payment, payment.parent)
        return PaymentWithLessonsResponse(**base.model_dump(), lessons=lessons)

    async def list_payments(
        self,
        month: date | None = None,
        status: str | None = None,
        parent_id: str | None = None,
        payment_type: str | None = None,
    ) -> PaymentListResponse:
        """List payments, newest month first."""
        stmt = select(Payment).options(selectinload(Payment.parent))
        if month is not None:
            stmt = stmt.where(Payment.month == month_start(month))
        if status:
            stmt = stmt.where(Payment.status == status)
        if parent_id:
            stmt = stmt.where(Payment.parent_id == parent_id)
        if payment_type:
            stmt = stmt.where(Payment.payment_type == payment_type)

        result = await self._db.execute(
            stmt.order_by(Payment.month.desc(), Payment.created_at.desc())
        )
        payments = result.scalars().all()

        return PaymentListResponse(
            items=[payment_to_response(p, p.parent) for p in payments],
            total=len(payments),
        )

    async def get_overdue_payments(
        self,
        today: date | None = None,
        due_day: int = DEFAULT_DUE_DAY,
    ) -> PaymentListResponse:
        """Unsettled payments past their due date.

        A payment of an earlier month is always overdue; the current
        month's payment becomes overdue once today is past the due day.
        """
        today = today or utc_now().date()
        current_month = month_start(today)

        stmt = (
            select(Payment)
            .options(selectinload(Payment.parent))
            .where(Payment.status.in_(("unpaid", "partial")))
        )
        if today.day > due_day:
            stmt = stmt.where(Payment.month <= current_month)
        else:
            stmt = stmt.where(Payment.month < current_month)

        result = await self._db.execute(stmt.order_by(Payment.month.asc()))
        payments = result.scalars().all()

        return PaymentListResponse(
            items=[payment_to_response(p, p.parent) for p in payments],
            total=len(payments),
        )

    async def get_payment_summary(self, month: date) -> PaymentSummaryResponse:
        """Collection totals for one month."""
        month = month_start(month)
        result = await self._db.execute(select(Payment).where(Payment.month == month))
        payments = result.scalars().all()

        total_due = round_money(sum(p.amount_due or 0 for p in payments))
        total_paid = round_money(sum(p.amount_paid or 0 for p in payments))

        return PaymentSummaryResponse(
            month=month,
            total_due=total_due,
            total_paid=total_paid,
            total_outstanding=round_money(total_due - total_paid),
            paid_count=sum(1 for p in payments if p.status == "paid"),
            partial_count=sum(1 for p in payments if p.status == "partial"),
            unpaid_count=sum(1 for p in payments if p.status == "unpaid"),
            total_families=len({p.parent_id for p in payments}),
        )

    async def find_payment(
        self,
        parent_id: str,
        month: date,
        payment_type: str = "invoice",
        subject: str | None = None,
    ) -> Payment | None:
        """Payment of a family for a month, type and subject (None = all)."""
        stmt = select(Payment).where(
            Payment.parent_id == parent_id,
            Payment.month == month_start(month),
            Payment.payment_type == payment_type,
        )
        if subject is None:
            stmt = stmt.where(Payment.subject.is_(None))
        else:
            stmt = stmt.where(Payment.subject == subject)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_by_id(self, payment_id: str) -> Payment | None:
        result = await self._db.execute(
            select(Payment)
            .options(selectinload(Payment.parent))
            .where(Payment.id == payment_id)
        )
        return result.scalar_one_or_none()

    async def _get_parent(self, parent_id: str) -> Parent | None:
        result = await self._db.execute(select(Parent).where(Parent.id == parent_id))
        return result.scalar_one_or_none()

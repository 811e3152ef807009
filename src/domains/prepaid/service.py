# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prepaid plan service.

A prepaid plan is a Payment with payment_type "prepaid": the family buys
a number of sessions for a month, optionally for a single subject.
Unused sessions of the previous month roll over into the new plan.

sessions_prepaid holds the total available for the month, rollover
included; sessions_rolled_over records how many of those were carried.
"""

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.config import BillingSettings, get_settings
from src.domains.billing.rates import (
    calculate_prepaid_usage,
    calculate_rollover,
    derive_payment_status,
    round_money,
    suggested_prepaid_amount,
)
from src.domains.parent.service import ParentService
from src.domains.payment.service import DUPLICATE_PAYMENT_MESSAGE, payment_to_response
from src.infrastructure.database.models import Parent, Payment
from src.models.parent import ParentResponse
from src.models.payment import (
    PrepaidListResponse,
    PrepaidPaymentResponse,
    PrepaidPlanCreateRequest,
    RolloverResponse,
)
from src.utils.datetime import month_start, previous_month, utc_now

logger = logging.getLogger(__name__)


class PrepaidServiceError(Exception):
    """Base exception for prepaid plan errors."""

    pass


class PrepaidPlanNotFoundError(PrepaidServiceError):
    """Raised when a prepaid plan is not found."""

    pass


class PrepaidPlanExistsError(PrepaidServiceError):
    """Raised when the family already has a plan for the month and subject."""

    pass


class PrepaidParentNotFoundError(PrepaidServiceError):
    """Raised when the family does not exist."""

    pass


class PrepaidUpdateError(PrepaidServiceError):
    """Raised when the usage counter cannot be saved."""

    pass


def prepaid_to_response(payment: Payment, parent: Parent | None = None) -> PrepaidPaymentResponse:
    """Payment view with derived usage figures."""
    usage = calculate_prepaid_usage(payment.sessions_used or 0, payment.sessions_prepaid or 0)
    base = payment_to_response(payment, parent)
    return PrepaidPaymentResponse(
        **base.model_dump(),
        sessions_total=usage.total,
        sessions_remaining=usage.remaining,
        over_limit=usage.over_limit,
        usage_percent=usage.usage_percent,
    )


class PrepaidService:
    """Service for prepaid session plans.

    Attributes:
        _db: Async database session.
        _billing: Billing defaults (session price).
    """

    def __init__(self, db: AsyncSession, billing: BillingSettings | None = None):
        self._db = db
        self._billing = billing or get_settings().billing

    async def get_prepaid_payments(self, month: date) -> PrepaidListResponse:
        """All prepaid plans of a month, by family name."""
        result = await self._db.execute(
            select(Payment)
            .options(selectinload(Payment.parent))
            .where(
                Payment.payment_type == "prepaid",
                Payment.month == month_start(month),
            )
        )
        payments = sorted(
            result.scalars().all(),
            key=lambda p: ((p.parent.name if p.parent else ""), p.subject or ""),
        )
        return PrepaidListResponse(
            items=[prepaid_to_response(p, p.parent) for p in payments],
            total=len(payments),
        )

    async def get_prepaid_payment(
        self, parent_id: str, month: date, subject: str | None = None
    ) -> PrepaidPaymentResponse:
        """Plan of a family for a month and subject (None = all subjects).

        Raises:
            PrepaidPlanNotFoundError: If no plan exists.
        """
        payment = await self._find_plan(parent_id, month, subject)
        if not payment:
            raise PrepaidPlanNotFoundError(
                f"No prepaid plan for parent {parent_id} in {month_start(month)}"
            )
        return prepaid_to_response(payment, payment.parent)

    async def get_rollover(
        self, parent_id: str, month: date, subject: str | None = None
    ) -> RolloverResponse:
        """Unused sessions of the previous month's plan."""
        previous = await self._find_plan(parent_id, previous_month(month), subject)
        rollover = 0
        if previous is not None:
            rollover = calculate_rollover(previous.sessions_prepaid, previous.sessions_used)

        return RolloverResponse(
            parent_id=parent_id,
            month=month_start(month),
            subject=subject,
            previous_payment_id=previous.id if previous else None,
            rollover_sessions=rollover,
            suggested_amount_per_session=self._billing.prepaid_session_price,
        )

    async def create_prepaid_plan(
        self, request: PrepaidPlanCreateRequest
    ) -> PrepaidPaymentResponse:
        """Sell a block of sessions for a month.

        Raises:
            PrepaidParentNotFoundError: If the family does not exist.
            PrepaidPlanExistsError: If a plan already exists.
        """
        result = await self._db.execute(select(Parent).where(Parent.id == request.parent_id))
        parent = result.scalar_one_or_none()
        if not parent:
            raise PrepaidParentNotFoundError(f"Parent {request.parent_id} not found")

        month = month_start(request.month)
        if await self._find_plan(request.parent_id, month, request.subject):
            raise PrepaidPlanExistsError(DUPLICATE_PAYMENT_MESSAGE)

        rollover = 0
        if request.include_rollover:
            rollover_info = await self.get_rollover(request.parent_id, month, request.subject)
            rollover = rollover_info.rollover_sessions

        amount_due = (
            round_money(request.amount_due)
            if request.amount_due is not None
            else suggested_prepaid_amount(request.sessions, self._billing.prepaid_session_price)
        )
        amount_paid = round_money(request.amount_paid)
        status = derive_payment_status(amount_due, amount_paid)

        payment = Payment(
            parent_id=request.parent_id,
            month=month,
            amount_due=amount_due,
            amount_paid=amount_paid,
            status=status,
            paid_at=utc_now() if status == "paid" else None,
            notes=request.notes,
            payment_type="prepaid",
            subject=request.subject,
            sessions_prepaid=request.sessions + rollover,
            sessions_used=0,
            sessions_rolled_over=rollover,
        )

        self._db.add(payment)
        try:
            await self._db.commit()
        except IntegrityError as e:
            await self._db.rollback()
            raise PrepaidPlanExistsError(DUPLICATE_PAYMENT_MESSAGE) from e
        await self._db.refresh(payment)

        logger.info(
            "Prepaid plan created: %s (parent=%s, sessions=%d, rollover=%d)",
            payment.id,
            payment.parent_id,
            request.sessions,
            rollover,
        )

        return prepaid_to_response(payment, parent)

    async def update_sessions_used(
        self, payment_id: str, sessions_used: int
    ) -> PrepaidPaymentResponse:
        """Set the usage counter of a plan, clamped at zero.

        Raises:
            PrepaidPlanNotFoundError: If the plan does not exist.
            PrepaidUpdateError: If the update cannot be saved.
        """
        result = await self._db.execute(
            select(Payment)
            .options(selectinload(Payment.parent))
            .where(Payment.id == payment_id, Payment.payment_type == "prepaid")
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise PrepaidPlanNotFoundError(f"Prepaid plan {payment_id} not found")

        payment.sessions_used = max(0, sessions_used)
        try:
            await self._db.commit()
        except IntegrityError as e:
            await self._db.rollback()
            logger.error("Failed to update sessions for %s: %s", payment_id, e)
            raise PrepaidUpdateError("Failed to update sessions count") from e
        await self._db.refresh(payment)

        logger.info("Prepaid usage set: %s -> %d", payment.id, payment.sessions_used)

        return prepaid_to_response(payment, payment.parent)

    async def find_plan_for_lesson(
        self, parent: Parent, when: date | datetime, subject: str
    ) -> Payment | None:
        """Plan that a lesson counts against.

        The subject's own plan wins; the all-subjects plan is used only
        for families without per-subject prepaid billing.
        """
        plan = await self._find_plan(parent.id, when, subject)
        if plan is not None:
            return plan
        if parent.prepaid_subjects:
            return None
        return await self._find_plan(parent.id, when, None)

    async def increment_usage(
        self, parent: Parent, when: date | datetime, subject: str
    ) -> Payment | None:
        """Count one taught session. The caller commits."""
        plan = await self.find_plan_for_lesson(parent, when, subject)
        if plan is None:
            return None
        plan.sessions_used = (plan.sessions_used or 0) + 1
        logger.info("Prepaid usage incremented: %s -> %d", plan.id, plan.sessions_used)
        return plan

    async def decrement_usage(
        self, parent: Parent, when: date | datetime, subject: str
    ) -> Payment | None:
        """Give one session back. The caller commits."""
        plan = await self.find_plan_for_lesson(parent, when, subject)
        if plan is None or (plan.sessions_used or 0) <= 0:
            return None
        plan.sessions_used = plan.sessions_used - 1
        logger.info("Prepaid usage decremented: %s -> %d", plan.id, plan.sessions_used)
        return plan

    async def get_prepaid_parents(self) -> list[ParentResponse]:
        """Families billed with prepaid plans."""
        return await ParentService(self._db).get_prepaid_parents()

    async def _find_plan(
        self, parent_id: str, when: date | datetime, subject: str | None
    ) -> Payment | None:
        stmt = (
            select(Payment)
            .options(selectinload(Payment.parent))
            .where(
                Payment.parent_id == parent_id,
                Payment.month == month_start(when),
                Payment.payment_type == "prepaid",
            )
        )
        if subject is None:
            stmt = stmt.where(Payment.subject.is_(None))
        else:
            stmt = stmt.where(Payment.subject == subject)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

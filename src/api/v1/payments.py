# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment API endpoints.

This module provides endpoints for:
- Recording and editing monthly payments
- Marking payments paid
- Overdue and monthly collection summaries

Example:
    GET /api/v1/payments?month=2026-03-01&status=unpaid
    GET /api/v1/payments/overdue
    POST /api/v1/payments/{payment_id}/mark-paid
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import ensure_self_or_tutor, get_db, require_auth, require_tutor
from src.api.middleware.auth import CurrentUser
from src.domains.billing import TutorSettingsService
from src.domains.payment import (
    PaymentExistsError,
    PaymentNotFoundError,
    PaymentParentNotFoundError,
    PaymentService,
)
from src.models.payment import (
    MarkPaidRequest,
    PaymentCreateRequest,
    PaymentListResponse,
    PaymentResponse,
    PaymentSummaryResponse,
    PaymentUpdateRequest,
    PaymentWithLessonsResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _payment_not_found(payment_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Payment {payment_id} not found",
    )


@router.post(
    "",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record payment",
)
async def create_payment(
    data: PaymentCreateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    """Record a payment for a family and month.

    Raises:
        HTTPException: If the family is unknown or the month is taken.
    """
    service = PaymentService(db)
    try:
        return await service.create_payment(data)
    except PaymentParentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except PaymentExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.get(
    "",
    response_model=PaymentListResponse,
    summary="List payments",
)
async def list_payments(
    month: date | None = Query(None, description="Any day of the billing month"),
    payment_status: str | None = Query(None, alias="status"),
    parent_id: str | None = Query(None),
    payment_type: str | None = Query(None, description="invoice or prepaid"),
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> PaymentListResponse:
    """List payments, newest month first.

    Families only see their own payments.
    """
    if not current_user.is_tutor:
        parent_id = current_user.id

    service = PaymentService(db)
    return await service.list_payments(
        month=month,
        status=payment_status,
        parent_id=parent_id,
        payment_type=payment_type,
    )


@router.get(
    "/overdue",
    response_model=PaymentListResponse,
    summary="List overdue payments",
)
async def list_overdue_payments(
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> PaymentListResponse:
    """Unsettled payments past the due day configured for reminders."""
    reminder_settings = await TutorSettingsService(db).get_reminder_settings(current_user.id)

    service = PaymentService(db)
    return await service.get_overdue_payments(due_day=reminder_settings.due_day_of_month)


@router.get(
    "/summary",
    response_model=PaymentSummaryResponse,
    summary="Monthly collection summary",
)
async def get_payment_summary(
    month: date = Query(..., description="Any day of the month"),
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> PaymentSummaryResponse:
    service = PaymentService(db)
    return await service.get_payment_summary(month)


@router.get(
    "/{payment_id}",
    response_model=PaymentWithLessonsResponse,
    summary="Get payment",
)
async def get_payment(
    payment_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> PaymentWithLessonsResponse:
    """Get a payment with the lessons it bills."""
    service = PaymentService(db)
    try:
        payment = await service.get_payment_with_lessons(payment_id)
    except PaymentNotFoundError:
        raise _payment_not_found(payment_id)

    ensure_self_or_tutor(current_user, payment.parent_id)
    return payment


@router.patch(
    "/{payment_id}",
    response_model=PaymentResponse,
    summary="Update payment",
)
async def update_payment(
    payment_id: str,
    data: PaymentUpdateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    service = PaymentService(db)
    try:
        return await service.update_payment(payment_id, data)
    except PaymentNotFoundError:
        raise _payment_not_found(payment_id)


@router.post(
    "/{payment_id}/mark-paid",
    response_model=PaymentResponse,
    summary="Mark payment paid",
)
async def mark_payment_paid(
    payment_id: str,
    data: MarkPaidRequest | None = None,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> PaymentResponse:
    """Settle a payment in full; its billed lessons become paid."""
    logger.info("Marking payment paid: %s, by=%s", payment_id, current_user.id)

    service = PaymentService(db)
    try:
        return await service.mark_payment_paid(payment_id, notes=data.notes if data else None)
    except PaymentNotFoundError:
        raise _payment_not_found(payment_id)


@router.delete(
    "/{payment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete payment",
)
async def delete_payment(
    payment_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> None:
    service = PaymentService(db)
    try:
        await service.delete_payment(payment_id)
    except PaymentNotFoundError:
        raise _payment_not_found(payment_id)

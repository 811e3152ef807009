# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment reminder API endpoints.

This module provides endpoints for:
- Sending a reminder email for a payment (rate limited)
- Checking whether a reminder may be sent today
- Reminder history per payment and for several payments
- Triggering the automatic reminder run by hand

Example:
    POST /api/v1/reminders/send
    GET /api/v1/reminders/can-send?payment_id=...&reminder_type=manual
    GET /api/v1/reminders/payments/{payment_id}
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_email_channel, require_tutor
from src.api.middleware.auth import CurrentUser
from src.api.middleware.rate_limit import RATE_LIMIT_REMINDERS, limiter
from src.domains.reminder import (
    DuplicateReminderError,
    ReminderPaymentNotFoundError,
    ReminderService,
)
from src.infrastructure.notifications import EmailChannel
from src.models.reminder import (
    CanSendResponse,
    ReminderBatchResponse,
    ReminderResponse,
    ReminderSendRequest,
    ReminderSendResponse,
    ReminderSummaryResponse,
    ReminderType,
    ScheduledReminderRunResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_reminder_service(db: AsyncSession, email_channel: EmailChannel) -> ReminderService:
    return ReminderService(db, email_channel=email_channel)


@router.post(
    "/send",
    response_model=ReminderSendResponse,
    summary="Send payment reminder",
)
@limiter.limit(RATE_LIMIT_REMINDERS)
async def send_reminder(
    request: Request,
    data: ReminderSendRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> ReminderSendResponse:
    """Email a family about an outstanding payment.

    Families that opted out or have no email address are skipped with a
    successful response. A failed email is still logged as a reminder.

    Raises:
        HTTPException: 404 unknown payment, 409 already sent today.
    """
    logger.info(
        "Sending reminder: payment=%s, type=%s, by=%s",
        data.payment_id,
        data.reminder_type,
        current_user.id,
    )

    service = _get_reminder_service(db, email_channel)
    try:
        return await service.send_reminder(data)
    except ReminderPaymentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except DuplicateReminderError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": str(e), "duplicate": True},
        )


@router.get(
    "/can-send",
    response_model=CanSendResponse,
    summary="Check reminder availability",
)
async def can_send_reminder(
    payment_id: str = Query(...),
    reminder_type: ReminderType = Query("manual"),
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> CanSendResponse:
    """Whether a reminder of this type was not yet sent today."""
    service = _get_reminder_service(db, email_channel)
    return await service.can_send_reminder(payment_id, reminder_type)


@router.get(
    "/payments/{payment_id}",
    response_model=list[ReminderResponse],
    summary="Reminder history",
)
async def get_reminder_history(
    payment_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> list[ReminderResponse]:
    service = _get_reminder_service(db, email_channel)
    return await service.get_reminder_history(payment_id)


@router.get(
    "/payments/{payment_id}/summary",
    response_model=ReminderSummaryResponse,
    summary="Reminder summary",
)
async def get_reminder_summary(
    payment_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> ReminderSummaryResponse:
    service = _get_reminder_service(db, email_channel)
    return await service.get_reminder_summary(payment_id)


@router.get(
    "/batch",
    response_model=ReminderBatchResponse,
    summary="Reminder history of several payments",
)
async def get_reminders_for_payments(
    payment_ids: list[str] = Query(..., description="Payment ids"),
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> ReminderBatchResponse:
    service = _get_reminder_service(db, email_channel)
    return await service.get_reminders_for_payments(payment_ids)


@router.post(
    "/run",
    response_model=ScheduledReminderRunResponse,
    summary="Run automatic reminders now",
)
async def run_scheduled_reminders(
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> ScheduledReminderRunResponse:
    """Run today's automatic reminders without waiting for the daily job.

    Payments already reminded today with the same type are skipped, so
    running this twice in a day creates nothing new.
    """
    logger.info("Manual reminder run triggered by %s", current_user.id)

    service = _get_reminder_service(db, email_channel)
    return await service.run_scheduled_reminders()

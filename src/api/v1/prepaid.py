# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Prepaid plan API endpoints.

Example:
    GET /api/v1/prepaid?month=2026-03-01
    GET /api/v1/prepaid/rollover?parent_id=...&month=2026-03-01
    POST /api/v1/prepaid
    PUT /api/v1/prepaid/{payment_id}/sessions-used
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import ensure_self_or_tutor, get_db, require_auth, require_tutor
from src.api.middleware.auth import CurrentUser
from src.domains.prepaid import (
    PrepaidParentNotFoundError,
    PrepaidPlanExistsError,
    PrepaidPlanNotFoundError,
    PrepaidService,
    PrepaidUpdateError,
)
from src.models.parent import ParentResponse
from src.models.payment import (
    PrepaidListResponse,
    PrepaidPaymentResponse,
    PrepaidPlanCreateRequest,
    RolloverResponse,
    SessionsUsedUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=PrepaidListResponse,
    summary="List prepaid plans",
)
async def list_prepaid_plans(
    month: date = Query(..., description="Any day of the month"),
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> PrepaidListResponse:
    service = PrepaidService(db)
    return await service.get_prepaid_payments(month)


@router.get(
    "/parents",
    response_model=list[ParentResponse],
    summary="List prepaid families",
)
async def list_prepaid_parents(
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> list[ParentResponse]:
    service = PrepaidService(db)
    return await service.get_prepaid_parents()


@router.get(
    "/plan",
    response_model=PrepaidPaymentResponse,
    summary="Get family plan",
)
async def get_prepaid_plan(
    parent_id: str = Query(...),
    month: date = Query(...),
    subject: str | None = Query(None, description="Omit for the all-subjects plan"),
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> PrepaidPaymentResponse:
    """Get a family's plan with its usage for a month."""
    ensure_self_or_tutor(current_user, parent_id)

    service = PrepaidService(db)
    try:
        return await service.get_prepaid_payment(parent_id, month, subject)
    except PrepaidPlanNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )


@router.get(
    "/rollover",
    response_model=RolloverResponse,
    summary="Get rollover",
)
async def get_rollover(
    parent_id: str = Query(...),
    month: date = Query(..., description="Month of the new plan"),
    subject: str | None = Query(None),
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> RolloverResponse:
    """Sessions carried over from the previous month's plan."""
    service = PrepaidService(db)
    return await service.get_rollover(parent_id, month, subject)


@router.post(
    "",
    response_model=PrepaidPaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create prepaid plan",
)
async def create_prepaid_plan(
    data: PrepaidPlanCreateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> PrepaidPaymentResponse:
    logger.info(
        "Creating prepaid plan: parent=%s, month=%s, sessions=%d",
        data.parent_id,
        data.month,
        data.sessions,
    )

    service = PrepaidService(db)
    try:
        return await service.create_prepaid_plan(data)
    except PrepaidParentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except PrepaidPlanExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.put(
    "/{payment_id}/sessions-used",
    response_model=PrepaidPaymentResponse,
    summary="Set sessions used",
)
async def update_sessions_used(
    payment_id: str,
    data: SessionsUsedUpdateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> PrepaidPaymentResponse:
    """Correct a plan's usage counter by hand; negative values become zero."""
    service = PrepaidService(db)
    try:
        return await service.update_sessions_used(payment_id, data.sessions_used)
    except PrepaidPlanNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except PrepaidUpdateError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

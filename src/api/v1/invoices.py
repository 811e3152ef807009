# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Invoicing API endpoints.

This module provides endpoints for:
- Listing a family's unbilled completed lessons
- Previewing and generating monthly invoices
- The monthly lesson overview across all families

Example:
    GET /api/v1/invoices/preview?parent_id=...&month=2026-03-01
    POST /api/v1/invoices
    POST /api/v1/invoices/quick
    GET /api/v1/invoices/summary?month=2026-03-01
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_tutor
from src.api.middleware.auth import CurrentUser
from src.domains.invoice import (
    InvoiceExistsError,
    InvoiceParentNotFoundError,
    InvoiceService,
    NothingToInvoiceError,
)
from src.models.payment import (
    InvoiceGenerateRequest,
    InvoiceLesson,
    InvoicePreview,
    InvoiceResult,
    MonthlyLessonSummary,
    QuickInvoiceRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/uninvoiced",
    response_model=list[InvoiceLesson],
    summary="List unbilled lessons",
)
async def list_uninvoiced_lessons(
    parent_id: str = Query(...),
    month: date = Query(..., description="Any day of the billing month"),
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> list[InvoiceLesson]:
    service = InvoiceService(db)
    return await service.get_uninvoiced_lessons(parent_id, month)


@router.get(
    "/preview",
    response_model=InvoicePreview,
    summary="Preview invoice",
)
async def preview_invoice(
    parent_id: str = Query(...),
    month: date = Query(..., description="Any day of the billing month"),
    lesson_ids: list[str] | None = Query(None, description="Bill only these lessons"),
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> InvoicePreview:
    service = InvoiceService(db)
    try:
        return await service.preview_invoice(parent_id, month, lesson_ids)
    except InvoiceParentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )


@router.post(
    "",
    response_model=InvoiceResult,
    status_code=status.HTTP_201_CREATED,
    summary="Generate invoice",
)
async def generate_invoice(
    data: InvoiceGenerateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResult:
    """Create an unpaid invoice from selected or all unbilled lessons.

    Raises:
        HTTPException: 404 unknown family, 400 nothing to bill,
            409 month already invoiced.
    """
    logger.info(
        "Generating invoice: parent=%s, month=%s, by=%s",
        data.parent_id,
        data.month,
        current_user.id,
    )

    service = InvoiceService(db)
    try:
        return await service.generate_invoice(data)
    except InvoiceParentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except NothingToInvoiceError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except InvoiceExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.post(
    "/quick",
    response_model=InvoiceResult,
    status_code=status.HTTP_201_CREATED,
    summary="Invoice the whole month",
)
async def quick_invoice(
    data: QuickInvoiceRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> InvoiceResult:
    """Invoice every unbilled completed lesson of the month."""
    service = InvoiceService(db)
    try:
        return await service.quick_invoice(data.parent_id, data.month)
    except InvoiceParentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )
    except NothingToInvoiceError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except InvoiceExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.get(
    "/summary",
    response_model=MonthlyLessonSummary,
    summary="Monthly lesson overview",
)
async def get_monthly_summary(
    month: date = Query(..., description="Any day of the month"),
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> MonthlyLessonSummary:
    """Lessons of every family in a month with their billing state."""
    service = InvoiceService(db)
    return await service.get_monthly_lesson_summary(month)

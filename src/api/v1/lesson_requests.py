# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reschedule and drop-in request API endpoints.

This module provides endpoints for:
- Families submitting, listing and withdrawing their requests
- The tutor listing all requests and approving or declining them

Families only ever see their own requests.

Example:
    POST /api/v1/lesson-requests
    GET /api/v1/lesson-requests?status=pending
    POST /api/v1/lesson-requests/{request_id}/approve
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import (
    ensure_self_or_tutor,
    get_db,
    get_email_channel,
    require_auth,
    require_tutor,
)
from src.api.middleware.auth import CurrentUser
from src.domains.lesson import (
    LessonRequestLessonNotFoundError,
    LessonRequestNotFoundError,
    LessonRequestNotPendingError,
    LessonRequestPermissionError,
    LessonRequestService,
    LessonRequestServiceError,
    LessonRequestStudentNotFoundError,
)
from src.infrastructure.notifications import EmailChannel
from src.models.lesson_request import (
    LessonRequestApproveRequest,
    LessonRequestCreateRequest,
    LessonRequestListResponse,
    LessonRequestRejectRequest,
    LessonRequestResponse,
    LessonRequestStatus,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_request_service(db: AsyncSession, email_channel: EmailChannel) -> LessonRequestService:
    return LessonRequestService(db, email_channel=email_channel)


def _to_http_error(error: LessonRequestServiceError) -> HTTPException:
    if isinstance(error, LessonRequestNotPendingError):
        return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(error))
    if isinstance(error, LessonRequestPermissionError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(error))
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(error))


@router.post(
    "",
    response_model=LessonRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit lesson request",
)
async def create_request(
    data: LessonRequestCreateRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> LessonRequestResponse:
    """Ask to move a lesson or to book a drop-in lesson.

    The tutor gets an in-app notification and an email.
    """
    parent_id = None if current_user.is_tutor else current_user.id
    service = _get_request_service(db, email_channel)
    try:
        return await service.create_request(data, parent_id=parent_id)
    except (LessonRequestStudentNotFoundError, LessonRequestLessonNotFoundError) as e:
        raise _to_http_error(e)


@router.get(
    "",
    response_model=LessonRequestListResponse,
    summary="List lesson requests",
)
async def list_requests(
    parent_id: str | None = Query(None, description="Tutor only: one family's requests"),
    request_status: LessonRequestStatus | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> LessonRequestListResponse:
    if not current_user.is_tutor:
        parent_id = current_user.id

    service = _get_request_service(db, email_channel)
    return await service.list_requests(
        parent_id=parent_id, status=request_status, limit=limit, offset=offset
    )


@router.get(
    "/{request_id}",
    response_model=LessonRequestResponse,
    summary="Get lesson request",
)
async def get_request(
    request_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> LessonRequestResponse:
    service = _get_request_service(db, email_channel)
    try:
        response = await service.get_request(request_id)
    except LessonRequestNotFoundError as e:
        raise _to_http_error(e)

    ensure_self_or_tutor(current_user, response.parent_id)
    return response


@router.post(
    "/{request_id}/approve",
    response_model=LessonRequestResponse,
    summary="Approve lesson request",
)
async def approve_request(
    request_id: str,
    data: LessonRequestApproveRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> LessonRequestResponse:
    """Approve a pending request; a reschedule drops the lesson it replaces.

    Raises:
        HTTPException: 404 unknown request or lesson, 409 already answered.
    """
    logger.info("Approving lesson request: %s, by=%s", request_id, current_user.id)

    service = _get_request_service(db, email_channel)
    try:
        return await service.approve_request(request_id, data)
    except (
        LessonRequestNotFoundError,
        LessonRequestLessonNotFoundError,
        LessonRequestNotPendingError,
    ) as e:
        raise _to_http_error(e)


@router.post(
    "/{request_id}/reject",
    response_model=LessonRequestResponse,
    summary="Decline lesson request",
)
async def reject_request(
    request_id: str,
    data: LessonRequestRejectRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> LessonRequestResponse:
    logger.info("Declining lesson request: %s, by=%s", request_id, current_user.id)

    service = _get_request_service(db, email_channel)
    try:
        return await service.reject_request(request_id, data)
    except (LessonRequestNotFoundError, LessonRequestNotPendingError) as e:
        raise _to_http_error(e)


@router.delete(
    "/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Withdraw lesson request",
)
async def delete_request(
    request_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> None:
    """Withdraw a request that has not been answered yet."""
    parent_id = None if current_user.is_tutor else current_user.id
    service = _get_request_service(db, email_channel)
    try:
        await service.delete_request(request_id, parent_id=parent_id)
    except LessonRequestServiceError as e:
        raise _to_http_error(e)

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Lesson scheduling API endpoints.

This module provides endpoints for:
- Scheduling single lessons and combined sessions
- Listing the calendar
- Completing, reverting and cancelling lessons

Status changes go through dedicated endpoints because they move
prepaid usage and invoice amounts.

Example:
    POST /api/v1/lessons
    POST /api/v1/lessons/sessions
    POST /api/v1/lessons/{lesson_id}/complete
    POST /api/v1/lessons/{lesson_id}/cancel
"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import ensure_self_or_tutor, get_db, require_auth, require_tutor
from src.api.middleware.auth import CurrentUser
from src.domains.lesson import (
    LessonNotFoundError,
    LessonService,
    LessonSessionNotFoundError,
    LessonStudentNotFoundError,
)
from src.models.common import DeleteResponse
from src.models.lesson import (
    CombinedSessionCreateRequest,
    LessonCancelRequest,
    LessonCreateRequest,
    LessonListResponse,
    LessonResponse,
    LessonSessionResponse,
    LessonStatusChangeResponse,
    LessonUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _lesson_not_found(lesson_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Lesson {lesson_id} not found",
    )


# =============================================================================
# Scheduling
# =============================================================================


@router.post(
    "",
    response_model=LessonResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule lesson",
)
async def create_lesson(
    data: LessonCreateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> LessonResponse:
    service = LessonService(db)
    try:
        return await service.create_lesson(data)
    except LessonStudentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )


@router.post(
    "/sessions",
    response_model=LessonSessionResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Schedule combined session",
)
async def create_combined_session(
    data: CombinedSessionCreateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> LessonSessionResponse:
    """Schedule several students together; one lesson per student."""
    service = LessonService(db)
    try:
        return await service.create_combined_session(data)
    except LessonStudentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )


@router.get(
    "/sessions/{session_id}",
    response_model=LessonSessionResponse,
    summary="Get combined session",
)
async def get_session(
    session_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> LessonSessionResponse:
    service = LessonService(db)
    try:
        return await service.get_session(session_id)
    except LessonSessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )


@router.delete(
    "/sessions/{session_id}",
    response_model=DeleteResponse,
    summary="Delete combined session",
)
async def delete_session(
    session_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    service = LessonService(db)
    try:
        deleted = await service.delete_session(session_id)
    except LessonSessionNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Session {session_id} not found",
        )
    return DeleteResponse(deleted=deleted)


@router.get(
    "",
    response_model=LessonListResponse,
    summary="List lessons",
)
async def list_lessons(
    student_id: str | None = Query(None),
    parent_id: str | None = Query(None),
    lesson_status: str | None = Query(None, alias="status"),
    start: datetime | None = Query(None, description="Lessons at or after"),
    end: datetime | None = Query(None, description="Lessons before"),
    limit: int = Query(500, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> LessonListResponse:
    """List lessons in calendar order.

    Families only see the lessons of their own students.
    """
    if not current_user.is_tutor:
        parent_id = current_user.id

    service = LessonService(db)
    return await service.list_lessons(
        student_id=student_id,
        parent_id=parent_id,
        status=lesson_status,
        start=start,
        end=end,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/{lesson_id}",
    response_model=LessonResponse,
    summary="Get lesson",
)
async def get_lesson(
    lesson_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> LessonResponse:
    service = LessonService(db)
    try:
        lesson = await service.get_lesson(lesson_id)
    except LessonNotFoundError:
        raise _lesson_not_found(lesson_id)

    ensure_self_or_tutor(current_user, lesson.parent_id or "")
    return lesson


@router.patch(
    "/{lesson_id}",
    response_model=LessonResponse,
    summary="Update lesson",
)
async def update_lesson(
    lesson_id: str,
    data: LessonUpdateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> LessonResponse:
    service = LessonService(db)
    try:
        return await service.update_lesson(lesson_id, data)
    except LessonNotFoundError:
        raise _lesson_not_found(lesson_id)
    except LessonStudentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.delete(
    "/{lesson_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete lesson",
)
async def delete_lesson(
    lesson_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> None:
    service = LessonService(db)
    try:
        await service.delete_lesson(lesson_id)
    except LessonNotFoundError:
        raise _lesson_not_found(lesson_id)


# =============================================================================
# Status changes
# =============================================================================


@router.post(
    "/{lesson_id}/complete",
    response_model=LessonStatusChangeResponse,
    summary="Complete lesson",
)
async def complete_lesson(
    lesson_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> LessonStatusChangeResponse:
    """Mark a lesson taught; counts against the family's prepaid plan."""
    service = LessonService(db)
    try:
        return await service.complete_lesson(lesson_id)
    except LessonNotFoundError:
        raise _lesson_not_found(lesson_id)


@router.post(
    "/{lesson_id}/uncomplete",
    response_model=LessonStatusChangeResponse,
    summary="Revert completed lesson",
)
async def uncomplete_lesson(
    lesson_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> LessonStatusChangeResponse:
    service = LessonService(db)
    try:
        return await service.uncomplete_lesson(lesson_id)
    except LessonNotFoundError:
        raise _lesson_not_found(lesson_id)


@router.post(
    "/{lesson_id}/cancel",
    response_model=LessonStatusChangeResponse,
    summary="Cancel lesson",
)
async def cancel_lesson(
    lesson_id: str,
    data: LessonCancelRequest | None = None,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> LessonStatusChangeResponse:
    """Cancel a lesson and take it off any invoice it was billed on."""
    logger.info("Cancelling lesson: %s, by=%s", lesson_id, current_user.id)

    service = LessonService(db)
    try:
        return await service.cancel_lesson(lesson_id, reason=data.reason if data else None)
    except LessonNotFoundError:
        raise _lesson_not_found(lesson_id)

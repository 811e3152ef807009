# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student API endpoints.

Example:
    GET /api/v1/students?parent_id=...
    POST /api/v1/students
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import ensure_self_or_tutor, get_db, require_auth, require_tutor
from src.api.middleware.auth import CurrentUser
from src.domains.parent import ParentService
from src.domains.parent.service import ParentNotFoundError, StudentNotFoundError
from src.models.parent import StudentCreateRequest, StudentResponse, StudentUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create student",
)
async def create_student(
    data: StudentCreateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    service = ParentService(db)
    try:
        return await service.create_student(data)
    except ParentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )


@router.get(
    "",
    response_model=list[StudentResponse],
    summary="List students",
)
async def list_students(
    parent_id: str | None = Query(None, description="Only this family's students"),
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> list[StudentResponse]:
    """List students.

    Families always see only their own students.
    """
    if not current_user.is_tutor:
        parent_id = current_user.id

    service = ParentService(db)
    return await service.list_students(parent_id=parent_id)


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    summary="Get student",
)
async def get_student(
    student_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    service = ParentService(db)
    try:
        student = await service.get_student(student_id)
    except StudentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student {student_id} not found",
        )

    ensure_self_or_tutor(current_user, student.parent_id)
    return student


@router.patch(
    "/{student_id}",
    response_model=StudentResponse,
    summary="Update student",
)
async def update_student(
    student_id: str,
    data: StudentUpdateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    service = ParentService(db)
    try:
        return await service.update_student(student_id, data)
    except StudentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student {student_id} not found",
        )
    except ParentNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )


@router.delete(
    "/{student_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete student",
)
async def delete_student(
    student_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> None:
    logger.info("Deleting student: %s, by=%s", student_id, current_user.id)

    service = ParentService(db)
    try:
        await service.delete_student(student_id)
    except StudentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Student {student_id} not found",
        )

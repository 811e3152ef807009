# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent service for family and student management.

This module provides the ParentService that handles:
- Family (parent) CRUD operations
- Student CRUD operations within a family
- Lookups used by billing (prepaid families, family of a student)

Example:
    >>> parent_service = ParentService(db_session)
    >>> parent = await parent_service.create_parent(request)
    >>> families = await parent_service.list_parents()
"""

import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.infrastructure.database.models import Parent, Student
from src.models.parent import (
    ParentCreateRequest,
    ParentListResponse,
    ParentResponse,
    ParentUpdateRequest,
    StudentCreateRequest,
    StudentResponse,
    StudentUpdateRequest,
)

logger = logging.getLogger(__name__)


class ParentServiceError(Exception):
    """Base exception for parent service errors."""

    pass


class ParentNotFoundError(ParentServiceError):
    """Raised when a parent is not found."""

    pass


class ParentEmailExistsError(ParentServiceError):
    """Raised when another account already uses the email."""

    pass


class StudentNotFoundError(ParentServiceError):
    """Raised when a student is not found."""

    pass


class ParentService:
    """Service for families and their students.

    Attributes:
        _db: Async database session.
    """

    def __init__(self, db: AsyncSession):
        self._db = db

    # =========================================================================
    # Parents
    # =========================================================================

    async def create_parent(self, request: ParentCreateRequest) -> ParentResponse:
        """Create a family or tutor account.

        Raises:
            ParentEmailExistsError: If the email is already registered.
        """
        if await self._get_by_email(request.email):
            raise ParentEmailExistsError(f"An account with email '{request.email}' already exists")

        parent = Parent(
            name=request.name,
            email=str(request.email).lower(),
            phone=request.phone,
            role=request.role,
            billing_mode=request.billing_mode,
            prepaid_subjects=list(request.prepaid_subjects),
            preferences=dict(request.preferences),
        )

        self._db.add(parent)
        await self._db.commit()
        await self._db.refresh(parent)

        logger.info("Parent created: %s (role=%s)", parent.id, parent.role)

        return self._to_response(parent, students=[])

    async def get_parent(self, parent_id: str) -> ParentResponse:
        """Get a family with its students.

        Raises:
            ParentNotFoundError: If the parent does not exist.
        """
        parent = await self._get_by_id(parent_id, with_students=True)
        if not parent:
            raise ParentNotFoundError(f"Parent {parent_id} not found")
        return self._to_response(parent)

    async def list_parents(
        self,
        role: str | None = "parent",
        billing_mode: str | None = None,
        search: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> ParentListResponse:
        """List families, students included, ordered by name."""
        stmt = select(Parent)
        if role:
            stmt = stmt.where(Parent.role == role)
        if billing_mode:
            stmt = stmt.where(Parent.billing_mode == billing_mode)
        if search:
            pattern = f"%{search}%"
            stmt = stmt.where(Parent.name.ilike(pattern) | Parent.email.ilike(pattern))

        count_result = await self._db.execute(
            select(func.count()).select_from(stmt.subquery())
        )
        total = count_result.scalar() or 0

        result = await self._db.execute(
            stmt.options(selectinload(Parent.students))
            .order_by(Parent.name.asc())
            .limit(limit)
            .offset(offset)
        )
        parents = result.scalars().all()

        return ParentListResponse(
            items=[self._to_response(p) for p in parents],
            total=total,
        )

    async def update_parent(
        self, parent_id: str, request: ParentUpdateRequest
    ) -> ParentResponse:
        """Update a family.

        Raises:
            ParentNotFoundError: If the parent does not exist.
            ParentEmailExistsError: If the new email belongs to another account.
        """
        parent = await self._get_by_id(parent_id, with_students=True)
        if not parent:
            raise ParentNotFoundError(f"Parent {parent_id} not found")

        update_data = request.model_dump(exclude_unset=True)
        if "email" in update_data and update_data["email"] is not None:
            email = str(update_data["email"]).lower()
            existing = await self._get_by_email(email)
            if existing and existing.id != parent.id:
                raise ParentEmailExistsError(f"An account with email '{email}' already exists")
            update_data["email"] = email

        for field, value in update_data.items():
            if value is not None:
                setattr(parent, field, value)

        await self._db.commit()
        await self._db.refresh(parent)

        logger.info("Parent updated: %s", parent.id)

        return self._to_response(parent)

    async def delete_parent(self, parent_id: str) -> None:
        """Delete a family and, through cascades, its students and billing.

        Raises:
            ParentNotFoundError: If the parent does not exist.
        """
        parent = await self._get_by_id(parent_id)
        if not parent:
            raise ParentNotFoundError(f"Parent {parent_id} not found")

        await self._db.delete(parent)
        await self._db.commit()

        logger.info("Parent deleted: %s", parent_id)

    async def get_prepaid_parents(self) -> list[ParentResponse]:
        """Families billed with prepaid plans."""
        result = await self._db.execute(
            select(Parent)
            .options(selectinload(Parent.students))
            .where(Parent.billing_mode == "prepaid", Parent.role == "parent")
            .order_by(Parent.name.asc())
        )
        return [self._to_response(p) for p in result.scalars().all()]

    # =========================================================================
    # Students
    # =========================================================================

    async def create_student(self, request: StudentCreateRequest) -> StudentResponse:
        """Add a student to a family.

        Raises:
            ParentNotFoundError: If the family does not exist.
        """
        if not await self._get_by_id(request.parent_id):
            raise ParentNotFoundError(f"Parent {request.parent_id} not found")

        student = Student(
            parent_id=request.parent_id,
            name=request.name,
            age=request.age,
            grade_level=request.grade_level,
            subjects=list(request.subjects),
            avatar_url=request.avatar_url,
        )

        self._db.add(student)
        await self._db.commit()
        await self._db.refresh(student)

        logger.info("Student created: %s (parent=%s)", student.id, student.parent_id)

        return StudentResponse.model_validate(student)

    async def get_student(self, student_id: str) -> StudentResponse:
        student = await self._get_student(student_id)
        if not student:
            raise StudentNotFoundError(f"Student {student_id} not found")
        return StudentResponse.model_validate(student)

    async def list_students(self, parent_id: str | None = None) -> list[StudentResponse]:
        """List students, optionally of one family."""
        stmt = select(Student)
        if parent_id:
            stmt = stmt.where(Student.parent_id == parent_id)
        result = await self._db.execute(stmt.order_by(Student.name.asc()))
        return [StudentResponse.model_validate(s) for s in result.scalars().all()]

    async def update_student(
        self, student_id: str, request: StudentUpdateRequest
    ) -> StudentResponse:
        """Update a student.

        Raises:
            StudentNotFoundError: If the student does not exist.
            ParentNotFoundError: If moved to a family that does not exist.
        """
        student = await self._get_student(student_id)
        if not student:
            raise StudentNotFoundError(f"Student {student_id} not found")

        update_data = request.model_dump(exclude_unset=True)
        new_parent_id = update_data.get("parent_id")
        if new_parent_id and new_parent_id != student.parent_id:
            if not await self._get_by_id(new_parent_id):
                raise ParentNotFoundError(f"Parent {new_parent_id} not found")

        for field, value in update_data.items():
            if value is not None:
                setattr(student, field, value)

        await self._db.commit()
        await self._db.refresh(student)

        logger.info("Student updated: %s", student.id)

        return StudentResponse.model_validate(student)

    async def delete_student(self, student_id: str) -> None:
        student = await self._get_student(student_id)
        if not student:
            raise StudentNotFoundError(f"Student {student_id} not found")

        await self._db.delete(student)
        await self._db.commit()

        logger.info("Student deleted: %s", student_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_by_id(self, parent_id: str, with_students: bool = False) -> Parent | None:
        stmt = select(Parent).where(Parent.id == parent_id)
        if with_students:
            stmt = stmt.options(selectinload(Parent.students))
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def _get_by_email(self, email: str) -> Parent | None:
        result = await self._db.execute(
            select(Parent).where(func.lower(Parent.email) == str(email).lower())
        )
        return result.scalar_one_or_none()

    async def _get_student(self, student_id: str) -> Student | None:
        result = await self._db.execute(select(Student).where(Student.id == student_id))
        return result.scalar_one_or_none()

    def _to_response(
        self, parent: Parent, students: list[Student] | None = None
    ) -> ParentResponse:
        if students is None:
            students = list(parent.students or [])
        return ParentResponse(
            id=parent.id,
            name=parent.name,
            email=parent.email,
            phone=parent.phone,
            role=parent.role,
            billing_mode=parent.billing_mode,
            prepaid_subjects=list(parent.prepaid_subjects or []),
            preferences=dict(parent.preferences or {}),
            subscription_status=parent.subscription_status,
            subscription_plan=parent.subscription_plan,
            trial_ends_at=parent.trial_ends_at,
            subscription_ends_at=parent.subscription_ends_at,
            students=[StudentResponse.model_validate(s) for s in students],
            student_count=len(students),
            created_at=parent.created_at,
        )

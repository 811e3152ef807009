# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Lesson service for the tutor's calendar.

This module provides the LessonService that handles:
- Scheduling single lessons and combined sessions
- Listing, updating and deleting lessons
- Status changes with their billing side effects:
  completing a lesson counts it against the family's prepaid plan,
  cancelling it removes it from any invoice it was billed on.

Example:
    >>> lesson_service = LessonService(db_session)
    >>> lesson = await lesson_service.create_lesson(request)
    >>> result = await lesson_service.complete_lesson(lesson.id)
"""

import logging
from datetime import datetime

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.domains.billing.rates import round_money
from src.domains.prepaid.service import PrepaidService
from src.infrastructure.database.models import (
    LessonSession,
    Payment,
    PaymentLesson,
    ScheduledLesson,
    Student,
)
from src.infrastructure.database.models.base import generate_uuid
from src.models.lesson import (
    CombinedSessionCreateRequest,
    LessonCreateRequest,
    LessonListResponse,
    LessonResponse,
    LessonSessionResponse,
    LessonStatusChangeResponse,
    LessonUpdateRequest,
)
from src.utils.datetime import ensure_utc

logger = logging.getLogger(__name__)

DEFAULT_CANCEL_NOTE = "Lesson cancelled"


class LessonServiceError(Exception):
    """Base exception for lesson service errors."""

    pass


class LessonNotFoundError(LessonServiceError):
    """Raised when a lesson is not found."""

    pass


class LessonSessionNotFoundError(LessonServiceError):
    """Raised when a combined session is not found."""

    pass


class LessonStudentNotFoundError(LessonServiceError):
    """Raised when a lesson refers to an unknown student."""

    pass


def lesson_to_response(lesson: ScheduledLesson) -> LessonResponse:
    student = lesson.student
    return LessonResponse(
        id=lesson.id,
        student_id=lesson.student_id,
        student_name=student.name if student else None,
        parent_id=student.parent_id if student else None,
        subject=lesson.subject,
        scheduled_at=lesson.scheduled_at,
        duration_min=lesson.duration_min,
        status=lesson.status,
        notes=lesson.notes,
        session_id=lesson.session_id,
        override_amount=lesson.override_amount,
        is_combined_session=lesson.is_combined_session,
    )


class LessonService:
    """Service for scheduled lessons.

    Attributes:
        _db: Async database session.
        _prepaid: Prepaid plan service used on status changes.
    """

    def __init__(self, db: AsyncSession, prepaid_service: PrepaidService | None = None):
        self._db = db
        self._prepaid = prepaid_service or PrepaidService(db)

    # =========================================================================
    # Scheduling
    # =========================================================================

    async def create_lesson(self, request: LessonCreateRequest) -> LessonResponse:
        """Schedule a single lesson.

        Raises:
            LessonStudentNotFoundError: If the student does not exist.
        """
        student = await self._get_student(request.student_id)
        if not student:
            raise LessonStudentNotFoundError(f"Student {request.student_id} not found")

        lesson = ScheduledLesson(
            id=generate_uuid(),
            student_id=request.student_id,
            subject=request.subject,
            scheduled_at=ensure_utc(request.scheduled_at),
            duration_min=request.duration_min,
            status="scheduled",
            notes=request.notes,
            override_amount=request.override_amount,
        )

        self._db.add(lesson)
        await self._db.commit()
        await self._db.refresh(lesson)
        lesson.student = student

        logger.info(
            "Lesson scheduled: %s (student=%s, subject=%s)",
            lesson.id,
            lesson.student_id,
            lesson.subject,
        )

        return lesson_to_response(lesson)

    async def create_combined_session(
        self, request: CombinedSessionCreateRequest
    ) -> LessonSessionResponse:
        """Schedule several students in one session.

        One lesson per student is created, all sharing the session id.

        Raises:
            LessonStudentNotFoundError: If any student does not exist.
        """
        student_ids = list(dict.fromkeys(request.student_ids))
        result = await self._db.execute(select(Student).where(Student.id.in_(student_ids)))
        students = {s.id: s for s in result.scalars().all()}
        missing = [sid for sid in student_ids if sid not in students]
        if missing:
            raise LessonStudentNotFoundError(f"Students not found: {', '.join(missing)}")

        scheduled_at = ensure_utc(request.scheduled_at)
        session = LessonSession(
            id=generate_uuid(),
            scheduled_at=scheduled_at,
            duration_min=request.duration_min,
            notes=request.notes,
        )
        self._db.add(session)

        lessons = []
        for student_id in student_ids:
            lesson = ScheduledLesson(
                id=generate_uuid(),
                student_id=student_id,
                subject=request.subject,
                scheduled_at=scheduled_at,
                duration_min=request.duration_min,
                status="scheduled",
                notes=request.notes,
                session_id=session.id,
            )
            self._db.add(lesson)
            lessons.append(lesson)

        await self._db.commit()

        logger.info(
            "Combined session scheduled: %s (%d students)", session.id, len(lessons)
        )

        responses = []
        for lesson in lessons:
            lesson.student = students[lesson.student_id]
            responses.append(lesson_to_response(lesson))

        return LessonSessionResponse(
            id=session.id,
            scheduled_at=session.scheduled_at,
            duration_min=session.duration_min,
            notes=session.notes,
            lessons=responses,
        )

    async def get_lesson(self, lesson_id: str) -> LessonResponse:
        lesson = await self._get_by_id(lesson_id)
        if not lesson:
            raise LessonNotFoundError(f"Lesson {lesson_id} not found")
        return lesson_to_response(lesson)

    async def get_session(self, session_id: str) -> LessonSessionResponse:
        result = await self._db.execute(
            select(LessonSession)
            .options(selectinload(LessonSession.lessons).selectinload(ScheduledLesson.student))
            .where(LessonSession.id == session_id)
        )
        session = result.scalar_one_or_none()
        if not session:
            raise LessonSessionNotFoundError(f"Session {session_id} not found")

        return LessonSessionResponse(
            id=session.id,
            scheduled_at=session.scheduled_at,
            duration_min=session.duration_min,
            notes=session.notes,
            lessons=[lesson_to_response(lesson) for lesson in session.lessons],
        )

    async def list_lessons(
        self,
        student_id: str | None = None,
        parent_id: str | None = None,
        status: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int = 500,
        offset: int = 0,
    ) -> LessonListResponse:
        """List lessons in calendar order.

        Args:
            student_id: Only this student's lessons.
            parent_id: Only lessons of this family's students.
            status: Only lessons with this status.
            start: Lessons at or after this time.
            end: Lessons before this time.
        """
        stmt = select(ScheduledLesson)
        if student_id:
            stmt = stmt.where(ScheduledLesson.student_id == student_id)
        if parent_id:
            stmt = stmt.join(Student, Student.id == ScheduledLesson.student_id).where(
                Student.parent_id == parent_id
            )
        if status:
            stmt = stmt.where(ScheduledLesson.status == status)
        if start:
            stmt = stmt.where(ScheduledLesson.scheduled_at >= ensure_utc(start))
        if end:
            stmt = stmt.where(ScheduledLesson.scheduled_at < ensure_utc(end))

        count_result = await self._db.execute(
            select(func.count()).select_from(stmt.subquery())
        )
        total = count_result.scalar() or 0

        result = await self._db.execute(
            stmt.options(selectinload(ScheduledLesson.student))
            .order_by(ScheduledLesson.scheduled_at.asc())
            .limit(limit)
            .offset(offset)
        )
        lessons = result.scalars().all()

        return LessonListResponse(
            items=[lesson_to_response(lesson) for lesson in lessons],
            total=total,
        )

    async def update_lesson(
        self, lesson_id: str, request: LessonUpdateRequest
    ) -> LessonResponse:
        """Edit a lesson's details.

        Status changes with billing effects go through complete_lesson,
        uncomplete_lesson and cancel_lesson; this method stores the
        status as given.

        Raises:
            LessonNotFoundError: If the lesson does not exist.
            LessonStudentNotFoundError: If moved to an unknown student.
        """
        lesson = await self._get_by_id(lesson_id)
        if not lesson:
            raise LessonNotFoundError(f"Lesson {lesson_id} not found")

        update_data = request.model_dump(exclude_unset=True)
        new_student_id = update_data.get("student_id")
        if new_student_id and new_student_id != lesson.student_id:
            student = await self._get_student(new_student_id)
            if not student:
                raise LessonStudentNotFoundError(f"Student {new_student_id} not found")
            lesson.student = student

        for field, value in update_data.items():
            if field == "override_amount":
                # An explicit null clears the override
                lesson.override_amount = value
            elif field == "scheduled_at" and value is not None:
                lesson.scheduled_at = ensure_utc(value)
            elif value is not None:
                setattr(lesson, field, value)

        await self._db.commit()
        await self._db.refresh(lesson)

        logger.info("Lesson updated: %s", lesson.id)

        return lesson_to_response(lesson)

    async def delete_lesson(self, lesson_id: str) -> None:
        lesson = await self._get_by_id(lesson_id)
        if not lesson:
            raise LessonNotFoundError(f"Lesson {lesson_id} not found")

        await self._db.delete(lesson)
        await self._db.commit()

        logger.info("Lesson deleted: %s", lesson_id)

    async def delete_session(self, session_id: str) -> int:
        """Delete a combined session and all of its lessons.

        Returns:
            Number of lessons deleted.

        Raises:
            LessonSessionNotFoundError: If the session does not exist.
        """
        result = await self._db.execute(
            select(LessonSession).where(LessonSession.id == session_id)
        )
        session = result.scalar_one_or_none()
        if not session:
            raise LessonSessionNotFoundError(f"Session {session_id} not found")

        deleted = await self._db.execute(
            delete(ScheduledLesson).where(ScheduledLesson.session_id == session_id)
        )
        await self._db.delete(session)
        await self._db.commit()

        count = deleted.rowcount or 0
        logger.info("Session deleted: %s (%d lessons)", session_id, count)
        return count

    # =========================================================================
    # Status changes
    # =========================================================================

    async def complete_lesson(self, lesson_id: str) -> LessonStatusChangeResponse:
        """Mark a lesson taught and count it against the prepaid plan.

        Completing an already completed lesson changes nothing.

        Raises:
            LessonNotFoundError: If the lesson does not exist.
        """
        lesson = await self._get_by_id(lesson_id)
        if not lesson:
            raise LessonNotFoundError(f"Lesson {lesson_id} not found")

        if lesson.status == "completed":
            return LessonStatusChangeResponse(lesson=lesson_to_response(lesson))

        lesson.status = "completed"
        plan = None
        if lesson.student and lesson.student.parent:
            plan = await self._prepaid.increment_usage(
                lesson.student.parent, lesson.scheduled_at, lesson.subject
            )

        await self._db.commit()

        logger.info("Lesson completed: %s (prepaid=%s)", lesson.id, plan.id if plan else None)

        return LessonStatusChangeResponse(
            lesson=lesson_to_response(lesson),
            prepaid_payment_id=plan.id if plan else None,
            sessions_used=plan.sessions_used if plan else None,
        )

    async def uncomplete_lesson(self, lesson_id: str) -> LessonStatusChangeResponse:
        """Revert a completed lesson to scheduled and give the session back.

        Raises:
            LessonNotFoundError: If the lesson does not exist.
        """
        lesson = await self._get_by_id(lesson_id)
        if not lesson:
            raise LessonNotFoundError(f"Lesson {lesson_id} not found")

        if lesson.status != "completed":
            return LessonStatusChangeResponse(lesson=lesson_to_response(lesson))

        lesson.status = "scheduled"
        plan = None
        if lesson.student and lesson.student.parent:
            plan = await self._prepaid.decrement_usage(
                lesson.student.parent, lesson.scheduled_at, lesson.subject
            )

        await self._db.commit()

        logger.info("Lesson reverted to scheduled: %s", lesson.id)

        return LessonStatusChangeResponse(
            lesson=lesson_to_response(lesson),
            prepaid_payment_id=plan.id if plan else None,
            sessions_used=plan.sessions_used if plan else None,
        )

    async def cancel_lesson(
        self, lesson_id: str, reason: str | None = None
    ) -> LessonStatusChangeResponse:
        """Cancel a lesson and take it off any invoice.

        The invoice loses the lesson's billed amount (never below zero)
        and is paid if what was already paid covers the new amount,
        unpaid otherwise. A completed lesson also gives its prepaid
        session back.

        Raises:
            LessonNotFoundError: If the lesson does not exist.
        """
        lesson = await self._get_by_id(lesson_id)
        if not lesson:
            raise LessonNotFoundError(f"Lesson {lesson_id} not found")

        was_completed = lesson.status == "completed"
        lesson.status = "cancelled"
        lesson.notes = reason or DEFAULT_CANCEL_NOTE

        plan = None
        if was_completed and lesson.student and lesson.student.parent:
            plan = await self._prepaid.decrement_usage(
                lesson.student.parent, lesson.scheduled_at, lesson.subject
            )

        adjusted: list[str] = []
        result = await self._db.execute(
            select(PaymentLesson)
            .options(selectinload(PaymentLesson.payment))
            .where(PaymentLesson.lesson_id == lesson_id)
        )
        for link in result.scalars().all():
            payment = link.payment
            if payment is not None:
                self._remove_from_invoice(payment, link.amount)
                adjusted.append(payment.id)
            await self._db.delete(link)

        await self._db.commit()

        logger.info("Lesson cancelled: %s (invoices adjusted=%d)", lesson.id, len(adjusted))

        return LessonStatusChangeResponse(
            lesson=lesson_to_response(lesson),
            prepaid_payment_id=plan.id if plan else None,
            sessions_used=plan.sessions_used if plan else None,
            invoice_adjustments=adjusted,
        )

    def _remove_from_invoice(self, payment: Payment, amount: float) -> None:
        payment.amount_due = round_money(max(0.0, (payment.amount_due or 0) - (amount or 0)))
        if payment.amount_due <= (payment.amount_paid or 0):
            payment.status = "paid"
        else:
            payment.status = "unpaid"
        logger.info(
            "Invoice %s reduced by %.2f to %.2f (%s)",
            payment.id,
            amount or 0,
            payment.amount_due,
            payment.status,
        )

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _get_by_id(self, lesson_id: str) -> ScheduledLesson | None:
        result = await self._db.execute(
            select(ScheduledLesson)
            .options(selectinload(ScheduledLesson.student).selectinload(Student.parent))
            .where(ScheduledLesson.id == lesson_id)
        )
        return result.scalar_one_or_none()

    async def _get_student(self, student_id: str) -> Student | None:
        result = await self._db.execute(select(Student).where(Student.id == student_id))
        return result.scalar_one_or_none()

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Reschedule and drop-in requests from families.

This module provides the LessonRequestService that handles:
- Families asking to move a lesson or to book a drop-in lesson
- The tutor approving or declining pending requests
- Notifying the other side in-app and by email at each step

Requests submitted together for several children share a
request_group_id; the tutor is told about such a group once.
Approving a reschedule removes the lesson it replaces.

Example:
    >>> service = LessonRequestService(db_session, email_channel=channel)
    >>> created = await service.create_request(request, parent_id=parent_id)
    >>> await service.approve_request(created.id, LessonRequestApproveRequest())
"""

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.core.config import EmailSettings, get_settings
from src.domains.lesson.request_templates import (
    RenderedEmail,
    approval_email,
    format_short_date,
    new_request_email,
    rejection_email,
    request_type_label,
)
from src.infrastructure.database.models import (
    LessonRequest,
    Parent,
    ScheduledLesson,
    Student,
)
from src.infrastructure.database.models.base import generate_uuid
from src.infrastructure.notifications import (
    ChannelType,
    EmailChannel,
    EmailDeliveryError,
    NotificationPayload,
    NotificationService,
)
from src.models.lesson_request import (
    LessonRequestApproveRequest,
    LessonRequestCreateRequest,
    LessonRequestListResponse,
    LessonRequestRejectRequest,
    LessonRequestResponse,
)
from src.utils.logging import get_logger

logger = get_logger(__name__)

REQUESTS_ACTION_URL = "/requests"
NOTIFICATIONS_ACTION_URL = "/notifications"


class LessonRequestServiceError(Exception):
    """Base exception for lesson request errors."""

    pass


class LessonRequestNotFoundError(LessonRequestServiceError):
    """Raised when a lesson request does not exist."""

    pass


class LessonRequestStudentNotFoundError(LessonRequestServiceError):
    """Raised when the student is unknown or belongs to another family."""

    pass


class LessonRequestLessonNotFoundError(LessonRequestServiceError):
    """Raised when a referenced lesson does not exist for the student."""

    pass


class LessonRequestNotPendingError(LessonRequestServiceError):
    """Raised when a request was already answered."""

    pass


class LessonRequestPermissionError(LessonRequestServiceError):
    """Raised when a family acts on another family's request."""

    pass


def lesson_request_to_response(row: LessonRequest) -> LessonRequestResponse:
    return LessonRequestResponse(
        id=row.id,
        parent_id=row.parent_id,
        parent_name=row.parent.name if row.parent else None,
        student_id=row.student_id,
        student_name=row.student.name if row.student else None,
        subject=row.subject,
        request_type=row.request_type,
        original_lesson_id=row.original_lesson_id,
        preferred_date=row.preferred_date,
        preferred_time=row.preferred_time,
        preferred_duration=row.preferred_duration,
        notes=row.notes,
        status=row.status,
        tutor_response=row.tutor_response,
        scheduled_lesson_id=row.scheduled_lesson_id,
        request_group_id=row.request_group_id,
        created_at=row.created_at,
    )


class LessonRequestService:
    """Service for reschedule and drop-in requests.

    Attributes:
        _db: Async database session.
        _email: Email channel for request emails.
        _notifications: In-app notification delivery.
    """

    def __init__(
        self,
        db: AsyncSession,
        email_channel: EmailChannel | None = None,
        email_settings: EmailSettings | None = None,
    ):
        self._db = db
        self._email_settings = email_settings or get_settings().email
        self._email = email_channel or EmailChannel(self._email_settings)
        self._notifications = NotificationService(db, email_channel=self._email)

    # =========================================================================
    # Family side
    # =========================================================================

    async def create_request(
        self,
        request: LessonRequestCreateRequest,
        parent_id: str | None = None,
    ) -> LessonRequestResponse:
        """Submit a request and tell the tutor about it.

        Args:
            request: Request details.
            parent_id: Submitting family. The tutor may leave it empty
                to file a request on behalf of the student's family.

        Raises:
            LessonRequestStudentNotFoundError: Unknown or foreign student.
            LessonRequestLessonNotFoundError: The lesson to move is not
                one of the student's lessons.
        """
        student = await self._get_student(request.student_id)
        if not student or (parent_id is not None and student.parent_id != parent_id):
            raise LessonRequestStudentNotFoundError(f"Student {request.student_id} not found")

        original: ScheduledLesson | None = None
        if request.original_lesson_id:
            original = await self._get_lesson(request.original_lesson_id)
            if not original or original.student_id != student.id:
                raise LessonRequestLessonNotFoundError(
                    f"Lesson {request.original_lesson_id} not found"
                )

        first_in_group = True
        if request.request_group_id:
            first_in_group = not await self._group_exists(request.request_group_id)

        row = LessonRequest(
            id=generate_uuid(),
            parent_id=student.parent_id,
            student_id=student.id,
            subject=request.subject,
            request_type=request.request_type,
            original_lesson_id=request.original_lesson_id,
            preferred_date=request.preferred_date,
            preferred_time=request.preferred_time,
            preferred_duration=request.preferred_duration,
            notes=request.notes,
            status="pending",
            request_group_id=request.request_group_id,
        )
        self._db.add(row)
        try:
            await self._db.commit()
        except IntegrityError as e:
            await self._db.rollback()
            raise LessonRequestStudentNotFoundError(
                f"Student {request.student_id} not found"
            ) from e
        await self._db.refresh(row)
        row.student = student
        row.parent = student.parent

        logger.info(
            "lesson_request_created",
            request_id=row.id,
            request_type=row.request_type,
            parent_id=row.parent_id,
            student_id=row.student_id,
        )

        if first_in_group:
            await self._notify_tutors(row, original)
        return lesson_request_to_response(row)

    async def delete_request(self, request_id: str, parent_id: str | None = None) -> None:
        """Withdraw a pending request.

        Raises:
            LessonRequestNotFoundError: If the request does not exist.
            LessonRequestPermissionError: If it belongs to another family.
            LessonRequestNotPendingError: If it was already answered.
        """
        row = await self._get_by_id(request_id)
        if not row:
            raise LessonRequestNotFoundError(f"Lesson request {request_id} not found")
        if parent_id is not None and row.parent_id != parent_id:
            raise LessonRequestPermissionError("You can only withdraw your own requests")
        if not row.is_pending:
            raise LessonRequestNotPendingError("Only pending requests can be withdrawn")

        await self._db.delete(row)
        await self._db.commit()
        logger.info("lesson_request_deleted", request_id=request_id)

    # =========================================================================
    # Listing
    # =========================================================================

    async def get_request(self, request_id: str) -> LessonRequestResponse:
        row = await self._get_by_id(request_id)
        if not row:
            raise LessonRequestNotFoundError(f"Lesson request {request_id} not found")
        return lesson_request_to_response(row)

    async def list_requests(
        self,
        parent_id: str | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> LessonRequestListResponse:
        """List requests, newest first.

        Args:
            parent_id: Only this family's requests.
            status: Only requests in this status.
            limit: Page size.
            offset: Page offset.
        """
        scope = []
        if parent_id:
            scope.append(LessonRequest.parent_id == parent_id)
        filters = list(scope)
        if status:
            filters.append(LessonRequest.status == status)

        count_result = await self._db.execute(
            select(func.count(LessonRequest.id)).where(*filters)
        )
        total = count_result.scalar() or 0

        pending_result = await self._db.execute(
            select(func.count(LessonRequest.id)).where(
                *scope, LessonRequest.status == "pending"
            )
        )
        pending = pending_result.scalar() or 0

        result = await self._db.execute(
            select(LessonRequest)
            .options(
                selectinload(LessonRequest.parent),
                selectinload(LessonRequest.student),
            )
            .where(*filters)
            .order_by(LessonRequest.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        items = [lesson_request_to_response(r) for r in result.scalars().all()]
        return LessonRequestListResponse(items=items, total=total, pending=pending)

    # =========================================================================
    # Tutor decisions
    # =========================================================================

    async def approve_request(
        self, request_id: str, decision: LessonRequestApproveRequest
    ) -> LessonRequestResponse:
        """Approve a pending request.

        The request becomes "scheduled" when the booked lesson is given
        and "approved" otherwise. Approving a reschedule removes the
        original lesson while it is still on the calendar.

        Raises:
            LessonRequestNotFoundError: If the request does not exist.
            LessonRequestNotPendingError: If it was already answered.
            LessonRequestLessonNotFoundError: If the booked lesson is unknown.
        """
        row = await self._get_pending(request_id)

        if decision.scheduled_lesson_id:
            if not await self._get_lesson(decision.scheduled_lesson_id):
                raise LessonRequestLessonNotFoundError(
                    f"Lesson {decision.scheduled_lesson_id} not found"
                )

        row.status = "scheduled" if decision.scheduled_lesson_id else "approved"
        row.tutor_response = decision.response
        row.scheduled_lesson_id = decision.scheduled_lesson_id

        removed_lesson_id = None
        if (
            row.request_type == "reschedule"
            and row.original_lesson_id
            and row.original_lesson_id != decision.scheduled_lesson_id
        ):
            result = await self._db.execute(
                delete(ScheduledLesson).where(
                    ScheduledLesson.id == row.original_lesson_id,
                    ScheduledLesson.status == "scheduled",
                )
            )
            if result.rowcount:
                removed_lesson_id = row.original_lesson_id

        kind = "drop-in" if row.request_type == "dropin" else "reschedule"
        await self._notify_family(
            row,
            notification_type=f"{row.request_type}_response",
            title=f"{request_type_label(row.request_type)} Approved",
            message=f"Your {kind} request for {self._student_name(row)} has been approved",
            priority="normal",
        )
        await self._db.commit()

        logger.info(
            "lesson_request_approved",
            request_id=row.id,
            status=row.status,
            removed_lesson_id=removed_lesson_id,
        )

        await self._email_family(
            row,
            approval_email(
                request_type=row.request_type,
                parent_name=row.parent.name,
                student_name=self._student_name(row),
                subject=row.subject,
                preferred_date=row.preferred_date,
                is_scheduled=row.status == "scheduled",
                tutor_response=row.tutor_response,
                notifications_url=self._app_url(NOTIFICATIONS_ACTION_URL),
                business_name=self._email_settings.business_name,
            ),
        )
        return lesson_request_to_response(row)

    async def reject_request(
        self, request_id: str, decision: LessonRequestRejectRequest
    ) -> LessonRequestResponse:
        """Decline a pending request.

        Raises:
            LessonRequestNotFoundError: If the request does not exist.
            LessonRequestNotPendingError: If it was already answered.
        """
        row = await self._get_pending(request_id)
        row.status = "rejected"
        row.tutor_response = decision.reason

        kind = "drop-in" if row.request_type == "dropin" else "reschedule"
        message = f"Your {kind} request for {self._student_name(row)} has been declined"
        if decision.reason:
            message += f": {decision.reason}"
        await self._notify_family(
            row,
            notification_type=f"{row.request_type}_response",
            title=f"{request_type_label(row.request_type)} Declined",
            message=message,
            priority="high",
        )
        await self._db.commit()

        logger.info("lesson_request_rejected", request_id=row.id)

        await self._email_family(
            row,
            rejection_email(
                request_type=row.request_type,
                parent_name=row.parent.name,
                student_name=self._student_name(row),
                subject=row.subject,
                preferred_date=row.preferred_date,
                reason=decision.reason,
                notifications_url=self._app_url(NOTIFICATIONS_ACTION_URL),
                business_name=self._email_settings.business_name,
            ),
        )
        return lesson_request_to_response(row)

    # =========================================================================
    # Notifications
    # =========================================================================

    async def _notify_tutors(
        self, row: LessonRequest, original: ScheduledLesson | None
    ) -> None:
        """In-app notification and email for every tutor account."""
        result = await self._db.execute(select(Parent).where(Parent.role == "tutor"))
        tutors = result.scalars().all()
        if not tutors:
            logger.warning("lesson_request_no_tutor", request_id=row.id)
            return

        parent_name = row.parent.name if row.parent else "A parent"
        student_name = self._student_name(row)
        when = format_short_date(row.preferred_date)
        if row.request_type == "dropin":
            message = (
                f"{parent_name} requested a drop-in {row.subject} lesson "
                f"for {student_name} on {when}"
            )
        else:
            message = (
                f"{parent_name} requested to reschedule {student_name}'s "
                f"{row.subject} lesson for {when}"
            )

        data = {
            "request_id": row.id,
            "student_id": row.student_id,
            "student_name": student_name,
            "parent_name": parent_name,
            "subject": row.subject,
            "preferred_date": row.preferred_date.isoformat(),
            "preferred_time": row.preferred_time.isoformat() if row.preferred_time else None,
            "request_type": row.request_type,
        }
        for tutor in tutors:
            await self._notifications.send(
                NotificationPayload(
                    notification_type=f"{row.request_type}_request",
                    title=f"New {request_type_label(row.request_type)}",
                    message=message,
                    recipient_id=tutor.id,
                    sender_id=row.parent_id,
                    priority="high",
                    data=data,
                    action_url=REQUESTS_ACTION_URL,
                ),
                channels=(ChannelType.IN_APP,),
            )
        await self._db.commit()

        original_date = original.scheduled_at.date() if original else None
        for tutor in tutors:
            if not tutor.email:
                continue
            email = new_request_email(
                request_type=row.request_type,
                tutor_name=tutor.name,
                parent_name=parent_name,
                student_name=student_name,
                subject=row.subject,
                preferred_date=row.preferred_date,
                preferred_time=row.preferred_time,
                original_date=original_date,
                notes=row.notes,
                requests_url=self._app_url(REQUESTS_ACTION_URL),
                business_name=self._email_settings.business_name,
            )
            await self._send_email(row, tutor.email, email)

    async def _notify_family(
        self,
        row: LessonRequest,
        notification_type: str,
        title: str,
        message: str,
        priority: str,
    ) -> None:
        await self._notifications.send(
            NotificationPayload(
                notification_type=notification_type,
                title=title,
                message=message,
                recipient_id=row.parent_id,
                priority=priority,
                data={
                    "request_id": row.id,
                    "student_id": row.student_id,
                    "subject": row.subject,
                    "scheduled_lesson_id": row.scheduled_lesson_id,
                },
            ),
            channels=(ChannelType.IN_APP,),
        )

    async def _email_family(self, row: LessonRequest, email: RenderedEmail) -> None:
        if not row.parent or not row.parent.email:
            logger.info("lesson_request_email_skipped", request_id=row.id, reason="no_email")
            return
        await self._send_email(row, row.parent.email, email)

    async def _send_email(self, row: LessonRequest, to: str, email: RenderedEmail) -> None:
        """Send one request email; failures are logged, never raised."""
        try:
            await self._email.send_email(
                to=to, subject=email.subject, html=email.html, text=email.text
            )
        except EmailDeliveryError as e:
            logger.warning(
                "lesson_request_email_failed", request_id=row.id, error=e.message
            )

    # =========================================================================
    # Helpers
    # =========================================================================

    def _app_url(self, path: str) -> str:
        return self._email_settings.app_url.rstrip("/") + path

    @staticmethod
    def _student_name(row: LessonRequest) -> str:
        return row.student.name if row.student else "your student"

    async def _get_pending(self, request_id: str) -> LessonRequest:
        row = await self._get_by_id(request_id)
        if not row:
            raise LessonRequestNotFoundError(f"Lesson request {request_id} not found")
        if not row.is_pending:
            raise LessonRequestNotPendingError(f"Lesson request is already {row.status}")
        return row

    async def _get_by_id(self, request_id: str) -> LessonRequest | None:
        result = await self._db.execute(
            select(LessonRequest)
            .options(
                selectinload(LessonRequest.parent),
                selectinload(LessonRequest.student),
            )
            .where(LessonRequest.id == request_id)
        )
        return result.scalar_one_or_none()

    async def _get_student(self, student_id: str) -> Student | None:
        result = await self._db.execute(
            select(Student)
            .options(selectinload(Student.parent))
            .where(Student.id == student_id)
        )
        return result.scalar_one_or_none()

    async def _get_lesson(self, lesson_id: str) -> ScheduledLesson | None:
        result = await self._db.execute(
            select(ScheduledLesson).where(ScheduledLesson.id == lesson_id)
        )
        return result.scalar_one_or_none()

    async def _group_exists(self, request_group_id: str) -> bool:
        result = await self._db.execute(
            select(func.count(LessonRequest.id)).where(
                LessonRequest.request_group_id == request_group_id
            )
        )
        return (result.scalar() or 0) > 0

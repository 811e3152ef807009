# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request/response models for reschedule and drop-in requests."""

from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, Field, model_validator

LessonRequestType = Literal["reschedule", "dropin"]
LessonRequestStatus = Literal["pending", "approved", "rejected", "scheduled"]


class LessonRequestCreateRequest(BaseModel):
    """A family asks to move a lesson or to book a drop-in lesson.

    Reschedule requests name the lesson being moved.
    """

    student_id: str = Field(..., description="Student the lesson is for")
    subject: str = Field(..., min_length=1, max_length=50)
    request_type: LessonRequestType = "reschedule"
    original_lesson_id: str | None = Field(None, description="Lesson being moved")
    preferred_date: date
    preferred_time: time | None = None
    preferred_duration: int = Field(60, gt=0, le=480)
    notes: str | None = Field(None, max_length=1000)
    request_group_id: str | None = Field(
        None, description="Shared by requests submitted together for several children"
    )

    @model_validator(mode="after")
    def _reschedule_needs_lesson(self) -> "LessonRequestCreateRequest":
        if self.request_type == "reschedule" and not self.original_lesson_id:
            raise ValueError("original_lesson_id is required for reschedule requests")
        return self


class LessonRequestApproveRequest(BaseModel):
    response: str | None = Field(None, max_length=1000, description="Note to the family")
    scheduled_lesson_id: str | None = Field(
        None, description="Lesson booked for this request, if already scheduled"
    )


class LessonRequestRejectRequest(BaseModel):
    reason: str | None = Field(None, max_length=1000)


class LessonRequestResponse(BaseModel):
    """Lesson request with family and student names."""

    id: str = Field(..., description="Request ID")
    parent_id: str
    parent_name: str | None = None
    student_id: str
    student_name: str | None = None
    subject: str
    request_type: LessonRequestType
    original_lesson_id: str | None = None
    preferred_date: date
    preferred_time: time | None = None
    preferred_duration: int
    notes: str | None = None
    status: LessonRequestStatus
    tutor_response: str | None = None
    scheduled_lesson_id: str | None = None
    request_group_id: str | None = None
    created_at: datetime | None = None


class LessonRequestListResponse(BaseModel):
    items: list[LessonRequestResponse]
    total: int = Field(..., ge=0)
    pending: int = Field(..., ge=0, description="Pending requests in the listed scope")

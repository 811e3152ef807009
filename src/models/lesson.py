# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request/response models for lesson scheduling."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

LessonStatus = Literal["scheduled", "completed", "cancelled"]


class LessonCreateRequest(BaseModel):
    """Schedule a single lesson."""

    student_id: str = Field(..., description="Student being taught")
    subject: str = Field(..., min_length=1, max_length=50)
    scheduled_at: datetime = Field(..., description="Lesson start time")
    duration_min: int = Field(60, gt=0, le=480)
    notes: str | None = None
    override_amount: float | None = Field(None, ge=0, description="Manual price")


class CombinedSessionCreateRequest(BaseModel):
    """Schedule several students together in one session."""

    student_ids: list[str] = Field(..., min_length=2, description="Students in the session")
    subject: str = Field(..., min_length=1, max_length=50)
    scheduled_at: datetime
    duration_min: int = Field(60, gt=0, le=480)
    notes: str | None = None


class LessonUpdateRequest(BaseModel):
    student_id: str | None = None
    subject: str | None = Field(None, min_length=1, max_length=50)
    scheduled_at: datetime | None = None
    duration_min: int | None = Field(None, gt=0, le=480)
    status: LessonStatus | None = None
    notes: str | None = None
    override_amount: float | None = Field(None, ge=0)


class LessonCancelRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class LessonResponse(BaseModel):
    """Scheduled lesson with its student."""

    id: str = Field(..., description="Lesson ID")
    student_id: str
    student_name: str | None = None
    parent_id: str | None = None
    subject: str
    scheduled_at: datetime
    duration_min: int
    status: LessonStatus
    notes: str | None = None
    session_id: str | None = None
    override_amount: float | None = None
    is_combined_session: bool = False


class LessonListResponse(BaseModel):
    items: list[LessonResponse]
    total: int


class LessonSessionResponse(BaseModel):
    """Combined session with its lessons."""

    id: str
    scheduled_at: datetime
    duration_min: int
    notes: str | None = None
    lessons: list[LessonResponse] = Field(default_factory=list)


class LessonStatusChangeResponse(BaseModel):
    """Lesson after a status change and the prepaid plan it touched."""

    lesson: LessonResponse
    prepaid_payment_id: str | None = Field(
        None, description="Prepaid plan whose usage counter changed"
    )
    sessions_used: int | None = None
    invoice_adjustments: list[str] = Field(
        default_factory=list,
        description="Payments whose amount due was reduced by a cancellation",
    )

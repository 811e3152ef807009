# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request/response models for families, students and tutor settings."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, EmailStr, Field

ParentRole = Literal["parent", "tutor"]
BillingMode = Literal["invoice", "prepaid"]


class StudentCreateRequest(BaseModel):
    """Request to add a student to a family."""

    parent_id: str = Field(..., description="Owning family")
    name: str = Field(..., min_length=1, max_length=200)
    age: int | None = Field(None, ge=1, le=25)
    grade_level: str | None = Field(None, max_length=20)
    subjects: list[str] = Field(default_factory=list, description="Subjects taught")
    avatar_url: str | None = None


class StudentUpdateRequest(BaseModel):
    parent_id: str | None = None
    name: str | None = Field(None, min_length=1, max_length=200)
    age: int | None = Field(None, ge=1, le=25)
    grade_level: str | None = Field(None, max_length=20)
    subjects: list[str] | None = None
    avatar_url: str | None = None


class StudentResponse(BaseModel):
    id: str = Field(..., description="Student ID")
    parent_id: str = Field(..., description="Owning family")
    name: str
    age: int | None = None
    grade_level: str | None = None
    subjects: list[str] = Field(default_factory=list)
    avatar_url: str | None = None
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class ParentCreateRequest(BaseModel):
    """Request to create a family or tutor account."""

    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr = Field(..., description="Contact email, used for reminders")
    phone: str | None = Field(None, max_length=40)
    role: ParentRole = "parent"
    billing_mode: BillingMode = "invoice"
    prepaid_subjects: list[str] = Field(
        default_factory=list,
        description="Subjects billed with per-subject prepaid plans",
    )
    preferences: dict[str, Any] = Field(default_factory=dict)


class ParentUpdateRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=200)
    email: EmailStr | None = None
    phone: str | None = Field(None, max_length=40)
    billing_mode: BillingMode | None = None
    prepaid_subjects: list[str] | None = None
    preferences: dict[str, Any] | None = None


class ParentResponse(BaseModel):
    """Family or tutor account."""

    id: str = Field(..., description="Parent ID")
    name: str
    email: str
    phone: str | None = None
    role: ParentRole
    billing_mode: BillingMode = "invoice"
    prepaid_subjects: list[str] = Field(default_factory=list)
    preferences: dict[str, Any] = Field(default_factory=dict)
    subscription_status: str | None = None
    subscription_plan: str | None = None
    trial_ends_at: datetime | None = None
    subscription_ends_at: datetime | None = None
    students: list[StudentResponse] = Field(default_factory=list)
    student_count: int = 0
    created_at: datetime | None = None


class ParentListResponse(BaseModel):
    items: list[ParentResponse]
    total: int


class SubjectRateModel(BaseModel):
    """Rate for one subject: rate per base_duration minutes."""

    rate: float = Field(..., gt=0)
    base_duration: int = Field(..., gt=0, description="Minutes covered by rate")
    duration_prices: dict[str, float] = Field(
        default_factory=dict,
        description="Explicit prices keyed by lesson duration in minutes",
    )


class ReminderSettingsModel(BaseModel):
    """Automatic payment reminder preferences."""

    enabled: bool = False
    due_day_of_month: int = Field(default=7, ge=1, le=28)
    friendly_reminder_days_before: int = Field(default=3, ge=0, le=27)
    past_due_intervals: list[int] = Field(default_factory=lambda: [3, 7, 14])
    send_email: bool = True
    send_notification: bool = True


class TutorSettingsUpdateRequest(BaseModel):
    default_rate: float | None = Field(None, gt=0)
    default_base_duration: int | None = Field(None, gt=0)
    combined_session_rate: float | None = Field(None, ge=0)
    subject_rates: dict[str, SubjectRateModel] | None = None
    reminder_settings: ReminderSettingsModel | None = None


class TutorSettingsResponse(BaseModel):
    """Tutor pricing and reminder settings, defaults included."""

    tutor_id: str | None = None
    default_rate: float
    default_base_duration: int
    combined_session_rate: float
    subject_rates: dict[str, SubjectRateModel] = Field(default_factory=dict)
    reminder_settings: ReminderSettingsModel = Field(default_factory=ReminderSettingsModel)
    is_default: bool = Field(False, description="True when nothing has been saved yet")


class InvitationSendResponse(BaseModel):
    """Result of emailing a portal invitation."""

    success: bool = True
    message: str
    email_id: str | None = None
    expires_at: datetime


class InvitationTokenRequest(BaseModel):
    token: str = Field(..., min_length=1, description="Token from the invitation link")


class InvitationStatusResponse(BaseModel):
    """Whether an invitation link can still be used."""

    valid: bool
    parent_id: str | None = None
    email: str | None = None
    name: str | None = None
    error: str | None = None


class InvitationAcceptResponse(BaseModel):
    """Access token issued when a family accepts an invitation."""

    access_token: str
    token_type: str = "bearer"
    expires_in: int = Field(..., description="Token lifetime in seconds")
    parent_id: str

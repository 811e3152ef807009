# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Request/response models for payments, invoices and prepaid plans."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from src.models.common import BillingMonth

PaymentStatus = Literal["unpaid", "partial", "paid"]
PaymentType = Literal["invoice", "prepaid"]
LessonPaymentStatus = Literal["none", "invoiced", "paid"]


# =============================================================================
# Payments
# =============================================================================


class PaymentCreateRequest(BaseModel):
    """Record a payment for a family and month.

    Status is derived from the amounts when omitted.
    """

    parent_id: str = Field(..., description="Family being billed")
    month: BillingMonth = Field(..., description="Any day of the billing month")
    amount_due: float = Field(..., ge=0)
    amount_paid: float = Field(0, ge=0)
    status: PaymentStatus | None = None
    notes: str | None = None
    subject: str | None = Field(None, description="Limit to one subject, null for all")


class PaymentUpdateRequest(BaseModel):
    amount_due: float | None = Field(None, ge=0)
    amount_paid: float | None = Field(None, ge=0)
    status: PaymentStatus | None = None
    paid_at: datetime | None = None
    notes: str | None = None


class MarkPaidRequest(BaseModel):
    notes: str | None = None


class PaymentResponse(BaseModel):
    """Invoice or prepaid plan."""

    id: str = Field(..., description="Payment ID")
    parent_id: str
    parent_name: str | None = None
    parent_email: str | None = None
    month: date
    amount_due: float
    amount_paid: float
    balance_due: float
    status: PaymentStatus
    paid_at: datetime | None = None
    notes: str | None = None
    payment_type: PaymentType = "invoice"
    subject: str | None = None
    sessions_prepaid: int | None = None
    sessions_used: int = 0
    sessions_rolled_over: int = 0
    created_at: datetime | None = None


class PaymentListResponse(BaseModel):
    items: list[PaymentResponse]
    total: int


class PaymentLessonDetail(BaseModel):
    """Lesson billed by an invoice."""

    id: str = Field(..., description="Payment-lesson link ID")
    lesson_id: str
    amount: float
    paid: bool
    subject: str | None = None
    scheduled_at: datetime | None = None
    duration_min: int | None = None
    status: str | None = None
    student_id: str | None = None
    student_name: str | None = None


class PaymentWithLessonsResponse(PaymentResponse):
    lessons: list[PaymentLessonDetail] = Field(default_factory=list)


class PaymentSummaryResponse(BaseModel):
    """Totals for one billing month."""

    month: date
    total_due: float
    total_paid: float
    total_outstanding: float
    paid_count: int
    partial_count: int
    unpaid_count: int
    total_families: int


# =============================================================================
# Invoices
# =============================================================================


class InvoiceLesson(BaseModel):
    """A completed lesson priced for invoicing."""

    id: str = Field(..., description="Lesson ID")
    student_id: str
    student_name: str
    subject: str
    scheduled_at: datetime
    duration_min: int
    amount: float
    rate: float
    base_duration: int
    rate_display: str
    formula: str
    is_combined_session: bool = False
    session_id: str | None = None


class InvoicePreview(BaseModel):
    """What an invoice for a family and month would contain."""

    parent_id: str
    parent_name: str
    month: date
    lessons: list[InvoiceLesson] = Field(default_factory=list)
    single_lessons: list[InvoiceLesson] = Field(default_factory=list)
    combined_sessions: list[InvoiceLesson] = Field(default_factory=list)
    total_amount: float = 0
    total_lessons: int = 0
    total_minutes: int = 0


class InvoiceGenerateRequest(BaseModel):
    """Create an invoice from completed lessons.

    When lesson_ids is omitted all uninvoiced lessons of the month are billed.
    """

    parent_id: str
    month: BillingMonth
    lesson_ids: list[str] | None = Field(None, description="Subset of lessons to bill")
    notes: str | None = None


class QuickInvoiceRequest(BaseModel):
    parent_id: str
    month: BillingMonth


class InvoiceResult(BaseModel):
    """Invoice created from lessons."""

    payment: PaymentResponse
    lessons: list[InvoiceLesson]
    total_amount: float
    total_lessons: int


class LessonSummaryDetail(BaseModel):
    id: str
    student_id: str
    student_name: str
    subject: str
    scheduled_at: datetime
    duration_min: int
    status: str
    amount: float
    is_combined_session: bool = False
    session_id: str | None = None
    payment_status: LessonPaymentStatus = "none"
    payment_id: str | None = None


class FamilyLessonSummary(BaseModel):
    """Lesson and billing state of one family for a month."""

    parent_id: str
    parent_name: str
    parent_email: str | None = None
    billing_mode: str = "invoice"
    scheduled_count: int = 0
    completed_count: int = 0
    invoiced_count: int = 0
    paid_count: int = 0
    cancelled_count: int = 0
    scheduled_amount: float = 0
    completed_amount: float = 0
    invoiced_amount: float = 0
    paid_amount: float = 0
    expected_amount: float = 0
    combined_session_count: int = 0
    combined_session_amount: float = 0
    lessons: list[LessonSummaryDetail] = Field(default_factory=list)


class MonthlyLessonSummary(BaseModel):
    """Hybrid billing overview across all families."""

    month: date
    families: list[FamilyLessonSummary] = Field(default_factory=list)
    total_scheduled: int = 0
    total_completed: int = 0
    total_invoiced: int = 0
    total_paid: int = 0
    total_cancelled: int = 0
    total_expected_amount: float = 0
    total_billable_amount: float = 0
    total_invoiced_amount: float = 0
    total_collected_amount: float = 0


# =============================================================================
# Prepaid plans
# =============================================================================


class PrepaidPlanCreateRequest(BaseModel):
    """Sell a block of sessions for a month."""

    parent_id: str
    month: BillingMonth
    sessions: int = Field(..., gt=0, le=100, description="New sessions purchased")
    amount_due: float | None = Field(None, ge=0, description="Defaults to the suggested price")
    amount_paid: float = Field(0, ge=0)
    subject: str | None = Field(None, description="Limit the plan to one subject")
    include_rollover: bool = Field(True, description="Carry unused sessions from last month")
    notes: str | None = None


class SessionsUsedUpdateRequest(BaseModel):
    sessions_used: int = Field(..., description="New value, clamped at zero")


class PrepaidPaymentResponse(PaymentResponse):
    """Prepaid plan with derived usage."""

    sessions_total: int = 0
    sessions_remaining: int = 0
    over_limit: bool = False
    usage_percent: float = 0


class PrepaidListResponse(BaseModel):
    items: list[PrepaidPaymentResponse]
    total: int


class RolloverResponse(BaseModel):
    parent_id: str
    month: date
    subject: str | None = None
    previous_payment_id: str | None = None
    rollover_sessions: int = 0
    suggested_amount_per_session: float

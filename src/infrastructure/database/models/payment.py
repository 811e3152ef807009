# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Billing models: payments, invoiced lesson links and reminder log.

A Payment is either a monthly invoice built from completed lessons
(payment_type "invoice") or a prepaid block of sessions
(payment_type "prepaid"). A family has at most one payment per month,
type and subject, where a NULL subject covers all subjects.
"""

from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDMixin, utc_now
from src.infrastructure.database.models.lesson import ScheduledLesson
from src.infrastructure.database.models.parent import Parent


class Payment(UUIDMixin, TimestampMixin, Base):
    """Monthly invoice or prepaid plan of a family."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("status IN ('unpaid', 'partial', 'paid')", name="status"),
        CheckConstraint("payment_type IN ('invoice', 'prepaid')", name="payment_type"),
        CheckConstraint("amount_due >= 0", name="amount_due_non_negative"),
        CheckConstraint("amount_paid >= 0", name="amount_paid_non_negative"),
        Index(
            "uq_payments_family_month",
            "parent_id",
            "month",
            "payment_type",
            text("coalesce(subject, '__all__')"),
            unique=True,
        ),
    )

    parent_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    month: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    amount_due: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=False, default=0, server_default="0"
    )
    amount_paid: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=False, default=0, server_default="0"
    )
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="unpaid", server_default="unpaid", index=True
    )
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(Text)

    payment_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="invoice", server_default="invoice"
    )
    subject: Mapped[Optional[str]] = mapped_column(String(50))

    # Prepaid plan counters
    sessions_prepaid: Mapped[Optional[int]] = mapped_column(Integer)
    sessions_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    sessions_rolled_over: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )

    parent: Mapped[Parent] = relationship()
    lesson_links: Mapped[list["PaymentLesson"]] = relationship(
        back_populates="payment",
        cascade="all, delete-orphan",
    )

    @property
    def balance_due(self) -> float:
        return round((self.amount_due or 0) - (self.amount_paid or 0), 2)


class PaymentLesson(UUIDMixin, Base):
    """Link between an invoice and one of the lessons it bills."""

    __tablename__ = "payment_lessons"

    payment_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    lesson_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("scheduled_lessons.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    amount: Mapped[float] = mapped_column(Numeric(10, 2, asdecimal=False), nullable=False)
    paid: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=text("now()")
    )

    payment: Mapped[Payment] = relationship(back_populates="lesson_links")
    lesson: Mapped[ScheduledLesson] = relationship()


class PaymentReminder(UUIDMixin, Base):
    """A reminder sent for a payment, one per payment, type and UTC day."""

    __tablename__ = "payment_reminders"
    __table_args__ = (
        CheckConstraint(
            "reminder_type IN ('friendly', 'due_date', 'past_due_3', "
            "'past_due_7', 'past_due_14', 'manual')",
            name="reminder_type",
        ),
        Index(
            "uq_payment_reminders_daily",
            "payment_id",
            "reminder_type",
            text("((sent_at AT TIME ZONE 'UTC')::date)"),
            unique=True,
        ),
    )

    payment_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("payments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reminder_type: Mapped[str] = mapped_column(String(20), nullable=False)
    email_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    email_id: Mapped[Optional[str]] = mapped_column(String(100))
    notification_id: Mapped[Optional[str]] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("notifications.id", ondelete="SET NULL"),
    )
    message: Mapped[Optional[str]] = mapped_column(Text)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=text("now()")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=text("now()")
    )

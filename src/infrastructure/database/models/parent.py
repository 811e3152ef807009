# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Family and tutor account models.

A Parent row represents every account in the system. The tutor is a Parent
with role "tutor"; families have role "parent" and own one or more students.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDMixin


class Parent(UUIDMixin, TimestampMixin, Base):
    """Account holder: a tutor or a family contact."""

    __tablename__ = "parents"
    __table_args__ = (
        CheckConstraint("role IN ('parent', 'tutor')", name="role"),
        CheckConstraint("billing_mode IN ('invoice', 'prepaid')", name="billing_mode"),
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[Optional[str]] = mapped_column(String(40))
    role: Mapped[str] = mapped_column(String(20), nullable=False, default="parent", server_default="parent")

    # Billing preferences
    billing_mode: Mapped[str] = mapped_column(
        String(20), nullable=False, default="invoice", server_default="invoice"
    )
    prepaid_subjects: Mapped[list[str]] = mapped_column(
        postgresql.JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    preferences: Mapped[dict[str, Any]] = mapped_column(
        postgresql.JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )

    # Subscription (tutor accounts only)
    stripe_customer_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    stripe_subscription_id: Mapped[Optional[str]] = mapped_column(String(100), index=True)
    subscription_status: Mapped[Optional[str]] = mapped_column(String(20))
    subscription_plan: Mapped[Optional[str]] = mapped_column(String(20))
    trial_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    subscription_ends_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Portal invitation
    invitation_token: Mapped[Optional[str]] = mapped_column(
        postgresql.UUID(as_uuid=False), unique=True
    )
    invitation_sent_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    invitation_expires_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    invitation_accepted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    students: Mapped[list["Student"]] = relationship(
        back_populates="parent",
        cascade="all, delete-orphan",
        order_by="Student.name",
    )

    @property
    def is_tutor(self) -> bool:
        return self.role == "tutor"

    @property
    def payment_notifications_enabled(self) -> bool:
        """Whether the family accepts payment reminders (default on)."""
        notifications = (self.preferences or {}).get("notifications") or {}
        return notifications.get("payment_due") is not False


class Student(UUIDMixin, TimestampMixin, Base):
    """A child taught by the tutor."""

    __tablename__ = "students"

    parent_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    age: Mapped[Optional[int]] = mapped_column(Integer)
    grade_level: Mapped[Optional[str]] = mapped_column(String(20))
    subjects: Mapped[list[str]] = mapped_column(
        postgresql.JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    avatar_url: Mapped[Optional[str]] = mapped_column(Text)

    parent: Mapped[Parent] = relationship(back_populates="students")


class TutorSettings(UUIDMixin, TimestampMixin, Base):
    """Rate table and reminder preferences of the tutor.

    subject_rates maps a subject name to
    {"rate": 35, "base_duration": 30, "duration_prices": {"45": 50}}.
    """

    __tablename__ = "tutor_settings"

    tutor_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    default_rate: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=False, default=45, server_default="45"
    )
    default_base_duration: Mapped[int] = mapped_column(
        Integer, nullable=False, default=60, server_default="60"
    )
    combined_session_rate: Mapped[float] = mapped_column(
        Numeric(10, 2, asdecimal=False), nullable=False, default=40, server_default="40"
    )
    subject_rates: Mapped[dict[str, Any]] = mapped_column(
        postgresql.JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )
    reminder_settings: Mapped[dict[str, Any]] = mapped_column(
        postgresql.JSONB, nullable=False, default=dict, server_default=text("'{}'::jsonb")
    )

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Scheduling models: lessons, combined sessions and lesson requests."""

from datetime import date, datetime, time
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    Time,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDMixin
from src.infrastructure.database.models.parent import Parent, Student


class LessonSession(UUIDMixin, TimestampMixin, Base):
    """A time slot where several students are taught together."""

    __tablename__ = "lesson_sessions"

    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    duration_min: Mapped[int] = mapped_column(Integer, nullable=False, default=60, server_default="60")
    notes: Mapped[Optional[str]] = mapped_column(Text)

    lessons: Mapped[list["ScheduledLesson"]] = relationship(back_populates="session")


class ScheduledLesson(UUIDMixin, TimestampMixin, Base):
    """One student's lesson on the calendar."""

    __tablename__ = "scheduled_lessons"
    __table_args__ = (
        CheckConstraint("status IN ('scheduled', 'completed', 'cancelled')", name="status"),
        CheckConstraint("duration_min > 0", name="duration_positive"),
    )

    student_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject: Mapped[str] = mapped_column(String(50), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    duration_min: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="scheduled", server_default="scheduled", index=True
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    session_id: Mapped[Optional[str]] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("lesson_sessions.id", ondelete="SET NULL"),
        index=True,
    )
    override_amount: Mapped[Optional[float]] = mapped_column(Numeric(10, 2, asdecimal=False))

    student: Mapped[Student] = relationship()
    session: Mapped[Optional[LessonSession]] = relationship(back_populates="lessons")

    @property
    def is_combined_session(self) -> bool:
        return self.session_id is not None


class LessonRequest(UUIDMixin, TimestampMixin, Base):
    """A family's request to move a lesson or book an extra one.

    Requests submitted together for several children share a
    request_group_id so the tutor is notified once per group.
    """

    __tablename__ = "lesson_requests"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'scheduled')", name="status"
        ),
        CheckConstraint("request_type IN ('reschedule', 'dropin')", name="request_type"),
    )

    parent_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    student_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("students.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    subject: Mapped[str] = mapped_column(String(50), nullable=False)
    request_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default="reschedule", server_default="reschedule"
    )
    original_lesson_id: Mapped[Optional[str]] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("scheduled_lessons.id", ondelete="SET NULL"),
    )
    preferred_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    preferred_time: Mapped[Optional[time]] = mapped_column(Time)
    preferred_duration: Mapped[int] = mapped_column(
        Integer, nullable=False, default=60, server_default="60"
    )
    notes: Mapped[Optional[str]] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", server_default="pending", index=True
    )
    tutor_response: Mapped[Optional[str]] = mapped_column(Text)
    scheduled_lesson_id: Mapped[Optional[str]] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("scheduled_lessons.id", ondelete="SET NULL"),
    )
    request_group_id: Mapped[Optional[str]] = mapped_column(
        postgresql.UUID(as_uuid=False), index=True
    )

    parent: Mapped[Parent] = relationship()
    student: Mapped[Student] = relationship()

    @property
    def is_pending(self) -> bool:
        return self.status == "pending"

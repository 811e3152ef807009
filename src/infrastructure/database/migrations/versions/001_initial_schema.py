# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Initial schema: accounts, lessons, payments, reminders and notifications.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-01-05
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=False),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def _fk(name: str, target: str, ondelete: str = "CASCADE", nullable: bool = False) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=False),
        sa.ForeignKey(target, ondelete=ondelete),
        nullable=nullable,
    )


def _timestamp(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def _money(name: str, nullable: bool = False, default: str | None = "0") -> sa.Column:
    return sa.Column(
        name,
        sa.Numeric(10, 2),
        nullable=nullable,
        server_default=default,
    )


def upgrade() -> None:
    """Create the core tables."""
    # ==========================================================================
    # 1. parents table (families and the tutor)
    # ==========================================================================
    op.create_table(
        "parents",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="parent"),
        sa.Column("billing_mode", sa.String(20), nullable=False, server_default="invoice"),
        sa.Column(
            "prepaid_subjects",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column(
            "preferences",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("stripe_customer_id", sa.String(100), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(100), nullable=True),
        sa.Column("subscription_status", sa.String(20), nullable=True),
        sa.Column("subscription_plan", sa.String(20), nullable=True),
        sa.Column("trial_ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("subscription_ends_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("role IN ('parent', 'tutor')", name="ck_parents_role"),
        sa.CheckConstraint(
            "billing_mode IN ('invoice', 'prepaid')",
            name="ck_parents_billing_mode",
        ),
    )
    op.create_index("ix_parents_stripe_customer_id", "parents", ["stripe_customer_id"])
    op.create_index("ix_parents_stripe_subscription_id", "parents", ["stripe_subscription_id"])

    # ==========================================================================
    # 2. students table
    # ==========================================================================
    op.create_table(
        "students",
        _id(),
        _fk("parent_id", "parents.id"),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("age", sa.Integer, nullable=True),
        sa.Column("grade_level", sa.String(20), nullable=True),
        sa.Column(
            "subjects",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("avatar_url", sa.Text, nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_students_parent_id", "students", ["parent_id"])

    # ==========================================================================
    # 3. tutor_settings table
    # ==========================================================================
    op.create_table(
        "tutor_settings",
        _id(),
        sa.Column(
            "tutor_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("parents.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        _money("default_rate", default="45"),
        sa.Column("default_base_duration", sa.Integer, nullable=False, server_default="60"),
        _money("combined_session_rate", default="40"),
        sa.Column(
            "subject_rates",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column(
            "reminder_settings",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    # ==========================================================================
    # 4. lesson_sessions and scheduled_lessons tables
    # ==========================================================================
    op.create_table(
        "lesson_sessions",
        _id(),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_min", sa.Integer, nullable=False, server_default="60"),
        sa.Column("notes", sa.Text, nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )

    op.create_table(
        "scheduled_lessons",
        _id(),
        _fk("student_id", "students.id"),
        sa.Column("subject", sa.String(50), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("duration_min", sa.Integer, nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="scheduled"),
        sa.Column("notes", sa.Text, nullable=True),
        _fk("session_id", "lesson_sessions.id", ondelete="SET NULL", nullable=True),
        _money("override_amount", nullable=True, default=None),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'completed', 'cancelled')",
            name="ck_scheduled_lessons_status",
        ),
        sa.CheckConstraint("duration_min > 0", name="ck_scheduled_lessons_duration_positive"),
    )
    op.create_index("ix_scheduled_lessons_student_id", "scheduled_lessons", ["student_id"])
    op.create_index("ix_scheduled_lessons_scheduled_at", "scheduled_lessons", ["scheduled_at"])
    op.create_index("ix_scheduled_lessons_status", "scheduled_lessons", ["status"])
    op.create_index("ix_scheduled_lessons_session_id", "scheduled_lessons", ["session_id"])

    # ==========================================================================
    # 5. payments and payment_lessons tables
    # ==========================================================================
    op.create_table(
        "payments",
        _id(),
        _fk("parent_id", "parents.id"),
        sa.Column("month", sa.Date, nullable=False),
        _money("amount_due"),
        _money("amount_paid"),
        sa.Column("status", sa.String(20), nullable=False, server_default="unpaid"),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("payment_type", sa.String(20), nullable=False, server_default="invoice"),
        sa.Column("subject", sa.String(50), nullable=True),
        sa.Column("sessions_prepaid", sa.Integer, nullable=True),
        sa.Column("sessions_used", sa.Integer, nullable=False, server_default="0"),
        sa.Column("sessions_rolled_over", sa.Integer, nullable=False, server_default="0"),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint(
            "status IN ('unpaid', 'partial', 'paid')",
            name="ck_payments_status",
        ),
        sa.CheckConstraint(
            "payment_type IN ('invoice', 'prepaid')",
            name="ck_payments_payment_type",
        ),
        sa.CheckConstraint("amount_due >= 0", name="ck_payments_amount_due_non_negative"),
        sa.CheckConstraint("amount_paid >= 0", name="ck_payments_amount_paid_non_negative"),
    )
    op.create_index("ix_payments_parent_id", "payments", ["parent_id"])
    op.create_index("ix_payments_month", "payments", ["month"])
    op.create_index("ix_payments_status", "payments", ["status"])
    # One payment per family, month, type and subject; NULL subject means all
    op.execute(
        "CREATE UNIQUE INDEX uq_payments_family_month ON payments "
        "(parent_id, month, payment_type, coalesce(subject, '__all__'))"
    )

    op.create_table(
        "payment_lessons",
        _id(),
        _fk("payment_id", "payments.id"),
        sa.Column(
            "lesson_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("scheduled_lessons.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        _money("amount", default=None),
        sa.Column("paid", sa.Boolean, nullable=False, server_default="false"),
        _timestamp("created_at"),
    )
    op.create_index("ix_payment_lessons_payment_id", "payment_lessons", ["payment_id"])

    # ==========================================================================
    # 6. notifications table
    # ==========================================================================
    op.create_table(
        "notifications",
        _id(),
        _fk("recipient_id", "parents.id"),
        _fk("sender_id", "parents.id", ondelete="SET NULL", nullable=True),
        sa.Column("type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("priority", sa.String(10), nullable=False, server_default="normal"),
        sa.Column(
            "data",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),
        sa.Column("action_url", sa.Text, nullable=True),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "priority IN ('low', 'normal', 'high')",
            name="ck_notifications_priority",
        ),
    )
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_type", "notifications", ["type"])

    # ==========================================================================
    # 7. payment_reminders table
    # ==========================================================================
    op.create_table(
        "payment_reminders",
        _id(),
        _fk("payment_id", "payments.id"),
        _fk("parent_id", "parents.id"),
        sa.Column("reminder_type", sa.String(20), nullable=False),
        sa.Column("email_sent", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("email_id", sa.String(100), nullable=True),
        _fk("notification_id", "notifications.id", ondelete="SET NULL", nullable=True),
        sa.Column("message", sa.Text, nullable=True),
        _timestamp("sent_at"),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "reminder_type IN ('friendly', 'due_date', 'past_due_3', "
            "'past_due_7', 'past_due_14', 'manual')",
            name="ck_payment_reminders_reminder_type",
        ),
    )
    op.create_index("ix_payment_reminders_payment_id", "payment_reminders", ["payment_id"])
    op.create_index("ix_payment_reminders_parent_id", "payment_reminders", ["parent_id"])
    # At most one reminder per payment, type and UTC day
    op.execute(
        "CREATE UNIQUE INDEX uq_payment_reminders_daily ON payment_reminders "
        "(payment_id, reminder_type, ((sent_at AT TIME ZONE 'UTC')::date))"
    )


def downgrade() -> None:
    """Drop the core tables."""
    op.drop_table("payment_reminders")
    op.drop_table("notifications")
    op.drop_table("payment_lessons")
    op.drop_table("payments")
    op.drop_table("scheduled_lessons")
    op.drop_table("lesson_sessions")
    op.drop_table("tutor_settings")
    op.drop_table("students")
    op.drop_table("parents")

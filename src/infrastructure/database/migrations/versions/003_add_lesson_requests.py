# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Add lesson requests and parent portal invitations.

Revision ID: 003_add_lesson_requests
Revises: 002_add_messaging
Create Date: 2026-02-02
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "003_add_lesson_requests"
down_revision: str = "002_add_messaging"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _lesson_fk(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=False),
        sa.ForeignKey("scheduled_lessons.id", ondelete="SET NULL"),
        nullable=True,
    )


def upgrade() -> None:
    """Create lesson_requests and add invitation columns to parents."""
    # ==========================================================================
    # 1. lesson_requests table
    # ==========================================================================
    op.create_table(
        "lesson_requests",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=False),
            server_default=sa.text("gen_random_uuid()"),
            primary_key=True,
        ),
        sa.Column(
            "parent_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("parents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "student_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("students.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("subject", sa.String(50), nullable=False),
        sa.Column("request_type", sa.String(20), nullable=False, server_default="reschedule"),
        _lesson_fk("original_lesson_id"),
        sa.Column("preferred_date", sa.Date, nullable=False),
        sa.Column("preferred_time", sa.Time, nullable=True),
        sa.Column("preferred_duration", sa.Integer, nullable=False, server_default="60"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("tutor_response", sa.Text, nullable=True),
        _lesson_fk("scheduled_lesson_id"),
        sa.Column("request_group_id", postgresql.UUID(as_uuid=False), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected', 'scheduled')",
            name="ck_lesson_requests_status",
        ),
        sa.CheckConstraint(
            "request_type IN ('reschedule', 'dropin')",
            name="ck_lesson_requests_request_type",
        ),
    )
    op.create_index("ix_lesson_requests_parent_id", "lesson_requests", ["parent_id"])
    op.create_index("ix_lesson_requests_student_id", "lesson_requests", ["student_id"])
    op.create_index("ix_lesson_requests_status", "lesson_requests", ["status"])
    op.create_index("ix_lesson_requests_preferred_date", "lesson_requests", ["preferred_date"])
    op.create_index(
        "ix_lesson_requests_request_group_id", "lesson_requests", ["request_group_id"]
    )

    # ==========================================================================
    # 2. Invitation tracking on parents
    # ==========================================================================
    op.add_column(
        "parents",
        sa.Column("invitation_token", postgresql.UUID(as_uuid=False), nullable=True),
    )
    op.add_column(
        "parents",
        sa.Column("invitation_sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.add_column(
        "parents",
        sa.Column("invitation_expires_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.add_column(
        "parents",
        sa.Column("invitation_accepted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_unique_constraint(
        "uq_parents_invitation_token", "parents", ["invitation_token"]
    )


def downgrade() -> None:
    """Drop lesson_requests and the invitation columns."""
    op.drop_constraint("uq_parents_invitation_token", "parents", type_="unique")
    op.drop_column("parents", "invitation_accepted_at")
    op.drop_column("parents", "invitation_expires_at")
    op.drop_column("parents", "invitation_sent_at")
    op.drop_column("parents", "invitation_token")
    op.drop_table("lesson_requests")

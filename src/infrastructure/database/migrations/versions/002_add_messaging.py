# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Add parent groups and message threads.

Revision ID: 002_add_messaging
Revises: 001_initial_schema
Create Date: 2026-01-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "002_add_messaging"
down_revision: str = "001_initial_schema"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column(
        "id",
        postgresql.UUID(as_uuid=False),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def _parent_fk(name: str) -> sa.Column:
    return sa.Column(
        name,
        postgresql.UUID(as_uuid=False),
        sa.ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
    )


def _now(name: str) -> sa.Column:
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=sa.text("now()"),
    )


def upgrade() -> None:
    """Create messaging tables."""
    # ==========================================================================
    # 1. parent_groups and parent_group_members tables
    # ==========================================================================
    op.create_table(
        "parent_groups",
        _id(),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        _parent_fk("created_by"),
        _now("created_at"),
        _now("updated_at"),
    )
    op.create_index("ix_parent_groups_created_by", "parent_groups", ["created_by"])

    op.create_table(
        "parent_group_members",
        _id(),
        sa.Column(
            "group_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("parent_groups.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _parent_fk("parent_id"),
        _now("added_at"),
        sa.UniqueConstraint("group_id", "parent_id", name="uq_parent_group_members_group_id"),
    )
    op.create_index("ix_parent_group_members_group_id", "parent_group_members", ["group_id"])
    op.create_index("ix_parent_group_members_parent_id", "parent_group_members", ["parent_id"])

    # ==========================================================================
    # 2. message_threads table
    # ==========================================================================
    op.create_table(
        "message_threads",
        _id(),
        sa.Column("subject", sa.String(255), nullable=False),
        _parent_fk("created_by"),
        sa.Column("recipient_type", sa.String(20), nullable=False),
        sa.Column(
            "group_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("parent_groups.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        _now("created_at"),
        _now("updated_at"),
        sa.CheckConstraint(
            "recipient_type IN ('all', 'group', 'parent')",
            name="ck_message_threads_recipient_type",
        ),
    )
    op.create_index("ix_message_threads_created_by", "message_threads", ["created_by"])
    op.create_index("ix_message_threads_group_id", "message_threads", ["group_id"])

    # ==========================================================================
    # 3. messages, participants and reactions tables
    # ==========================================================================
    op.create_table(
        "messages",
        _id(),
        sa.Column(
            "thread_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("message_threads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _parent_fk("sender_id"),
        sa.Column("content", sa.Text, nullable=False),
        sa.Column(
            "images",
            postgresql.JSONB,
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        _now("created_at"),
    )
    op.create_index("ix_messages_thread_created", "messages", ["thread_id", "created_at"])
    op.create_index("ix_messages_sender_id", "messages", ["sender_id"])

    op.create_table(
        "message_thread_participants",
        _id(),
        sa.Column(
            "thread_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("message_threads.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _parent_fk("parent_id"),
        sa.Column("last_read_at", sa.DateTime(timezone=True), nullable=True),
        _now("joined_at"),
        sa.UniqueConstraint(
            "thread_id", "parent_id", name="uq_message_thread_participants_thread_id"
        ),
    )
    op.create_index(
        "ix_message_thread_participants_thread_id",
        "message_thread_participants",
        ["thread_id"],
    )
    op.create_index(
        "ix_message_thread_participants_parent_id",
        "message_thread_participants",
        ["parent_id"],
    )

    op.create_table(
        "message_reactions",
        _id(),
        sa.Column(
            "message_id",
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey("messages.id", ondelete="CASCADE"),
            nullable=False,
        ),
        _parent_fk("parent_id"),
        sa.Column("emoji", sa.String(32), nullable=False),
        _now("created_at"),
        sa.UniqueConstraint(
            "message_id", "parent_id", "emoji", name="uq_message_reactions_message_id"
        ),
    )
    op.create_index("ix_message_reactions_message_id", "message_reactions", ["message_id"])


def downgrade() -> None:
    """Drop messaging tables."""
    op.drop_table("message_reactions")
    op.drop_table("message_thread_participants")
    op.drop_table("messages")
    op.drop_table("message_threads")
    op.drop_table("parent_group_members")
    op.drop_table("parent_groups")

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Messaging models: parent groups, threads, messages and reactions."""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.infrastructure.database.models.base import Base, TimestampMixin, UUIDMixin, utc_now
from src.infrastructure.database.models.parent import Parent


class ParentGroup(UUIDMixin, TimestampMixin, Base):
    """Saved list of families used as a message audience."""

    __tablename__ = "parent_groups"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    created_by: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    members: Mapped[list["ParentGroupMember"]] = relationship(
        back_populates="group",
        cascade="all, delete-orphan",
    )


class ParentGroupMember(UUIDMixin, Base):
    __tablename__ = "parent_group_members"
    __table_args__ = (UniqueConstraint("group_id", "parent_id"),)

    group_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parent_groups.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=text("now()")
    )

    group: Mapped[ParentGroup] = relationship(back_populates="members")
    parent: Mapped[Parent] = relationship()


class MessageThread(UUIDMixin, TimestampMixin, Base):
    """Conversation started by the tutor or a family."""

    __tablename__ = "message_threads"
    __table_args__ = (
        CheckConstraint("recipient_type IN ('all', 'group', 'parent')", name="recipient_type"),
    )

    subject: Mapped[str] = mapped_column(String(255), nullable=False)
    created_by: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recipient_type: Mapped[str] = mapped_column(String(20), nullable=False)
    group_id: Mapped[Optional[str]] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parent_groups.id", ondelete="SET NULL"),
        index=True,
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")

    creator: Mapped[Parent] = relationship()
    group: Mapped[Optional[ParentGroup]] = relationship()
    participants: Mapped[list["MessageThreadParticipant"]] = relationship(
        back_populates="thread",
        cascade="all, delete-orphan",
    )


class Message(UUIDMixin, Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_thread_created", "thread_id", "created_at"),)

    thread_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("message_threads.id", ondelete="CASCADE"),
        nullable=False,
    )
    sender_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content: Mapped[str] = mapped_column(Text, nullable=False)
    images: Mapped[list[str]] = mapped_column(
        postgresql.JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=text("now()")
    )

    sender: Mapped[Parent] = relationship()
    reactions: Mapped[list["MessageReaction"]] = relationship(cascade="all, delete-orphan")


class MessageThreadParticipant(UUIDMixin, Base):
    """Membership of a parent in a thread, with read position."""

    __tablename__ = "message_thread_participants"
    __table_args__ = (UniqueConstraint("thread_id", "parent_id"),)

    thread_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("message_threads.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    last_read_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    joined_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=text("now()")
    )

    thread: Mapped[MessageThread] = relationship(back_populates="participants")


class MessageReaction(UUIDMixin, Base):
    __tablename__ = "message_reactions"
    __table_args__ = (UniqueConstraint("message_id", "parent_id", "emoji"),)

    message_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("messages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    parent_id: Mapped[str] = mapped_column(
        postgresql.UUID(as_uuid=False),
        ForeignKey("parents.id", ondelete="CASCADE"),
        nullable=False,
    )
    emoji: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, server_default=text("now()")
    )

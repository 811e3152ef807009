# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent-tutor messaging service.

This module provides the MessagingService that handles:
- Threads addressed to every family, a saved group or chosen families
- Messages with up to five images, emoji reactions and read tracking
- Tutor moderation: archive, delete and bulk operations
- Parent groups used as message audiences

Access is participant based: a parent sees a thread only when they were
added to it. The tutor may moderate any thread.

Example:
    >>> service = MessagingService(db_session)
    >>> thread = await service.create_thread(tutor_id, request)
    >>> await service.send_message(thread.thread.id, parent_id, reply)
"""

import logging

from sqlalchemy import and_, delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.infrastructure.database.models import (
    Message,
    MessageReaction,
    MessageThread,
    MessageThreadParticipant,
    Parent,
    ParentGroup,
    ParentGroupMember,
)
from src.infrastructure.database.models.base import generate_uuid
from src.models.messaging import (
    MessageResponse,
    MessageSendRequest,
    ParentGroupCreateRequest,
    ParentGroupResponse,
    ReactionSummary,
    ThreadCreateRequest,
    ThreadDetailResponse,
    ThreadListResponse,
    ThreadPreviewResponse,
)
from src.utils.datetime import utc_now

logger = logging.getLogger(__name__)


class MessagingServiceError(Exception):
    """Base exception for messaging errors."""

    pass


class ThreadNotFoundError(MessagingServiceError):
    """Raised when a thread does not exist or is not visible."""

    pass


class MessageNotFoundError(MessagingServiceError):
    """Raised when a message does not exist."""

    pass


class ParentGroupNotFoundError(MessagingServiceError):
    """Raised when a parent group does not exist."""

    pass


class NotParticipantError(MessagingServiceError):
    """Raised when the sender does not take part in the thread."""

    pass


class MessagingPermissionError(MessagingServiceError):
    """Raised when the acting account may not perform the operation."""

    pass


class InvalidRecipientsError(MessagingServiceError):
    """Raised when the recipients of a new thread are invalid."""

    pass


def message_to_response(
    message: Message, viewer_id: str | None = None
) -> MessageResponse:
    """Message view with reactions grouped by emoji."""
    grouped: dict[str, ReactionSummary] = {}
    for reaction in message.reactions:
        summary = grouped.setdefault(
            reaction.emoji, ReactionSummary(emoji=reaction.emoji, count=0)
        )
        summary.count += 1
        if viewer_id is not None and reaction.parent_id == viewer_id:
            summary.reacted_by_me = True

    sender = message.sender
    return MessageResponse(
        id=message.id,
        thread_id=message.thread_id,
        sender_id=message.sender_id,
        sender_name=sender.name if sender else None,
        sender_role=sender.role if sender else None,
        content=message.content,
        images=list(message.images or []),
        created_at=message.created_at,
        reactions=list(grouped.values()),
    )


def group_to_response(group: ParentGroup) -> ParentGroupResponse:
    return ParentGroupResponse(
        id=group.id,
        name=group.name,
        description=group.description,
        created_by=group.created_by,
        member_ids=[m.parent_id for m in group.members],
        created_at=group.created_at,
    )


class MessagingService:
    """Service for message threads and parent groups.

    Attributes:
        _db: Async database session.
    """

    def __init__(self, db: AsyncSession):
        self._db = db

    # =========================================================================
    # Threads
    # =========================================================================

    async def create_thread(
        self, sender_id: str, request: ThreadCreateRequest
    ) -> ThreadDetailResponse:
        """Start a thread with its first message.

        The sender joins with the thread already read. Recipients are every
        family ("all"), the members of a group ("group") or the listed
        families ("parent"); the sender is never added twice. Threads
        started by a family always include the tutor.

        Raises:
            InvalidRecipientsError: If the group or families are missing.
            ParentGroupNotFoundError: If the group does not exist.
        """
        sender = await self._get_account(sender_id)

        if request.recipient_type == "group" and not request.group_id:
            raise InvalidRecipientsError('group_id is required when recipient_type is "group"')
        if request.recipient_type == "parent" and not request.parent_ids:
            raise InvalidRecipientsError('parent_ids is required when recipient_type is "parent"')

        recipient_ids = await self._resolve_recipients(request)
        if not sender.is_tutor:
            tutors = await self._db.execute(select(Parent.id).where(Parent.role == "tutor"))
            recipient_ids.extend(tutors.scalars().all())

        now = utc_now()
        thread = MessageThread(
            id=generate_uuid(),
            subject=request.subject,
            created_by=sender.id,
            recipient_type=request.recipient_type,
            group_id=request.group_id if request.recipient_type == "group" else None,
            is_active=True,
        )
        self._db.add(thread)
        self._db.add(
            Message(
                id=generate_uuid(),
                thread_id=thread.id,
                sender_id=sender.id,
                content=request.content,
                images=list(request.images),
                created_at=now,
            )
        )

        self._db.add(
            MessageThreadParticipant(thread_id=thread.id, parent_id=sender.id, last_read_at=now)
        )
        added = {sender.id}
        for parent_id in recipient_ids:
            if parent_id in added:
                continue
            added.add(parent_id)
            self._db.add(MessageThreadParticipant(thread_id=thread.id, parent_id=parent_id))

        await self._db.commit()

        logger.info(
            "Thread created: %s by %s (%s, %d participants)",
            thread.id,
            sender.id,
            request.recipient_type,
            len(added),
        )

        return await self.get_thread(thread.id, sender.id)

    async def send_message(
        self, thread_id: str, sender_id: str, request: MessageSendRequest
    ) -> MessageResponse:
        """Post a message to a thread.

        Raises:
            NotParticipantError: If the sender is not in the thread.
        """
        participant = await self._get_participant(thread_id, sender_id)
        if participant is None:
            raise NotParticipantError("Sender is not a participant in this thread")

        now = utc_now()
        message = Message(
            id=generate_uuid(),
            thread_id=thread_id,
            sender_id=sender_id,
            content=request.content,
            images=list(request.images),
            created_at=now,
        )
        self._db.add(message)
        participant.last_read_at = now
        await self._db.execute(
            update(MessageThread).where(MessageThread.id == thread_id).values(updated_at=now)
        )
        await self._db.commit()

        logger.info("Message sent: %s in thread %s by %s", message.id, thread_id, sender_id)

        result = await self._db.execute(
            select(Message)
            .options(selectinload(Message.sender), selectinload(Message.reactions))
            .where(Message.id == message.id)
        )
        return message_to_response(result.scalar_one(), sender_id)

    async def list_threads(
        self,
        parent_id: str,
        limit: int = 50,
        include_archived: bool = False,
    ) -> ThreadListResponse:
        """Threads the account takes part in, latest activity first.

        Each row carries the latest message, the unread count and the
        number of participants.
        """
        stmt = (
            select(MessageThread, MessageThreadParticipant.last_read_at)
            .join(
                MessageThreadParticipant,
                and_(
                    MessageThreadParticipant.thread_id == MessageThread.id,
                    MessageThreadParticipant.parent_id == parent_id,
                ),
            )
            .options(selectinload(MessageThread.creator), selectinload(MessageThread.group))
            .order_by(MessageThread.updated_at.desc())
            .limit(limit)
        )
        if not include_archived:
            stmt = stmt.where(MessageThread.is_active.is_(True))

        result = await self._db.execute(stmt)
        rows = result.all()

        items = []
        for thread, last_read_at in rows:
            items.append(await self._preview(thread, parent_id, last_read_at))

        return ThreadListResponse(items=items, total=len(items))

    async def get_thread(self, thread_id: str, parent_id: str) -> ThreadDetailResponse:
        """Thread with all its messages, oldest first.

        Raises:
            ThreadNotFoundError: If the thread does not exist or the account
                is neither a participant nor the tutor.
        """
        thread = await self._get_thread(thread_id)
        participant = await self._get_participant(thread_id, parent_id)
        if participant is None:
            viewer = await self._get_account(parent_id)
            if not viewer.is_tutor:
                raise ThreadNotFoundError(f"Thread {thread_id} not found")

        result = await self._db.execute(
            select(Message)
            .options(selectinload(Message.sender), selectinload(Message.reactions))
            .where(Message.thread_id == thread_id)
            .order_by(Message.created_at)
        )
        messages = [message_to_response(m, parent_id) for m in result.scalars().all()]

        last_read_at = participant.last_read_at if participant else None
        return ThreadDetailResponse(
            thread=await self._preview(thread, parent_id, last_read_at),
            messages=messages,
        )

    async def mark_thread_read(self, thread_id: str, parent_id: str) -> bool:
        """Move the read position of the account to now."""
        result = await self._db.execute(
            update(MessageThreadParticipant)
            .where(
                MessageThreadParticipant.thread_id == thread_id,
                MessageThreadParticipant.parent_id == parent_id,
            )
            .values(last_read_at=utc_now())
        )
        await self._db.commit()
        return result.rowcount > 0

    async def get_unread_count(self, parent_id: str) -> int:
        """Messages from others newer than the account's read position."""
        result = await self._db.execute(
            select(func.count(Message.id))
            .join(
                MessageThreadParticipant,
                MessageThreadParticipant.thread_id == Message.thread_id,
            )
            .join(MessageThread, MessageThread.id == Message.thread_id)
            .where(
                MessageThreadParticipant.parent_id == parent_id,
                MessageThread.is_active.is_(True),
                Message.sender_id != parent_id,
                (MessageThreadParticipant.last_read_at.is_(None))
                | (Message.created_at > MessageThreadParticipant.last_read_at),
            )
        )
        return result.scalar() or 0

    async def toggle_reaction(self, message_id: str, parent_id: str, emoji: str) -> bool:
        """Add the reaction, or remove it when already present.

        Returns:
            True when the reaction was added, False when removed.

        Raises:
            MessageNotFoundError: If the message does not exist.
        """
        result = await self._db.execute(select(Message.id).where(Message.id == message_id))
        if result.scalar_one_or_none() is None:
            raise MessageNotFoundError(f"Message {message_id} not found")

        result = await self._db.execute(
            select(MessageReaction).where(
                MessageReaction.message_id == message_id,
                MessageReaction.parent_id == parent_id,
                MessageReaction.emoji == emoji,
            )
        )
        existing = result.scalar_one_or_none()
        if existing is not None:
            await self._db.delete(existing)
            await self._db.commit()
            return False

        self._db.add(MessageReaction(message_id=message_id, parent_id=parent_id, emoji=emoji))
        await self._db.commit()
        return True

    # =========================================================================
    # Moderation
    # =========================================================================

    async def archive_thread(self, thread_id: str, actor_id: str) -> bool:
        await self._require_tutor(actor_id, "Only tutors can archive threads")
        return await self._set_active([thread_id], False) > 0

    async def unarchive_thread(self, thread_id: str, actor_id: str) -> bool:
        await self._require_tutor(actor_id, "Only tutors can unarchive threads")
        return await self._set_active([thread_id], True) > 0

    async def bulk_archive_threads(self, thread_ids: list[str], actor_id: str) -> int:
        await self._require_tutor(actor_id, "Only tutors can archive threads")
        return await self._set_active(thread_ids, False)

    async def delete_thread(self, thread_id: str, actor_id: str) -> bool:
        """Delete a thread with its messages and participants."""
        return await self.bulk_delete_threads([thread_id], actor_id, "Only tutors can delete threads") > 0

    async def bulk_delete_threads(
        self,
        thread_ids: list[str],
        actor_id: str,
        denied_message: str = "Only tutors can bulk delete threads",
    ) -> int:
        await self._require_tutor(actor_id, denied_message)
        result = await self._db.execute(
            delete(MessageThread).where(MessageThread.id.in_(thread_ids))
        )
        await self._db.commit()
        logger.info("Threads deleted by %s: %d", actor_id, result.rowcount)
        return result.rowcount

    async def delete_message(self, message_id: str, actor_id: str) -> bool:
        """Delete a message. Tutors may delete any, others only their own.

        Raises:
            MessageNotFoundError: If the message does not exist.
            MessagingPermissionError: If the message belongs to someone else.
        """
        result = await self._db.execute(select(Message).where(Message.id == message_id))
        message = result.scalar_one_or_none()
        if message is None:
            raise MessageNotFoundError("Message not found")

        if message.sender_id != actor_id:
            actor = await self._get_account(actor_id)
            if not actor.is_tutor:
                raise MessagingPermissionError("Can only delete your own messages")

        await self._db.delete(message)
        await self._db.commit()
        logger.info("Message deleted: %s by %s", message_id, actor_id)
        return True

    async def bulk_delete_messages(self, message_ids: list[str], actor_id: str) -> int:
        await self._require_tutor(actor_id, "Only tutors can bulk delete messages")
        result = await self._db.execute(delete(Message).where(Message.id.in_(message_ids)))
        await self._db.commit()
        logger.info("Messages deleted by %s: %d", actor_id, result.rowcount)
        return result.rowcount

    # =========================================================================
    # Parent groups
    # =========================================================================

    async def create_group(
        self, creator_id: str, request: ParentGroupCreateRequest
    ) -> ParentGroupResponse:
        group = ParentGroup(
            id=generate_uuid(),
            name=request.name,
            description=request.description,
            created_by=creator_id,
        )
        for parent_id in dict.fromkeys(request.member_ids):
            group.members.append(ParentGroupMember(parent_id=parent_id))

        self._db.add(group)
        await self._db.commit()

        logger.info("Parent group created: %s (%d members)", group.id, len(group.members))

        return group_to_response(await self._get_group(group.id))

    async def list_groups(self) -> list[ParentGroupResponse]:
        result = await self._db.execute(
            select(ParentGroup)
            .options(selectinload(ParentGroup.members))
            .order_by(ParentGroup.name)
        )
        return [group_to_response(g) for g in result.scalars().all()]

    async def add_group_members(
        self, group_id: str, parent_ids: list[str]
    ) -> ParentGroupResponse:
        """Add families to a group, ignoring existing members."""
        group = await self._get_group(group_id)
        existing = {m.parent_id for m in group.members}
        for parent_id in dict.fromkeys(parent_ids):
            if parent_id not in existing:
                group.members.append(ParentGroupMember(parent_id=parent_id))
        await self._db.commit()
        return group_to_response(await self._get_group(group_id))

    async def remove_group_members(
        self, group_id: str, parent_ids: list[str]
    ) -> ParentGroupResponse:
        await self._get_group(group_id)
        await self._db.execute(
            delete(ParentGroupMember).where(
                ParentGroupMember.group_id == group_id,
                ParentGroupMember.parent_id.in_(parent_ids),
            )
        )
        await self._db.commit()
        return group_to_response(await self._get_group(group_id))

    async def delete_group(self, group_id: str) -> None:
        group = await self._get_group(group_id)
        await self._db.delete(group)
        await self._db.commit()
        logger.info("Parent group deleted: %s", group_id)

    # =========================================================================
    # Helpers
    # =========================================================================

    async def _resolve_recipients(self, request: ThreadCreateRequest) -> list[str]:
        if request.recipient_type == "all":
            result = await self._db.execute(select(Parent.id).where(Parent.role == "parent"))
            return list(result.scalars().all())

        if request.recipient_type == "group":
            group = await self._get_group(request.group_id)
            return [m.parent_id for m in group.members]

        result = await self._db.execute(select(Parent.id).where(Parent.id.in_(request.parent_ids)))
        found = list(result.scalars().all())
        if not found:
            raise InvalidRecipientsError("None of the selected parents exist")
        return found

    async def _preview(
        self, thread: MessageThread, viewer_id: str, last_read_at
    ) -> ThreadPreviewResponse:
        latest_result = await self._db.execute(
            select(Message)
            .options(selectinload(Message.sender), selectinload(Message.reactions))
            .where(Message.thread_id == thread.id)
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        latest = latest_result.scalar_one_or_none()

        unread_stmt = select(func.count(Message.id)).where(
            Message.thread_id == thread.id,
            Message.sender_id != viewer_id,
        )
        if last_read_at is not None:
            unread_stmt = unread_stmt.where(Message.created_at > last_read_at)
        unread_result = await self._db.execute(unread_stmt)

        count_result = await self._db.execute(
            select(func.count(MessageThreadParticipant.id)).where(
                MessageThreadParticipant.thread_id == thread.id
            )
        )

        return ThreadPreviewResponse(
            id=thread.id,
            subject=thread.subject,
            created_by=thread.created_by,
            creator_name=thread.creator.name if thread.creator else None,
            recipient_type=thread.recipient_type,
            group_id=thread.group_id,
            group_name=thread.group.name if thread.group else None,
            is_active=thread.is_active,
            created_at=thread.created_at,
            updated_at=thread.updated_at,
            latest_message=message_to_response(latest, viewer_id) if latest else None,
            unread_count=unread_result.scalar() or 0,
            participant_count=count_result.scalar() or 0,
        )

    async def _set_active(self, thread_ids: list[str], is_active: bool) -> int:
        result = await self._db.execute(
            update(MessageThread)
            .where(MessageThread.id.in_(thread_ids))
            .values(is_active=is_active, updated_at=utc_now())
        )
        await self._db.commit()
        logger.info("Threads %s: %d", "unarchived" if is_active else "archived", result.rowcount)
        return result.rowcount

    async def _require_tutor(self, actor_id: str, message: str) -> Parent:
        actor = await self._get_account(actor_id)
        if not actor.is_tutor:
            raise MessagingPermissionError(message)
        return actor

    async def _get_account(self, parent_id: str) -> Parent:
        result = await self._db.execute(select(Parent).where(Parent.id == parent_id))
        account = result.scalar_one_or_none()
        if account is None:
            raise MessagingPermissionError(f"Account {parent_id} not found")
        return account

    async def _get_thread(self, thread_id: str) -> MessageThread:
        result = await self._db.execute(
            select(MessageThread)
            .options(selectinload(MessageThread.creator), selectinload(MessageThread.group))
            .where(MessageThread.id == thread_id)
        )
        thread = result.scalar_one_or_none()
        if thread is None:
            raise ThreadNotFoundError(f"Thread {thread_id} not found")
        return thread

    async def _get_participant(
        self, thread_id: str, parent_id: str
    ) -> MessageThreadParticipant | None:
        result = await self._db.execute(
            select(MessageThreadParticipant).where(
                MessageThreadParticipant.thread_id == thread_id,
                MessageThreadParticipant.parent_id == parent_id,
            )
        )
        return result.scalar_one_or_none()

    async def _get_group(self, group_id: str) -> ParentGroup:
        result = await self._db.execute(
            select(ParentGroup)
            .options(selectinload(ParentGroup.members))
            .where(ParentGroup.id == group_id)
            .execution_options(populate_existing=True)
        )
        group = result.scalar_one_or_none()
        if group is None:
            raise ParentGroupNotFoundError(f"Parent group {group_id} not found")
        return group

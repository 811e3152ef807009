# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Messaging API endpoints.

This module provides endpoints for:
- Threads between the tutor and families, with messages and reactions
- Read state and unread counts
- Archiving and deleting threads (tutor only)
- Parent groups used as thread recipients (tutor only)

Example:
    GET /api/v1/messages/threads
    POST /api/v1/messages/threads
    POST /api/v1/messages/threads/{thread_id}/messages
    POST /api/v1/messages/{message_id}/reactions
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_auth, require_tutor
from src.api.middleware.auth import CurrentUser
from src.domains.messaging import (
    InvalidRecipientsError,
    MessageNotFoundError,
    MessagingPermissionError,
    MessagingService,
    MessagingServiceError,
    NotParticipantError,
    ParentGroupNotFoundError,
    ThreadNotFoundError,
)
from src.models.common import DeleteResponse, MessageResponse as StatusResponse
from src.models.messaging import (
    BulkIdsRequest,
    MessageResponse,
    MessageSendRequest,
    ParentGroupCreateRequest,
    ParentGroupMembersRequest,
    ParentGroupResponse,
    ReactionToggleRequest,
    ReactionToggleResponse,
    ThreadCreateRequest,
    ThreadDetailResponse,
    ThreadListResponse,
    UnreadCountResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _to_http_error(error: MessagingServiceError) -> HTTPException:
    """Map a messaging error onto an HTTP error."""
    if isinstance(error, (ThreadNotFoundError, MessageNotFoundError, ParentGroupNotFoundError)):
        status_code = status.HTTP_404_NOT_FOUND
    elif isinstance(error, (NotParticipantError, MessagingPermissionError)):
        status_code = status.HTTP_403_FORBIDDEN
    elif isinstance(error, InvalidRecipientsError):
        status_code = status.HTTP_400_BAD_REQUEST
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    return HTTPException(status_code=status_code, detail=str(error))


# =============================================================================
# Threads
# =============================================================================


@router.get(
    "/threads",
    response_model=ThreadListResponse,
    summary="List threads",
)
async def list_threads(
    limit: int = Query(50, ge=1, le=200),
    include_archived: bool = Query(False),
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> ThreadListResponse:
    service = MessagingService(db)
    return await service.list_threads(
        current_user.id,
        limit=limit,
        include_archived=include_archived,
    )


@router.post(
    "/threads",
    response_model=ThreadDetailResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start thread",
)
async def create_thread(
    data: ThreadCreateRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> ThreadDetailResponse:
    """Start a thread with its first message.

    Threads started by a family always include the tutor.
    """
    service = MessagingService(db)
    try:
        return await service.create_thread(current_user.id, data)
    except MessagingServiceError as e:
        raise _to_http_error(e)


@router.get(
    "/threads/unread-count",
    response_model=UnreadCountResponse,
    summary="Unread message count",
)
async def get_unread_count(
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> UnreadCountResponse:
    service = MessagingService(db)
    return UnreadCountResponse(unread=await service.get_unread_count(current_user.id))


@router.post(
    "/threads/archive",
    response_model=DeleteResponse,
    summary="Archive threads",
)
async def bulk_archive_threads(
    data: BulkIdsRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    service = MessagingService(db)
    try:
        return DeleteResponse(deleted=await service.bulk_archive_threads(data.ids, current_user.id))
    except MessagingServiceError as e:
        raise _to_http_error(e)


@router.post(
    "/threads/delete",
    response_model=DeleteResponse,
    summary="Delete threads",
)
async def bulk_delete_threads(
    data: BulkIdsRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    service = MessagingService(db)
    try:
        return DeleteResponse(deleted=await service.bulk_delete_threads(data.ids, current_user.id))
    except MessagingServiceError as e:
        raise _to_http_error(e)


@router.get(
    "/threads/{thread_id}",
    response_model=ThreadDetailResponse,
    summary="Get thread",
)
async def get_thread(
    thread_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> ThreadDetailResponse:
    service = MessagingService(db)
    try:
        return await service.get_thread(thread_id, current_user.id)
    except MessagingServiceError as e:
        raise _to_http_error(e)


@router.post(
    "/threads/{thread_id}/messages",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send message",
)
async def send_message(
    thread_id: str,
    data: MessageSendRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    service = MessagingService(db)
    try:
        return await service.send_message(thread_id, current_user.id, data)
    except MessagingServiceError as e:
        raise _to_http_error(e)


@router.post(
    "/threads/{thread_id}/read",
    response_model=StatusResponse,
    summary="Mark thread read",
)
async def mark_thread_read(
    thread_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> StatusResponse:
    service = MessagingService(db)
    updated = await service.mark_thread_read(thread_id, current_user.id)
    return StatusResponse(
        success=updated,
        message="Thread marked as read" if updated else "Not a participant in this thread",
    )


@router.post(
    "/threads/{thread_id}/archive",
    response_model=StatusResponse,
    summary="Archive thread",
)
async def archive_thread(
    thread_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> StatusResponse:
    service = MessagingService(db)
    try:
        archived = await service.archive_thread(thread_id, current_user.id)
    except MessagingServiceError as e:
        raise _to_http_error(e)
    if not archived:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Thread {thread_id} not found",
        )
    return StatusResponse(message="Thread archived")


@router.post(
    "/threads/{thread_id}/unarchive",
    response_model=StatusResponse,
    summary="Unarchive thread",
)
async def unarchive_thread(
    thread_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> StatusResponse:
    service = MessagingService(db)
    try:
        restored = await service.unarchive_thread(thread_id, current_user.id)
    except MessagingServiceError as e:
        raise _to_http_error(e)
    if not restored:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Thread {thread_id} not found",
        )
    return StatusResponse(message="Thread restored")


@router.delete(
    "/threads/{thread_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete thread",
)
async def delete_thread(
    thread_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> None:
    service = MessagingService(db)
    try:
        deleted = await service.delete_thread(thread_id, current_user.id)
    except MessagingServiceError as e:
        raise _to_http_error(e)
    if not deleted:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Thread {thread_id} not found",
        )


# =============================================================================
# Messages
# =============================================================================


@router.post(
    "/delete",
    response_model=DeleteResponse,
    summary="Delete messages",
)
async def bulk_delete_messages(
    data: BulkIdsRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> DeleteResponse:
    service = MessagingService(db)
    try:
        return DeleteResponse(deleted=await service.bulk_delete_messages(data.ids, current_user.id))
    except MessagingServiceError as e:
        raise _to_http_error(e)


@router.delete(
    "/{message_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete message",
)
async def delete_message(
    message_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a message. Families may only delete their own."""
    service = MessagingService(db)
    try:
        await service.delete_message(message_id, current_user.id)
    except MessagingServiceError as e:
        raise _to_http_error(e)


@router.post(
    "/{message_id}/reactions",
    response_model=ReactionToggleResponse,
    summary="Toggle reaction",
)
async def toggle_reaction(
    message_id: str,
    data: ReactionToggleRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> ReactionToggleResponse:
    """Add the emoji reaction, or remove it when already present."""
    service = MessagingService(db)
    try:
        added = await service.toggle_reaction(message_id, current_user.id, data.emoji)
    except MessagingServiceError as e:
        raise _to_http_error(e)
    return ReactionToggleResponse(added=added)


# =============================================================================
# Parent groups
# =============================================================================


@router.get(
    "/groups",
    response_model=list[ParentGroupResponse],
    summary="List parent groups",
)
async def list_groups(
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> list[ParentGroupResponse]:
    service = MessagingService(db)
    return await service.list_groups()


@router.post(
    "/groups",
    response_model=ParentGroupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create parent group",
)
async def create_group(
    data: ParentGroupCreateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> ParentGroupResponse:
    service = MessagingService(db)
    return await service.create_group(current_user.id, data)


@router.post(
    "/groups/{group_id}/members",
    response_model=ParentGroupResponse,
    summary="Add group members",
)
async def add_group_members(
    group_id: str,
    data: ParentGroupMembersRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> ParentGroupResponse:
    service = MessagingService(db)
    try:
        return await service.add_group_members(group_id, data.parent_ids)
    except ParentGroupNotFoundError as e:
        raise _to_http_error(e)


@router.post(
    "/groups/{group_id}/members/remove",
    response_model=ParentGroupResponse,
    summary="Remove group members",
)
async def remove_group_members(
    group_id: str,
    data: ParentGroupMembersRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> ParentGroupResponse:
    service = MessagingService(db)
    try:
        return await service.remove_group_members(group_id, data.parent_ids)
    except ParentGroupNotFoundError as e:
        raise _to_http_error(e)


@router.delete(
    "/groups/{group_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete parent group",
)
async def delete_group(
    group_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> None:
    service = MessagingService(db)
    try:
        await service.delete_group(group_id)
    except ParentGroupNotFoundError as e:
        raise _to_http_error(e)

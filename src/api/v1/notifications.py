# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""In-app notification API endpoints.

Example:
    GET /api/v1/notifications?unread_only=true
    POST /api/v1/notifications/{notification_id}/read
    POST /api/v1/notifications/read-all
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_auth
from src.api.middleware.auth import CurrentUser
from src.infrastructure.notifications import NotificationNotFoundError, NotificationService
from src.models.common import MessageResponse
from src.models.notification import NotificationListResponse, NotificationResponse

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=NotificationListResponse,
    summary="List notifications",
)
async def list_notifications(
    unread_only: bool = Query(False),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> NotificationListResponse:
    service = NotificationService(db)
    return await service.list_notifications(
        current_user.id,
        unread_only=unread_only,
        limit=limit,
        offset=offset,
    )


@router.post(
    "/read-all",
    response_model=MessageResponse,
    summary="Mark all notifications read",
)
async def mark_all_read(
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    service = NotificationService(db)
    count = await service.mark_all_read(current_user.id)
    return MessageResponse(message=f"{count} notifications marked as read")


@router.post(
    "/{notification_id}/read",
    response_model=NotificationResponse,
    summary="Mark notification read",
)
async def mark_read(
    notification_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> NotificationResponse:
    service = NotificationService(db)
    try:
        return await service.mark_read(notification_id, current_user.id)
    except NotificationNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

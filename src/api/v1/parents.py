# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Parent (family) management API endpoints.

This module provides endpoints for:
- Creating, listing, updating and deleting families (tutor only)
- Reading a family's own profile and students
- Emailing a family an invitation to the parent portal (tutor only)

Example:
    GET /api/v1/parents?billing_mode=prepaid
    GET /api/v1/parents/me
    PATCH /api/v1/parents/{parent_id}
    POST /api/v1/parents/{parent_id}/invite
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import (
    ensure_self_or_tutor,
    get_db,
    get_email_channel,
    require_auth,
    require_tutor,
)
from src.api.middleware.auth import CurrentUser
from src.domains.parent import (
    InvitationDeliveryError,
    InvitationNotAllowedError,
    InvitationService,
    ParentService,
)
from src.domains.parent.service import ParentEmailExistsError, ParentNotFoundError
from src.infrastructure.notifications import EmailChannel
from src.models.parent import (
    InvitationSendResponse,
    ParentCreateRequest,
    ParentListResponse,
    ParentResponse,
    ParentUpdateRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()

# Fields only the tutor may change on a family
TUTOR_ONLY_FIELDS = frozenset({"billing_mode", "prepaid_subjects"})


def _get_parent_service(db: AsyncSession) -> ParentService:
    return ParentService(db)


def _get_invitation_service(db: AsyncSession, email_channel: EmailChannel) -> InvitationService:
    return InvitationService(db, email_channel=email_channel)


@router.post(
    "",
    response_model=ParentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create family",
)
async def create_parent(
    data: ParentCreateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> ParentResponse:
    """Create a family account.

    Raises:
        HTTPException: If the email is already registered.
    """
    logger.info("Creating parent: email=%s, by=%s", data.email, current_user.id)

    service = _get_parent_service(db)
    try:
        return await service.create_parent(data)
    except ParentEmailExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.get(
    "",
    response_model=ParentListResponse,
    summary="List families",
)
async def list_parents(
    role: str | None = Query("parent", description="parent, tutor, or empty for all"),
    billing_mode: str | None = Query(None, description="invoice or prepaid"),
    search: str | None = Query(None, description="Match on name or email"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> ParentListResponse:
    service = _get_parent_service(db)
    return await service.list_parents(
        role=role or None,
        billing_mode=billing_mode,
        search=search,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/prepaid",
    response_model=list[ParentResponse],
    summary="List prepaid families",
)
async def list_prepaid_parents(
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> list[ParentResponse]:
    """Families billed through prepaid session plans."""
    service = _get_parent_service(db)
    return await service.get_prepaid_parents()


@router.get(
    "/me",
    response_model=ParentResponse,
    summary="Get own profile",
)
async def get_me(
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> ParentResponse:
    service = _get_parent_service(db)
    try:
        return await service.get_parent(current_user.id)
    except ParentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User profile not found",
        )


@router.get(
    "/{parent_id}",
    response_model=ParentResponse,
    summary="Get family",
)
async def get_parent(
    parent_id: str,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> ParentResponse:
    ensure_self_or_tutor(current_user, parent_id)

    service = _get_parent_service(db)
    try:
        return await service.get_parent(parent_id)
    except ParentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Parent {parent_id} not found",
        )


@router.patch(
    "/{parent_id}",
    response_model=ParentResponse,
    summary="Update family",
)
async def update_parent(
    parent_id: str,
    data: ParentUpdateRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> ParentResponse:
    """Update a family.

    Families may edit their own contact details and preferences; the
    billing mode and prepaid subjects are set by the tutor.

    Raises:
        HTTPException: If not allowed, not found, or the email is taken.
    """
    ensure_self_or_tutor(current_user, parent_id)
    if not current_user.is_tutor and TUTOR_ONLY_FIELDS & data.model_fields_set:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only the tutor can change billing settings",
        )

    service = _get_parent_service(db)
    try:
        return await service.update_parent(parent_id, data)
    except ParentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Parent {parent_id} not found",
        )
    except ParentEmailExistsError as e:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=str(e),
        )


@router.delete(
    "/{parent_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete family",
)
async def delete_parent(
    parent_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> None:
    """Delete a family with its students and their lessons."""
    logger.info("Deleting parent: %s, by=%s", parent_id, current_user.id)

    service = _get_parent_service(db)
    try:
        await service.delete_parent(parent_id)
    except ParentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Parent {parent_id} not found",
        )


@router.post(
    "/{parent_id}/invite",
    response_model=InvitationSendResponse,
    summary="Invite family to the portal",
)
async def invite_parent(
    parent_id: str,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
    email_channel: EmailChannel = Depends(get_email_channel),
) -> InvitationSendResponse:
    """Email a family a registration link valid for seven days.

    Raises:
        HTTPException: 404 unknown family, 400 not invitable,
            502 email provider failure.
    """
    logger.info("Inviting parent: %s, by=%s", parent_id, current_user.id)

    service = _get_invitation_service(db, email_channel)
    try:
        return await service.send_invitation(parent_id)
    except ParentNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Parent {parent_id} not found",
        )
    except InvitationNotAllowedError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )
    except InvitationDeliveryError as e:
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail=str(e),
        )

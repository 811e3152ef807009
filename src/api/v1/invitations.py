# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Public parent portal invitation endpoints.

Families open the link from their invitation email without an account,
so these endpoints skip authentication and are rate limited instead.

Example:
    POST /api/v1/invitations/validate
    POST /api/v1/invitations/accept
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_jwt_manager
from src.api.middleware.rate_limit import RATE_LIMIT_INVITATIONS, limiter
from src.domains.auth.jwt import JWTManager
from src.domains.parent import InvitationInvalidError, InvitationService
from src.models.parent import (
    InvitationAcceptResponse,
    InvitationStatusResponse,
    InvitationTokenRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _get_invitation_service(db: AsyncSession, jwt_manager: JWTManager) -> InvitationService:
    return InvitationService(db, jwt_manager=jwt_manager)


@router.post(
    "/validate",
    response_model=InvitationStatusResponse,
    summary="Check invitation link",
)
@limiter.limit(RATE_LIMIT_INVITATIONS)
async def validate_invitation(
    request: Request,
    data: InvitationTokenRequest,
    db: AsyncSession = Depends(get_db),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
) -> InvitationStatusResponse:
    service = _get_invitation_service(db, jwt_manager)
    return await service.validate_invitation(data.token)


@router.post(
    "/accept",
    response_model=InvitationAcceptResponse,
    summary="Accept invitation",
)
@limiter.limit(RATE_LIMIT_INVITATIONS)
async def accept_invitation(
    request: Request,
    data: InvitationTokenRequest,
    db: AsyncSession = Depends(get_db),
    jwt_manager: JWTManager = Depends(get_jwt_manager),
) -> InvitationAcceptResponse:
    """Activate the invited account and return an access token.

    Raises:
        HTTPException: 400 if the token is unknown, used or expired.
    """
    service = _get_invitation_service(db, jwt_manager)
    try:
        return await service.accept_invitation(data.token)
    except InvitationInvalidError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e),
        )

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tutor settings API endpoints.

Rates per subject, the combined session rate and the automatic
reminder configuration.

Example:
    GET /api/v1/settings
    PUT /api/v1/settings
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, require_auth, require_tutor
from src.api.middleware.auth import CurrentUser
from src.domains.billing import TutorNotFoundError, TutorSettingsService
from src.models.parent import TutorSettingsResponse, TutorSettingsUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "",
    response_model=TutorSettingsResponse,
    summary="Get tutor settings",
)
async def get_settings(
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
) -> TutorSettingsResponse:
    """Get the tutor's rates and reminder settings.

    Families read the same settings, so they can see the rates they
    are billed with. Defaults are returned when nothing has been saved.
    """
    service = TutorSettingsService(db)
    tutor_id = current_user.id if current_user.is_tutor else None
    return await service.get_settings(tutor_id)


@router.put(
    "",
    response_model=TutorSettingsResponse,
    summary="Update tutor settings",
)
async def update_settings(
    data: TutorSettingsUpdateRequest,
    current_user: CurrentUser = Depends(require_tutor),
    db: AsyncSession = Depends(get_db),
) -> TutorSettingsResponse:
    logger.info("Updating tutor settings: %s", current_user.id)

    service = TutorSettingsService(db)
    try:
        return await service.update_settings(current_user.id, data)
    except TutorNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(e),
        )

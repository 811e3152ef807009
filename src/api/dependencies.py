# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""FastAPI dependency injection definitions.

This module provides dependency functions for FastAPI endpoints.
Dependencies are used to:
- Get database sessions
- Get the authenticated account
- Restrict endpoints to the tutor

Example:
    @router.get("/payments")
    async def list_payments(
        db: AsyncSession = Depends(get_db),
        current_user: CurrentUser = Depends(require_tutor),
    ):
        ...
"""

import logging
from typing import Annotated, AsyncGenerator

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.auth import CurrentUser, get_current_user
from src.core.config import get_settings
from src.domains.auth.jwt import JWTManager
from src.infrastructure.billing import StripeClient
from src.infrastructure.database.connection import (
    close_database,
    get_session,
    init_database,
)
from src.infrastructure.notifications import EmailChannel

logger = logging.getLogger(__name__)


async def init_db() -> None:
    """Initialize the database connection pool."""
    await init_database(get_settings())


async def close_db() -> None:
    """Close the database connection pool."""
    await close_database()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Get a database session for the request.

    Yields:
        AsyncSession, committed or rolled back when the request ends.
    """
    async with get_session() as session:
        yield session


# =========================================================================
# Authentication Dependencies
# =========================================================================


def get_optional_user(request: Request) -> CurrentUser | None:
    """Get current user if authenticated, None otherwise."""
    return get_current_user(request)


def require_auth(request: Request) -> CurrentUser:
    """Require an authenticated account.

    Raises:
        HTTPException: If not authenticated.
    """
    user = get_current_user(request)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user


def require_tutor(request: Request) -> CurrentUser:
    """Require the tutor account.

    Raises:
        HTTPException: If not authenticated or not a tutor.
    """
    user = require_auth(request)
    if not user.is_tutor:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Tutor access required",
        )
    return user


def ensure_self_or_tutor(user: CurrentUser, parent_id: str) -> None:
    """Allow families to read only their own records.

    Raises:
        HTTPException: If a family asks for another family's data.
    """
    if not user.is_tutor and user.id != str(parent_id):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You can only access your own records",
        )


def get_jwt_manager() -> JWTManager:
    return JWTManager(get_settings().jwt)


# =========================================================================
# Provider Clients
# =========================================================================


async def get_email_channel() -> AsyncGenerator[EmailChannel, None]:
    """Email channel for the request, closed when the request ends."""
    channel = EmailChannel(get_settings().email)
    try:
        yield channel
    finally:
        await channel.close()


async def get_stripe_client() -> AsyncGenerator[StripeClient, None]:
    """Payment provider client for the request, closed when the request ends."""
    client = StripeClient(get_settings().stripe)
    try:
        yield client
    finally:
        await client.close()


# Type aliases for cleaner endpoint signatures
DB = Annotated[AsyncSession, Depends(get_db)]
OptionalUser = Annotated[CurrentUser | None, Depends(get_optional_user)]
AuthenticatedUser = Annotated[CurrentUser, Depends(require_auth)]
TutorUser = Annotated[CurrentUser, Depends(require_tutor)]

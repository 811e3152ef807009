# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tutor subscription API endpoints.

This module provides endpoints for:
- Starting a hosted checkout for the solo or pro plan
- Opening the hosted billing portal
- Receiving payment provider webhooks (public, signature verified)

Example:
    POST /api/v1/subscriptions/checkout
    POST /api/v1/subscriptions/portal
    POST /api/v1/subscriptions/webhook
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_stripe_client, require_auth
from src.api.middleware.auth import CurrentUser
from src.domains.subscription import (
    NoBillingAccountError,
    SubscriptionAccountNotFoundError,
    SubscriptionConflictError,
    SubscriptionForbiddenError,
    SubscriptionService,
)
from src.infrastructure.billing import StripeClient, StripeError, StripeSignatureError
from src.models.subscription import (
    CheckoutRequest,
    CheckoutResponse,
    PortalRequest,
    PortalResponse,
    WebhookResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _provider_error(error: StripeError) -> HTTPException:
    """Provider failures surface as 502 unless we caused them."""
    status_code = status.HTTP_502_BAD_GATEWAY
    if error.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR:
        status_code = error.status_code
    return HTTPException(status_code=status_code, detail=str(error))


@router.post(
    "/checkout",
    response_model=CheckoutResponse,
    summary="Start checkout",
)
async def create_checkout(
    data: CheckoutRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
    stripe: StripeClient = Depends(get_stripe_client),
) -> CheckoutResponse:
    """Start a hosted checkout with a trial for a plan.

    Raises:
        HTTPException: 404 no profile, 403 not a tutor, 409 already
            subscribed, 502 provider failure.
    """
    logger.info("Creating checkout: parent=%s, plan=%s", current_user.id, data.plan)

    service = SubscriptionService(db, stripe=stripe)
    try:
        return await service.create_checkout(
            current_user.id,
            data.plan,
            success_url=data.success_url,
            cancel_url=data.cancel_url,
        )
    except SubscriptionAccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SubscriptionForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except SubscriptionConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except StripeError as e:
        raise _provider_error(e)


@router.post(
    "/portal",
    response_model=PortalResponse,
    summary="Open billing portal",
)
async def create_portal(
    data: PortalRequest,
    current_user: CurrentUser = Depends(require_auth),
    db: AsyncSession = Depends(get_db),
    stripe: StripeClient = Depends(get_stripe_client),
) -> PortalResponse:
    service = SubscriptionService(db, stripe=stripe)
    try:
        return await service.create_portal(current_user.id, data.return_url)
    except SubscriptionAccountNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except SubscriptionForbiddenError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except NoBillingAccountError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StripeError as e:
        raise _provider_error(e)


@router.post(
    "/webhook",
    response_model=WebhookResponse,
    summary="Payment provider webhook",
)
async def handle_webhook(
    request: Request,
    stripe_signature: str | None = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
    stripe: StripeClient = Depends(get_stripe_client),
) -> WebhookResponse:
    """Apply a signed provider event to the tutor's subscription.

    The raw body is verified, so it is read before any parsing.
    """
    payload = await request.body()

    service = SubscriptionService(db, stripe=stripe)
    try:
        return await service.handle_webhook(payload, stripe_signature)
    except StripeSignatureError as e:
        logger.warning("Webhook signature verification failed: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except StripeError as e:
        logger.error("Webhook processing failed: %s", e)
        raise _provider_error(e)

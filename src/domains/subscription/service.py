# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tutor subscription service.

This module provides the SubscriptionService that handles:
- Hosted checkout for the solo and pro plans, with a trial
- The hosted billing portal
- Stripe webhooks that keep the tutor's subscription fields current

Subscription state lives on the tutor's Parent row
(stripe_customer_id, stripe_subscription_id, subscription_status,
subscription_plan, trial_ends_at, subscription_ends_at).
"""

import logging
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import StripeSettings, get_settings
from src.infrastructure.billing import StripeClient, StripeError
from src.infrastructure.database.models import Parent
from src.models.subscription import (
    CheckoutResponse,
    PortalResponse,
    WebhookResponse,
)
from src.utils.datetime import utc_from_timestamp, utc_now

logger = logging.getLogger(__name__)

# Provider statuses kept as they are; everything else maps to expired
STATUS_MAP = {
    "trialing": "trialing",
    "active": "active",
    "past_due": "past_due",
    "canceled": "cancelled",
}


class SubscriptionServiceError(Exception):
    """Base exception for subscription errors."""

    pass


class SubscriptionAccountNotFoundError(SubscriptionServiceError):
    """Raised when the acting account does not exist."""

    pass


class SubscriptionForbiddenError(SubscriptionServiceError):
    """Raised when a non-tutor account tries to subscribe."""

    pass


class SubscriptionConflictError(SubscriptionServiceError):
    """Raised when the tutor already has a live subscription."""

    pass


class NoBillingAccountError(SubscriptionServiceError):
    """Raised when the tutor has no provider customer yet."""

    pass


def map_subscription_status(status: str | None) -> str:
    """Map a provider subscription status onto ours."""
    return STATUS_MAP.get(status or "", "expired")


def _timestamp(value: Any):
    return utc_from_timestamp(value) if value else None


class SubscriptionService:
    """Service for tutor subscriptions.

    Attributes:
        _db: Async database session.
        _stripe: Payment provider client.
        _settings: Price ids and trial length.
    """

    def __init__(
        self,
        db: AsyncSession,
        stripe: StripeClient | None = None,
        settings: StripeSettings | None = None,
    ):
        self._db = db
        self._settings = settings or get_settings().stripe
        self._stripe = stripe or StripeClient(self._settings)

    # =========================================================================
    # Checkout and portal
    # =========================================================================

    async def create_checkout(
        self,
        parent_id: str,
        plan: str,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutResponse:
        """Start a hosted checkout for a plan.

        Reuses the provider customer of the tutor, looking it up by email
        or creating it when unknown, and stores its id.

        Raises:
            SubscriptionForbiddenError: If the account is not a tutor.
            SubscriptionConflictError: If a subscription is active or trialing.
            StripeError: If the provider rejects a request.
        """
        parent = await self._get_account(parent_id)
        if not parent.is_tutor:
            raise SubscriptionForbiddenError("Only tutors can subscribe")

        price_id = self._settings.price_id_for(plan)
        if not price_id:
            raise StripeError("Stripe price IDs are not configured", status_code=500)

        customer_id = parent.stripe_customer_id
        if not customer_id:
            customer = await self._stripe.find_customer_by_email(parent.email)
            if customer is None:
                customer = await self._stripe.create_customer(
                    email=parent.email,
                    name=parent.name,
                    metadata={"parent_id": parent.id},
                )
            customer_id = customer["id"]
            parent.stripe_customer_id = customer_id
            await self._db.commit()
            logger.info("Linked provider customer %s to parent %s", customer_id, parent.id)

        if await self._stripe.list_subscriptions(customer_id, status="active", limit=1):
            raise SubscriptionConflictError(
                "You already have an active subscription. "
                "Please manage it from the billing portal."
            )
        if await self._stripe.list_subscriptions(customer_id, status="trialing", limit=1):
            raise SubscriptionConflictError(
                "You already have an active trial. Please manage it from the billing portal."
            )

        session = await self._stripe.create_checkout_session(
            customer_id=customer_id,
            price_id=price_id,
            success_url=success_url,
            cancel_url=cancel_url,
            metadata={"parent_id": parent.id, "plan": plan},
            trial_days=self._settings.trial_days,
        )

        logger.info("Checkout session %s created for parent %s (%s)", session["id"], parent.id, plan)

        return CheckoutResponse(url=session["url"], session_id=session["id"])

    async def create_portal(self, parent_id: str, return_url: str) -> PortalResponse:
        """Open the hosted billing portal.

        Raises:
            SubscriptionForbiddenError: If the account is not a tutor.
            NoBillingAccountError: If no provider customer exists.
        """
        parent = await self._get_account(parent_id)
        if not parent.is_tutor:
            raise SubscriptionForbiddenError("Only tutors can access billing portal")
        if not parent.stripe_customer_id:
            raise NoBillingAccountError("No billing account found. Please subscribe first.")

        session = await self._stripe.create_portal_session(parent.stripe_customer_id, return_url)
        return PortalResponse(url=session["url"])

    # =========================================================================
    # Webhooks
    # =========================================================================

    async def handle_webhook(
        self, payload: bytes, signature: str | None
    ) -> WebhookResponse:
        """Verify and apply a provider event.

        Unknown event types and events for unknown accounts are
        acknowledged without changes.

        Raises:
            StripeSignatureError: If the signature does not verify.
        """
        event = self._stripe.construct_event(payload, signature)
        event_type = event.get("type")
        obj = (event.get("data") or {}).get("object") or {}

        logger.info("Received webhook event: %s", event_type)

        handlers = {
            "checkout.session.completed": self._on_checkout_completed,
            "customer.subscription.updated": self._on_subscription_updated,
            "customer.subscription.deleted": self._on_subscription_deleted,
            "invoice.payment_failed": self._on_invoice_payment_failed,
            "invoice.paid": self._on_invoice_paid,
        }
        handler = handlers.get(event_type)
        if handler is None:
            logger.info("Unhandled event type: %s", event_type)
            return WebhookResponse(event_type=event_type)

        handled = await handler(obj)
        if handled:
            await self._db.commit()
        return WebhookResponse(event_type=event_type, handled=handled)

    async def _on_checkout_completed(self, session: dict[str, Any]) -> bool:
        if session.get("mode") != "subscription":
            logger.info("Checkout %s is not a subscription, skipping", session.get("id"))
            return False

        metadata = session.get("metadata") or {}
        parent_id = metadata.get("parent_id")
        if not parent_id:
            logger.error("Missing parent_id in checkout session %s metadata", session.get("id"))
            return False

        parent = await self._find_parent(parent_id=parent_id)
        if parent is None:
            logger.error("Checkout %s references unknown parent %s", session.get("id"), parent_id)
            return False

        subscription = await self._stripe.retrieve_subscription(session["subscription"])
        parent.stripe_customer_id = session.get("customer")
        parent.stripe_subscription_id = session["subscription"]
        parent.subscription_plan = metadata.get("plan") or "solo"
        self._apply_subscription(parent, subscription)

        logger.info("Parent subscription updated after checkout: %s", parent.id)
        return True

    async def _on_subscription_updated(self, subscription: dict[str, Any]) -> bool:
        parent = await self._find_parent(
            customer_id=subscription.get("customer"),
            subscription_id=subscription.get("id"),
        )
        if parent is None:
            logger.error("Could not find parent for subscription %s", subscription.get("id"))
            return False

        plan = (subscription.get("metadata") or {}).get("plan")
        parent.stripe_subscription_id = subscription.get("id")
        parent.subscription_plan = plan or parent.subscription_plan or "solo"
        self._apply_subscription(parent, subscription)

        logger.info(
            "Subscription status updated for parent %s: %s",
            parent.id,
            parent.subscription_status,
        )
        return True

    async def _on_subscription_deleted(self, subscription: dict[str, Any]) -> bool:
        parent = await self._find_parent(
            customer_id=subscription.get("customer"),
            subscription_id=subscription.get("id"),
        )
        if parent is None:
            logger.error(
                "Could not find parent for deleted subscription %s", subscription.get("id")
            )
            return False

        parent.subscription_status = "cancelled"
        parent.subscription_ends_at = utc_now()
        logger.info("Subscription marked as cancelled for parent %s", parent.id)
        return True

    async def _on_invoice_payment_failed(self, invoice: dict[str, Any]) -> bool:
        if not invoice.get("subscription"):
            logger.info("Invoice %s is not for a subscription, skipping", invoice.get("id"))
            return False

        parent = await self._find_parent(customer_id=invoice.get("customer"))
        if parent is None:
            logger.error("Could not find parent for failed invoice %s", invoice.get("id"))
            return False

        parent.subscription_status = "past_due"
        logger.info("Subscription marked as past_due for parent %s", parent.id)
        return True

    async def _on_invoice_paid(self, invoice: dict[str, Any]) -> bool:
        if not invoice.get("subscription"):
            return False

        parent = await self._find_parent(customer_id=invoice.get("customer"))
        if parent is None or parent.subscription_status != "past_due":
            return False

        parent.subscription_status = "active"
        logger.info("Subscription restored to active for parent %s", parent.id)
        return True

    # =========================================================================
    # Helpers
    # =========================================================================

    def _apply_subscription(self, parent: Parent, subscription: dict[str, Any]) -> None:
        parent.subscription_status = map_subscription_status(subscription.get("status"))
        parent.trial_ends_at = _timestamp(subscription.get("trial_end"))
        parent.subscription_ends_at = _timestamp(subscription.get("current_period_end"))

    async def _get_account(self, parent_id: str) -> Parent:
        parent = await self._find_parent(parent_id=parent_id)
        if parent is None:
            raise SubscriptionAccountNotFoundError("User profile not found")
        return parent

    async def _find_parent(
        self,
        parent_id: str | None = None,
        customer_id: str | None = None,
        subscription_id: str | None = None,
    ) -> Parent | None:
        conditions = []
        if parent_id:
            conditions.append(Parent.id == parent_id)
        if customer_id:
            conditions.append(Parent.stripe_customer_id == customer_id)
        if subscription_id:
            conditions.append(Parent.stripe_subscription_id == subscription_id)
        if not conditions:
            return None

        result = await self._db.execute(select(Parent).where(or_(*conditions)).limit(1))
        return result.scalar_one_or_none()

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Stripe client.

Async wrapper over the parts of the Stripe API used for tutor
subscriptions: customers, subscriptions, hosted checkout, the billing
portal and webhook signature verification.

Calls go through ``stripe.StripeClient`` with an httpx transport. SDK
objects are returned as plain dicts and SDK errors are re-raised as
StripeError so callers never depend on the SDK types.
"""

import logging
from typing import Any, Awaitable

import stripe

from src.core.config import StripeSettings, get_settings

logger = logging.getLogger(__name__)


class StripeError(Exception):
    """Raised when a Stripe request fails."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class StripeSignatureError(StripeError):
    """Raised when a webhook signature cannot be verified."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status_code=400)


class StripeClient:
    """Async Stripe API client.

    Args:
        settings: Stripe settings. Defaults to the application settings.
        http_client: SDK transport. Defaults to ``stripe.HTTPXClient``.
    """

    def __init__(
        self,
        settings: StripeSettings | None = None,
        http_client: stripe.HTTPClient | None = None,
    ) -> None:
        self._settings = settings or get_settings().stripe
        self._http_client = http_client
        self._client: stripe.StripeClient | None = None

    @property
    def is_configured(self) -> bool:
        return bool(self._settings.secret_key.get_secret_value())

    def _get_client(self) -> stripe.StripeClient:
        if not self.is_configured:
            raise StripeError("Payment provider is not configured", status_code=500)

        if self._client is None:
            if self._http_client is None:
                self._http_client = stripe.HTTPXClient(timeout=self._settings.timeout)
            self._client = stripe.StripeClient(
                self._settings.secret_key.get_secret_value(),
                base_addresses={"api": self._settings.api_base},
                max_network_retries=self._settings.max_network_retries,
                http_client=self._http_client,
            )
        return self._client

    async def close(self) -> None:
        if self._http_client is not None:
            await self._http_client.close_async()
            self._http_client = None
        self._client = None

    async def _call(self, operation: str, request: Awaitable[Any]) -> dict[str, Any]:
        """Await an SDK request and return its body as a dict."""
        try:
            result = await request
        except stripe.StripeError as e:
            logger.error(
                "%s failed with status %s: %s", operation, e.http_status, e.user_message
            )
            raise StripeError(
                f"{operation} failed: {e.user_message or 'payment provider unreachable'}",
                status_code=e.http_status,
            ) from e
        return result.to_dict()

    # =========================================================================
    # Customers
    # =========================================================================

    async def find_customer_by_email(self, email: str) -> dict[str, Any] | None:
        """Return the first customer with this email, if any."""
        data = await self._call(
            "List customers",
            self._get_client().v1.customers.list_async(params={"email": email, "limit": 1}),
        )
        customers = data.get("data") or []
        return customers[0] if customers else None

    async def create_customer(
        self,
        email: str,
        name: str | None = None,
        metadata: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {"email": email, "metadata": metadata or {}}
        if name:
            params["name"] = name

        customer = await self._call(
            "Create customer",
            self._get_client().v1.customers.create_async(params=params),
        )
        logger.info("Created Stripe customer %s", customer.get("id"))
        return customer

    # =========================================================================
    # Subscriptions
    # =========================================================================

    async def list_subscriptions(
        self, customer_id: str, status: str = "all", limit: int = 10
    ) -> list[dict[str, Any]]:
        data = await self._call(
            "List subscriptions",
            self._get_client().v1.subscriptions.list_async(
                params={"customer": customer_id, "status": status, "limit": limit}
            ),
        )
        return data.get("data") or []

    async def retrieve_subscription(self, subscription_id: str) -> dict[str, Any]:
        return await self._call(
            "Retrieve subscription",
            self._get_client().v1.subscriptions.retrieve_async(subscription_id),
        )

    # =========================================================================
    # Hosted pages
    # =========================================================================

    async def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
        trial_days: int | None = None,
    ) -> dict[str, Any]:
        """Create a subscription checkout session.

        Metadata is attached to both the session and the subscription so
        that later subscription events can recover the plan.
        """
        subscription_data: dict[str, Any] = {"metadata": metadata}
        if trial_days:
            subscription_data["trial_period_days"] = trial_days

        session = await self._call(
            "Create checkout session",
            self._get_client().v1.checkout.sessions.create_async(
                params={
                    "mode": "subscription",
                    "customer": customer_id,
                    "line_items": [{"price": price_id, "quantity": 1}],
                    "success_url": success_url,
                    "cancel_url": cancel_url,
                    "allow_promotion_codes": True,
                    "metadata": metadata,
                    "subscription_data": subscription_data,
                }
            ),
        )
        logger.info("Created checkout session %s", session.get("id"))
        return session

    async def create_portal_session(
        self, customer_id: str, return_url: str
    ) -> dict[str, Any]:
        return await self._call(
            "Create portal session",
            self._get_client().v1.billing_portal.sessions.create_async(
                params={"customer": customer_id, "return_url": return_url}
            ),
        )

    # =========================================================================
    # Webhooks
    # =========================================================================

    def construct_event(
        self, payload: bytes | str, signature_header: str | None
    ) -> dict[str, Any]:
        """Verify a webhook signature and parse the event.

        Args:
            payload: Raw request body.
            signature_header: Value of the Stripe-Signature header.

        Returns:
            The parsed event.

        Raises:
            StripeSignatureError: If the signature is missing, stale or wrong.
        """
        secret = self._settings.webhook_secret.get_secret_value()
        if not secret:
            raise StripeSignatureError("Webhook secret is not configured")

        try:
            event = stripe.Webhook.construct_event(
                payload,
                signature_header,
                secret,
                tolerance=self._settings.webhook_tolerance_seconds,
                api_key=self._settings.secret_key.get_secret_value() or None,
            )
        except stripe.SignatureVerificationError as e:
            logger.warning("Rejected webhook: %s", e.user_message)
            raise StripeSignatureError(e.user_message or "Invalid signature") from e
        except ValueError as e:
            raise StripeSignatureError("Invalid webhook payload") from e
        return event.to_dict()

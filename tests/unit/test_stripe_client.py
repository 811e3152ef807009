# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the Stripe client."""

import json
import time
from urllib.parse import parse_qs, urlsplit

import pytest
import stripe

from src.core.config.settings import StripeSettings
from src.infrastructure.billing.stripe_client import (
    StripeClient,
    StripeError,
    StripeSignatureError,
)

WEBHOOK_SECRET = "whsec_test"


class RecordingHTTPClient(stripe.HTTPClient):
    """SDK transport that records requests and replies with canned bodies."""

    name = "recording"

    def __init__(self, status: int = 200, body: dict | None = None, error: Exception | None = None):
        super().__init__()
        self.status = status
        self.body = body or {}
        self.error = error
        self.requests: list[dict] = []
        self.closed = False

    async def request_async(self, method, url, headers, post_data=None):
        self.requests.append(
            {"method": method.upper(), "url": url, "headers": headers, "data": post_data}
        )
        if self.error is not None:
            raise self.error
        return json.dumps(self.body).encode("utf-8"), self.status, {}

    async def close_async(self):
        self.closed = True

    @property
    def last_form(self) -> dict[str, list[str]]:
        return parse_qs(self.requests[-1]["data"])

    @property
    def last_query(self) -> dict[str, list[str]]:
        return parse_qs(urlsplit(self.requests[-1]["url"]).query)


def make_client(http_client: RecordingHTTPClient | None = None, **overrides) -> StripeClient:
    settings = StripeSettings(
        secret_key=overrides.pop("secret_key", "sk_test_123"),
        webhook_secret=overrides.pop("webhook_secret", WEBHOOK_SECRET),
        max_network_retries=0,
        **overrides,
    )
    return StripeClient(settings, http_client=http_client or RecordingHTTPClient())


def signed_header(payload: str, timestamp: int | None = None) -> str:
    return stripe.WebhookSignature.generate_signature_header(
        payload, WEBHOOK_SECRET, timestamp=timestamp
    )


class TestConstructEvent:
    """Tests for webhook verification."""

    def test_valid_signature(self):
        client = make_client()
        payload = json.dumps(
            {
                "id": "evt_1",
                "object": "event",
                "type": "customer.subscription.updated",
                "data": {"object": {"id": "sub_1", "status": "active"}},
            }
        )

        event = client.construct_event(payload.encode(), signed_header(payload))

        assert event["type"] == "customer.subscription.updated"
        assert event["data"]["object"] == {"id": "sub_1", "status": "active"}
        assert isinstance(event["data"], dict)

    def test_tampered_payload(self):
        client = make_client()
        header = signed_header('{"id": "evt_1"}')

        with pytest.raises(StripeSignatureError) as exc_info:
            client.construct_event(b'{"id": "evt_2"}', header)

        assert exc_info.value.status_code == 400

    def test_stale_timestamp(self):
        client = make_client()
        payload = '{"id": "evt_1"}'

        with pytest.raises(StripeSignatureError, match="tolerance"):
            client.construct_event(payload, signed_header(payload, int(time.time()) - 301))

    def test_tolerance_comes_from_settings(self):
        client = make_client(webhook_tolerance_seconds=3600)
        payload = '{"id": "evt_1", "type": "invoice.paid", "data": {"object": {}}}'

        event = client.construct_event(payload, signed_header(payload, int(time.time()) - 600))

        assert event["type"] == "invoice.paid"

    @pytest.mark.parametrize("header", [None, "", "v1=abc", "t=soon,v1=abc"])
    def test_malformed_header(self, header):
        with pytest.raises(StripeSignatureError):
            make_client().construct_event("{}", header)

    def test_signed_garbage_body(self):
        payload = "not json"

        with pytest.raises(StripeSignatureError, match="Invalid webhook payload"):
            make_client().construct_event(payload, signed_header(payload))

    def test_without_secret(self):
        client = make_client(webhook_secret="")

        with pytest.raises(StripeSignatureError, match="not configured"):
            client.construct_event("{}", "t=1,v1=abc")


class TestStripeRequests:
    """Tests for API calls through a recording transport."""

    @pytest.mark.asyncio
    async def test_create_customer(self):
        http = RecordingHTTPClient(body={"id": "cus_123", "object": "customer"})
        client = make_client(http)

        customer = await client.create_customer(
            "tutor@example.com", name="Tess", metadata={"parent_id": "p1"}
        )

        assert customer["id"] == "cus_123"
        request = http.requests[-1]
        assert request["method"] == "POST"
        assert request["url"] == "https://api.stripe.com/v1/customers"
        assert request["headers"]["Authorization"] == "Bearer sk_test_123"
        assert http.last_form["email"] == ["tutor@example.com"]
        assert http.last_form["metadata[parent_id]"] == ["p1"]

    @pytest.mark.asyncio
    async def test_find_customer_by_email(self):
        http = RecordingHTTPClient(
            body={"object": "list", "data": [{"id": "cus_1", "object": "customer"}]}
        )
        client = make_client(http)

        customer = await client.find_customer_by_email("tutor@example.com")

        assert customer["id"] == "cus_1"
        assert http.last_query == {"email": ["tutor@example.com"], "limit": ["1"]}

    @pytest.mark.asyncio
    async def test_find_customer_none(self):
        client = make_client(RecordingHTTPClient(body={"object": "list", "data": []}))

        assert await client.find_customer_by_email("nobody@example.com") is None

    @pytest.mark.asyncio
    async def test_list_subscriptions_filters_status(self):
        http = RecordingHTTPClient(
            body={"object": "list", "data": [{"id": "sub_1", "object": "subscription"}]}
        )
        client = make_client(http)

        subscriptions = await client.list_subscriptions("cus_1", status="trialing", limit=1)

        assert [sub["id"] for sub in subscriptions] == ["sub_1"]
        assert http.last_query["status"] == ["trialing"]
        assert http.last_query["customer"] == ["cus_1"]

    @pytest.mark.asyncio
    async def test_checkout_session_includes_trial(self):
        http = RecordingHTTPClient(
            body={"id": "cs_1", "object": "checkout.session", "url": "https://checkout.test/cs_1"}
        )
        client = make_client(http)

        session = await client.create_checkout_session(
            customer_id="cus_1",
            price_id="price_solo",
            success_url="https://app.test/ok",
            cancel_url="https://app.test/cancel",
            metadata={"parent_id": "p1", "plan": "solo"},
            trial_days=14,
        )

        assert session["url"] == "https://checkout.test/cs_1"
        assert http.requests[-1]["url"] == "https://api.stripe.com/v1/checkout/sessions"
        form = http.last_form
        assert form["mode"] == ["subscription"]
        assert form["allow_promotion_codes"] == ["true"]
        assert form["line_items[0][price]"] == ["price_solo"]
        assert form["subscription_data[trial_period_days]"] == ["14"]
        assert form["subscription_data[metadata][plan]"] == ["solo"]

    @pytest.mark.asyncio
    async def test_portal_session(self):
        http = RecordingHTTPClient(
            body={"id": "bps_1", "object": "billing_portal.session", "url": "https://portal.test"}
        )
        client = make_client(http)

        session = await client.create_portal_session("cus_1", "https://app.test/settings")

        assert session["url"] == "https://portal.test"
        assert http.requests[-1]["url"] == "https://api.stripe.com/v1/billing_portal/sessions"
        assert http.last_form["return_url"] == ["https://app.test/settings"]

    @pytest.mark.asyncio
    async def test_error_response(self):
        http = RecordingHTTPClient(
            status=402,
            body={"error": {"type": "card_error", "message": "Card declined"}},
        )
        client = make_client(http)

        with pytest.raises(StripeError) as exc_info:
            await client.retrieve_subscription("sub_1")

        assert exc_info.value.status_code == 402
        assert "Card declined" in exc_info.value.message
        assert http.requests[-1]["url"] == "https://api.stripe.com/v1/subscriptions/sub_1"

    @pytest.mark.asyncio
    async def test_unreachable(self):
        http = RecordingHTTPClient(error=stripe.APIConnectionError("connection refused"))
        client = make_client(http)

        with pytest.raises(StripeError) as exc_info:
            await client.list_subscriptions("cus_1")

        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_not_configured(self):
        http = RecordingHTTPClient()
        client = make_client(http, secret_key="")

        with pytest.raises(StripeError) as exc_info:
            await client.create_portal_session("cus_1", "https://app.test")

        assert exc_info.value.status_code == 500
        assert http.requests == []

    @pytest.mark.asyncio
    async def test_close_releases_transport(self):
        http = RecordingHTTPClient(body={"object": "list", "data": []})
        client = make_client(http)
        await client.find_customer_by_email("tutor@example.com")

        await client.close()

        assert http.closed is True

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the v1 API.

Routes run through the real auth middleware with signed tokens; the
database session, provider clients and domain services are mocked.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import stripe
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import SecretStr
from slowapi.errors import RateLimitExceeded

from src.api.dependencies import get_db, get_email_channel, get_stripe_client
from src.api.middleware.auth import AuthMiddleware
from src.api.middleware.rate_limit import limiter, rate_limit_exceeded_handler
from src.api.routes import health
from src.api.v1 import router as v1_router
from src.core.config import StripeSettings, get_settings
from src.domains.auth.jwt import JWTManager
from src.domains.lesson import LessonRequestNotPendingError
from src.domains.parent import InvitationInvalidError
from src.domains.reminder import DuplicateReminderError
from src.infrastructure.billing import StripeClient
from src.models.lesson_request import LessonRequestResponse
from src.models.parent import InvitationAcceptResponse, ParentResponse

TUTOR_ID = "550e8400-e29b-41d4-a716-446655440000"
PARENT_ID = "550e8400-e29b-41d4-a716-446655440001"
OTHER_PARENT_ID = "550e8400-e29b-41d4-a716-446655440009"
REQUEST_ID = "550e8400-e29b-41d4-a716-446655440020"
WEBHOOK_SECRET = "whsec_integration"


@pytest.fixture
def mock_session() -> AsyncMock:
    return AsyncMock()


@pytest.fixture
def app(mock_session) -> FastAPI:
    """Create test FastAPI app with mocked infrastructure."""
    app = FastAPI(redirect_slashes=False)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)
    app.add_middleware(AuthMiddleware)
    app.include_router(health.router)
    app.include_router(v1_router)

    async def override_db():
        yield mock_session

    async def override_email():
        yield MagicMock()

    async def override_stripe():
        yield StripeClient(StripeSettings(webhook_secret=SecretStr(WEBHOOK_SECRET)))

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_email_channel] = override_email
    app.dependency_overrides[get_stripe_client] = override_stripe
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


def auth_headers(parent_id: str, role: str) -> dict[str, str]:
    token = JWTManager(get_settings().jwt).create_access_token(parent_id, role)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def tutor_headers() -> dict[str, str]:
    return auth_headers(TUTOR_ID, "tutor")


@pytest.fixture
def parent_headers() -> dict[str, str]:
    return auth_headers(PARENT_ID, "parent")


def parent_response(**overrides) -> ParentResponse:
    data = {
        "id": PARENT_ID,
        "name": "Pat Parent",
        "email": "pat@example.com",
        "role": "parent",
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return ParentResponse(**data)


class TestRouting:
    """Tests for route registration."""

    def test_routes_registered(self, app):
        routes = set(app.openapi()["paths"])

        assert {
            "/api/v1/parents",
            "/api/v1/parents/me",
            "/api/v1/parents/{parent_id}",
            "/api/v1/students",
            "/api/v1/settings",
            "/api/v1/lessons",
            "/api/v1/payments",
            "/api/v1/invoices/preview",
            "/api/v1/prepaid",
            "/api/v1/reminders/send",
            "/api/v1/reminders/run",
            "/api/v1/notifications",
            "/api/v1/messages/threads",
            "/api/v1/subscriptions/checkout",
            "/api/v1/subscriptions/webhook",
            "/api/v1/lesson-requests",
            "/api/v1/lesson-requests/{request_id}/approve",
            "/api/v1/lesson-requests/{request_id}/reject",
            "/api/v1/parents/{parent_id}/invite",
            "/api/v1/invitations/validate",
            "/api/v1/invitations/accept",
            "/health",
        } <= routes


class TestAccessControl:
    """Tests for authentication and role checks."""

    def test_missing_token_is_unauthorized(self, client):
        response = client.get("/api/v1/parents")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_family_cannot_use_tutor_endpoints(self, client, parent_headers):
        response = client.get("/api/v1/parents", headers=parent_headers)

        assert response.status_code == 403
        assert response.json()["detail"] == "Tutor access required"

    def test_family_cannot_read_other_family(self, client, parent_headers):
        response = client.get(f"/api/v1/parents/{OTHER_PARENT_ID}", headers=parent_headers)

        assert response.status_code == 403

    @patch("src.api.v1.parents._get_parent_service")
    def test_family_reads_own_record(self, mock_get_service, client, parent_headers):
        service = MagicMock()
        service.get_parent = AsyncMock(return_value=parent_response())
        mock_get_service.return_value = service

        response = client.get(f"/api/v1/parents/{PARENT_ID}", headers=parent_headers)

        assert response.status_code == 200
        assert response.json()["email"] == "pat@example.com"
        service.get_parent.assert_awaited_once_with(PARENT_ID)

    @patch("src.api.v1.parents._get_parent_service")
    def test_family_cannot_change_billing(self, mock_get_service, client, parent_headers):
        response = client.patch(
            f"/api/v1/parents/{PARENT_ID}",
            json={"billing_mode": "prepaid"},
            headers=parent_headers,
        )

        assert response.status_code == 403
        mock_get_service.assert_not_called()

    @patch("src.api.v1.parents._get_parent_service")
    def test_family_updates_contact_details(self, mock_get_service, client, parent_headers):
        service = MagicMock()
        service.update_parent = AsyncMock(return_value=parent_response(phone="555-0199"))
        mock_get_service.return_value = service

        response = client.patch(
            f"/api/v1/parents/{PARENT_ID}",
            json={"phone": "555-0199"},
            headers=parent_headers,
        )

        assert response.status_code == 200
        assert response.json()["phone"] == "555-0199"

    @patch("src.api.v1.parents._get_parent_service")
    def test_tutor_changes_billing(self, mock_get_service, client, tutor_headers):
        service = MagicMock()
        service.update_parent = AsyncMock(
            return_value=parent_response(billing_mode="prepaid", prepaid_subjects=["piano"])
        )
        mock_get_service.return_value = service

        response = client.patch(
            f"/api/v1/parents/{PARENT_ID}",
            json={"billing_mode": "prepaid", "prepaid_subjects": ["piano"]},
            headers=tutor_headers,
        )

        assert response.status_code == 200
        assert response.json()["billing_mode"] == "prepaid"


class TestReminderEndpoints:
    """Tests for reminder sending through the API."""

    @patch("src.api.v1.reminders._get_reminder_service")
    def test_duplicate_reminder_conflicts(self, mock_get_service, client, tutor_headers):
        service = MagicMock()
        service.send_reminder = AsyncMock(
            side_effect=DuplicateReminderError("A manual reminder was already sent today")
        )
        mock_get_service.return_value = service

        response = client.post(
            "/api/v1/reminders/send",
            json={"payment_id": "550e8400-e29b-41d4-a716-446655440004"},
            headers=tutor_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"] == {
            "error": "A manual reminder was already sent today",
            "duplicate": True,
        }

    def test_family_cannot_send_reminders(self, client, parent_headers):
        response = client.post(
            "/api/v1/reminders/send",
            json={"payment_id": "550e8400-e29b-41d4-a716-446655440004"},
            headers=parent_headers,
        )

        assert response.status_code == 403


def lesson_request_response(**overrides) -> LessonRequestResponse:
    data = {
        "id": REQUEST_ID,
        "parent_id": PARENT_ID,
        "student_id": "550e8400-e29b-41d4-a716-446655440002",
        "subject": "piano",
        "request_type": "dropin",
        "preferred_date": "2026-03-21",
        "preferred_duration": 60,
        "status": "pending",
    }
    data.update(overrides)
    return LessonRequestResponse(**data)


class TestLessonRequestEndpoints:
    """Tests for reschedule and drop-in requests through the API."""

    @patch("src.api.v1.lesson_requests._get_request_service")
    def test_family_submits_for_itself(self, mock_get_service, client, parent_headers):
        service = MagicMock()
        service.create_request = AsyncMock(return_value=lesson_request_response())
        mock_get_service.return_value = service

        response = client.post(
            "/api/v1/lesson-requests",
            json={
                "student_id": "550e8400-e29b-41d4-a716-446655440002",
                "subject": "piano",
                "request_type": "dropin",
                "preferred_date": "2026-03-21",
            },
            headers=parent_headers,
        )

        assert response.status_code == 201
        assert service.create_request.call_args.kwargs["parent_id"] == PARENT_ID

    def test_reschedule_without_lesson_is_invalid(self, client, parent_headers):
        response = client.post(
            "/api/v1/lesson-requests",
            json={
                "student_id": "550e8400-e29b-41d4-a716-446655440002",
                "subject": "piano",
                "preferred_date": "2026-03-21",
            },
            headers=parent_headers,
        )

        assert response.status_code == 422

    def test_family_cannot_approve(self, client, parent_headers):
        response = client.post(
            f"/api/v1/lesson-requests/{REQUEST_ID}/approve",
            json={},
            headers=parent_headers,
        )

        assert response.status_code == 403

    @patch("src.api.v1.lesson_requests._get_request_service")
    def test_answered_request_conflicts(self, mock_get_service, client, tutor_headers):
        service = MagicMock()
        service.reject_request = AsyncMock(
            side_effect=LessonRequestNotPendingError("Lesson request is already approved")
        )
        mock_get_service.return_value = service

        response = client.post(
            f"/api/v1/lesson-requests/{REQUEST_ID}/reject",
            json={"reason": "Fully booked"},
            headers=tutor_headers,
        )

        assert response.status_code == 409
        assert response.json()["detail"] == "Lesson request is already approved"

    @patch("src.api.v1.lesson_requests._get_request_service")
    def test_family_cannot_read_other_request(self, mock_get_service, client, parent_headers):
        service = MagicMock()
        service.get_request = AsyncMock(
            return_value=lesson_request_response(parent_id=OTHER_PARENT_ID)
        )
        mock_get_service.return_value = service

        response = client.get(f"/api/v1/lesson-requests/{REQUEST_ID}", headers=parent_headers)

        assert response.status_code == 403


class TestInvitationEndpoints:
    """Tests for portal invitations."""

    def test_family_cannot_invite(self, client, parent_headers):
        response = client.post(f"/api/v1/parents/{OTHER_PARENT_ID}/invite", headers=parent_headers)

        assert response.status_code == 403

    @patch("src.api.v1.invitations._get_invitation_service")
    def test_accept_without_login(self, mock_get_service, client):
        service = MagicMock()
        service.accept_invitation = AsyncMock(
            return_value=InvitationAcceptResponse(
                access_token="token", expires_in=3600, parent_id=PARENT_ID
            )
        )
        mock_get_service.return_value = service

        response = client.post("/api/v1/invitations/accept", json={"token": "abc"})

        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"

    @patch("src.api.v1.invitations._get_invitation_service")
    def test_expired_invitation(self, mock_get_service, client):
        service = MagicMock()
        service.accept_invitation = AsyncMock(
            side_effect=InvitationInvalidError("Invitation has expired")
        )
        mock_get_service.return_value = service

        response = client.post("/api/v1/invitations/accept", json={"token": "abc"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Invitation has expired"

class TestWebhookEndpoint:
    """Tests for the public provider webhook."""

    def test_bad_signature_is_rejected(self, client):
        response = client.post(
            "/api/v1/subscriptions/webhook",
            content=b'{"type": "invoice.paid"}',
            headers={"Stripe-Signature": "t=1,v1=deadbeef"},
        )

        assert response.status_code == 400

    def test_missing_signature_is_rejected(self, client):
        response = client.post("/api/v1/subscriptions/webhook", content=b"{}")

        assert response.status_code == 400

    def test_signed_event_is_acknowledged(self, client):
        payload = json.dumps({"id": "evt_1", "type": "customer.created", "data": {"object": {}}})
        signature = stripe.WebhookSignature.generate_signature_header(payload, WEBHOOK_SECRET)

        response = client.post(
            "/api/v1/subscriptions/webhook",
            content=payload.encode("utf-8"),
            headers={"Stripe-Signature": signature},
        )

        assert response.status_code == 200
        assert response.json() == {
            "received": True,
            "event_type": "customer.created",
            "handled": False,
        }


class TestHealthEndpoints:
    """Tests for health checks without a database."""

    def test_liveness(self, client):
        response = client.get("/health/live")

        assert response.json() == {"status": "alive"}

    @patch("src.api.routes.health.check_database_connection", new_callable=AsyncMock)
    def test_health_reports_database(self, mock_check, client):
        mock_check.return_value = False

        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "unhealthy"
        assert body["components"]["database"]["status"] == "unhealthy"
        assert body["components"]["scheduler"]["status"] == "stopped"

    @patch("src.api.routes.health.check_database_connection", new_callable=AsyncMock)
    def test_ready_when_database_reachable(self, mock_check, client):
        mock_check.return_value = True

        response = client.get("/health/ready")

        assert response.json() == {"ready": True, "checks": {"database": "healthy"}}

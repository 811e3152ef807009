# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the authentication middleware.

Tests the middleware in isolation from the database.
"""

from unittest.mock import MagicMock, patch

import pytest
import structlog
from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from pydantic import SecretStr

from src.api.middleware.auth import AuthMiddleware, get_current_user
from src.domains.auth.jwt import JWTManager

PARENT_ID = "550e8400-e29b-41d4-a716-446655440001"


@pytest.fixture
def jwt_settings() -> MagicMock:
    """Create mock JWT settings."""
    settings = MagicMock()
    settings.secret_key = SecretStr("test-secret-key-for-jwt-testing")
    settings.algorithm = "HS256"
    settings.access_token_expire_minutes = 30
    return settings


@pytest.fixture
def jwt_manager(jwt_settings: MagicMock) -> JWTManager:
    """Create JWT manager with test settings."""
    return JWTManager(jwt_settings)


def build_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(AuthMiddleware)

    @app.get("/api/v1/whoami")
    async def whoami(request: Request) -> dict:
        user = get_current_user(request)
        if user is None:
            return {"user_id": None}
        return {"user_id": user.id, "role": user.role, "is_tutor": user.is_tutor}

    @app.get("/api/v1/log-context")
    async def log_context() -> dict:
        return structlog.contextvars.get_contextvars()

    @app.post("/api/v1/subscriptions/webhook")
    async def webhook(request: Request) -> dict:
        return {"user": get_current_user(request)}

    return app


class TestAuthMiddleware:
    """Tests for AuthMiddleware."""

    @patch("src.api.middleware.auth.get_settings")
    def test_valid_token_sets_user(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
        jwt_manager: JWTManager,
    ) -> None:
        """Test that a valid token sets request.state.user."""
        mock_settings.return_value.jwt = jwt_settings
        token = jwt_manager.create_access_token(PARENT_ID, "parent", "pat@example.com")

        client = TestClient(build_app())
        response = client.get("/api/v1/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.status_code == 200
        assert response.json() == {"user_id": PARENT_ID, "role": "parent", "is_tutor": False}

    @patch("src.api.middleware.auth.get_settings")
    def test_no_token_sets_user_none(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings

        client = TestClient(build_app())
        response = client.get("/api/v1/whoami")

        assert response.json()["user_id"] is None

    @patch("src.api.middleware.auth.get_settings")
    def test_token_signed_with_other_key_is_ignored(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings
        other = MagicMock()
        other.secret_key = SecretStr("another-secret")
        other.algorithm = "HS256"
        other.access_token_expire_minutes = 30
        token = JWTManager(other).create_access_token(PARENT_ID, "tutor")

        client = TestClient(build_app())
        response = client.get("/api/v1/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.json()["user_id"] is None

    @patch("src.api.middleware.auth.get_settings")
    def test_expired_token_is_ignored(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings
        expired_settings = MagicMock()
        expired_settings.secret_key = jwt_settings.secret_key
        expired_settings.algorithm = "HS256"
        expired_settings.access_token_expire_minutes = -5
        token = JWTManager(expired_settings).create_access_token(PARENT_ID, "parent")

        client = TestClient(build_app())
        response = client.get("/api/v1/whoami", headers={"Authorization": f"Bearer {token}"})

        assert response.json()["user_id"] is None

    @pytest.mark.parametrize("header", ["Token abc", "Bearer", "Bearer a b"])
    @patch("src.api.middleware.auth.get_settings")
    def test_malformed_header_is_ignored(
        self,
        mock_settings: MagicMock,
        header: str,
        jwt_settings: MagicMock,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings

        client = TestClient(build_app())
        response = client.get("/api/v1/whoami", headers={"Authorization": header})

        assert response.json()["user_id"] is None

    @patch("src.api.middleware.auth.get_settings")
    def test_public_path_skips_token(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
        jwt_manager: JWTManager,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings
        token = jwt_manager.create_access_token(PARENT_ID, "tutor")

        client = TestClient(build_app())
        response = client.post(
            "/api/v1/subscriptions/webhook",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert response.status_code == 200
        assert response.json() == {"user": None}

    @patch("src.api.middleware.auth.get_settings")
    def test_account_is_bound_to_log_context(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
        jwt_manager: JWTManager,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings
        token = jwt_manager.create_access_token(PARENT_ID, "parent")

        client = TestClient(build_app())
        response = client.get("/api/v1/log-context", headers={"Authorization": f"Bearer {token}"})

        assert response.json() == {"account_id": PARENT_ID, "role": "parent"}

    @patch("src.api.middleware.auth.get_settings")
    def test_anonymous_request_has_empty_log_context(
        self,
        mock_settings: MagicMock,
        jwt_settings: MagicMock,
    ) -> None:
        mock_settings.return_value.jwt = jwt_settings

        client = TestClient(build_app())
        response = client.get("/api/v1/log-context")

        assert response.json() == {}

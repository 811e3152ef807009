# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- Unit tests (services against a mocked AsyncSession)
- Integration tests (API routes through TestClient)
"""

from collections.abc import Callable
from datetime import date, datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.infrastructure.database.models import (
    Parent,
    Payment,
    ScheduledLesson,
    Student,
    TutorSettings,
)

TUTOR_ID = "550e8400-e29b-41d4-a716-446655440000"
PARENT_ID = "550e8400-e29b-41d4-a716-446655440001"
STUDENT_ID = "550e8400-e29b-41d4-a716-446655440002"
LESSON_ID = "550e8400-e29b-41d4-a716-446655440003"
PAYMENT_ID = "550e8400-e29b-41d4-a716-446655440004"


# =============================================================================
# Environment Fixtures
# =============================================================================


@pytest.fixture(scope="session")
def test_environment() -> dict[str, str]:
    """Provide test environment variables.

    Returns:
        Dictionary of environment variables for testing.
    """
    return {
        "ENVIRONMENT": "test",
        "DEBUG": "true",
        "LOG_LEVEL": "DEBUG",
        "DB_HOST": "localhost",
        "DB_PORT": "5432",
        "DB_NAME": "tutordesk_test",
        "JWT_SECRET_KEY": "test-secret-key-for-testing-only",
        "JWT_ALGORITHM": "HS256",
    }


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (API through TestClient)"
    )


# =============================================================================
# Database Fixtures
# =============================================================================


class FakeSavepoint:
    """Stands in for AsyncSession.begin_nested() as an async context manager."""

    def __init__(self) -> None:
        self.committed = False
        self.rolled_back = False

    async def __aenter__(self) -> "FakeSavepoint":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None:
            self.committed = True
        else:
            self.rolled_back = True
        return False


@pytest.fixture
def mock_db() -> AsyncMock:
    """Create a mock AsyncSession.

    Savepoints opened with begin_nested() are collected in ``db.savepoints``.
    """
    db = AsyncMock()
    db.add = MagicMock()
    db.add_all = MagicMock()
    db.delete = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.refresh = AsyncMock()
    db.flush = AsyncMock()
    db.execute = AsyncMock()
    db.get = AsyncMock()
    db.savepoints = []

    def begin_nested() -> FakeSavepoint:
        savepoint = FakeSavepoint()
        db.savepoints.append(savepoint)
        return savepoint

    db.begin_nested = MagicMock(side_effect=begin_nested)
    return db


@pytest.fixture
def make_result() -> Callable[..., MagicMock]:
    """Factory for mocked execute() results.

    Example:
        mock_db.execute.side_effect = [make_result(one=parent), make_result(items=[])]
    """

    def _make(
        one: Any = None,
        items: list[Any] | None = None,
        scalar: Any = None,
        rows: list[Any] | None = None,
        rowcount: int = 0,
    ) -> MagicMock:
        result = MagicMock()
        result.scalar_one_or_none.return_value = one
        result.scalar_one.return_value = one if one is not None else scalar
        result.scalar.return_value = scalar
        result.scalars.return_value.all.return_value = items or []
        result.scalars.return_value.first.return_value = (items or [None])[0]
        result.all.return_value = rows or []
        result.rowcount = rowcount
        return result

    return _make


# =============================================================================
# Model Fixtures
# =============================================================================


@pytest.fixture
def tutor() -> Parent:
    """Provide the tutor account."""
    return Parent(
        id=TUTOR_ID,
        name="Tess Tutor",
        email="tutor@example.com",
        role="tutor",
        billing_mode="invoice",
        prepaid_subjects=[],
        preferences={},
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def parent() -> Parent:
    """Provide a family account."""
    return Parent(
        id=PARENT_ID,
        name="Pat Parent",
        email="pat@example.com",
        phone="555-0100",
        role="parent",
        billing_mode="invoice",
        prepaid_subjects=[],
        preferences={},
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


@pytest.fixture
def student(parent: Parent) -> Student:
    """Provide a student of the sample family."""
    student = Student(
        id=STUDENT_ID,
        parent_id=parent.id,
        name="Sam Student",
        age=10,
        grade_level="5",
        subjects=["piano"],
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )
    student.parent = parent
    return student


@pytest.fixture
def lesson(student: Student) -> ScheduledLesson:
    """Provide a completed 45 minute piano lesson."""
    lesson = ScheduledLesson(
        id=LESSON_ID,
        student_id=student.id,
        subject="piano",
        scheduled_at=datetime(2026, 3, 10, 16, 0, tzinfo=timezone.utc),
        duration_min=45,
        status="completed",
        session_id=None,
        override_amount=None,
        created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        updated_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )
    lesson.student = student
    return lesson


@pytest.fixture
def payment(parent: Parent) -> Payment:
    """Provide an unpaid March invoice."""
    payment = Payment(
        id=PAYMENT_ID,
        parent_id=parent.id,
        month=date(2026, 3, 1),
        amount_due=120.0,
        amount_paid=0.0,
        status="unpaid",
        payment_type="invoice",
        subject=None,
        sessions_prepaid=None,
        sessions_used=0,
        sessions_rolled_over=0,
        created_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
        updated_at=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )
    payment.parent = parent
    return payment


@pytest.fixture
def tutor_settings() -> TutorSettings:
    """Provide tutor settings with a piano rate."""
    return TutorSettings(
        id="550e8400-e29b-41d4-a716-446655440010",
        tutor_id=TUTOR_ID,
        default_rate=45.0,
        default_base_duration=60,
        combined_session_rate=40.0,
        subject_rates={"piano": {"rate": 35.0, "base_duration": 30}},
        reminder_settings={},
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
        updated_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )

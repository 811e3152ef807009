# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for TutorSettingsService."""

import pytest

from src.core.config.settings import BillingSettings
from src.domains.billing.service import TutorNotFoundError, TutorSettingsService
from src.infrastructure.database.models import TutorSettings
from src.models.parent import (
    ReminderSettingsModel,
    SubjectRateModel,
    TutorSettingsUpdateRequest,
)


@pytest.fixture
def settings_service(mock_db) -> TutorSettingsService:
    return TutorSettingsService(mock_db, defaults=BillingSettings())


class TestGetSettings:
    """Tests for reading settings."""

    @pytest.mark.asyncio
    async def test_defaults_when_nothing_saved(self, settings_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        response = await settings_service.get_settings()

        assert response.is_default is True
        assert response.default_rate == 45.0
        assert response.combined_session_rate == 40.0
        assert response.subject_rates == {}
        assert response.reminder_settings.enabled is False

    @pytest.mark.asyncio
    async def test_saved_settings(self, settings_service, mock_db, make_result, tutor_settings):
        tutor_settings.reminder_settings = {"enabled": True, "due_day_of_month": 15}
        mock_db.execute.return_value = make_result(one=tutor_settings)

        response = await settings_service.get_settings(tutor_settings.tutor_id)

        assert response.is_default is False
        assert response.subject_rates["piano"].rate == 35.0
        assert response.reminder_settings.due_day_of_month == 15

    @pytest.mark.asyncio
    async def test_invalid_reminder_settings_fall_back(
        self, settings_service, mock_db, make_result, tutor_settings
    ):
        tutor_settings.reminder_settings = {"due_day_of_month": 45}
        mock_db.execute.return_value = make_result(one=tutor_settings)

        settings = await settings_service.get_reminder_settings()

        assert settings == ReminderSettingsModel()

    @pytest.mark.asyncio
    async def test_rate_table(self, settings_service, mock_db, make_result, tutor_settings):
        mock_db.execute.return_value = make_result(one=tutor_settings)

        table = await settings_service.get_rate_table()

        assert table.subject_rates["piano"].base_duration == 30


class TestUpdateSettings:
    """Tests for saving settings."""

    @pytest.mark.asyncio
    async def test_rejects_non_tutor(self, settings_service, mock_db, make_result, parent):
        mock_db.execute.return_value = make_result(one=parent)

        with pytest.raises(TutorNotFoundError):
            await settings_service.update_settings(
                parent.id, TutorSettingsUpdateRequest(default_rate=50)
            )

        mock_db.commit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_creates_row_on_first_save(self, settings_service, mock_db, make_result, tutor):
        mock_db.execute.side_effect = [make_result(one=tutor), make_result(one=None)]

        response = await settings_service.update_settings(
            tutor.id,
            TutorSettingsUpdateRequest(
                default_rate=50,
                subject_rates={"math": SubjectRateModel(rate=60, base_duration=60)},
                reminder_settings=ReminderSettingsModel(enabled=True, due_day_of_month=10),
            ),
        )

        row = mock_db.add.call_args[0][0]
        assert isinstance(row, TutorSettings)
        assert row.tutor_id == tutor.id
        assert row.default_rate == 50
        assert row.subject_rates == {"math": {"rate": 60.0, "base_duration": 60}}
        assert row.reminder_settings["due_day_of_month"] == 10
        assert response.default_rate == 50
        assert response.combined_session_rate == 40.0
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_partial_update_keeps_other_values(
        self, settings_service, mock_db, make_result, tutor, tutor_settings
    ):
        mock_db.execute.side_effect = [make_result(one=tutor), make_result(one=tutor_settings)]

        response = await settings_service.update_settings(
            tutor.id, TutorSettingsUpdateRequest(combined_session_rate=35)
        )

        mock_db.add.assert_not_called()
        assert response.combined_session_rate == 35
        assert response.subject_rates["piano"].rate == 35.0

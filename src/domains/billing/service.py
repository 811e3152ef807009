# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tutor settings service.

Stores the tutor's rate table and automatic reminder preferences and
hands out the RateTable snapshot that lesson pricing works from.
Reading never fails: when nothing has been saved the application
billing defaults are returned.
"""

import logging

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.core.config import BillingSettings, get_settings
from src.domains.billing.rates import RateTable, SubjectRate
from src.infrastructure.database.models import Parent, TutorSettings
from src.models.parent import (
    ReminderSettingsModel,
    SubjectRateModel,
    TutorSettingsResponse,
    TutorSettingsUpdateRequest,
)

logger = logging.getLogger(__name__)


class TutorSettingsServiceError(Exception):
    """Base exception for tutor settings errors."""

    pass


class TutorNotFoundError(TutorSettingsServiceError):
    """Raised when the account is missing or is not a tutor."""

    pass


class TutorSettingsService:
    """Service for the tutor's pricing and reminder configuration.

    Attributes:
        _db: Async database session.
        _defaults: Application billing defaults.
    """

    def __init__(self, db: AsyncSession, defaults: BillingSettings | None = None):
        self._db = db
        self._defaults = defaults or get_settings().billing

    async def get_settings(self, tutor_id: str | None = None) -> TutorSettingsResponse:
        """Get tutor settings, falling back to defaults."""
        row = await self._get_row(tutor_id)
        return self._to_response(row, tutor_id)

    async def get_rate_table(self, tutor_id: str | None = None) -> RateTable:
        """Rate table snapshot used to price lessons."""
        row = await self._get_row(tutor_id)
        return RateTable.from_settings(row, self._defaults)

    async def get_reminder_settings(
        self, tutor_id: str | None = None
    ) -> ReminderSettingsModel:
        row = await self._get_row(tutor_id)
        return self._reminder_settings(row)

    async def update_settings(
        self, tutor_id: str, request: TutorSettingsUpdateRequest
    ) -> TutorSettingsResponse:
        """Create or update the tutor's settings.

        Raises:
            TutorNotFoundError: If tutor_id is not a tutor account.
        """
        result = await self._db.execute(select(Parent).where(Parent.id == tutor_id))
        tutor = result.scalar_one_or_none()
        if not tutor or not tutor.is_tutor:
            raise TutorNotFoundError(f"Tutor {tutor_id} not found")

        row = await self._get_row(tutor_id)
        if row is None:
            row = TutorSettings(
                tutor_id=tutor_id,
                default_rate=self._defaults.default_rate,
                default_base_duration=self._defaults.default_base_duration,
                combined_session_rate=self._defaults.combined_session_rate,
                subject_rates={},
                reminder_settings=ReminderSettingsModel().model_dump(),
            )
            self._db.add(row)

        if request.default_rate is not None:
            row.default_rate = request.default_rate
        if request.default_base_duration is not None:
            row.default_base_duration = request.default_base_duration
        if request.combined_session_rate is not None:
            row.combined_session_rate = request.combined_session_rate
        if request.subject_rates is not None:
            row.subject_rates = {
                subject: SubjectRate(
                    rate=config.rate,
                    base_duration=config.base_duration,
                    duration_prices=dict(config.duration_prices),
                ).to_dict()
                for subject, config in request.subject_rates.items()
            }
        if request.reminder_settings is not None:
            row.reminder_settings = request.reminder_settings.model_dump()

        await self._db.commit()
        await self._db.refresh(row)

        logger.info("Tutor settings saved for %s", tutor_id)

        return self._to_response(row, tutor_id)

    async def _get_row(self, tutor_id: str | None) -> TutorSettings | None:
        stmt = select(TutorSettings)
        if tutor_id:
            stmt = stmt.where(TutorSettings.tutor_id == tutor_id)
        # Single-tutor deployments read the oldest row
        result = await self._db.execute(stmt.order_by(TutorSettings.created_at.asc()).limit(1))
        return result.scalar_one_or_none()

    def _reminder_settings(self, row: TutorSettings | None) -> ReminderSettingsModel:
        if row is None or not row.reminder_settings:
            return ReminderSettingsModel()
        try:
            return ReminderSettingsModel.model_validate(row.reminder_settings)
        except ValidationError:
            logger.warning("Invalid reminder settings stored for %s, using defaults", row.tutor_id)
            return ReminderSettingsModel()

    def _to_response(
        self, row: TutorSettings | None, tutor_id: str | None
    ) -> TutorSettingsResponse:
        table = RateTable.from_settings(row, self._defaults)
        return TutorSettingsResponse(
            tutor_id=row.tutor_id if row else tutor_id,
            default_rate=table.default_rate,
            default_base_duration=table.default_base_duration,
            combined_session_rate=table.combined_session_rate,
            subject_rates={
                subject: SubjectRateModel(
                    rate=rate.rate,
                    base_duration=rate.base_duration,
                    duration_prices=rate.duration_prices,
                )
                for subject, rate in table.subject_rates.items()
                if rate.is_valid
            },
            reminder_settings=self._reminder_settings(row),
            is_default=row is None,
        )

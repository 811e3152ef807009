# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for PrepaidService."""

from datetime import date, datetime, timezone

import pytest

from src.core.config.settings import BillingSettings
from src.domains.prepaid import (
    PrepaidParentNotFoundError,
    PrepaidPlanExistsError,
    PrepaidPlanNotFoundError,
    PrepaidService,
)
from src.infrastructure.database.models import Payment
from src.models.payment import PrepaidPlanCreateRequest


async def assign_plan_id(obj):
    if getattr(obj, "id", None) is None:
        obj.id = "new-plan"


def make_plan(parent, month: date, sessions_prepaid: int, sessions_used: int, subject=None) -> Payment:
    plan = Payment(
        id=f"plan-{month.isoformat()}-{subject or 'all'}",
        parent_id=parent.id,
        month=month,
        amount_due=180.0,
        amount_paid=180.0,
        status="paid",
        payment_type="prepaid",
        subject=subject,
        sessions_prepaid=sessions_prepaid,
        sessions_used=sessions_used,
        sessions_rolled_over=0,
    )
    plan.parent = parent
    return plan


@pytest.fixture
def prepaid_service(mock_db) -> PrepaidService:
    return PrepaidService(mock_db, billing=BillingSettings(prepaid_session_price=45.0))


@pytest.fixture
def prepaid_parent(parent):
    parent.billing_mode = "prepaid"
    return parent


class TestCreatePrepaidPlan:
    """Tests for selling session blocks."""

    @pytest.mark.asyncio
    async def test_rollover_is_added(self, prepaid_service, mock_db, make_result, prepaid_parent):
        previous = make_plan(prepaid_parent, date(2026, 2, 1), sessions_prepaid=8, sessions_used=5)
        mock_db.execute.side_effect = [
            make_result(one=prepaid_parent),
            make_result(one=None),
            make_result(one=previous),
        ]
        mock_db.refresh.side_effect = assign_plan_id

        response = await prepaid_service.create_prepaid_plan(
            PrepaidPlanCreateRequest(parent_id=prepaid_parent.id, month=date(2026, 3, 1), sessions=4)
        )

        assert response.sessions_prepaid == 7
        assert response.sessions_rolled_over == 3
        assert response.sessions_remaining == 7
        assert response.amount_due == 180.0
        assert response.status == "unpaid"
        assert response.payment_type == "prepaid"

    @pytest.mark.asyncio
    async def test_overused_previous_month_has_no_rollover(
        self, prepaid_service, mock_db, make_result, prepaid_parent
    ):
        previous = make_plan(prepaid_parent, date(2026, 2, 1), sessions_prepaid=4, sessions_used=6)
        mock_db.execute.side_effect = [
            make_result(one=prepaid_parent),
            make_result(one=None),
            make_result(one=previous),
        ]
        mock_db.refresh.side_effect = assign_plan_id

        response = await prepaid_service.create_prepaid_plan(
            PrepaidPlanCreateRequest(
                parent_id=prepaid_parent.id,
                month=date(2026, 3, 1),
                sessions=4,
                amount_due=150,
                amount_paid=150,
            )
        )

        assert response.sessions_prepaid == 4
        assert response.sessions_rolled_over == 0
        assert response.status == "paid"

    @pytest.mark.asyncio
    async def test_without_rollover(self, prepaid_service, mock_db, make_result, prepaid_parent):
        mock_db.execute.side_effect = [make_result(one=prepaid_parent), make_result(one=None)]
        mock_db.refresh.side_effect = assign_plan_id

        response = await prepaid_service.create_prepaid_plan(
            PrepaidPlanCreateRequest(
                parent_id=prepaid_parent.id,
                month=date(2026, 3, 1),
                sessions=2,
                subject="piano",
                include_rollover=False,
            )
        )

        assert mock_db.execute.await_count == 2
        assert response.subject == "piano"
        assert response.sessions_prepaid == 2
        assert response.amount_due == 90.0

    @pytest.mark.asyncio
    async def test_unknown_family(self, prepaid_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(PrepaidParentNotFoundError):
            await prepaid_service.create_prepaid_plan(
                PrepaidPlanCreateRequest(parent_id="missing", month=date(2026, 3, 1), sessions=4)
            )

    @pytest.mark.asyncio
    async def test_plan_exists(self, prepaid_service, mock_db, make_result, prepaid_parent):
        existing = make_plan(prepaid_parent, date(2026, 3, 1), 4, 0)
        mock_db.execute.side_effect = [make_result(one=prepaid_parent), make_result(one=existing)]

        with pytest.raises(PrepaidPlanExistsError):
            await prepaid_service.create_prepaid_plan(
                PrepaidPlanCreateRequest(parent_id=prepaid_parent.id, month=date(2026, 3, 9), sessions=4)
            )


class TestPrepaidViews:
    """Tests for plan lookups and usage."""

    @pytest.mark.asyncio
    async def test_plan_not_found(self, prepaid_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(PrepaidPlanNotFoundError):
            await prepaid_service.get_prepaid_payment("parent-1", date(2026, 3, 1))

    @pytest.mark.asyncio
    async def test_over_limit(self, prepaid_service, mock_db, make_result, prepaid_parent):
        plan = make_plan(prepaid_parent, date(2026, 3, 1), sessions_prepaid=4, sessions_used=5)
        mock_db.execute.return_value = make_result(one=plan)

        response = await prepaid_service.get_prepaid_payment(prepaid_parent.id, date(2026, 3, 1))

        assert response.over_limit is True
        assert response.sessions_remaining == 0
        assert response.usage_percent == 125.0

    @pytest.mark.asyncio
    async def test_rollover_without_previous_plan(self, prepaid_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        response = await prepaid_service.get_rollover("parent-1", date(2026, 1, 20))

        assert response.month == date(2026, 1, 1)
        assert response.rollover_sessions == 0
        assert response.previous_payment_id is None
        assert response.suggested_amount_per_session == 45.0

    @pytest.mark.asyncio
    async def test_list_sorted_by_family(self, prepaid_service, mock_db, make_result, parent, tutor):
        first = make_plan(tutor, date(2026, 3, 1), 4, 1)
        second = make_plan(parent, date(2026, 3, 1), 4, 2)
        mock_db.execute.return_value = make_result(items=[first, second])

        response = await prepaid_service.get_prepaid_payments(date(2026, 3, 1))

        assert [item.parent_name for item in response.items] == ["Pat Parent", "Tess Tutor"]

    @pytest.mark.asyncio
    async def test_sessions_used_clamped(self, prepaid_service, mock_db, make_result, prepaid_parent):
        plan = make_plan(prepaid_parent, date(2026, 3, 1), 4, 2)
        mock_db.execute.return_value = make_result(one=plan)

        response = await prepaid_service.update_sessions_used(plan.id, -3)

        assert response.sessions_used == 0
        mock_db.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_sessions_used_unknown_plan(self, prepaid_service, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(PrepaidPlanNotFoundError):
            await prepaid_service.update_sessions_used("missing", 1)


class TestUsageTracking:
    """Tests for counting taught sessions against a plan."""

    WHEN = datetime(2026, 3, 10, 16, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_subject_plan_wins(self, prepaid_service, mock_db, make_result, prepaid_parent):
        plan = make_plan(prepaid_parent, date(2026, 3, 1), 4, 1, subject="piano")
        mock_db.execute.return_value = make_result(one=plan)

        result = await prepaid_service.increment_usage(prepaid_parent, self.WHEN, "piano")

        assert result is plan
        assert plan.sessions_used == 2
        assert mock_db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_falls_back_to_all_subjects_plan(
        self, prepaid_service, mock_db, make_result, prepaid_parent
    ):
        plan = make_plan(prepaid_parent, date(2026, 3, 1), 4, 0)
        mock_db.execute.side_effect = [make_result(one=None), make_result(one=plan)]

        result = await prepaid_service.increment_usage(prepaid_parent, self.WHEN, "math")

        assert result is plan
        assert plan.sessions_used == 1

    @pytest.mark.asyncio
    async def test_per_subject_family_without_subject_plan(
        self, prepaid_service, mock_db, make_result, prepaid_parent
    ):
        prepaid_parent.prepaid_subjects = ["piano"]
        mock_db.execute.return_value = make_result(one=None)

        assert await prepaid_service.increment_usage(prepaid_parent, self.WHEN, "math") is None
        assert mock_db.execute.await_count == 1

    @pytest.mark.asyncio
    async def test_decrement_never_negative(self, prepaid_service, mock_db, make_result, prepaid_parent):
        plan = make_plan(prepaid_parent, date(2026, 3, 1), 4, 0)
        mock_db.execute.return_value = make_result(one=plan)

        assert await prepaid_service.decrement_usage(prepaid_parent, self.WHEN, "piano") is None
        assert plan.sessions_used == 0

    @pytest.mark.asyncio
    async def test_decrement(self, prepaid_service, mock_db, make_result, prepaid_parent):
        plan = make_plan(prepaid_parent, date(2026, 3, 1), 4, 3)
        mock_db.execute.return_value = make_result(one=plan)

        await prepaid_service.decrement_usage(prepaid_parent, self.WHEN, "piano")

        assert plan.sessions_used == 2

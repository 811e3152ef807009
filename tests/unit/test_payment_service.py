# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for PaymentService."""

from datetime import date, datetime, timezone

import pytest
from sqlalchemy.exc import IntegrityError

from src.domains.payment import (
    PaymentExistsError,
    PaymentNotFoundError,
    PaymentParentNotFoundError,
    PaymentService,
)
from src.infrastructure.database.models import Payment, PaymentLesson
from src.models.payment import PaymentCreateRequest, PaymentUpdateRequest


async def assign_payment_id(obj):
    if getattr(obj, "id", None) is None:
        obj.id = "new-payment"


def make_payment(parent_id: str, status: str, amount_due: float, amount_paid: float) -> Payment:
    return Payment(
        id=f"pay-{parent_id}-{status}",
        parent_id=parent_id,
        month=date(2026, 3, 1),
        amount_due=amount_due,
        amount_paid=amount_paid,
        status=status,
        payment_type="invoice",
        sessions_used=0,
        sessions_rolled_over=0,
    )


class TestCreatePayment:
    """Tests for recording payments."""

    @pytest.mark.asyncio
    async def test_status_derived_from_amounts(self, mock_db, make_result, parent):
        mock_db.execute.side_effect = [make_result(one=parent), make_result(one=None)]
        mock_db.refresh.side_effect = assign_payment_id

        response = await PaymentService(mock_db).create_payment(
            PaymentCreateRequest(
                parent_id=parent.id, month=date(2026, 3, 18), amount_due=100, amount_paid=100
            )
        )

        assert response.id == "new-payment"
        assert response.month == date(2026, 3, 1)
        assert response.status == "paid"
        assert response.paid_at is not None
        assert response.balance_due == 0
        assert response.parent_name == "Pat Parent"

    @pytest.mark.asyncio
    async def test_partial(self, mock_db, make_result, parent):
        mock_db.execute.side_effect = [make_result(one=parent), make_result(one=None)]
        mock_db.refresh.side_effect = assign_payment_id

        response = await PaymentService(mock_db).create_payment(
            PaymentCreateRequest(
                parent_id=parent.id, month=date(2026, 3, 1), amount_due=100, amount_paid=40
            )
        )

        assert response.status == "partial"
        assert response.paid_at is None
        assert response.balance_due == 60

    @pytest.mark.asyncio
    async def test_unknown_family(self, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(PaymentParentNotFoundError):
            await PaymentService(mock_db).create_payment(
                PaymentCreateRequest(parent_id="missing", month=date(2026, 3, 1), amount_due=10)
            )

    @pytest.mark.asyncio
    async def test_duplicate_month(self, mock_db, make_result, parent, payment):
        mock_db.execute.side_effect = [make_result(one=parent), make_result(one=payment)]

        with pytest.raises(PaymentExistsError):
            await PaymentService(mock_db).create_payment(
                PaymentCreateRequest(parent_id=parent.id, month=date(2026, 3, 5), amount_due=10)
            )

        mock_db.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_concurrent_duplicate(self, mock_db, make_result, parent):
        mock_db.execute.side_effect = [make_result(one=parent), make_result(one=None)]
        mock_db.commit.side_effect = IntegrityError("INSERT", {}, Exception("duplicate key"))

        with pytest.raises(PaymentExistsError):
            await PaymentService(mock_db).create_payment(
                PaymentCreateRequest(parent_id=parent.id, month=date(2026, 3, 1), amount_due=10)
            )

        mock_db.rollback.assert_awaited_once()


class TestUpdatePayment:
    """Tests for editing payments."""

    @pytest.mark.asyncio
    async def test_amount_paid_recomputes_status(self, mock_db, make_result, payment):
        mock_db.execute.return_value = make_result(one=payment)

        response = await PaymentService(mock_db).update_payment(
            payment.id, PaymentUpdateRequest(amount_paid=50)
        )

        assert response.status == "partial"
        assert response.balance_due == 70
        assert response.paid_at is None

    @pytest.mark.asyncio
    async def test_becoming_paid_sets_paid_at(self, mock_db, make_result, payment):
        mock_db.execute.return_value = make_result(one=payment)

        response = await PaymentService(mock_db).update_payment(
            payment.id, PaymentUpdateRequest(amount_paid=120)
        )

        assert response.status == "paid"
        assert response.paid_at is not None

    @pytest.mark.asyncio
    async def test_back_to_unpaid_clears_paid_at(self, mock_db, make_result, payment):
        payment.status = "paid"
        payment.amount_paid = 120
        payment.paid_at = datetime(2026, 3, 5, tzinfo=timezone.utc)
        mock_db.execute.return_value = make_result(one=payment)

        response = await PaymentService(mock_db).update_payment(
            payment.id, PaymentUpdateRequest(status="unpaid", amount_paid=0)
        )

        assert response.status == "unpaid"
        assert response.paid_at is None

    @pytest.mark.asyncio
    async def test_explicit_paid_at(self, mock_db, make_result, payment):
        paid_at = datetime(2026, 3, 3, tzinfo=timezone.utc)
        mock_db.execute.return_value = make_result(one=payment)

        response = await PaymentService(mock_db).update_payment(
            payment.id, PaymentUpdateRequest(status="paid", paid_at=paid_at)
        )

        assert response.paid_at == paid_at

    @pytest.mark.asyncio
    async def test_not_found(self, mock_db, make_result):
        mock_db.execute.return_value = make_result(one=None)

        with pytest.raises(PaymentNotFoundError):
            await PaymentService(mock_db).update_payment("missing", PaymentUpdateRequest())


class TestMarkPaid:
    """Tests for settling a payment."""

    @pytest.mark.asyncio
    async def test_mark_paid_settles_lessons(self, mock_db, make_result, payment):
        mock_db.execute.side_effect = [make_result(one=payment), make_result()]

        response = await PaymentService(mock_db).mark_payment_paid(payment.id, notes="cash")

        assert response.status == "paid"
        assert response.amount_paid == 120
        assert response.balance_due == 0
        assert response.notes == "cash"
        assert mock_db.execute.await_count == 2
        assert "payment_lessons" in str(mock_db.execute.call_args_list[1][0][0])

    @pytest.mark.asyncio
    async def test_delete(self, mock_db, make_result, payment):
        mock_db.execute.return_value = make_result(one=payment)

        await PaymentService(mock_db).delete_payment(payment.id)

        mock_db.delete.assert_awaited_once_with(payment)


class TestPaymentViews:
    """Tests for detail, overdue and summary views."""

    @pytest.mark.asyncio
    async def test_payment_with_lessons(self, mock_db, make_result, payment, lesson):
        link = PaymentLesson(
            id="link-1", payment_id=payment.id, lesson_id=lesson.id, amount=52.5, paid=False
        )
        link.lesson = lesson
        mock_db.execute.side_effect = [make_result(one=payment), make_result(items=[link])]

        response = await PaymentService(mock_db).get_payment_with_lessons(payment.id)

        assert response.id == payment.id
        assert len(response.lessons) == 1
        assert response.lessons[0].student_name == "Sam Student"
        assert response.lessons[0].amount == 52.5

    @pytest.mark.asyncio
    async def test_overdue_after_due_day_includes_current_month(self, mock_db, make_result):
        mock_db.execute.return_value = make_result(items=[])

        await PaymentService(mock_db).get_overdue_payments(today=date(2026, 3, 10), due_day=7)

        sql = str(mock_db.execute.call_args[0][0])
        assert "payments.month <=" in sql

    @pytest.mark.asyncio
    async def test_overdue_before_due_day_excludes_current_month(self, mock_db, make_result):
        mock_db.execute.return_value = make_result(items=[])

        await PaymentService(mock_db).get_overdue_payments(today=date(2026, 3, 7), due_day=7)

        sql = str(mock_db.execute.call_args[0][0])
        assert "payments.month <" in sql
        assert "payments.month <=" not in sql

    @pytest.mark.asyncio
    async def test_summary(self, mock_db, make_result):
        mock_db.execute.return_value = make_result(
            items=[
                make_payment("a", "paid", 100, 100),
                make_payment("b", "partial", 80, 30),
                make_payment("c", "unpaid", 50.25, 0),
                make_payment("c", "unpaid", 10, 0),
            ]
        )

        summary = await PaymentService(mock_db).get_payment_summary(date(2026, 3, 15))

        assert summary.month == date(2026, 3, 1)
        assert summary.total_due == 240.25
        assert summary.total_paid == 130
        assert summary.total_outstanding == 110.25
        assert (summary.paid_count, summary.partial_count, summary.unpaid_count) == (1, 1, 2)
        assert summary.total_families == 3

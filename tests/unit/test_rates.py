# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for lesson pricing."""

import pytest

from src.domains.billing.rates import (
    RateTable,
    SubjectRate,
    calculate_lesson_amount,
    calculate_lesson_rate,
    calculate_prepaid_usage,
    calculate_rollover,
    derive_payment_status,
    format_rate_display,
    get_subject_rate_config,
    round_money,
    suggested_prepaid_amount,
)


@pytest.fixture
def table() -> RateTable:
    return RateTable(
        default_rate=45.0,
        default_base_duration=60,
        combined_session_rate=40.0,
        subject_rates={
            "piano": SubjectRate(rate=35.0, base_duration=30, duration_prices={"60": 65.0}),
            "broken": SubjectRate(rate=0, base_duration=30),
        },
    )


class TestSubjectRate:
    """Tests for SubjectRate parsing."""

    def test_from_dict_coerces_values(self):
        rate = SubjectRate.from_dict(
            {"rate": "40", "base_duration": "45", "duration_prices": {60: "55", 90: None}}
        )

        assert rate.rate == 40.0
        assert rate.base_duration == 45
        assert rate.duration_prices == {"60": 55.0}

    def test_missing_values_are_invalid(self):
        assert SubjectRate.from_dict({}).is_valid is False

    def test_to_dict_omits_empty_duration_prices(self):
        assert SubjectRate(rate=35, base_duration=30).to_dict() == {"rate": 35, "base_duration": 30}


class TestRateTable:
    """Tests for building a rate table from stored settings."""

    def test_defaults_without_settings(self):
        table = RateTable.from_settings(None)

        assert table.default_rate == 45.0
        assert table.default_base_duration == 60
        assert table.combined_session_rate == 40.0
        assert table.subject_rates == {}

    def test_from_tutor_settings(self, tutor_settings):
        tutor_settings.subject_rates["junk"] = "not a dict"

        table = RateTable.from_settings(tutor_settings)

        assert set(table.subject_rates) == {"piano"}
        assert table.subject_rates["piano"].rate == 35.0


class TestSubjectRateResolution:
    """Tests for choosing the subject or default rate."""

    def test_valid_subject_rate(self, table):
        config, source = get_subject_rate_config(table, "piano")

        assert config.rate == 35.0
        assert source == "piano rate"

    def test_invalid_subject_rate_falls_back(self, table):
        config, source = get_subject_rate_config(table, "broken")

        assert config.rate == 45.0
        assert config.base_duration == 60
        assert source == "default rate"

    def test_unknown_subject_falls_back(self, table):
        _, source = get_subject_rate_config(table, "chess")

        assert source == "default rate"


class TestCalculateLessonAmount:
    """Tests for lesson charges."""

    def test_subject_rate_is_prorated(self, table):
        result = calculate_lesson_amount(table, "piano", 45)

        assert result.amount == 52.5
        assert result.rate_display == "$35/30min"
        assert result.formula == "45min / 30min × $35 = $52.50 (piano rate)"

    def test_default_rate(self, table):
        result = calculate_lesson_amount(table, "math", 90)

        assert result.amount == 67.5
        assert result.rate_display == "$45/hr"
        assert result.source == "default rate"

    def test_explicit_duration_price(self, table):
        result = calculate_lesson_amount(table, "piano", 60)

        assert result.amount == 65.0
        assert result.source == "piano rate, fixed price"

    def test_combined_session_is_flat(self, table):
        result = calculate_lesson_amount(table, "piano", 90, is_combined_session=True)

        assert result.amount == 40.0
        assert result.is_combined_session is True
        assert result.rate_display == "$40/student"

    def test_override_wins(self, table):
        result = calculate_lesson_amount(
            table, "piano", 45, is_combined_session=True, override_amount=30
        )

        assert result.amount == 30.0
        assert result.source == "override"
        assert result.rate_display == "Override"

    def test_zero_override_is_honored(self, table):
        assert calculate_lesson_amount(table, "piano", 45, override_amount=0).amount == 0.0

    def test_rate_matches_amount_before_rounding(self, table):
        assert calculate_lesson_rate(table, "math", 50) == pytest.approx(37.5)
        assert calculate_lesson_rate(table, "math", 50, is_combined_session=True) == 40.0

    @pytest.mark.parametrize(
        "subject,duration,combined",
        [("piano", 40, False), ("piano", 60, False), ("broken", 50, False), ("math", 45, True)],
    )
    def test_rate_is_amount_before_rounding(self, table, subject, duration, combined):
        rate = calculate_lesson_rate(table, subject, duration, is_combined_session=combined)
        result = calculate_lesson_amount(table, subject, duration, is_combined_session=combined)

        assert rate == result.price
        assert round_money(rate) == result.amount

    def test_unrounded_rate(self, table):
        assert calculate_lesson_rate(table, "piano", 40) == pytest.approx(46.6667, abs=1e-4)
        assert calculate_lesson_amount(table, "piano", 40).amount == 46.67


class TestFormatting:
    """Tests for rate labels and rounding."""

    def test_hourly_rate(self):
        assert format_rate_display(45, 60) == "$45/hr"

    def test_fractional_rate(self):
        assert format_rate_display(37.5, 60) == "$37.5/hr"

    def test_other_base_duration(self):
        assert format_rate_display(35, 30) == "$35/30min"

    def test_round_money(self):
        assert round_money(10.005 + 0.001) == 10.01
        assert round_money(3) == 3.0


class TestPrepaidHelpers:
    """Tests for prepaid usage and rollover."""

    def test_usage_within_plan(self):
        usage = calculate_prepaid_usage(3, 8)

        assert usage.remaining == 5
        assert usage.over_limit is False
        assert usage.usage_percent == 37.5

    def test_usage_over_limit(self):
        usage = calculate_prepaid_usage(5, 4)

        assert usage.remaining == 0
        assert usage.over_limit is True
        assert usage.usage_percent == 125.0

    def test_usage_empty_plan(self):
        usage = calculate_prepaid_usage(0, 0)

        assert usage.usage_percent == 0.0
        assert usage.over_limit is False

    def test_rollover(self):
        assert calculate_rollover(8, 5) == 3
        assert calculate_rollover(4, 6) == 0
        assert calculate_rollover(None, None) == 0

    def test_suggested_amount(self):
        assert suggested_prepaid_amount(4) == 180.0
        assert suggested_prepaid_amount(3, 37.5) == 112.5


class TestDerivePaymentStatus:
    """Tests for status derived from amounts."""

    @pytest.mark.parametrize(
        "due,paid,expected",
        [
            (100.0, 100.0, "paid"),
            (100.0, 120.0, "paid"),
            (100.0, 40.0, "partial"),
            (100.0, 0.0, "unpaid"),
            (0.0, 0.0, "paid"),
        ],
    )
    def test_status(self, due, paid, expected):
        assert derive_payment_status(due, paid) == expected

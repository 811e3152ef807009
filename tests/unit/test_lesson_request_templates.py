# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for lesson request email wording."""

from datetime import date, time

import pytest

from src.domains.lesson.request_templates import (
    format_long_date,
    format_short_date,
    format_time,
    new_request_email,
    request_type_label,
)


class TestFormatting:
    """Tests for dates, times and labels."""

    def test_dates(self):
        assert format_long_date(date(2026, 3, 7)) == "Saturday, March 7, 2026"
        assert format_short_date(date(2026, 3, 7)) == "Mar 7, 2026"

    @pytest.mark.parametrize(
        "value,expected",
        [
            (time(0, 5), "12:05 AM"),
            (time(9, 30), "9:30 AM"),
            (time(12, 0), "12:00 PM"),
            (time(16, 0), "4:00 PM"),
        ],
    )
    def test_time(self, value, expected):
        assert format_time(value) == expected

    def test_labels(self):
        assert request_type_label("reschedule") == "Reschedule Request"
        assert request_type_label("dropin") == "Drop-in Request"


class TestNewRequestEmail:
    """Tests for the email sent to the tutor."""

    def test_dropin_without_time_or_notes(self):
        email = new_request_email(
            request_type="dropin",
            tutor_name="Tess",
            parent_name="Pat <Parent>",
            student_name="Sam",
            subject="math",
            preferred_date=date(2026, 3, 7),
            preferred_time=None,
            original_date=None,
            notes=None,
            requests_url="https://app.example.com/requests",
            business_name="Tess Tutoring",
        )

        assert email.subject == "New Drop-in Request - Sam's Math Lesson"
        assert "Preferred Time" not in email.text
        assert "Original Date" not in email.text
        assert "Reason:" not in email.text
        assert "Pat &lt;Parent&gt;" in email.html
        assert "Pat <Parent>" not in email.html

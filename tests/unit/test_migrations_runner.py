# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for migration ordering."""

import importlib

import pytest

from src.infrastructure.database.migrations.runner import MIGRATIONS, get_pending_migrations


class TestGetPendingMigrations:
    """Tests for choosing the migrations to apply."""

    def test_fresh_database_gets_everything(self):
        assert get_pending_migrations(None) == MIGRATIONS

    def test_after_first_revision(self):
        assert get_pending_migrations("001_initial_schema") == [
            "002_add_messaging",
            "003_add_lesson_requests",
        ]

    def test_lesson_requests_follow_messaging(self):
        assert get_pending_migrations("002_add_messaging") == ["003_add_lesson_requests"]

    def test_up_to_date(self):
        assert get_pending_migrations(MIGRATIONS[-1]) == []

    def test_stops_at_target(self):
        assert get_pending_migrations(None, "001_initial_schema") == ["001_initial_schema"]

    @pytest.mark.parametrize(
        "current,target",
        [("999_unknown", None), (None, "999_unknown")],
    )
    def test_unknown_revisions(self, current, target):
        assert get_pending_migrations(current, target) == []


class TestRevisionChain:
    """Tests for the revision files."""

    def test_revisions_follow_list_order(self):
        previous = None
        for name in MIGRATIONS:
            module = importlib.import_module(
                f"src.infrastructure.database.migrations.versions.{name}"
            )
            assert module.revision == name
            assert module.down_revision == previous
            assert callable(module.upgrade)
            assert callable(module.downgrade)
            previous = name

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database migrations package.

Alembic environment and the ordered migrations of the TutorDesk
database, plus a runner that applies them without the alembic CLI.
"""

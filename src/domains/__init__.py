# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Domain services layer for TutorDesk.

This package contains domain services that encapsulate business logic.
Each domain module provides services that orchestrate operations
across the database and external providers.

Domains:
    auth: Bearer token verification.
    billing: Rate tables, lesson pricing and tutor settings.
    parent: Families and their students.
    lesson: Scheduled lessons and combined sessions.
    payment: Monthly payments and collection summaries.
    invoice: Invoice preview and generation from completed lessons.
    prepaid: Prepaid session plans with rollover.
    reminder: Payment reminder emails and the daily reminder run.
    messaging: Threads between the tutor and families.
    subscription: Tutor plans billed through Stripe.
"""

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""API v1 routes package.

This package contains all v1 API endpoint definitions.
Each module provides a FastAPI router for a specific domain.

Modules:
    parents: Family management endpoints (CRUD, own profile).
    students: Student endpoints.
    settings: Tutor rates and reminder settings.
    lessons: Scheduling, combined sessions and lesson status changes.
    payments: Monthly payments, overdue list and collection summary.
    invoices: Invoice preview, generation and the monthly lesson overview.
    prepaid: Prepaid session plans with rollover.
    reminders: Payment reminder emails and history.
    notifications: In-app notifications.
    messages: Threads, messages, reactions and parent groups.
    subscriptions: Tutor plan checkout, billing portal and provider webhook.
    lesson_requests: Reschedule and drop-in requests from families.
    invitations: Public parent portal invitation links.
"""

from fastapi import APIRouter

from src.api.v1 import (
    invitations,
    invoices,
    lesson_requests,
    lessons,
    messages,
    notifications,
    parents,
    payments,
    prepaid,
    reminders,
    settings,
    students,
    subscriptions,
)

# Create the main v1 router
router = APIRouter(prefix="/api/v1")

# Include domain routers
router.include_router(parents.router, prefix="/parents", tags=["Parents"])
router.include_router(students.router, prefix="/students", tags=["Students"])
router.include_router(settings.router, prefix="/settings", tags=["Tutor Settings"])
router.include_router(lessons.router, prefix="/lessons", tags=["Lessons"])
router.include_router(payments.router, prefix="/payments", tags=["Payments"])
router.include_router(invoices.router, prefix="/invoices", tags=["Invoices"])
router.include_router(prepaid.router, prefix="/prepaid", tags=["Prepaid"])
router.include_router(reminders.router, prefix="/reminders", tags=["Reminders"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
router.include_router(messages.router, prefix="/messages", tags=["Messages"])
router.include_router(subscriptions.router, prefix="/subscriptions", tags=["Subscriptions"])
router.include_router(lesson_requests.router, prefix="/lesson-requests", tags=["Lesson Requests"])
router.include_router(invitations.router, prefix="/invitations", tags=["Invitations"])

__all__ = ["router"]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Lesson domain - scheduling, combined sessions, lesson status changes
and reschedule or drop-in requests from families."""

from src.domains.lesson.requests import (
    LessonRequestLessonNotFoundError,
    LessonRequestNotFoundError,
    LessonRequestNotPendingError,
    LessonRequestPermissionError,
    LessonRequestService,
    LessonRequestServiceError,
    LessonRequestStudentNotFoundError,
    lesson_request_to_response,
)
from src.domains.lesson.service import (
    LessonNotFoundError,
    LessonService,
    LessonServiceError,
    LessonSessionNotFoundError,
    LessonStudentNotFoundError,
    lesson_to_response,
)

__all__ = [
    "LessonService",
    "LessonServiceError",
    "LessonNotFoundError",
    "LessonSessionNotFoundError",
    "LessonStudentNotFoundError",
    "lesson_to_response",
    # Requests
    "LessonRequestService",
    "LessonRequestServiceError",
    "LessonRequestNotFoundError",
    "LessonRequestStudentNotFoundError",
    "LessonRequestLessonNotFoundError",
    "LessonRequestNotPendingError",
    "LessonRequestPermissionError",
    "lesson_request_to_response",
]

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for TutorDesk.

All timestamps are stored in UTC (PostgreSQL TIMESTAMPTZ) and all Python
datetimes are timezone-aware. Billing months are represented as the
``date`` of the first day of the month.

Usage:
------
    from src.utils.datetime import utc_now, month_start

    # For SQLAlchemy model defaults
    created_at = mapped_column(DateTime(timezone=True), default=utc_now)

    # Normalize any day to its billing month
    month = month_start(date(2026, 1, 17))  # date(2026, 1, 1)
"""

import calendar
from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def utc_from_timestamp(timestamp: float) -> datetime:
    """Create a timezone-aware UTC datetime from a Unix timestamp.

    Args:
        timestamp: Unix timestamp (seconds since epoch).

    Returns:
        Timezone-aware UTC datetime.
    """
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        # Naive datetime - assume UTC
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def utc_day_bounds(moment: datetime | None = None) -> tuple[datetime, datetime]:
    """Get the UTC calendar day containing a moment.

    Args:
        moment: Reference time. Defaults to now.

    Returns:
        Tuple of (start inclusive, end exclusive) as aware datetimes.
    """
    reference = ensure_utc(moment) if moment is not None else utc_now()
    start = reference.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def month_start(value: date | datetime) -> date:
    """Normalize a date or datetime to the first day of its month.

    Args:
        value: Any date within the month.

    Returns:
        Date of the first day of that month.
    """
    if isinstance(value, datetime):
        value = ensure_utc(value).date()
    return value.replace(day=1)


def month_end(value: date | datetime) -> date:
    """Get the last day of the month containing value.

    Args:
        value: Any date within the month.

    Returns:
        Date of the last day of that month.
    """
    first = month_start(value)
    last_day = calendar.monthrange(first.year, first.month)[1]
    return first.replace(day=last_day)


def previous_month(value: date | datetime) -> date:
    """Get the first day of the month before value's month.

    Args:
        value: Any date within the reference month.

    Returns:
        Date of the first day of the previous month.
    """
    first = month_start(value)
    return month_start(first - timedelta(days=1))


def month_bounds(value: date | datetime) -> tuple[datetime, datetime]:
    """Get the UTC datetime range covering a billing month.

    Args:
        value: Any date within the month.

    Returns:
        Tuple of (start inclusive, end exclusive) as aware datetimes.
    """
    first = month_start(value)
    next_first = month_end(first) + timedelta(days=1)
    return (
        datetime.combine(first, time.min, tzinfo=timezone.utc),
        datetime.combine(next_first, time.min, tzinfo=timezone.utc),
    )


def format_month(value: date | datetime) -> str:
    """Format a month for display, e.g. "January 2026".

    Args:
        value: Any date within the month.

    Returns:
        Month name followed by the four digit year.
    """
    first = month_start(value)
    return f"{calendar.month_name[first.month]} {first.year}"

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Lesson pricing.

Pure functions that turn a lesson (subject, duration, combined or not,
optional manual override) into a charge, using the tutor's rate table.

Pricing rules, in order:
1. A lesson override amount is charged as-is.
2. A lesson in a combined session is charged the flat combined rate
   per student.
3. An explicit price for the lesson's exact duration, when the subject
   defines one.
4. Otherwise duration / base_duration * rate, using the subject rate
   when it is valid and the default rate otherwise.

Example:
    >>> table = RateTable(subject_rates={"piano": SubjectRate(rate=35, base_duration=30)})
    >>> calculate_lesson_amount(table, "piano", 45).amount
    52.5
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from src.core.config.settings import BillingSettings
    from src.infrastructure.database.models import TutorSettings

DEFAULT_RATE = 45.0
DEFAULT_BASE_DURATION = 60
DEFAULT_COMBINED_SESSION_RATE = 40.0
DEFAULT_PREPAID_SESSION_PRICE = 45.0


def round_money(value: float) -> float:
    """Round an amount to cents."""
    return round(float(value), 2)


def _format_number(value: float) -> str:
    # 45.0 -> "45", 37.5 -> "37.5"
    value = float(value)
    return str(int(value)) if value.is_integer() else f"{value:.2f}".rstrip("0")


@dataclass
class SubjectRate:
    """Rate configuration for one subject.

    Attributes:
        rate: Price charged per base_duration minutes.
        base_duration: Minutes covered by rate.
        duration_prices: Explicit prices keyed by duration in minutes.
    """

    rate: float
    base_duration: int
    duration_prices: dict[str, float] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return self.rate > 0 and self.base_duration > 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SubjectRate":
        prices = data.get("duration_prices") or {}
        return cls(
            rate=float(data.get("rate") or 0),
            base_duration=int(data.get("base_duration") or 0),
            duration_prices={str(k): float(v) for k, v in prices.items() if v is not None},
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"rate": self.rate, "base_duration": self.base_duration}
        if self.duration_prices:
            data["duration_prices"] = dict(self.duration_prices)
        return data


@dataclass
class RateTable:
    """Snapshot of the tutor's pricing."""

    default_rate: float = DEFAULT_RATE
    default_base_duration: int = DEFAULT_BASE_DURATION
    combined_session_rate: float = DEFAULT_COMBINED_SESSION_RATE
    subject_rates: dict[str, SubjectRate] = field(default_factory=dict)

    @classmethod
    def from_settings(
        cls,
        settings: "TutorSettings | None",
        defaults: "BillingSettings | None" = None,
    ) -> "RateTable":
        """Build a rate table from stored tutor settings.

        Args:
            settings: Tutor settings row, or None when none was saved.
            defaults: Application billing defaults used for missing values.

        Returns:
            RateTable with defaults filled in.
        """
        table = cls()
        if defaults is not None:
            table = cls(
                default_rate=defaults.default_rate,
                default_base_duration=defaults.default_base_duration,
                combined_session_rate=defaults.combined_session_rate,
            )
        if settings is None:
            return table

        if settings.default_rate is not None:
            table.default_rate = float(settings.default_rate)
        if settings.default_base_duration:
            table.default_base_duration = int(settings.default_base_duration)
        if settings.combined_session_rate is not None:
            table.combined_session_rate = float(settings.combined_session_rate)
        table.subject_rates = {
            subject: SubjectRate.from_dict(config)
            for subject, config in (settings.subject_rates or {}).items()
            if isinstance(config, dict)
        }
        return table


@dataclass
class LessonAmount:
    """Charge for a single lesson, with an explanation for the invoice.

    Attributes:
        amount: Charge rounded to cents.
        rate: Rate applied (0 for overrides).
        base_duration: Minutes the rate covers (0 for overrides and flat rates).
        rate_display: Short rate label, e.g. "$45/hr".
        source: Where the rate came from ("piano rate", "default rate", ...).
        formula: Human-readable calculation.
        is_combined_session: Whether the lesson belongs to a combined session.
        price: Charge before rounding.
    """

    amount: float
    rate: float
    base_duration: int
    rate_display: str
    source: str
    formula: str
    is_combined_session: bool = False
    price: float = 0.0


def format_rate_display(rate: float, base_duration: int) -> str:
    """Format a rate for display, e.g. "$45/hr" or "$35/30min"."""
    if base_duration == 60:
        return f"${_format_number(rate)}/hr"
    return f"${_format_number(rate)}/{base_duration}min"


def get_subject_rate_config(table: RateTable, subject: str) -> tuple[SubjectRate, str]:
    """Resolve the rate configuration for a subject.

    Args:
        table: Tutor rate table.
        subject: Lesson subject.

    Returns:
        Tuple of (rate config, source label). Falls back to the default
        rate when the subject has no valid configuration.
    """
    config = table.subject_rates.get(subject)
    if config is not None and config.is_valid:
        return config, f"{subject} rate"
    default = SubjectRate(rate=table.default_rate, base_duration=table.default_base_duration)
    return default, "default rate"


def calculate_lesson_rate(
    table: RateTable,
    subject: str,
    duration_min: int,
    is_combined_session: bool = False,
) -> float:
    """Calculate the unrounded price of a lesson.

    Same rules as calculate_lesson_amount, without a manual override.
    """
    return calculate_lesson_amount(table, subject, duration_min, is_combined_session).price


def calculate_lesson_amount(
    table: RateTable,
    subject: str,
    duration_min: int,
    is_combined_session: bool = False,
    override_amount: float | None = None,
) -> LessonAmount:
    """Calculate a lesson charge with the explanation shown on invoices.

    Args:
        table: Tutor rate table.
        subject: Lesson subject.
        duration_min: Lesson length in minutes.
        is_combined_session: Whether the lesson is part of a combined session.
        override_amount: Manual price set on the lesson.

    Returns:
        LessonAmount with the rounded charge and its formula.
    """
    if override_amount is not None:
        amount = round_money(float(override_amount))
        return LessonAmount(
            amount=amount,
            rate=0,
            base_duration=0,
            rate_display="Override",
            source="override",
            formula=f"Manual override = ${amount:.2f}",
            is_combined_session=is_combined_session,
            price=float(override_amount),
        )

    if is_combined_session:
        rate = table.combined_session_rate
        amount = round_money(rate)
        return LessonAmount(
            amount=amount,
            rate=rate,
            base_duration=0,
            rate_display=f"${_format_number(rate)}/student",
            source="combined session rate",
            formula=f"Combined session flat rate = ${amount:.2f}",
            is_combined_session=True,
            price=rate,
        )

    config, source = get_subject_rate_config(table, subject)
    explicit = config.duration_prices.get(str(duration_min))
    if explicit is not None and explicit > 0:
        amount = round_money(explicit)
        return LessonAmount(
            amount=amount,
            rate=explicit,
            base_duration=duration_min,
            rate_display=f"${_format_number(explicit)}/{duration_min}min",
            source=f"{source}, fixed price",
            formula=f"{duration_min}min fixed price = ${amount:.2f} ({source})",
            price=explicit,
        )

    price = (duration_min / config.base_duration) * config.rate
    amount = round_money(price)
    return LessonAmount(
        amount=amount,
        rate=config.rate,
        base_duration=config.base_duration,
        rate_display=format_rate_display(config.rate, config.base_duration),
        source=source,
        formula=(
            f"{duration_min}min / {config.base_duration}min × "
            f"${_format_number(config.rate)} = ${amount:.2f} ({source})"
        ),
        price=price,
    )


@dataclass
class PrepaidUsage:
    """Derived state of a prepaid plan.

    Attributes:
        total: Sessions available this month, rollover included.
        used: Sessions consumed so far.
        remaining: Sessions left, never negative.
        over_limit: More sessions were taught than prepaid.
        usage_percent: Share of the plan used, one decimal.
    """

    total: int
    used: int
    remaining: int
    over_limit: bool
    usage_percent: float


def calculate_prepaid_usage(used: int, total: int) -> PrepaidUsage:
    """Derive remaining sessions and over-limit state of a plan."""
    used = max(0, used or 0)
    total = max(0, total or 0)
    percent = round(used / total * 100, 1) if total > 0 else 0.0
    return PrepaidUsage(
        total=total,
        used=used,
        remaining=max(0, total - used),
        over_limit=used > total,
        usage_percent=percent,
    )


def calculate_rollover(sessions_prepaid: int | None, sessions_used: int | None) -> int:
    """Unused sessions carried into the next month."""
    return max(0, (sessions_prepaid or 0) - (sessions_used or 0))


def suggested_prepaid_amount(
    sessions: int,
    price_per_session: float = DEFAULT_PREPAID_SESSION_PRICE,
) -> float:
    """Default amount due for a prepaid plan."""
    return round_money(sessions * price_per_session)


def derive_payment_status(amount_due: float, amount_paid: float) -> str:
    """Status implied by the amounts of a payment.

    Returns:
        "paid" when fully covered, "partial" when something was paid,
        "unpaid" otherwise.
    """
    if amount_paid >= amount_due:
        return "paid"
    if amount_paid > 0:
        return "partial"
    return "unpaid"

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Payment reminder wording and email rendering."""

import html
from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class ReminderConfig:
    """Wording of one reminder type.

    Attributes:
        subject: Email subject.
        greeting: Headline, also the in-app notification title.
        main_message: First paragraph of the email.
        urgency: low, medium or high.
        accent_color: Banner color of the email.
    """

    subject: str
    greeting: str
    main_message: str
    urgency: str
    accent_color: str

    @property
    def notification_title(self) -> str:
        return self.greeting[:1].upper() + self.greeting[1:]

    @property
    def priority(self) -> str:
        return "high" if self.urgency == "high" else "normal"


@dataclass(frozen=True)
class ReminderLessonLine:
    """Unpaid lesson listed in a reminder email."""

    scheduled_at: datetime
    subject: str
    student_name: str
    amount: float


# Titles of notifications created by the daily reminder job
SCHEDULED_NOTIFICATION_TITLES = {
    "friendly": "Upcoming Invoice Reminder",
    "due_date": "Invoice Due Today",
    "past_due_3": "Payment Overdue",
    "past_due_7": "Payment Overdue",
    "past_due_14": "Payment Overdue",
}

HIGH_PRIORITY_TYPES = frozenset({"past_due_7", "past_due_14"})


def balance_message(month_display: str, balance_due: float) -> str:
    """In-app notification body for a reminder."""
    return f"Your invoice for {month_display} has a balance of ${balance_due:.2f}."


def get_reminder_config(reminder_type: str, month_display: str, balance_due: float) -> ReminderConfig:
    """Wording for a reminder type.

    Args:
        reminder_type: friendly, due_date, past_due_3/7/14 or manual.
        month_display: Billing month, e.g. "March 2026".
        balance_due: Outstanding amount.

    Returns:
        ReminderConfig; unknown types get the manual wording.
    """
    balance = f"${balance_due:.2f}"

    if reminder_type == "friendly":
        return ReminderConfig(
            subject=f"Friendly Reminder: Invoice for {month_display}",
            greeting="Just a friendly reminder",
            main_message=(
                f"Your invoice for {month_display} will be due soon. "
                f"The current balance is {balance}."
            ),
            urgency="low",
            accent_color="#7CB342",
        )
    if reminder_type == "due_date":
        return ReminderConfig(
            subject=f"Invoice Due Today - {month_display}",
            greeting="Your invoice is due today",
            main_message=(
                f"This is a reminder that your invoice for {month_display} is due today. "
                f"The balance due is {balance}."
            ),
            urgency="medium",
            accent_color="#FF9800",
        )
    if reminder_type == "past_due_3":
        return ReminderConfig(
            subject=f"Payment Overdue: {month_display} Invoice",
            greeting="Your payment is 3 days overdue",
            main_message=(
                f"Your invoice for {month_display} is now 3 days past due. "
                f"Please remit payment of {balance} at your earliest convenience."
            ),
            urgency="medium",
            accent_color="#F57C00",
        )
    if reminder_type == "past_due_7":
        return ReminderConfig(
            subject=f"Payment Overdue: {month_display} Invoice - 7 Days",
            greeting="Your payment is 7 days overdue",
            main_message=(
                f"Your invoice for {month_display} is now 7 days past due. "
                f"The outstanding balance is {balance}. "
                "Please arrange payment as soon as possible."
            ),
            urgency="high",
            accent_color="#E53935",
        )
    if reminder_type == "past_due_14":
        return ReminderConfig(
            subject=f"Urgent: {month_display} Invoice - 14 Days Overdue",
            greeting="Your payment is 14 days overdue",
            main_message=(
                f"Your invoice for {month_display} is now 14 days past due. "
                f"The outstanding balance is {balance}. "
                "Please contact us immediately to arrange payment."
            ),
            urgency="high",
            accent_color="#C62828",
        )
    return ReminderConfig(
        subject=f"Payment Reminder: {month_display} Invoice",
        greeting="Payment reminder",
        main_message=(
            f"This is a reminder about your invoice for {month_display}. "
            f"The current balance is {balance}."
        ),
        urgency="medium",
        accent_color="#3D9CA8",
    )


def render_reminder_email(
    config: ReminderConfig,
    parent_name: str,
    student_names: list[str],
    lessons: list[ReminderLessonLine],
    balance_due: float,
    payments_url: str,
    business_name: str,
    custom_message: str | None = None,
) -> tuple[str, str]:
    """Render the reminder email.

    Returns:
        Tuple of (html body, plain text body).
    """
    students = ", ".join(student_names) if student_names else "your students"

    text_lines = [
        f"Hi {parent_name},",
        "",
        f"{config.notification_title}.",
        config.main_message,
        f"Students: {students}",
        "",
    ]
    if custom_message:
        text_lines.extend(["Message from Tutor:", custom_message, ""])
    if lessons:
        text_lines.append(f"Unpaid Lessons ({len(lessons)}):")
        for line in lessons:
            text_lines.append(
                f"  {line.scheduled_at:%b} {line.scheduled_at.day}  {line.subject}  "
                f"{line.student_name}  ${line.amount:.2f}"
            )
        text_lines.append("")
    text_lines.extend([
        f"Balance due: ${balance_due:.2f}",
        f"View your payments: {payments_url}",
        "",
        f"Thank you, {business_name}",
    ])

    accent = config.accent_color
    custom_html = ""
    if custom_message:
        custom_html = (
            '<div style="background: #E3F2FD; border-radius: 10px; padding: 20px; '
            'margin: 25px 0; border-left: 4px solid #2196F3;">'
            '<h3 style="margin: 0 0 10px 0; color: #1565C0; font-size: 16px;">Message from Tutor:</h3>'
            f'<p style="margin: 0; font-size: 15px;">{html.escape(custom_message)}</p></div>'
        )

    lessons_html = ""
    if lessons:
        rows = "".join(
            '<tr style="border-bottom: 1px solid #E0E8EC;">'
            f'<td style="padding: 10px 0; color: #757575; font-size: 13px;">'
            f"{line.scheduled_at:%b} {line.scheduled_at.day}</td>"
            f'<td style="padding: 10px 0; font-size: 13px; font-weight: 600;">'
            f"{html.escape(line.subject.title())}</td>"
            f'<td style="padding: 10px 0; font-size: 13px;">{html.escape(line.student_name)}</td>'
            f'<td style="padding: 10px 0; font-size: 13px; font-weight: 600; text-align: right;">'
            f"${line.amount:.2f}</td></tr>"
            for line in lessons
        )
        lessons_html = (
            '<div style="background: #F5F7FA; border-radius: 10px; padding: 20px; margin: 20px 0;">'
            f'<h3 style="margin: 0 0 15px 0; color: {accent}; font-size: 16px;">'
            f"Unpaid Lessons ({len(lessons)}):</h3>"
            f'<table style="width: 100%; border-collapse: collapse;">{rows}</table></div>'
        )

    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>Payment Reminder</title></head>
<body style="font-family: Arial, sans-serif; background: #F5F7FA; margin: 0; padding: 0;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: {accent}; color: white; border-radius: 12px 12px 0 0; padding: 24px;">
            <h1 style="margin: 0; font-size: 22px;">{html.escape(config.notification_title)}</h1>
        </div>
        <div style="background: white; border-radius: 0 0 12px 12px; padding: 28px;">
            <p style="font-size: 15px;">Hi {html.escape(parent_name)},</p>
            <p style="font-size: 15px;">{html.escape(config.main_message)}</p>
            <p style="font-size: 13px; color: #4A6572;">Students: {html.escape(students)}</p>
            {custom_html}
            {lessons_html}
            <p style="font-size: 18px; font-weight: 700; color: {accent};">Balance due: ${balance_due:.2f}</p>
            <div style="margin: 24px 0;">
                <a href="{html.escape(payments_url, quote=True)}"
                   style="background: {accent}; color: white; padding: 12px 24px;
                          text-decoration: none; border-radius: 6px;">View Payments</a>
            </div>
            <p style="font-size: 12px; color: #9CA3AF;">Thank you, {html.escape(business_name)}</p>
        </div>
    </div>
</body>
</html>"""

    return html_body, "\n".join(text_lines)

# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email wording for reschedule and drop-in requests.

Three emails are sent over a request's life: the tutor is told about a
new request, then the family hears whether it was approved or declined.
"""

import html
from dataclasses import dataclass
from datetime import date, time


@dataclass(frozen=True)
class RenderedEmail:
    """Subject and bodies of one outgoing email."""

    subject: str
    html: str
    text: str


NO_REASON_GIVEN = "No specific reason was provided. Please contact your tutor for more details."


def request_type_label(request_type: str) -> str:
    return "Drop-in Request" if request_type == "dropin" else "Reschedule Request"


def format_long_date(value: date) -> str:
    """Saturday, March 7, 2026"""
    return f"{value:%A, %B} {value.day}, {value.year}"


def format_short_date(value: date) -> str:
    """Mar 7, 2026"""
    return f"{value:%b} {value.day}, {value.year}"


def format_time(value: time) -> str:
    hour = value.hour % 12 or 12
    suffix = "AM" if value.hour < 12 else "PM"
    return f"{hour}:{value.minute:02d} {suffix}"


def _render(
    title: str,
    accent: str,
    greeting_name: str,
    intro: str,
    details: list[tuple[str, str]],
    note_title: str | None,
    note: str | None,
    link_label: str,
    link_url: str,
    business_name: str,
) -> tuple[str, str]:
    text_lines = [f"Dear {greeting_name},", "", intro, ""]
    text_lines.extend(f"{label}: {value}" for label, value in details)
    text_lines.append("")
    if note_title and note:
        text_lines.extend([note_title, note, ""])
    text_lines.extend([f"{link_label}: {link_url}", "", f"Thank you, {business_name}"])

    rows = "".join(
        f'<tr><td style="padding: 8px 0; color: #757575; font-size: 14px;">{html.escape(label)}:</td>'
        f'<td style="padding: 8px 0; font-size: 14px; font-weight: 600;">{html.escape(value)}</td></tr>'
        for label, value in details
    )
    note_html = ""
    if note_title and note:
        note_html = (
            '<div style="background: #E3F2FD; border-radius: 10px; padding: 20px; '
            'margin: 25px 0; border-left: 4px solid #2196F3;">'
            f'<h3 style="margin: 0 0 10px 0; color: #1565C0; font-size: 16px;">{html.escape(note_title)}</h3>'
            f'<p style="margin: 0; font-size: 15px;">{html.escape(note)}</p></div>'
        )

    html_body = f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{html.escape(title)}</title></head>
<body style="font-family: Arial, sans-serif; background: #F5F7FA; margin: 0; padding: 0;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: {accent}; color: white; border-radius: 12px 12px 0 0; padding: 24px;">
            <h1 style="margin: 0; font-size: 22px;">{html.escape(title)}</h1>
        </div>
        <div style="background: white; border-radius: 0 0 12px 12px; padding: 28px;">
            <p style="font-size: 16px;">Dear {html.escape(greeting_name)},</p>
            <p style="font-size: 15px;">{html.escape(intro)}</p>
            <table style="width: 100%; border-collapse: collapse; margin: 20px 0;">{rows}</table>
            {note_html}
            <div style="margin: 24px 0;">
                <a href="{html.escape(link_url, quote=True)}"
                   style="background: {accent}; color: white; padding: 12px 24px;
                          text-decoration: none; border-radius: 6px;">{html.escape(link_label)}</a>
            </div>
            <p style="font-size: 12px; color: #9CA3AF;">Thank you, {html.escape(business_name)}</p>
        </div>
    </div>
</body>
</html>"""

    return html_body, "\n".join(text_lines)


def new_request_email(
    request_type: str,
    tutor_name: str,
    parent_name: str,
    student_name: str,
    subject: str,
    preferred_date: date,
    preferred_time: time | None,
    original_date: date | None,
    notes: str | None,
    requests_url: str,
    business_name: str,
) -> RenderedEmail:
    """Email telling the tutor about a new request."""
    label = request_type_label(request_type)
    details = [("Parent", parent_name), ("Student", student_name), ("Subject", subject.title())]
    if original_date:
        details.append(("Original Date", format_long_date(original_date)))
    details.append(("Preferred Date", format_long_date(preferred_date)))
    if preferred_time:
        details.append(("Preferred Time", format_time(preferred_time)))
    details.append(("Type", label))

    html_body, text_body = _render(
        title=f"New {label}",
        accent="#3D9CA8",
        greeting_name=tutor_name,
        intro=f"{parent_name} has submitted a {label.lower()}.",
        details=details,
        note_title="Reason:",
        note=notes,
        link_label="Review Requests",
        link_url=requests_url,
        business_name=business_name,
    )
    return RenderedEmail(
        subject=f"New {label} - {student_name}'s {subject.title()} Lesson",
        html=html_body,
        text=text_body,
    )


def approval_email(
    request_type: str,
    parent_name: str,
    student_name: str,
    subject: str,
    preferred_date: date,
    is_scheduled: bool,
    tutor_response: str | None,
    notifications_url: str,
    business_name: str,
) -> RenderedEmail:
    """Email telling the family their request was approved."""
    label = request_type_label(request_type)
    status_text = "Approved & Scheduled" if is_scheduled else "Approved"
    kind = "drop-in session" if request_type == "dropin" else "reschedule"
    intro = f"Great news! Your {kind} request has been approved"
    intro += " and the lesson has been scheduled." if is_scheduled else "."

    html_body, text_body = _render(
        title=f"Request {status_text}",
        accent="#43A047",
        greeting_name=parent_name,
        intro=intro,
        details=[
            ("Student", student_name),
            ("Subject", subject.title()),
            ("Approved Date", format_long_date(preferred_date)),
        ],
        note_title="Message from Tutor:",
        note=tutor_response,
        link_label="View Notifications",
        link_url=notifications_url,
        business_name=business_name,
    )
    return RenderedEmail(
        subject=f"{label} {status_text} - {student_name}'s {subject.title()} Lesson",
        html=html_body,
        text=text_body,
    )


def rejection_email(
    request_type: str,
    parent_name: str,
    student_name: str,
    subject: str,
    preferred_date: date,
    reason: str | None,
    notifications_url: str,
    business_name: str,
) -> RenderedEmail:
    """Email telling the family their request was declined."""
    label = request_type_label(request_type)
    html_body, text_body = _render(
        title=f"{label} Declined",
        accent="#E53935",
        greeting_name=parent_name,
        intro=f"Unfortunately your {label.lower()} could not be accommodated.",
        details=[
            ("Student", student_name),
            ("Subject", subject.title()),
            ("Requested Date", format_long_date(preferred_date)),
        ],
        note_title="Reason:",
        note=reason or NO_REASON_GIVEN,
        link_label="View Notifications",
        link_url=notifications_url,
        business_name=business_name,
    )
    return RenderedEmail(
        subject=f"{label} Declined - {student_name}'s {subject.title()} Lesson",
        html=html_body,
        text=text_body,
    )

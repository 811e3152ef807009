# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Email notification channel using the Resend HTTP API.

Mail is posted as JSON to the Resend ``/emails`` endpoint with a
bearer API key. The provider answers with the message id, which is
returned as the ChannelResult message_id.

Configuration (via environment variables):
- EMAIL_RESEND_API_KEY: Resend API key (channel is skipped when unset)
- EMAIL_API_URL: Endpoint override
- EMAIL_FROM_ADDRESS: Sender shown on outgoing mail
- EMAIL_BUSINESS_NAME: Name used in the email footer
"""

import html as html_lib
from typing import Any

import httpx

from src.core.config import EmailSettings, get_settings
from src.infrastructure.notifications.channels.base import (
    BaseChannel,
    ChannelResult,
    ChannelType,
    NotificationPayload,
)


class EmailDeliveryError(Exception):
    """Raised when the email provider rejects or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class EmailChannel(BaseChannel):
    """Email notification channel backed by Resend.

    The channel renders a default plain text and HTML body from the
    payload unless the caller provides pre-rendered bodies.
    """

    def __init__(
        self,
        settings: EmailSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__()
        self._settings = settings or get_settings().email
        self._client = client

    @property
    def channel_type(self) -> ChannelType:
        return ChannelType.EMAIL

    @property
    def is_configured(self) -> bool:
        return self._settings.is_configured

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._settings.timeout)
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def send(self, payload: NotificationPayload) -> ChannelResult:
        """Send an email notification.

        Args:
            payload: The notification payload.

        Returns:
            ChannelResult with the provider message id on success.
        """
        if not self.is_configured:
            return self.create_skipped_result("Email channel not configured")

        if not payload.recipient_email:
            return self.create_skipped_result("No recipient email address")

        try:
            email_id = await self.send_email(
                to=payload.recipient_email,
                subject=payload.title,
                html=payload.html or self._build_html(payload),
                text=payload.text or self._build_plain_text(payload),
            )
        except EmailDeliveryError as e:
            return self.create_failure_result(
                e.message,
                metadata={"recipient": payload.recipient_email},
            )

        return self.create_success_result(
            message_id=email_id,
            metadata={"recipient": payload.recipient_email},
        )

    async def send_email(
        self,
        to: str,
        subject: str,
        html: str,
        text: str | None = None,
    ) -> str | None:
        """Post one email to the provider.

        Args:
            to: Recipient address.
            subject: Email subject.
            html: HTML body.
            text: Optional plain text body.

        Returns:
            Provider message id.

        Raises:
            EmailDeliveryError: If the request fails or is rejected.
        """
        if not self.is_configured:
            raise EmailDeliveryError("Email service not configured")

        body: dict[str, Any] = {
            "from": self._settings.from_address,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if text:
            body["text"] = text

        api_key = self._settings.resend_api_key.get_secret_value()
        try:
            response = await self._get_client().post(
                self._settings.api_url,
                json=body,
                headers={"Authorization": f"Bearer {api_key}"},
            )
        except httpx.RequestError as e:
            self.logger.error("Email provider unreachable: %s", e)
            raise EmailDeliveryError(f"Email provider unreachable: {e}") from e

        data = self._handle_response(response)
        email_id = data.get("id")
        self.logger.info("Email sent to %s: %s (%s)", to, subject, email_id)
        return email_id

    def _handle_response(self, response: httpx.Response) -> dict[str, Any]:
        """Return the JSON body or raise EmailDeliveryError."""
        if response.status_code in (200, 201, 202):
            try:
                return response.json()
            except ValueError:
                return {}

        try:
            error_data = response.json()
            error_detail = error_data.get("message", str(error_data))
        except ValueError:
            error_detail = response.text

        self.logger.error(
            "Email provider returned %s: %s", response.status_code, error_detail
        )
        raise EmailDeliveryError(
            f"Email send failed: {error_detail}",
            status_code=response.status_code,
        )

    def _build_plain_text(self, payload: NotificationPayload) -> str:
        lines = [payload.title, "", payload.message, ""]

        if payload.action_url:
            lines.append(f"View details: {self._absolute_url(payload.action_url)}")
            lines.append("")

        lines.extend(["---", f"Sent by {self._settings.business_name}."])
        return "\n".join(lines)

    def _build_html(self, payload: NotificationPayload) -> str:
        title = html_lib.escape(payload.title)
        message = html_lib.escape(payload.message).replace("\n", "<br>")
        business = html_lib.escape(self._settings.business_name)

        action_button = ""
        if payload.action_url:
            url = html_lib.escape(self._absolute_url(payload.action_url), quote=True)
            action_button = (
                '<div style="margin: 24px 0;">'
                f'<a href="{url}" style="background-color: #4F46E5; color: white; '
                'padding: 12px 24px; text-decoration: none; border-radius: 6px;">'
                "View Details</a></div>"
            )

        return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"></head>
<body style="font-family: Arial, sans-serif; color: #1F2937; background-color: #F3F4F6;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background-color: white; border-radius: 8px; padding: 32px;">
            <h1 style="color: #4F46E5; font-size: 22px; margin: 0 0 16px 0;">{title}</h1>
            <p style="font-size: 16px; margin: 0 0 16px 0;">{message}</p>
            {action_button}
            <p style="font-size: 12px; color: #9CA3AF; margin-top: 24px;">Sent by {business}.</p>
        </div>
    </div>
</body>
</html>"""

    def _absolute_url(self, path: str) -> str:
        if path.startswith("http://") or path.startswith("https://"):
            return path
        return self._settings.app_url.rstrip("/") + "/" + path.lstrip("/")

"""Email service using Resend for artwork notifications."""

import html
import logging
from typing import Any

import resend
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from src.core.config import get_settings

logger = logging.getLogger(__name__)

MAX_WAIT_SECONDS = 10


class EmailService:
    """Service for sending transactional emails via Resend."""

    def __init__(self) -> None:
        """Initialize email service with Resend API key."""
        settings = get_settings()
        resend.api_key = settings.resend_api_key
        self.enabled = bool(settings.resend_api_key)
        self.from_email = settings.email_from_address
        self.frontend_url = settings.frontend_url
        self.max_attempts = max(1, settings.notification_max_attempts)
        self.retry_wait_multiplier = 1

    def render_artwork_email(self, title: str, message: str, link_path: str | None) -> tuple[str, str]:
        """Render the HTML and plain-text bodies of an artwork email.

        Args:
            title: Headline shown at the top of the email.
            message: Body sentence(s).
            link_path: Frontend path the call-to-action points at.

        Returns:
            tuple: (html_content, text_content)
        """
        link = f"{self.frontend_url}{link_path}" if link_path else self.frontend_url
        safe_title = html.escape(title)
        safe_message = html.escape(message).replace("\n", "<br>")

        html_content = f"""
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>{safe_title}</title>
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="font-size: 22px; margin-bottom: 16px;">{safe_title}</h1>
    <div style="background: #f9fafb; padding: 24px; border-radius: 10px; border: 1px solid #e5e7eb;">
        <p style="margin: 0;">{safe_message}</p>
    </div>
    <div style="text-align: center; margin: 30px 0;">
        <a href="{link}" style="background: #111827; color: white; padding: 12px 28px; text-decoration: none; border-radius: 6px; font-weight: 600;">
            View order
        </a>
    </div>
    <p style="font-size: 12px; color: #9ca3af; text-align: center;">
        If the button doesn't work, copy and paste this link:<br>{link}
    </p>
</body>
</html>
"""

        text_content = f"""
{title}

{message}

View order: {link}
"""
        return html_content, text_content

    async def send_email(
        self,
        to_emails: list[str],
        subject: str,
        html_content: str,
        text_content: str | None = None,
    ) -> dict[str, Any]:
        """Send an email, retrying transient failures.

        Never raises: the outcome is reported in the returned dict so that
        callers treating email as best-effort can log and move on.

        Returns:
            dict: {"success": bool, "email_id" | "error": str}
        """
        if not to_emails:
            return {"success": False, "error": "No recipients"}

        if not self.enabled:
            logger.debug("Resend not configured, skipping email '%s' to %s", subject, to_emails)
            return {"success": False, "error": "Email not configured"}

        params: dict[str, Any] = {
            "from": self.from_email,
            "to": to_emails,
            "subject": subject,
            "html": html_content,
        }
        if text_content:
            params["text"] = text_content

        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(Exception),
                stop=stop_after_attempt(self.max_attempts),
                wait=wait_exponential(multiplier=self.retry_wait_multiplier, max=MAX_WAIT_SECONDS),
                reraise=True,
            ):
                with attempt:
                    response = resend.Emails.send(params)

            logger.info("Email '%s' sent to %s, id: %s", subject, to_emails, response.get("id"))
            return {"success": True, "email_id": response.get("id")}

        except Exception as e:
            logger.error(
                "Failed to send email '%s' to %s after %d attempts: %s",
                subject,
                to_emails,
                self.max_attempts,
                str(e),
            )
            return {"success": False, "error": str(e)}

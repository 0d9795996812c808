"""Best-effort notifications fired by artwork transitions.

Delivery is at-least-once per recipient and never part of the
transition itself: a failure here is logged and dropped, and the state
change that triggered it stands.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from src.core.config import get_settings
from src.core.supabase import get_supabase_client
from src.services.email_service import EmailService

logger = logging.getLogger(__name__)

Audience = Literal["admins", "customer"]

MESSAGE_PREVIEW_LENGTH = 100


class NotificationKind(str, Enum):
    """Kinds of notification the artwork workflow emits."""

    ARTWORK_SUBMITTED = "artwork_submitted"
    ARTWORK_APPROVED = "artwork_approved"
    ARTWORK_REVISION_REQUESTED = "artwork_revision_requested"
    ARTWORK_PENDING_APPROVAL = "artwork_pending_approval"
    ARTWORK_NOTE_TO_ADMIN = "artwork_note_to_admin"
    ARTWORK_NOTE_TO_CUSTOMER = "artwork_note_to_customer"


@dataclass(frozen=True)
class NotificationTemplate:
    """Recipients and wording for a notification kind."""

    audience: Audience
    title: str
    message: str
    link: str


TEMPLATES: dict[NotificationKind, NotificationTemplate] = {
    NotificationKind.ARTWORK_SUBMITTED: NotificationTemplate(
        audience="admins",
        title="New Artwork Uploaded",
        message="Customer uploaded artwork for order #{order_number}",
        link="/admin/orders/{order_id}",
    ),
    NotificationKind.ARTWORK_APPROVED: NotificationTemplate(
        audience="admins",
        title="Design Approved",
        message="Customer approved all artwork for order #{order_number}",
        link="/admin/orders/{order_id}",
    ),
    NotificationKind.ARTWORK_REVISION_REQUESTED: NotificationTemplate(
        audience="customer",
        title="Changes Requested",
        message="We need a few changes to your artwork for order #{order_number}: {notes}",
        link="/orders/{order_id}/artwork",
    ),
    NotificationKind.ARTWORK_PENDING_APPROVAL: NotificationTemplate(
        audience="customer",
        title="Design Ready for Review",
        message="Your design for order #{order_number} is ready for approval.",
        link="/orders/{order_id}/artwork",
    ),
    NotificationKind.ARTWORK_NOTE_TO_ADMIN: NotificationTemplate(
        audience="admins",
        title="New Artwork Message",
        message="Customer wrote about order #{order_number}: {notes}",
        link="/admin/orders/{order_id}",
    ),
    NotificationKind.ARTWORK_NOTE_TO_CUSTOMER: NotificationTemplate(
        audience="customer",
        title="New Message About Your Artwork",
        message="We wrote about your order #{order_number}: {notes}",
        link="/orders/{order_id}/artwork",
    ),
}


def _preview(text: str | None) -> str:
    text = (text or "").strip()
    if len(text) > MESSAGE_PREVIEW_LENGTH:
        return text[:MESSAGE_PREVIEW_LENGTH] + "..."
    return text


class NotificationDispatcher:
    """Writes in-app notifications and sends emails for artwork events."""

    def __init__(self) -> None:
        """Initialize dispatcher with database and email clients."""
        self.client = get_supabase_client()
        self.settings = get_settings()
        self.email_service = EmailService()

    async def notify(self, kind: NotificationKind, order_id: int, payload: dict[str, Any]) -> None:
        """Send a notification about an order. Never raises.

        Args:
            kind: What happened.
            order_id: The order concerned.
            payload: Template values. Recognised keys are order_number,
                customer_id, customer_email and notes.
        """
        try:
            await self._dispatch(kind, order_id, payload)
        except Exception as e:
            logger.error(
                "Notification %s for order %s failed: %s",
                kind.value,
                order_id,
                str(e),
            )

    async def _dispatch(self, kind: NotificationKind, order_id: int, payload: dict[str, Any]) -> None:
        template = TEMPLATES[kind]
        values = {
            "order_id": order_id,
            "order_number": payload.get("order_number") or order_id,
            "notes": _preview(payload.get("notes")),
        }
        title = template.title
        message = template.message.format(**values)
        link = template.link.format(**values)

        user_ids, emails = await self._recipients(template.audience, payload)
        if not user_ids and not emails:
            logger.warning("No recipients for %s notification on order %s", kind.value, order_id)
            return

        if user_ids:
            rows = [
                {
                    "user_id": str(user_id),
                    "type": kind.value,
                    "title": title,
                    "message": message,
                    "order_id": order_id,
                    "link_url": link,
                    "is_read": False,
                }
                for user_id in user_ids
            ]
            self.client.table("notifications").insert(rows).execute()

        if emails:
            html_content, text_content = self.email_service.render_artwork_email(title, message, link)
            await self.email_service.send_email(emails, title, html_content, text_content)

        logger.info(
            "Dispatched %s for order %s to %d user(s), %d email(s)",
            kind.value,
            order_id,
            len(user_ids),
            len(emails),
        )

    async def _recipients(self, audience: Audience, payload: dict[str, Any]) -> tuple[list[str], list[str]]:
        """Resolve in-app user IDs and email addresses for an audience."""
        if audience == "customer":
            user_ids = [str(payload["customer_id"])] if payload.get("customer_id") else []
            emails = [payload["customer_email"]] if payload.get("customer_email") else []
            return user_ids, emails

        response = (
            self.client.table("profiles")
            .select("user_id, email")
            .eq("is_admin", True)
            .execute()
        )
        admins = response.data or []
        user_ids = [str(admin["user_id"]) for admin in admins if admin.get("user_id")]

        emails: list[str] = []
        for email in [*self.settings.admin_emails_list, *(a.get("email") for a in admins)]:
            if email and email not in emails:
                emails.append(email)
        return user_ids, emails

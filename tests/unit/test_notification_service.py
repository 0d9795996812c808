"""Unit tests for NotificationDispatcher."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.services.notification_service import NotificationDispatcher, NotificationKind


@pytest.fixture
def mock_supabase() -> MagicMock:
    """Create a mock Supabase client with two admin profiles."""
    client = MagicMock()
    admins = MagicMock()
    admins.data = [
        {"user_id": "990e8400-e29b-41d4-a716-446655440000", "email": "admin@example.com"},
        {"user_id": "990e8400-e29b-41d4-a716-446655440001", "email": "ops@example.com"},
    ]
    client.table.return_value.select.return_value.eq.return_value.execute.return_value = admins
    return client


@pytest.fixture
def dispatcher(mock_supabase: MagicMock, test_settings) -> NotificationDispatcher:
    """Create NotificationDispatcher with mocked database and email."""
    with patch("src.services.notification_service.get_supabase_client", return_value=mock_supabase):
        service = NotificationDispatcher()
    service.email_service = MagicMock()
    service.email_service.render_artwork_email.return_value = ("<p>html</p>", "text")
    service.email_service.send_email = AsyncMock(return_value={"success": True, "email_id": "em_1"})
    return service


@pytest.fixture
def payload() -> dict:
    """Notification values for order 7."""
    return {
        "order_number": "SB-20250114-ABC123",
        "customer_id": "770e8400-e29b-41d4-a716-446655440000",
        "customer_email": "customer@example.com",
    }


class TestNotify:
    """Tests for notify."""

    @pytest.mark.asyncio
    async def test_submission_notifies_admins(
        self, dispatcher: NotificationDispatcher, mock_supabase: MagicMock, payload: dict
    ) -> None:
        """Customer uploads create one in-app row per admin and one email."""
        await dispatcher.notify(NotificationKind.ARTWORK_SUBMITTED, 7, payload)

        rows = mock_supabase.table.return_value.insert.call_args.args[0]
        assert len(rows) == 2
        assert rows[0]["type"] == "artwork_submitted"
        assert rows[0]["order_id"] == 7
        assert rows[0]["link_url"] == "/admin/orders/7"
        assert "SB-20250114-ABC123" in rows[0]["message"]

        to_emails = dispatcher.email_service.send_email.await_args.args[0]
        # Configured and profile admin addresses are merged without duplicates
        assert to_emails == ["ops@example.com", "admin@example.com"]

    @pytest.mark.asyncio
    async def test_revision_notifies_customer_with_notes(
        self, dispatcher: NotificationDispatcher, mock_supabase: MagicMock, payload: dict
    ) -> None:
        """Revision requests reach the customer with the admin's notes."""
        await dispatcher.notify(
            NotificationKind.ARTWORK_REVISION_REQUESTED,
            7,
            {**payload, "notes": "logo too small"},
        )

        rows = mock_supabase.table.return_value.insert.call_args.args[0]
        assert [row["user_id"] for row in rows] == ["770e8400-e29b-41d4-a716-446655440000"]
        assert rows[0]["message"].endswith("logo too small")
        assert dispatcher.email_service.send_email.await_args.args[0] == ["customer@example.com"]

    @pytest.mark.asyncio
    async def test_long_notes_are_truncated(
        self, dispatcher: NotificationDispatcher, mock_supabase: MagicMock, payload: dict
    ) -> None:
        """Message previews stay short."""
        await dispatcher.notify(NotificationKind.ARTWORK_NOTE_TO_CUSTOMER, 7, {**payload, "notes": "x" * 500})

        message = mock_supabase.table.return_value.insert.call_args.args[0][0]["message"]
        assert message.endswith("x" * 100 + "...")

    @pytest.mark.asyncio
    async def test_failures_are_swallowed(
        self, dispatcher: NotificationDispatcher, mock_supabase: MagicMock, payload: dict
    ) -> None:
        """A failing insert never propagates to the caller."""
        mock_supabase.table.return_value.insert.return_value.execute.side_effect = Exception("db down")

        await dispatcher.notify(NotificationKind.ARTWORK_APPROVED, 7, payload)

        dispatcher.email_service.send_email.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_guest_order_emails_only(
        self, dispatcher: NotificationDispatcher, mock_supabase: MagicMock
    ) -> None:
        """Orders without an account still get an email."""
        await dispatcher.notify(
            NotificationKind.ARTWORK_PENDING_APPROVAL,
            7,
            {"order_number": "SB-1", "customer_id": None, "customer_email": "guest@example.com"},
        )

        mock_supabase.table.return_value.insert.assert_not_called()
        assert dispatcher.email_service.send_email.await_args.args[0] == ["guest@example.com"]

    @pytest.mark.asyncio
    async def test_no_recipients_is_a_no_op(
        self, dispatcher: NotificationDispatcher, mock_supabase: MagicMock
    ) -> None:
        """Nothing is sent when the customer cannot be reached."""
        await dispatcher.notify(NotificationKind.ARTWORK_PENDING_APPROVAL, 7, {"order_number": "SB-1"})

        mock_supabase.table.return_value.insert.assert_not_called()
        dispatcher.email_service.send_email.assert_not_awaited()

"""Supabase-backed access to orders, order items, designs and artwork notes."""

import logging
import secrets
from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any
from uuid import UUID

from src.api.middleware.error_handler import ConflictError, NotFoundError
from src.core.supabase import get_supabase_client
from src.models.order import (
    ArtworkNote,
    Design,
    DesignUpdate,
    Order,
    OrderItem,
    OrderItemCreate,
)
from src.services.artwork_rules import OrderArtworkStatus, compute_order_artwork_status

logger = logging.getLogger(__name__)

ACCESS_TOKEN_BYTES = 32


def _parse_timestamp(value: Any) -> datetime | None:
    """Parse a PostgREST timestamp into an aware datetime."""
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def next_updated_at(previous: Any) -> str:
    """Return a timestamp for updated_at that never moves backwards.

    Clock skew between app instances could otherwise produce a value
    older than the one already stored.
    """
    now = datetime.now(timezone.utc)
    prev = _parse_timestamp(previous)
    if prev is not None and prev > now:
        now = prev
    return now.isoformat()


def generate_order_number(created_at: datetime | None = None) -> str:
    """Generate a human-readable order number like SB-20250114-3FA9C2."""
    created_at = created_at or datetime.now(timezone.utc)
    return f"SB-{created_at:%Y%m%d}-{secrets.token_hex(3).upper()}"


def generate_access_token() -> str:
    """Generate the secret that lets a guest reach their order's artwork."""
    return secrets.token_urlsafe(ACCESS_TOKEN_BYTES)


class OrderStore:
    """Durable ledger of orders, their items and linked designs.

    Each method is a single PostgREST statement. Callers compose them into
    operations, performing every external side effect (file storage)
    before the first write and compensating on guard failures.
    """

    def __init__(self) -> None:
        """Initialize the store with the shared Supabase client."""
        self.client = get_supabase_client()

    # Orders

    async def get_order(self, order_id: int) -> Order:
        """Get an order by ID.

        Raises:
            NotFoundError: If the order does not exist.
        """
        response = (
            self.client.table("orders")
            .select("*")
            .eq("id", order_id)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Order not found")
        return response.data

    async def get_order_by_access_token(self, token: str) -> Order:
        """Get the order a guest access token belongs to.

        Raises:
            NotFoundError: If no order carries this token.
        """
        response = (
            self.client.table("orders")
            .select("*")
            .eq("access_token", token)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Order not found")
        return response.data

    async def get_product_prices(self, product_ids: Iterable[int]) -> dict[int, Decimal]:
        """Get catalogue base prices of active products, keyed by product ID.

        Unknown or inactive products are simply absent.
        """
        ids = sorted(set(product_ids))
        if not ids:
            return {}
        response = (
            self.client.table("products")
            .select("id, base_price")
            .in_("id", ids)
            .eq("is_active", True)
            .execute()
        )
        return {row["id"]: Decimal(str(row["base_price"])) for row in response.data or []}

    async def create_order(
        self,
        order_data: dict[str, Any],
        items: list[OrderItemCreate],
    ) -> tuple[Order, list[OrderItem]]:
        """Insert an order and its items.

        The order row is removed again if the items cannot be written, so
        an order never exists without items.

        Returns:
            tuple: (order row, item rows)
        """
        if not items:
            raise ValueError("An order needs at least one item")

        order_response = self.client.table("orders").insert(order_data).execute()
        order = order_response.data[0]

        try:
            item_rows = [{**item, "order_id": order["id"]} for item in items]
            items_response = self.client.table("order_items").insert(item_rows).execute()
        except Exception:
            logger.error("Failed to insert items for order %s, removing order", order["id"])
            self.client.table("orders").delete().eq("id", order["id"]).execute()
            raise

        return order, items_response.data

    async def update_order(
        self,
        order_id: int,
        changes: dict[str, Any],
        expected_status: str | None = None,
    ) -> Order:
        """Update order columns, bumping updated_at.

        Args:
            order_id: The order's ID.
            changes: Columns to write.
            expected_status: When set, the write only applies if the order
                still has this status.

        Raises:
            ConflictError: If the order vanished or its status changed.
        """
        current = await self.get_order(order_id)
        payload = {**changes, "updated_at": next_updated_at(current.get("updated_at"))}

        query = self.client.table("orders").update(payload).eq("id", order_id)
        if expected_status is not None:
            query = query.eq("status", expected_status)
        response = query.execute()

        if not response.data:
            raise ConflictError("Order changed while it was being updated; reload and retry")
        return response.data[0]

    # Order items

    async def get_items_for_order(self, order_id: int) -> list[OrderItem]:
        """Get all items of an order in creation order."""
        response = (
            self.client.table("order_items")
            .select("*")
            .eq("order_id", order_id)
            .order("created_at")
            .order("id")
            .execute()
        )
        return response.data or []

    async def get_item(self, order_id: int, item_id: int) -> OrderItem:
        """Get an order item, checking it belongs to the order.

        Raises:
            NotFoundError: If the item does not exist on this order.
        """
        response = (
            self.client.table("order_items")
            .select("*")
            .eq("id", item_id)
            .eq("order_id", order_id)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Order item not found")
        return response.data

    async def update_item_design_link(
        self,
        item_id: int,
        design_id: int | None,
        expected_design_id: int | None,
    ) -> OrderItem:
        """Point an item at a design, or clear the link.

        The write is conditional on the item still linking to
        expected_design_id, so two racing link changes cannot both apply
        on top of the same read.

        Raises:
            ConflictError: If the item was deleted or relinked concurrently.
        """
        query = (
            self.client.table("order_items")
            .update({"design_id": design_id})
            .eq("id", item_id)
        )
        if expected_design_id is None:
            query = query.is_("design_id", "null")
        else:
            query = query.eq("design_id", expected_design_id)

        response = query.execute()
        if not response.data:
            raise ConflictError("Order item changed while its artwork was being updated; reload and retry")
        return response.data[0]

    async def confirm_item_link(self, item_id: int, design_id: int) -> None:
        """Check that an item still links to a design.

        Raises:
            ConflictError: If the item was unlinked or relinked concurrently.
        """
        response = (
            self.client.table("order_items")
            .select("id")
            .eq("id", item_id)
            .eq("design_id", design_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise ConflictError("Order item changed while its artwork was being updated; reload and retry")

    async def update_item_quantity(self, item_id: int, quantity: int) -> OrderItem:
        """Change an item's quantity. unit_price is never touched."""
        response = (
            self.client.table("order_items")
            .update({"quantity": quantity})
            .eq("id", item_id)
            .execute()
        )
        if not response.data:
            raise ConflictError("Order item was removed while it was being updated")
        return response.data[0]

    async def find_item_linked_to_design(
        self,
        design_id: int,
        exclude_item_id: int | None = None,
    ) -> dict[str, Any] | None:
        """Find an order item currently linked to a design."""
        query = self.client.table("order_items").select("id, order_id").eq("design_id", design_id)
        if exclude_item_id is not None:
            query = query.neq("id", exclude_item_id)
        response = query.limit(1).execute()
        return response.data[0] if response.data else None

    # Designs

    async def get_design(self, design_id: int) -> Design:
        """Get a design by ID.

        Raises:
            NotFoundError: If the design does not exist.
        """
        response = (
            self.client.table("designs")
            .select("*")
            .eq("id", design_id)
            .maybe_single()
            .execute()
        )
        if not response or not response.data:
            raise NotFoundError("Design not found")
        return response.data

    async def get_designs(self, design_ids: Iterable[int]) -> dict[int, Design]:
        """Get several designs keyed by ID. Missing IDs are simply absent."""
        ids = sorted({design_id for design_id in design_ids if design_id is not None})
        if not ids:
            return {}
        response = self.client.table("designs").select("*").in_("id", ids).execute()
        return {row["id"]: row for row in response.data or []}

    async def insert_design(self, data: dict[str, Any]) -> Design:
        """Insert a design row and return it."""
        now = datetime.now(timezone.utc).isoformat()
        response = (
            self.client.table("designs")
            .insert({**data, "created_at": now, "updated_at": now})
            .execute()
        )
        return response.data[0]

    async def update_design(
        self,
        design_id: int,
        changes: DesignUpdate,
        expected_preview_url: str | None = None,
    ) -> Design:
        """Rewrite design columns in a single-row update.

        URLs and review state always change together, so a reader never
        sees a new file with the old state or the reverse.

        Args:
            design_id: The design's ID.
            changes: Columns to write.
            expected_preview_url: When set, the write only applies if the
                design still shows this file.

        Raises:
            ConflictError: If the design was removed or its file replaced
                concurrently.
        """
        query = (
            self.client.table("designs")
            .update({**changes, "updated_at": datetime.now(timezone.utc).isoformat()})
            .eq("id", design_id)
        )
        if expected_preview_url is not None:
            query = query.eq("preview_url", expected_preview_url)
        response = query.execute()

        if not response.data:
            raise ConflictError("Design changed while it was being updated; reload and retry")
        return response.data[0]

    async def delete_design(self, design_id: int) -> None:
        """Delete an unlinked design. Used only to undo a failed first link."""
        self.client.table("designs").delete().eq("id", design_id).execute()

    # Aggregate projection

    async def recompute_and_persist_artwork_status(self, order_id: int) -> OrderArtworkStatus:
        """Recompute the order's artwork status from current rows and store it.

        The stored column is only a projection for fast listing. It is
        rewritten after every artwork write and never read back for
        decisions.
        """
        order = await self.get_order(order_id)
        items = await self.get_items_for_order(order_id)
        designs = await self.get_designs(item.get("design_id") for item in items)
        status = compute_order_artwork_status(items, designs)

        changes: dict[str, Any] = {
            "artwork_status": status.value,
            "updated_at": next_updated_at(order.get("updated_at")),
        }
        if status is OrderArtworkStatus.APPROVED:
            if not order.get("artwork_approved_at"):
                changes["artwork_approved_at"] = datetime.now(timezone.utc).isoformat()
        elif order.get("artwork_approved_at"):
            changes["artwork_approved_at"] = None

        response = self.client.table("orders").update(changes).eq("id", order_id).execute()
        if not response.data:
            raise ConflictError("Order was removed while its artwork status was being updated")

        logger.debug("Order %s artwork status recomputed: %s", order_id, status.value)
        return status

    # Artwork notes

    async def insert_artwork_note(
        self,
        order_id: int,
        content: str,
        sender_type: str,
        user_id: UUID | None = None,
        order_item_id: int | None = None,
    ) -> ArtworkNote:
        """Append an entry to the order's artwork conversation."""
        response = (
            self.client.table("artwork_notes")
            .insert(
                {
                    "order_id": order_id,
                    "order_item_id": order_item_id,
                    "user_id": str(user_id) if user_id else None,
                    "sender_type": sender_type,
                    "content": content,
                    "is_read": False,
                }
            )
            .execute()
        )
        return response.data[0]

    async def list_artwork_notes(self, order_id: int) -> list[ArtworkNote]:
        """List the order's artwork conversation, oldest first."""
        response = (
            self.client.table("artwork_notes")
            .select("*")
            .eq("order_id", order_id)
            .order("created_at")
            .execute()
        )
        return response.data or []

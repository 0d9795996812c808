"""Artwork lifecycle for order items.

Every operation re-reads the order, item and design rows it depends on,
checks the actor's rights and the current state, performs any file
storage, and only then writes. The order-level artwork status is
recomputed from the items after each write.
"""

import logging
from typing import Any

from src.api.middleware.error_handler import (
    AuthorizationError,
    ConflictError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
)
from src.core.config import get_settings
from src.schemas.auth import Actor
from src.services.artwork_rules import (
    ARTWORK_EDITABLE_ORDER_STATUSES,
    REVIEWABLE_ORDER_STATUSES,
    ItemArtworkState,
    OrderArtworkStatus,
    aggregate_status,
    compute_order_artwork_status,
    item_state,
)
from src.services.artwork_storage import ArtworkStorage, ArtworkUpload, validate_upload
from src.services.notification_service import NotificationDispatcher, NotificationKind
from src.services.order_store import OrderStore

logger = logging.getLogger(__name__)

MAX_NOTE_LENGTH = 5000
MIN_ACCESS_TOKEN_LENGTH = 32


def is_order_owner(order: dict[str, Any], actor: Actor) -> bool:
    """Check whether the actor placed the order.

    A guest holding the order's access token counts as its owner.
    """
    if actor.order_id is not None:
        return actor.order_id == order.get("id")
    owner = order.get("user_id")
    return owner is not None and str(owner) == str(actor.user_id)


class ArtworkService:
    """State machine for per-item artwork and its order-level aggregate."""

    def __init__(self) -> None:
        """Initialize artwork service with its collaborators."""
        self.settings = get_settings()
        self.store = OrderStore()
        self.storage = ArtworkStorage()
        self.notifier = NotificationDispatcher()

    # Guest access

    async def resolve_access_token(self, token: str) -> tuple[int, Actor]:
        """Turn an order access token into the order ID and a guest actor.

        Raises:
            NotFoundError: If the token does not belong to any order.
        """
        if len(token or "") < MIN_ACCESS_TOKEN_LENGTH:
            raise NotFoundError("Order not found")
        order = await self.store.get_order_by_access_token(token)
        guest = Actor(user_id=None, email=order.get("customer_email"), order_id=order["id"])
        return order["id"], guest

    # Guards

    async def _load_order_for(self, order_id: int, actor: Actor) -> dict[str, Any]:
        """Load an order the actor may act on as owner or admin."""
        order = await self.store.get_order(order_id)
        if not actor.is_admin and not is_order_owner(order, actor):
            raise AuthorizationError("Not authorized to access artwork for this order")
        return order

    @staticmethod
    def _ensure_editable(order: dict[str, Any]) -> None:
        if order.get("status") not in ARTWORK_EDITABLE_ORDER_STATUSES:
            raise InvalidStateError(
                f"Artwork can no longer be changed on an order that is {order.get('status')}"
            )

    async def _linked_design(self, item: dict[str, Any]) -> dict[str, Any] | None:
        """Return the design linked to an item, or None if there is none."""
        if not item.get("design_id"):
            return None
        try:
            return await self.store.get_design(item["design_id"])
        except NotFoundError:
            logger.warning("Item %s links to missing design %s", item["id"], item["design_id"])
            return None

    async def _current_status(self, order_id: int) -> OrderArtworkStatus:
        items = await self.store.get_items_for_order(order_id)
        designs = await self.store.get_designs(item.get("design_id") for item in items)
        return compute_order_artwork_status(items, designs)

    @staticmethod
    def _payload(order: dict[str, Any], **extra: Any) -> dict[str, Any]:
        return {
            "order_number": order.get("order_number"),
            "customer_id": order.get("user_id"),
            "customer_email": order.get("customer_email"),
            **extra,
        }

    # Reads

    async def get_order_artwork(self, order_id: int, actor: Actor) -> dict[str, Any]:
        """Get an order with its items, design summaries and live aggregate.

        Returns:
            dict: order, items (each with design and artwork_state), artwork_status.
        """
        order = await self._load_order_for(order_id, actor)
        items = await self.store.get_items_for_order(order_id)
        designs = await self.store.get_designs(item.get("design_id") for item in items)

        enriched = []
        states = []
        for item in items:
            design = designs.get(item["design_id"]) if item.get("design_id") else None
            state = item_state(design)
            states.append(state)
            enriched.append({**item, "design": design, "artwork_state": state})

        return {
            "order": order,
            "items": enriched,
            "artwork_status": aggregate_status(states),
        }

    # Transitions

    async def upload_artwork(
        self,
        order_id: int,
        order_item_id: int,
        actor: Actor,
        upload: ArtworkUpload | None,
    ) -> dict[str, Any]:
        """Upload or replace the artwork for an order item.

        Admin uploads become admin designs awaiting the customer's sign-off.
        Customer uploads become customer artwork and notify the admins.
        Replacing approved artwork resets the item, so it must be approved
        again.

        Returns:
            dict: design_id, artwork_url, artwork_status.

        Raises:
            NotFoundError: If the order or item does not exist.
            AuthorizationError: If the actor is neither owner nor admin.
            InvalidInputError: If the file is missing or unacceptable.
            InvalidStateError: If the order no longer accepts artwork.
            UpstreamError: If the file could not be stored.
            ConflictError: If the item was relinked or its file replaced
                concurrently.
        """
        order = await self._load_order_for(order_id, actor)
        item = await self.store.get_item(order_id, order_item_id)
        upload = validate_upload(upload, self.settings)
        self._ensure_editable(order)
        existing = await self._linked_design(item)

        # Storage first: nothing is written if this fails
        artwork_url = await self.storage.store(order, item["id"], upload)

        changes: dict[str, Any] = {
            "name": upload.filename,
            "preview_url": artwork_url,
            "high_res_export_url": artwork_url,
            "provenance": "admin" if actor.is_admin else "customer",
            "approval_state": "awaiting_approval" if actor.is_admin else "pending",
        }

        if existing:
            design = await self.store.update_design(
                existing["id"], changes, expected_preview_url=existing.get("preview_url")
            )
            try:
                await self.store.confirm_item_link(item["id"], existing["id"])
            except ConflictError:
                logger.warning("Item %s was relinked during upload, restoring design %s", item["id"], existing["id"])
                await self.store.update_design(
                    existing["id"],
                    {key: existing.get(key) for key in changes},
                    expected_preview_url=artwork_url,
                )
                raise
        else:
            design = await self.store.insert_design(
                {
                    **changes,
                    "user_id": str(order["user_id"]) if order.get("user_id") else None,
                    "product_id": item.get("product_id"),
                }
            )
            try:
                await self.store.update_item_design_link(
                    item["id"], design["id"], expected_design_id=item.get("design_id")
                )
            except Exception:
                await self.store.delete_design(design["id"])
                raise

        status = await self.store.recompute_and_persist_artwork_status(order_id)

        if actor.is_admin:
            await self.store.insert_artwork_note(
                order_id,
                "New design uploaded: please review and approve this design.",
                sender_type="admin",
                user_id=actor.user_id,
                order_item_id=item["id"],
            )
        else:
            await self.notifier.notify(
                NotificationKind.ARTWORK_SUBMITTED,
                order_id,
                self._payload(order, item_id=item["id"]),
            )

        logger.info(
            "Artwork uploaded for order %s item %s by %s (design %s)",
            order_id,
            item["id"],
            "admin" if actor.is_admin else "customer",
            design["id"],
        )
        return {
            "design_id": design["id"],
            "artwork_url": artwork_url,
            "artwork_status": status,
        }

    async def approve(self, order_id: int, order_item_id: int, actor: Actor) -> dict[str, Any]:
        """Approve the artwork linked to an order item.

        Approval is the customer's call. Admins may only approve when
        ALLOW_ADMIN_APPROVAL is enabled.

        Returns:
            dict: approved, all_approved, artwork_status.

        Raises:
            AuthorizationError: If the actor may not approve.
            InvalidStateError: If there is no reviewable artwork to approve.
            ConflictError: If the file was replaced while approving.
        """
        order = await self.store.get_order(order_id)
        if not is_order_owner(order, actor):
            if not (actor.is_admin and self.settings.allow_admin_approval):
                raise AuthorizationError("Only the customer who placed the order can approve artwork")

        item = await self.store.get_item(order_id, order_item_id)
        design = await self._linked_design(item)
        if design is None:
            raise InvalidStateError("No artwork to approve")
        if order.get("status") not in REVIEWABLE_ORDER_STATUSES:
            raise InvalidStateError(f"Artwork cannot be approved on an order that is {order.get('status')}")
        if not design.get("preview_url"):
            raise InvalidStateError("This artwork has no uploaded file to review yet")
        if item_state(design) is ItemArtworkState.REVISION_REQUESTED:
            raise InvalidStateError("Changes were requested on this artwork; upload a revised file first")

        before = await self._current_status(order_id)

        if design.get("approval_state") != "approved":
            await self.store.update_design(
                design["id"], {"approval_state": "approved"}, expected_preview_url=design["preview_url"]
            )

        status = await self.store.recompute_and_persist_artwork_status(order_id)
        all_approved = status is OrderArtworkStatus.APPROVED

        if all_approved and before is not OrderArtworkStatus.APPROVED:
            await self.notifier.notify(
                NotificationKind.ARTWORK_APPROVED,
                order_id,
                self._payload(order),
            )

        logger.info("Artwork for order %s item %s approved (all approved: %s)", order_id, item["id"], all_approved)
        return {"approved": True, "all_approved": all_approved, "artwork_status": status}

    async def request_revision(
        self,
        order_id: int,
        order_item_id: int,
        actor: Actor,
        notes: str | None,
    ) -> dict[str, Any]:
        """Flag an item's artwork for changes and tell the customer why.

        Admin only. This is the one transition that moves an item backwards.
        With no design linked the request is still recorded and sent; the
        item simply keeps awaiting artwork.

        Returns:
            dict: design_id (or None), artwork_status.
        """
        if not actor.is_admin:
            raise AuthorizationError("Only admins can request artwork revisions")

        notes = (notes or "").strip()
        if not notes:
            raise InvalidInputError("Please describe the changes needed")
        if len(notes) > MAX_NOTE_LENGTH:
            raise InvalidInputError(f"Notes must be at most {MAX_NOTE_LENGTH} characters")

        order = await self.store.get_order(order_id)
        item = await self.store.get_item(order_id, order_item_id)
        design = await self._linked_design(item)

        if design is not None:
            await self.store.update_design(
                design["id"], {"approval_state": "flagged"}, expected_preview_url=design.get("preview_url")
            )

        await self.store.insert_artwork_note(
            order_id,
            f"Artwork revision requested: {notes}",
            sender_type="admin",
            user_id=actor.user_id,
            order_item_id=item["id"],
        )
        status = await self.store.recompute_and_persist_artwork_status(order_id)

        await self.notifier.notify(
            NotificationKind.ARTWORK_REVISION_REQUESTED,
            order_id,
            self._payload(order, notes=notes, item_id=item["id"]),
        )

        logger.info("Revision requested for order %s item %s", order_id, item["id"])
        return {"design_id": design["id"] if design else None, "artwork_status": status}

    async def link_existing_design(
        self,
        order_id: int,
        order_item_id: int,
        actor: Actor,
        design_id: int,
    ) -> dict[str, Any]:
        """Attach a design made in the editor to an order item.

        The design must be unowned or belong to the actor (admins may link
        any design) and must not already back another order item.

        Returns:
            dict: design_id, artwork_status.
        """
        order = await self._load_order_for(order_id, actor)
        item = await self.store.get_item(order_id, order_item_id)
        self._ensure_editable(order)

        design = await self.store.get_design(design_id)
        design_owner = design.get("user_id")
        if design_owner is not None and str(design_owner) != str(actor.user_id) and not actor.is_admin:
            raise AuthorizationError("You can only link your own designs")

        other = await self.store.find_item_linked_to_design(design_id, exclude_item_id=item["id"])
        if other:
            raise ConflictError("This design is already linked to another order item")

        previous_design_id = item.get("design_id")
        if previous_design_id != design_id:
            await self.store.update_item_design_link(
                item["id"], design_id, expected_design_id=previous_design_id
            )

        changes: dict[str, Any] = {"provenance": "customer", "approval_state": "pending"}
        if design_owner is None and order.get("user_id"):
            changes["user_id"] = str(order["user_id"])

        try:
            await self.store.update_design(design_id, changes)
        except Exception:
            if previous_design_id != design_id:
                logger.warning("Restoring link of item %s after failed design update", item["id"])
                await self.store.update_item_design_link(
                    item["id"], previous_design_id, expected_design_id=design_id
                )
            raise

        status = await self.store.recompute_and_persist_artwork_status(order_id)
        logger.info("Design %s linked to order %s item %s", design_id, order_id, item["id"])
        return {"design_id": design_id, "artwork_status": status}

    async def unlink_artwork(self, order_id: int, order_item_id: int, actor: Actor) -> dict[str, Any]:
        """Detach an item's design without deleting it.

        Returns:
            dict: design_id (the detached one, or None), artwork_status.
        """
        order = await self._load_order_for(order_id, actor)
        item = await self.store.get_item(order_id, order_item_id)
        self._ensure_editable(order)

        design_id = item.get("design_id")
        if design_id:
            await self.store.update_item_design_link(item["id"], None, expected_design_id=design_id)

        status = await self.store.recompute_and_persist_artwork_status(order_id)
        logger.info("Artwork unlinked from order %s item %s", order_id, item["id"])
        return {"design_id": design_id, "artwork_status": status}

    async def start_review(self, order_id: int, order_item_id: int, actor: Actor) -> dict[str, Any]:
        """Admin takes newly uploaded customer artwork into review."""
        if not actor.is_admin:
            raise AuthorizationError("Only admins can review artwork")

        order = await self.store.get_order(order_id)
        item = await self.store.get_item(order_id, order_item_id)
        self._ensure_editable(order)

        design = await self._linked_design(item)
        if item_state(design) is not ItemArtworkState.CUSTOMER_UPLOADED:
            raise InvalidStateError("Only newly uploaded customer artwork can be taken into review")

        await self.store.update_design(
            design["id"], {"approval_state": "in_review"}, expected_preview_url=design.get("preview_url")
        )
        status = await self.store.recompute_and_persist_artwork_status(order_id)
        return {"design_id": design["id"], "artwork_status": status}

    async def send_for_approval(self, order_id: int, order_item_id: int, actor: Actor) -> dict[str, Any]:
        """Admin hands artwork to the customer for sign-off."""
        if not actor.is_admin:
            raise AuthorizationError("Only admins can send artwork for approval")

        order = await self.store.get_order(order_id)
        item = await self.store.get_item(order_id, order_item_id)
        self._ensure_editable(order)

        design = await self._linked_design(item)
        state = item_state(design)
        if state not in (
            ItemArtworkState.CUSTOMER_UPLOADED,
            ItemArtworkState.ADMIN_REVIEWING,
            ItemArtworkState.PENDING_APPROVAL,
        ):
            raise InvalidStateError(f"Artwork in state {state.value} cannot be sent for approval")

        await self.store.update_design(
            design["id"], {"approval_state": "awaiting_approval"}, expected_preview_url=design.get("preview_url")
        )
        status = await self.store.recompute_and_persist_artwork_status(order_id)

        await self.notifier.notify(
            NotificationKind.ARTWORK_PENDING_APPROVAL,
            order_id,
            self._payload(order, item_id=item["id"]),
        )
        return {"design_id": design["id"], "artwork_status": status}

    # Conversation

    async def list_notes(self, order_id: int, actor: Actor) -> list[dict[str, Any]]:
        """List the artwork conversation of an order."""
        await self._load_order_for(order_id, actor)
        return await self.store.list_artwork_notes(order_id)

    async def add_note(
        self,
        order_id: int,
        actor: Actor,
        content: str | None,
        order_item_id: int | None = None,
    ) -> dict[str, Any]:
        """Post a message in the order's artwork conversation.

        Customer messages notify the admins; admin messages notify the
        customer.
        """
        order = await self._load_order_for(order_id, actor)

        content = (content or "").strip()
        if not content:
            raise InvalidInputError("Message cannot be empty")
        if len(content) > MAX_NOTE_LENGTH:
            raise InvalidInputError(f"Message must be at most {MAX_NOTE_LENGTH} characters")

        if order_item_id is not None:
            await self.store.get_item(order_id, order_item_id)

        note = await self.store.insert_artwork_note(
            order_id,
            content,
            sender_type="admin" if actor.is_admin else "user",
            user_id=actor.user_id,
            order_item_id=order_item_id,
        )

        kind = NotificationKind.ARTWORK_NOTE_TO_CUSTOMER if actor.is_admin else NotificationKind.ARTWORK_NOTE_TO_ADMIN
        await self.notifier.notify(kind, order_id, self._payload(order, notes=content))
        return note


def get_artwork_service() -> ArtworkService:
    """Get artwork service instance.

    Returns:
        ArtworkService: Artwork service instance.
    """
    return ArtworkService()

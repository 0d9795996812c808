"""Pure artwork lifecycle rules.

Per-item state is derived from the item's design link and the design's
provenance/approval columns. The order-level artwork status is derived
from the item states. Nothing here touches the database, so the same
functions back both reads and the recompute that follows every write.
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Any


class ItemArtworkState(str, Enum):
    """Lifecycle state of a single order item's artwork."""

    NO_ARTWORK = "no_artwork"
    CUSTOMER_UPLOADED = "customer_uploaded"
    ADMIN_REVIEWING = "admin_reviewing"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"


class OrderArtworkStatus(str, Enum):
    """Order-level aggregate of its items' artwork states."""

    AWAITING_ARTWORK = "awaiting_artwork"
    ARTWORK_UPLOADED = "artwork_uploaded"
    IN_REVIEW = "in_review"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REVISION_REQUESTED = "revision_requested"


# Most work remaining first
WORK_REMAINING_ORDER: tuple[ItemArtworkState, ...] = (
    ItemArtworkState.NO_ARTWORK,
    ItemArtworkState.CUSTOMER_UPLOADED,
    ItemArtworkState.ADMIN_REVIEWING,
    ItemArtworkState.PENDING_APPROVAL,
)

ITEM_TO_ORDER_STATUS: dict[ItemArtworkState, OrderArtworkStatus] = {
    ItemArtworkState.NO_ARTWORK: OrderArtworkStatus.AWAITING_ARTWORK,
    ItemArtworkState.CUSTOMER_UPLOADED: OrderArtworkStatus.ARTWORK_UPLOADED,
    ItemArtworkState.ADMIN_REVIEWING: OrderArtworkStatus.IN_REVIEW,
    ItemArtworkState.PENDING_APPROVAL: OrderArtworkStatus.PENDING_APPROVAL,
    ItemArtworkState.APPROVED: OrderArtworkStatus.APPROVED,
    ItemArtworkState.REVISION_REQUESTED: OrderArtworkStatus.REVISION_REQUESTED,
}

# Order statuses in which the customer can see and sign off artwork
REVIEWABLE_ORDER_STATUSES = frozenset({"pending", "paid"})

# Order statuses in which artwork links may still change
ARTWORK_EDITABLE_ORDER_STATUSES = frozenset({"pending", "paid"})


def item_state(design: Mapping[str, Any] | None) -> ItemArtworkState:
    """Derive an item's artwork state from its linked design.

    Args:
        design: The linked design row, or None when nothing is linked.

    Returns:
        ItemArtworkState: The item's current lifecycle state.
    """
    if design is None:
        return ItemArtworkState.NO_ARTWORK

    approval_state = design.get("approval_state") or "pending"
    if approval_state == "flagged":
        return ItemArtworkState.REVISION_REQUESTED
    if approval_state == "approved":
        return ItemArtworkState.APPROVED
    if approval_state == "awaiting_approval":
        return ItemArtworkState.PENDING_APPROVAL
    if approval_state == "in_review":
        return ItemArtworkState.ADMIN_REVIEWING

    # pending: admin-made designs go straight to the customer for sign-off
    if design.get("provenance") == "admin":
        return ItemArtworkState.PENDING_APPROVAL
    return ItemArtworkState.CUSTOMER_UPLOADED


def aggregate_status(states: Iterable[ItemArtworkState]) -> OrderArtworkStatus:
    """Collapse item states into the order-level artwork status.

    Any revision request wins. The order is approved only when every item
    is approved. Otherwise the status reflects the item with the most
    work remaining. An order without items awaits artwork.
    """
    states = list(states)
    if not states:
        return OrderArtworkStatus.AWAITING_ARTWORK

    if ItemArtworkState.REVISION_REQUESTED in states:
        return OrderArtworkStatus.REVISION_REQUESTED

    if all(state is ItemArtworkState.APPROVED for state in states):
        return OrderArtworkStatus.APPROVED

    for candidate in WORK_REMAINING_ORDER:
        if candidate in states:
            return ITEM_TO_ORDER_STATUS[candidate]

    # Only reachable if a new state is added without ranking it
    raise ValueError(f"Unranked artwork states: {states}")


def compute_order_artwork_status(
    items: Iterable[Mapping[str, Any]],
    designs_by_id: Mapping[int, Mapping[str, Any]],
) -> OrderArtworkStatus:
    """Compute the aggregate for a set of item rows and their designs.

    Items whose design_id points at a missing design are treated as
    having no artwork.
    """
    return aggregate_status(
        item_state(designs_by_id.get(item["design_id"]) if item.get("design_id") else None)
        for item in items
    )

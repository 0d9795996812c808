"""Unit tests for the pure artwork state rules."""

import pytest

from src.services.artwork_rules import (
    ItemArtworkState,
    OrderArtworkStatus,
    aggregate_status,
    compute_order_artwork_status,
    item_state,
)


class TestItemState:
    """Tests for item_state."""

    @pytest.mark.parametrize(
        "design, expected",
        [
            (None, ItemArtworkState.NO_ARTWORK),
            ({"provenance": "customer", "approval_state": "pending"}, ItemArtworkState.CUSTOMER_UPLOADED),
            ({"provenance": "customer", "approval_state": "in_review"}, ItemArtworkState.ADMIN_REVIEWING),
            ({"provenance": "customer", "approval_state": "awaiting_approval"}, ItemArtworkState.PENDING_APPROVAL),
            ({"provenance": "admin", "approval_state": "pending"}, ItemArtworkState.PENDING_APPROVAL),
            ({"provenance": "admin", "approval_state": "approved"}, ItemArtworkState.APPROVED),
            ({"provenance": "customer", "approval_state": "flagged"}, ItemArtworkState.REVISION_REQUESTED),
        ],
    )
    def test_maps_design_columns_to_state(self, design, expected) -> None:
        """Provenance and approval columns determine the item state."""
        assert item_state(design) is expected

    def test_missing_approval_state_treated_as_pending(self) -> None:
        """Legacy rows without an approval state count as fresh uploads."""
        assert item_state({"provenance": "customer", "approval_state": None}) is ItemArtworkState.CUSTOMER_UPLOADED


class TestAggregateStatus:
    """Tests for aggregate_status."""

    def test_order_without_items_awaits_artwork(self) -> None:
        """No items means nothing is approved yet."""
        assert aggregate_status([]) is OrderArtworkStatus.AWAITING_ARTWORK

    def test_all_approved(self) -> None:
        """Every item approved approves the order."""
        states = [ItemArtworkState.APPROVED, ItemArtworkState.APPROVED]
        assert aggregate_status(states) is OrderArtworkStatus.APPROVED

    def test_revision_request_wins(self) -> None:
        """Any revision request puts the whole order into revision."""
        states = [
            ItemArtworkState.APPROVED,
            ItemArtworkState.NO_ARTWORK,
            ItemArtworkState.REVISION_REQUESTED,
        ]
        assert aggregate_status(states) is OrderArtworkStatus.REVISION_REQUESTED

    def test_approved_plus_missing_artwork_is_not_approved(self) -> None:
        """One approved item and one without artwork leaves the order awaiting artwork."""
        states = [ItemArtworkState.APPROVED, ItemArtworkState.NO_ARTWORK]
        assert aggregate_status(states) is OrderArtworkStatus.AWAITING_ARTWORK

    @pytest.mark.parametrize(
        "states, expected",
        [
            (
                [ItemArtworkState.PENDING_APPROVAL, ItemArtworkState.CUSTOMER_UPLOADED],
                OrderArtworkStatus.ARTWORK_UPLOADED,
            ),
            (
                [ItemArtworkState.PENDING_APPROVAL, ItemArtworkState.ADMIN_REVIEWING],
                OrderArtworkStatus.IN_REVIEW,
            ),
            (
                [ItemArtworkState.APPROVED, ItemArtworkState.PENDING_APPROVAL],
                OrderArtworkStatus.PENDING_APPROVAL,
            ),
        ],
    )
    def test_most_work_remaining_wins(self, states, expected) -> None:
        """The least advanced item decides the aggregate."""
        assert aggregate_status(states) is expected


class TestComputeOrderArtworkStatus:
    """Tests for compute_order_artwork_status."""

    def test_uses_linked_designs(self) -> None:
        """Item design links are resolved against the design map."""
        items = [{"id": 1, "design_id": 10}, {"id": 2, "design_id": 11}]
        designs = {
            10: {"id": 10, "provenance": "admin", "approval_state": "approved"},
            11: {"id": 11, "provenance": "customer", "approval_state": "approved"},
        }
        assert compute_order_artwork_status(items, designs) is OrderArtworkStatus.APPROVED

    def test_dangling_design_link_counts_as_no_artwork(self) -> None:
        """A link to a deleted design is treated as missing artwork."""
        items = [{"id": 1, "design_id": 10}, {"id": 2, "design_id": 99}]
        designs = {10: {"id": 10, "provenance": "customer", "approval_state": "approved"}}
        assert compute_order_artwork_status(items, designs) is OrderArtworkStatus.AWAITING_ARTWORK

    def test_status_values_are_stored_strings(self) -> None:
        """Enum values match the strings persisted on orders.artwork_status."""
        assert OrderArtworkStatus.ARTWORK_UPLOADED.value == "artwork_uploaded"
        assert OrderArtworkStatus.REVISION_REQUESTED == "revision_requested"

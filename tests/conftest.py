"""Pytest configuration and fixtures."""

import os
from collections.abc import Generator
from decimal import Decimal
from typing import Any
from unittest.mock import MagicMock, patch
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

# Set test environment variables before importing application modules
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("SUPABASE_URL", "https://test-project.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("SUPABASE_SIGNING_KEY_JWK", "test-signing-key-jwk")
os.environ.setdefault("ARTWORK_BUCKET", "artwork")
os.environ.setdefault("ADMIN_NOTIFICATION_EMAILS", "ops@example.com")

from src.schemas.auth import Actor  # noqa: E402

CUSTOMER_ID = UUID("770e8400-e29b-41d4-a716-446655440000")
OTHER_CUSTOMER_ID = UUID("880e8400-e29b-41d4-a716-446655440000")
ADMIN_ID = UUID("990e8400-e29b-41d4-a716-446655440000")


@pytest.fixture(scope="session")
def test_settings() -> Generator[Any, None, None]:
    """Provide test settings with cleared cache.

    Yields:
        Settings: Test configuration settings.
    """
    from src.core.config import get_settings

    # Clear the cache to ensure fresh settings
    get_settings.cache_clear()

    settings = get_settings()
    yield settings

    # Clean up cache after tests
    get_settings.cache_clear()


@pytest.fixture
def customer() -> Actor:
    """The customer who placed the test orders."""
    return Actor(user_id=CUSTOMER_ID, email="customer@example.com", is_admin=False)


@pytest.fixture
def other_customer() -> Actor:
    """A customer with no rights on the test orders."""
    return Actor(user_id=OTHER_CUSTOMER_ID, email="stranger@example.com", is_admin=False)


@pytest.fixture
def admin() -> Actor:
    """A print-shop admin."""
    return Actor(user_id=ADMIN_ID, email="admin@example.com", is_admin=True)


@pytest.fixture
def mock_supabase_client() -> Generator[MagicMock, None, None]:
    """Provide a mocked Supabase client.

    Yields:
        MagicMock: Mocked Supabase client for testing.
    """
    mock_client = MagicMock()

    # Configure default mock responses
    mock_response = MagicMock()
    mock_response.data = []
    mock_client.table.return_value.select.return_value.limit.return_value.execute.return_value = (
        mock_response
    )

    with patch("src.core.supabase.get_supabase_client", return_value=mock_client):
        yield mock_client


@pytest.fixture
def client(mock_supabase_client: MagicMock) -> Generator[TestClient, None, None]:
    """Provide a test client for the FastAPI application.

    Dependency overrides set by a test are cleared afterwards.

    Args:
        mock_supabase_client: Mocked Supabase client fixture.

    Yields:
        TestClient: FastAPI test client.
    """
    from src.main import app

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


class InMemoryOrderStore:
    """OrderStore double keeping rows in dicts.

    Mirrors OrderStore's method signatures, guards and errors so the
    artwork state machine can be exercised without PostgREST.
    """

    def __init__(self) -> None:
        self.orders: dict[int, dict[str, Any]] = {}
        self.products: dict[int, dict[str, Any]] = {}
        self.items: dict[int, dict[str, Any]] = {}
        self.designs: dict[int, dict[str, Any]] = {}
        self.notes: list[dict[str, Any]] = []
        self.writes = 0
        self._next_id = 1000

    def _new_id(self) -> int:
        self._next_id += 1
        return self._next_id

    # Seeding

    def add_order(self, order_id: int, user_id: UUID | None = CUSTOMER_ID, **fields: Any) -> dict[str, Any]:
        order = {
            "id": order_id,
            "order_number": f"SB-20250114-{order_id:06d}",
            "access_token": f"guest-token-{order_id:06d}-" + "x" * 32,
            "user_id": str(user_id) if user_id else None,
            "customer_email": "customer@example.com",
            "status": "pending",
            "delivery_method": "shipping",
            "subtotal": "20.00",
            "shipping_cost": "15.00",
            "tax_rate": "0",
            "tax_amount": "0.00",
            "discount_amount": "0.00",
            "total_amount": "35.00",
            "artwork_status": "awaiting_artwork",
            "artwork_approved_at": None,
            "updated_at": "2025-01-14T10:00:00+00:00",
            **fields,
        }
        self.orders[order_id] = order
        return order

    def add_product(self, product_id: int, base_price: str, is_active: bool = True) -> dict[str, Any]:
        product = {"id": product_id, "name": f"Product {product_id}", "base_price": base_price, "is_active": is_active}
        self.products[product_id] = product
        return product

    def add_item(self, item_id: int, order_id: int, design_id: int | None = None, **fields: Any) -> dict[str, Any]:
        item = {
            "id": item_id,
            "order_id": order_id,
            "product_id": 5,
            "quantity": 100,
            "unit_price": "0.20",
            "selected_options": {"size": "3x3"},
            "design_id": design_id,
            **fields,
        }
        self.items[item_id] = item
        return item

    def add_design(
        self,
        design_id: int,
        provenance: str = "customer",
        approval_state: str = "pending",
        user_id: UUID | None = CUSTOMER_ID,
        **fields: Any,
    ) -> dict[str, Any]:
        design = {
            "id": design_id,
            "user_id": str(user_id) if user_id else None,
            "product_id": 5,
            "name": "logo.png",
            "preview_url": f"https://cdn.example.com/{design_id}.png",
            "high_res_export_url": f"https://cdn.example.com/{design_id}.png",
            "provenance": provenance,
            "approval_state": approval_state,
            **fields,
        }
        self.designs[design_id] = design
        return design

    # OrderStore interface

    async def get_order(self, order_id: int) -> dict[str, Any]:
        from src.api.middleware.error_handler import NotFoundError

        if order_id not in self.orders:
            raise NotFoundError("Order not found")
        return dict(self.orders[order_id])

    async def get_order_by_access_token(self, token: str) -> dict[str, Any]:
        from src.api.middleware.error_handler import NotFoundError

        for order in self.orders.values():
            if order.get("access_token") == token:
                return dict(order)
        raise NotFoundError("Order not found")

    async def get_product_prices(self, product_ids: Any) -> dict[int, Decimal]:
        return {
            product_id: Decimal(self.products[product_id]["base_price"])
            for product_id in product_ids
            if product_id in self.products and self.products[product_id]["is_active"]
        }

    async def create_order(
        self,
        order_data: dict[str, Any],
        items: list[dict[str, Any]],
    ) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        self.writes += 1
        order_id = self._new_id()
        order = {**order_data, "id": order_id}
        self.orders[order_id] = order
        created = []
        for item in items:
            row = {**item, "id": self._new_id(), "order_id": order_id, "design_id": None}
            self.items[row["id"]] = row
            created.append(dict(row))
        return dict(order), created

    async def update_order(
        self,
        order_id: int,
        changes: dict[str, Any],
        expected_status: str | None = None,
    ) -> dict[str, Any]:
        from src.api.middleware.error_handler import ConflictError

        order = self.orders.get(order_id)
        if order is None or (expected_status is not None and order["status"] != expected_status):
            raise ConflictError("Order changed while it was being updated; reload and retry")
        self.writes += 1
        order.update(changes)
        return dict(order)

    async def get_items_for_order(self, order_id: int) -> list[dict[str, Any]]:
        return [dict(item) for item in sorted(self.items.values(), key=lambda i: i["id"]) if item["order_id"] == order_id]

    async def get_item(self, order_id: int, item_id: int) -> dict[str, Any]:
        from src.api.middleware.error_handler import NotFoundError

        item = self.items.get(item_id)
        if item is None or item["order_id"] != order_id:
            raise NotFoundError("Order item not found")
        return dict(item)

    async def update_item_design_link(
        self,
        item_id: int,
        design_id: int | None,
        expected_design_id: int | None,
    ) -> dict[str, Any]:
        from src.api.middleware.error_handler import ConflictError

        item = self.items.get(item_id)
        if item is None or item["design_id"] != expected_design_id:
            raise ConflictError("Order item changed while its artwork was being updated; reload and retry")
        self.writes += 1
        item["design_id"] = design_id
        return dict(item)

    async def confirm_item_link(self, item_id: int, design_id: int) -> None:
        from src.api.middleware.error_handler import ConflictError

        item = self.items.get(item_id)
        if item is None or item["design_id"] != design_id:
            raise ConflictError("Order item changed while its artwork was being updated; reload and retry")

    async def update_item_quantity(self, item_id: int, quantity: int) -> dict[str, Any]:
        self.writes += 1
        self.items[item_id]["quantity"] = quantity
        return dict(self.items[item_id])

    async def find_item_linked_to_design(
        self,
        design_id: int,
        exclude_item_id: int | None = None,
    ) -> dict[str, Any] | None:
        for item in self.items.values():
            if item["design_id"] == design_id and item["id"] != exclude_item_id:
                return {"id": item["id"], "order_id": item["order_id"]}
        return None

    async def get_design(self, design_id: int) -> dict[str, Any]:
        from src.api.middleware.error_handler import NotFoundError

        if design_id not in self.designs:
            raise NotFoundError("Design not found")
        return dict(self.designs[design_id])

    async def get_designs(self, design_ids: Any) -> dict[int, dict[str, Any]]:
        return {
            design_id: dict(self.designs[design_id])
            for design_id in design_ids
            if design_id is not None and design_id in self.designs
        }

    async def insert_design(self, data: dict[str, Any]) -> dict[str, Any]:
        self.writes += 1
        design = {**data, "id": self._new_id()}
        self.designs[design["id"]] = design
        return dict(design)

    async def update_design(
        self,
        design_id: int,
        changes: dict[str, Any],
        expected_preview_url: str | None = None,
    ) -> dict[str, Any]:
        from src.api.middleware.error_handler import ConflictError

        design = self.designs.get(design_id)
        if design is None or (expected_preview_url is not None and design["preview_url"] != expected_preview_url):
            raise ConflictError("Design changed while it was being updated; reload and retry")
        self.writes += 1
        self.designs[design_id].update(changes)
        return dict(self.designs[design_id])

    async def delete_design(self, design_id: int) -> None:
        self.writes += 1
        self.designs.pop(design_id, None)

    async def recompute_and_persist_artwork_status(self, order_id: int) -> Any:
        from src.services.artwork_rules import OrderArtworkStatus, compute_order_artwork_status
        from src.services.order_store import next_updated_at

        items = await self.get_items_for_order(order_id)
        designs = await self.get_designs(item["design_id"] for item in items)
        status = compute_order_artwork_status(items, designs)
        self.writes += 1
        order = self.orders[order_id]
        order["artwork_status"] = status.value
        order["updated_at"] = next_updated_at(order.get("updated_at"))
        if status is OrderArtworkStatus.APPROVED:
            order["artwork_approved_at"] = order.get("artwork_approved_at") or "2025-01-15T09:00:00+00:00"
        else:
            order["artwork_approved_at"] = None
        return status

    async def insert_artwork_note(
        self,
        order_id: int,
        content: str,
        sender_type: str,
        user_id: UUID | None = None,
        order_item_id: int | None = None,
    ) -> dict[str, Any]:
        self.writes += 1
        note = {
            "id": self._new_id(),
            "order_id": order_id,
            "order_item_id": order_item_id,
            "user_id": str(user_id) if user_id else None,
            "sender_type": sender_type,
            "content": content,
            "is_read": False,
        }
        self.notes.append(note)
        return dict(note)

    async def list_artwork_notes(self, order_id: int) -> list[dict[str, Any]]:
        return [dict(note) for note in self.notes if note["order_id"] == order_id]


@pytest.fixture
def memory_store() -> InMemoryOrderStore:
    """Provide an empty in-memory order store."""
    return InMemoryOrderStore()

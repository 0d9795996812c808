"""Integration tests for order API endpoints."""

from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from src.api.deps import get_current_actor
from src.api.middleware.error_handler import AuthorizationError, InvalidStateError, NotFoundError
from src.main import app
from src.schemas.auth import Actor
from src.services.order_service import get_order_service


def make_order(**overrides: Any) -> dict[str, Any]:
    """Build an order row as returned by OrderService."""
    order = {
        "id": 7,
        "order_number": "SB-20250114-ABC123",
        "user_id": "770e8400-e29b-41d4-a716-446655440000",
        "status": "pending",
        "subtotal": "20.00",
        "shipping_cost": "15.00",
        "tax_amount": "1.60",
        "discount_amount": "0.00",
        "total_amount": "36.60",
        "delivery_method": "shipping",
        "shipping_address": {"line1": "1 Main St", "city": "Springfield"},
        "artwork_status": "awaiting_artwork",
        "items": [
            {
                "id": 42,
                "product_id": 5,
                "quantity": 100,
                "unit_price": "0.20",
                "selected_options": {"size": "3x3"},
                "design_id": None,
            }
        ],
        "created_at": "2025-01-14T10:00:00+00:00",
        "updated_at": "2025-01-14T10:00:00+00:00",
    }
    order.update(overrides)
    return order


@pytest.fixture
def mock_order_service() -> MagicMock:
    """Mock OrderService injected into the routes."""
    service = MagicMock()
    for name in ("create_order", "get_order", "update_status", "update_item_quantity"):
        setattr(service, name, AsyncMock())
    app.dependency_overrides[get_order_service] = lambda: service
    return service


@pytest.fixture
def as_customer(customer: Actor) -> Actor:
    """Authenticate requests as the customer."""
    app.dependency_overrides[get_current_actor] = lambda: customer
    return customer


@pytest.fixture
def as_admin(admin: Actor) -> Actor:
    """Authenticate requests as an admin."""
    app.dependency_overrides[get_current_actor] = lambda: admin
    return admin


class TestCreateOrder:
    """Tests for POST /api/v1/orders."""

    def test_creates_order(self, client: TestClient, mock_order_service: MagicMock, as_customer: Actor) -> None:
        """Items reach the service unpriced; server totals come back."""
        mock_order_service.create_order.return_value = make_order()

        response = client.post(
            "/api/v1/orders",
            json={
                "items": [{"product_id": 5, "quantity": 100, "selected_options": {"size": "3x3"}}],
                "shipping_address": {"line1": "1 Main St", "city": "Springfield"},
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["order_number"] == "SB-20250114-ABC123"
        assert Decimal(data["total_amount"]) == Decimal("36.60")
        assert data["artwork_status"] == "awaiting_artwork"
        assert data["items"][0]["id"] == 42

        kwargs = mock_order_service.create_order.await_args.kwargs
        assert kwargs["actor"] == as_customer
        assert kwargs["items"][0]["quantity"] == 100
        assert kwargs["items"][0]["unit_price"] is None
        assert kwargs["tax_rate"] is None
        assert kwargs["discount_amount"] is None
        assert kwargs["shipping_cost"] is None
        assert kwargs["delivery_method"] == "shipping"

    def test_admin_overrides_reach_service(
        self, client: TestClient, mock_order_service: MagicMock, as_admin: Actor
    ) -> None:
        """Admin price, tax and discount overrides are passed through."""
        mock_order_service.create_order.return_value = make_order()

        response = client.post(
            "/api/v1/orders",
            json={
                "items": [{"product_id": 5, "quantity": 100, "unit_price": "0.15"}],
                "delivery_method": "pickup",
                "tax_rate": "0.08",
                "discount_amount": "2.00",
            },
        )

        assert response.status_code == 201
        kwargs = mock_order_service.create_order.await_args.kwargs
        assert kwargs["items"][0]["unit_price"] == Decimal("0.15")
        assert kwargs["tax_rate"] == Decimal("0.08")
        assert kwargs["discount_amount"] == Decimal("2.00")

    def test_customer_price_override_is_403(
        self, client: TestClient, mock_order_service: MagicMock, as_customer: Actor
    ) -> None:
        """Service refusals of client-set prices come back in the error envelope."""
        mock_order_service.create_order.side_effect = AuthorizationError(
            "Only admins can set prices, tax, shipping or discounts"
        )

        response = client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": 5, "quantity": 100, "unit_price": "0.00"}], "delivery_method": "pickup"},
        )

        assert response.status_code == 403
        assert response.json()["error"] == "authorization_error"

    def test_empty_items_is_422(self, client: TestClient, mock_order_service: MagicMock, as_customer: Actor) -> None:
        """An order needs at least one item."""
        response = client.post("/api/v1/orders", json={"items": []})

        assert response.status_code == 422
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "validation_error"
        assert data["details"][0]["loc"] == ["body", "items"]
        mock_order_service.create_order.assert_not_awaited()

    def test_tax_rate_out_of_range_is_422(
        self, client: TestClient, mock_order_service: MagicMock, as_customer: Actor
    ) -> None:
        """Tax rates are fractions."""
        response = client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": 5, "quantity": 1}], "tax_rate": "8"},
        )

        assert response.status_code == 422

    def test_unauthenticated_is_401(self, client: TestClient, mock_order_service: MagicMock) -> None:
        """Orders require a signed-in actor."""
        response = client.post(
            "/api/v1/orders",
            json={"items": [{"product_id": 5, "quantity": 1}], "delivery_method": "pickup"},
        )

        assert response.status_code == 401
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "authentication_error"
        assert data["message"] == "Authentication required"
        assert response.headers["WWW-Authenticate"] == "Bearer"
        mock_order_service.create_order.assert_not_awaited()


class TestGetOrder:
    """Tests for GET /api/v1/orders/{id}."""

    def test_returns_order(self, client: TestClient, mock_order_service: MagicMock, as_customer: Actor) -> None:
        """The owner can read their order."""
        mock_order_service.get_order.return_value = make_order(artwork_status="artwork_uploaded")

        response = client.get("/api/v1/orders/7")

        assert response.status_code == 200
        assert response.json()["artwork_status"] == "artwork_uploaded"
        mock_order_service.get_order.assert_awaited_once_with(7, as_customer)

    def test_other_customer_is_403(
        self, client: TestClient, mock_order_service: MagicMock, as_customer: Actor
    ) -> None:
        """Service authorization failures map to 403."""
        mock_order_service.get_order.side_effect = AuthorizationError("Not authorized to view this order")

        response = client.get("/api/v1/orders/7")

        assert response.status_code == 403
        assert response.json()["error"] == "authorization_error"

    def test_missing_is_404(self, client: TestClient, mock_order_service: MagicMock, as_customer: Actor) -> None:
        """Unknown orders are 404."""
        mock_order_service.get_order.side_effect = NotFoundError("Order not found")

        response = client.get("/api/v1/orders/999")

        assert response.status_code == 404
        assert response.json()["message"] == "Order not found"


class TestUpdateOrderStatus:
    """Tests for PATCH /api/v1/orders/{id}/status."""

    def test_admin_ships_order(self, client: TestClient, mock_order_service: MagicMock, as_admin: Actor) -> None:
        """Tracking details are passed with the transition."""
        mock_order_service.update_status.return_value = make_order(
            status="shipped", tracking_number="1Z999", tracking_carrier="UPS"
        )

        response = client.patch(
            "/api/v1/orders/7/status",
            json={"status": "shipped", "tracking_number": "1Z999", "tracking_carrier": "UPS"},
        )

        assert response.status_code == 200
        assert response.json()["tracking_number"] == "1Z999"
        mock_order_service.update_status.assert_awaited_once_with(
            7, as_admin, "shipped", tracking_number="1Z999", tracking_carrier="UPS"
        )

    def test_customer_is_403(self, client: TestClient, mock_order_service: MagicMock, as_customer: Actor) -> None:
        """Only admins move orders along."""
        response = client.patch("/api/v1/orders/7/status", json={"status": "paid"})

        assert response.status_code == 403
        data = response.json()
        assert data["success"] is False
        assert data["error"] == "authorization_error"
        assert data["message"] == "Admin access required"
        mock_order_service.update_status.assert_not_awaited()

    def test_unknown_status_is_422(self, client: TestClient, mock_order_service: MagicMock, as_admin: Actor) -> None:
        """Statuses are validated by the schema."""
        response = client.patch("/api/v1/orders/7/status", json={"status": "lost"})

        assert response.status_code == 422

    def test_production_gate_is_400(self, client: TestClient, mock_order_service: MagicMock, as_admin: Actor) -> None:
        """Production cannot start before artwork is approved."""
        mock_order_service.update_status.side_effect = InvalidStateError(
            "All artwork must be approved before production starts"
        )

        response = client.patch("/api/v1/orders/7/status", json={"status": "in_production"})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_state"


class TestUpdateItemQuantity:
    """Tests for PATCH /api/v1/orders/{id}/items/{item_id}."""

    def test_admin_changes_quantity(self, client: TestClient, mock_order_service: MagicMock, as_admin: Actor) -> None:
        """The recomputed order is returned."""
        mock_order_service.update_item_quantity.return_value = make_order(subtotal="40.00", total_amount="59.00")

        response = client.patch("/api/v1/orders/7/items/42", json={"quantity": 200})

        assert response.status_code == 200
        assert Decimal(response.json()["subtotal"]) == Decimal("40.00")
        mock_order_service.update_item_quantity.assert_awaited_once_with(7, 42, as_admin, 200)

    def test_zero_quantity_is_422(self, client: TestClient, mock_order_service: MagicMock, as_admin: Actor) -> None:
        """Quantities must be positive."""
        response = client.patch("/api/v1/orders/7/items/42", json={"quantity": 0})

        assert response.status_code == 422
        mock_order_service.update_item_quantity.assert_not_awaited()

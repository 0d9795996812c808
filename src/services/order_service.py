"""Order creation, totals and fulfilment status transitions."""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID

from src.api.middleware.error_handler import (
    AuthorizationError,
    InvalidInputError,
    InvalidStateError,
)
from src.core.config import get_settings
from src.schemas.auth import Actor
from src.services.artwork_rules import OrderArtworkStatus, compute_order_artwork_status
from src.services.artwork_service import is_order_owner
from src.services.order_store import OrderStore, generate_access_token, generate_order_number

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
DEFAULT_SHIPPING_COST = Decimal("15.00")

# Allowed fulfilment moves. Artwork must be fully approved to enter production.
STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"paid", "cancelled"}),
    "paid": frozenset({"in_production", "cancelled"}),
    "in_production": frozenset({"printed"}),
    "printed": frozenset({"shipped", "delivered"}),
    "shipped": frozenset({"delivered"}),
    "delivered": frozenset(),
    "cancelled": frozenset(),
}


def _money(value: Any) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENTS, rounding=ROUND_HALF_UP)


def compute_order_totals(
    items: list[dict[str, Any]],
    shipping_cost: Any = 0,
    tax_rate: Any = 0,
    discount_amount: Any = 0,
) -> dict[str, Decimal]:
    """Compute order money columns from items.

    Tax applies to the discounted subtotal. The discount is capped so the
    total never goes negative.

    Returns:
        dict: subtotal, shipping_cost, tax_amount, discount_amount, total_amount.
    """
    subtotal = _money(sum(Decimal(str(item["unit_price"])) * int(item["quantity"]) for item in items))
    shipping = _money(shipping_cost)
    discount = min(_money(discount_amount), subtotal)
    tax = _money((subtotal - discount) * Decimal(str(tax_rate or 0)))

    if shipping < 0 or tax < 0 or discount < 0:
        raise InvalidInputError("Shipping, tax and discount must not be negative")

    return {
        "subtotal": subtotal,
        "shipping_cost": shipping,
        "tax_amount": tax,
        "discount_amount": discount,
        "total_amount": subtotal + shipping + tax - discount,
    }


def _serialize_totals(totals: dict[str, Decimal]) -> dict[str, str]:
    return {key: str(value) for key, value in totals.items()}


class OrderService:
    """Service for order records outside the artwork workflow."""

    def __init__(self) -> None:
        """Initialize order service with settings and the order store."""
        self.settings = get_settings()
        self.store = OrderStore()

    async def get_order(self, order_id: int, actor: Actor) -> dict[str, Any]:
        """Get an order with its items and live artwork status.

        Raises:
            NotFoundError: If the order does not exist.
            AuthorizationError: If the actor is neither owner nor admin.
        """
        order = await self.store.get_order(order_id)
        if not actor.is_admin and not is_order_owner(order, actor):
            raise AuthorizationError("Not authorized to view this order")

        items = await self.store.get_items_for_order(order_id)
        designs = await self.store.get_designs(item.get("design_id") for item in items)
        return {
            **order,
            "items": items,
            "artwork_status": compute_order_artwork_status(items, designs).value,
        }

    async def create_order(
        self,
        actor: Actor,
        items: list[dict[str, Any]],
        user_id: UUID | None = None,
        customer_email: str | None = None,
        delivery_method: str = "shipping",
        shipping_address: dict[str, Any] | None = None,
        shipping_cost: Any = None,
        tax_rate: Any = None,
        discount_amount: Any = None,
        notes: str | None = None,
    ) -> dict[str, Any]:
        """Create an order with server-computed totals.

        Customers order for themselves at catalogue prices with the shop's
        tax rate and default shipping. Admins create orders on behalf of any
        customer (phone orders) and may override prices, shipping, tax and
        discount. An admin order without a customer is a guest order,
        reachable through its access token.

        Raises:
            AuthorizationError: If a customer orders for someone else or
                sets any money field.
            InvalidInputError: If items, products or delivery details are invalid.
        """
        if actor.is_admin:
            owner_id = user_id
        else:
            if user_id is not None and str(user_id) != str(actor.user_id):
                raise AuthorizationError("Cannot create orders for another customer")
            overrides = [shipping_cost, tax_rate, discount_amount]
            overrides.extend(item.get("unit_price") for item in items)
            if any(value is not None for value in overrides):
                raise AuthorizationError("Only admins can set prices, tax, shipping or discounts")
            owner_id = actor.user_id

        if not items:
            raise InvalidInputError("An order needs at least one item")
        for item in items:
            if int(item.get("quantity") or 0) <= 0:
                raise InvalidInputError("Item quantity must be positive")
            price = item.get("unit_price")
            if price is not None and Decimal(str(price)) < 0:
                raise InvalidInputError("Item unit price must not be negative")

        if delivery_method not in ("shipping", "pickup"):
            raise InvalidInputError("Delivery method must be shipping or pickup")
        if delivery_method == "shipping" and not shipping_address:
            raise InvalidInputError("A shipping address is required for shipped orders")

        if delivery_method == "pickup":
            shipping_cost = 0
        elif shipping_cost is None:
            shipping_cost = DEFAULT_SHIPPING_COST
        if tax_rate is None:
            tax_rate = self.settings.default_tax_rate

        priced_items = await self._price_items(items)
        totals = compute_order_totals(priced_items, shipping_cost, tax_rate, discount_amount)

        order_data = {
            "order_number": generate_order_number(),
            "access_token": generate_access_token(),
            "user_id": str(owner_id) if owner_id else None,
            "customer_email": customer_email or (None if actor.is_admin else actor.email),
            "status": "pending",
            "delivery_method": delivery_method,
            "shipping_address": shipping_address if delivery_method == "shipping" else None,
            "notes": notes,
            "tax_rate": str(Decimal(str(tax_rate))),
            "artwork_status": OrderArtworkStatus.AWAITING_ARTWORK.value,
            **_serialize_totals(totals),
        }
        item_rows = [
            {
                "product_id": item["product_id"],
                "quantity": int(item["quantity"]),
                "unit_price": str(_money(item["unit_price"])),
                "selected_options": item.get("selected_options") or {},
            }
            for item in priced_items
        ]

        order, created_items = await self.store.create_order(order_data, item_rows)
        logger.info("Order %s created with %d item(s)", order["order_number"], len(created_items))
        return {**order, "items": created_items}

    async def _price_items(self, items: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Fill in catalogue prices for items that carry no override."""
        missing = [item["product_id"] for item in items if item.get("unit_price") is None]
        prices = await self.store.get_product_prices(missing)

        priced = []
        for item in items:
            if item.get("unit_price") is None:
                if item["product_id"] not in prices:
                    raise InvalidInputError(f"Product {item['product_id']} is not available")
                item = {**item, "unit_price": prices[item["product_id"]]}
            priced.append(item)
        return priced

    async def update_item_quantity(
        self,
        order_id: int,
        order_item_id: int,
        actor: Actor,
        quantity: int,
    ) -> dict[str, Any]:
        """Change an item's quantity and recompute the order totals.

        Admin only, and only while the order is pending.
        """
        if not actor.is_admin:
            raise AuthorizationError("Only admins can change order items")
        if quantity <= 0:
            raise InvalidInputError("Item quantity must be positive")

        order = await self.store.get_order(order_id)
        if order.get("status") != "pending":
            raise InvalidStateError("Items can only be changed while the order is pending")

        item = await self.store.get_item(order_id, order_item_id)
        await self.store.update_item_quantity(item["id"], quantity)

        items = await self.store.get_items_for_order(order_id)
        totals = compute_order_totals(
            items,
            shipping_cost=order.get("shipping_cost"),
            tax_rate=order.get("tax_rate"),
            discount_amount=order.get("discount_amount"),
        )
        updated = await self.store.update_order(order_id, _serialize_totals(totals), expected_status="pending")
        return {**updated, "items": items}

    async def update_status(
        self,
        order_id: int,
        actor: Actor,
        new_status: str,
        tracking_number: str | None = None,
        tracking_carrier: str | None = None,
    ) -> dict[str, Any]:
        """Move an order along its fulfilment lifecycle.

        Raises:
            AuthorizationError: If the actor is not an admin.
            InvalidStateError: If the transition is not allowed now.
            InvalidInputError: If tracking details are missing or misplaced.
        """
        if not actor.is_admin:
            raise AuthorizationError("Only admins can change order status")

        order = await self.store.get_order(order_id)
        current = order.get("status") or "pending"

        if new_status not in STATUS_TRANSITIONS:
            raise InvalidInputError(f"Unknown order status: {new_status}")
        if new_status not in STATUS_TRANSITIONS.get(current, frozenset()):
            raise InvalidStateError(f"Cannot move order from {current} to {new_status}")

        if (tracking_number or tracking_carrier) and new_status != "shipped":
            raise InvalidInputError("Tracking details can only be set when shipping an order")

        changes: dict[str, Any] = {"status": new_status}

        if new_status == "in_production":
            items = await self.store.get_items_for_order(order_id)
            designs = await self.store.get_designs(item.get("design_id") for item in items)
            artwork_status = compute_order_artwork_status(items, designs)
            if artwork_status is not OrderArtworkStatus.APPROVED:
                raise InvalidStateError("All artwork must be approved before production starts")

        if new_status == "shipped":
            if order.get("delivery_method") == "pickup":
                raise InvalidStateError("Pickup orders are delivered, not shipped")
            if not tracking_number:
                raise InvalidInputError("A tracking number is required to ship an order")
            changes["tracking_number"] = tracking_number
            changes["tracking_carrier"] = tracking_carrier

        if new_status == "delivered" and current == "printed" and order.get("delivery_method") != "pickup":
            raise InvalidStateError("Shipped orders must be marked shipped before delivered")

        updated = await self.store.update_order(order_id, changes, expected_status=current)
        logger.info("Order %s moved from %s to %s", order_id, current, new_status)
        return updated


def get_order_service() -> OrderService:
    """Get order service instance.

    Returns:
        OrderService: Order service instance.
    """
    return OrderService()

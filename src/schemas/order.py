"""Order Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# Order status literal type for validation
OrderStatus = Literal[
    "pending",
    "paid",
    "in_production",
    "printed",
    "shipped",
    "delivered",
    "cancelled",
]


class OrderItemSchema(BaseModel):
    """Schema for a single order item."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Order item ID")
    product_id: int = Field(description="Product ID")
    quantity: int = Field(ge=1, description="Quantity ordered")
    unit_price: Decimal = Field(ge=0, description="Unit price fixed at order time")
    selected_options: dict[str, Any] | None = Field(default=None, description="Chosen product options")
    design_id: int | None = Field(default=None, description="Linked design ID")


class OrderItemCreate(BaseModel):
    """Item in an order creation request."""

    model_config = ConfigDict(from_attributes=True)

    product_id: int = Field(description="Product ID")
    quantity: int = Field(ge=1, description="Quantity ordered")
    unit_price: Decimal | None = Field(
        default=None, ge=0, description="Price override (admins only); the catalogue price applies if omitted"
    )
    selected_options: dict[str, Any] = Field(default_factory=dict, description="Chosen product options")


class OrderCreate(BaseModel):
    """Schema for POST /orders."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID | None = Field(default=None, description="Customer the order is for (admins only)")
    customer_email: str | None = Field(default=None, description="Customer contact email")
    items: list[OrderItemCreate] = Field(min_length=1, description="Ordered items")
    delivery_method: Literal["shipping", "pickup"] = Field(default="shipping")
    shipping_address: dict[str, Any] | None = Field(default=None, description="Structured shipping address")
    shipping_cost: Decimal | None = Field(
        default=None, ge=0, description="Shipping charge (admins only); default applies if omitted"
    )
    tax_rate: Decimal | None = Field(
        default=None, ge=0, le=1, description="Tax rate as a fraction (admins only); the shop rate applies if omitted"
    )
    discount_amount: Decimal | None = Field(default=None, ge=0, description="Discount to apply (admins only)")
    notes: str | None = Field(default=None, description="Free-text notes")


class OrderStatusUpdate(BaseModel):
    """Schema for PATCH /orders/{id}/status."""

    model_config = ConfigDict(from_attributes=True)

    status: OrderStatus = Field(description="Target status")
    tracking_number: str | None = Field(default=None, description="Carrier tracking number (shipped only)")
    tracking_carrier: str | None = Field(default=None, description="Carrier name (shipped only)")


class OrderItemQuantityUpdate(BaseModel):
    """Schema for PATCH /orders/{id}/items/{item_id}."""

    model_config = ConfigDict(from_attributes=True)

    quantity: int = Field(ge=1, description="New quantity")


class OrderResponse(BaseModel):
    """Schema for order API responses."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Order ID")
    order_number: str = Field(description="Human-readable order number")
    access_token: str | None = Field(default=None, description="Secret for guest access to the order's artwork")
    user_id: UUID | None = Field(default=None, description="Customer")
    status: str = Field(description="Order status")
    subtotal: Decimal = Field(description="Sum of item prices")
    shipping_cost: Decimal = Field(default=Decimal("0"), description="Shipping charge")
    tax_amount: Decimal = Field(default=Decimal("0"), description="Tax")
    discount_amount: Decimal = Field(default=Decimal("0"), description="Discount")
    total_amount: Decimal = Field(description="Total charged")
    delivery_method: str = Field(default="shipping", description="shipping or pickup")
    shipping_address: dict[str, Any] | None = Field(default=None, description="Shipping address")
    tracking_number: str | None = Field(default=None, description="Tracking number")
    tracking_carrier: str | None = Field(default=None, description="Carrier")
    notes: str | None = Field(default=None, description="Notes")
    artwork_status: str | None = Field(default=None, description="Aggregate artwork status")
    items: list[OrderItemSchema] = Field(default_factory=list, description="Order items")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")
    updated_at: datetime | None = Field(default=None, description="Last change timestamp")

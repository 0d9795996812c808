"""Order, order item and design row type definitions for database operations."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal, TypedDict
from uuid import UUID


# Order status enum values matching database enum
OrderStatus = Literal[
    "pending",
    "paid",
    "in_production",
    "printed",
    "shipped",
    "delivered",
    "cancelled",
]

DeliveryMethod = Literal["shipping", "pickup"]

# Who supplied the artwork file on a design
DesignProvenance = Literal["customer", "admin"]

# Review progress of a design, independent of who produced it
DesignApprovalState = Literal[
    "pending",
    "in_review",
    "awaiting_approval",
    "approved",
    "flagged",
]


class ShippingAddress(TypedDict, total=False):
    """Structured shipping address stored as JSONB."""

    name: str
    line1: str
    line2: str | None
    city: str
    state: str
    postal_code: str
    country: str
    phone: str | None


class Order(TypedDict):
    """Order table row representation.

    Money columns come back from PostgREST as strings and are parsed
    with Decimal where arithmetic is needed.
    """

    id: int
    order_number: str
    access_token: str
    user_id: UUID | None
    customer_email: str | None
    status: OrderStatus
    subtotal: Decimal
    shipping_cost: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    delivery_method: DeliveryMethod
    shipping_address: ShippingAddress | None
    tracking_number: str | None
    tracking_carrier: str | None
    notes: str | None
    artwork_status: str | None
    artwork_approved_at: datetime | None
    created_at: datetime
    updated_at: datetime


class OrderItem(TypedDict):
    """Order item table row representation."""

    id: int
    order_id: int
    product_id: int
    quantity: int
    unit_price: Decimal
    selected_options: dict[str, Any] | None
    design_id: int | None
    created_at: datetime


class OrderItemCreate(TypedDict, total=False):
    """Data required to create an order item.

    unit_price is resolved by the caller at checkout time and is never
    recalculated afterwards.
    """

    product_id: int
    quantity: int
    unit_price: Decimal
    selected_options: dict[str, Any]


class Design(TypedDict):
    """Design table row representation.

    provenance and approval_state are explicit columns; name is free
    text supplied by users and carries no state.
    """

    id: int
    user_id: UUID | None
    product_id: int | None
    name: str | None
    preview_url: str | None
    high_res_export_url: str | None
    provenance: DesignProvenance
    approval_state: DesignApprovalState
    created_at: datetime
    updated_at: datetime


class DesignUpdate(TypedDict, total=False):
    """Columns of a design that artwork transitions may rewrite."""

    user_id: str
    name: str
    preview_url: str
    high_res_export_url: str
    provenance: DesignProvenance
    approval_state: DesignApprovalState
    updated_at: str


class ArtworkNote(TypedDict):
    """Append-only artwork conversation entry for an order."""

    id: int
    order_id: int
    order_item_id: int | None
    user_id: UUID | None
    sender_type: Literal["user", "admin"]
    content: str
    is_read: bool
    created_at: datetime

"""Artwork Pydantic schemas for API request/response models."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from src.schemas.common import OperationResponse
from src.services.artwork_rules import ItemArtworkState, OrderArtworkStatus


class DesignSummary(BaseModel):
    """Design as shown alongside an order item."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Design ID")
    name: str | None = Field(default=None, description="Design name")
    preview_url: str | None = Field(default=None, description="Preview image URL")
    high_res_export_url: str | None = Field(default=None, description="Print-ready file URL")
    provenance: Literal["customer", "admin"] = Field(description="Who supplied the artwork")
    approval_state: str = Field(description="Review progress of the design")
    updated_at: datetime | None = Field(default=None, description="Last change timestamp")


class ArtworkItem(BaseModel):
    """Order item with its artwork."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Order item ID")
    product_id: int = Field(description="Product ID")
    quantity: int = Field(description="Quantity ordered")
    unit_price: Decimal = Field(description="Unit price fixed at order time")
    selected_options: dict[str, Any] | None = Field(default=None, description="Chosen product options")
    design_id: int | None = Field(default=None, description="Linked design ID")
    design: DesignSummary | None = Field(default=None, description="Linked design")
    artwork_state: ItemArtworkState = Field(description="Lifecycle state of this item's artwork")


class OrderArtworkResponse(BaseModel):
    """Response for GET /orders/{id}/artwork."""

    model_config = ConfigDict(from_attributes=True)

    success: bool = Field(default=True)
    message: str = Field(default="OK")
    id: int = Field(description="Order ID")
    order_number: str = Field(description="Human-readable order number")
    status: str = Field(description="Order status")
    artwork_status: OrderArtworkStatus = Field(description="Aggregate artwork status, computed on read")
    artwork_approved_at: datetime | None = Field(default=None, description="When all artwork was approved")
    items: list[ArtworkItem] = Field(description="Order items with artwork")

    @classmethod
    def from_result(cls, result: dict[str, Any]) -> "OrderArtworkResponse":
        """Build the response from ArtworkService.get_order_artwork output."""
        order = result["order"]
        return cls(
            id=order["id"],
            order_number=order["order_number"],
            status=order["status"],
            artwork_status=result["artwork_status"],
            artwork_approved_at=order.get("artwork_approved_at"),
            items=[ArtworkItem(**item) for item in result["items"]],
        )


class ArtworkUploadResponse(OperationResponse):
    """Response for an artwork upload."""

    design_id: int = Field(description="Design holding the uploaded file")
    artwork_url: str = Field(description="Public URL of the uploaded file")
    artwork_status: OrderArtworkStatus = Field(description="Aggregate artwork status after the upload")


class ArtworkActionRequest(BaseModel):
    """Body of PUT /orders/{id}/items/{item_id}/artwork."""

    model_config = ConfigDict(from_attributes=True)

    action: Literal["approve", "link"] = Field(description="approve the linked artwork or link an existing design")
    design_id: int | None = Field(default=None, description="Design to link (action=link)")

    @model_validator(mode="after")
    def require_design_for_link(self) -> "ArtworkActionRequest":
        """A link action needs a design_id."""
        if self.action == "link" and self.design_id is None:
            raise ValueError("design_id is required to link a design")
        return self


class ArtworkApproveResponse(OperationResponse):
    """Response for an approval."""

    approved: bool = Field(description="Whether the item is approved")
    all_items_approved: bool = Field(description="Whether every item on the order is approved")
    artwork_status: OrderArtworkStatus = Field(description="Aggregate artwork status")


class ArtworkLinkResponse(OperationResponse):
    """Response for link, unlink and review transitions."""

    design_id: int | None = Field(default=None, description="Design affected")
    artwork_status: OrderArtworkStatus = Field(description="Aggregate artwork status")


class RevisionRequest(BaseModel):
    """Body of POST .../artwork/revision."""

    model_config = ConfigDict(from_attributes=True)

    notes: str = Field(default="", description="What needs to change")


class ReviewActionRequest(BaseModel):
    """Body of POST .../artwork/review (admin)."""

    model_config = ConfigDict(from_attributes=True)

    action: Literal["start_review", "send_for_approval"] = Field(description="Review transition to apply")


class ArtworkNoteCreate(BaseModel):
    """Body of POST /orders/{id}/artwork/notes."""

    model_config = ConfigDict(from_attributes=True)

    content: str = Field(default="", description="Message text")
    order_item_id: int | None = Field(default=None, description="Item the message is about")


class ArtworkNoteResponse(BaseModel):
    """Artwork conversation entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Note ID")
    order_id: int = Field(description="Order ID")
    order_item_id: int | None = Field(default=None, description="Item the note is about")
    user_id: UUID | None = Field(default=None, description="Author")
    sender_type: Literal["user", "admin"] = Field(description="Author role")
    content: str = Field(description="Message text")
    is_read: bool = Field(default=False, description="Read flag")
    created_at: datetime | None = Field(default=None, description="Creation timestamp")


class ArtworkNoteListResponse(BaseModel):
    """List of artwork conversation entries."""

    model_config = ConfigDict(from_attributes=True)

    notes: list[ArtworkNoteResponse] = Field(description="Notes, oldest first")

"""Database model type definitions."""

from src.models.order import (
    ArtworkNote,
    Design,
    DesignApprovalState,
    DesignProvenance,
    Order,
    OrderItem,
    OrderStatus,
)

__all__ = [
    "ArtworkNote",
    "Design",
    "DesignApprovalState",
    "DesignProvenance",
    "Order",
    "OrderItem",
    "OrderStatus",
]

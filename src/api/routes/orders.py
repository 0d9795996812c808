"""Order API routes."""

from fastapi import APIRouter, Depends, status

from src.api.deps import AdminActor, CurrentActor
from src.schemas.order import (
    OrderCreate,
    OrderItemQuantityUpdate,
    OrderResponse,
    OrderStatusUpdate,
)
from src.services.order_service import OrderService, get_order_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order",
    description="Creates a pending order with server-computed totals. Admins may create orders for any customer.",
)
async def create_order(
    data: OrderCreate,
    actor: CurrentActor,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Create a new order.

    Args:
        data: Order creation data.
        actor: The authenticated actor.
        service: Order service.

    Returns:
        OrderResponse: The created order with its items.
    """
    order = await service.create_order(
        actor=actor,
        items=[item.model_dump() for item in data.items],
        user_id=data.user_id,
        customer_email=data.customer_email,
        delivery_method=data.delivery_method,
        shipping_address=data.shipping_address,
        shipping_cost=data.shipping_cost,
        tax_rate=data.tax_rate,
        discount_amount=data.discount_amount,
        notes=data.notes,
    )
    return OrderResponse(**order)


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    summary="Get order by ID",
    description="Returns a single order with its items. Only accessible by the order owner or an admin.",
)
async def get_order(
    order_id: int,
    actor: CurrentActor,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get a single order by ID.

    Raises:
        NotFoundError: 404 if order not found.
        AuthorizationError: 403 if not authorized to view this order.
    """
    order = await service.get_order(order_id, actor)
    return OrderResponse(**order)


@router.patch(
    "/{order_id}/status",
    response_model=OrderResponse,
    summary="Update order status",
    description="Moves an order along its fulfilment lifecycle. Admin only.",
)
async def update_order_status(
    order_id: int,
    data: OrderStatusUpdate,
    actor: AdminActor,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Apply a status transition to an order.

    Args:
        order_id: The order's ID.
        data: Target status and optional tracking details.
        actor: The authenticated admin.
        service: Order service.

    Returns:
        OrderResponse: The updated order.
    """
    order = await service.update_status(
        order_id,
        actor,
        data.status,
        tracking_number=data.tracking_number,
        tracking_carrier=data.tracking_carrier,
    )
    return OrderResponse(**order)


@router.patch(
    "/{order_id}/items/{item_id}",
    response_model=OrderResponse,
    summary="Change item quantity",
    description="Changes an item's quantity on a pending order and recomputes totals. Admin only.",
)
async def update_item_quantity(
    order_id: int,
    item_id: int,
    data: OrderItemQuantityUpdate,
    actor: AdminActor,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Change the quantity of an order item."""
    order = await service.update_item_quantity(order_id, item_id, actor, data.quantity)
    return OrderResponse(**order)

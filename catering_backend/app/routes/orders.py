"""API routes for orders, their line items, fees and status."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ..dependencies import get_actor_id, get_services
from ..schemas.orders import (
    OrderCreateRequest,
    OrderFeesIn,
    OrderItemsUpdateRequest,
    OrderOut,
    OrderStatusUpdateRequest,
)
from ..services.container import ServiceContainer

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("", response_model=OrderOut, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreateRequest,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> OrderOut:
    order = services.orders.create_order(
        client_name=payload.client_name,
        client_id=payload.client_id,
        payment_method=payload.payment_method,
        delivery_date=payload.delivery_date,
        description=payload.description,
        notes=payload.notes,
        items=[item.to_item() for item in payload.items],
        fees=payload.fees.to_fees(),
    )
    return OrderOut.from_order(order)


@router.get("/{order_id}", response_model=OrderOut)
def get_order(
    order_id: int,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> OrderOut:
    return OrderOut.from_order(services.orders.get_order(order_id))


@router.post("/{order_id}/status", response_model=OrderOut)
def update_order_status(
    order_id: int,
    payload: OrderStatusUpdateRequest,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> OrderOut:
    return OrderOut.from_order(services.orders.update_status(order_id, payload.status))


@router.put("/{order_id}/items", response_model=OrderOut)
def replace_order_items(
    order_id: int,
    payload: OrderItemsUpdateRequest,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> OrderOut:
    items = [item.to_item() for item in payload.items]
    return OrderOut.from_order(services.orders.update_items(order_id, items))


@router.patch("/{order_id}/fees", response_model=OrderOut)
def update_order_fees(
    order_id: int,
    payload: OrderFeesIn,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> OrderOut:
    return OrderOut.from_order(services.orders.update_fees(order_id, **payload.to_cents_map()))

"""API schemas for order endpoints."""
from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..money import to_cents, to_decimal
from ..orders import FEE_LABELS, Order, OrderFees, OrderItem, OrderPaymentMethod, OrderStatus


class OrderItemIn(BaseModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    portion_size: str = "1"
    price: Decimal = Field(gt=0, decimal_places=2)

    def to_item(self) -> OrderItem:
        return OrderItem(
            name=self.name,
            description=self.description,
            portion_size=self.portion_size or "1",
            price_cents=to_cents(self.price),
        )


class OrderItemOut(BaseModel):
    id: Optional[int] = None
    name: str
    description: Optional[str] = None
    portion_size: str
    price: Decimal
    sort_order: int

    @classmethod
    def from_item(cls, item: OrderItem) -> "OrderItemOut":
        return cls(
            id=item.id,
            name=item.name,
            description=item.description,
            portion_size=item.portion_size,
            price=to_decimal(item.price_cents),
            sort_order=item.sort_order,
        )


class OrderFeesIn(BaseModel):
    """Partial fee update; omitted fees keep their current amount."""

    service_charge: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    delivery_fee: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    coordination_fee: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    airport_fee: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    fbo_fee: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    shopping_fee: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    restaurant_pickup_fee: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)
    airport_pickup_fee: Optional[Decimal] = Field(default=None, ge=0, decimal_places=2)

    model_config = ConfigDict(extra="forbid")

    def to_cents_map(self) -> dict:
        return {
            field: to_cents(value)
            for field, value in self.model_dump(exclude_none=True).items()
        }

    def to_fees(self) -> OrderFees:
        return OrderFees(**self.to_cents_map())


class OrderFeesOut(BaseModel):
    service_charge: Decimal
    delivery_fee: Decimal
    coordination_fee: Decimal
    airport_fee: Decimal
    fbo_fee: Decimal
    shopping_fee: Decimal
    restaurant_pickup_fee: Decimal
    airport_pickup_fee: Decimal

    @classmethod
    def from_fees(cls, fees: OrderFees) -> "OrderFeesOut":
        return cls(**{field: to_decimal(getattr(fees, field)) for field in FEE_LABELS})


class OrderCreateRequest(BaseModel):
    client_name: str = Field(min_length=1)
    client_id: Optional[int] = None
    payment_method: OrderPaymentMethod = OrderPaymentMethod.CARD
    delivery_date: Optional[date] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemIn] = Field(default_factory=list)
    fees: OrderFeesIn = Field(default_factory=OrderFeesIn)


class OrderItemsUpdateRequest(BaseModel):
    items: List[OrderItemIn]


class OrderStatusUpdateRequest(BaseModel):
    status: OrderStatus


class OrderOut(BaseModel):
    id: Optional[int] = None
    order_number: str
    client_id: Optional[int] = None
    client_name: str
    status: OrderStatus
    payment_method: OrderPaymentMethod
    delivery_date: Optional[date] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItemOut]
    fees: OrderFeesOut
    subtotal: Decimal
    total: Decimal
    revision_count: int
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_order(cls, order: Order) -> "OrderOut":
        return cls(
            id=order.id,
            order_number=order.order_number,
            client_id=order.client_id,
            client_name=order.client_name,
            status=order.status,
            payment_method=order.payment_method,
            delivery_date=order.delivery_date,
            description=order.description,
            notes=order.notes,
            items=[OrderItemOut.from_item(item) for item in order.items],
            fees=OrderFeesOut.from_fees(order.fees),
            subtotal=to_decimal(order.subtotal_cents),
            total=to_decimal(order.total_cents),
            revision_count=order.revision_count,
            completed_at=order.completed_at,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


__all__ = [
    "OrderCreateRequest",
    "OrderFeesIn",
    "OrderFeesOut",
    "OrderItemIn",
    "OrderItemOut",
    "OrderItemsUpdateRequest",
    "OrderOut",
    "OrderStatusUpdateRequest",
]

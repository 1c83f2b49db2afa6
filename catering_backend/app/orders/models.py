"""Domain models for catering orders."""
from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class OrderStatus(str, Enum):
    """Lifecycle status of a catering order."""

    AWAITING_QUOTE = "awaiting_quote"
    AWAITING_CLIENT_APPROVAL = "awaiting_client_approval"
    AWAITING_CATERER = "awaiting_caterer"
    CATERER_CONFIRMED = "caterer_confirmed"
    IN_PREPARATION = "in_preparation"
    READY_FOR_DELIVERY = "ready_for_delivery"
    DELIVERED = "delivered"
    PAID = "paid"
    CANCELLED = "cancelled"
    ORDER_CHANGED = "order_changed"


# Main workflow order. Escape states (cancelled, order_changed) sit outside it.
STATUS_SEQUENCE: Tuple[OrderStatus, ...] = (
    OrderStatus.AWAITING_QUOTE,
    OrderStatus.AWAITING_CLIENT_APPROVAL,
    OrderStatus.AWAITING_CATERER,
    OrderStatus.CATERER_CONFIRMED,
    OrderStatus.IN_PREPARATION,
    OrderStatus.READY_FOR_DELIVERY,
    OrderStatus.DELIVERED,
    OrderStatus.PAID,
)

COMPLETION_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})
ESCAPE_STATUSES = frozenset({OrderStatus.CANCELLED, OrderStatus.ORDER_CHANGED})


def is_forward_transition(current: OrderStatus, target: OrderStatus) -> bool:
    """Return ``True`` when ``target`` does not move backwards in the workflow."""

    if target in ESCAPE_STATUSES or current in ESCAPE_STATUSES:
        return True
    return STATUS_SEQUENCE.index(target) >= STATUS_SEQUENCE.index(current)


class OrderPaymentMethod(str, Enum):
    CARD = "card"
    ACH = "ACH"


class OrderItem(BaseModel):
    """A single priced line on an order."""

    id: Optional[int] = None
    name: str = Field(min_length=1)
    description: Optional[str] = None
    portion_size: str = "1"
    price_cents: int = Field(gt=0)
    sort_order: int = 0

    model_config = ConfigDict(frozen=True)


# Display labels double as gateway line-item names; dict order is invoice order.
FEE_LABELS: Dict[str, str] = {
    "service_charge": "Service Charge",
    "delivery_fee": "Delivery Fee",
    "coordination_fee": "Coordination Fee",
    "airport_fee": "Airport Fee",
    "fbo_fee": "FBO Fee",
    "shopping_fee": "Shopping Fee",
    "restaurant_pickup_fee": "Restaurant Pickup Fee",
    "airport_pickup_fee": "Airport Pickup Fee",
}


class OrderFees(BaseModel):
    """Per-order fee amounts in cents."""

    service_charge: int = Field(default=0, ge=0)
    delivery_fee: int = Field(default=0, ge=0)
    coordination_fee: int = Field(default=0, ge=0)
    airport_fee: int = Field(default=0, ge=0)
    fbo_fee: int = Field(default=0, ge=0)
    shopping_fee: int = Field(default=0, ge=0)
    restaurant_pickup_fee: int = Field(default=0, ge=0)
    airport_pickup_fee: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True)

    @property
    def total_cents(self) -> int:
        return sum(getattr(self, field) for field in FEE_LABELS)

    def non_zero(self) -> List[Tuple[str, int]]:
        """Return ``(label, cents)`` pairs for every fee above zero."""

        return [
            (label, getattr(self, field))
            for field, label in FEE_LABELS.items()
            if getattr(self, field) > 0
        ]


def compute_totals(items: List[OrderItem], fees: OrderFees) -> Tuple[int, int]:
    """Return ``(subtotal_cents, total_cents)`` for the given items and fees."""

    subtotal = sum(item.price_cents for item in items)
    return subtotal, subtotal + fees.total_cents


class Order(BaseModel):
    """Catering order with its line items and fee breakdown."""

    id: Optional[int] = None
    order_number: str
    client_id: Optional[int] = None
    client_name: str = ""
    status: OrderStatus = OrderStatus.AWAITING_QUOTE
    payment_method: OrderPaymentMethod = OrderPaymentMethod.CARD
    delivery_date: Optional[date] = None
    description: Optional[str] = None
    notes: Optional[str] = None
    items: List[OrderItem] = Field(default_factory=list)
    fees: OrderFees = Field(default_factory=OrderFees)
    subtotal_cents: int = 0
    total_cents: int = 0
    revision_count: int = 0
    completed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)

    def with_totals(self) -> "Order":
        """Return a copy whose subtotal and total match its items and fees."""

        subtotal, total = compute_totals(self.items, self.fees)
        return self.model_copy(update={"subtotal_cents": subtotal, "total_cents": total})


ORDER_NUMBER_PREFIX = "KA"


def format_order_number(sequence: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}{sequence:06d}"


def next_order_number(last_order_number: Optional[str]) -> str:
    """Return the order number following ``last_order_number``."""

    if not last_order_number:
        return format_order_number(1)
    digits = last_order_number[len(ORDER_NUMBER_PREFIX):]
    try:
        last_sequence = int(digits)
    except ValueError:
        last_sequence = 0
    return format_order_number(last_sequence + 1)


__all__ = [
    "COMPLETION_STATUSES",
    "FEE_LABELS",
    "Order",
    "OrderFees",
    "OrderItem",
    "OrderPaymentMethod",
    "OrderStatus",
    "STATUS_SEQUENCE",
    "compute_totals",
    "format_order_number",
    "is_forward_transition",
    "next_order_number",
]

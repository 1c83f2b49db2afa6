"""Order domain package: line items, fees, totals and the status state machine."""

from .models import (
    COMPLETION_STATUSES,
    FEE_LABELS,
    STATUS_SEQUENCE,
    Order,
    OrderFees,
    OrderItem,
    OrderPaymentMethod,
    OrderStatus,
    compute_totals,
    format_order_number,
    is_forward_transition,
    next_order_number,
)
from .repository import PostgresOrderRepository
from .service import OrderRepository, OrderService

__all__ = [
    "COMPLETION_STATUSES",
    "FEE_LABELS",
    "Order",
    "OrderFees",
    "OrderItem",
    "OrderPaymentMethod",
    "OrderRepository",
    "OrderService",
    "OrderStatus",
    "PostgresOrderRepository",
    "STATUS_SEQUENCE",
    "compute_totals",
    "format_order_number",
    "is_forward_transition",
    "next_order_number",
]

"""Order lifecycle service: creation, repricing and status changes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Optional, Protocol, Sequence

from ..errors import NotFoundError, ValidationError
from .models import (
    COMPLETION_STATUSES,
    FEE_LABELS,
    Order,
    OrderFees,
    OrderItem,
    OrderPaymentMethod,
    OrderStatus,
    is_forward_transition,
    next_order_number,
)

logger = logging.getLogger(__name__)


class OrderRepository(Protocol):
    """Persistence operations required by the order service."""

    def get_order(self, order_id: int) -> Optional[Order]:
        ...

    def last_order_number(self) -> Optional[str]:
        ...

    def create_order(self, order: Order) -> Order:
        ...

    def save_order(self, order: Order) -> Order:
        """Persist items, fees, totals and revision count of an existing order."""

    def update_status(
        self,
        order_id: int,
        *,
        status: OrderStatus,
        completed_at: Optional[datetime],
    ) -> Optional[Order]:
        ...


@dataclass
class OrderService:
    """Owns order totals and the order status state machine."""

    repository: OrderRepository

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def get_order(self, order_id: int) -> Order:
        order = self.repository.get_order(order_id)
        if order is None:
            raise NotFoundError("Order not found", detail={"order_id": order_id})
        return order

    def create_order(
        self,
        *,
        client_name: str,
        items: Sequence[OrderItem] = (),
        fees: Optional[OrderFees] = None,
        client_id: Optional[int] = None,
        payment_method: OrderPaymentMethod = OrderPaymentMethod.CARD,
        delivery_date: Optional[date] = None,
        description: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Order:
        now = self._now()
        order = Order(
            order_number=next_order_number(self.repository.last_order_number()),
            client_id=client_id,
            client_name=client_name,
            status=OrderStatus.AWAITING_QUOTE,
            payment_method=payment_method,
            delivery_date=delivery_date,
            description=description,
            notes=notes,
            items=_ordered(items),
            fees=fees or OrderFees(),
            created_at=now,
            updated_at=now,
        ).with_totals()
        created = self.repository.create_order(order)
        logger.info(
            "Created order %s",
            created.order_number,
            extra={"order_id": created.id, "total_cents": created.total_cents},
        )
        return created

    def update_items(self, order_id: int, items: Sequence[OrderItem]) -> Order:
        """Replace the order's line items and recompute its totals."""

        order = self.get_order(order_id)
        revised = order.model_copy(
            update={
                "items": _ordered(items),
                "revision_count": order.revision_count + 1,
                "updated_at": self._now(),
            }
        ).with_totals()
        return self.repository.save_order(revised)

    def update_fees(self, order_id: int, **fees: int) -> Order:
        """Overwrite the named fees (in cents) and recompute totals."""

        unknown = sorted(set(fees) - set(FEE_LABELS))
        if unknown:
            raise ValidationError("Unknown fee fields", detail={"fields": unknown})

        order = self.get_order(order_id)
        try:
            updated_fees = OrderFees(**{**order.fees.model_dump(), **fees})
        except ValueError as exc:
            raise ValidationError("Fees must be non-negative amounts") from exc

        revised = order.model_copy(
            update={
                "fees": updated_fees,
                "revision_count": order.revision_count + 1,
                "updated_at": self._now(),
            }
        ).with_totals()
        return self.repository.save_order(revised)

    def update_status(self, order_id: int, status: OrderStatus) -> Order:
        """Set the order status.

        Any state may move to any other so staff can correct mistakes.
        ``delivered`` and ``cancelled`` stamp ``completed_at``.
        """

        order = self.get_order(order_id)
        if not is_forward_transition(order.status, status):
            logger.info(
                "Order %s moved backwards from %s to %s",
                order.order_number,
                order.status.value,
                status.value,
                extra={"order_id": order_id},
            )

        completed_at = self._now() if status in COMPLETION_STATUSES else order.completed_at
        updated = self.repository.update_status(order_id, status=status, completed_at=completed_at)
        if updated is None:
            raise NotFoundError("Order not found", detail={"order_id": order_id})
        return updated

    def mark_paid(self, order_id: int) -> Order:
        order = self.get_order(order_id)
        if order.status == OrderStatus.PAID:
            return order
        return self.update_status(order_id, OrderStatus.PAID)


def _ordered(items: Sequence[OrderItem]) -> list:
    return [item.model_copy(update={"sort_order": index}) for index, item in enumerate(items)]


__all__ = ["OrderRepository", "OrderService"]

"""PostgreSQL persistence for orders and their line items."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from ..db import PostgresRepository, amount_from_db, amount_to_db
from .models import FEE_LABELS, Order, OrderFees, OrderItem, OrderPaymentMethod, OrderStatus


def _row_to_item(row: dict) -> OrderItem:
    return OrderItem(
        id=row["id"],
        name=row["name"],
        description=row.get("description"),
        portion_size=row.get("portion_size") or "1",
        price_cents=amount_from_db(row["price"]),
        sort_order=int(row.get("sort_order") or 0),
    )


def _row_to_order(row: dict, items: List[OrderItem]) -> Order:
    fees = OrderFees(**{field: amount_from_db(row.get(field)) for field in FEE_LABELS})
    return Order(
        id=row["id"],
        order_number=row["order_number"],
        client_id=row.get("client_id"),
        client_name=row.get("client_name") or "",
        status=OrderStatus(row["status"]),
        payment_method=OrderPaymentMethod(row.get("payment_method") or OrderPaymentMethod.CARD.value),
        delivery_date=row.get("delivery_date"),
        description=row.get("description"),
        notes=row.get("notes"),
        items=items,
        fees=fees,
        subtotal_cents=amount_from_db(row["subtotal"]),
        total_cents=amount_from_db(row["total"]),
        revision_count=int(row.get("revision_count") or 0),
        completed_at=row.get("completed_at"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _fee_params(fees: OrderFees) -> Dict[str, object]:
    return {field: amount_to_db(getattr(fees, field)) for field in FEE_LABELS}


class PostgresOrderRepository(PostgresRepository):
    """Concrete order repository backed by the ``orders`` tables."""

    def _load_items(self, cursor, order_id: int) -> List[OrderItem]:
        cursor.execute(
            """
            SELECT *
            FROM order_items
            WHERE order_id = %s
            ORDER BY sort_order, id
            """,
            (order_id,),
        )
        return [_row_to_item(row) for row in cursor.fetchall()]

    def _replace_items(self, cursor, order_id: int, items: List[OrderItem]) -> List[OrderItem]:
        cursor.execute("DELETE FROM order_items WHERE order_id = %s", (order_id,))
        for item in items:
            cursor.execute(
                """
                INSERT INTO order_items (order_id, name, description, portion_size, price, sort_order)
                VALUES (%s, %s, %s, %s, %s, %s)
                """,
                (
                    order_id,
                    item.name,
                    item.description,
                    item.portion_size,
                    amount_to_db(item.price_cents),
                    item.sort_order,
                ),
            )
        return self._load_items(cursor, order_id)

    def get_order(self, order_id: int) -> Optional[Order]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM orders WHERE id = %s LIMIT 1", (order_id,))
            row = cursor.fetchone()
            if not row:
                return None
            return _row_to_order(row, self._load_items(cursor, order_id))

    def last_order_number(self) -> Optional[str]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT order_number
                FROM orders
                WHERE order_number LIKE 'KA%'
                ORDER BY order_number DESC
                LIMIT 1
                """
            )
            row = cursor.fetchone()
            return row["order_number"] if row else None

    def create_order(self, order: Order) -> Order:
        params = {
            "order_number": order.order_number,
            "client_id": order.client_id,
            "client_name": order.client_name,
            "status": order.status.value,
            "payment_method": order.payment_method.value,
            "delivery_date": order.delivery_date,
            "description": order.description,
            "notes": order.notes,
            "subtotal": amount_to_db(order.subtotal_cents),
            "total": amount_to_db(order.total_cents),
            **_fee_params(order.fees),
        }
        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO orders (
                    order_number, client_id, client_name, status, payment_method,
                    delivery_date, description, notes, subtotal, total,
                    service_charge, delivery_fee, coordination_fee, airport_fee,
                    fbo_fee, shopping_fee, restaurant_pickup_fee, airport_pickup_fee
                )
                VALUES (
                    %(order_number)s, %(client_id)s, %(client_name)s, %(status)s,
                    %(payment_method)s, %(delivery_date)s, %(description)s, %(notes)s,
                    %(subtotal)s, %(total)s, %(service_charge)s, %(delivery_fee)s,
                    %(coordination_fee)s, %(airport_fee)s, %(fbo_fee)s, %(shopping_fee)s,
                    %(restaurant_pickup_fee)s, %(airport_pickup_fee)s
                )
                RETURNING *
                """,
                params,
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist order")
            items = self._replace_items(cursor, row["id"], list(order.items))
            return _row_to_order(row, items)

    def save_order(self, order: Order) -> Order:
        if order.id is None:
            raise ValueError("Cannot save an order without an id")
        params = {
            "id": order.id,
            "subtotal": amount_to_db(order.subtotal_cents),
            "total": amount_to_db(order.total_cents),
            "revision_count": order.revision_count,
            **_fee_params(order.fees),
        }
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE orders
                SET subtotal = %(subtotal)s,
                    total = %(total)s,
                    revision_count = %(revision_count)s,
                    service_charge = %(service_charge)s,
                    delivery_fee = %(delivery_fee)s,
                    coordination_fee = %(coordination_fee)s,
                    airport_fee = %(airport_fee)s,
                    fbo_fee = %(fbo_fee)s,
                    shopping_fee = %(shopping_fee)s,
                    restaurant_pickup_fee = %(restaurant_pickup_fee)s,
                    airport_pickup_fee = %(airport_pickup_fee)s,
                    updated_at = NOW()
                WHERE id = %(id)s
                RETURNING *
                """,
                params,
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist order")
            items = self._replace_items(cursor, order.id, list(order.items))
            return _row_to_order(row, items)

    def update_status(
        self,
        order_id: int,
        *,
        status: OrderStatus,
        completed_at: Optional[datetime],
    ) -> Optional[Order]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE orders
                SET status = %s,
                    completed_at = %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (status.value, completed_at, order_id),
            )
            row = cursor.fetchone()
            if not row:
                return None
            return _row_to_order(row, self._load_items(cursor, order_id))


__all__ = ["PostgresOrderRepository"]

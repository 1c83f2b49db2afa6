"""PostgreSQL persistence for invoices and the per-order invoice lock."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, List, Optional

import psycopg2.errors

from ...app_context import get_conn
from ..db import PostgresRepository, amount_from_db, amount_to_db
from ..errors import ConflictError
from .models import DeliveryMethod, Invoice, InvoiceStatus

# First key of the two-key advisory lock; keeps invoice locks apart from other users.
INVOICE_LOCK_NAMESPACE = 4201


def _row_to_invoice(row: dict) -> Invoice:
    return Invoice(
        id=row["id"],
        order_id=row["order_id"],
        gateway_invoice_id=row["square_invoice_id"],
        invoice_number=row["invoice_number"],
        public_url=row.get("public_url"),
        reference_id=row["reference_id"],
        status=InvoiceStatus(row["status"]),
        amount_cents=amount_from_db(row["amount"]),
        currency=row.get("currency") or "USD",
        delivery_method=DeliveryMethod(row["delivery_method"]),
        recipient_email=row.get("recipient_email"),
        email_sent_at=row.get("email_sent_at"),
        created_by=row.get("created_by"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        paid_at=row.get("paid_at"),
    )


class PostgresInvoiceRepository(PostgresRepository):
    """Concrete invoice repository backed by the ``invoices`` table."""

    def create_invoice(self, invoice: Invoice) -> Invoice:
        """Insert ``invoice``; a second unsettled invoice for the order raises :class:`ConflictError`."""

        with self._cursor() as cursor:
            try:
                cursor.execute(
                    """
                    INSERT INTO invoices (
                        order_id, square_invoice_id, invoice_number, public_url,
                        reference_id, status, amount, currency, delivery_method,
                        recipient_email, created_by
                    )
                    VALUES (
                        %(order_id)s, %(square_invoice_id)s, %(invoice_number)s,
                        %(public_url)s, %(reference_id)s, %(status)s, %(amount)s,
                        %(currency)s, %(delivery_method)s, %(recipient_email)s,
                        %(created_by)s
                    )
                    RETURNING *
                    """,
                    {
                        "order_id": invoice.order_id,
                        "square_invoice_id": invoice.gateway_invoice_id,
                        "invoice_number": invoice.invoice_number,
                        "public_url": invoice.public_url,
                        "reference_id": invoice.reference_id,
                        "status": invoice.status.value,
                        "amount": amount_to_db(invoice.amount_cents),
                        "currency": invoice.currency,
                        "delivery_method": invoice.delivery_method.value,
                        "recipient_email": invoice.recipient_email,
                        "created_by": invoice.created_by,
                    },
                )
            except psycopg2.errors.UniqueViolation as exc:
                raise ConflictError(
                    "Order already has an unsettled invoice",
                    detail={"order_id": invoice.order_id},
                ) from exc
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist invoice")
            return _row_to_invoice(row)

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM invoices WHERE id = %s LIMIT 1", (invoice_id,))
            row = cursor.fetchone()
            return _row_to_invoice(row) if row else None

    def get_by_gateway_invoice_id(self, gateway_invoice_id: str) -> Optional[Invoice]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM invoices WHERE square_invoice_id = %s LIMIT 1",
                (gateway_invoice_id,),
            )
            row = cursor.fetchone()
            return _row_to_invoice(row) if row else None

    def list_for_order(self, order_id: int) -> List[Invoice]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM invoices
                WHERE order_id = %s
                ORDER BY created_at, id
                """,
                (order_id,),
            )
            return [_row_to_invoice(row) for row in cursor.fetchall()]

    def update_public_url(self, invoice_id: int, public_url: str) -> Optional[Invoice]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE invoices
                SET public_url = %s, updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (public_url, invoice_id),
            )
            row = cursor.fetchone()
            return _row_to_invoice(row) if row else None

    def update_status(
        self,
        invoice_id: int,
        *,
        status: InvoiceStatus,
        paid_at: Optional[datetime] = None,
    ) -> Optional[Invoice]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE invoices
                SET status = %s,
                    paid_at = COALESCE(%s, paid_at),
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (status.value, paid_at, invoice_id),
            )
            row = cursor.fetchone()
            return _row_to_invoice(row) if row else None

    def mark_email_sent(self, invoice_id: int, sent_at: datetime) -> Optional[Invoice]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE invoices
                SET email_sent_at = %s, updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (sent_at, invoice_id),
            )
            row = cursor.fetchone()
            return _row_to_invoice(row) if row else None

    @contextmanager
    def order_lock(self, order_id: int) -> Iterator[None]:
        """Hold a session advisory lock serializing invoice work for one order."""

        managed = self._conn is None
        connection = get_conn() if managed else self._conn
        if managed:
            connection.autocommit = True
        cursor = connection.cursor()
        try:
            cursor.execute("SELECT pg_advisory_lock(%s, %s)", (INVOICE_LOCK_NAMESPACE, order_id))
            yield
        finally:
            try:
                cursor.execute("SELECT pg_advisory_unlock(%s, %s)", (INVOICE_LOCK_NAMESPACE, order_id))
            finally:
                cursor.close()
                if managed:
                    connection.close()


__all__ = ["INVOICE_LOCK_NAMESPACE", "PostgresInvoiceRepository"]

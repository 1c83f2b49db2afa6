"""PostgreSQL persistence for payment transactions and stored cards."""
from __future__ import annotations

from typing import List, Optional

from ..db import PostgresRepository, amount_from_db, amount_to_db
from .models import PaymentMethod, PaymentTransaction, StoredCard, TransactionStatus


def _row_to_transaction(row: dict) -> PaymentTransaction:
    return PaymentTransaction(
        id=row["id"],
        order_id=row["order_id"],
        gateway_payment_id=row["square_payment_id"],
        amount_cents=amount_from_db(row["amount"]),
        currency=row.get("currency") or "USD",
        payment_method=PaymentMethod(row["payment_method"]),
        card_last_4=row.get("card_last_4"),
        card_brand=row.get("card_brand"),
        status=TransactionStatus(row["status"]),
        gateway_customer_id=row.get("square_customer_id"),
        gateway_card_id=row.get("square_card_id"),
        error_message=row.get("error_message"),
        processed_by=row.get("processed_by"),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_card(row: dict) -> StoredCard:
    return StoredCard(
        id=row["id"],
        client_id=row["client_id"],
        gateway_customer_id=row["square_customer_id"],
        gateway_card_id=row["square_card_id"],
        card_last_4=row["card_last_4"],
        card_brand=row["card_brand"],
        card_exp_month=row.get("card_exp_month"),
        card_exp_year=row.get("card_exp_year"),
        is_default=bool(row.get("is_default")),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


class PostgresPaymentRepository(PostgresRepository):
    """Ledger and stored-card persistence."""

    def create_transaction(self, transaction: PaymentTransaction) -> Optional[PaymentTransaction]:
        """Insert a ledger row; returns ``None`` when the gateway payment id is already recorded."""

        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO payment_transactions (
                    order_id, square_payment_id, amount, currency, payment_method,
                    card_last_4, card_brand, status, square_customer_id,
                    square_card_id, error_message, processed_by
                )
                VALUES (
                    %(order_id)s, %(square_payment_id)s, %(amount)s, %(currency)s,
                    %(payment_method)s, %(card_last_4)s, %(card_brand)s, %(status)s,
                    %(square_customer_id)s, %(square_card_id)s, %(error_message)s,
                    %(processed_by)s
                )
                ON CONFLICT (square_payment_id) DO NOTHING
                RETURNING *
                """,
                {
                    "order_id": transaction.order_id,
                    "square_payment_id": transaction.gateway_payment_id,
                    "amount": amount_to_db(transaction.amount_cents),
                    "currency": transaction.currency,
                    "payment_method": transaction.payment_method.value,
                    "card_last_4": transaction.card_last_4,
                    "card_brand": transaction.card_brand,
                    "status": transaction.status.value,
                    "square_customer_id": transaction.gateway_customer_id,
                    "square_card_id": transaction.gateway_card_id,
                    "error_message": transaction.error_message,
                    "processed_by": transaction.processed_by,
                },
            )
            row = cursor.fetchone()
            return _row_to_transaction(row) if row else None

    def get_transaction(self, transaction_id: int) -> Optional[PaymentTransaction]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM payment_transactions WHERE id = %s LIMIT 1", (transaction_id,))
            row = cursor.fetchone()
            return _row_to_transaction(row) if row else None

    def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[PaymentTransaction]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM payment_transactions WHERE square_payment_id = %s LIMIT 1",
                (gateway_payment_id,),
            )
            row = cursor.fetchone()
            return _row_to_transaction(row) if row else None

    def list_transactions_for_order(self, order_id: int) -> List[PaymentTransaction]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM payment_transactions
                WHERE order_id = %s
                ORDER BY created_at DESC, id DESC
                """,
                (order_id,),
            )
            return [_row_to_transaction(row) for row in cursor.fetchall()]

    def update_transaction_status(
        self,
        transaction_id: int,
        *,
        status: TransactionStatus,
        error_message: Optional[str] = None,
    ) -> Optional[PaymentTransaction]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE payment_transactions
                SET status = %s,
                    error_message = COALESCE(%s, error_message),
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (status.value, error_message, transaction_id),
            )
            row = cursor.fetchone()
            return _row_to_transaction(row) if row else None

    def create_stored_card(self, card: StoredCard) -> StoredCard:
        """Insert a card; a default card first clears the client's other defaults in the same transaction."""

        with self._cursor() as cursor:
            if card.is_default:
                cursor.execute(
                    """
                    UPDATE stored_cards
                    SET is_default = FALSE, updated_at = NOW()
                    WHERE client_id = %s AND is_default
                    """,
                    (card.client_id,),
                )
            cursor.execute(
                """
                INSERT INTO stored_cards (
                    client_id, square_customer_id, square_card_id, card_last_4,
                    card_brand, card_exp_month, card_exp_year, is_default
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING *
                """,
                (
                    card.client_id,
                    card.gateway_customer_id,
                    card.gateway_card_id,
                    card.card_last_4,
                    card.card_brand,
                    card.card_exp_month,
                    card.card_exp_year,
                    card.is_default,
                ),
            )
            row = cursor.fetchone()
            if not row:
                raise RuntimeError("Failed to persist stored card")
            return _row_to_card(row)

    def get_stored_card(self, card_id: int) -> Optional[StoredCard]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM stored_cards WHERE id = %s LIMIT 1", (card_id,))
            row = cursor.fetchone()
            return _row_to_card(row) if row else None

    def get_stored_card_by_gateway_card_id(self, gateway_card_id: str) -> Optional[StoredCard]:
        with self._cursor() as cursor:
            cursor.execute(
                "SELECT * FROM stored_cards WHERE square_card_id = %s LIMIT 1",
                (gateway_card_id,),
            )
            row = cursor.fetchone()
            return _row_to_card(row) if row else None

    def list_stored_cards(self, client_id: int) -> List[StoredCard]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                SELECT *
                FROM stored_cards
                WHERE client_id = %s
                ORDER BY is_default DESC, created_at DESC
                """,
                (client_id,),
            )
            return [_row_to_card(row) for row in cursor.fetchall()]

    def set_default_card(self, client_id: int, card_id: int) -> Optional[StoredCard]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE stored_cards
                SET is_default = FALSE, updated_at = NOW()
                WHERE client_id = %s AND is_default AND id <> %s
                """,
                (client_id, card_id),
            )
            cursor.execute(
                """
                UPDATE stored_cards
                SET is_default = TRUE, updated_at = NOW()
                WHERE id = %s AND client_id = %s
                RETURNING *
                """,
                (card_id, client_id),
            )
            row = cursor.fetchone()
            return _row_to_card(row) if row else None

    def delete_stored_card(self, card_id: int) -> bool:
        with self._cursor() as cursor:
            cursor.execute("DELETE FROM stored_cards WHERE id = %s", (card_id,))
            return cursor.rowcount > 0


__all__ = ["PostgresPaymentRepository"]

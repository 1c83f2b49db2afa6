"""PostgreSQL persistence for clients."""
from __future__ import annotations

from typing import Optional

from ..db import PostgresRepository
from .models import Client


def _row_to_client(row: dict) -> Client:
    return Client(
        id=row["id"],
        full_name=row.get("full_name"),
        company_name=row.get("company_name"),
        email=row.get("email"),
        contact_number=row.get("contact_number"),
        gateway_customer_id=row.get("square_customer_id"),
    )


class PostgresClientRepository(PostgresRepository):
    """Reads clients and caches their gateway customer id."""

    def get_client(self, client_id: int) -> Optional[Client]:
        with self._cursor() as cursor:
            cursor.execute("SELECT * FROM clients WHERE id = %s LIMIT 1", (client_id,))
            row = cursor.fetchone()
            return _row_to_client(row) if row else None

    def update_gateway_customer_id(self, client_id: int, gateway_customer_id: str) -> Optional[Client]:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE clients
                SET square_customer_id = %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING *
                """,
                (gateway_customer_id, client_id),
            )
            row = cursor.fetchone()
            return _row_to_client(row) if row else None


__all__ = ["PostgresClientRepository"]

"""PostgreSQL helpers shared by the repository implementations."""
from __future__ import annotations

from contextlib import contextmanager
from decimal import Decimal
from typing import Iterator, Optional, Tuple

import psycopg2
import psycopg2.extras
from psycopg2.extensions import connection as PgConnection
from psycopg2.extensions import cursor as PgCursor

from ..app_context import get_conn
from .errors import PersistenceError
from .money import to_cents, to_decimal


@contextmanager
def managed_connection(conn: Optional[PgConnection] = None) -> Iterator[Tuple[PgConnection, bool]]:
    """Context manager that manages transaction boundaries for optional connections."""

    if conn is not None:
        yield conn, False
        return

    connection = get_conn()
    try:
        yield connection, True
        connection.commit()
    except Exception:
        connection.rollback()
        raise
    finally:
        connection.close()


class PostgresRepository:
    """Base class giving repositories a dict cursor inside a managed transaction."""

    def __init__(self, *, conn: Optional[PgConnection] = None) -> None:
        self._conn = conn

    @contextmanager
    def _cursor(self) -> Iterator[PgCursor]:
        with managed_connection(self._conn) as (connection, managed):
            cursor = connection.cursor(cursor_factory=psycopg2.extras.RealDictCursor)
            try:
                yield cursor
                if managed:
                    connection.commit()
            except psycopg2.Error as exc:
                if managed:
                    connection.rollback()
                raise PersistenceError("Database operation failed") from exc
            except Exception:
                if managed:
                    connection.rollback()
                raise
            finally:
                cursor.close()


def amount_to_db(cents: int) -> Decimal:
    return to_decimal(cents)


def amount_from_db(value: object) -> int:
    if value is None:
        return 0
    return to_cents(value if isinstance(value, (Decimal, int, str)) else str(value))


__all__ = ["PostgresRepository", "amount_from_db", "amount_to_db", "managed_connection"]

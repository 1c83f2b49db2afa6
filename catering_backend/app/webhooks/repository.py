"""PostgreSQL persistence for the webhook event log."""
from __future__ import annotations

from datetime import datetime

import psycopg2.extras

from ..db import PostgresRepository
from .models import WebhookEvent


class PostgresWebhookEventRepository(PostgresRepository):
    def record_webhook_event(self, event: WebhookEvent) -> bool:
        """Store the event; returns ``False`` when its id was already processed.

        A redelivery of an event whose first attempt failed keeps the original
        row and reports ``True`` so the caller processes it again.
        """

        with self._cursor() as cursor:
            cursor.execute(
                """
                INSERT INTO webhook_events (
                    event_id,
                    event_type,
                    payload,
                    received_at
                )
                VALUES (%s, %s, %s, %s)
                ON CONFLICT (event_id) DO UPDATE
                    SET event_type = webhook_events.event_type
                RETURNING processed_at
                """,
                (
                    event.event_id,
                    event.event_type,
                    psycopg2.extras.Json(event.payload),
                    event.received_at,
                ),
            )
            row = cursor.fetchone()
            return row is None or row["processed_at"] is None

    def mark_webhook_event_processed(self, event_id: str, processed_at: datetime) -> None:
        with self._cursor() as cursor:
            cursor.execute(
                """
                UPDATE webhook_events
                SET processed_at = %s
                WHERE event_id = %s AND processed_at IS NULL
                """,
                (processed_at, event_id),
            )


__all__ = ["PostgresWebhookEventRepository"]

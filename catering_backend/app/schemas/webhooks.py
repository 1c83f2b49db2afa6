"""API schemas for gateway webhook acknowledgements."""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel

from ..webhooks import WebhookOutcome


class WebhookAck(BaseModel):
    received: bool = True
    processed: bool
    duplicate: bool = False
    event_type: str
    message: str
    order_id: Optional[int] = None

    @classmethod
    def from_outcome(cls, outcome: WebhookOutcome) -> "WebhookAck":
        return cls(
            processed=outcome.processed,
            duplicate=outcome.duplicate,
            event_type=outcome.event_type,
            message=outcome.message,
            order_id=outcome.order_id,
        )


__all__ = ["WebhookAck"]

"""Models for gateway webhook deliveries."""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

INVOICE_PAYMENT_FULFILLED = "invoice.payment.fulfilled"


class WebhookEvent(BaseModel):
    """Parsed webhook delivery stored in the event log."""

    event_id: str
    event_type: str
    payload: Dict[str, object]
    received_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(populate_by_name=True, frozen=True)


class WebhookOutcome(BaseModel):
    """What the handler did with a delivery; always answered with HTTP 200."""

    event_id: str
    event_type: str
    processed: bool
    message: str
    duplicate: bool = False
    order_id: Optional[int] = None
    transaction_id: Optional[int] = None

    model_config = ConfigDict(frozen=True)


__all__ = ["INVOICE_PAYMENT_FULFILLED", "WebhookEvent", "WebhookOutcome"]

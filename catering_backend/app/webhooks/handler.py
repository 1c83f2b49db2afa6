"""Verifies and reconciles payment webhooks from the billing gateway."""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional, Protocol

from ..errors import AuthError, NotFoundError, PersistenceError, ValidationError
from ..payments import PaymentService
from .models import INVOICE_PAYMENT_FULFILLED, WebhookEvent, WebhookOutcome
from .signature import verify_signature

logger = logging.getLogger("webhooks.square")

# Event families acknowledged without processing.
ACKNOWLEDGED_PREFIXES = ("invoice.", "payment.", "customer.", "order.")


class WebhookEventRepository(Protocol):
    def record_webhook_event(self, event: WebhookEvent) -> bool:
        """Store the event, returning ``False`` when its id was already processed."""

    def mark_webhook_event_processed(self, event_id: str, processed_at: datetime) -> None:
        ...


def _as_mapping(value: Any) -> Optional[Mapping[str, Any]]:
    return value if isinstance(value, Mapping) else None


def _parse_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except ValueError:
        return None


@dataclass
class WebhookHandler:
    """Entry point for gateway deliveries posted to ``/webhooks/square``."""

    payments: PaymentService
    events: WebhookEventRepository
    signature_key: Optional[str] = None
    subscription_id: Optional[str] = None
    require_signature: bool = False
    dedupe_events: bool = False

    def verify(self, raw_body: bytes, signature: Optional[str]) -> None:
        if not self.signature_key:
            logger.warning("Webhook signature key not configured, accepting unverified delivery")
            return
        if not signature:
            if self.require_signature:
                raise AuthError("Missing webhook signature")
            logger.warning("Webhook delivered without a signature header, accepting")
            return
        if not verify_signature(self.signature_key, raw_body, signature):
            logger.warning("Webhook signature mismatch")
            raise AuthError("Invalid signature")

    def handle(
        self,
        raw_body: bytes,
        signature: Optional[str] = None,
        *,
        subscription_id: Optional[str] = None,
    ) -> WebhookOutcome:
        self.verify(raw_body, signature)

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as exc:
            raise ValidationError("Malformed webhook payload") from exc
        if not isinstance(payload, dict):
            raise ValidationError("Malformed webhook payload")

        event = WebhookEvent(
            event_id=str(payload.get("event_id") or hashlib.sha256(raw_body).hexdigest()),
            event_type=str(payload.get("type") or "unknown"),
            payload=payload,
        )
        self._check_subscription(payload.get("subscription_id") or subscription_id, event)

        if self._record(event) is False and self.dedupe_events:
            logger.info("Duplicate webhook event %s ignored", event.event_id)
            return WebhookOutcome(
                event_id=event.event_id,
                event_type=event.event_type,
                processed=False,
                duplicate=True,
                message="Duplicate event ignored",
            )

        if event.event_type == INVOICE_PAYMENT_FULFILLED:
            outcome = self._handle_invoice_payment(event)
            self._mark_processed(event)
            return outcome

        if event.event_type.startswith(ACKNOWLEDGED_PREFIXES):
            logger.info("Webhook event %s received, no action taken", event.event_type)
        else:
            logger.info("Unhandled webhook event type %s", event.event_type)
        self._mark_processed(event)
        return WebhookOutcome(
            event_id=event.event_id,
            event_type=event.event_type,
            processed=False,
            message="Event received but not processed",
        )

    def _check_subscription(self, received: Optional[str], event: WebhookEvent) -> None:
        if self.subscription_id and received and received != self.subscription_id:
            logger.warning(
                "Webhook subscription id mismatch",
                extra={"expected": self.subscription_id, "received": received, "event_id": event.event_id},
            )

    def _record(self, event: WebhookEvent) -> Optional[bool]:
        try:
            return self.events.record_webhook_event(event)
        except PersistenceError:
            logger.exception("Failed to record webhook event %s", event.event_id)
            return None

    def _mark_processed(self, event: WebhookEvent) -> None:
        # Unmarked events are processed again on redelivery.
        try:
            self.events.mark_webhook_event_processed(event.event_id, datetime.now(timezone.utc))
        except PersistenceError:
            logger.exception("Failed to mark webhook event %s processed", event.event_id)

    def _handle_invoice_payment(self, event: WebhookEvent) -> WebhookOutcome:
        data = _as_mapping(event.payload.get("data")) or {}
        obj = _as_mapping(data.get("object")) or {}
        invoice = _as_mapping(obj.get("invoice"))
        invoice_payment = _as_mapping(obj.get("invoice_payment"))
        if invoice is None or invoice_payment is None:
            logger.warning("Invoice payment event %s is missing invoice data", event.event_id)
            raise ValidationError("Invalid webhook data")

        gateway_invoice_id = invoice.get("id") or data.get("id")
        gateway_payment_id = invoice_payment.get("payment_id")
        if not gateway_invoice_id or not gateway_payment_id:
            raise ValidationError("Invalid webhook data")

        amount_paid: Dict[str, Any] = dict(_as_mapping(invoice_payment.get("amount_paid")) or {})
        amount_cents = _parse_int(amount_paid.get("amount")) or 0

        reference_order_id = _parse_int(invoice.get("reference_id") or invoice.get("referenceId"))

        try:
            result = self.payments.process_invoice_payment(
                str(gateway_invoice_id),
                str(gateway_payment_id),
                amount_cents,
                order_id=reference_order_id,
            )
        except (ValidationError, NotFoundError) as exc:
            logger.warning(
                "Could not match invoice payment %s to an order: %s",
                gateway_payment_id,
                exc.message,
                extra={"gateway_invoice_id": gateway_invoice_id},
            )
            raise ValidationError("Could not determine order for invoice payment") from exc

        return WebhookOutcome(
            event_id=event.event_id,
            event_type=event.event_type,
            processed=True,
            duplicate=result.duplicate,
            message="Payment already recorded" if result.duplicate else "Payment processed",
            order_id=result.order.id,
            transaction_id=result.transaction.id,
        )


__all__ = ["ACKNOWLEDGED_PREFIXES", "WebhookEventRepository", "WebhookHandler"]

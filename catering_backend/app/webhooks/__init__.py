"""Webhook package: signature checks and payment reconciliation for gateway events."""

from .handler import ACKNOWLEDGED_PREFIXES, WebhookEventRepository, WebhookHandler
from .models import INVOICE_PAYMENT_FULFILLED, WebhookEvent, WebhookOutcome
from .repository import PostgresWebhookEventRepository
from .signature import compute_signature, verify_signature

__all__ = [
    "ACKNOWLEDGED_PREFIXES",
    "INVOICE_PAYMENT_FULFILLED",
    "PostgresWebhookEventRepository",
    "WebhookEvent",
    "WebhookEventRepository",
    "WebhookHandler",
    "WebhookOutcome",
    "compute_signature",
    "verify_signature",
]

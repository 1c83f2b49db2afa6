"""Domain models for the payment ledger and stored cards."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..invoices.models import Invoice
from ..orders.models import Order


class PaymentMethod(str, Enum):
    CARD = "card"
    ACH = "ACH"
    CASH_APP_PAY = "cash_app_pay"
    AFTERPAY = "afterpay"
    OTHER = "other"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


def status_from_gateway(gateway_status: Optional[str]) -> TransactionStatus:
    """Map a gateway payment status onto the ledger status."""

    normalized = (gateway_status or "").upper()
    if normalized == "COMPLETED":
        return TransactionStatus.COMPLETED
    if normalized == "FAILED":
        return TransactionStatus.FAILED
    return TransactionStatus.PENDING


class PaymentTransaction(BaseModel):
    """One row of the money-movement ledger."""

    id: Optional[int] = None
    order_id: int
    gateway_payment_id: str
    amount_cents: int
    currency: str = "USD"
    payment_method: PaymentMethod = PaymentMethod.CARD
    card_last_4: Optional[str] = None
    card_brand: Optional[str] = None
    status: TransactionStatus
    gateway_customer_id: Optional[str] = None
    gateway_card_id: Optional[str] = None
    error_message: Optional[str] = None
    processed_by: Optional[int] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class StoredCard(BaseModel):
    """Tokenized card saved against a client for reuse."""

    id: Optional[int] = None
    client_id: int
    gateway_customer_id: str
    gateway_card_id: str
    card_last_4: str
    card_brand: str
    card_exp_month: Optional[int] = None
    card_exp_year: Optional[int] = None
    is_default: bool = False
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class ProcessPaymentRequest(BaseModel):
    """Admin-initiated charge against an order."""

    order_id: int
    amount_cents: int = Field(gt=0)
    payment_method: PaymentMethod = PaymentMethod.CARD
    source_id: Optional[str] = None
    idempotency_key: str = Field(min_length=1)
    stored_card_id: Optional[int] = None
    store_card: bool = False
    make_default: bool = False
    customer_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class ProcessPaymentResult(BaseModel):
    success: bool
    transaction: Optional[PaymentTransaction] = None
    stored_card: Optional[StoredCard] = None
    error: Optional[str] = None
    gateway_error_code: Optional[str] = None

    model_config = ConfigDict(frozen=True)


class InvoicePaymentResult(BaseModel):
    """Outcome of settling an invoice payment reported by the gateway."""

    transaction: PaymentTransaction
    order: Order
    invoice: Optional[Invoice] = None
    duplicate: bool = False

    model_config = ConfigDict(frozen=True)


__all__ = [
    "InvoicePaymentResult",
    "PaymentMethod",
    "PaymentTransaction",
    "ProcessPaymentRequest",
    "ProcessPaymentResult",
    "StoredCard",
    "TransactionStatus",
    "status_from_gateway",
]

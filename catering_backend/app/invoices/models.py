"""Domain models for gateway-backed invoices."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class InvoiceStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    FAILED = "failed"


UNSETTLED_STATUSES = frozenset({InvoiceStatus.PENDING, InvoiceStatus.FAILED})


class DeliveryMethod(str, Enum):
    EMAIL = "EMAIL"
    SHARE_MANUALLY = "SHARE_MANUALLY"


class Invoice(BaseModel):
    """Local record of an invoice issued through the gateway."""

    id: Optional[int] = None
    order_id: int
    gateway_invoice_id: str
    invoice_number: str
    public_url: Optional[str] = None
    reference_id: str
    status: InvoiceStatus = InvoiceStatus.PENDING
    amount_cents: int
    currency: str = "USD"
    delivery_method: DeliveryMethod = DeliveryMethod.EMAIL
    recipient_email: Optional[str] = None
    email_sent_at: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    paid_at: Optional[datetime] = None

    model_config = ConfigDict(frozen=True)

    @property
    def is_unsettled(self) -> bool:
        return self.status in UNSETTLED_STATUSES


class InvoiceRequest(BaseModel):
    """Caller options for creating (and optionally sending) an invoice."""

    delivery_method: DeliveryMethod = DeliveryMethod.EMAIL
    recipient_email: Optional[str] = None
    additional_emails: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class InvoiceCreation(BaseModel):
    invoice: Invoice
    public_url: Optional[str] = None
    version: int = 0
    reused: bool = False

    model_config = ConfigDict(frozen=True)


class EmailFailure(BaseModel):
    email: str
    error: str

    model_config = ConfigDict(frozen=True)


class InvoiceDispatch(BaseModel):
    """Outcome of creating, publishing and fanning out an invoice."""

    invoice: Invoice
    public_url: Optional[str] = None
    reused: bool = False
    additional_emails_sent: List[str] = Field(default_factory=list)
    additional_emails_failed: List[EmailFailure] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


__all__ = [
    "DeliveryMethod",
    "EmailFailure",
    "Invoice",
    "InvoiceCreation",
    "InvoiceDispatch",
    "InvoiceRequest",
    "InvoiceStatus",
    "UNSETTLED_STATUSES",
]

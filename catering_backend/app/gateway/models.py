"""Normalized request and response models for the billing gateway."""
from __future__ import annotations

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Gateway invoice statuses that mean the invoice is already live for the payer.
PUBLISHED_INVOICE_STATUSES = frozenset(
    {"SCHEDULED", "SENT", "UNPAID", "PARTIALLY_PAID", "PAYMENT_PENDING"}
)


class _GatewayModel(BaseModel):
    model_config = ConfigDict(frozen=True)


class GatewayCustomer(_GatewayModel):
    id: str
    email: Optional[str] = None
    given_name: Optional[str] = None
    family_name: Optional[str] = None


class GatewayCustomerRequest(_GatewayModel):
    given_name: str
    family_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    reference_id: Optional[str] = None
    note: Optional[str] = None


class GatewayLineItem(_GatewayModel):
    name: str
    quantity: str = "1"
    unit_price_cents: int = Field(ge=0)
    note: Optional[str] = None


class GatewaySalesOrder(_GatewayModel):
    id: str
    reference_id: Optional[str] = None
    total_cents: Optional[int] = None


class GatewayInvoiceRequest(_GatewayModel):
    """Everything needed to draft a gateway invoice for a sales order."""

    sales_order_id: str
    customer_id: str
    invoice_number: str
    title: str
    description: Optional[str] = None
    due_date: date
    scheduled_at: datetime
    sale_or_service_date: Optional[date] = None
    delivery_method: str
    accept_card: bool = True
    accept_bank_account: bool = False
    reference_id: Optional[str] = None


class GatewayInvoice(_GatewayModel):
    id: str
    version: int = 0
    status: Optional[str] = None
    public_url: Optional[str] = None
    invoice_number: Optional[str] = None

    @property
    def is_published(self) -> bool:
        return (self.status or "").upper() in PUBLISHED_INVOICE_STATUSES


class GatewayPaymentRequest(_GatewayModel):
    source_id: str
    amount_cents: int = Field(gt=0)
    currency: str = "USD"
    idempotency_key: str
    customer_id: Optional[str] = None
    reference_id: Optional[str] = None
    note: Optional[str] = None


class GatewayPayment(_GatewayModel):
    id: str
    status: str
    amount_cents: int
    currency: str = "USD"
    customer_id: Optional[str] = None
    card_id: Optional[str] = None
    card_last_4: Optional[str] = None
    card_brand: Optional[str] = None
    card_exp_month: Optional[int] = None
    card_exp_year: Optional[int] = None
    receipt_url: Optional[str] = None


__all__ = [
    "GatewayCustomer",
    "GatewayCustomerRequest",
    "GatewayInvoice",
    "GatewayInvoiceRequest",
    "GatewayLineItem",
    "GatewayPayment",
    "GatewayPaymentRequest",
    "GatewaySalesOrder",
    "PUBLISHED_INVOICE_STATUSES",
]

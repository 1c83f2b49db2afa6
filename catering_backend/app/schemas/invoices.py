"""API schemas for invoice endpoints."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field

from ..invoices import DeliveryMethod, EmailFailure, Invoice, InvoiceDispatch, InvoiceRequest, InvoiceStatus
from ..money import to_decimal


class CreateInvoiceRequest(BaseModel):
    delivery_method: DeliveryMethod
    recipient_email: Optional[EmailStr] = None
    additional_emails: List[str] = Field(default_factory=list)

    def to_request(self) -> InvoiceRequest:
        return InvoiceRequest(
            delivery_method=self.delivery_method,
            recipient_email=str(self.recipient_email) if self.recipient_email else None,
            additional_emails=list(self.additional_emails),
        )


class InvoiceOut(BaseModel):
    id: Optional[int] = None
    order_id: int
    gateway_invoice_id: str
    invoice_number: str
    public_url: Optional[str] = None
    reference_id: str
    status: InvoiceStatus
    amount: Decimal
    currency: str
    delivery_method: DeliveryMethod
    recipient_email: Optional[str] = None
    email_sent_at: Optional[datetime] = None
    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime
    paid_at: Optional[datetime] = None

    @classmethod
    def from_invoice(cls, invoice: Invoice) -> "InvoiceOut":
        return cls(
            id=invoice.id,
            order_id=invoice.order_id,
            gateway_invoice_id=invoice.gateway_invoice_id,
            invoice_number=invoice.invoice_number,
            public_url=invoice.public_url,
            reference_id=invoice.reference_id,
            status=invoice.status,
            amount=to_decimal(invoice.amount_cents),
            currency=invoice.currency,
            delivery_method=invoice.delivery_method,
            recipient_email=invoice.recipient_email,
            email_sent_at=invoice.email_sent_at,
            created_by=invoice.created_by,
            created_at=invoice.created_at,
            updated_at=invoice.updated_at,
            paid_at=invoice.paid_at,
        )


class CreateInvoiceResponse(BaseModel):
    invoice: InvoiceOut
    public_url: Optional[str] = None
    reused: bool = False
    additional_emails_sent: List[str] = Field(default_factory=list)
    additional_emails_failed: List[EmailFailure] = Field(default_factory=list)
    message: str

    @classmethod
    def from_dispatch(cls, dispatch: InvoiceDispatch) -> "CreateInvoiceResponse":
        if dispatch.reused:
            message = "Existing unsettled invoice returned"
        elif dispatch.public_url:
            message = "Invoice created and published"
        else:
            message = "Invoice created; payment link not yet available"
        return cls(
            invoice=InvoiceOut.from_invoice(dispatch.invoice),
            public_url=dispatch.public_url,
            reused=dispatch.reused,
            additional_emails_sent=dispatch.additional_emails_sent,
            additional_emails_failed=dispatch.additional_emails_failed,
            message=message,
        )


class InvoiceListResponse(BaseModel):
    invoices: List[InvoiceOut]


class SendInvoiceRequest(BaseModel):
    invoice_id: int
    recipient_email: EmailStr


class CancelInvoiceRequest(BaseModel):
    version: Optional[int] = Field(default=None, ge=0)


class InvoiceActionResponse(BaseModel):
    invoice: InvoiceOut
    message: str


__all__ = [
    "CancelInvoiceRequest",
    "CreateInvoiceRequest",
    "CreateInvoiceResponse",
    "InvoiceActionResponse",
    "InvoiceListResponse",
    "InvoiceOut",
    "SendInvoiceRequest",
]

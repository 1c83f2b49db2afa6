"""Gateway protocol implemented by the Square adapter and the local sandbox."""
from __future__ import annotations

from typing import Optional, Protocol, Sequence

from .models import (
    GatewayCustomer,
    GatewayCustomerRequest,
    GatewayInvoice,
    GatewayInvoiceRequest,
    GatewayLineItem,
    GatewayPayment,
    GatewayPaymentRequest,
    GatewaySalesOrder,
)


class PaymentGateway(Protocol):
    """External billing and payment processor.

    Every method raises :class:`~catering_backend.app.errors.GatewayError` on
    failure. Amounts are integer cents.
    """

    def search_customers_by_email(self, email: str) -> Optional[GatewayCustomer]:
        """Return the first customer whose email matches exactly."""

    def create_customer(self, request: GatewayCustomerRequest) -> GatewayCustomer:
        ...

    def create_sales_order(
        self,
        *,
        reference_id: str,
        customer_id: str,
        line_items: Sequence[GatewayLineItem],
        currency: str,
    ) -> GatewaySalesOrder:
        ...

    def create_invoice(self, request: GatewayInvoiceRequest) -> GatewayInvoice:
        ...

    def publish_invoice(self, invoice_id: str, version: int) -> GatewayInvoice:
        ...

    def cancel_invoice(self, invoice_id: str, version: int) -> GatewayInvoice:
        ...

    def get_invoice(self, invoice_id: str) -> Optional[GatewayInvoice]:
        """Return the invoice, or ``None`` when the gateway does not know it."""

    def create_payment(self, request: GatewayPaymentRequest) -> GatewayPayment:
        ...


__all__ = ["PaymentGateway"]

"""In-process gateway used for local development when Square is not configured."""
from __future__ import annotations

import logging
import threading
from typing import Dict, List, Optional, Sequence
from uuid import uuid4

from ..errors import GatewayError
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

logger = logging.getLogger("gateway.sandbox")

# Source ids the sandbox declines, mirroring Square's sandbox test nonces.
DECLINED_SOURCE_IDS = frozenset({"cnon:card-nonce-declined"})


class LocalSandboxGateway:
    """Minimal gateway keeping customers, orders and invoices in memory."""

    def __init__(self, *, base_url: str = "https://billing.local") -> None:
        self.base_url = base_url.rstrip("/")
        self.customers: Dict[str, GatewayCustomer] = {}
        self.sales_orders: Dict[str, GatewaySalesOrder] = {}
        self.invoices: Dict[str, GatewayInvoice] = {}
        self.payments: Dict[str, GatewayPayment] = {}
        self.line_items: Dict[str, List[GatewayLineItem]] = {}
        self._payments_by_key: Dict[str, GatewayPayment] = {}
        self._lock = threading.Lock()

    def search_customers_by_email(self, email: str) -> Optional[GatewayCustomer]:
        with self._lock:
            for customer in self.customers.values():
                if customer.email and customer.email == email:
                    return customer
        return None

    def create_customer(self, request: GatewayCustomerRequest) -> GatewayCustomer:
        customer = GatewayCustomer(
            id=f"cust_{uuid4().hex[:12]}",
            email=request.email,
            given_name=request.given_name,
            family_name=request.family_name,
        )
        with self._lock:
            self.customers[customer.id] = customer
        logger.debug("Sandbox customer created %s", customer.id)
        return customer

    def create_sales_order(
        self,
        *,
        reference_id: str,
        customer_id: str,
        line_items: Sequence[GatewayLineItem],
        currency: str,
    ) -> GatewaySalesOrder:
        total = 0
        for line in line_items:
            try:
                quantity = float(line.quantity)
            except ValueError:
                quantity = 1.0
            total += int(round(line.unit_price_cents * quantity))
        order = GatewaySalesOrder(id=f"order_{uuid4().hex[:12]}", reference_id=reference_id, total_cents=total)
        with self._lock:
            self.sales_orders[order.id] = order
            self.line_items[order.id] = list(line_items)
        return order

    def create_invoice(self, request: GatewayInvoiceRequest) -> GatewayInvoice:
        with self._lock:
            if request.sales_order_id not in self.sales_orders:
                raise GatewayError("Payment gateway rejected create invoice", http_status=400)
            invoice = GatewayInvoice(
                id=f"inv_{uuid4().hex[:12]}",
                version=0,
                status="DRAFT",
                invoice_number=request.invoice_number,
            )
            self.invoices[invoice.id] = invoice
        return invoice

    def _require_invoice(self, invoice_id: str, version: int) -> GatewayInvoice:
        invoice = self.invoices.get(invoice_id)
        if invoice is None:
            raise GatewayError("Payment gateway rejected invoice lookup", http_status=404)
        if invoice.version != version:
            raise GatewayError(
                "Payment gateway rejected stale invoice version",
                gateway_code="VERSION_MISMATCH",
                http_status=400,
            )
        return invoice

    def publish_invoice(self, invoice_id: str, version: int) -> GatewayInvoice:
        with self._lock:
            invoice = self._require_invoice(invoice_id, version)
            published = invoice.model_copy(
                update={
                    "status": "UNPAID",
                    "version": invoice.version + 1,
                    "public_url": f"{self.base_url}/pay/{invoice.id}",
                }
            )
            self.invoices[invoice_id] = published
        return published

    def cancel_invoice(self, invoice_id: str, version: int) -> GatewayInvoice:
        with self._lock:
            invoice = self._require_invoice(invoice_id, version)
            cancelled = invoice.model_copy(update={"status": "CANCELED", "version": invoice.version + 1})
            self.invoices[invoice_id] = cancelled
        return cancelled

    def get_invoice(self, invoice_id: str) -> Optional[GatewayInvoice]:
        with self._lock:
            return self.invoices.get(invoice_id)

    def create_payment(self, request: GatewayPaymentRequest) -> GatewayPayment:
        with self._lock:
            existing = self._payments_by_key.get(request.idempotency_key)
            if existing is not None:
                return existing
            if request.source_id in DECLINED_SOURCE_IDS:
                raise GatewayError(
                    "Card was declined",
                    status_code=402,
                    gateway_code="GENERIC_DECLINE",
                    http_status=402,
                )
            card_id = None if request.source_id.startswith("ccof:") else f"ccof:{uuid4().hex[:12]}"
            payment = GatewayPayment(
                id=f"pay_{uuid4().hex[:12]}",
                status="COMPLETED",
                amount_cents=request.amount_cents,
                currency=request.currency,
                customer_id=request.customer_id,
                card_id=card_id or request.source_id,
                card_last_4="1111",
                card_brand="VISA",
                card_exp_month=12,
                card_exp_year=2030,
            )
            self.payments[payment.id] = payment
            self._payments_by_key[request.idempotency_key] = payment
        return payment


__all__ = ["DECLINED_SOURCE_IDS", "LocalSandboxGateway"]

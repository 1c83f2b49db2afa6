"""Invoice orchestration against the billing gateway."""
from __future__ import annotations

import logging
from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional, Protocol, Tuple

from ...mail import EmailProvider, render_invoice_email
from ..customers import ClientRepository, CustomerResolver
from ..errors import ConflictError, GatewayError, NotFoundError, PersistenceError, ValidationError
from ..gateway import GatewayInvoice, GatewayInvoiceRequest, GatewayLineItem, PaymentGateway
from ..money import to_decimal
from ..orders import Order, OrderPaymentMethod, OrderService
from .models import (
    DeliveryMethod,
    EmailFailure,
    Invoice,
    InvoiceCreation,
    InvoiceDispatch,
    InvoiceRequest,
    InvoiceStatus,
)

logger = logging.getLogger(__name__)


class InvoiceRepository(Protocol):
    """Persistence operations required by the invoice orchestrator."""

    def create_invoice(self, invoice: Invoice) -> Invoice:
        ...

    def get_invoice(self, invoice_id: int) -> Optional[Invoice]:
        ...

    def get_by_gateway_invoice_id(self, gateway_invoice_id: str) -> Optional[Invoice]:
        ...

    def list_for_order(self, order_id: int) -> List[Invoice]:
        ...

    def update_public_url(self, invoice_id: int, public_url: str) -> Optional[Invoice]:
        ...

    def update_status(
        self,
        invoice_id: int,
        *,
        status: InvoiceStatus,
        paid_at: Optional[datetime] = None,
    ) -> Optional[Invoice]:
        ...

    def mark_email_sent(self, invoice_id: int, sent_at: datetime) -> Optional[Invoice]:
        ...

    def order_lock(self, order_id: int) -> AbstractContextManager:
        """Serialize invoice creation for one order across processes."""


def build_line_items(order: Order) -> List[GatewayLineItem]:
    """Convert order items and every non-zero fee into gateway line items."""

    lines: List[GatewayLineItem] = []
    for item in order.items:
        quantity, note = _quantity(item.portion_size)
        lines.append(
            GatewayLineItem(
                name=item.name,
                quantity=quantity,
                unit_price_cents=item.price_cents,
                note=item.description or note,
            )
        )
    for label, cents in order.fees.non_zero():
        lines.append(GatewayLineItem(name=label, quantity="1", unit_price_cents=cents))
    return lines


def _quantity(portion_size: Optional[str]) -> Tuple[str, Optional[str]]:
    """Return a gateway quantity for a portion descriptor, keeping free text as a note."""

    raw = (portion_size or "").strip()
    try:
        if raw and float(raw) > 0:
            return raw, None
    except ValueError:
        pass
    return "1", raw or None


def normalize_emails(emails: Iterable[str]) -> List[str]:
    """Trim, drop empties and de-duplicate while keeping first-seen order."""

    seen = set()
    normalized: List[str] = []
    for email in emails:
        candidate = (email or "").strip()
        if not candidate:
            continue
        key = candidate.lower()
        if key in seen:
            continue
        seen.add(key)
        normalized.append(candidate)
    return normalized


@dataclass
class InvoiceService:
    """Creates, publishes, cancels and sends gateway invoices for orders."""

    orders: OrderService
    invoices: InvoiceRepository
    clients: ClientRepository
    resolver: CustomerResolver
    gateway: PaymentGateway
    email_provider: EmailProvider
    currency: str = "USD"
    due_days: int = 30
    schedule_offset_seconds: int = 120
    company_name: str = "Inflight Catering"

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    def get_invoice(self, invoice_id: int) -> Invoice:
        invoice = self.invoices.get_invoice(invoice_id)
        if invoice is None:
            raise NotFoundError("Invoice not found", detail={"invoice_id": invoice_id})
        return invoice

    def list_invoices(self, order_id: int) -> List[Invoice]:
        self.orders.get_order(order_id)
        return self.invoices.list_for_order(order_id)

    def create_invoice(
        self,
        order_id: int,
        request: InvoiceRequest,
        actor_id: Optional[int],
    ) -> InvoiceCreation:
        """Create a gateway invoice for the order, or reuse its unsettled one."""

        with self.invoices.order_lock(order_id):
            order = self.orders.get_order(order_id)
            existing = self.invoices.list_for_order(order_id)

            for candidate in existing:
                if candidate.is_unsettled:
                    reused = self._reuse_unsettled(candidate)
                    if reused is not None:
                        return reused

            return self._create(order, existing, request, actor_id)

    def _reuse_unsettled(self, invoice: Invoice) -> Optional[InvoiceCreation]:
        """Refresh an unsettled invoice from the gateway, or retire it if the gateway lost it."""

        try:
            remote = self.gateway.get_invoice(invoice.gateway_invoice_id)
        except GatewayError:
            logger.error(
                "Could not verify unsettled invoice %s for order %s",
                invoice.gateway_invoice_id,
                invoice.order_id,
                extra={"invoice_id": invoice.id},
            )
            raise

        if remote is None or (remote.status or "").upper() == "CANCELED":
            logger.warning(
                "Gateway invoice %s is gone, superseding local invoice %s",
                invoice.gateway_invoice_id,
                invoice.id,
                extra={"order_id": invoice.order_id},
            )
            self.invoices.update_status(invoice.id, status=InvoiceStatus.CANCELLED)
            return None

        if not remote.is_published:
            try:
                remote = self.gateway.publish_invoice(remote.id, remote.version)
            except GatewayError as exc:
                logger.warning(
                    "Republishing invoice %s failed: %s",
                    remote.id,
                    exc.message,
                    extra={"invoice_id": invoice.id, "gateway_context": exc.context},
                )

        public_url = remote.public_url or invoice.public_url
        if public_url and public_url != invoice.public_url:
            invoice = self.invoices.update_public_url(invoice.id, public_url) or invoice

        logger.info(
            "Reusing unsettled invoice %s for order %s",
            invoice.invoice_number,
            invoice.order_id,
        )
        return InvoiceCreation(invoice=invoice, public_url=public_url, version=remote.version, reused=True)

    def _create(
        self,
        order: Order,
        existing: List[Invoice],
        request: InvoiceRequest,
        actor_id: Optional[int],
    ) -> InvoiceCreation:
        invoice_number = order.order_number
        if existing:
            invoice_number = f"{order.order_number}-{len(existing) + 1}"

        client = self.clients.get_client(order.client_id) if order.client_id is not None else None
        recipient = request.recipient_email or (client.email if client else None)
        if request.delivery_method == DeliveryMethod.EMAIL and not recipient:
            raise ValidationError(
                "A recipient email is required for email delivery",
                detail={"order_id": order.id},
            )

        customer_id = self.resolver.resolve(
            client_id=order.client_id,
            email=recipient,
            display_name=(client.display_name if client else None) or order.client_name or None,
            phone=client.contact_number if client else None,
        )
        if customer_id is None:
            raise GatewayError(
                "Cannot create a billing customer: add an email or phone number to the client record",
                status_code=400,
                context={"order_id": order.id, "client_id": order.client_id},
            )

        sales_order = self.gateway.create_sales_order(
            reference_id=f"INV-{order.id}",
            customer_id=customer_id,
            line_items=build_line_items(order),
            currency=self.currency,
        )

        now = self._now()
        accept_bank_account = (
            request.delivery_method == DeliveryMethod.EMAIL
            and order.payment_method == OrderPaymentMethod.ACH
        )
        remote = self.gateway.create_invoice(
            GatewayInvoiceRequest(
                sales_order_id=sales_order.id,
                customer_id=customer_id,
                invoice_number=invoice_number,
                title=f"Invoice for Order {order.order_number}",
                description=order.description,
                due_date=(now + timedelta(days=self.due_days)).date(),
                scheduled_at=now + timedelta(seconds=self.schedule_offset_seconds),
                sale_or_service_date=order.delivery_date,
                delivery_method=request.delivery_method.value,
                accept_card=True,
                accept_bank_account=accept_bank_account,
                reference_id=str(order.id),
            )
        )

        try:
            invoice = self.invoices.create_invoice(
                Invoice(
                    order_id=order.id,
                    gateway_invoice_id=remote.id,
                    invoice_number=invoice_number,
                    public_url=remote.public_url,
                    reference_id=str(order.id),
                    status=InvoiceStatus.PENDING,
                    amount_cents=order.total_cents,
                    currency=self.currency,
                    delivery_method=request.delivery_method,
                    recipient_email=recipient,
                    created_by=actor_id,
                    created_at=now,
                    updated_at=now,
                )
            )
        except (PersistenceError, ConflictError):
            logger.error(
                "Gateway invoice %s created but local record failed for order %s",
                remote.id,
                order.id,
                extra={"gateway_invoice_id": remote.id, "order_id": order.id},
            )
            raise

        logger.info(
            "Created invoice %s for order %s",
            invoice.invoice_number,
            order.order_number,
            extra={"invoice_id": invoice.id, "gateway_invoice_id": remote.id},
        )
        return InvoiceCreation(invoice=invoice, public_url=remote.public_url, version=remote.version)

    def publish_invoice(self, invoice_id: int, version: int) -> Invoice:
        """Publish the gateway invoice; already-published invoices are left as they are."""

        invoice = self.get_invoice(invoice_id)
        try:
            remote = self.gateway.publish_invoice(invoice.gateway_invoice_id, version)
        except GatewayError as exc:
            current = self._safe_fetch(invoice.gateway_invoice_id)
            if current is not None and current.is_published:
                logger.info(
                    "Invoice %s already published, skipping",
                    invoice.gateway_invoice_id,
                    extra={"invoice_id": invoice.id},
                )
                if current.public_url and current.public_url != invoice.public_url:
                    return self.invoices.update_public_url(invoice.id, current.public_url) or invoice
                return invoice
            logger.error(
                "Publishing invoice %s failed: %s",
                invoice.gateway_invoice_id,
                exc.message,
                extra={"invoice_id": invoice.id, "gateway_context": exc.context},
            )
            raise

        if remote.public_url and remote.public_url != invoice.public_url:
            invoice = self.invoices.update_public_url(invoice.id, remote.public_url) or invoice
        return invoice

    def _safe_fetch(self, gateway_invoice_id: str) -> Optional[GatewayInvoice]:
        try:
            return self.gateway.get_invoice(gateway_invoice_id)
        except GatewayError:
            return None

    def cancel_invoice(self, invoice_id: int, version: Optional[int] = None) -> Invoice:
        invoice = self.get_invoice(invoice_id)
        if invoice.status == InvoiceStatus.PAID:
            raise ConflictError("Cannot cancel a paid invoice", detail={"invoice_id": invoice_id})
        if invoice.status == InvoiceStatus.CANCELLED:
            return invoice

        if version is None:
            remote = self.gateway.get_invoice(invoice.gateway_invoice_id)
            if remote is None:
                raise GatewayError(
                    "Invoice not found in payment gateway",
                    status_code=404,
                    http_status=404,
                    context={"gateway_invoice_id": invoice.gateway_invoice_id},
                )
            version = remote.version

        self.gateway.cancel_invoice(invoice.gateway_invoice_id, version)
        cancelled = self.invoices.update_status(invoice.id, status=InvoiceStatus.CANCELLED)
        logger.info("Cancelled invoice %s", invoice.invoice_number, extra={"invoice_id": invoice.id})
        return cancelled or invoice.model_copy(update={"status": InvoiceStatus.CANCELLED})

    def send_invoice(
        self,
        order_id: int,
        request: InvoiceRequest,
        actor_id: Optional[int],
    ) -> InvoiceDispatch:
        """Create and publish an invoice, then email its link to any extra recipients."""

        creation = self.create_invoice(order_id, request, actor_id)
        invoice = creation.invoice
        public_url = creation.public_url

        if not creation.reused:
            try:
                invoice = self.publish_invoice(invoice.id, creation.version)
                public_url = invoice.public_url or public_url
            except GatewayError as exc:
                logger.warning(
                    "Invoice %s created but publishing failed: %s",
                    invoice.invoice_number,
                    exc.message,
                    extra={"invoice_id": invoice.id},
                )

        sent: List[str] = []
        failed: List[EmailFailure] = []
        extra_recipients = normalize_emails(request.additional_emails)
        if extra_recipients:
            if not public_url:
                failed = [EmailFailure(email=email, error="Invoice has no payment link yet") for email in extra_recipients]
            else:
                order = self.orders.get_order(order_id)
                for email in extra_recipients:
                    try:
                        self._deliver(order, public_url, email)
                    except Exception as exc:  # noqa: BLE001
                        logger.warning("Invoice email to %s failed: %s", email, exc)
                        failed.append(EmailFailure(email=email, error=str(exc)))
                    else:
                        sent.append(email)

        return InvoiceDispatch(
            invoice=invoice,
            public_url=public_url,
            reused=creation.reused,
            additional_emails_sent=sent,
            additional_emails_failed=failed,
        )

    def send_invoice_email(self, order_id: int, invoice_id: int, recipient_email: str) -> Invoice:
        order = self.orders.get_order(order_id)
        invoice = self.invoices.get_invoice(invoice_id)
        if invoice is None or invoice.order_id != order_id:
            raise NotFoundError(
                "Invoice not found for this order",
                detail={"order_id": order_id, "invoice_id": invoice_id},
            )
        if not invoice.public_url:
            raise ValidationError(
                "Invoice has no payment link yet",
                detail={"invoice_id": invoice_id},
            )

        self._deliver(order, invoice.public_url, recipient_email)
        logger.info("Invoice %s emailed to %s", invoice.invoice_number, recipient_email)
        return self.invoices.mark_email_sent(invoice.id, self._now()) or invoice

    def _deliver(self, order: Order, payment_url: str, recipient: str) -> None:
        subject, text_body, html_body = render_invoice_email(
            order_number=order.order_number,
            client_name=order.client_name,
            total=to_decimal(order.total_cents),
            payment_url=payment_url,
            company_name=self.company_name,
            delivery_date=order.delivery_date.isoformat() if order.delivery_date else None,
            items=[(item.name, to_decimal(item.price_cents)) for item in order.items],
        )
        self.email_provider.send_email(recipient, subject, html_body, text_body)


__all__ = [
    "InvoiceRepository",
    "InvoiceService",
    "build_line_items",
    "normalize_emails",
]

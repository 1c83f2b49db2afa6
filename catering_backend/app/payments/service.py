"""Payment ledger, direct charges and stored cards."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Protocol
from uuid import uuid4

from ..errors import ConflictError, GatewayError, NotFoundError, ValidationError
from ..gateway import GatewayPaymentRequest, PaymentGateway
from ..invoices import InvoiceRepository, InvoiceStatus
from ..orders import OrderService
from .models import (
    InvoicePaymentResult,
    PaymentMethod,
    PaymentTransaction,
    ProcessPaymentRequest,
    ProcessPaymentResult,
    StoredCard,
    TransactionStatus,
    status_from_gateway,
)

logger = logging.getLogger(__name__)


class PaymentRepository(Protocol):
    """Persistence operations required by the payment service."""

    def create_transaction(self, transaction: PaymentTransaction) -> Optional[PaymentTransaction]:
        """Insert a ledger row, returning ``None`` for an already-recorded gateway payment id."""

    def get_transaction(self, transaction_id: int) -> Optional[PaymentTransaction]:
        ...

    def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[PaymentTransaction]:
        ...

    def list_transactions_for_order(self, order_id: int) -> List[PaymentTransaction]:
        ...

    def update_transaction_status(
        self,
        transaction_id: int,
        *,
        status: TransactionStatus,
        error_message: Optional[str] = None,
    ) -> Optional[PaymentTransaction]:
        ...

    def create_stored_card(self, card: StoredCard) -> StoredCard:
        ...

    def get_stored_card(self, card_id: int) -> Optional[StoredCard]:
        ...

    def get_stored_card_by_gateway_card_id(self, gateway_card_id: str) -> Optional[StoredCard]:
        ...

    def list_stored_cards(self, client_id: int) -> List[StoredCard]:
        ...

    def set_default_card(self, client_id: int, card_id: int) -> Optional[StoredCard]:
        ...

    def delete_stored_card(self, card_id: int) -> bool:
        ...


@dataclass
class PaymentService:
    """Records money movement and keeps orders and invoices in step with it."""

    repository: PaymentRepository
    orders: OrderService
    invoices: InvoiceRepository
    gateway: PaymentGateway
    currency: str = "USD"

    def _now(self) -> datetime:
        return datetime.now(timezone.utc)

    # Ledger

    def create_transaction(self, transaction: PaymentTransaction) -> PaymentTransaction:
        created = self.repository.create_transaction(transaction)
        if created is None:
            raise ConflictError(
                "Payment already recorded",
                detail={"gateway_payment_id": transaction.gateway_payment_id},
            )
        return created

    def update_transaction_status(
        self,
        transaction_id: int,
        status: TransactionStatus,
        *,
        error_message: Optional[str] = None,
    ) -> PaymentTransaction:
        updated = self.repository.update_transaction_status(
            transaction_id, status=status, error_message=error_message
        )
        if updated is None:
            raise NotFoundError("Payment transaction not found", detail={"transaction_id": transaction_id})
        return updated

    def find_transactions_by_order_id(self, order_id: int) -> List[PaymentTransaction]:
        return self.repository.list_transactions_for_order(order_id)

    def get_transaction(self, transaction_id: int) -> PaymentTransaction:
        transaction = self.repository.get_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError("Payment transaction not found", detail={"transaction_id": transaction_id})
        return transaction

    def process_invoice_payment(
        self,
        gateway_invoice_id: str,
        gateway_payment_id: str,
        amount_cents: int,
        *,
        order_id: Optional[int] = None,
    ) -> InvoicePaymentResult:
        """Settle a gateway invoice payment.

        Safe to call repeatedly for the same payment: the ledger row is written
        once, while the order and invoice are converged to ``paid`` on every
        call so an earlier partial failure is completed by a redelivery.
        """

        invoice = self.invoices.get_by_gateway_invoice_id(gateway_invoice_id)
        resolved_order_id = invoice.order_id if invoice is not None else order_id
        if resolved_order_id is None:
            raise ValidationError(
                "No order matches the paid invoice",
                detail={"gateway_invoice_id": gateway_invoice_id},
            )
        order = self.orders.get_order(resolved_order_id)

        transaction = self.repository.create_transaction(
            PaymentTransaction(
                order_id=order.id,
                gateway_payment_id=gateway_payment_id,
                amount_cents=amount_cents,
                currency=invoice.currency if invoice is not None else self.currency,
                payment_method=PaymentMethod.OTHER,
                status=TransactionStatus.COMPLETED,
                processed_by=None,
            )
        )
        duplicate = transaction is None
        if duplicate:
            transaction = self.repository.get_by_gateway_payment_id(gateway_payment_id)
            if transaction is None:
                raise ConflictError(
                    "Payment already recorded but could not be loaded",
                    detail={"gateway_payment_id": gateway_payment_id},
                )
            logger.info(
                "Payment %s already recorded, converging order %s",
                gateway_payment_id,
                order.order_number,
            )

        paid_order = self.orders.mark_paid(order.id)

        if invoice is not None and invoice.status != InvoiceStatus.PAID:
            invoice = self.invoices.update_status(
                invoice.id, status=InvoiceStatus.PAID, paid_at=self._now()
            ) or invoice

        if not duplicate:
            logger.info(
                "Invoice payment %s settled order %s",
                gateway_payment_id,
                order.order_number,
                extra={"order_id": order.id, "amount_cents": amount_cents},
            )
        return InvoicePaymentResult(
            transaction=transaction,
            order=paid_order,
            invoice=invoice,
            duplicate=duplicate,
        )

    # Direct charges

    def process_payment(self, request: ProcessPaymentRequest, actor_id: Optional[int]) -> ProcessPaymentResult:
        order = self.orders.get_order(request.order_id)

        existing = self.repository.list_transactions_for_order(order.id)
        if any(txn.status == TransactionStatus.COMPLETED for txn in existing):
            raise ConflictError("Order has already been paid", detail={"order_id": order.id})

        source_id = request.source_id
        customer_id = request.customer_id
        if request.stored_card_id is not None:
            card = self.repository.get_stored_card(request.stored_card_id)
            if card is None:
                raise NotFoundError("Stored card not found", detail={"card_id": request.stored_card_id})
            source_id = card.gateway_card_id
            customer_id = card.gateway_customer_id
        if not source_id:
            raise ValidationError("A payment source or stored card is required")

        logger.info(
            "Processing payment for order %s",
            order.order_number,
            extra={"order_id": order.id, "amount_cents": request.amount_cents},
        )
        try:
            payment = self.gateway.create_payment(
                GatewayPaymentRequest(
                    source_id=source_id,
                    amount_cents=request.amount_cents,
                    currency=self.currency,
                    idempotency_key=request.idempotency_key,
                    customer_id=customer_id,
                    reference_id=str(order.id),
                    note=f"Payment for order {order.order_number}",
                )
            )
        except GatewayError as exc:
            logger.error(
                "Payment for order %s failed: %s",
                order.order_number,
                exc.message,
                extra={"order_id": order.id, "gateway_code": exc.gateway_code, "gateway_context": exc.context},
            )
            failed = self.repository.create_transaction(
                PaymentTransaction(
                    order_id=order.id,
                    gateway_payment_id=f"failed_{uuid4()}",
                    amount_cents=request.amount_cents,
                    currency=self.currency,
                    payment_method=request.payment_method,
                    status=TransactionStatus.FAILED,
                    error_message=exc.message,
                    processed_by=actor_id,
                )
            )
            return ProcessPaymentResult(
                success=False,
                transaction=failed,
                error=exc.message,
                gateway_error_code=exc.gateway_code,
            )

        status = status_from_gateway(payment.status)
        transaction = self.repository.create_transaction(
            PaymentTransaction(
                order_id=order.id,
                gateway_payment_id=payment.id,
                amount_cents=request.amount_cents,
                currency=payment.currency or self.currency,
                payment_method=request.payment_method,
                card_last_4=payment.card_last_4,
                card_brand=payment.card_brand,
                status=status,
                gateway_customer_id=customer_id or payment.customer_id,
                gateway_card_id=payment.card_id,
                error_message="Payment failed" if status == TransactionStatus.FAILED else None,
                processed_by=actor_id,
            )
        )
        if transaction is None:
            transaction = self.repository.get_by_gateway_payment_id(payment.id)

        if status == TransactionStatus.COMPLETED:
            self.orders.mark_paid(order.id)

        stored_card = None
        if request.store_card and customer_id and payment.card_id and order.client_id is not None:
            stored_card = self.store_card_from_payment(
                client_id=order.client_id,
                gateway_customer_id=customer_id,
                gateway_card_id=payment.card_id,
                card_last_4=payment.card_last_4 or "",
                card_brand=payment.card_brand or "Unknown",
                card_exp_month=payment.card_exp_month,
                card_exp_year=payment.card_exp_year,
                is_default=request.make_default,
            )

        return ProcessPaymentResult(
            success=status == TransactionStatus.COMPLETED,
            transaction=transaction,
            stored_card=stored_card,
            error="Payment failed" if status == TransactionStatus.FAILED else None,
        )

    # Stored cards

    def store_card_from_payment(
        self,
        *,
        client_id: int,
        gateway_customer_id: str,
        gateway_card_id: str,
        card_last_4: str,
        card_brand: str,
        card_exp_month: Optional[int] = None,
        card_exp_year: Optional[int] = None,
        is_default: bool = False,
    ) -> StoredCard:
        existing = self.repository.get_stored_card_by_gateway_card_id(gateway_card_id)
        if existing is not None:
            if is_default and not existing.is_default:
                return self.repository.set_default_card(existing.client_id, existing.id) or existing
            return existing
        return self.repository.create_stored_card(
            StoredCard(
                client_id=client_id,
                gateway_customer_id=gateway_customer_id,
                gateway_card_id=gateway_card_id,
                card_last_4=card_last_4,
                card_brand=card_brand,
                card_exp_month=card_exp_month,
                card_exp_year=card_exp_year,
                is_default=is_default,
            )
        )

    def list_stored_cards(self, client_id: int) -> List[StoredCard]:
        return self.repository.list_stored_cards(client_id)

    def set_default_card(self, card_id: int) -> StoredCard:
        card = self.repository.get_stored_card(card_id)
        if card is None:
            raise NotFoundError("Stored card not found", detail={"card_id": card_id})
        updated = self.repository.set_default_card(card.client_id, card.id)
        if updated is None:
            raise NotFoundError("Stored card not found", detail={"card_id": card_id})
        return updated

    def delete_stored_card(self, card_id: int) -> None:
        if not self.repository.delete_stored_card(card_id):
            raise NotFoundError("Stored card not found", detail={"card_id": card_id})


__all__ = ["PaymentRepository", "PaymentService"]

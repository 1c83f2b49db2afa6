"""API schemas for payment and stored-card endpoints."""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field

from ..money import to_cents, to_decimal
from ..payments import (
    PaymentMethod,
    PaymentTransaction,
    ProcessPaymentRequest,
    ProcessPaymentResult,
    StoredCard,
    TransactionStatus,
)


class ProcessPaymentIn(BaseModel):
    amount: Decimal = Field(gt=0, decimal_places=2)
    payment_method: PaymentMethod = PaymentMethod.CARD
    source_id: Optional[str] = None
    idempotency_key: str = Field(min_length=1, max_length=45)
    stored_card_id: Optional[int] = None
    store_card: bool = False
    make_default: bool = False
    customer_id: Optional[str] = None

    def to_request(self, order_id: int) -> ProcessPaymentRequest:
        return ProcessPaymentRequest(
            order_id=order_id,
            amount_cents=to_cents(self.amount),
            payment_method=self.payment_method,
            source_id=self.source_id,
            idempotency_key=self.idempotency_key,
            stored_card_id=self.stored_card_id,
            store_card=self.store_card,
            make_default=self.make_default,
            customer_id=self.customer_id,
        )


class TransactionOut(BaseModel):
    id: Optional[int] = None
    order_id: int
    gateway_payment_id: str
    amount: Decimal
    currency: str
    payment_method: PaymentMethod
    card_last_4: Optional[str] = None
    card_brand: Optional[str] = None
    status: TransactionStatus
    error_message: Optional[str] = None
    processed_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_transaction(cls, transaction: PaymentTransaction) -> "TransactionOut":
        return cls(
            id=transaction.id,
            order_id=transaction.order_id,
            gateway_payment_id=transaction.gateway_payment_id,
            amount=to_decimal(transaction.amount_cents),
            currency=transaction.currency,
            payment_method=transaction.payment_method,
            card_last_4=transaction.card_last_4,
            card_brand=transaction.card_brand,
            status=transaction.status,
            error_message=transaction.error_message,
            processed_by=transaction.processed_by,
            created_at=transaction.created_at,
            updated_at=transaction.updated_at,
        )


class StoredCardOut(BaseModel):
    id: Optional[int] = None
    client_id: int
    card_last_4: str
    card_brand: str
    card_exp_month: Optional[int] = None
    card_exp_year: Optional[int] = None
    is_default: bool

    @classmethod
    def from_card(cls, card: StoredCard) -> "StoredCardOut":
        return cls(
            id=card.id,
            client_id=card.client_id,
            card_last_4=card.card_last_4,
            card_brand=card.card_brand,
            card_exp_month=card.card_exp_month,
            card_exp_year=card.card_exp_year,
            is_default=card.is_default,
        )


class ProcessPaymentOut(BaseModel):
    success: bool
    transaction: Optional[TransactionOut] = None
    stored_card: Optional[StoredCardOut] = None
    error: Optional[str] = None
    gateway_error_code: Optional[str] = None

    @classmethod
    def from_result(cls, result: ProcessPaymentResult) -> "ProcessPaymentOut":
        return cls(
            success=result.success,
            transaction=TransactionOut.from_transaction(result.transaction) if result.transaction else None,
            stored_card=StoredCardOut.from_card(result.stored_card) if result.stored_card else None,
            error=result.error,
            gateway_error_code=result.gateway_error_code,
        )


class TransactionListResponse(BaseModel):
    transactions: List[TransactionOut]


class StoredCardListResponse(BaseModel):
    cards: List[StoredCardOut]


__all__ = [
    "ProcessPaymentIn",
    "ProcessPaymentOut",
    "StoredCardListResponse",
    "StoredCardOut",
    "TransactionListResponse",
    "TransactionOut",
]

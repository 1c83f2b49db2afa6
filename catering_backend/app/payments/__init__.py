"""Payment domain package: the money-movement ledger and stored cards."""

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
from .repository import PostgresPaymentRepository
from .service import PaymentRepository, PaymentService

__all__ = [
    "InvoicePaymentResult",
    "PaymentMethod",
    "PaymentRepository",
    "PaymentService",
    "PaymentTransaction",
    "PostgresPaymentRepository",
    "ProcessPaymentRequest",
    "ProcessPaymentResult",
    "StoredCard",
    "TransactionStatus",
    "status_from_gateway",
]

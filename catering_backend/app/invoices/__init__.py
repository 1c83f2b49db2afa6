"""Invoice domain package: gateway invoice orchestration for orders."""

from .models import (
    UNSETTLED_STATUSES,
    DeliveryMethod,
    EmailFailure,
    Invoice,
    InvoiceCreation,
    InvoiceDispatch,
    InvoiceRequest,
    InvoiceStatus,
)
from .repository import PostgresInvoiceRepository
from .service import InvoiceRepository, InvoiceService, build_line_items, normalize_emails

__all__ = [
    "DeliveryMethod",
    "EmailFailure",
    "Invoice",
    "InvoiceCreation",
    "InvoiceDispatch",
    "InvoiceRepository",
    "InvoiceRequest",
    "InvoiceService",
    "InvoiceStatus",
    "PostgresInvoiceRepository",
    "UNSETTLED_STATUSES",
    "build_line_items",
    "normalize_emails",
]

"""Billing gateway package: normalized models, the Square adapter and a local sandbox."""

from .base import PaymentGateway
from .config import GatewayConfig, load_gateway_config
from .models import (
    PUBLISHED_INVOICE_STATUSES,
    GatewayCustomer,
    GatewayCustomerRequest,
    GatewayInvoice,
    GatewayInvoiceRequest,
    GatewayLineItem,
    GatewayPayment,
    GatewayPaymentRequest,
    GatewaySalesOrder,
)
from .sandbox import LocalSandboxGateway
from .square import SquareGateway

__all__ = [
    "GatewayConfig",
    "GatewayCustomer",
    "GatewayCustomerRequest",
    "GatewayInvoice",
    "GatewayInvoiceRequest",
    "GatewayLineItem",
    "GatewayPayment",
    "GatewayPaymentRequest",
    "GatewaySalesOrder",
    "LocalSandboxGateway",
    "PUBLISHED_INVOICE_STATUSES",
    "PaymentGateway",
    "SquareGateway",
    "load_gateway_config",
]

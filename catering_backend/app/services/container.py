"""Application wiring for the order-to-cash services."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ...mail import EmailConfig, EmailProvider, create_email_provider, load_email_config
from ..customers import ClientRepository, CustomerResolver, PostgresClientRepository
from ..gateway import GatewayConfig, LocalSandboxGateway, PaymentGateway, SquareGateway, load_gateway_config
from ..invoices import InvoiceRepository, InvoiceService, PostgresInvoiceRepository
from ..orders import OrderRepository, OrderService, PostgresOrderRepository
from ..payments import PaymentRepository, PaymentService, PostgresPaymentRepository
from ..webhooks import PostgresWebhookEventRepository, WebhookEventRepository, WebhookHandler

logger = logging.getLogger("services")


@dataclass
class ServiceContainer:
    """Services shared by every request, built once per application."""

    orders: OrderService
    invoices: InvoiceService
    payments: PaymentService
    webhooks: WebhookHandler
    resolver: CustomerResolver
    gateway: PaymentGateway
    email_provider: EmailProvider


def create_gateway(config: GatewayConfig) -> PaymentGateway:
    if config.is_configured:
        if not config.location_id:
            logger.warning("SQUARE_LOCATION_ID is not set; Square order and payment calls will fail")
        logger.info("Using Square gateway (%s)", config.environment)
        return SquareGateway(config)
    logger.warning("SQUARE_ACCESS_TOKEN is not set; using the local sandbox gateway")
    return LocalSandboxGateway()


def build_container(
    *,
    gateway_config: Optional[GatewayConfig] = None,
    email_config: Optional[EmailConfig] = None,
    order_repository: Optional[OrderRepository] = None,
    client_repository: Optional[ClientRepository] = None,
    invoice_repository: Optional[InvoiceRepository] = None,
    payment_repository: Optional[PaymentRepository] = None,
    webhook_event_repository: Optional[WebhookEventRepository] = None,
    gateway: Optional[PaymentGateway] = None,
    email_provider: Optional[EmailProvider] = None,
) -> ServiceContainer:
    """Build the service graph; any collaborator can be supplied to override the default."""

    gateway_config = gateway_config or load_gateway_config()
    email_config = email_config or load_email_config()

    gateway = gateway or create_gateway(gateway_config)
    email_provider = email_provider or create_email_provider(email_config)
    clients = client_repository or PostgresClientRepository()
    invoices = invoice_repository or PostgresInvoiceRepository()

    orders = OrderService(repository=order_repository or PostgresOrderRepository())
    resolver = CustomerResolver(clients=clients, gateway=gateway)
    invoice_service = InvoiceService(
        orders=orders,
        invoices=invoices,
        clients=clients,
        resolver=resolver,
        gateway=gateway,
        email_provider=email_provider,
        currency=gateway_config.currency,
        due_days=gateway_config.invoice_due_days,
        schedule_offset_seconds=gateway_config.invoice_schedule_offset_seconds,
        company_name=email_config.company_name,
    )
    payment_service = PaymentService(
        repository=payment_repository or PostgresPaymentRepository(),
        orders=orders,
        invoices=invoices,
        gateway=gateway,
        currency=gateway_config.currency,
    )
    webhooks = WebhookHandler(
        payments=payment_service,
        events=webhook_event_repository or PostgresWebhookEventRepository(),
        signature_key=gateway_config.webhook_signature_key,
        subscription_id=gateway_config.webhook_subscription_id,
        require_signature=gateway_config.webhook_require_signature,
        dedupe_events=gateway_config.webhook_dedupe_events,
    )
    return ServiceContainer(
        orders=orders,
        invoices=invoice_service,
        payments=payment_service,
        webhooks=webhooks,
        resolver=resolver,
        gateway=gateway,
        email_provider=email_provider,
    )


__all__ = ["ServiceContainer", "build_container", "create_gateway"]

"""Maps local clients onto gateway customer identities."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from ..errors import GatewayError, PersistenceError
from ..gateway import GatewayCustomerRequest, PaymentGateway
from .models import Client

logger = logging.getLogger(__name__)


class ClientRepository(Protocol):
    """Persistence operations required by the customer resolver."""

    def get_client(self, client_id: int) -> Optional[Client]:
        ...

    def update_gateway_customer_id(self, client_id: int, gateway_customer_id: str) -> Optional[Client]:
        ...


def _same_email(left: Optional[str], right: Optional[str]) -> bool:
    return bool(left and right) and left.strip().lower() == right.strip().lower()


@dataclass
class CustomerResolver:
    """Returns a gateway customer id for a client, creating one if needed.

    Resolution order: the id cached on the client, an exact-email search on
    the gateway, then a new gateway customer. Gateway customers are never
    merged or deleted.
    """

    clients: ClientRepository
    gateway: PaymentGateway

    def resolve(
        self,
        client_id: Optional[int] = None,
        email: Optional[str] = None,
        display_name: Optional[str] = None,
        phone: Optional[str] = None,
    ) -> Optional[str]:
        client = self.clients.get_client(client_id) if client_id is not None else None

        if client is not None and client.gateway_customer_id:
            if not email or _same_email(email, client.email):
                return client.gateway_customer_id
            logger.info(
                "Client %s invoice email differs from stored email, resolving by email",
                client.id,
            )

        if email:
            try:
                existing = self.gateway.search_customers_by_email(email)
            except GatewayError as exc:
                logger.warning(
                    "Customer search failed, continuing with creation: %s",
                    exc.message,
                    extra={"client_id": client_id, "gateway_context": exc.context},
                )
                existing = None
            if existing is not None:
                self._cache(client_id, existing.id)
                return existing.id

        if not email and not phone:
            return None

        created = self.gateway.create_customer(
            GatewayCustomerRequest(
                given_name=display_name or "Client",
                family_name=f"#{client_id}" if client_id is not None else "Customer",
                email=email,
                phone=phone,
                reference_id=str(client_id) if client_id is not None else None,
                note=f"Client ID: {client_id}" if client_id is not None else None,
            )
        )
        logger.info("Created gateway customer %s for client %s", created.id, client_id)
        self._cache(client_id, created.id)
        return created.id

    def _cache(self, client_id: Optional[int], gateway_customer_id: str) -> None:
        if client_id is None:
            return
        try:
            self.clients.update_gateway_customer_id(client_id, gateway_customer_id)
        except PersistenceError:
            logger.exception(
                "Failed to cache gateway customer %s on client %s",
                gateway_customer_id,
                client_id,
            )


__all__ = ["ClientRepository", "CustomerResolver"]

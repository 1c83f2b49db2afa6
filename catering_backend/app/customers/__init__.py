"""Client domain package: client records and gateway customer resolution."""

from .models import Client
from .repository import PostgresClientRepository
from .resolver import ClientRepository, CustomerResolver

__all__ = [
    "Client",
    "ClientRepository",
    "CustomerResolver",
    "PostgresClientRepository",
]

"""Domain errors raised by the order-to-cash services."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from fastapi import status


class ServiceError(Exception):
    """Represents an actionable failure surfaced to API callers."""

    code = "internal_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        detail: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.detail = dict(detail or {})

    @property
    def payload(self) -> Mapping[str, Any]:
        """Serialized representation suitable for JSON responses."""

        base: Dict[str, Any] = {"error": self.code, "message": self.message}
        if self.detail:
            base.update(self.detail)
        return base


class ValidationError(ServiceError):
    code = "validation_error"
    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(ServiceError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(ServiceError):
    code = "conflict"
    status_code = status.HTTP_409_CONFLICT


class AuthError(ServiceError):
    code = "unauthorized"
    status_code = status.HTTP_401_UNAUTHORIZED


class PersistenceError(ServiceError):
    code = "persistence_error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class GatewayError(ServiceError):
    """Failure talking to the billing gateway.

    ``message`` is safe to show to API callers. ``gateway_code`` and
    ``context`` carry the raw gateway details and are only logged.
    """

    code = "gateway_error"
    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        gateway_code: Optional[str] = None,
        http_status: Optional[int] = None,
        context: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.gateway_code = gateway_code
        self.http_status = http_status
        self.context = dict(context or {})

    @property
    def is_not_found(self) -> bool:
        return self.http_status == status.HTTP_404_NOT_FOUND


__all__ = [
    "AuthError",
    "ConflictError",
    "GatewayError",
    "NotFoundError",
    "PersistenceError",
    "ServiceError",
    "ValidationError",
]

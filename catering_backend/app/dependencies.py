"""FastAPI dependencies shared by the routers."""
from __future__ import annotations

from typing import Optional

from fastapi import Header, Request

from .errors import AuthError
from .services.container import ServiceContainer


def get_services(request: Request) -> ServiceContainer:
    return request.app.state.services


def get_actor_id(
    x_admin_user_id: Optional[str] = Header(default=None, alias="X-Admin-User-Id"),
) -> int:
    """Return the admin id forwarded by the upstream auth layer."""

    if not x_admin_user_id:
        raise AuthError("Authentication required")
    try:
        return int(x_admin_user_id)
    except ValueError as exc:
        raise AuthError("Invalid admin user id") from exc


__all__ = ["get_actor_id", "get_services"]

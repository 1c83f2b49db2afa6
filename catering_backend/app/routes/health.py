"""Liveness endpoint."""
from __future__ import annotations

from typing import Dict

from fastapi import APIRouter, Depends

from ..dependencies import get_services
from ..services.container import ServiceContainer

router = APIRouter(tags=["health"])


@router.get("/health")
def health(services: ServiceContainer = Depends(get_services)) -> Dict[str, str]:
    return {
        "status": "ok",
        "gateway": type(services.gateway).__name__,
        "email_provider": services.email_provider.name,
    }

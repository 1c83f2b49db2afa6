"""Inbound gateway webhook routes."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from ..dependencies import get_services
from ..errors import ServiceError
from ..schemas.webhooks import WebhookAck
from ..services.container import ServiceContainer

logger = logging.getLogger("webhooks.square")

router = APIRouter(prefix="/webhooks", tags=["webhooks"])


async def _receive(
    request: Request,
    services: ServiceContainer,
    signature: Optional[str],
    subscription_id: Optional[str],
):
    raw_body = await request.body()
    try:
        outcome = await run_in_threadpool(
            services.webhooks.handle,
            raw_body,
            signature,
            subscription_id=subscription_id,
        )
    except ServiceError:
        raise
    except Exception:
        logger.exception("Webhook processing failed")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "internal_error", "message": "Failed to process webhook"},
        )
    return WebhookAck.from_outcome(outcome)


@router.post("/square", response_model=WebhookAck)
async def receive_square_webhook(
    request: Request,
    services: ServiceContainer = Depends(get_services),
    x_square_signature: Optional[str] = Header(default=None),
    x_square_subscription_id: Optional[str] = Header(default=None),
):
    return await _receive(request, services, x_square_signature, x_square_subscription_id)


@router.post("/square/invoices", response_model=WebhookAck, deprecated=True)
async def receive_square_invoice_webhook(
    request: Request,
    services: ServiceContainer = Depends(get_services),
    x_square_signature: Optional[str] = Header(default=None),
    x_square_subscription_id: Optional[str] = Header(default=None),
):
    return await _receive(request, services, x_square_signature, x_square_subscription_id)

"""API routes for creating, sending and cancelling order invoices."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends

from ..dependencies import get_actor_id, get_services
from ..schemas.invoices import (
    CancelInvoiceRequest,
    CreateInvoiceRequest,
    CreateInvoiceResponse,
    InvoiceActionResponse,
    InvoiceListResponse,
    InvoiceOut,
    SendInvoiceRequest,
)
from ..services.container import ServiceContainer

router = APIRouter(tags=["invoices"])


@router.post("/orders/{order_id}/invoices", response_model=CreateInvoiceResponse)
def create_order_invoice(
    order_id: int,
    payload: CreateInvoiceRequest,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> CreateInvoiceResponse:
    dispatch = services.invoices.send_invoice(order_id, payload.to_request(), actor_id)
    return CreateInvoiceResponse.from_dispatch(dispatch)


@router.get("/orders/{order_id}/invoices", response_model=InvoiceListResponse)
def list_order_invoices(
    order_id: int,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> InvoiceListResponse:
    invoices = services.invoices.list_invoices(order_id)
    return InvoiceListResponse(invoices=[InvoiceOut.from_invoice(invoice) for invoice in invoices])


@router.post("/orders/{order_id}/invoices/send", response_model=InvoiceActionResponse)
def send_order_invoice(
    order_id: int,
    payload: SendInvoiceRequest,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> InvoiceActionResponse:
    invoice = services.invoices.send_invoice_email(order_id, payload.invoice_id, str(payload.recipient_email))
    return InvoiceActionResponse(
        invoice=InvoiceOut.from_invoice(invoice),
        message=f"Invoice sent to {payload.recipient_email}",
    )


@router.get("/invoices/{invoice_id}", response_model=InvoiceOut)
def get_invoice(
    invoice_id: int,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> InvoiceOut:
    return InvoiceOut.from_invoice(services.invoices.get_invoice(invoice_id))


@router.post("/invoices/{invoice_id}/cancel", response_model=InvoiceActionResponse)
def cancel_invoice(
    invoice_id: int,
    payload: Optional[CancelInvoiceRequest] = Body(default=None),
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> InvoiceActionResponse:
    version = payload.version if payload is not None else None
    invoice = services.invoices.cancel_invoice(invoice_id, version=version)
    return InvoiceActionResponse(invoice=InvoiceOut.from_invoice(invoice), message="Invoice cancelled")

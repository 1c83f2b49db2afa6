"""API routes for direct payments and stored cards."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_actor_id, get_services
from ..schemas.payments import (
    ProcessPaymentIn,
    ProcessPaymentOut,
    StoredCardListResponse,
    StoredCardOut,
    TransactionListResponse,
    TransactionOut,
)
from ..services.container import ServiceContainer

router = APIRouter(tags=["payments"])


@router.post("/orders/{order_id}/payments", response_model=ProcessPaymentOut)
def process_order_payment(
    order_id: int,
    payload: ProcessPaymentIn,
    response: Response,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> ProcessPaymentOut:
    result = services.payments.process_payment(payload.to_request(order_id), actor_id)
    if not result.success:
        response.status_code = status.HTTP_402_PAYMENT_REQUIRED
    return ProcessPaymentOut.from_result(result)


@router.get("/orders/{order_id}/payments", response_model=TransactionListResponse)
def list_order_payments(
    order_id: int,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> TransactionListResponse:
    services.orders.get_order(order_id)
    transactions = services.payments.find_transactions_by_order_id(order_id)
    return TransactionListResponse(
        transactions=[TransactionOut.from_transaction(txn) for txn in transactions]
    )


@router.get("/clients/{client_id}/cards", response_model=StoredCardListResponse)
def list_client_cards(
    client_id: int,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> StoredCardListResponse:
    cards = services.payments.list_stored_cards(client_id)
    return StoredCardListResponse(cards=[StoredCardOut.from_card(card) for card in cards])


@router.post("/cards/{card_id}/default", response_model=StoredCardOut)
def set_default_card(
    card_id: int,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> StoredCardOut:
    return StoredCardOut.from_card(services.payments.set_default_card(card_id))


@router.delete("/cards/{card_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_card(
    card_id: int,
    services: ServiceContainer = Depends(get_services),
    actor_id: int = Depends(get_actor_id),
) -> Response:
    services.payments.delete_stored_card(card_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

"""Square REST adapter implementing :class:`PaymentGateway`."""
from __future__ import annotations

import logging
import time
from datetime import timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence
from uuid import uuid4

import httpx

from ..errors import GatewayError
from .config import GatewayConfig
from .models import (
    GatewayCustomer,
    GatewayCustomerRequest,
    GatewayInvoice,
    GatewayInvoiceRequest,
    GatewayLineItem,
    GatewayPayment,
    GatewayPaymentRequest,
    GatewaySalesOrder,
)

logger = logging.getLogger("gateway.square")

_RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


def _customer_from_payload(payload: Mapping[str, Any]) -> GatewayCustomer:
    return GatewayCustomer(
        id=str(payload["id"]),
        email=payload.get("email_address"),
        given_name=payload.get("given_name"),
        family_name=payload.get("family_name"),
    )


def _invoice_from_payload(payload: Mapping[str, Any]) -> GatewayInvoice:
    return GatewayInvoice(
        id=str(payload["id"]),
        version=int(payload.get("version") or 0),
        status=payload.get("status"),
        public_url=payload.get("public_url"),
        invoice_number=payload.get("invoice_number"),
    )


def _payment_from_payload(payload: Mapping[str, Any]) -> GatewayPayment:
    money = payload.get("amount_money") or {}
    card = (payload.get("card_details") or {}).get("card") or {}
    return GatewayPayment(
        id=str(payload["id"]),
        status=str(payload.get("status") or "PENDING"),
        amount_cents=int(money.get("amount") or 0),
        currency=money.get("currency") or "USD",
        customer_id=payload.get("customer_id"),
        card_id=card.get("id"),
        card_last_4=card.get("last_4"),
        card_brand=card.get("card_brand"),
        card_exp_month=card.get("exp_month"),
        card_exp_year=card.get("exp_year"),
        receipt_url=payload.get("receipt_url"),
    )


def _first_error(body: Any) -> Dict[str, Any]:
    if isinstance(body, Mapping):
        errors = body.get("errors") or []
        if errors and isinstance(errors[0], Mapping):
            return dict(errors[0])
    return {}


class SquareGateway:
    """Talks to the Square v2 REST API over a shared :class:`httpx.Client`.

    Reads (invoice lookup, customer search) are retried with exponential
    backoff on transport errors, 429 and 5xx responses. Creation calls carry a
    fresh idempotency key and are attempted exactly once.
    """

    def __init__(
        self,
        config: GatewayConfig,
        *,
        client: Optional[httpx.Client] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if not config.access_token:
            raise ValueError("SQUARE_ACCESS_TOKEN is required for the Square gateway")
        self.config = config
        self._sleep = sleep
        self._client = client or httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout_seconds,
        )
        self._headers = {
            "Authorization": f"Bearer {config.access_token}",
            "Square-Version": config.api_version,
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def close(self) -> None:
        self._client.close()

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        json: Optional[Mapping[str, Any]] = None,
        retry: bool = False,
    ) -> Dict[str, Any]:
        attempts = self.config.max_attempts if retry else 1
        attempt = 1
        while True:
            try:
                response = self._client.request(method, path, json=json, headers=self._headers)
            except httpx.TransportError as exc:
                if attempt < attempts:
                    self._back_off(operation, attempt, str(exc))
                    attempt += 1
                    continue
                logger.error(
                    "Square %s failed: %s",
                    operation,
                    exc,
                    extra={"gateway_operation": operation, "gateway_path": path},
                )
                raise GatewayError(
                    "Payment gateway is unavailable",
                    context={"operation": operation, "error": str(exc)},
                ) from exc

            if response.status_code in _RETRYABLE_STATUS and attempt < attempts:
                self._back_off(operation, attempt, f"HTTP {response.status_code}")
                attempt += 1
                continue
            return self._parse(response, operation=operation)

    def _back_off(self, operation: str, attempt: int, reason: str) -> None:
        delay = self.config.backoff_seconds * (2 ** (attempt - 1))
        logger.warning(
            "Square %s attempt %s failed (%s), retrying in %.2fs",
            operation,
            attempt,
            reason,
            delay,
            extra={"gateway_operation": operation, "gateway_attempt": attempt},
        )
        self._sleep(delay)

    def _parse(self, response: httpx.Response, *, operation: str) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}

        if response.is_success:
            return body if isinstance(body, dict) else {}

        error = _first_error(body)
        logger.error(
            "Square %s returned HTTP %s: %s",
            operation,
            response.status_code,
            error.get("detail") or response.text[:200],
            extra={
                "gateway_operation": operation,
                "gateway_status": response.status_code,
                "gateway_code": error.get("code"),
            },
        )
        raise GatewayError(
            f"Payment gateway rejected {operation.replace('_', ' ')}",
            gateway_code=error.get("code"),
            http_status=response.status_code,
            context={"operation": operation, "detail": error.get("detail"), "errors": body},
        )

    def search_customers_by_email(self, email: str) -> Optional[GatewayCustomer]:
        body = self._request(
            "POST",
            "/v2/customers/search",
            operation="search_customers",
            json={"query": {"filter": {"email_address": {"exact": email}}}, "limit": 1},
            retry=True,
        )
        customers = body.get("customers") or []
        if not customers:
            return None
        return _customer_from_payload(customers[0])

    def create_customer(self, request: GatewayCustomerRequest) -> GatewayCustomer:
        payload: Dict[str, Any] = {
            "idempotency_key": str(uuid4()),
            "given_name": request.given_name,
            "family_name": request.family_name,
        }
        if request.email:
            payload["email_address"] = request.email
        if request.phone:
            payload["phone_number"] = request.phone
        if request.reference_id:
            payload["reference_id"] = request.reference_id
        if request.note:
            payload["note"] = request.note
        body = self._request("POST", "/v2/customers", operation="create_customer", json=payload)
        return _customer_from_payload(body["customer"])

    def create_sales_order(
        self,
        *,
        reference_id: str,
        customer_id: str,
        line_items: Sequence[GatewayLineItem],
        currency: str,
    ) -> GatewaySalesOrder:
        items: List[Dict[str, Any]] = []
        for line in line_items:
            item: Dict[str, Any] = {
                "name": line.name,
                "quantity": line.quantity,
                "base_price_money": {"amount": line.unit_price_cents, "currency": currency},
            }
            if line.note:
                item["note"] = line.note
            items.append(item)

        body = self._request(
            "POST",
            "/v2/orders",
            operation="create_order",
            json={
                "idempotency_key": str(uuid4()),
                "order": {
                    "location_id": self.config.location_id,
                    "reference_id": reference_id,
                    "customer_id": customer_id,
                    "line_items": items,
                },
            },
        )
        order = body["order"]
        total = (order.get("total_money") or {}).get("amount")
        return GatewaySalesOrder(
            id=str(order["id"]),
            reference_id=order.get("reference_id"),
            total_cents=int(total) if total is not None else None,
        )

    def create_invoice(self, request: GatewayInvoiceRequest) -> GatewayInvoice:
        scheduled_at = request.scheduled_at.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        invoice: Dict[str, Any] = {
            "location_id": self.config.location_id,
            "order_id": request.sales_order_id,
            "primary_recipient": {"customer_id": request.customer_id},
            "payment_requests": [
                {
                    "request_type": "BALANCE",
                    "due_date": request.due_date.isoformat(),
                    "tipping_enabled": False,
                }
            ],
            "delivery_method": request.delivery_method,
            "invoice_number": request.invoice_number,
            "title": request.title,
            "scheduled_at": scheduled_at,
            "accepted_payment_methods": {
                "card": request.accept_card,
                "bank_account": request.accept_bank_account,
                "square_gift_card": False,
                "buy_now_pay_later": False,
                "cash_app_pay": False,
            },
        }
        if request.description:
            invoice["description"] = request.description
        if request.sale_or_service_date:
            invoice["sale_or_service_date"] = request.sale_or_service_date.isoformat()
        if request.reference_id:
            invoice["reference_id"] = request.reference_id

        body = self._request(
            "POST",
            "/v2/invoices",
            operation="create_invoice",
            json={"idempotency_key": str(uuid4()), "invoice": invoice},
        )
        return _invoice_from_payload(body["invoice"])

    def publish_invoice(self, invoice_id: str, version: int) -> GatewayInvoice:
        body = self._request(
            "POST",
            f"/v2/invoices/{invoice_id}/publish",
            operation="publish_invoice",
            json={"version": version, "idempotency_key": str(uuid4())},
        )
        return _invoice_from_payload(body["invoice"])

    def cancel_invoice(self, invoice_id: str, version: int) -> GatewayInvoice:
        body = self._request(
            "POST",
            f"/v2/invoices/{invoice_id}/cancel",
            operation="cancel_invoice",
            json={"version": version},
        )
        return _invoice_from_payload(body["invoice"])

    def get_invoice(self, invoice_id: str) -> Optional[GatewayInvoice]:
        try:
            body = self._request(
                "GET",
                f"/v2/invoices/{invoice_id}",
                operation="get_invoice",
                retry=True,
            )
        except GatewayError as exc:
            if exc.is_not_found:
                return None
            raise
        return _invoice_from_payload(body["invoice"])

    def create_payment(self, request: GatewayPaymentRequest) -> GatewayPayment:
        payload: Dict[str, Any] = {
            "source_id": request.source_id,
            "idempotency_key": request.idempotency_key,
            "amount_money": {"amount": request.amount_cents, "currency": request.currency},
            "location_id": self.config.location_id,
        }
        if request.customer_id:
            payload["customer_id"] = request.customer_id
        if request.reference_id:
            payload["reference_id"] = request.reference_id
        if request.note:
            payload["note"] = request.note
        body = self._request("POST", "/v2/payments", operation="create_payment", json=payload)
        return _payment_from_payload(body["payment"])


__all__ = ["SquareGateway"]

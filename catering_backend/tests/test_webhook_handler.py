import json

import pytest

from catering_backend.app.errors import AuthError, PersistenceError, ValidationError
from catering_backend.app.invoices import DeliveryMethod, InvoiceRequest
from catering_backend.app.orders import OrderStatus
from catering_backend.app.webhooks import WebhookHandler, compute_signature, verify_signature

SIGNING_KEY = "whsec_test"


def _fulfilled(gateway_invoice_id, payment_id="pay_1", amount=24_000, event_id="evt_1", reference_id=None):
    invoice = {"id": gateway_invoice_id, "status": "PAID"}
    if reference_id is not None:
        invoice["reference_id"] = reference_id
    return json.dumps(
        {
            "event_id": event_id,
            "type": "invoice.payment.fulfilled",
            "data": {
                "id": gateway_invoice_id,
                "object": {
                    "invoice": invoice,
                    "invoice_payment": {
                        "payment_id": payment_id,
                        "amount_paid": {"amount": amount, "currency": "USD"},
                    },
                },
            },
        }
    ).encode("utf-8")


@pytest.fixture()
def handler_parts(container, event_repo):
    handler = WebhookHandler(payments=container.payments, events=event_repo)
    return handler, event_repo


@pytest.fixture()
def invoiced_order(container, make_order):
    order = make_order()
    invoice = container.invoices.create_invoice(
        order.id, InvoiceRequest(delivery_method=DeliveryMethod.EMAIL), actor_id=1
    ).invoice
    return order, invoice


def test_signature_round_trip():
    body = b'{"type":"invoice.created"}'
    signature = compute_signature(SIGNING_KEY, body)

    assert verify_signature(SIGNING_KEY, body, signature)
    assert not verify_signature(SIGNING_KEY, body + b" ", signature)
    assert not verify_signature("other", body, signature)


def test_fulfilled_invoice_marks_order_paid(handler_parts, invoiced_order, container):
    handler, events = handler_parts
    order, invoice = invoiced_order

    outcome = handler.handle(_fulfilled(invoice.gateway_invoice_id))

    assert outcome.processed is True
    assert outcome.duplicate is False
    assert outcome.order_id == order.id
    assert container.orders.get_order(order.id).status == OrderStatus.PAID
    assert [event.event_id for event in events.events] == ["evt_1"]


def test_redelivered_event_is_acknowledged_without_second_row(handler_parts, invoiced_order, payment_repo):
    handler, _ = handler_parts
    _, invoice = invoiced_order
    body = _fulfilled(invoice.gateway_invoice_id)

    handler.handle(body)
    outcome = handler.handle(body)

    assert outcome.processed is True
    assert outcome.duplicate is True
    assert outcome.message == "Payment already recorded"
    assert len(payment_repo.transactions) == 1


def test_event_dedupe_short_circuits(container, event_repo, invoiced_order, payment_repo):
    handler = WebhookHandler(payments=container.payments, events=event_repo, dedupe_events=True)
    _, invoice = invoiced_order
    handler.handle(_fulfilled(invoice.gateway_invoice_id))

    outcome = handler.handle(_fulfilled(invoice.gateway_invoice_id, payment_id="pay_other"))

    assert outcome.duplicate is True
    assert outcome.processed is False
    assert len(payment_repo.transactions) == 1


def test_failed_delivery_is_reprocessed_with_dedupe(
    container, event_repo, invoiced_order, payment_repo, monkeypatch
):
    handler = WebhookHandler(payments=container.payments, events=event_repo, dedupe_events=True)
    order, invoice = invoiced_order
    body = _fulfilled(invoice.gateway_invoice_id)
    create_transaction = payment_repo.create_transaction
    calls = []

    def _fails_once(transaction):
        calls.append(transaction.gateway_payment_id)
        if len(calls) == 1:
            raise PersistenceError("Database operation failed")
        return create_transaction(transaction)

    monkeypatch.setattr(payment_repo, "create_transaction", _fails_once)

    with pytest.raises(PersistenceError):
        handler.handle(body)
    assert "evt_1" not in event_repo.processed

    outcome = handler.handle(body)

    assert outcome.processed is True
    assert outcome.duplicate is False
    assert len(payment_repo.transactions) == 1
    assert container.orders.get_order(order.id).status == OrderStatus.PAID
    assert "evt_1" in event_repo.processed
    assert handler.handle(body).message == "Duplicate event ignored"


def test_unknown_invoice_falls_back_to_reference_id(handler_parts, make_order, container):
    handler, _ = handler_parts
    order = make_order()

    outcome = handler.handle(_fulfilled("inv_elsewhere", reference_id=str(order.id)))

    assert outcome.order_id == order.id
    assert container.orders.get_order(order.id).status == OrderStatus.PAID


def test_unmatched_invoice_payment_is_rejected(handler_parts):
    handler, _ = handler_parts

    with pytest.raises(ValidationError) as excinfo:
        handler.handle(_fulfilled("inv_elsewhere", reference_id="9999"))
    assert excinfo.value.message == "Could not determine order for invoice payment"


def test_missing_invoice_data_is_rejected(handler_parts):
    handler, _ = handler_parts
    body = json.dumps({"type": "invoice.payment.fulfilled", "data": {"object": {}}}).encode()

    with pytest.raises(ValidationError) as excinfo:
        handler.handle(body)
    assert excinfo.value.message == "Invalid webhook data"


def test_malformed_payload_is_rejected(handler_parts):
    handler, _ = handler_parts

    with pytest.raises(ValidationError):
        handler.handle(b"not json")
    with pytest.raises(ValidationError):
        handler.handle(b"[1, 2]")


def test_other_events_are_acknowledged(handler_parts):
    handler, events = handler_parts
    body = b'{"type": "invoice.published", "data": {}}'

    outcome = handler.handle(body)

    assert outcome.processed is False
    assert outcome.message == "Event received but not processed"
    # Deliveries without an event id are keyed by a body hash.
    assert len(events.events[0].event_id) == 64


def test_signature_checks(container, event_repo):
    handler = WebhookHandler(
        payments=container.payments,
        events=event_repo,
        signature_key=SIGNING_KEY,
        require_signature=True,
    )
    body = b'{"type": "payment.created"}'

    assert handler.handle(body, compute_signature(SIGNING_KEY, body)).processed is False
    with pytest.raises(AuthError):
        handler.handle(body, "bogus")
    with pytest.raises(AuthError):
        handler.handle(body, None)


def test_missing_signature_tolerated_unless_required(container, event_repo):
    handler = WebhookHandler(payments=container.payments, events=event_repo, signature_key=SIGNING_KEY)

    outcome = handler.handle(b'{"type": "payment.updated"}')

    assert outcome.event_type == "payment.updated"


def test_event_log_failure_does_not_block_processing(container, invoiced_order):
    class _BrokenEvents:
        def record_webhook_event(self, event):
            raise PersistenceError("Database operation failed")

        def mark_webhook_event_processed(self, event_id, processed_at):
            raise PersistenceError("Database operation failed")

    handler = WebhookHandler(payments=container.payments, events=_BrokenEvents())
    _, invoice = invoiced_order

    assert handler.handle(_fulfilled(invoice.gateway_invoice_id)).processed is True

import pytest

from catering_backend.app.errors import ConflictError, NotFoundError, ValidationError
from catering_backend.app.invoices import DeliveryMethod, InvoiceRequest, InvoiceStatus
from catering_backend.app.orders import OrderStatus
from catering_backend.app.payments import (
    PaymentMethod,
    PaymentTransaction,
    ProcessPaymentRequest,
    TransactionStatus,
    status_from_gateway,
)


def _invoice_for(container, order):
    return container.invoices.create_invoice(
        order.id, InvoiceRequest(delivery_method=DeliveryMethod.EMAIL), actor_id=1
    ).invoice


def _charge(order, **overrides):
    params = {
        "order_id": order.id,
        "amount_cents": order.total_cents,
        "source_id": "cnon:card-nonce-ok",
        "idempotency_key": "key-1",
    }
    params.update(overrides)
    return ProcessPaymentRequest(**params)


def test_status_mapping():
    assert status_from_gateway("COMPLETED") == TransactionStatus.COMPLETED
    assert status_from_gateway("failed") == TransactionStatus.FAILED
    assert status_from_gateway("APPROVED") == TransactionStatus.PENDING
    assert status_from_gateway(None) == TransactionStatus.PENDING


def test_invoice_payment_settles_order_and_invoice(container, make_order, invoice_repo):
    order = make_order()
    invoice = _invoice_for(container, order)

    result = container.payments.process_invoice_payment(invoice.gateway_invoice_id, "pay_1", order.total_cents)

    assert result.duplicate is False
    assert result.transaction.payment_method == PaymentMethod.OTHER
    assert result.transaction.status == TransactionStatus.COMPLETED
    assert result.transaction.processed_by is None
    assert result.order.status == OrderStatus.PAID
    stored = invoice_repo.get_invoice(invoice.id)
    assert stored.status == InvoiceStatus.PAID
    assert stored.paid_at is not None


def test_invoice_payment_redelivery_is_idempotent(container, make_order, payment_repo, invoice_repo):
    order = make_order()
    invoice = _invoice_for(container, order)
    first = container.payments.process_invoice_payment(invoice.gateway_invoice_id, "pay_1", order.total_cents)
    paid_at = invoice_repo.get_invoice(invoice.id).paid_at

    second = container.payments.process_invoice_payment(invoice.gateway_invoice_id, "pay_1", order.total_cents)

    assert second.duplicate is True
    assert second.transaction.id == first.transaction.id
    assert len(payment_repo.transactions) == 1
    assert invoice_repo.get_invoice(invoice.id).paid_at == paid_at


def test_redelivery_completes_partial_settlement(container, make_order, payment_repo):
    order = make_order()
    invoice = _invoice_for(container, order)
    # Ledger row written by an earlier delivery that failed before the order update.
    payment_repo.create_transaction(
        PaymentTransaction(
            order_id=order.id,
            gateway_payment_id="pay_1",
            amount_cents=order.total_cents,
            payment_method=PaymentMethod.OTHER,
            status=TransactionStatus.COMPLETED,
        )
    )

    result = container.payments.process_invoice_payment(invoice.gateway_invoice_id, "pay_1", order.total_cents)

    assert result.duplicate is True
    assert container.orders.get_order(order.id).status == OrderStatus.PAID


def test_invoice_payment_uses_reference_fallback(container, make_order):
    order = make_order()

    result = container.payments.process_invoice_payment("inv_unknown", "pay_2", 500, order_id=order.id)

    assert result.invoice is None
    assert result.order.status == OrderStatus.PAID


def test_invoice_payment_without_any_order_is_rejected(container):
    with pytest.raises(ValidationError):
        container.payments.process_invoice_payment("inv_unknown", "pay_3", 500)


def test_direct_payment_marks_order_paid(container, make_order):
    order = make_order()

    result = container.payments.process_payment(_charge(order), actor_id=9)

    assert result.success is True
    assert result.transaction.status == TransactionStatus.COMPLETED
    assert result.transaction.card_last_4 == "1111"
    assert result.transaction.processed_by == 9
    assert container.orders.get_order(order.id).status == OrderStatus.PAID


def test_second_payment_for_paid_order_conflicts(container, make_order):
    order = make_order()
    container.payments.process_payment(_charge(order), actor_id=9)

    with pytest.raises(ConflictError):
        container.payments.process_payment(_charge(order, idempotency_key="key-2"), actor_id=9)


def test_declined_payment_is_recorded_as_failed(container, make_order, payment_repo):
    order = make_order()

    result = container.payments.process_payment(
        _charge(order, source_id="cnon:card-nonce-declined"), actor_id=9
    )

    assert result.success is False
    assert result.gateway_error_code == "GENERIC_DECLINE"
    assert result.transaction.status == TransactionStatus.FAILED
    assert result.transaction.gateway_payment_id.startswith("failed_")
    assert container.orders.get_order(order.id).status == OrderStatus.AWAITING_QUOTE


def test_payment_requires_a_source(container, make_order):
    order = make_order()

    with pytest.raises(ValidationError):
        container.payments.process_payment(_charge(order, source_id=None), actor_id=9)

    with pytest.raises(NotFoundError):
        container.payments.process_payment(_charge(order, source_id=None, stored_card_id=42), actor_id=9)


def test_store_card_then_pay_with_it(container, make_order, client):
    first_order = make_order()
    result = container.payments.process_payment(
        _charge(first_order, customer_id="cust_1", store_card=True, make_default=True),
        actor_id=9,
    )
    card = result.stored_card
    assert card is not None
    assert card.is_default is True
    assert card.client_id == client.id

    second_order = make_order()
    repeat = container.payments.process_payment(
        _charge(second_order, source_id=None, stored_card_id=card.id, idempotency_key="key-2"),
        actor_id=9,
    )

    assert repeat.success is True
    assert repeat.transaction.gateway_card_id == card.gateway_card_id
    assert repeat.transaction.gateway_customer_id == "cust_1"


def test_single_default_card_per_client(container, client):
    first = container.payments.store_card_from_payment(
        client_id=client.id,
        gateway_customer_id="cust_1",
        gateway_card_id="ccof:one",
        card_last_4="1111",
        card_brand="VISA",
        is_default=True,
    )
    second = container.payments.store_card_from_payment(
        client_id=client.id,
        gateway_customer_id="cust_1",
        gateway_card_id="ccof:two",
        card_last_4="4242",
        card_brand="VISA",
    )

    container.payments.set_default_card(second.id)

    defaults = [card.id for card in container.payments.list_stored_cards(client.id) if card.is_default]
    assert defaults == [second.id]
    assert first.id != second.id


def test_storing_same_card_twice_returns_existing(container, client):
    kwargs = {
        "client_id": client.id,
        "gateway_customer_id": "cust_1",
        "gateway_card_id": "ccof:one",
        "card_last_4": "1111",
        "card_brand": "VISA",
    }

    assert container.payments.store_card_from_payment(**kwargs).id == container.payments.store_card_from_payment(**kwargs).id


def test_storing_known_card_as_default_promotes_it(container, client):
    kwargs = {
        "client_id": client.id,
        "gateway_customer_id": "cust_1",
        "card_last_4": "1111",
        "card_brand": "VISA",
    }
    first = container.payments.store_card_from_payment(gateway_card_id="ccof:one", is_default=True, **kwargs)
    second = container.payments.store_card_from_payment(gateway_card_id="ccof:two", **kwargs)

    promoted = container.payments.store_card_from_payment(gateway_card_id="ccof:two", is_default=True, **kwargs)

    assert promoted.id == second.id
    assert promoted.is_default is True
    defaults = [card.id for card in container.payments.list_stored_cards(client.id) if card.is_default]
    assert defaults == [second.id]
    assert first.id != second.id


def test_delete_and_default_missing_cards(container):
    with pytest.raises(NotFoundError):
        container.payments.set_default_card(5)
    with pytest.raises(NotFoundError):
        container.payments.delete_stored_card(5)


def test_ledger_helpers(container, make_order):
    order = make_order()
    created = container.payments.create_transaction(
        PaymentTransaction(
            order_id=order.id,
            gateway_payment_id="pay_manual",
            amount_cents=100,
            status=TransactionStatus.PENDING,
        )
    )

    with pytest.raises(ConflictError):
        container.payments.create_transaction(created.model_copy(update={"id": None}))

    refunded = container.payments.update_transaction_status(created.id, TransactionStatus.REFUNDED)
    assert refunded.status == TransactionStatus.REFUNDED
    assert [txn.id for txn in container.payments.find_transactions_by_order_id(order.id)] == [created.id]

    with pytest.raises(NotFoundError):
        container.payments.get_transaction(999)

import logging

import pytest

from catering_backend.app.errors import NotFoundError, ValidationError
from catering_backend.app.orders import (
    OrderFees,
    OrderItem,
    OrderStatus,
    is_forward_transition,
    next_order_number,
)


def test_next_order_number_sequence():
    assert next_order_number(None) == "KA000001"
    assert next_order_number("KA000041") == "KA000042"
    assert next_order_number("legacy") == "KA000001"


def test_create_order_computes_totals_and_numbers(container, make_order):
    first = make_order()
    second = make_order()

    assert first.order_number == "KA000001"
    assert second.order_number == "KA000002"
    assert first.subtotal_cents == 20_500
    assert first.total_cents == 24_000
    assert first.status == OrderStatus.AWAITING_QUOTE
    assert [item.sort_order for item in first.items] == [0, 1]


def test_get_missing_order_raises(container):
    with pytest.raises(NotFoundError):
        container.orders.get_order(404)


def test_update_items_bumps_revision_and_reprices(container, make_order):
    order = make_order()

    updated = container.orders.update_items(
        order.id,
        [OrderItem(name="Cheese Board", portion_size="3", price_cents=9_900)],
    )

    assert updated.revision_count == 1
    assert updated.subtotal_cents == 9_900
    assert updated.total_cents == 9_900 + 3_500
    assert [item.name for item in updated.items] == ["Cheese Board"]


def test_update_fees_overwrites_named_fees_only(container, make_order):
    order = make_order()

    updated = container.orders.update_fees(order.id, airport_fee=4_000, delivery_fee=0)

    assert updated.fees.airport_fee == 4_000
    assert updated.fees.delivery_fee == 0
    assert updated.fees.service_charge == 1_000
    assert updated.total_cents == order.subtotal_cents + 5_000


def test_update_fees_rejects_unknown_and_negative(container, make_order):
    order = make_order()

    with pytest.raises(ValidationError) as unknown:
        container.orders.update_fees(order.id, tip=100)
    assert unknown.value.detail == {"fields": ["tip"]}

    with pytest.raises(ValidationError):
        container.orders.update_fees(order.id, fbo_fee=-1)


def test_fee_breakdown_skips_zero_fees_in_label_order():
    fees = OrderFees(fbo_fee=500, service_charge=200)

    assert fees.non_zero() == [("Service Charge", 200), ("FBO Fee", 500)]
    assert fees.total_cents == 700


def test_completion_statuses_stamp_completed_at(container, make_order):
    order = make_order()

    delivered = container.orders.update_status(order.id, OrderStatus.DELIVERED)
    assert delivered.completed_at is not None

    paid = container.orders.update_status(order.id, OrderStatus.PAID)
    assert paid.completed_at == delivered.completed_at


def test_backward_transition_is_allowed_and_logged(container, make_order, caplog):
    order = make_order()
    container.orders.update_status(order.id, OrderStatus.IN_PREPARATION)

    with caplog.at_level(logging.INFO):
        reverted = container.orders.update_status(order.id, OrderStatus.AWAITING_QUOTE)

    assert reverted.status == OrderStatus.AWAITING_QUOTE
    assert "moved backwards" in caplog.text


def test_escape_statuses_count_as_forward():
    assert is_forward_transition(OrderStatus.PAID, OrderStatus.CANCELLED)
    assert is_forward_transition(OrderStatus.ORDER_CHANGED, OrderStatus.AWAITING_QUOTE)
    assert not is_forward_transition(OrderStatus.DELIVERED, OrderStatus.IN_PREPARATION)


def test_mark_paid_is_idempotent(container, make_order):
    order = make_order()

    paid = container.orders.mark_paid(order.id)
    again = container.orders.mark_paid(order.id)

    assert paid.status == OrderStatus.PAID
    assert again.updated_at == paid.updated_at

"""
Order state machine tests: web orders, quotes, transitions, numbering.
"""

import pytest

from backoffice.services import order_service, settings_service
from backoffice.services.errors import InvalidTransition, ValidationError, NotFoundError


def test_order_numbers_are_monotonic_from_500(db_session, ring):
    first = order_service.create_web_order([{"product_id": ring.id, "quantity": 1}])
    second = order_service.create_web_order([{"product_id": ring.id, "quantity": 1}])

    assert first.order_number == 500
    assert second.order_number == 501


def test_web_order_intake(db_session, ring):
    order = order_service.create_web_order(
        [{"product_id": ring.id, "quantity": 2}],
        delivery_method=order_service.DELIVERY_SHIPPING,
        delivery_address="Av. Juarez 10",
    )

    assert order.status == order_service.STATUS_PENDING_PAYMENT
    assert order.payment_status == order_service.PAYMENT_PENDING
    assert order.sale_channel == order_service.CHANNEL_ONLINE
    assert order.order_type is None
    assert [(i.product_id, i.quantity) for i in order.items] == [(ring.id, 2)]


def test_shipping_requires_address(db_session, ring):
    with pytest.raises(ValidationError):
        order_service.create_web_order(
            [{"product_id": ring.id, "quantity": 1}],
            delivery_method=order_service.DELIVERY_SHIPPING,
        )


def test_web_order_rejects_empty_and_unknown_items(db_session, ring):
    with pytest.raises(ValidationError):
        order_service.create_web_order([])
    with pytest.raises(ValidationError):
        order_service.create_web_order([{"product_id": ring.id, "quantity": 0}])
    with pytest.raises(NotFoundError):
        order_service.create_web_order([{"product_id": 9999, "quantity": 1}])


def test_claim_returns_cart(db_session, ring, necklace):
    order = order_service.create_web_order([
        {"product_id": ring.id, "quantity": 1},
        {"product_id": necklace.id, "quantity": 3},
    ])

    claimed = order_service.claim_web_order(order.id)

    assert claimed["order"].id == order.id
    assert claimed["cart"] == [
        {"product_id": ring.id, "quantity": 1},
        {"product_id": necklace.id, "quantity": 3},
    ]


def test_fulfillment_path_for_pickup(db_session, ring):
    order = order_service.create_web_order([{"product_id": ring.id, "quantity": 1}])

    order_service.mark_web_order_paid(order.id)
    order_service.advance_fulfillment(order.id, order_service.STATUS_PROCESSING)

    with pytest.raises(InvalidTransition):
        order_service.advance_fulfillment(order.id, order_service.STATUS_SHIPPED)
    db_session.rollback()

    order_service.advance_fulfillment(order.id, order_service.STATUS_READY_FOR_PICKUP)
    order_service.advance_fulfillment(order.id, order_service.STATUS_COMPLETED)

    assert order.status == order_service.STATUS_COMPLETED
    assert order_service.is_terminal(order)


def test_cannot_skip_fulfillment_steps(db_session, ring):
    order = order_service.create_web_order([{"product_id": ring.id, "quantity": 1}])

    with pytest.raises(InvalidTransition):
        order_service.advance_fulfillment(order.id, order_service.STATUS_COMPLETED)


def test_cancel_is_terminal(db_session, ring):
    order = order_service.create_web_order([{"product_id": ring.id, "quantity": 1}])

    order_service.cancel_order(order.id, reason="customer request")

    assert order.status == order_service.STATUS_CANCELLED
    assert order.cancelled_at is not None
    with pytest.raises(InvalidTransition):
        order_service.mark_web_order_paid(order.id)
    db_session.rollback()
    with pytest.raises(InvalidTransition):
        order_service.cancel_order(order.id)


def test_pending_web_orders_lists_unclaimed(db_session, ring):
    waiting = order_service.create_web_order([{"product_id": ring.id, "quantity": 1}])
    cancelled = order_service.create_web_order([{"product_id": ring.id, "quantity": 1}])
    order_service.cancel_order(cancelled.id)

    pending = order_service.pending_web_orders()

    assert [o.id for o in pending] == [waiting.id]


def test_quote_confirm_fixes_prices(db_session, ring):
    order = order_service.create_quote([{"product_id": ring.id, "quantity": 2}], actor="sales")
    assert order.status == order_service.STATUS_DRAFT
    assert order.order_type is None

    with pytest.raises(InvalidTransition):
        order_service.confirm_quote(order.id)
    db_session.rollback()

    order_service.mark_quoted(order.id)
    confirmed = order_service.confirm_quote(order.id, actor="sales")

    assert confirmed.status == order_service.STATUS_CONFIRMED
    assert confirmed.order_type == "retail"
    assert confirmed.total_cents == 20000


def test_order_type_not_recomputed_after_threshold_change(db_session, ring):
    settings_service.set_wholesale_threshold(100)  # $100: 2 rings is wholesale
    order = order_service.create_quote([{"product_id": ring.id, "quantity": 2}])
    order_service.mark_quoted(order.id)
    order_service.confirm_quote(order.id)
    assert order.order_type == "wholesale"

    settings_service.set_wholesale_threshold(100000)

    db_session.expire_all()
    reloaded = order_service.get_order(order.id)
    assert reloaded.order_type == "wholesale"
    assert reloaded.total_cents == 16000
    assert [i.unit_price_cents for i in reloaded.items] == [8000]

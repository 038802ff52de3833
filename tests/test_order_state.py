from datetime import datetime, timedelta, timezone
from decimal import Decimal
from unittest.mock import patch

import pytest

from app.models import MarketplaceItem, OrderStatusHistory, Payment, ShippingDetail
from app.services.errors import InvalidTransition, OrderNotFound, RefundAmountExceeded, Unauthorized
from app.services.order_state import (
    TERMINAL_STATUSES,
    TRANSITIONS,
    OrderStatus,
    advance_order_status,
    can_transition,
    cancel_order,
    get_order_for_update,
    issue_gateway_refund,
    mark_delivered,
    refund_order,
    transition,
)


def _history(db, order):
    return (
        db.query(OrderStatusHistory)
        .filter(OrderStatusHistory.order_id == order.id)
        .order_by(OrderStatusHistory.id)
        .all()
    )


def _payment(db, order):
    return db.query(Payment).filter(Payment.order_id == order.id).first()


def test_transition_table_covers_every_status():
    assert set(TRANSITIONS) == set(OrderStatus)
    assert TERMINAL_STATUSES == {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}


@pytest.mark.parametrize(
    "current,new,allowed",
    [
        ("pending", "payment_pending", True),
        ("pending", "confirmed", True),
        ("payment_pending", "confirmed", True),
        ("payment_pending", "processing", False),
        ("confirmed", "processing", True),
        ("confirmed", "shipped", False),
        ("processing", "cancelled", False),
        ("shipped", "delivered", True),
        ("shipped", "cancelled", False),
        ("delivered", "refunded", False),
        ("cancelled", "confirmed", False),
    ],
)
def test_can_transition(current, new, allowed):
    assert can_transition(current, new) is allowed


def test_transition_appends_exactly_one_history_row(db, make_order, seller):
    order = make_order(status="confirmed")
    before = len(_history(db, order))

    transition(db, order, "processing", changed_by=seller.id, reason="Packing")
    db.commit()

    rows = _history(db, order)
    assert len(rows) == before + 1
    assert (rows[-1].previous_status, rows[-1].new_status) == ("confirmed", "processing")
    assert rows[-1].changed_by == seller.id
    assert rows[-1].reason == "Packing"
    assert order.status == "processing"


def test_transition_from_terminal_state_is_rejected(db, make_order):
    order = make_order(status="delivered")
    before = len(_history(db, order))

    with pytest.raises(InvalidTransition) as exc_info:
        transition(db, order, "cancelled", changed_by=None)

    assert exc_info.value.extra["current_status"] == "delivered"
    assert order.status == "delivered"
    db.commit()
    assert len(_history(db, order)) == before


def test_transition_unknown_status_is_rejected(db, make_order):
    order = make_order(status="confirmed")
    with pytest.raises(InvalidTransition, match="Unknown order status"):
        transition(db, order, "lost", changed_by=None)


def test_cancel_pending_order_cancels_open_payment(db, make_order, buyer):
    order = make_order(status="pending")

    _, refunded = cancel_order(db, order, buyer, reason="Changed my mind")
    db.commit()

    assert refunded is None

    assert order.status == "cancelled"
    assert _payment(db, order).status == "cancelled"
    last = _history(db, order)[-1]
    assert (last.previous_status, last.new_status, last.reason) == ("pending", "cancelled", "Changed my mind")


def test_cancel_shipped_order_fails_and_keeps_status(db, make_order, buyer):
    order = make_order(status="shipped")

    with pytest.raises(InvalidTransition, match="cannot be cancelled"):
        cancel_order(db, order, buyer)

    assert order.status == "shipped"


def test_cancel_requires_buyer(db, make_order, seller):
    order = make_order(status="confirmed")
    with pytest.raises(Unauthorized):
        cancel_order(db, order, seller)
    assert order.status == "confirmed"


def test_cancel_confirmed_order_restores_stock_and_refunds(db, make_order, buyer, item):
    order = make_order(status="confirmed", quantity=2)
    stock_before = item.quantity

    with patch("app.services.payment_gateways.refund_payment") as mock_refund:
        _, refunded = cancel_order(db, order, buyer)
        mock_refund.assert_not_called()
        db.commit()
        issue_gateway_refund(refunded)

    payment = _payment(db, order)
    assert refunded.id == payment.id
    assert order.status == "cancelled"
    assert payment.status == "refunded"
    assert payment.refund_amount == payment.amount
    assert payment.refunded_at is not None
    assert db.get(MarketplaceItem, item.id).quantity == stock_before + 2
    mock_refund.assert_called_once_with(refunded, Decimal("1230.00"))


def test_refund_defaults_to_full_payment_amount(db, make_order, seller, item):
    order = make_order(status="processing")
    stock_before = item.quantity

    with patch("app.services.payment_gateways.refund_payment") as mock_refund:
        order, payment = refund_order(db, order, seller, reason="Damaged in packing")
        mock_refund.assert_not_called()
        db.commit()
        issue_gateway_refund(payment)

    assert order.status == "refunded"
    assert payment.status == "refunded"
    assert payment.refund_amount == Decimal("1230.00")
    assert db.get(MarketplaceItem, item.id).quantity == stock_before + 1
    mock_refund.assert_called_once_with(payment, Decimal("1230.00"))
    last = _history(db, order)[-1]
    assert (last.previous_status, last.new_status) == ("processing", "refunded")


def test_refund_partial_amount(db, make_order, seller):
    order = make_order(status="shipped")

    _, payment = refund_order(db, order, seller, amount=Decimal("500"))

    assert payment.refund_amount == Decimal("500.00")


def test_refund_amount_cannot_exceed_payment(db, make_order, seller):
    order = make_order(status="confirmed")

    with pytest.raises(RefundAmountExceeded):
        refund_order(db, order, seller, amount=Decimal("1230.01"))

    assert order.status == "confirmed"
    assert _payment(db, order).status == "captured"


def test_refund_amount_must_be_positive(db, make_order, seller):
    order = make_order(status="confirmed")
    with pytest.raises(RefundAmountExceeded, match="positive"):
        refund_order(db, order, seller, amount=Decimal("0"))


def test_refund_from_delivered_is_rejected(db, make_order, seller):
    order = make_order(status="delivered")
    with pytest.raises(InvalidTransition):
        refund_order(db, order, seller)
    assert order.status == "delivered"


def test_refund_requires_captured_payment(db, make_order, seller):
    order = make_order(status="confirmed", payment_status="created")
    with pytest.raises(InvalidTransition, match="not captured"):
        refund_order(db, order, seller)


def test_refund_requires_seller(db, make_order, buyer):
    order = make_order(status="confirmed")
    with pytest.raises(Unauthorized):
        refund_order(db, order, buyer)


def test_refund_keeps_local_record_when_gateway_fails(db, make_order, seller):
    order = make_order(status="confirmed")
    order, payment = refund_order(db, order, seller)
    db.commit()

    with patch("app.services.payment_gateways.refund_payment", side_effect=RuntimeError("gateway down")):
        issue_gateway_refund(payment)

    db.refresh(order)
    db.refresh(payment)
    assert order.status == "refunded"
    assert payment.status == "refunded"
    assert payment.refund_amount == Decimal("1230.00")


def test_seller_advances_along_fulfilment_path(db, make_order, seller):
    order = make_order(status="confirmed")

    advance_order_status(db, order, seller, "processing")
    advance_order_status(db, order, seller, "shipped", waybill="DL123")
    advance_order_status(db, order, seller, "delivered")
    db.commit()

    shipping = db.query(ShippingDetail).filter(ShippingDetail.order_id == order.id).first()
    assert order.status == "delivered"
    assert shipping.waybill == "DL123"
    assert shipping.pickup_date is not None
    assert shipping.expected_delivery - shipping.pickup_date == timedelta(days=3)
    assert shipping.actual_delivery is not None
    assert shipping.tracking_status == "delivered"
    pairs = [(r.previous_status, r.new_status) for r in _history(db, order)][-3:]
    assert pairs == [("confirmed", "processing"), ("processing", "shipped"), ("shipped", "delivered")]


def test_shipping_uses_configured_transit_days(db, make_order, seller, monkeypatch):
    monkeypatch.setenv("SHIPPING_TRANSIT_DAYS", "5")
    order = make_order(status="processing")

    advance_order_status(db, order, seller, "shipped", waybill="DL555")

    shipping = db.query(ShippingDetail).filter(ShippingDetail.order_id == order.id).first()
    assert shipping.expected_delivery == shipping.pickup_date + timedelta(days=5)


def test_seller_cannot_skip_steps(db, make_order, seller):
    order = make_order(status="confirmed")
    with pytest.raises(InvalidTransition):
        advance_order_status(db, order, seller, "shipped")
    assert order.status == "confirmed"


def test_seller_cannot_confirm_unpaid_order(db, make_order, seller):
    order = make_order(status="payment_pending")
    with pytest.raises(InvalidTransition):
        advance_order_status(db, order, seller, "confirmed")


def test_buyer_cannot_advance_status(db, make_order, buyer):
    order = make_order(status="confirmed")
    with pytest.raises(Unauthorized):
        advance_order_status(db, order, buyer, "processing")


def test_mark_delivered_sets_actual_delivery_once(db, make_order):
    order = make_order(status="shipped")
    shipping = db.query(ShippingDetail).filter(ShippingDetail.order_id == order.id).first()
    first_delivery = datetime(2026, 1, 1, tzinfo=timezone.utc)
    shipping.actual_delivery = first_delivery

    mark_delivered(db, order, changed_by=None, reason="Package delivered")

    assert order.status == "delivered"
    assert shipping.actual_delivery == first_delivery


def test_get_order_for_update_by_number_and_id(db, make_order):
    order = make_order()
    assert get_order_for_update(db, order.order_number).id == order.id
    assert get_order_for_update(db, str(order.id)).id == order.id
    with pytest.raises(OrderNotFound):
        get_order_for_update(db, "ORD-missing")

import json

import pytest
from fastapi import status

from app.models import CartItem, Notification, OrderStatusHistory, Payment
from app.services.razorpay_service import compute_payment_signature, compute_webhook_signature


def _verify_body(gateway_order_id: str = "order_rzp_1", gateway_payment_id: str = "pay_live_1", secret: str = "rzp_secret_mock"):
    return {
        "razorpay_order_id": gateway_order_id,
        "razorpay_payment_id": gateway_payment_id,
        "razorpay_signature": compute_payment_signature(gateway_order_id, gateway_payment_id, secret),
    }


def _payment(db, order) -> Payment:
    return db.query(Payment).filter(Payment.order_id == order.id).first()


def _history(db, order) -> list[OrderStatusHistory]:
    return (
        db.query(OrderStatusHistory)
        .filter(OrderStatusHistory.order_id == order.id)
        .order_by(OrderStatusHistory.id)
        .all()
    )


def _webhook(client, payload: dict, secret: str = "rzp_whsec_mock", signature: str | None = None):
    raw = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json"}
    sig = signature if signature is not None else compute_webhook_signature(raw, secret)
    if sig:
        headers["x-razorpay-signature"] = sig
    return client.post("/webhooks/razorpay", content=raw, headers=headers)


def _captured_event(gateway_order_id: str = "order_rzp_1", amount: int = 123000) -> dict:
    return {
        "event": "payment.captured",
        "payload": {
            "payment": {
                "entity": {
                    "id": "pay_hook_1",
                    "order_id": gateway_order_id,
                    "amount": amount,
                    "currency": "INR",
                    "status": "captured",
                }
            }
        },
    }


def test_verify_payment_confirms_order(client, db, make_order, buyer, item, auth_headers):
    order = make_order(status="payment_pending")
    db.add(CartItem(user_id=buyer.id, marketplace_item_id=item.id, quantity=1))
    db.commit()

    response = client.post("/api/orders/verify-payment-new", json=_verify_body(), headers=auth_headers)

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["success"] is True
    assert data["message"] == "Payment verified successfully"
    assert data["orders"] == [{"id": order.id, "order_number": order.order_number, "status": "confirmed"}]

    db.refresh(order)
    db.refresh(item)
    payment = _payment(db, order)
    assert order.status == "confirmed"
    assert payment.status == "captured"
    assert payment.gateway_payment_id == "pay_live_1"
    assert payment.captured_at is not None
    assert item.quantity == 4
    assert db.query(CartItem).filter(CartItem.user_id == buyer.id).count() == 0
    last = _history(db, order)[-1]
    assert (last.previous_status, last.new_status, last.reason) == ("payment_pending", "confirmed", "Payment verified")
    titles = {n.title for n in db.query(Notification).all()}
    assert {"Payment Successful", "New Order Received"} <= titles


def test_verify_payment_last_unit_marks_item_sold(client, db, make_order, item, auth_headers):
    item.quantity = 1
    db.commit()
    make_order(status="payment_pending")

    response = client.post("/api/orders/verify-payment-new", json=_verify_body(), headers=auth_headers)

    assert response.status_code == status.HTTP_200_OK
    db.refresh(item)
    assert item.quantity == 0
    assert item.status == "sold"


def test_verify_payment_invalid_signature(client, db, make_order, auth_headers):
    order = make_order(status="payment_pending")

    response = client.post(
        "/api/orders/verify-payment-new",
        json=_verify_body(secret="wrong-secret"),
        headers=auth_headers,
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json() == {"success": False, "error": "Payment verification failed"}
    db.refresh(order)
    assert order.status == "payment_pending"
    assert _payment(db, order).status == "created"


def test_verify_payment_is_idempotent(client, db, make_order, item, auth_headers):
    order = make_order(status="payment_pending")

    first = client.post("/api/orders/verify-payment-new", json=_verify_body(), headers=auth_headers)
    second = client.post("/api/orders/verify-payment-new", json=_verify_body(), headers=auth_headers)

    assert first.status_code == status.HTTP_200_OK
    assert second.status_code == status.HTTP_200_OK
    db.refresh(item)
    assert item.quantity == 4
    confirmations = [h for h in _history(db, order) if h.new_status == "confirmed"]
    assert len(confirmations) == 1


def test_verify_payment_confirms_every_order_for_gateway_order(client, db, make_order, auth_headers):
    first = make_order(status="payment_pending", gateway_order_id="order_multi")
    second = make_order(status="payment_pending", gateway_order_id="order_multi")

    response = client.post(
        "/api/orders/verify-payment-new",
        json=_verify_body(gateway_order_id="order_multi"),
        headers=auth_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    assert {o["order_number"] for o in response.json()["orders"]} == {first.order_number, second.order_number}


def test_verify_payment_unknown_gateway_order(client, auth_headers, buyer):
    response = client.post(
        "/api/orders/verify-payment-new",
        json=_verify_body(gateway_order_id="order_missing"),
        headers=auth_headers,
    )
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_verify_payment_rejects_other_buyer(client, make_order, seller_headers):
    make_order(status="payment_pending")

    response = client.post("/api/orders/verify-payment-new", json=_verify_body(), headers=seller_headers)

    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_verify_payment_without_secret(client, make_order, auth_headers, monkeypatch):
    make_order(status="payment_pending")
    monkeypatch.setenv("RAZORPAY_KEY_SECRET", "")

    response = client.post("/api/orders/verify-payment-new", json=_verify_body(), headers=auth_headers)

    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


def test_verify_payment_skips_cancelled_order(client, db, make_order, auth_headers):
    order = make_order(status="cancelled", payment_status="cancelled")

    response = client.post("/api/orders/verify-payment-new", json=_verify_body(), headers=auth_headers)

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["orders"] == []
    db.refresh(order)
    assert order.status == "cancelled"


def test_razorpay_webhook_captures_payment(client, db, make_order, item):
    order = make_order(status="payment_pending")

    response = _webhook(client, _captured_event())

    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"received": True}
    db.refresh(order)
    payment = _payment(db, order)
    assert order.status == "confirmed"
    assert payment.status == "captured"
    assert payment.gateway_payment_id == "pay_hook_1"
    assert payment.gateway_response["order_id"] == "order_rzp_1"
    last = _history(db, order)[-1]
    assert last.changed_by is None
    assert last.reason == "Payment captured (webhook)"


def test_razorpay_webhook_is_idempotent(client, db, make_order, item):
    order = make_order(status="payment_pending")

    _webhook(client, _captured_event())
    response = _webhook(client, _captured_event())

    assert response.status_code == status.HTTP_200_OK
    db.refresh(item)
    assert item.quantity == 4
    assert len([h for h in _history(db, order) if h.new_status == "confirmed"]) == 1


def test_razorpay_webhook_ignores_short_amount(client, db, make_order):
    order = make_order(status="payment_pending")

    response = _webhook(client, _captured_event(amount=100))

    assert response.status_code == status.HTTP_200_OK
    db.refresh(order)
    assert order.status == "payment_pending"
    assert _payment(db, order).status == "created"


def test_razorpay_webhook_payment_failed_cancels_order(client, db, make_order):
    order = make_order(status="payment_pending")
    payload = {
        "event": "payment.failed",
        "payload": {
            "payment": {
                "entity": {
                    "id": "pay_hook_2",
                    "order_id": "order_rzp_1",
                    "error_description": "Card declined",
                }
            }
        },
    }

    response = _webhook(client, payload)

    assert response.status_code == status.HTTP_200_OK
    db.refresh(order)
    payment = _payment(db, order)
    assert order.status == "cancelled"
    assert payment.status == "failed"
    assert payment.failure_reason == "Card declined"
    assert _history(db, order)[-1].reason == "Payment failed"


def test_razorpay_webhook_failure_after_capture_is_ignored(client, db, make_order):
    order = make_order(status="confirmed")
    payload = {
        "event": "payment.failed",
        "payload": {"payment": {"entity": {"order_id": "order_rzp_1", "error_description": "late"}}},
    }

    response = _webhook(client, payload)

    assert response.status_code == status.HTTP_200_OK
    db.refresh(order)
    assert order.status == "confirmed"
    assert _payment(db, order).status == "captured"


@pytest.mark.parametrize(
    "order_status,payment_status",
    [("refunded", "refunded"), ("cancelled", "cancelled")],
)
def test_razorpay_webhook_failure_keeps_closed_payment(client, db, make_order, order_status, payment_status):
    order = make_order(status=order_status, payment_status=payment_status)
    payment = _payment(db, order)
    payment.failure_reason = None
    db.commit()
    payload = {
        "event": "payment.failed",
        "payload": {"payment": {"entity": {"order_id": "order_rzp_1", "error_description": "late attempt"}}},
    }

    response = _webhook(client, payload)

    assert response.status_code == status.HTTP_200_OK
    db.refresh(order)
    payment = _payment(db, order)
    assert order.status == order_status
    assert payment.status == payment_status
    assert payment.failure_reason is None
    assert len(_history(db, order)) == 1


def test_razorpay_webhook_missing_signature(client, make_order):
    make_order(status="payment_pending")
    response = _webhook(client, _captured_event(), signature="")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_razorpay_webhook_invalid_signature(client, db, make_order):
    order = make_order(status="payment_pending")

    response = _webhook(client, _captured_event(), secret="not-the-secret")

    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    db.refresh(order)
    assert order.status == "payment_pending"


def test_razorpay_webhook_not_configured(client, monkeypatch):
    monkeypatch.setenv("RAZORPAY_WEBHOOK_SECRET", "")
    response = _webhook(client, _captured_event(), signature="anything")
    assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


def test_razorpay_webhook_unhandled_event(client):
    response = _webhook(client, {"event": "order.paid", "payload": {}})
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"received": True}


def test_razorpay_webhook_invalid_json(client):
    raw = b"not json"
    response = client.post(
        "/webhooks/razorpay",
        content=raw,
        headers={"x-razorpay-signature": compute_webhook_signature(raw, "rzp_whsec_mock")},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST

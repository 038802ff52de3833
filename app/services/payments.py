"""Payment capture and failure handling shared by the checkout callback and gateway webhooks."""

import logging
from typing import Any

from sqlalchemy.orm import Session

from app.models import CartItem, MarketplaceItem, Order, OrderItem, Payment
from app.services.notifications import notify, order_url
from app.services.order_state import OrderStatus, transition
from app.services.timeutils import utcnow

logger = logging.getLogger(__name__)

AWAITING_PAYMENT = frozenset({OrderStatus.PENDING.value, OrderStatus.PAYMENT_PENDING.value})
OPEN_PAYMENT_STATUSES = frozenset({"created", "attempted"})


def find_payments_by_gateway_order(db: Session, gateway_order_id: str) -> list[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.gateway_order_id == gateway_order_id)
        .with_for_update()
        .all()
    )


def _commit_stock(db: Session, order: Order) -> None:
    for line in db.query(OrderItem).filter(OrderItem.order_id == order.id).all():
        item = (
            db.query(MarketplaceItem)
            .filter(MarketplaceItem.id == line.marketplace_item_id)
            .with_for_update()
            .first()
        )
        if not item:
            logger.warning("Marketplace item %s for order %s no longer exists", line.marketplace_item_id, order.id)
            continue
        if item.quantity < line.quantity:
            logger.warning(
                "Item %s oversold by order %s: %s in stock, %s ordered",
                item.id,
                order.order_number,
                item.quantity,
                line.quantity,
            )
        item.quantity = max(0, item.quantity - line.quantity)
        if item.quantity <= 0:
            item.status = "sold"


def _clear_purchased_from_cart(db: Session, order: Order) -> None:
    item_ids = [
        line.marketplace_item_id
        for line in db.query(OrderItem).filter(OrderItem.order_id == order.id).all()
    ]
    if not item_ids:
        return
    db.query(CartItem).filter(
        CartItem.user_id == order.buyer_id,
        CartItem.marketplace_item_id.in_(item_ids),
    ).delete(synchronize_session=False)


def capture_payment(
    db: Session,
    payment: Payment,
    gateway_payment_id: str | None,
    reason: str,
    signature: str | None = None,
    gateway_response: dict[str, Any] | None = None,
) -> Order:
    """Mark ``payment`` captured and confirm its order. Idempotent for already-captured payments."""
    order = db.query(Order).filter(Order.id == payment.order_id).with_for_update().first()
    if order is None:
        raise ValueError(f"Order {payment.order_id} for payment {payment.payment_id} not found")

    if payment.status == "captured":
        logger.info("Payment %s already captured, skipping", payment.payment_id)
        return order

    # Raises InvalidTransition when the order left the awaiting-payment states meanwhile.
    transition(db, order, OrderStatus.CONFIRMED, changed_by=None, reason=reason)

    payment.status = "captured"
    payment.captured_at = utcnow()
    if gateway_payment_id:
        payment.gateway_payment_id = gateway_payment_id
    if signature:
        payment.gateway_signature = signature
    if gateway_response is not None:
        payment.gateway_response = gateway_response

    _commit_stock(db, order)
    _clear_purchased_from_cart(db, order)

    link = order_url(order.order_number)
    notify(
        db,
        order.buyer_id,
        "Payment Successful",
        "Your payment has been processed successfully. Order confirmed!",
        type="success",
        category="order",
        action_url=link,
    )
    notify(
        db,
        order.seller_id,
        "New Order Received",
        "You have received a new order. Please prepare for shipping.",
        type="info",
        category="order",
        action_url=link,
    )
    logger.info("Payment %s captured, order %s confirmed", payment.payment_id, order.order_number)
    return order


def fail_payment(
    db: Session,
    payment: Payment,
    failure_reason: str,
    gateway_response: dict[str, Any] | None = None,
) -> Order | None:
    """Record a failed payment and cancel the order if it was still awaiting payment."""
    if payment.status not in OPEN_PAYMENT_STATUSES:
        logger.warning("Ignoring failure for payment %s in status %s", payment.payment_id, payment.status)
        return None

    payment.status = "failed"
    payment.failure_reason = failure_reason
    if gateway_response is not None:
        payment.gateway_response = gateway_response

    order = db.query(Order).filter(Order.id == payment.order_id).with_for_update().first()
    if order is None:
        return None
    if order.status in AWAITING_PAYMENT:
        transition(db, order, OrderStatus.CANCELLED, changed_by=None, reason="Payment failed")
        notify(
            db,
            order.buyer_id,
            "Payment Failed",
            f"Payment for order {order.order_number} failed: {failure_reason}",
            type="error",
            category="order",
            action_url=order_url(order.order_number),
        )
    return order

"""Order status state machine.

Every status change goes through :func:`transition`, which checks the
transition table and appends exactly one ``OrderStatusHistory`` row. The
buyer/seller operations (cancel, refund, advance) add actor and status-set
guards on top of the table.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from enum import Enum

from sqlalchemy.orm import Session

from app.config import settings
from app.models import MarketplaceItem, Order, OrderItem, OrderStatusHistory, Payment, ShippingDetail, User
from app.services import payment_gateways
from app.services.errors import (
    InvalidTransition,
    OrderNotFound,
    PaymentNotFound,
    RefundAmountExceeded,
    Unauthorized,
)
from app.services.pricing import quantize_money
from app.services.timeutils import utcnow

logger = logging.getLogger(__name__)


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAYMENT_PENDING = "payment_pending"
    CONFIRMED = "confirmed"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset(
        {OrderStatus.PAYMENT_PENDING, OrderStatus.CONFIRMED, OrderStatus.CANCELLED}
    ),
    OrderStatus.PAYMENT_PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset(
        {OrderStatus.PROCESSING, OrderStatus.CANCELLED, OrderStatus.REFUNDED}
    ),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.REFUNDED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

TERMINAL_STATUSES = frozenset(status for status, targets in TRANSITIONS.items() if not targets)

BUYER_CANCELLABLE = frozenset({OrderStatus.PENDING, OrderStatus.CONFIRMED})
SELLER_REFUNDABLE = frozenset({OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED})
SELLER_ADVANCE_STEPS = {
    OrderStatus.CONFIRMED: OrderStatus.PROCESSING,
    OrderStatus.PROCESSING: OrderStatus.SHIPPED,
    OrderStatus.SHIPPED: OrderStatus.DELIVERED,
}


def _as_status(value: str | OrderStatus) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidTransition(f"Unknown order status: {value}")


def can_transition(current: str | OrderStatus, new: str | OrderStatus) -> bool:
    return OrderStatus(new) in TRANSITIONS[OrderStatus(current)]


def record_creation(db: Session, order: Order, changed_by: int | None) -> OrderStatusHistory:
    entry = OrderStatusHistory(
        order_id=order.id,
        previous_status=None,
        new_status=order.status,
        changed_by=changed_by,
        reason="Order placed",
    )
    db.add(entry)
    return entry


def transition(
    db: Session,
    order: Order,
    new_status: str | OrderStatus,
    changed_by: int | None,
    reason: str | None = None,
) -> OrderStatusHistory:
    """Move ``order`` to ``new_status`` and append the audit row."""
    current = _as_status(order.status)
    target = _as_status(new_status)
    if target not in TRANSITIONS[current]:
        raise InvalidTransition(
            f"Order {order.order_number} cannot move from {current.value} to {target.value}",
            current_status=current.value,
        )

    order.status = target.value
    entry = OrderStatusHistory(
        order_id=order.id,
        previous_status=current.value,
        new_status=target.value,
        changed_by=changed_by,
        reason=reason,
    )
    db.add(entry)
    logger.info(
        "Order %s status %s -> %s (by %s)",
        order.order_number,
        current.value,
        target.value,
        changed_by if changed_by is not None else "system",
    )
    return entry


def get_order_for_update(db: Session, order_ref: str | int) -> Order:
    """Load an order by order number (or numeric id) holding a row lock."""
    query = db.query(Order).with_for_update()
    order = query.filter(Order.order_number == str(order_ref)).first()
    if order is None and str(order_ref).isdigit():
        order = query.filter(Order.id == int(order_ref)).first()
    if order is None:
        raise OrderNotFound("Order not found")
    return order


def get_primary_payment(db: Session, order: Order) -> Payment | None:
    return (
        db.query(Payment)
        .filter(Payment.order_id == order.id)
        .order_by(Payment.id.asc())
        .with_for_update()
        .first()
    )


def restore_stock(db: Session, order: Order) -> None:
    for line in db.query(OrderItem).filter(OrderItem.order_id == order.id).all():
        item = (
            db.query(MarketplaceItem)
            .filter(MarketplaceItem.id == line.marketplace_item_id)
            .with_for_update()
            .first()
        )
        if not item:
            continue
        item.quantity = (item.quantity or 0) + line.quantity
        if item.status == "sold" and item.quantity > 0:
            item.status = "active"


def issue_gateway_refund(payment: Payment) -> None:
    """Ask the gateway to refund ``payment.refund_amount``. Call after the local refund is committed."""
    try:
        payment_gateways.refund_payment(payment, quantize_money(payment.refund_amount))
    except Exception:
        # The local refund record stands; reconciliation happens on the gateway dashboard.
        logger.exception("Gateway refund failed for payment %s", payment.payment_id)


def _refund_payment_record(payment: Payment, amount: Decimal) -> None:
    payment.status = "refunded"
    payment.refund_amount = amount
    payment.refunded_at = utcnow()


def cancel_order(
    db: Session, order: Order, actor: User, reason: str | None = None
) -> tuple[Order, Payment | None]:
    """Cancel as the buyer; returns the order and the payment still to be refunded at the gateway, if any."""
    if order.buyer_id != actor.id:
        raise Unauthorized("Only the buyer can cancel this order")

    previous = _as_status(order.status)
    if previous not in BUYER_CANCELLABLE:
        raise InvalidTransition(
            "Order cannot be cancelled. Only pending or confirmed orders can be cancelled.",
            current_status=previous.value,
        )

    transition(
        db,
        order,
        OrderStatus.CANCELLED,
        changed_by=actor.id,
        reason=reason or "Order cancelled by customer",
    )

    payment = get_primary_payment(db, order)
    if previous == OrderStatus.CONFIRMED:
        restore_stock(db, order)
        if payment and payment.status == "captured":
            _refund_payment_record(payment, quantize_money(payment.amount))
            return order, payment
    elif payment and payment.status in {"created", "attempted"}:
        payment.status = "cancelled"
    return order, None


def refund_order(
    db: Session,
    order: Order,
    actor: User,
    reason: str | None = None,
    amount: Decimal | None = None,
) -> tuple[Order, Payment]:
    """Record a full or partial refund as the seller. The caller issues the gateway refund after commit."""
    if order.seller_id != actor.id:
        raise Unauthorized("Only the seller can refund this order")

    current = _as_status(order.status)
    if current not in SELLER_REFUNDABLE:
        raise InvalidTransition(
            "Order cannot be refunded. Only confirmed, processing, or shipped orders can be refunded.",
            current_status=current.value,
        )

    payment = get_primary_payment(db, order)
    if payment is None:
        raise PaymentNotFound("No payment found for this order")
    if payment.status != "captured":
        raise InvalidTransition("Payment not captured, cannot refund")

    max_amount = quantize_money(payment.amount)
    refund_amount = max_amount if amount is None else quantize_money(amount)
    if refund_amount <= 0:
        raise RefundAmountExceeded("Refund amount must be positive")
    if refund_amount > max_amount:
        raise RefundAmountExceeded(f"Refund amount cannot exceed {max_amount}")

    transition(
        db,
        order,
        OrderStatus.REFUNDED,
        changed_by=actor.id,
        reason=reason or "Order refunded by seller",
    )
    _refund_payment_record(payment, refund_amount)
    restore_stock(db, order)
    return order, payment


def mark_delivered(db: Session, order: Order, changed_by: int | None, reason: str) -> None:
    transition(db, order, OrderStatus.DELIVERED, changed_by=changed_by, reason=reason)
    shipping = db.query(ShippingDetail).filter(ShippingDetail.order_id == order.id).first()
    if shipping:
        if shipping.actual_delivery is None:
            shipping.actual_delivery = utcnow()
        shipping.tracking_status = "delivered"


def advance_order_status(
    db: Session,
    order: Order,
    actor: User,
    new_status: str | OrderStatus,
    reason: str | None = None,
    waybill: str | None = None,
) -> Order:
    """Seller-driven step along the fulfilment path (confirmed -> processing -> shipped -> delivered)."""
    if order.seller_id != actor.id:
        raise Unauthorized("Only the seller can update this order")

    current = _as_status(order.status)
    target = _as_status(new_status)
    if SELLER_ADVANCE_STEPS.get(current) != target:
        raise InvalidTransition(
            f"Seller cannot move order from {current.value} to {target.value}",
            current_status=current.value,
        )

    if target == OrderStatus.DELIVERED:
        mark_delivered(db, order, changed_by=actor.id, reason=reason or "Marked delivered by seller")
        return order

    transition(db, order, target, changed_by=actor.id, reason=reason or f"Order {target.value}")
    if target == OrderStatus.SHIPPED:
        shipping = db.query(ShippingDetail).filter(ShippingDetail.order_id == order.id).first()
        if shipping is None:
            shipping = ShippingDetail(order_id=order.id, tracking_status="pending")
            db.add(shipping)
        if waybill:
            shipping.waybill = waybill
        shipping.pickup_date = utcnow()
        shipping.expected_delivery = shipping.pickup_date + timedelta(days=settings.SHIPPING_TRANSIT_DAYS)
        shipping.tracking_status = "in_transit"
    return order

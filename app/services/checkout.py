"""Single-item checkout: price the order, persist it and open the gateway checkout."""

import logging
import secrets
import string
import time
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.config import settings
from app.models import MarketplaceItem, Order, OrderItem, Payment, ShippingDetail, User
from app.services import payment_gateways
from app.services.order_state import OrderStatus, record_creation, transition
from app.services.pricing import OrderAmounts, compute_order_amounts
from app.services.timeutils import isoformat_or_none

logger = logging.getLogger(__name__)

_BASE36 = string.digits + string.ascii_lowercase


def generate_order_number() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"ORD-{int(time.time() * 1000)}-{suffix}"


def generate_payment_id() -> str:
    return f"PAY-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def item_snapshot(item: MarketplaceItem) -> dict:
    return {
        "id": item.id,
        "title": item.title,
        "description": item.description,
        "category": item.category,
        "price": format(item.price, "f"),
        "condition_type": item.condition_type,
        "images": list(item.images or []),
        "seller_id": item.seller_id,
        "seller_type": item.seller_type,
        "captured_at": isoformat_or_none(item.updated_at or item.created_at),
    }


@dataclass
class PlacedOrder:
    order: Order
    payment: Payment
    amounts: OrderAmounts
    checkout: payment_gateways.CheckoutResult


def place_order(
    db: Session,
    buyer: User,
    item: MarketplaceItem,
    quantity: int,
    shipping_address: dict,
    billing_address: dict | None,
    notes: str | None,
    payment_method: str,
    success_url: str,
    cancel_url: str,
) -> PlacedOrder:
    """Create order, line, payment and shipping rows, then open the gateway checkout.

    Nothing is committed here. A gateway error propagates and the caller rolls back.
    """
    amounts = compute_order_amounts(
        unit_price=item.price,
        quantity=quantity,
        shipping_fee=settings.SHIPPING_FLAT_FEE,
        tax_rate=settings.TAX_RATE,
    )

    order = Order(
        order_number=generate_order_number(),
        buyer_id=buyer.id,
        seller_id=item.seller_id,
        total_amount=amounts.total_amount,
        shipping_amount=amounts.shipping_amount,
        tax_amount=amounts.tax_amount,
        discount_amount=amounts.discount_amount,
        final_amount=amounts.final_amount,
        status=OrderStatus.PENDING.value,
        shipping_address=shipping_address,
        billing_address=billing_address or shipping_address,
        notes=notes,
    )
    db.add(order)
    db.flush()

    db.add(
        OrderItem(
            order_id=order.id,
            marketplace_item_id=item.id,
            quantity=quantity,
            unit_price=amounts.unit_price,
            total_price=amounts.total_amount,
            item_snapshot=item_snapshot(item),
        )
    )
    payment = Payment(
        order_id=order.id,
        payment_id=generate_payment_id(),
        payment_method=payment_method,
        amount=amounts.final_amount,
        currency=settings.CURRENCY,
        status="created",
        refund_amount=0,
    )
    db.add(payment)
    db.add(
        ShippingDetail(
            order_id=order.id,
            courier_partner=settings.DEFAULT_COURIER,
            tracking_status="pending",
            tracking_updates=[],
        )
    )
    record_creation(db, order, changed_by=buyer.id)

    checkout = payment_gateways.open_checkout(
        payment_method,
        payment_gateways.CheckoutRequest(
            order_id=order.id,
            order_number=order.order_number,
            amount=amounts.final_amount,
            currency=settings.CURRENCY,
            description=f"{item.title} x {quantity}",
            buyer_id=buyer.id,
            success_url=success_url,
            cancel_url=cancel_url,
        ),
    )
    payment.gateway_order_id = checkout.gateway_order_id
    transition(
        db,
        order,
        OrderStatus.PAYMENT_PENDING,
        changed_by=buyer.id,
        reason=f"Awaiting {payment_method} payment",
    )
    logger.info(
        "Order %s placed by user %s for item %s (qty %s, final %s %s)",
        order.order_number,
        buyer.id,
        item.id,
        quantity,
        amounts.final_amount,
        settings.CURRENCY,
    )
    return PlacedOrder(order=order, payment=payment, amounts=amounts, checkout=checkout)

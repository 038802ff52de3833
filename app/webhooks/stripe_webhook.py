import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.config import settings
from app.models import Order, Payment, get_db
from app.services.errors import InvalidTransition
from app.services.payments import AWAITING_PAYMENT, capture_payment, fail_payment
from app.services.pricing import to_minor_units

router = APIRouter()
logger = logging.getLogger(__name__)


def _payment_for_session(session: dict, db: Session) -> Payment | None:
    order_id_str = (session.get("metadata") or {}).get("order_id")
    if not order_id_str:
        logger.warning("No order_id in session metadata")
        return None
    try:
        order_id = int(order_id_str)
    except (ValueError, TypeError):
        logger.error("Invalid order_id format: %s", order_id_str)
        return None
    if order_id <= 0:
        logger.warning("Invalid non-positive order_id: %s", order_id)
        return None

    payment = (
        db.query(Payment)
        .filter(Payment.order_id == order_id, Payment.payment_method == "stripe")
        .with_for_update()
        .first()
    )
    if payment is None:
        logger.warning("No stripe payment for order %s", order_id)
    return payment


def handle_session_completed(session: dict, db: Session) -> None:
    payment = _payment_for_session(session, db)
    if payment is None:
        return
    if payment.status == "captured":
        logger.info("Payment %s already captured, skipping", payment.payment_id)
        return

    order = db.query(Order).filter(Order.id == payment.order_id).first()
    if order is None or order.status not in AWAITING_PAYMENT:
        logger.warning("Order for payment %s is not awaiting payment", payment.payment_id)
        return

    amount_total = session.get("amount_total")
    if amount_total is not None:
        try:
            amount_total_minor = int(amount_total)
        except (TypeError, ValueError):
            logger.warning("Invalid Stripe amount_total for payment %s: %s", payment.payment_id, amount_total)
            return
        if amount_total_minor != to_minor_units(payment.amount):
            logger.warning(
                "Stripe amount mismatch for payment %s: expected=%s, received=%s",
                payment.payment_id,
                to_minor_units(payment.amount),
                amount_total_minor,
            )
            return

    currency = session.get("currency")
    if currency and str(currency).lower() != payment.currency.lower():
        logger.warning("Stripe currency mismatch for payment %s: %s", payment.payment_id, currency)
        return

    capture_payment(
        db,
        payment,
        gateway_payment_id=session.get("payment_intent") or session.get("id"),
        reason="Payment captured (Stripe checkout)",
        gateway_response={"session_id": session.get("id"), "payment_status": session.get("payment_status")},
    )


def handle_session_expired(session: dict, db: Session) -> None:
    payment = _payment_for_session(session, db)
    if payment is None:
        return
    fail_payment(
        db,
        payment,
        "Checkout session expired",
        gateway_response={"session_id": session.get("id")},
    )


@router.post(
    "/stripe",
    summary="Stripe webhook",
)
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Stripe sends events here. checkout.session.completed captures the payment
    and confirms the order; checkout.session.expired cancels it.
    Idempotent: an already captured payment is not captured twice.
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature", "")

    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.warning("STRIPE_WEBHOOK_SECRET is not set, skipping webhook verification")
        return {"received": True}

    try:
        event = stripe.Webhook.construct_event(payload, sig_header, settings.STRIPE_WEBHOOK_SECRET)
    except ValueError as e:
        logger.error("Invalid payload: %s", e)
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError as e:
        logger.error("Invalid signature: %s", e)
        raise HTTPException(status_code=400, detail="Invalid signature")

    handlers = {
        "checkout.session.completed": handle_session_completed,
        "checkout.session.expired": handle_session_expired,
    }
    handler = handlers.get(event["type"])
    if handler is None:
        return {"received": True}

    session = event["data"]["object"]
    try:
        handler(session, db)
        db.commit()
    except InvalidTransition as e:
        db.rollback()
        logger.warning("Stripe %s rejected: %s", event["type"], e.message)
    except Exception:
        db.rollback()
        logger.exception("Error processing Stripe %s", event["type"])
        raise HTTPException(status_code=500, detail="Internal server error")

    return {"received": True}

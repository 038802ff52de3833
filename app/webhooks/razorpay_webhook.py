import hmac
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from app.config import settings
from app.models import Order, get_db
from app.services.errors import InvalidTransition
from app.services.payments import AWAITING_PAYMENT, capture_payment, fail_payment, find_payments_by_gateway_order
from app.services.pricing import to_minor_units
from app.services.razorpay_service import compute_webhook_signature

router = APIRouter()
logger = logging.getLogger(__name__)

HANDLED_EVENTS = {"payment.captured", "payment.failed"}


def _verify_razorpay_signature(raw_body: bytes, signature: str | None) -> None:
    """Validate HMAC SHA-256 of the raw body; webhooks are refused when no secret is configured."""
    if not settings.RAZORPAY_WEBHOOK_SECRET:
        logger.error("RAZORPAY_WEBHOOK_SECRET is not set, refusing webhook")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Webhook not configured")

    if not signature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing webhook signature")

    expected = compute_webhook_signature(raw_body, settings.RAZORPAY_WEBHOOK_SECRET)
    if not hmac.compare_digest(signature, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")


def handle_payment_captured(entity: dict, db: Session) -> int:
    """Capture every awaiting payment opened for the gateway order. Returns how many were captured."""
    gateway_order_id = entity.get("order_id")
    if not gateway_order_id:
        logger.warning("Razorpay payment.captured without order_id: %s", entity.get("id"))
        return 0

    captured = 0
    for payment in find_payments_by_gateway_order(db, gateway_order_id):
        if payment.status == "captured":
            logger.info("Payment %s already captured, skipping", payment.payment_id)
            continue
        amount = entity.get("amount")
        if amount is not None and int(amount) < to_minor_units(payment.amount):
            logger.warning(
                "Razorpay amount mismatch for payment %s: expected>=%s, received=%s",
                payment.payment_id,
                to_minor_units(payment.amount),
                amount,
            )
            continue
        order = db.query(Order).filter(Order.id == payment.order_id).first()
        if order is None or order.status not in AWAITING_PAYMENT:
            logger.warning("Payment %s order is not awaiting payment, skipping", payment.payment_id)
            continue
        capture_payment(
            db,
            payment,
            gateway_payment_id=entity.get("id"),
            reason="Payment captured (webhook)",
            gateway_response=entity,
        )
        captured += 1
    return captured


def handle_payment_failed(entity: dict, db: Session) -> int:
    gateway_order_id = entity.get("order_id")
    if not gateway_order_id:
        return 0
    reason = entity.get("error_description") or entity.get("error_reason") or "Payment failed"
    failed = 0
    for payment in find_payments_by_gateway_order(db, gateway_order_id):
        if fail_payment(db, payment, reason, gateway_response=entity) is not None:
            failed += 1
    return failed


@router.post(
    "/razorpay",
    summary="Razorpay webhook",
)
async def razorpay_webhook(
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Razorpay sends payment events here, signed with ``x-razorpay-signature``.
    payment.captured confirms the orders, payment.failed cancels them.
    Idempotent: already captured payments are left alone.
    """
    raw_body = await request.body()
    _verify_razorpay_signature(raw_body, request.headers.get("x-razorpay-signature"))

    try:
        body = json.loads(raw_body)
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in Razorpay webhook: %s", e)
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON")

    event = body.get("event")
    if event not in HANDLED_EVENTS:
        logger.info("Ignoring Razorpay event %s", event)
        return {"received": True}

    entity = ((body.get("payload") or {}).get("payment") or {}).get("entity") or {}
    try:
        if event == "payment.captured":
            count = handle_payment_captured(entity, db)
        else:
            count = handle_payment_failed(entity, db)
        db.commit()
    except InvalidTransition as e:
        db.rollback()
        logger.warning("Razorpay %s for %s rejected: %s", event, entity.get("order_id"), e.message)
        return {"received": True}
    except Exception:
        db.rollback()
        logger.exception("Error processing Razorpay %s for %s", event, entity.get("order_id"))
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error")

    logger.info("Razorpay %s processed for %s (%s payments)", event, entity.get("order_id"), count)
    return {"received": True}

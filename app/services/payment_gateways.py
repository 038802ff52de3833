import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable

from app.config import settings
from app.services import razorpay_service, stripe_service
from app.services.pricing import to_minor_units

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    gateway_order_id: str
    checkout_url: str | None = None
    key_id: str | None = None


@dataclass(frozen=True)
class CheckoutRequest:
    order_id: int
    order_number: str
    amount: Decimal
    currency: str
    description: str
    buyer_id: int
    success_url: str
    cancel_url: str


@dataclass(frozen=True)
class PaymentGateway:
    method: str
    create_checkout: Callable[[CheckoutRequest], CheckoutResult]
    refund: Callable[[str, int], str]
    enabled: bool


def _create_razorpay_checkout(request: CheckoutRequest) -> CheckoutResult:
    gateway_order_id = razorpay_service.create_order(
        order_number=request.order_number,
        amount_minor=to_minor_units(request.amount),
        currency=request.currency,
        notes={
            "order_number": request.order_number,
            "user_id": str(request.buyer_id),
        },
    )
    return CheckoutResult(gateway_order_id=gateway_order_id, key_id=settings.RAZORPAY_KEY_ID)


def _create_stripe_checkout(request: CheckoutRequest) -> CheckoutResult:
    checkout_url, session_id = stripe_service.create_checkout_session(
        order_id=request.order_id,
        order_number=request.order_number,
        amount_minor=to_minor_units(request.amount),
        currency=request.currency,
        description=request.description,
        success_url=request.success_url,
        cancel_url=request.cancel_url,
    )
    return CheckoutResult(gateway_order_id=session_id, checkout_url=checkout_url)


def get_payment_gateways() -> dict[str, PaymentGateway]:
    return {
        "razorpay": PaymentGateway(
            method="razorpay",
            create_checkout=_create_razorpay_checkout,
            refund=razorpay_service.refund_payment,
            enabled=bool(settings.RAZORPAY_KEY_ID and settings.RAZORPAY_KEY_SECRET),
        ),
        "stripe": PaymentGateway(
            method="stripe",
            create_checkout=_create_stripe_checkout,
            refund=stripe_service.create_refund,
            enabled=bool(settings.STRIPE_SECRET_KEY),
        ),
    }


def get_enabled_payment_methods() -> list[str]:
    return [method for method, gateway in get_payment_gateways().items() if gateway.enabled]


def open_checkout(method: str, request: CheckoutRequest) -> CheckoutResult:
    gateway = get_payment_gateways().get(method)
    if gateway is None:
        raise ValueError(f"Unsupported payment method: {method}")
    return gateway.create_checkout(request)


def refund_payment(payment, amount: Decimal) -> str | None:
    """Ask the payment's gateway to return ``amount``; None when there is nothing to refund remotely."""
    if not payment.gateway_payment_id:
        logger.warning("Payment %s has no gateway payment id, skipping gateway refund", payment.payment_id)
        return None
    gateway = get_payment_gateways().get(payment.payment_method)
    if gateway is None:
        logger.warning("Payment %s uses unknown method %s", payment.payment_id, payment.payment_method)
        return None
    refund_id = gateway.refund(payment.gateway_payment_id, to_minor_units(amount))
    logger.info("Gateway refund %s issued for payment %s", refund_id, payment.payment_id)
    return refund_id

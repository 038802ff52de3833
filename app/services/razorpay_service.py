import hashlib
import hmac

import razorpay


def _client() -> razorpay.Client:
    from app.config import settings

    if not settings.RAZORPAY_KEY_ID or not settings.RAZORPAY_KEY_SECRET:
        raise ValueError("RAZORPAY_KEY_ID and RAZORPAY_KEY_SECRET are not set")
    return razorpay.Client(auth=(settings.RAZORPAY_KEY_ID, settings.RAZORPAY_KEY_SECRET))


def create_order(order_number: str, amount_minor: int, currency: str, notes: dict[str, str]) -> str:
    """Open a Razorpay order for the hosted checkout modal and return its id."""
    gateway_order = _client().order.create(
        {
            "amount": amount_minor,
            "currency": currency,
            "receipt": order_number,
            "notes": notes,
        }
    )
    return gateway_order["id"]


def refund_payment(gateway_payment_id: str, amount_minor: int) -> str:
    refund = _client().payment.refund(
        gateway_payment_id,
        {"amount": amount_minor, "speed": "optimum"},
    )
    return refund["id"]


def compute_payment_signature(gateway_order_id: str, gateway_payment_id: str, secret: str) -> str:
    message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_payment_signature(gateway_order_id: str, gateway_payment_id: str, signature: str | None) -> bool:
    """Check the checkout callback signature over ``order_id|payment_id``."""
    from app.config import settings

    if not settings.RAZORPAY_KEY_SECRET:
        raise ValueError("RAZORPAY_KEY_SECRET is not set")
    if not signature:
        return False
    expected = compute_payment_signature(gateway_order_id, gateway_payment_id, settings.RAZORPAY_KEY_SECRET)
    return hmac.compare_digest(signature, expected)


def compute_webhook_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()

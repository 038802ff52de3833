import stripe

from app.services.url_utils import append_query_param


def _configure() -> None:
    from app.config import settings

    if not settings.STRIPE_SECRET_KEY:
        raise ValueError("STRIPE_SECRET_KEY is not set")
    stripe.api_key = settings.STRIPE_SECRET_KEY


def create_checkout_session(
    order_id: int,
    order_number: str,
    amount_minor: int,
    currency: str,
    description: str,
    success_url: str,
    cancel_url: str,
) -> tuple[str, str]:
    """Open a hosted Checkout Session for the whole order amount; returns (checkout URL, session ID).

    The webhook finds the order again through ``metadata.order_id``.
    """
    _configure()
    session = stripe.checkout.Session.create(
        mode="payment",
        payment_method_types=["card"],
        client_reference_id=order_number,
        line_items=[
            {
                "quantity": 1,
                "price_data": {
                    "currency": currency.lower(),
                    "unit_amount": amount_minor,
                    "product_data": {"name": description},
                },
            }
        ],
        metadata={"order_id": str(order_id), "order_number": order_number},
        success_url=append_query_param(success_url, "order_number", order_number),
        cancel_url=cancel_url,
    )
    return session.url, session.id


def create_refund(payment_intent_id: str, amount_minor: int) -> str:
    _configure()
    refund = stripe.Refund.create(payment_intent=payment_intent_id, amount=amount_minor)
    return refund.id

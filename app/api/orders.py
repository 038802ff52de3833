import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.config import settings
from app.dependencies import get_current_user, get_verified_user
from app.models import MarketplaceItem, Order, OrderItem, OrderStatusHistory, Payment, ShippingDetail, User, get_db
from app.schemas.orders import (
    CancelRequest,
    CheckoutInfo,
    OrderActionResponse,
    OrderCreateRequest,
    OrderCreateResponse,
    OrderDetailResponse,
    OrderItemResponse,
    OrderListResponse,
    OrderResponse,
    OrderUpdateRequest,
    PaymentMethodsResponse,
    PaymentResponse,
    RefundRequest,
    ShippingResponse,
    StatusHistoryEntry,
    StatusHistoryResponse,
    VerifiedOrder,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from app.services import payment_gateways, razorpay_service
from app.services.checkout import place_order
from app.services.errors import OrderNotFound, PaymentVerificationFailed, Unauthorized
from app.services.order_state import (
    OrderStatus,
    advance_order_status,
    cancel_order,
    get_order_for_update,
    issue_gateway_refund,
    refund_order,
)
from app.services.payments import AWAITING_PAYMENT, capture_payment, find_payments_by_gateway_order
from app.services.pricing import to_minor_units
from app.services.shipping import generate_waybill
from app.services.timeutils import isoformat_or_none
from app.services.url_utils import validate_checkout_redirect_url

router = APIRouter()
logger = logging.getLogger(__name__)


def _payment_response(payment: Payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=payment.payment_id,
        payment_method=payment.payment_method,
        gateway_order_id=payment.gateway_order_id,
        gateway_payment_id=payment.gateway_payment_id,
        amount=payment.amount,
        currency=payment.currency,
        status=payment.status,
        captured_at=isoformat_or_none(payment.captured_at),
        refunded_at=isoformat_or_none(payment.refunded_at),
        refund_amount=payment.refund_amount or 0,
        failure_reason=payment.failure_reason,
    )


def _shipping_response(shipping: ShippingDetail) -> ShippingResponse:
    return ShippingResponse(
        waybill=shipping.waybill,
        courier_partner=shipping.courier_partner,
        tracking_status=shipping.tracking_status,
        tracking_updates=list(shipping.tracking_updates or []),
        pickup_date=isoformat_or_none(shipping.pickup_date),
        expected_delivery=isoformat_or_none(shipping.expected_delivery),
        actual_delivery=isoformat_or_none(shipping.actual_delivery),
    )


def order_to_response(db: Session, order: Order) -> OrderResponse:
    items = db.query(OrderItem).filter(OrderItem.order_id == order.id).order_by(OrderItem.id).all()
    payment = db.query(Payment).filter(Payment.order_id == order.id).order_by(Payment.id).first()
    shipping = db.query(ShippingDetail).filter(ShippingDetail.order_id == order.id).first()
    return OrderResponse(
        id=order.id,
        order_number=order.order_number,
        buyer_id=order.buyer_id,
        seller_id=order.seller_id,
        status=order.status,
        total_amount=order.total_amount,
        shipping_amount=order.shipping_amount,
        tax_amount=order.tax_amount,
        discount_amount=order.discount_amount,
        final_amount=order.final_amount,
        shipping_address=order.shipping_address or {},
        billing_address=order.billing_address,
        notes=order.notes,
        payment_status=payment.status if payment else None,
        tracking_status=shipping.tracking_status if shipping else None,
        waybill=shipping.waybill if shipping else None,
        order_items=[
            OrderItemResponse(
                id=line.id,
                marketplace_item_id=line.marketplace_item_id,
                quantity=line.quantity,
                unit_price=line.unit_price,
                total_price=line.total_price,
                item_snapshot=line.item_snapshot or {},
            )
            for line in items
        ],
        payment=_payment_response(payment) if payment else None,
        shipping=_shipping_response(shipping) if shipping else None,
        created_at=isoformat_or_none(order.created_at),
        updated_at=isoformat_or_none(order.updated_at),
    )


def _load_visible_order(db: Session, order_ref: str, user: User, for_update: bool = False) -> Order:
    if for_update:
        order = get_order_for_update(db, order_ref)
    else:
        order = db.query(Order).filter(Order.order_number == order_ref).first()
        if order is None and order_ref.isdigit():
            order = db.query(Order).filter(Order.id == int(order_ref)).first()
        if order is None:
            raise OrderNotFound("Order not found")
    if user.id not in (order.buyer_id, order.seller_id):
        raise Unauthorized("Access denied")
    return order


@router.get(
    "/payment-methods",
    response_model=PaymentMethodsResponse,
    summary="List available and enabled payment methods",
)
def payment_methods():
    return PaymentMethodsResponse(
        available_methods=list(payment_gateways.get_payment_gateways().keys()),
        enabled_methods=payment_gateways.get_enabled_payment_methods(),
    )


@router.post(
    "/create-new",
    response_model=OrderCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create order for a marketplace item and open gateway checkout",
)
def create_order(
    body: OrderCreateRequest,
    current_user: Annotated[User, Depends(get_verified_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Create an order for one marketplace item.
    Amounts are computed server-side (flat shipping, tax on the item total).
    Returns the gateway checkout data the client needs to collect payment.
    """
    item = (
        db.query(MarketplaceItem)
        .filter(MarketplaceItem.id == body.marketplace_item_id)
        .with_for_update()
        .first()
    )
    if not item or item.status != "active":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found or not available")
    if item.seller_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot buy your own item")
    if item.quantity < body.quantity:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Only {item.quantity} items available",
        )

    method = body.payment_method.value
    if method == "stripe":
        success_url = body.return_url or settings.STRIPE_SUCCESS_URL
        cancel_url = body.cancel_url or settings.STRIPE_CANCEL_URL
    else:
        success_url = body.return_url or f"{settings.FRONTEND_URL.rstrip('/')}/orders/success"
        cancel_url = body.cancel_url or f"{settings.FRONTEND_URL.rstrip('/')}/cart"
    try:
        success_url = validate_checkout_redirect_url(success_url, "return_url")
        cancel_url = validate_checkout_redirect_url(cancel_url, "cancel_url")
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    try:
        placed = place_order(
            db,
            buyer=current_user,
            item=item,
            quantity=body.quantity,
            shipping_address=body.shipping_address.model_dump(),
            billing_address=body.billing_address.model_dump() if body.billing_address else None,
            notes=body.notes,
            payment_method=method,
            success_url=success_url,
            cancel_url=cancel_url,
        )
    except ValueError as e:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    except Exception:
        db.rollback()
        logger.exception("Failed to open %s checkout for item %s", method, item.id)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to create checkout session",
        )

    db.commit()
    db.refresh(placed.order)
    return OrderCreateResponse(
        order=order_to_response(db, placed.order),
        amounts=placed.amounts.as_dict(),
        checkout=CheckoutInfo(
            payment_method=body.payment_method,
            gateway_order_id=placed.checkout.gateway_order_id,
            key_id=placed.checkout.key_id,
            checkout_url=placed.checkout.checkout_url,
            amount_minor=to_minor_units(placed.amounts.final_amount),
            currency=settings.CURRENCY,
        ),
    )


@router.post(
    "/verify-payment-new",
    response_model=VerifyPaymentResponse,
    summary="Verify Razorpay checkout signature and confirm orders",
)
def verify_payment(
    body: VerifyPaymentRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Checks HMAC-SHA256 of ``razorpay_order_id|razorpay_payment_id`` against the signature.
    On success every awaiting payment for the gateway order is captured and its order confirmed.
    Already captured payments are skipped.
    """
    try:
        valid = razorpay_service.verify_payment_signature(
            body.razorpay_order_id,
            body.razorpay_payment_id,
            body.razorpay_signature,
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    if not valid:
        logger.warning(
            "Invalid payment signature for gateway order %s from user %s",
            body.razorpay_order_id,
            current_user.id,
        )
        raise PaymentVerificationFailed("Payment verification failed")

    payments = find_payments_by_gateway_order(db, body.razorpay_order_id)
    if body.order_ids:
        wanted = set(body.order_ids)
        payments = [p for p in payments if p.order_id in wanted]
    if not payments:
        raise OrderNotFound("No orders found for this payment")

    confirmed: list[Order] = []
    for payment in payments:
        order = db.query(Order).filter(Order.id == payment.order_id).first()
        if order is None or order.buyer_id != current_user.id:
            raise Unauthorized("Access denied")
        if payment.status != "captured" and order.status not in AWAITING_PAYMENT:
            logger.warning("Order %s is %s, skipping capture", order.order_number, order.status)
            continue
        confirmed.append(
            capture_payment(
                db,
                payment,
                gateway_payment_id=body.razorpay_payment_id,
                reason="Payment verified",
                signature=body.razorpay_signature,
            )
        )
    db.commit()

    return VerifyPaymentResponse(
        message="Payment verified successfully",
        orders=[VerifiedOrder(id=o.id, order_number=o.order_number, status=o.status) for o in confirmed],
    )


@router.get(
    "",
    response_model=OrderListResponse,
    summary="List my orders as buyer and/or seller",
)
def list_orders(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    type: Annotated[Literal["buyer", "seller", "all"], Query()] = "all",
    status_filter: Annotated[OrderStatus | None, Query(alias="status")] = None,
):
    query = db.query(Order)
    if type == "buyer":
        query = query.filter(Order.buyer_id == current_user.id)
    elif type == "seller":
        query = query.filter(Order.seller_id == current_user.id)
    else:
        query = query.filter(or_(Order.buyer_id == current_user.id, Order.seller_id == current_user.id))
    if status_filter is not None:
        query = query.filter(Order.status == status_filter.value)
    orders = query.order_by(Order.created_at.desc(), Order.id.desc()).all()
    return OrderListResponse(orders=[order_to_response(db, o) for o in orders], count=len(orders))


@router.get(
    "/{order_ref}",
    response_model=OrderDetailResponse,
    summary="Get order by order number",
)
def get_order(
    order_ref: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    order = _load_visible_order(db, order_ref, current_user)
    return OrderDetailResponse(data=order_to_response(db, order))


@router.get(
    "/{order_ref}/history",
    response_model=StatusHistoryResponse,
    summary="Get order status history",
)
def order_history(
    order_ref: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    order = _load_visible_order(db, order_ref, current_user)
    rows = (
        db.query(OrderStatusHistory)
        .filter(OrderStatusHistory.order_id == order.id)
        .order_by(OrderStatusHistory.id.asc())
        .all()
    )
    return StatusHistoryResponse(
        order_number=order.order_number,
        history=[
            StatusHistoryEntry(
                previous_status=row.previous_status,
                new_status=row.new_status,
                changed_by=row.changed_by,
                reason=row.reason,
                created_at=isoformat_or_none(row.created_at),
            )
            for row in rows
        ],
    )


@router.patch(
    "/{order_ref}",
    response_model=OrderDetailResponse,
    summary="Advance order status (seller), cancel (buyer), or edit notes",
)
def update_order(
    order_ref: str,
    body: OrderUpdateRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    order = _load_visible_order(db, order_ref, current_user, for_update=True)

    refunded = None
    if body.status == OrderStatus.CANCELLED.value:
        order, refunded = cancel_order(db, order, current_user, reason=body.reason)
    elif body.status is not None:
        waybill = body.waybill
        if body.status == OrderStatus.SHIPPED.value and not waybill:
            shipping = db.query(ShippingDetail).filter(ShippingDetail.order_id == order.id).first()
            waybill = shipping.waybill if shipping and shipping.waybill else generate_waybill()
        advance_order_status(db, order, current_user, body.status, reason=body.reason, waybill=waybill)

    if body.notes is not None:
        if order.seller_id != current_user.id:
            raise Unauthorized("Only the seller can edit order notes")
        order.notes = body.notes

    db.commit()
    if refunded is not None:
        issue_gateway_refund(refunded)
    db.refresh(order)
    return OrderDetailResponse(data=order_to_response(db, order))


@router.post(
    "/{order_ref}/cancel",
    response_model=OrderActionResponse,
    summary="Cancel order (buyer)",
)
def cancel(
    order_ref: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    body: CancelRequest | None = None,
):
    order = get_order_for_update(db, order_ref)
    order, refunded = cancel_order(db, order, current_user, reason=body.reason if body else None)
    db.commit()
    if refunded is not None:
        issue_gateway_refund(refunded)
    return OrderActionResponse(
        message="Order cancelled successfully",
        order_number=order.order_number,
        status=order.status,
    )


@router.post(
    "/{order_ref}/refund",
    response_model=OrderActionResponse,
    summary="Refund order (seller)",
)
def refund(
    order_ref: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
    body: RefundRequest | None = None,
):
    order = get_order_for_update(db, order_ref)
    order, payment = refund_order(
        db,
        order,
        current_user,
        reason=body.reason if body else None,
        amount=body.refund_amount if body else None,
    )
    db.commit()
    issue_gateway_refund(payment)
    return OrderActionResponse(
        message="Refund processed successfully",
        order_number=order.order_number,
        status=order.status,
        refund_amount=format(payment.refund_amount, "f"),
    )

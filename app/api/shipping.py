import hmac
import json
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from app.config import settings
from app.dependencies import get_current_user
from app.models import Order, ShippingDetail, User, get_db
from app.services.shipping import apply_tracking_update, compute_carrier_signature
from app.services.timeutils import isoformat_or_none

router = APIRouter()
logger = logging.getLogger(__name__)


class TrackingUpdateRequest(BaseModel):
    status: str
    activity: str | None = None
    location: str | None = None


def _get_shipment(db: Session, waybill: str, for_update: bool = False) -> ShippingDetail:
    query = db.query(ShippingDetail).filter(ShippingDetail.waybill == waybill)
    if for_update:
        query = query.with_for_update()
    shipping = query.first()
    if not shipping:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Shipment not found")
    return shipping


def _verify_carrier_signature(raw_body: bytes, signature: str | None) -> None:
    if not settings.SHIPPING_WEBHOOK_SECRET:
        logger.warning("SHIPPING_WEBHOOK_SECRET is not set, skipping carrier update verification")
        return
    if not signature:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing webhook signature")
    expected = compute_carrier_signature(raw_body, settings.SHIPPING_WEBHOOK_SECRET)
    if not hmac.compare_digest(signature, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook signature")


@router.get(
    "/track/{waybill}",
    summary="Get shipment tracking",
)
def track_shipment(
    waybill: str,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    shipping = _get_shipment(db, waybill)
    order = db.query(Order).filter(Order.id == shipping.order_id).first()
    if order is None or current_user.id not in (order.buyer_id, order.seller_id):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access denied")
    return {
        "success": True,
        "tracking": {
            "waybill": shipping.waybill,
            "order_number": order.order_number,
            "status": shipping.tracking_status,
            "courier_partner": shipping.courier_partner,
            "pickup_date": isoformat_or_none(shipping.pickup_date),
            "expected_delivery": isoformat_or_none(shipping.expected_delivery),
            "actual_delivery": isoformat_or_none(shipping.actual_delivery),
            "scans": list(shipping.tracking_updates or []),
            "delivery_address": order.shipping_address,
        },
    }


@router.post(
    "/track/{waybill}",
    summary="Carrier tracking update",
)
async def carrier_update(
    waybill: str,
    request: Request,
    db: Session = Depends(get_db),
):
    """
    Carrier pushes scans here. A "Delivered" scan moves a shipped order to delivered
    and stamps the actual delivery time once.
    """
    raw_body = await request.body()
    _verify_carrier_signature(raw_body, request.headers.get("x-shipping-signature"))
    try:
        update = TrackingUpdateRequest.model_validate(json.loads(raw_body))
    except (json.JSONDecodeError, ValidationError) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid tracking update: {e}")

    shipping = _get_shipment(db, waybill, for_update=True)
    scan = apply_tracking_update(db, shipping, update.status, update.activity, update.location)
    db.commit()
    logger.info("Tracking update for %s: %s", waybill, shipping.tracking_status)
    return {"success": True, "tracking_status": shipping.tracking_status, "scan": scan}

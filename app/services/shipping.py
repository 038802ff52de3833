import hashlib
import hmac
import logging
import secrets
import string
import time

from sqlalchemy.orm import Session

from app.models import Order, ShippingDetail
from app.services.order_state import OrderStatus, mark_delivered
from app.services.timeutils import utcnow

logger = logging.getLogger(__name__)

DELIVERED = "delivered"
_WAYBILL_ALPHABET = string.digits + string.ascii_uppercase


def generate_waybill(prefix: str = "DL") -> str:
    suffix = "".join(secrets.choice(_WAYBILL_ALPHABET) for _ in range(6))
    return f"{prefix}{int(time.time() * 1000)}{suffix}"


def compute_carrier_signature(raw_body: bytes, secret: str) -> str:
    return hmac.new(secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()


def normalize_tracking_status(value: str) -> str:
    return value.strip().lower().replace(" ", "_")


def apply_tracking_update(
    db: Session,
    shipping: ShippingDetail,
    status_value: str,
    activity: str | None = None,
    location: str | None = None,
) -> dict:
    """Append a carrier scan; a delivered scan moves a shipped order to delivered."""
    tracking_status = normalize_tracking_status(status_value)
    scan = {
        "date": utcnow().isoformat(),
        "activity": activity,
        "location": location,
        "status": status_value,
    }
    # Reassign so the JSON column is flagged dirty.
    shipping.tracking_updates = [*(shipping.tracking_updates or []), scan]
    shipping.tracking_status = tracking_status

    if tracking_status == DELIVERED:
        order = db.query(Order).filter(Order.id == shipping.order_id).with_for_update().first()
        if order and order.status == OrderStatus.SHIPPED.value:
            mark_delivered(db, order, changed_by=None, reason="Package delivered successfully")
        elif order:
            logger.warning(
                "Delivered scan for waybill %s but order %s is %s",
                shipping.waybill,
                order.order_number,
                order.status,
            )
    return scan

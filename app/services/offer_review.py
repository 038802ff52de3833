import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from app.config import settings
from app.models import AdminUser, ServiceOffer, ServiceOfferReview, User
from app.services.email_service import send_offer_auto_rejected_email, send_offer_review_email
from app.services.errors import InvalidTransition, ReviewAlreadyCompleted
from app.services.notifications import notify
from app.services.timeutils import db_datetime, isoformat_or_none, utcnow

logger = logging.getLogger(__name__)

REVIEW_ACTIONS = {"approve": "approved", "reject": "rejected"}


def auto_reject_comment(sla_days: int) -> str:
    return (
        f"Automatically rejected: Review deadline exceeded ({sla_days} days). "
        "Please resubmit if still needed."
    )


@dataclass(frozen=True)
class ReviewContext:
    admin: AdminUser | None
    ip_address: str | None = None
    user_agent: str | None = None


def offer_snapshot(offer: ServiceOffer) -> dict:
    return {
        "id": offer.id,
        "ngo_id": offer.ngo_id,
        "title": offer.title,
        "description": offer.description,
        "category": offer.category,
        "location": offer.location,
        "wage_info": offer.wage_info,
        "requirements": offer.requirements,
        "status": offer.status,
        "admin_status": offer.admin_status,
        "created_at": isoformat_or_none(offer.created_at),
    }


def _notify_organization(db: Session, offer: ServiceOffer, approved: bool, comments: str) -> None:
    decision = "approved" if approved else "rejected"
    notify(
        db,
        offer.ngo_id,
        f"Service Offer {decision.capitalize()}",
        f'Your service offer "{offer.title}" has been {decision}.',
        type="success" if approved else "warning",
        category="service_offer",
        action_url="/service-offers/track",
    )
    organization = db.query(User).filter(User.id == offer.ngo_id).first()
    if not organization:
        return
    try:
        send_offer_review_email(organization.email, organization.name, offer.title, approved, comments)
    except Exception:
        logger.exception("Failed to send review email for service offer %s", offer.id)


def review_offer(
    db: Session,
    offer_id: int,
    action: str,
    comments: str,
    context: ReviewContext,
) -> ServiceOffer | None:
    """Apply an admin approve/reject decision to a pending offer."""
    if action not in REVIEW_ACTIONS:
        raise InvalidTransition("Invalid action")
    comments = (comments or "").strip()
    if not comments:
        raise InvalidTransition("Review comments are required")

    offer = db.query(ServiceOffer).filter(ServiceOffer.id == offer_id).with_for_update().first()
    if offer is None:
        return None
    if offer.admin_status != "pending":
        raise ReviewAlreadyCompleted(
            f"Service offer already {offer.admin_status}",
            admin_status=offer.admin_status,
        )

    snapshot = offer_snapshot(offer)
    new_status = REVIEW_ACTIONS[action]
    offer.admin_status = new_status
    offer.admin_reviewed_at = utcnow()
    offer.admin_reviewed_by = context.admin.id if context.admin else None
    offer.admin_comments = comments
    if new_status == "approved":
        offer.status = "active"

    db.add(
        ServiceOfferReview(
            service_offer_id=offer.id,
            review_action=new_status,
            admin_comments=comments,
            offer_snapshot=snapshot,
            admin_user_id=offer.admin_reviewed_by,
            admin_ip_address=context.ip_address,
            admin_user_agent=context.user_agent,
        )
    )
    _notify_organization(db, offer, new_status == "approved", comments)
    logger.info("Service offer %s %s by admin %s", offer.id, new_status, offer.admin_reviewed_by)
    return offer


def auto_reject_expired_offers(
    db: Session,
    now: datetime | None = None,
    sla_days: int | None = None,
) -> list[ServiceOffer]:
    """Reject every pending offer submitted before the review deadline cutoff."""
    days = settings.REVIEW_SLA_DAYS if sla_days is None else sla_days
    current = now or utcnow()
    cutoff = current - timedelta(days=days)
    comment = auto_reject_comment(days)

    expired = (
        db.query(ServiceOffer)
        .filter(
            ServiceOffer.admin_status == "pending",
            ServiceOffer.created_at < db_datetime(db, cutoff),
        )
        .with_for_update()
        .all()
    )

    for offer in expired:
        snapshot = offer_snapshot(offer)
        offer.admin_status = "rejected"
        offer.admin_reviewed_at = current
        offer.admin_reviewed_by = None
        offer.admin_comments = comment
        db.add(
            ServiceOfferReview(
                service_offer_id=offer.id,
                review_action="auto_rejected",
                admin_comments=comment,
                offer_snapshot=snapshot,
                admin_user_id=None,
            )
        )
        notify(
            db,
            offer.ngo_id,
            "Service Offer Auto-Rejected",
            f'Your service offer "{offer.title}" was not reviewed within {days} days and has been rejected.',
            type="warning",
            category="service_offer",
            action_url="/service-offers/track",
        )
        organization = db.query(User).filter(User.id == offer.ngo_id).first()
        if organization:
            try:
                send_offer_auto_rejected_email(organization.email, organization.name, offer.title, days)
            except Exception:
                logger.exception("Failed to send auto-reject email for service offer %s", offer.id)
        logger.info("Auto-rejected service offer %s (%s)", offer.id, offer.title)

    logger.info("Auto-rejected %s expired service offers", len(expired))
    return expired

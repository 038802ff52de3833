import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.dependencies import get_current_user, get_current_user_optional, get_verified_user
from app.models import ServiceOffer, User, get_db
from app.schemas.service_offers import (
    ReviewTimerResponse,
    ServiceOfferCreateRequest,
    ServiceOfferListResponse,
    ServiceOfferResponse,
)
from app.services.review_sla import remaining_review_time
from app.services.timeutils import isoformat_or_none

router = APIRouter()
logger = logging.getLogger(__name__)


def offer_to_response(offer: ServiceOffer) -> ServiceOfferResponse:
    timer = None
    if offer.created_at is not None:
        remaining = remaining_review_time(offer.created_at, offer.admin_status)
        if remaining is not None:
            timer = ReviewTimerResponse(**remaining.as_dict())
    return ServiceOfferResponse(
        id=offer.id,
        ngo_id=offer.ngo_id,
        title=offer.title,
        description=offer.description,
        category=offer.category,
        location=offer.location,
        wage_info=offer.wage_info,
        requirements=list(offer.requirements or []),
        status=offer.status,
        admin_status=offer.admin_status,
        admin_reviewed_at=isoformat_or_none(offer.admin_reviewed_at),
        admin_comments=offer.admin_comments,
        created_at=isoformat_or_none(offer.created_at),
        review_timer=timer,
    )


def _require_ngo(user: User) -> None:
    if user.user_type != "ngo":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only NGOs can manage service offers")


@router.post(
    "",
    response_model=ServiceOfferResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a service offer for admin review",
)
def create_offer(
    body: ServiceOfferCreateRequest,
    current_user: Annotated[User, Depends(get_verified_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """The offer starts as a draft with admin_status pending; approval makes it active."""
    _require_ngo(current_user)
    offer = ServiceOffer(
        ngo_id=current_user.id,
        title=body.title,
        description=body.description,
        category=body.category,
        location=body.location,
        wage_info=body.wage_info.model_dump(mode="json") if body.wage_info else None,
        requirements=body.requirements,
        status="draft",
        admin_status="pending",
    )
    db.add(offer)
    db.commit()
    db.refresh(offer)
    logger.info("Service offer %s submitted by NGO %s", offer.id, current_user.id)
    return offer_to_response(offer)


@router.get(
    "",
    response_model=ServiceOfferListResponse,
    summary="List approved, active service offers",
)
def list_offers(
    db: Annotated[Session, Depends(get_db)],
    category: str | None = None,
):
    query = db.query(ServiceOffer).filter(
        ServiceOffer.admin_status == "approved",
        ServiceOffer.status == "active",
    )
    if category:
        query = query.filter(ServiceOffer.category == category)
    offers = query.order_by(ServiceOffer.created_at.desc(), ServiceOffer.id.desc()).all()
    return ServiceOfferListResponse(offers=[offer_to_response(o) for o in offers], count=len(offers))


@router.get(
    "/mine",
    response_model=ServiceOfferListResponse,
    summary="List my submitted offers with review timers",
)
def my_offers(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    offers = (
        db.query(ServiceOffer)
        .filter(ServiceOffer.ngo_id == current_user.id)
        .order_by(ServiceOffer.created_at.desc(), ServiceOffer.id.desc())
        .all()
    )
    return ServiceOfferListResponse(offers=[offer_to_response(o) for o in offers], count=len(offers))


@router.get(
    "/{offer_id}",
    response_model=ServiceOfferResponse,
    summary="Get a service offer",
)
def get_offer(
    offer_id: int,
    db: Annotated[Session, Depends(get_db)],
    current_user: Annotated[User | None, Depends(get_current_user_optional)] = None,
):
    """Approved offers are public; pending or rejected ones are visible to their NGO only."""
    offer = db.query(ServiceOffer).filter(ServiceOffer.id == offer_id).first()
    if not offer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service offer not found")
    if offer.admin_status != "approved" and (current_user is None or current_user.id != offer.ngo_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service offer not found")
    return offer_to_response(offer)

import logging
from typing import Annotated, Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from app.api.auth import create_admin_token, user_to_response, verify_password
from app.api.service_offers import offer_to_response
from app.config import settings
from app.dependencies import get_current_admin
from app.models import AdminUser, ServiceOffer, User, get_db
from app.schemas.service_offers import (
    AutoRejectResponse,
    RejectedOfferSummary,
    ReviewRequest,
    ReviewResponse,
    ServiceOfferListResponse,
)
from app.schemas.users import AdminLoginRequest
from app.services.notifications import notify
from app.services.offer_review import ReviewContext, auto_reject_expired_offers, review_offer
from app.services.timeutils import utcnow

router = APIRouter()
logger = logging.getLogger(__name__)


def _client_ip(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


@router.post(
    "/auth/login",
    summary="Admin login (sets admin-token cookie)",
)
def admin_login(
    body: AdminLoginRequest,
    response: Response,
    db: Annotated[Session, Depends(get_db)],
):
    admin = db.query(AdminUser).filter(AdminUser.email == body.email).first()
    if not admin or not admin.is_active or not verify_password(body.password, admin.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid credentials")

    token = create_admin_token(admin.id)
    admin.last_login_at = utcnow()
    db.commit()
    response.set_cookie(
        key=settings.ADMIN_COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.BASE_URL.startswith("https://"),
        max_age=settings.ADMIN_TOKEN_EXPIRE_MINUTES * 60,
    )
    logger.info("Admin %s logged in", admin.id)
    return {"success": True, "admin": {"id": admin.id, "email": admin.email, "name": admin.name}}


@router.get(
    "/service-offers",
    response_model=ServiceOfferListResponse,
    summary="Service offer review queue with deadline timers",
)
def list_offers_for_review(
    admin: Annotated[AdminUser, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
    admin_status: Annotated[Literal["pending", "approved", "rejected", "all"], Query()] = "pending",
):
    query = db.query(ServiceOffer)
    if admin_status != "all":
        query = query.filter(ServiceOffer.admin_status == admin_status)
    offers = query.order_by(ServiceOffer.created_at.asc(), ServiceOffer.id.asc()).all()
    return ServiceOfferListResponse(offers=[offer_to_response(o) for o in offers], count=len(offers))


@router.post(
    "/service-offers/auto-reject",
    response_model=AutoRejectResponse,
    summary="Reject pending offers past the review deadline",
)
def auto_reject(
    admin: Annotated[AdminUser, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    rejected = auto_reject_expired_offers(db)
    summaries = []
    for offer in rejected:
        organization = db.query(User).filter(User.id == offer.ngo_id).first()
        summaries.append(
            RejectedOfferSummary(
                id=offer.id,
                title=offer.title,
                organization=organization.name if organization else None,
            )
        )
    db.commit()
    return AutoRejectResponse(
        message=f"Auto-rejected {len(rejected)} expired service offers",
        rejectedCount=len(rejected),
        rejectedOffers=summaries,
    )


@router.post(
    "/service-offers/{offer_id}/review",
    response_model=ReviewResponse,
    summary="Approve or reject a pending service offer",
)
def review(
    offer_id: int,
    body: ReviewRequest,
    request: Request,
    admin: Annotated[AdminUser, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    context = ReviewContext(
        admin=admin,
        ip_address=_client_ip(request),
        user_agent=(request.headers.get("user-agent") or "")[:512] or None,
    )
    offer = review_offer(db, offer_id, body.action, body.comments, context)
    if offer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Service offer not found")
    db.commit()
    db.refresh(offer)
    return ReviewResponse(
        message=f"Service offer {offer.admin_status} successfully",
        offer=offer_to_response(offer),
    )


@router.post(
    "/users/{user_id}/verify",
    summary="Grant the verification badge to a user",
)
def verify_user(
    user_id: int,
    admin: Annotated[AdminUser, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    if not user.is_verified:
        user.is_verified = True
        user.verified_at = utcnow()
        notify(
            db,
            user.id,
            "Account Verified",
            "Your account has been verified. You can now buy, sell and post offers.",
            type="success",
            category="account",
        )
        logger.info("User %s verified by admin %s", user.id, admin.id)
    db.commit()
    db.refresh(user)
    return {"success": True, "user": user_to_response(user).model_dump()}

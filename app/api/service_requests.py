from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.dependencies import get_verified_user
from app.models import ServiceRequest, User, get_db
from app.schemas.service_offers import ServiceRequestCreateRequest, ServiceRequestResponse
from app.services.timeutils import isoformat_or_none

router = APIRouter()


def _to_response(row: ServiceRequest) -> ServiceRequestResponse:
    return ServiceRequestResponse(
        id=row.id,
        ngo_id=row.ngo_id,
        title=row.title,
        description=row.description,
        category=row.category,
        location=row.location,
        volunteers_needed=row.volunteers_needed,
        requirements=list(row.requirements or []),
        status=row.status,
        created_at=isoformat_or_none(row.created_at),
    )


@router.post(
    "",
    response_model=ServiceRequestResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Post a volunteer service request (NGO)",
)
def create_request(
    body: ServiceRequestCreateRequest,
    current_user: Annotated[User, Depends(get_verified_user)],
    db: Annotated[Session, Depends(get_db)],
):
    if current_user.user_type != "ngo":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Only NGOs can create service requests")
    row = ServiceRequest(
        ngo_id=current_user.id,
        title=body.title,
        description=body.description,
        category=body.category,
        location=body.location,
        volunteers_needed=body.volunteers_needed,
        requirements=body.requirements,
        status="active",
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return _to_response(row)


@router.get(
    "",
    response_model=list[ServiceRequestResponse],
    summary="List active service requests",
)
def list_requests(
    db: Annotated[Session, Depends(get_db)],
    category: str | None = None,
):
    query = db.query(ServiceRequest).filter(ServiceRequest.status == "active")
    if category:
        query = query.filter(ServiceRequest.category == category)
    return [_to_response(r) for r in query.order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc()).all()]

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field


class WageInfo(BaseModel):
    amount: Decimal = Field(ge=0)
    currency: str = Field(default="INR", min_length=3, max_length=3)
    period: Literal["hourly", "daily", "weekly", "monthly", "fixed"] = "monthly"
    negotiable: bool = False


class ServiceOfferCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1, max_length=100)
    location: str | None = Field(default=None, max_length=255)
    wage_info: WageInfo | None = None
    requirements: list[str] = Field(default_factory=list)


class ReviewTimerResponse(BaseModel):
    state: Literal["normal", "warning", "expired"]
    text: str
    remaining_seconds: int
    deadline: str
    expired: bool


class ServiceOfferResponse(BaseModel):
    id: int
    ngo_id: int
    title: str
    description: str
    category: str
    location: str | None = None
    wage_info: WageInfo | None = None
    requirements: list[str] = Field(default_factory=list)
    status: str
    admin_status: str
    admin_reviewed_at: str | None = None
    admin_comments: str | None = None
    created_at: str | None = None
    review_timer: ReviewTimerResponse | None = None


class ServiceOfferListResponse(BaseModel):
    success: bool = True
    offers: list[ServiceOfferResponse]
    count: int


class ReviewRequest(BaseModel):
    action: Literal["approve", "reject"]
    comments: str = Field(max_length=5000)


class ReviewResponse(BaseModel):
    success: bool = True
    message: str
    offer: ServiceOfferResponse


class RejectedOfferSummary(BaseModel):
    id: int
    title: str
    organization: str | None = None


class AutoRejectResponse(BaseModel):
    success: bool = True
    message: str
    rejectedCount: int
    rejectedOffers: list[RejectedOfferSummary]


class ServiceRequestCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1, max_length=100)
    location: str | None = Field(default=None, max_length=255)
    volunteers_needed: int = Field(default=1, ge=1)
    requirements: list[str] = Field(default_factory=list)


class ServiceRequestResponse(BaseModel):
    id: int
    ngo_id: int
    title: str
    description: str
    category: str
    location: str | None = None
    volunteers_needed: int
    requirements: list[str] = Field(default_factory=list)
    status: str
    created_at: str | None = None

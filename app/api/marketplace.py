from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.dependencies import get_verified_user
from app.models import MarketplaceItem, User, get_db
from app.schemas.marketplace import MarketplaceItemCreateRequest, MarketplaceItemResponse

router = APIRouter()


@router.get(
    "",
    response_model=list[MarketplaceItemResponse],
    summary="List active marketplace items",
)
def list_items(
    db: Annotated[Session, Depends(get_db)],
    category: str | None = None,
):
    """Returns active items with stock, newest first."""
    query = db.query(MarketplaceItem).filter(
        MarketplaceItem.status == "active",
        MarketplaceItem.quantity > 0,
    )
    if category:
        query = query.filter(MarketplaceItem.category == category)
    items = query.order_by(MarketplaceItem.created_at.desc(), MarketplaceItem.id.desc()).all()
    return [MarketplaceItemResponse.model_validate(i) for i in items]


@router.get(
    "/{item_id}",
    response_model=MarketplaceItemResponse,
    summary="Get marketplace item by ID",
)
def get_item(
    item_id: int,
    db: Annotated[Session, Depends(get_db)],
):
    item = db.query(MarketplaceItem).filter(MarketplaceItem.id == item_id).first()
    if not item or item.status == "removed":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found")
    return MarketplaceItemResponse.model_validate(item)


@router.post(
    "",
    response_model=MarketplaceItemResponse,
    status_code=status.HTTP_201_CREATED,
    summary="List an item for sale (verified sellers)",
)
def create_item(
    body: MarketplaceItemCreateRequest,
    current_user: Annotated[User, Depends(get_verified_user)],
    db: Annotated[Session, Depends(get_db)],
):
    item = MarketplaceItem(
        seller_id=current_user.id,
        seller_type=current_user.user_type,
        title=body.title,
        description=body.description,
        category=body.category,
        price=body.price,
        quantity=body.quantity,
        condition_type=body.condition_type,
        images=body.images,
        status="active",
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return MarketplaceItemResponse.model_validate(item)

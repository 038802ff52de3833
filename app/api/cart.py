from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.dependencies import get_current_user
from app.models import CartItem, MarketplaceItem, User, get_db
from app.schemas.marketplace import CartAddRequest, CartLine, CartResponse, MarketplaceItemResponse

router = APIRouter()


def _cart_response(db: Session, user: User) -> CartResponse:
    rows = db.query(CartItem).filter(CartItem.user_id == user.id).order_by(CartItem.id).all()
    lines = []
    for row in rows:
        item = db.query(MarketplaceItem).filter(MarketplaceItem.id == row.marketplace_item_id).first()
        lines.append(
            CartLine(
                id=row.id,
                marketplace_item_id=row.marketplace_item_id,
                quantity=row.quantity,
                item=MarketplaceItemResponse.model_validate(item) if item else None,
            )
        )
    return CartResponse(items=lines, count=len(lines))


@router.get("", response_model=CartResponse, summary="Get my cart")
def get_cart(
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    return _cart_response(db, current_user)


@router.post("", response_model=CartResponse, summary="Add an item to my cart")
def add_to_cart(
    body: CartAddRequest,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    """Adding an item already in the cart sets its quantity."""
    item = db.query(MarketplaceItem).filter(MarketplaceItem.id == body.marketplace_item_id).first()
    if not item or item.status != "active":
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not found or not available")
    if item.seller_id == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot add your own item to cart")
    if body.quantity > item.quantity:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Only {item.quantity} items available")

    row = (
        db.query(CartItem)
        .filter(CartItem.user_id == current_user.id, CartItem.marketplace_item_id == item.id)
        .first()
    )
    if row:
        row.quantity = body.quantity
    else:
        db.add(CartItem(user_id=current_user.id, marketplace_item_id=item.id, quantity=body.quantity))
    db.commit()
    return _cart_response(db, current_user)


@router.delete("/{item_id}", response_model=CartResponse, summary="Remove an item from my cart")
def remove_from_cart(
    item_id: int,
    current_user: Annotated[User, Depends(get_current_user)],
    db: Annotated[Session, Depends(get_db)],
):
    deleted = (
        db.query(CartItem)
        .filter(CartItem.user_id == current_user.id, CartItem.marketplace_item_id == item_id)
        .delete(synchronize_session=False)
    )
    if not deleted:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Item not in cart")
    db.commit()
    return _cart_response(db, current_user)

from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_serializer


class MarketplaceItemCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    category: str = Field(min_length=1, max_length=100)
    price: Decimal = Field(gt=0, max_digits=10, decimal_places=2)
    quantity: int = Field(default=1, ge=1)
    condition_type: Literal["new", "like_new", "good", "fair", "poor"] = "good"
    images: list[str] = Field(default_factory=list)


class MarketplaceItemResponse(BaseModel):
    id: int
    seller_id: int
    seller_type: str
    title: str
    description: str
    category: str
    price: Decimal
    quantity: int
    condition_type: str
    images: list[str] | None = None
    status: str

    model_config = {"from_attributes": True}

    @field_serializer("price")
    def serialize_price(self, value: Decimal) -> str:
        return format(Decimal(value).quantize(Decimal("0.01")), "f")


class CartAddRequest(BaseModel):
    marketplace_item_id: int
    quantity: int = Field(default=1, ge=1)


class CartLine(BaseModel):
    id: int
    marketplace_item_id: int
    quantity: int
    item: MarketplaceItemResponse | None = None


class CartResponse(BaseModel):
    success: bool = True
    items: list[CartLine]
    count: int

from app.schemas.orders import OrderCreateRequest, OrderCreateResponse, OrderResponse, PaymentMethod
from app.schemas.service_offers import ServiceOfferCreateRequest, ServiceOfferResponse
from app.schemas.users import ProfileData, RegisterRequest, UserResponse

__all__ = [
    "OrderCreateRequest",
    "OrderCreateResponse",
    "OrderResponse",
    "PaymentMethod",
    "ServiceOfferCreateRequest",
    "ServiceOfferResponse",
    "ProfileData",
    "RegisterRequest",
    "UserResponse",
]

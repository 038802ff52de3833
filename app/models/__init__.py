from app.models.database import Base, get_db
from app.models.user import AdminUser, User
from app.models.marketplace_item import CartItem, MarketplaceItem
from app.models.order import Order, OrderItem, OrderStatusHistory
from app.models.payment import Payment
from app.models.shipping import ShippingDetail
from app.models.notification import Notification
from app.models.service_offer import ServiceOffer, ServiceOfferReview, ServiceRequest

__all__ = [
    "Base",
    "get_db",
    "User",
    "AdminUser",
    "MarketplaceItem",
    "CartItem",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Payment",
    "ShippingDetail",
    "Notification",
    "ServiceOffer",
    "ServiceOfferReview",
    "ServiceRequest",
]

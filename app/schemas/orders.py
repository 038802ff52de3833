from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, field_serializer


class PaymentMethod(str, Enum):
    RAZORPAY = "razorpay"
    STRIPE = "stripe"


class Address(BaseModel):
    full_name: str = Field(min_length=1, max_length=255)
    phone: str = Field(pattern=r"^\+?[0-9]{10,15}$")
    address_line1: str = Field(min_length=1, max_length=255)
    address_line2: str | None = None
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(min_length=1, max_length=100)
    pincode: str = Field(pattern=r"^[0-9]{6}$")
    country: str = "India"


class OrderCreateRequest(BaseModel):
    marketplace_item_id: int
    quantity: int = Field(default=1, ge=1)
    shipping_address: Address
    billing_address: Address | None = None
    notes: str | None = Field(default=None, max_length=2000)
    payment_method: PaymentMethod = PaymentMethod.RAZORPAY
    return_url: str | None = None
    cancel_url: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "marketplace_item_id": 1,
                    "quantity": 2,
                    "shipping_address": {
                        "full_name": "Asha Rao",
                        "phone": "9876543210",
                        "address_line1": "12 MG Road",
                        "city": "Bengaluru",
                        "state": "Karnataka",
                        "pincode": "560001",
                    },
                    "payment_method": "razorpay",
                }
            ]
        }
    }


class _MoneyModel(BaseModel):
    @field_serializer(
        "total_amount",
        "shipping_amount",
        "tax_amount",
        "discount_amount",
        "final_amount",
        "unit_price",
        "total_price",
        "amount",
        "refund_amount",
        check_fields=False,
    )
    def serialize_money(self, value: Decimal | None) -> str | None:
        if value is None:
            return None
        return format(Decimal(value).quantize(Decimal("0.01")), "f")


class OrderItemResponse(_MoneyModel):
    id: int
    marketplace_item_id: int
    quantity: int
    unit_price: Decimal
    total_price: Decimal
    item_snapshot: dict


class PaymentResponse(_MoneyModel):
    payment_id: str
    payment_method: str
    gateway_order_id: str | None = None
    gateway_payment_id: str | None = None
    amount: Decimal
    currency: str
    status: str
    captured_at: str | None = None
    refunded_at: str | None = None
    refund_amount: Decimal
    failure_reason: str | None = None


class ShippingResponse(BaseModel):
    waybill: str | None = None
    courier_partner: str | None = None
    tracking_status: str
    tracking_updates: list[dict] = Field(default_factory=list)
    pickup_date: str | None = None
    expected_delivery: str | None = None
    actual_delivery: str | None = None


class OrderResponse(_MoneyModel):
    id: int
    order_number: str
    buyer_id: int
    seller_id: int
    status: str
    total_amount: Decimal
    shipping_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    shipping_address: dict
    billing_address: dict | None = None
    notes: str | None = None
    payment_status: str | None = None
    tracking_status: str | None = None
    waybill: str | None = None
    order_items: list[OrderItemResponse] = Field(default_factory=list)
    payment: PaymentResponse | None = None
    shipping: ShippingResponse | None = None
    created_at: str | None = None
    updated_at: str | None = None


class CheckoutInfo(BaseModel):
    payment_method: PaymentMethod
    gateway_order_id: str
    key_id: str | None = None
    checkout_url: str | None = None
    amount_minor: int
    currency: str


class OrderCreateResponse(BaseModel):
    success: bool = True
    order: OrderResponse
    amounts: dict[str, str]
    checkout: CheckoutInfo


class OrderListResponse(BaseModel):
    success: bool = True
    orders: list[OrderResponse]
    count: int


class OrderDetailResponse(BaseModel):
    success: bool = True
    data: OrderResponse


class StatusHistoryEntry(BaseModel):
    previous_status: str | None = None
    new_status: str
    changed_by: int | None = None
    reason: str | None = None
    created_at: str | None = None


class StatusHistoryResponse(BaseModel):
    success: bool = True
    order_number: str
    history: list[StatusHistoryEntry]


class OrderUpdateRequest(BaseModel):
    status: Literal["processing", "shipped", "delivered", "cancelled"] | None = None
    notes: str | None = Field(default=None, max_length=2000)
    reason: str | None = None
    waybill: str | None = Field(default=None, max_length=100)


class CancelRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)


class RefundRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=1000)
    refund_amount: Decimal | None = Field(default=None, gt=0)


class OrderActionResponse(BaseModel):
    success: bool = True
    message: str
    order_number: str
    status: str
    refund_amount: str | None = None


class VerifyPaymentRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    order_ids: list[int] | None = None


class VerifiedOrder(BaseModel):
    id: int
    order_number: str
    status: str


class VerifyPaymentResponse(BaseModel):
    success: bool = True
    message: str
    orders: list[VerifiedOrder]


class PaymentMethodsResponse(BaseModel):
    available_methods: list[PaymentMethod]
    enabled_methods: list[PaymentMethod]

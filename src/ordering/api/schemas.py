"""Pydantic request/response schemas for the Ordering API (carts and orders)."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from ordering.order.order import Currency, OrderStatus, PaymentMethod, ShippingMethod
from ordering.pricing import DiscountType

# --- Cart Request Schemas ---


class CreateCartRequest(BaseModel):
    session_id: str | None = Field(None, max_length=255)


class AddCartItemRequest(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"product_id": "prod-001", "quantity": 2}]}}

    product_id: str
    quantity: int


class UpdateCartItemRequest(BaseModel):
    quantity: int


class ApplyDiscountRequest(BaseModel):
    model_config = {"json_schema_extra": {"examples": [{"code": "SUMMER10", "value": "10"}]}}

    code: str = Field(..., min_length=1, max_length=50)
    value: Decimal


class ApplyItemDiscountRequest(BaseModel):
    code: str = Field(..., min_length=1, max_length=50)
    amount: Decimal
    type: DiscountType


class MergeCartsRequest(BaseModel):
    guest_cart_id: str


# --- Cart Response Schemas ---


class CartItemResponse(BaseModel):
    model_config = {"from_attributes": True}

    product_id: str
    quantity: int
    price_at_addition: float
    name_at_addition: str
    image: str
    added_at: datetime
    discount_code: str | None = None
    discount_amount: float | None = None
    discount_type: str | None = None


class CartResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    user_id: str | None = None
    session_id: str | None = None
    status: str
    currency: str
    items: list[CartItemResponse]
    sub_total: float
    total_quantity: int
    total_price: float
    discounts: dict[str, float]
    last_updated: datetime
    last_active: datetime
    expires_at: datetime
    version: int


class CartIssueResponse(BaseModel):
    type: str
    product_id: str | None = None
    message: str


class CartValidationResponse(BaseModel):
    valid: bool
    issues: list[CartIssueResponse]
    item_count: int
    total_price: float
    currency: str


class RefreshPricesResponse(BaseModel):
    updated: int
    cart: CartResponse


# --- Order Request Schemas ---


class AddressSchema(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "full_name": "Ada Mensah",
                    "street": "12 Independence Ave",
                    "city": "Accra",
                    "postal_code": "GA-123",
                    "country": "Ghana",
                    "phone_number": "+233200000000",
                }
            ]
        }
    }

    full_name: str = Field(..., min_length=1, max_length=100)
    street: str = Field(..., min_length=1, max_length=200)
    city: str = Field(..., min_length=1, max_length=100)
    postal_code: str = Field(..., min_length=1, max_length=20)
    country: str = Field(..., min_length=1, max_length=100)
    phone_number: str = ""
    address: str = ""
    state: str | None = None


class OrderLineRequest(BaseModel):
    product_id: str
    quantity: int = Field(..., ge=1)


class DiscountInfoSchema(BaseModel):
    code: str | None = None
    amount: Decimal = Field(..., ge=0)
    type: DiscountType = DiscountType.FIXED


class CreateOrderRequest(BaseModel):
    items: list[OrderLineRequest] | None = None
    cart_id: str | None = None
    email: str | None = None
    shipping_address: AddressSchema
    billing_address: AddressSchema | None = None
    payment_method: PaymentMethod
    shipping_method: ShippingMethod = ShippingMethod.STANDARD
    currency: Currency = Currency.USD
    shipping_price: Decimal | None = Field(None, ge=0)
    tax_rate: Decimal | None = Field(None, ge=0, le=1)
    discount_info: DiscountInfoSchema | None = None


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    reason: str | None = None
    expected_version: int | None = None


class RecordPaymentRequest(BaseModel):
    payment_id: str
    status: str = "succeeded"
    email: str = ""
    amount_received: Decimal | None = None
    update_time: str = ""


class PayOrderRequest(BaseModel):
    payment_method: PaymentMethod | None = None


class PaymentFailureRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class FulfillOrderRequest(BaseModel):
    tracking_number: str | None = None
    shipping_provider: str | None = "Standard Shipping"
    tracking_url: str | None = None
    estimated_delivery_date: str | None = None
    notes: str | None = None


class CancelOrderRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    refund_amount: Decimal | None = None


class RefundOrderRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    amount: Decimal | None = None


class PricedLineSchema(BaseModel):
    price: Decimal = Field(..., ge=0)
    quantity: int = Field(..., ge=1)


class CalculateTotalsRequest(BaseModel):
    items: list[PricedLineSchema] = Field(..., min_length=1)
    shipping_price: Decimal = Field(Decimal("0"), ge=0)
    tax_rate: Decimal = Field(Decimal("0"), ge=0, le=1)
    discount_amount: Decimal = Field(Decimal("0"), ge=0)
    discount_type: DiscountType = DiscountType.FIXED


# --- Order Response Schemas ---


class OrderItemResponse(BaseModel):
    model_config = {"from_attributes": True}

    product_id: str
    name: str
    price: float
    quantity: int
    sku: str
    image: str


class StatusHistoryResponse(BaseModel):
    model_config = {"from_attributes": True}

    status: str
    timestamp: datetime
    description: str
    actor_id: str | None = None


class OrderResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    order_number: str
    user_id: str
    email: str
    status: str
    payment_status: str
    payment_method: str
    shipping_method: str
    currency: str
    items: list[OrderItemResponse]
    shipping_address: dict
    billing_address: dict
    payment_result: dict | None = None
    items_price: float
    tax_price: float
    shipping_price: float
    discount_price: float
    total_price: float
    tax_rate: float
    discount_info: dict | None = None
    is_paid: bool
    paid_at: datetime | None = None
    is_delivered: bool
    delivered_at: datetime | None = None
    fulfillment: dict | None = None
    cancellation_reason: str | None = None
    refund_amount: float | None = None
    status_history: list[StatusHistoryResponse]
    created_at: datetime
    version: int


class RefundEligibilityResponse(BaseModel):
    order_id: str
    eligible: bool


class OrderTotalsResponse(BaseModel):
    model_config = {"from_attributes": True}

    items_price: float
    tax_price: float
    shipping_price: float
    discount_price: float
    total_price: float


class OrderNumberResponse(BaseModel):
    order_number: str

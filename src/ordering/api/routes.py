"""FastAPI routes for the Ordering domain — carts and orders."""

from datetime import datetime

from fastapi import APIRouter, Depends, Query

from catalogue.api.schemas import InventoryStatusResponse
from ordering.api.schemas import (
    AddCartItemRequest,
    ApplyDiscountRequest,
    ApplyItemDiscountRequest,
    CalculateTotalsRequest,
    CancelOrderRequest,
    CartIssueResponse,
    CartResponse,
    CartValidationResponse,
    CreateCartRequest,
    CreateOrderRequest,
    FulfillOrderRequest,
    MergeCartsRequest,
    OrderNumberResponse,
    OrderResponse,
    OrderTotalsResponse,
    PaymentFailureRequest,
    PayOrderRequest,
    RecordPaymentRequest,
    RefreshPricesResponse,
    RefundEligibilityResponse,
    RefundOrderRequest,
    UpdateCartItemRequest,
    UpdateOrderStatusRequest,
)
from ordering.cart.abandonment import find_abandoned_carts
from ordering.cart.items import add_item, clear_cart, remove_item, update_item_quantity
from ordering.cart.management import (
    apply_discount,
    apply_item_discount,
    get_cart,
    get_or_create_cart,
    mark_as_abandoned,
    mark_as_converted,
    merge_carts,
    remove_discount,
)
from ordering.cart.validation import check_cart_inventory, refresh_cart_prices, validate_cart
from ordering.order.cancellation import cancel_order, check_refund_eligibility, refund_order
from ordering.order.creation import create_order
from ordering.order.fulfillment import fulfill_order
from ordering.order.lifecycle import update_order_status
from ordering.order.order import (
    FulfillmentDetails,
    OrderStatus,
    PaymentResult,
    ShippingAddress,
    generate_order_number,
)
from ordering.order.payment import pay_order, process_payment, record_payment_failure
from ordering.order.queries import (
    find_by_order_number,
    find_by_user,
    find_in_date_range,
    find_pending_orders,
    find_recent_orders,
    find_with_status,
    get_order,
)
from ordering.pricing import PricedLine, calculate_totals
from shared.api import Actor, Envelope, admin_actor, authenticated_actor, current_actor
from shared.exceptions import PermissionDeniedError, ValidationError


def _cart(cart) -> Envelope[CartResponse]:
    return Envelope(data=CartResponse.model_validate(cart))


def _order(order) -> Envelope[OrderResponse]:
    return Envelope(data=OrderResponse.model_validate(order))


def _orders(orders) -> Envelope[list[OrderResponse]]:
    return Envelope(data=[OrderResponse.model_validate(order) for order in orders])


def _require_owner(order_id: str, actor: Actor) -> None:
    """Customers act on their own orders only; admins act on any."""
    if actor.is_admin:
        return
    if get_order(order_id).user_id != actor.user_id:
        raise PermissionDeniedError({"order": ["You can only act on your own orders"]})


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


@cart_router.post("", response_model=Envelope[CartResponse])
async def create_or_get_cart(body: CreateCartRequest, actor: Actor = Depends(current_actor)) -> Envelope[CartResponse]:
    return _cart(get_or_create_cart(user_id=actor.user_id, session_id=body.session_id))


@cart_router.get("/abandoned", response_model=Envelope[list[CartResponse]])
async def list_abandoned_carts(
    days: int | None = Query(None, ge=0), actor: Actor = Depends(admin_actor)
) -> Envelope[list[CartResponse]]:
    return Envelope(data=[CartResponse.model_validate(cart) for cart in find_abandoned_carts(days)])


@cart_router.get("/{cart_id}", response_model=Envelope[CartResponse])
async def get_cart_endpoint(cart_id: str) -> Envelope[CartResponse]:
    return _cart(get_cart(cart_id))


@cart_router.post("/{cart_id}/items", response_model=Envelope[CartResponse])
async def add_cart_item(cart_id: str, body: AddCartItemRequest) -> Envelope[CartResponse]:
    return _cart(add_item(cart_id, body.product_id, body.quantity))


@cart_router.patch("/{cart_id}/items/{product_id}", response_model=Envelope[CartResponse])
async def update_cart_item(cart_id: str, product_id: str, body: UpdateCartItemRequest) -> Envelope[CartResponse]:
    return _cart(update_item_quantity(cart_id, product_id, body.quantity))


@cart_router.delete("/{cart_id}/items/{product_id}", response_model=Envelope[CartResponse])
async def remove_cart_item(cart_id: str, product_id: str) -> Envelope[CartResponse]:
    return _cart(remove_item(cart_id, product_id))


@cart_router.delete("/{cart_id}/items", response_model=Envelope[CartResponse])
async def clear_cart_endpoint(cart_id: str) -> Envelope[CartResponse]:
    return _cart(clear_cart(cart_id))


@cart_router.post("/{cart_id}/discounts", response_model=Envelope[CartResponse])
async def apply_cart_discount(cart_id: str, body: ApplyDiscountRequest) -> Envelope[CartResponse]:
    return _cart(apply_discount(cart_id, body.code, body.value))


@cart_router.delete("/{cart_id}/discounts/{code}", response_model=Envelope[CartResponse])
async def remove_cart_discount(cart_id: str, code: str) -> Envelope[CartResponse]:
    return _cart(remove_discount(cart_id, code))


@cart_router.post("/{cart_id}/items/{product_id}/discount", response_model=Envelope[CartResponse])
async def apply_cart_item_discount(
    cart_id: str, product_id: str, body: ApplyItemDiscountRequest
) -> Envelope[CartResponse]:
    return _cart(apply_item_discount(cart_id, product_id, body.code, body.amount, body.type))


@cart_router.get("/{cart_id}/validate", response_model=Envelope[CartValidationResponse])
async def validate_cart_endpoint(cart_id: str) -> Envelope[CartValidationResponse]:
    result = validate_cart(cart_id)
    return Envelope(
        data=CartValidationResponse(
            valid=result.valid,
            issues=[
                CartIssueResponse(type=issue.type.value, product_id=issue.product_id, message=issue.message)
                for issue in result.issues
            ],
            item_count=result.item_count,
            total_price=result.total_price,
            currency=result.currency,
        )
    )


@cart_router.get("/{cart_id}/check-inventory", response_model=Envelope[list[InventoryStatusResponse]])
async def check_cart_inventory_endpoint(cart_id: str) -> Envelope[list[InventoryStatusResponse]]:
    statuses = check_cart_inventory(cart_id)
    return Envelope(data=[InventoryStatusResponse.model_validate(status) for status in statuses])


@cart_router.post("/{cart_id}/refresh-prices", response_model=Envelope[RefreshPricesResponse])
async def refresh_prices_endpoint(cart_id: str) -> Envelope[RefreshPricesResponse]:
    updated, cart = refresh_cart_prices(cart_id)
    return Envelope(data=RefreshPricesResponse(updated=updated, cart=CartResponse.model_validate(cart)))


@cart_router.post("/{cart_id}/merge", response_model=Envelope[CartResponse])
async def merge_carts_endpoint(cart_id: str, body: MergeCartsRequest) -> Envelope[CartResponse]:
    return _cart(merge_carts(cart_id, body.guest_cart_id))


@cart_router.post("/{cart_id}/abandon", response_model=Envelope[CartResponse])
async def abandon_cart(cart_id: str) -> Envelope[CartResponse]:
    return _cart(mark_as_abandoned(cart_id))


@cart_router.post("/{cart_id}/convert", response_model=Envelope[CartResponse])
async def convert_cart(cart_id: str) -> Envelope[CartResponse]:
    return _cart(mark_as_converted(cart_id))


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.post("", status_code=201, response_model=Envelope[OrderResponse])
async def create_order_endpoint(
    body: CreateOrderRequest, actor: Actor = Depends(authenticated_actor)
) -> Envelope[OrderResponse]:
    email = body.email or actor.email
    if not email:
        raise ValidationError({"email": ["An email address is required for the order confirmation"]})

    order = create_order(
        user_id=actor.user_id,
        email=email,
        shipping_address=ShippingAddress(**body.shipping_address.model_dump()),
        billing_address=ShippingAddress(**body.billing_address.model_dump()) if body.billing_address else None,
        payment_method=body.payment_method,
        items=[line.model_dump() for line in body.items] if body.items is not None else None,
        cart_id=body.cart_id,
        shipping_method=body.shipping_method,
        currency=body.currency,
        shipping_price=body.shipping_price,
        tax_rate=body.tax_rate,
        discount_info=body.discount_info.model_dump(mode="json") if body.discount_info else None,
    )
    return _order(order)


@order_router.post("/calculate-totals", response_model=Envelope[OrderTotalsResponse])
async def calculate_totals_endpoint(body: CalculateTotalsRequest) -> Envelope[OrderTotalsResponse]:
    totals = calculate_totals(
        [PricedLine(price=line.price, quantity=line.quantity) for line in body.items],
        shipping_price=body.shipping_price,
        tax_rate=body.tax_rate,
        discount_amount=body.discount_amount,
        discount_type=body.discount_type,
    )
    return Envelope(data=OrderTotalsResponse.model_validate(totals))


@order_router.get("/generate-number", response_model=Envelope[OrderNumberResponse])
async def generate_order_number_endpoint(actor: Actor = Depends(admin_actor)) -> Envelope[OrderNumberResponse]:
    return Envelope(data=OrderNumberResponse(order_number=generate_order_number()))


@order_router.get("/pending", response_model=Envelope[list[OrderResponse]])
async def pending_orders(actor: Actor = Depends(admin_actor)) -> Envelope[list[OrderResponse]]:
    return _orders(find_pending_orders())


@order_router.get("/recent", response_model=Envelope[list[OrderResponse]])
async def recent_orders(
    limit: int = Query(10, ge=1, le=100), actor: Actor = Depends(admin_actor)
) -> Envelope[list[OrderResponse]]:
    return _orders(find_recent_orders(limit))


@order_router.get("/range", response_model=Envelope[list[OrderResponse]])
async def orders_in_range(
    start: datetime, end: datetime, actor: Actor = Depends(admin_actor)
) -> Envelope[list[OrderResponse]]:
    return _orders(find_in_date_range(start, end))


@order_router.get("/status/{status}", response_model=Envelope[list[OrderResponse]])
async def orders_with_status(status: OrderStatus, actor: Actor = Depends(admin_actor)) -> Envelope[list[OrderResponse]]:
    return _orders(find_with_status(status))


@order_router.get("/user/{user_id}", response_model=Envelope[list[OrderResponse]])
async def orders_for_user(user_id: str, actor: Actor = Depends(authenticated_actor)) -> Envelope[list[OrderResponse]]:
    if user_id != actor.user_id and not actor.is_admin:
        raise PermissionDeniedError({"user": ["You can only list your own orders"]})
    return _orders(find_by_user(user_id))


@order_router.get("/number/{order_number}", response_model=Envelope[OrderResponse])
async def order_by_number(order_number: str) -> Envelope[OrderResponse]:
    return _order(find_by_order_number(order_number))


@order_router.get("/{order_id}", response_model=Envelope[OrderResponse])
async def get_order_endpoint(order_id: str) -> Envelope[OrderResponse]:
    return _order(get_order(order_id))


@order_router.patch("/{order_id}/status", response_model=Envelope[OrderResponse])
async def update_status(
    order_id: str, body: UpdateOrderStatusRequest, actor: Actor = Depends(admin_actor)
) -> Envelope[OrderResponse]:
    order = update_order_status(
        order_id,
        body.status,
        reason=body.reason,
        actor_id=actor.user_id,
        expected_version=body.expected_version,
    )
    return _order(order)


@order_router.post("/{order_id}/payment", response_model=Envelope[OrderResponse])
async def record_payment(
    order_id: str, body: RecordPaymentRequest, actor: Actor = Depends(admin_actor)
) -> Envelope[OrderResponse]:
    order = get_order(order_id)
    result = PaymentResult(
        payment_id=body.payment_id,
        status=body.status,
        email=body.email or order.email,
        currency=order.currency,
        amount_received=str(body.amount_received if body.amount_received is not None else order.total_price),
        update_time=body.update_time,
    )
    return _order(process_payment(order_id, result, actor_id=actor.user_id))


@order_router.post("/{order_id}/pay", response_model=Envelope[OrderResponse])
async def pay_order_endpoint(
    order_id: str, body: PayOrderRequest, actor: Actor = Depends(authenticated_actor)
) -> Envelope[OrderResponse]:
    _require_owner(order_id, actor)
    return _order(pay_order(order_id, payment_method=body.payment_method, actor_id=actor.user_id))


@order_router.post("/{order_id}/payment-failure", response_model=Envelope[OrderResponse])
async def payment_failure(
    order_id: str, body: PaymentFailureRequest, actor: Actor = Depends(admin_actor)
) -> Envelope[OrderResponse]:
    return _order(record_payment_failure(order_id, body.reason, actor_id=actor.user_id))


@order_router.post("/{order_id}/fulfill", response_model=Envelope[OrderResponse])
async def fulfill(
    order_id: str, body: FulfillOrderRequest, actor: Actor = Depends(admin_actor)
) -> Envelope[OrderResponse]:
    return _order(fulfill_order(order_id, FulfillmentDetails(**body.model_dump()), actor_id=actor.user_id))


@order_router.post("/{order_id}/cancel", response_model=Envelope[OrderResponse])
async def cancel(
    order_id: str, body: CancelOrderRequest, actor: Actor = Depends(authenticated_actor)
) -> Envelope[OrderResponse]:
    _require_owner(order_id, actor)
    order = cancel_order(order_id, body.reason, actor_id=actor.user_id, refund_amount=body.refund_amount)
    return _order(order)


@order_router.post("/{order_id}/refund", response_model=Envelope[OrderResponse])
async def refund(
    order_id: str, body: RefundOrderRequest, actor: Actor = Depends(admin_actor)
) -> Envelope[OrderResponse]:
    return _order(refund_order(order_id, body.reason, amount=body.amount, actor_id=actor.user_id))


@order_router.get("/{order_id}/refund-eligibility", response_model=Envelope[RefundEligibilityResponse])
async def refund_eligibility(order_id: str) -> Envelope[RefundEligibilityResponse]:
    return Envelope(data=RefundEligibilityResponse(order_id=order_id, eligible=check_refund_eligibility(order_id)))

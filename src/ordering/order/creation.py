"""Order creation — reserve stock, snapshot products and price the order.

Everything happens in one unit of work: if any line cannot be reserved the
transaction rolls back and no earlier reservation survives. The confirmation
email is sent only after the commit and can never fail the order.
"""

from collections.abc import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from catalogue.inventory.ledger import reserve_stock
from catalogue.product.product import Product
from notifications.notification.dispatch import send_order_confirmation
from ordering.cart.cart import Cart
from ordering.cart.management import load_cart
from ordering.order.order import (
    Currency,
    Order,
    OrderItem,
    ShippingAddress,
    ShippingMethod,
    generate_order_number,
)
from ordering.pricing import DiscountType, calculate_totals, to_decimal
from shared.config import get_settings
from shared.database import unit_of_work
from shared.exceptions import NotFoundError, PermissionDeniedError, StorefrontError, ValidationError

logger = structlog.get_logger(__name__)

ORDER_NUMBER_ATTEMPTS = 5


def coalesce_lines(items: Iterable) -> list[tuple[str, int]]:
    """Merge repeated products into one line, keeping first-seen order.

    ``items`` holds ``{"product_id": ..., "quantity": ...}`` dicts or
    ``(product_id, quantity)`` pairs.
    """
    quantities: dict[str, int] = {}
    for item in items:
        product_id, quantity = (item["product_id"], item["quantity"]) if isinstance(item, dict) else item
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return list(quantities.items())


def _unique_order_number(session: Session) -> str:
    for _ in range(ORDER_NUMBER_ATTEMPTS):
        number = generate_order_number()
        if session.scalar(select(Order.id).where(Order.order_number == number)) is None:
            return number
    raise StorefrontError({"order_number": ["Could not allocate a unique order number"]})


def _lines_from_cart(cart: Cart, user_id) -> list[tuple[str, int]]:
    if cart.user_id and cart.user_id != user_id:
        raise PermissionDeniedError({"cart": ["Cart belongs to another user"]})
    if not cart.items:
        raise ValidationError({"cart": ["Cannot order from an empty cart"]})
    return [(line.product_id, line.quantity) for line in cart.items]


def _normalise_discount(discount_info):
    if not discount_info:
        return None
    amount = to_decimal(discount_info.get("amount", 0))
    return {
        "code": discount_info.get("code"),
        "amount": str(amount),
        "type": DiscountType(discount_info.get("type", DiscountType.FIXED.value)).value,
    }


def _reserve_and_snapshot(session: Session, lines) -> list[OrderItem]:
    order_items = []
    for product_id, quantity in lines:
        product = session.get(Product, product_id)
        if product is None or not product.is_purchasable:
            raise NotFoundError({"product": [f"Product {product_id} not found"]})
        reserve_stock(session, product_id, quantity)
        order_items.append(OrderItem.snapshot_of(product, quantity))
    return order_items


def create_order(
    user_id: str,
    email: str,
    shipping_address: ShippingAddress,
    payment_method,
    items=None,
    cart_id: str | None = None,
    billing_address: ShippingAddress | None = None,
    shipping_method=ShippingMethod.STANDARD,
    currency=Currency.USD,
    shipping_price=None,
    tax_rate=None,
    discount_info: dict | None = None,
) -> Order:
    """Place an order from explicit ``items`` or from the lines of ``cart_id``."""
    settings = get_settings()
    shipping_price = settings.default_shipping_price if shipping_price is None else shipping_price
    tax_rate = settings.default_tax_rate if tax_rate is None else tax_rate
    discount_info = _normalise_discount(discount_info)
    if items is not None and cart_id:
        raise ValidationError({"items": ["Provide either order items or a cart, not both"]})

    with unit_of_work() as session:
        cart = load_cart(session, cart_id) if cart_id else None
        if items is None:
            if cart is None:
                raise ValidationError({"items": ["Provide order items or a cart"]})
            items = _lines_from_cart(cart, user_id)

        lines = coalesce_lines(items)
        if not lines:
            raise ValidationError({"items": ["An order needs at least one item"]})

        order_items = _reserve_and_snapshot(session, lines)
        totals = calculate_totals(
            [item.priced() for item in order_items],
            shipping_price=shipping_price,
            tax_rate=tax_rate,
            discount_amount=discount_info["amount"] if discount_info else 0,
            discount_type=discount_info["type"] if discount_info else DiscountType.FIXED,
        )

        order = Order.create(
            order_number=_unique_order_number(session),
            user_id=user_id,
            email=email,
            items=order_items,
            totals=totals,
            tax_rate=tax_rate,
            shipping_address=shipping_address,
            billing_address=billing_address,
            payment_method=payment_method,
            shipping_method=shipping_method,
            currency=currency,
            discount_info=discount_info,
            actor_id=user_id,
        )
        session.add(order)

        if cart is not None:
            cart.mark_converted()

    logger.info(
        "order_created",
        order_id=order.id,
        order_number=order.order_number,
        user_id=user_id,
        total=str(order.total_price),
        lines=len(order.items),
    )

    try:
        send_order_confirmation(order)
    except Exception:
        logger.warning("order_confirmation_failed", order_id=order.id, exc_info=True)

    return order

"""Cart item management — add, change, remove and clear lines."""

import structlog

from catalogue.product.product import Product
from ordering.cart.cart import Cart
from ordering.cart.management import load_cart
from shared.database import unit_of_work
from shared.exceptions import NotFoundError

logger = structlog.get_logger(__name__)


def add_item(cart_id: str, product_id: str, quantity: int) -> Cart:
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        product = session.get(Product, product_id)
        if product is None or not product.is_purchasable:
            raise NotFoundError({"product": [f"Product {product_id} not found"]})

        line = cart.add_line(product, quantity)

    logger.info(
        "cart_item_added",
        cart_id=cart_id,
        product_id=product_id,
        requested=quantity,
        line_quantity=line.quantity,
    )
    return cart


def update_item_quantity(cart_id: str, product_id: str, quantity: int) -> Cart:
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        product = None
        if quantity > 0:
            product = session.get(Product, product_id)
            if product is not None and not product.is_purchasable:
                product = None
        cart.update_line_quantity(product_id, quantity, product=product)
    return cart


def remove_item(cart_id: str, product_id: str) -> Cart:
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        cart.remove_line(product_id)
    logger.info("cart_item_removed", cart_id=cart_id, product_id=product_id)
    return cart


def clear_cart(cart_id: str) -> Cart:
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        cart.clear()
    return cart

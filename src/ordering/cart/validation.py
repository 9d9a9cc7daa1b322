"""Checking a cart against the live catalogue."""

from catalogue.inventory.ledger import InventoryStatus, check_inventory
from ordering.cart.cart import Cart, CartValidation
from ordering.cart.management import live_products, load_cart
from shared.database import unit_of_work


def validate_cart(cart_id: str) -> CartValidation:
    """Read-only audit; the caller decides whether the issues block checkout."""
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        products = live_products(session, (line.product_id for line in cart.items))
        return cart.validate(products)


def check_cart_inventory(cart_id: str) -> list[InventoryStatus]:
    """Stock status of every cart line, in line order. Nothing is reserved."""
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        return check_inventory(session, [(line.product_id, line.quantity) for line in cart.items])


def refresh_cart_prices(cart_id: str) -> tuple[int, Cart]:
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        products = live_products(session, (line.product_id for line in cart.items))
        updated = cart.refresh_prices(products)
    return updated, cart

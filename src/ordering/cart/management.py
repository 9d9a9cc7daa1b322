"""Cart management — lookup, discounts, guest merge and lifecycle changes."""

from collections.abc import Iterable

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catalogue.product.product import Product
from ordering.cart.cart import Cart, CartStatus
from shared.database import unit_of_work
from shared.exceptions import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def load_cart(session: Session, cart_id: str) -> Cart:
    cart = session.get(Cart, cart_id)
    if cart is None:
        raise NotFoundError({"cart": [f"Cart {cart_id} not found"]})
    return cart


def live_products(session: Session, product_ids: Iterable[str]) -> dict[str, Product]:
    """Load the purchasable (active, not deleted) products among ``product_ids``."""
    product_ids = set(product_ids)
    if not product_ids:
        return {}
    stmt = select(Product).where(
        Product.id.in_(product_ids),
        Product.is_deleted.is_(False),
        Product.is_active.is_(True),
    )
    return {product.id: product for product in session.scalars(stmt)}


def _find_active_cart(session: Session, user_id: str | None, session_id: str | None) -> Cart | None:
    stmt = select(Cart).where(Cart.status == CartStatus.ACTIVE.value)
    stmt = stmt.where(Cart.user_id == user_id) if user_id else stmt.where(Cart.session_id == session_id)
    return session.scalars(stmt).first()


def get_or_create_cart(user_id: str | None = None, session_id: str | None = None) -> Cart:
    """Return the active cart for a user (or guest session), creating it on first use.

    Two overlapping first requests race on the insert; the loser hits the
    one-active-cart index and returns the winner's cart.
    """
    if not user_id and not session_id:
        raise ValidationError({"cart": ["A cart needs either a user or a guest session"]})

    try:
        with unit_of_work() as session:
            cart = _find_active_cart(session, user_id, session_id)
            if cart is not None:
                return cart

            cart = Cart.create(user_id=user_id, session_id=session_id)
            session.add(cart)
    except IntegrityError:
        logger.info("cart_create_raced", user_id=user_id, session_id=session_id)
        with unit_of_work() as session:
            cart = _find_active_cart(session, user_id, session_id)
            if cart is None:
                raise
            return cart

    logger.info("cart_created", cart_id=cart.id, user_id=user_id, guest=user_id is None)
    return cart


def get_cart(cart_id: str) -> Cart:
    with unit_of_work() as session:
        return load_cart(session, cart_id)


def merge_carts(user_cart_id: str, guest_cart_id: str) -> Cart:
    """Merge a guest cart into a user's cart and delete the guest cart."""
    with unit_of_work() as session:
        user_cart = load_cart(session, user_cart_id)
        guest_cart = load_cart(session, guest_cart_id)

        products = live_products(session, (line.product_id for line in guest_cart.items))
        user_cart.absorb(guest_cart, products)
        session.delete(guest_cart)

    logger.info("carts_merged", cart_id=user_cart_id, guest_cart_id=guest_cart_id, items=user_cart.item_count)
    return user_cart


def apply_discount(cart_id: str, code: str, value) -> Cart:
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        cart.apply_discount(code, value)
    logger.info("cart_discount_applied", cart_id=cart_id, code=code)
    return cart


def remove_discount(cart_id: str, code: str) -> Cart:
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        cart.remove_discount(code)
    return cart


def apply_item_discount(cart_id: str, product_id: str, code: str, amount, discount_type) -> Cart:
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        cart.apply_item_discount(product_id, code, amount, discount_type)
    logger.info("cart_item_discount_applied", cart_id=cart_id, product_id=product_id, code=code)
    return cart


def mark_as_abandoned(cart_id: str) -> Cart:
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        cart.mark_abandoned()
    logger.info("cart_abandoned", cart_id=cart_id)
    return cart


def mark_as_converted(cart_id: str) -> Cart:
    with unit_of_work() as session:
        cart = load_cart(session, cart_id)
        cart.mark_converted()
    logger.info("cart_converted", cart_id=cart_id)
    return cart

"""Application tests for order creation — atomic reservation, totals, cart conversion and confirmation."""

from decimal import Decimal

import pytest
from catalogue.inventory.ledger import reserve_stock
from catalogue.product.management import get_product, update_product
from notifications.channel import EMAIL, get_channel
from ordering.cart.cart import CartStatus
from ordering.cart.items import add_item
from ordering.cart.management import get_cart, get_or_create_cart
from ordering.order.creation import coalesce_lines, create_order
from ordering.order.order import OrderStatus, PaymentMethod
from ordering.order.queries import find_by_user, get_order
from shared.database import unit_of_work
from shared.exceptions import InsufficientStockError, NotFoundError, PermissionDeniedError, ValidationError


def _place(shipping_address, items=None, cart_id=None, user_id="user-1", **overrides):
    options = {"shipping_price": Decimal("5"), "tax_rate": Decimal("0.1")}
    options.update(overrides)
    return create_order(
        user_id=user_id,
        email="ada@example.com",
        shipping_address=shipping_address,
        payment_method=PaymentMethod.CARD,
        items=items,
        cart_id=cart_id,
        **options,
    )


class TestCreateOrderFromItems:
    def test_reserves_stock_and_prices_order(self, make_product, shipping_address):
        product = make_product(price="10.00", stock=5)
        order = _place(shipping_address, items=[{"product_id": product.id, "quantity": 3}])

        assert order.status == OrderStatus.PENDING.value
        assert order.items_price == Decimal("30.00")
        assert order.tax_price == Decimal("3.00")
        assert order.shipping_price == Decimal("5.00")
        assert order.total_price == Decimal("38.00")
        assert order.order_number.startswith("ORD-")
        assert get_product(product.id).stock == 2

    def test_all_or_nothing(self, make_product, shipping_address):
        plenty = make_product(stock=10)
        scarce = make_product(stock=1)

        with pytest.raises(InsufficientStockError):
            _place(
                shipping_address,
                items=[{"product_id": plenty.id, "quantity": 4}, {"product_id": scarce.id, "quantity": 2}],
            )

        assert get_product(plenty.id).stock == 10
        assert get_product(scarce.id).stock == 1
        assert find_by_user("user-1") == []

    def test_unknown_product_aborts(self, make_product, shipping_address):
        product = make_product(stock=3)
        with pytest.raises(NotFoundError):
            _place(shipping_address, items=[(product.id, 1), ("missing", 1)])
        assert get_product(product.id).stock == 3

    def test_repeated_products_are_coalesced(self, make_product, shipping_address):
        product = make_product(price="2.00", stock=10)
        order = _place(shipping_address, items=[(product.id, 2), (product.id, 3)])

        assert len(order.items) == 1
        assert order.items[0].quantity == 5
        assert get_product(product.id).stock == 5

    def test_defaults_come_from_settings(self, make_product, shipping_address):
        product = make_product(price="100.00")
        order = create_order(
            user_id="user-1",
            email="ada@example.com",
            shipping_address=shipping_address,
            payment_method="card",
            items=[(product.id, 1)],
        )
        assert order.shipping_price == Decimal("10.00")
        assert order.tax_price == Decimal("10.00")

    def test_discount_info(self, make_product, shipping_address):
        product = make_product(price="40.00")
        order = _place(
            shipping_address,
            items=[(product.id, 1)],
            tax_rate=Decimal("0"),
            discount_info={"code": "WELCOME", "amount": "25", "type": "percentage"},
        )
        assert order.discount_price == Decimal("10.00")
        assert order.total_price == Decimal("35.00")
        assert order.discount_info == {"code": "WELCOME", "amount": "25", "type": "percentage"}

    def test_items_or_cart_required(self, shipping_address):
        with pytest.raises(ValidationError):
            _place(shipping_address)

    def test_snapshot_is_independent_of_later_edits(self, make_product, shipping_address):
        product = make_product(price="10.00")
        order = _place(shipping_address, items=[(product.id, 1)])
        update_product(product.id, name="Renamed", price="99.00")

        item = get_order(order.id).items[0]
        assert item.price == Decimal("10.00")
        assert item.name != "Renamed"


class TestCreateOrderFromCart:
    def test_cart_is_converted(self, make_product, shipping_address):
        product = make_product(price="10.00", stock=5)
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 3)

        order = _place(shipping_address, cart_id=cart.id)

        assert order.total_price == Decimal("38.00")
        assert get_cart(cart.id).status == CartStatus.CONVERTED.value
        assert get_product(product.id).stock == 2

    def test_failed_order_keeps_cart_active(self, make_product, shipping_address):
        product = make_product(stock=5)
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 3)

        with unit_of_work() as session:
            reserve_stock(session, product.id, 4)

        with pytest.raises(InsufficientStockError):
            _place(shipping_address, cart_id=cart.id)
        assert get_cart(cart.id).status == CartStatus.ACTIVE.value

    def test_other_users_cart_rejected(self, make_product, shipping_address):
        product = make_product()
        cart = get_or_create_cart(user_id="user-2")
        add_item(cart.id, product.id, 1)
        with pytest.raises(PermissionDeniedError):
            _place(shipping_address, cart_id=cart.id)

    def test_empty_cart_rejected(self, shipping_address):
        cart = get_or_create_cart(user_id="user-1")
        with pytest.raises(ValidationError):
            _place(shipping_address, cart_id=cart.id)

    def test_items_and_cart_together_rejected(self, make_product, shipping_address):
        in_cart = make_product(stock=5)
        listed = make_product(stock=5)
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, in_cart.id, 2)

        with pytest.raises(ValidationError):
            _place(shipping_address, items=[(listed.id, 1)], cart_id=cart.id)

        reloaded = get_cart(cart.id)
        assert reloaded.status == CartStatus.ACTIVE.value
        assert [line.product_id for line in reloaded.items] == [in_cart.id]
        assert get_product(listed.id).stock == 5


class TestOrderConfirmation:
    def test_confirmation_email_sent(self, make_product, shipping_address):
        product = make_product()
        order = _place(shipping_address, items=[(product.id, 1)])

        messages = get_channel(EMAIL).messages_to("ada@example.com")
        assert len(messages) == 1
        assert order.order_number in messages[0].subject

    def test_email_failure_does_not_fail_order(self, make_product, shipping_address):
        get_channel(EMAIL).configure(should_succeed=False, failure_reason="SMTP down")
        product = make_product(stock=3)

        order = _place(shipping_address, items=[(product.id, 1)])

        assert order.status == OrderStatus.PENDING.value
        assert get_product(product.id).stock == 2
        assert get_channel(EMAIL).outbox == []


class TestCoalesceLines:
    def test_keeps_first_seen_order(self):
        assert coalesce_lines([("b", 1), {"product_id": "a", "quantity": 2}, ("b", 2)]) == [("b", 3), ("a", 2)]

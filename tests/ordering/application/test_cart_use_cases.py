"""Application tests for cart use cases — items, discounts, merging, validation and abandonment."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal

import pytest
import ordering.cart.management as cart_management
from catalogue.inventory.ledger import reserve_stock
from catalogue.product.management import delete_product, get_product, update_product
from ordering.cart.abandonment import abandon_inactive_carts, find_abandoned_carts
from ordering.cart.cart import Cart, CartIssueType, CartStatus
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
from shared.database import unit_of_work
from shared.exceptions import ConcurrencyConflictError, InsufficientStockError, NotFoundError, ValidationError
from sqlalchemy.exc import IntegrityError


class TestGetOrCreateCart:
    def test_returns_same_active_cart(self):
        first = get_or_create_cart(user_id="user-1")
        second = get_or_create_cart(user_id="user-1")
        assert first.id == second.id

    def test_new_cart_after_conversion(self, make_product):
        product = make_product()
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 1)
        mark_as_converted(cart.id)

        assert get_or_create_cart(user_id="user-1").id != cart.id

    def test_guest_cart_by_session(self):
        cart = get_or_create_cart(session_id="sess-1")
        assert get_or_create_cart(session_id="sess-1").id == cart.id

    def test_owner_required(self):
        with pytest.raises(ValidationError):
            get_or_create_cart()

    def test_only_one_active_cart_per_user(self):
        get_or_create_cart(user_id="user-1")
        with pytest.raises(IntegrityError):
            with unit_of_work() as session:
                session.add(Cart.create(user_id="user-1"))

    def test_only_one_active_cart_per_guest_session(self):
        get_or_create_cart(session_id="sess-1")
        with pytest.raises(IntegrityError):
            with unit_of_work() as session:
                session.add(Cart.create(session_id="sess-1"))

    def test_losing_a_creation_race_returns_the_winning_cart(self, monkeypatch):
        winner = get_or_create_cart(user_id="user-1")
        real_find = cart_management._find_active_cart
        calls = []

        def find_after_race(session, user_id, session_id):
            calls.append(user_id)
            # The first lookup runs before the other request has committed
            return None if len(calls) == 1 else real_find(session, user_id, session_id)

        monkeypatch.setattr(cart_management, "_find_active_cart", find_after_race)

        assert get_or_create_cart(user_id="user-1").id == winner.id
        assert len(calls) == 2


class TestCartItems:
    def test_add_item_persists(self, make_product):
        product = make_product(price="10.00", stock=5)
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 3)

        loaded = get_cart(cart.id)
        assert loaded.sub_total == Decimal("30.00")
        assert loaded.items[0].quantity == 3

    def test_add_unknown_product(self):
        cart = get_or_create_cart(user_id="user-1")
        with pytest.raises(NotFoundError):
            add_item(cart.id, "missing", 1)

    def test_add_deleted_product(self, make_product):
        product = make_product()
        delete_product(product.id)
        cart = get_or_create_cart(user_id="user-1")
        with pytest.raises(NotFoundError):
            add_item(cart.id, product.id, 1)

    def test_update_beyond_stock(self, make_product):
        product = make_product(stock=2)
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 1)
        with pytest.raises(InsufficientStockError):
            update_item_quantity(cart.id, product.id, 3)
        assert get_cart(cart.id).items[0].quantity == 1

    def test_update_to_zero_removes(self, make_product):
        product = make_product()
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 2)
        update_item_quantity(cart.id, product.id, 0)
        assert get_cart(cart.id).items == []

    def test_remove_and_clear(self, make_product):
        first = make_product()
        second = make_product()
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, first.id, 1)
        add_item(cart.id, second.id, 1)

        remove_item(cart.id, first.id)
        assert [line.product_id for line in get_cart(cart.id).items] == [second.id]

        clear_cart(cart.id)
        assert get_cart(cart.id).total_quantity == 0

    def test_cart_changes_never_touch_stock(self, make_product):
        product = make_product(stock=5)
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 3)
        assert get_product(product.id).stock == 5

    def test_version_increases_with_each_write(self, make_product):
        product = make_product()
        cart = get_or_create_cart(user_id="user-1")
        first = add_item(cart.id, product.id, 1).version
        second = add_item(cart.id, product.id, 1).version
        assert second > first


class TestCartDiscounts:
    def test_apply_and_remove(self, make_product):
        product = make_product(price="50.00")
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 2)

        assert apply_discount(cart.id, "TEN", 10).total_price == Decimal("90.00")
        assert remove_discount(cart.id, "TEN").total_price == Decimal("100.00")

    def test_discount_survives_reload(self, make_product):
        product = make_product(price="50.00")
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 1)
        apply_discount(cart.id, "TEN", 10)
        apply_discount(cart.id, "FIVE", 5)

        assert list(get_cart(cart.id).discounts) == ["TEN", "FIVE"]

    def test_item_discount(self, make_product):
        product = make_product(price="30.00")
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 1)
        updated = apply_item_discount(cart.id, product.id, "FIVEOFF", 5, "fixed")
        assert updated.total_price == Decimal("25.00")


class TestMergeCarts:
    def test_merge_guest_into_user_cart(self, make_product):
        x = make_product(stock=10)
        y = make_product(stock=10)
        user_cart = get_or_create_cart(user_id="user-1")
        guest_cart = get_or_create_cart(session_id="sess-1")
        add_item(user_cart.id, x.id, 2)
        add_item(guest_cart.id, x.id, 1)
        add_item(guest_cart.id, y.id, 1)

        merged = merge_carts(user_cart.id, guest_cart.id)

        quantities = {line.product_id: line.quantity for line in merged.items}
        assert quantities == {x.id: 3, y.id: 1}
        with pytest.raises(NotFoundError):
            get_cart(guest_cart.id)


class TestValidationAndRefresh:
    def test_price_change_detected_then_refreshed(self, make_product):
        product = make_product(price="10.00")
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 1)
        update_product(product.id, price="12.00")

        result = validate_cart(cart.id)
        assert [issue.type for issue in result.issues] == [CartIssueType.PRICE_CHANGED]

        updated, refreshed = refresh_cart_prices(cart.id)
        assert updated == 1
        assert refreshed.total_price == Decimal("12.00")
        assert validate_cart(cart.id).valid

        assert refresh_cart_prices(cart.id)[0] == 0

    def test_deleted_product_reported(self, make_product):
        product = make_product()
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 1)
        delete_product(product.id)

        result = validate_cart(cart.id)
        assert result.issues[0].type == CartIssueType.PRODUCT_NOT_FOUND

    def test_validation_is_repeatable(self, make_product):
        repriced = make_product(price="10.00", stock=5)
        scarce = make_product(stock=3)
        gone = make_product()
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, repriced.id, 1)
        add_item(cart.id, scarce.id, 3)
        add_item(cart.id, gone.id, 1)
        update_product(repriced.id, price="11.00")
        delete_product(gone.id)
        with unit_of_work() as session:
            reserve_stock(session, scarce.id, 2)

        first = validate_cart(cart.id)
        second = validate_cart(cart.id)

        def summary(result):
            return result.valid, [(issue.type, issue.product_id, issue.message) for issue in result.issues]

        assert summary(first) == summary(second)
        assert not first.valid
        assert [issue.type for issue in first.issues] == [
            CartIssueType.PRICE_CHANGED,
            CartIssueType.INSUFFICIENT_STOCK,
            CartIssueType.PRODUCT_NOT_FOUND,
        ]
        assert get_cart(cart.id).total_price == Decimal("50.00")


class TestCheckCartInventory:
    def test_reports_each_line_without_reserving(self, make_product):
        plenty = make_product(stock=5)
        scarce = make_product(stock=2)
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, plenty.id, 2)
        add_item(cart.id, scarce.id, 2)
        with unit_of_work() as session:
            reserve_stock(session, scarce.id, 1)

        statuses = check_cart_inventory(cart.id)

        assert [(s.product_id, s.available, s.remaining_stock) for s in statuses] == [
            (plenty.id, True, 5),
            (scarce.id, False, 1),
        ]
        assert get_product(plenty.id).stock == 5

    def test_empty_cart(self):
        cart = get_or_create_cart(user_id="user-1")
        assert check_cart_inventory(cart.id) == []

    def test_unknown_cart(self):
        with pytest.raises(NotFoundError):
            check_cart_inventory("missing")


class TestAbandonment:
    def test_idle_carts_with_items_are_flagged(self, make_product):
        product = make_product()
        idle = get_or_create_cart(user_id="user-1")
        add_item(idle.id, product.id, 1)
        empty = get_or_create_cart(user_id="user-2")

        later = datetime.now(UTC) + timedelta(days=4)
        found = find_abandoned_carts(days=3, as_of=later)
        assert [cart.id for cart in found] == [idle.id]

        assert abandon_inactive_carts(days=3, as_of=later) == 1
        assert get_cart(idle.id).status == CartStatus.ABANDONED.value
        assert get_cart(empty.id).status == CartStatus.ACTIVE.value

    def test_recent_carts_untouched(self, make_product):
        product = make_product()
        cart = get_or_create_cart(user_id="user-1")
        add_item(cart.id, product.id, 1)
        assert abandon_inactive_carts(days=3) == 0

    def test_manual_abandon(self):
        cart = get_or_create_cart(user_id="user-1")
        assert mark_as_abandoned(cart.id).status == CartStatus.ABANDONED.value


class TestOptimisticLocking:
    def test_stale_write_rejected(self, make_product):
        product = make_product()
        cart = get_or_create_cart(user_id="user-1")

        with pytest.raises(ConcurrencyConflictError):
            with unit_of_work() as session:
                stale = session.get(Cart, cart.id)
                add_item(cart.id, product.id, 1)
                stale.apply_discount("LATE", 5)

        assert get_cart(cart.id).discounts == {}

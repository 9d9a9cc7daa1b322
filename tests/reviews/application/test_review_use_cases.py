"""Application tests for reviews — submission, rating aggregation, edits, removal and votes."""

from decimal import Decimal

import pytest
from catalogue.product.management import get_product
from catalogue.product.product import DEFAULT_RATING
from ordering.order.creation import create_order
from ordering.order.fulfillment import fulfill_order
from ordering.order.lifecycle import update_order_status
from ordering.order.order import FulfillmentDetails, OrderStatus
from reviews.review.editing import update_review
from reviews.review.queries import get_product_reviews, get_review
from reviews.review.removal import delete_review
from reviews.review.submission import create_review
from reviews.review.voting import toggle_dislike, toggle_like
from shared.exceptions import NotFoundError, PermissionDeniedError, ValidationError


def _review(product_id, user_id, rating, title="Review", comment="My thoughts on it."):
    return create_review(product_id=product_id, user_id=user_id, rating=rating, title=title, comment=comment)


class TestRatingAggregation:
    def test_average_and_count(self, make_product):
        product = make_product()
        for user_id, rating in (("u1", 5), ("u2", 3), ("u3", 4)):
            _review(product.id, user_id, rating)

        refreshed = get_product(product.id)
        assert refreshed.ratings_average == 4.0
        assert refreshed.ratings_quantity == 3

    def test_deleted_reviews_are_excluded(self, make_product):
        product = make_product()
        _review(product.id, "u1", 5)
        middle = _review(product.id, "u2", 3)
        _review(product.id, "u3", 4)

        delete_review(middle.id, "u2")

        refreshed = get_product(product.id)
        assert refreshed.ratings_average == 4.5
        assert refreshed.ratings_quantity == 2

    def test_edit_updates_average(self, make_product):
        product = make_product()
        review = _review(product.id, "u1", 2)
        update_review(review.id, "u1", rating=4)
        assert get_product(product.id).ratings_average == 4.0

    def test_last_review_removed_resets_default(self, make_product):
        product = make_product()
        review = _review(product.id, "u1", 1)
        delete_review(review.id, "u1")

        refreshed = get_product(product.id)
        assert refreshed.ratings_quantity == 0
        assert refreshed.ratings_average == DEFAULT_RATING


class TestSubmission:
    def test_one_review_per_user(self, make_product):
        product = make_product()
        _review(product.id, "u1", 5)
        with pytest.raises(ValidationError):
            _review(product.id, "u1", 4)
        assert get_product(product.id).ratings_quantity == 1

    def test_unknown_product(self):
        with pytest.raises(NotFoundError):
            _review("missing", "u1", 5)

    def test_verified_purchase(self, make_product, shipping_address):
        product = make_product(price="10.00")
        order = create_order(
            user_id="buyer",
            email="buyer@example.com",
            shipping_address=shipping_address,
            payment_method="card",
            items=[(product.id, 1)],
            shipping_price=Decimal("0"),
            tax_rate=Decimal("0"),
        )
        fulfill_order(order.id, FulfillmentDetails(tracking_number="TRK-1"))
        update_order_status(order.id, OrderStatus.DELIVERED)

        assert _review(product.id, "buyer", 5).verified_purchase is True
        assert _review(product.id, "browser", 5).verified_purchase is False


class TestEditAndRemove:
    def test_only_author_edits(self, make_product):
        product = make_product()
        review = _review(product.id, "u1", 3)
        with pytest.raises(PermissionDeniedError):
            update_review(review.id, "u2", rating=1)

    def test_admin_can_remove_any_review(self, make_product):
        product = make_product()
        review = _review(product.id, "u1", 3)

        removed = delete_review(review.id, "admin-1", is_admin=True)

        assert removed.deleted_by == "admin-1"
        with pytest.raises(NotFoundError):
            get_review(review.id)
        assert get_product_reviews(product.id) == []

    def test_stranger_cannot_remove(self, make_product):
        product = make_product()
        review = _review(product.id, "u1", 3)
        with pytest.raises(PermissionDeniedError):
            delete_review(review.id, "u2")


class TestVotes:
    def test_votes_persist(self, make_product):
        product = make_product()
        review = _review(product.id, "u1", 3)

        toggle_like(review.id, "v1")
        toggle_like(review.id, "v2")
        toggle_dislike(review.id, "v1")

        reloaded = get_review(review.id)
        assert reloaded.likes == 1
        assert reloaded.dislikes == 1
        assert reloaded.liked_by == ["v2"]

"""Review submission.

One review per user per product. A review is marked as a verified purchase
when the author has a delivered or completed order containing the product.
"""

import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session

from catalogue.product.management import load_product
from ordering.order.order import Order, OrderItem, OrderStatus
from reviews.review.rating import refresh_product_rating
from reviews.review.review import Review
from shared.database import unit_of_work
from shared.exceptions import ValidationError

logger = structlog.get_logger(__name__)

_PURCHASE_COMPLETE = (OrderStatus.DELIVERED.value, OrderStatus.COMPLETED.value)


def has_purchased(session: Session, user_id: str, product_id: str) -> bool:
    stmt = (
        select(Order.id)
        .join(OrderItem, OrderItem.order_id == Order.id)
        .where(
            Order.user_id == user_id,
            Order.status.in_(_PURCHASE_COMPLETE),
            OrderItem.product_id == product_id,
        )
        .limit(1)
    )
    return session.scalar(stmt) is not None


def create_review(product_id: str, user_id: str, rating: int, title: str, comment: str) -> Review:
    with unit_of_work() as session:
        load_product(session, product_id)

        existing = session.scalar(
            select(Review.id).where(Review.product_id == product_id, Review.user_id == user_id)
        )
        if existing is not None:
            raise ValidationError({"review": ["You have already reviewed this product"]})

        review = Review.create(
            product_id=product_id,
            user_id=user_id,
            rating=rating,
            title=title,
            comment=comment,
            verified_purchase=has_purchased(session, user_id, product_id),
        )
        session.add(review)
        refresh_product_rating(session, product_id)

    logger.info(
        "review_submitted",
        review_id=review.id,
        product_id=product_id,
        rating=rating,
        verified_purchase=review.verified_purchase,
    )
    return review

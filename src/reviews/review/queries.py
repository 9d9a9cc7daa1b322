"""Review lookups."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from catalogue.product.management import load_product
from reviews.review.review import Review
from shared.database import unit_of_work
from shared.exceptions import NotFoundError


def load_review(session: Session, review_id: str) -> Review:
    review = session.get(Review, review_id)
    if review is None or review.is_deleted:
        raise NotFoundError({"review": [f"Review {review_id} not found"]})
    return review


def get_review(review_id: str) -> Review:
    with unit_of_work() as session:
        return load_review(session, review_id)


def get_product_reviews(product_id: str) -> list[Review]:
    """Live reviews for a product, newest first."""
    with unit_of_work() as session:
        load_product(session, product_id)
        stmt = (
            select(Review)
            .where(Review.product_id == product_id, Review.is_deleted.is_(False))
            .order_by(Review.created_at.desc(), Review.id)
        )
        return list(session.scalars(stmt))

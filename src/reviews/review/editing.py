"""Editing a review. Only the author may edit."""

import structlog

from reviews.review.queries import load_review
from reviews.review.rating import refresh_product_rating
from reviews.review.review import Review
from shared.database import unit_of_work
from shared.exceptions import PermissionDeniedError

logger = structlog.get_logger(__name__)


def update_review(
    review_id: str,
    user_id: str,
    rating: int | None = None,
    title: str | None = None,
    comment: str | None = None,
) -> Review:
    with unit_of_work() as session:
        review = load_review(session, review_id)
        if review.user_id != user_id:
            raise PermissionDeniedError({"review": ["Only the review author can edit this review"]})

        review.edit(rating=rating, title=title, comment=comment)
        refresh_product_rating(session, review.product_id)

    logger.info("review_edited", review_id=review_id, rating=review.rating)
    return review

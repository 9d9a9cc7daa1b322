"""Removing a review (soft delete) by its author or an admin."""

import structlog

from reviews.review.queries import load_review
from reviews.review.rating import refresh_product_rating
from reviews.review.review import Review
from shared.database import unit_of_work
from shared.exceptions import PermissionDeniedError

logger = structlog.get_logger(__name__)


def delete_review(review_id: str, user_id: str, is_admin: bool = False) -> Review:
    with unit_of_work() as session:
        review = load_review(session, review_id)
        if review.user_id != user_id and not is_admin:
            raise PermissionDeniedError({"review": ["Only the review author or an admin can delete this review"]})

        review.soft_delete(deleted_by=user_id)
        refresh_product_rating(session, review.product_id)

    logger.info("review_removed", review_id=review_id, removed_by=user_id, by_admin=is_admin)
    return review

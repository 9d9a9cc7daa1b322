"""Like / dislike votes on reviews."""

from reviews.review.queries import load_review
from reviews.review.review import Review
from shared.database import unit_of_work


def toggle_like(review_id: str, user_id: str) -> Review:
    with unit_of_work() as session:
        review = load_review(session, review_id)
        review.toggle_like(user_id)
    return review


def toggle_dislike(review_id: str, user_id: str) -> Review:
    with unit_of_work() as session:
        review = load_review(session, review_id)
        review.toggle_dislike(user_id)
    return review

"""FastAPI routes for product reviews and their votes."""

from fastapi import APIRouter, Depends

from reviews.api.schemas import EditReviewRequest, ReviewResponse, SubmitReviewRequest
from reviews.review.editing import update_review
from reviews.review.queries import get_product_reviews, get_review
from reviews.review.removal import delete_review
from reviews.review.submission import create_review
from reviews.review.voting import toggle_dislike, toggle_like
from shared.api import Actor, Envelope, authenticated_actor

review_router = APIRouter(prefix="/reviews", tags=["reviews"])


def _review(review) -> Envelope[ReviewResponse]:
    return Envelope(data=ReviewResponse.model_validate(review))


@review_router.post("", status_code=201, response_model=Envelope[ReviewResponse])
async def submit_review(
    body: SubmitReviewRequest, actor: Actor = Depends(authenticated_actor)
) -> Envelope[ReviewResponse]:
    """Submit a review. One per customer per product."""
    review = create_review(
        product_id=body.product_id,
        user_id=actor.user_id,
        rating=body.rating,
        title=body.title,
        comment=body.comment,
    )
    return _review(review)


@review_router.get("/product/{product_id}", response_model=Envelope[list[ReviewResponse]])
async def product_reviews(product_id: str) -> Envelope[list[ReviewResponse]]:
    return Envelope(data=[ReviewResponse.model_validate(review) for review in get_product_reviews(product_id)])


@review_router.get("/{review_id}", response_model=Envelope[ReviewResponse])
async def get_review_endpoint(review_id: str) -> Envelope[ReviewResponse]:
    return _review(get_review(review_id))


@review_router.patch("/{review_id}", response_model=Envelope[ReviewResponse])
async def edit_review(
    review_id: str, body: EditReviewRequest, actor: Actor = Depends(authenticated_actor)
) -> Envelope[ReviewResponse]:
    review = update_review(review_id, actor.user_id, rating=body.rating, title=body.title, comment=body.comment)
    return _review(review)


@review_router.delete("/{review_id}", response_model=Envelope[ReviewResponse])
async def remove_review(review_id: str, actor: Actor = Depends(authenticated_actor)) -> Envelope[ReviewResponse]:
    """Soft-delete a review. Authors remove their own; admins remove any."""
    return _review(delete_review(review_id, actor.user_id, is_admin=actor.is_admin))


@review_router.post("/{review_id}/like", response_model=Envelope[ReviewResponse])
async def like_review(review_id: str, actor: Actor = Depends(authenticated_actor)) -> Envelope[ReviewResponse]:
    return _review(toggle_like(review_id, actor.user_id))


@review_router.post("/{review_id}/dislike", response_model=Envelope[ReviewResponse])
async def dislike_review(review_id: str, actor: Actor = Depends(authenticated_actor)) -> Envelope[ReviewResponse]:
    return _review(toggle_dislike(review_id, actor.user_id))

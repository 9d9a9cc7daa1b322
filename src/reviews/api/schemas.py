"""Pydantic request/response schemas for the Reviews API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from reviews.review.review import MAX_COMMENT_LENGTH, MAX_TITLE_LENGTH


# ---------------------------------------------------------------------------
# Request Schemas
# ---------------------------------------------------------------------------
class SubmitReviewRequest(BaseModel):
    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "product_id": "prod-001",
                    "rating": 5,
                    "title": "Fits perfectly",
                    "comment": "Soft fabric and true to size.",
                }
            ]
        }
    }

    product_id: str
    rating: int
    title: str = Field(max_length=MAX_TITLE_LENGTH)
    comment: str = Field(max_length=MAX_COMMENT_LENGTH)


class EditReviewRequest(BaseModel):
    rating: int | None = None
    title: str | None = Field(default=None, max_length=MAX_TITLE_LENGTH)
    comment: str | None = Field(default=None, max_length=MAX_COMMENT_LENGTH)


# ---------------------------------------------------------------------------
# Response Schemas
# ---------------------------------------------------------------------------
class ReviewResponse(BaseModel):
    model_config = {"from_attributes": True}

    id: str
    product_id: str
    user_id: str
    rating: int
    title: str
    comment: str
    verified_purchase: bool
    likes: int
    dislikes: int
    is_deleted: bool
    created_at: datetime
    updated_at: datetime

"""Review aggregate — one customer's rating and comment on one product.

A user reviews a product at most once. Likes and dislikes are membership
sets: joining one removes the user from the other, and the ``likes`` and
``dislikes`` counters are always the sizes of those sets.
"""

from datetime import UTC, datetime
from uuid import uuid4

from pydantic import Field
from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from shared.database import Base, UTCDateTime
from shared.exceptions import ValidationError
from shared.value_objects import ValueObject

MAX_TITLE_LENGTH = 100
MAX_COMMENT_LENGTH = 1000


class ReviewContent(ValueObject):
    """The part of a review its author writes."""

    rating: int = Field(strict=True, ge=1, le=5)
    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    comment: str = Field(min_length=1, max_length=MAX_COMMENT_LENGTH)


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (UniqueConstraint("product_id", "user_id", name="uq_reviews_product_user"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), index=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    rating: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(MAX_TITLE_LENGTH))
    comment: Mapped[str] = mapped_column(Text)
    verified_purchase: Mapped[bool] = mapped_column(Boolean, default=False)
    likes: Mapped[int] = mapped_column(Integer, default=0)
    dislikes: Mapped[int] = mapped_column(Integer, default=0)
    liked_by: Mapped[list] = mapped_column(JSON, default=list)
    disliked_by: Mapped[list] = mapped_column(JSON, default=list)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    deleted_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, product_id, user_id, rating, title, comment, verified_purchase=False):
        content = ReviewContent(rating=rating, title=title, comment=comment)
        now = datetime.now(UTC)
        return cls(
            id=str(uuid4()),
            product_id=product_id,
            user_id=user_id,
            rating=content.rating,
            title=content.title,
            comment=content.comment,
            verified_purchase=verified_purchase,
            likes=0,
            dislikes=0,
            liked_by=[],
            disliked_by=[],
            is_deleted=False,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------
    def edit(self, rating=None, title=None, comment=None):
        if self.is_deleted:
            raise ValidationError({"review": ["Deleted reviews cannot be edited"]})
        content = ReviewContent(
            rating=self.rating if rating is None else rating,
            title=self.title if title is None else title,
            comment=self.comment if comment is None else comment,
        )
        self.rating = content.rating
        self.title = content.title
        self.comment = content.comment
        self.updated_at = datetime.now(UTC)

    def soft_delete(self, deleted_by):
        if self.is_deleted:
            raise ValidationError({"review": ["Review is already deleted"]})
        now = datetime.now(UTC)
        self.is_deleted = True
        self.deleted_at = now
        self.deleted_by = deleted_by
        self.updated_at = now

    # -------------------------------------------------------------------
    # Votes
    # -------------------------------------------------------------------
    def _set_votes(self, liked_by, disliked_by):
        # New lists so the JSON columns register the change
        self.liked_by = liked_by
        self.disliked_by = disliked_by
        self.likes = len(liked_by)
        self.dislikes = len(disliked_by)
        self.updated_at = datetime.now(UTC)

    def toggle_like(self, user_id):
        liked_by = list(self.liked_by or [])
        disliked_by = [voter for voter in (self.disliked_by or []) if voter != user_id]
        if user_id in liked_by:
            liked_by.remove(user_id)
        else:
            liked_by.append(user_id)
        self._set_votes(liked_by, disliked_by)

    def toggle_dislike(self, user_id):
        disliked_by = list(self.disliked_by or [])
        liked_by = [voter for voter in (self.liked_by or []) if voter != user_id]
        if user_id in disliked_by:
            disliked_by.remove(user_id)
        else:
            disliked_by.append(user_id)
        self._set_votes(liked_by, disliked_by)

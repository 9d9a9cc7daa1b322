"""Product rating aggregation.

Ratings are recomputed from every live review rather than adjusted
incrementally, so concurrent edits can never leave the figures drifting.
"""

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from catalogue.product.product import Product
from reviews.review.review import Review

logger = structlog.get_logger(__name__)


def refresh_product_rating(session: Session, product_id: str) -> Product:
    session.flush()
    average, quantity = session.execute(
        select(func.avg(Review.rating), func.count(Review.id)).where(
            Review.product_id == product_id,
            Review.is_deleted.is_(False),
        )
    ).one()

    product = session.get(Product, product_id)
    product.apply_rating_stats(average, quantity)
    logger.debug(
        "product_rating_refreshed",
        product_id=product_id,
        ratings_average=product.ratings_average,
        ratings_quantity=product.ratings_quantity,
    )
    return product

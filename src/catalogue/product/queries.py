"""Product listings for the storefront and the admin back office."""

import math
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal

from sqlalchemy import func, or_, select

from catalogue.product.management import load_product
from catalogue.product.product import Product
from shared.database import unit_of_work
from shared.exceptions import ValidationError

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
TOP_RATED_THRESHOLD = 4
NEW_ARRIVAL_DAYS = 30
SIMILAR_LIMIT = 10

_SORTS = {
    "newest": (Product.created_at.desc(), Product.id),
    "price_asc": (Product.price.asc(), Product.id),
    "price_desc": (Product.price.desc(), Product.id),
    "rating": (Product.ratings_average.desc(), Product.created_at.desc(), Product.id),
}


@dataclass(frozen=True)
class ProductPage:
    items: list[Product]
    total: int
    page: int
    limit: int

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0

    @property
    def has_next(self) -> bool:
        return self.page < self.pages


def _listed():
    """Products a shopper can see: not deleted and not deactivated."""
    return select(Product).where(Product.is_deleted.is_(False), Product.is_active.is_(True))


def _check_page(page: int, limit: int):
    errors = {}
    if page < 1:
        errors["page"] = ["Page must be at least 1"]
    if not 1 <= limit <= MAX_PAGE_SIZE:
        errors["limit"] = [f"Limit must be between 1 and {MAX_PAGE_SIZE}"]
    if errors:
        raise ValidationError(errors)


def list_products(
    category: str | None = None,
    brand: str | None = None,
    min_price=None,
    max_price=None,
    search: str | None = None,
    sort: str = "newest",
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> ProductPage:
    """One page of visible products matching every given filter.

    ``search`` matches name, description or brand, case-insensitively.
    """
    _check_page(page, limit)
    if sort not in _SORTS:
        raise ValidationError({"sort": [f"Sort must be one of: {', '.join(_SORTS)}"]})

    stmt = _listed()
    if category:
        stmt = stmt.where(Product.category == category)
    if brand:
        stmt = stmt.where(Product.brand == brand)
    if min_price is not None:
        stmt = stmt.where(Product.price >= Decimal(str(min_price)))
    if max_price is not None:
        stmt = stmt.where(Product.price <= Decimal(str(max_price)))
    if search:
        pattern = f"%{search.strip()}%"
        stmt = stmt.where(
            or_(Product.name.ilike(pattern), Product.description.ilike(pattern), Product.brand.ilike(pattern))
        )

    with unit_of_work() as session:
        total = session.scalar(select(func.count()).select_from(stmt.subquery()))
        items = list(session.scalars(stmt.order_by(*_SORTS[sort]).offset((page - 1) * limit).limit(limit)))
    return ProductPage(items=items, total=total, page=page, limit=limit)


def find_by_brand(brand: str) -> list[Product]:
    """Every non-deleted product of ``brand``, newest first."""
    stmt = select(Product).where(Product.brand == brand, Product.is_deleted.is_(False))
    with unit_of_work() as session:
        return list(session.scalars(stmt.order_by(*_SORTS["newest"])))


def list_deleted_products() -> list[Product]:
    stmt = select(Product).where(Product.is_deleted.is_(True)).order_by(Product.deleted_at.desc(), Product.id)
    with unit_of_work() as session:
        return list(session.scalars(stmt))


def top_rated_products(limit: int = DEFAULT_PAGE_SIZE) -> list[Product]:
    """Visible products rated at least four stars, best first.

    Unreviewed products carry the default rating and count as rated.
    """
    _check_page(1, limit)
    stmt = _listed().where(Product.ratings_average >= TOP_RATED_THRESHOLD)
    with unit_of_work() as session:
        return list(session.scalars(stmt.order_by(*_SORTS["rating"]).limit(limit)))


def new_arrivals(limit: int = DEFAULT_PAGE_SIZE, as_of: datetime | None = None) -> list[Product]:
    """Visible products added in the last thirty days, newest first."""
    _check_page(1, limit)
    since = (as_of or datetime.now(UTC)) - timedelta(days=NEW_ARRIVAL_DAYS)
    stmt = _listed().where(Product.created_at >= since)
    with unit_of_work() as session:
        return list(session.scalars(stmt.order_by(*_SORTS["newest"]).limit(limit)))


def similar_products(product_id: str, limit: int = SIMILAR_LIMIT) -> list[Product]:
    """Other products in the same category. A product without one has no peers."""
    with unit_of_work() as session:
        product = load_product(session, product_id)
        if not product.category:
            return []
        stmt = select(Product).where(
            Product.category == product.category,
            Product.id != product.id,
            Product.is_deleted.is_(False),
        )
        return list(session.scalars(stmt.order_by(*_SORTS["newest"]).limit(limit)))

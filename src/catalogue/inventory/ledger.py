"""Inventory ledger — the only code path that changes product stock.

Each write is a single conditional UPDATE. The database evaluates the
precondition (``stock >= quantity``) and applies the change in one step,
so concurrent reservations racing for the last units cannot oversell:
a zero row count means the precondition did not hold at write time.

Release calls are not deduplicated here. Callers track which reservations
they have already credited back.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog
from sqlalchemy import case, select, update
from sqlalchemy.orm import Session

from catalogue.product.product import Product, ProductAvailability
from shared.exceptions import InsufficientStockError, InvalidQuantityError, NotFoundError

logger = structlog.get_logger(__name__)

_products = Product.__table__


@dataclass(frozen=True)
class InventoryStatus:
    product_id: str
    available: bool
    remaining_stock: int


def _availability_for(stock_expr):
    return case(
        (stock_expr > 0, ProductAvailability.IN_STOCK.value),
        else_=ProductAvailability.OUT_OF_STOCK.value,
    )


def _require_positive(quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidQuantityError({"quantity": ["Quantity must be a positive integer"]})


def _expire_cached(session: Session, product_id: str):
    """Make any loaded Product instance re-read the columns we just changed."""
    cached = session.identity_map.get(session.identity_key(Product, product_id))
    if cached is not None:
        session.expire(cached, ["stock", "availability", "updated_at"])


def _current_stock(session: Session, product_id: str) -> int:
    return session.execute(select(_products.c.stock).where(_products.c.id == product_id)).scalar_one()


def reserve_stock(session: Session, product_id: str, quantity: int) -> int:
    """Take ``quantity`` units from stock. Returns the stock left afterwards.

    Raises ``InsufficientStockError`` when fewer than ``quantity`` units are
    on hand at the moment of the update, ``NotFoundError`` when the product
    is missing or soft-deleted.
    """
    _require_positive(quantity)
    session.flush()

    new_stock = _products.c.stock - quantity
    result = session.execute(
        update(_products)
        .where(
            _products.c.id == product_id,
            _products.c.is_deleted.is_(False),
            _products.c.stock >= quantity,
        )
        .values(stock=new_stock, availability=_availability_for(new_stock), updated_at=datetime.now(UTC))
    )

    if result.rowcount == 0:
        row = session.execute(
            select(_products.c.name, _products.c.stock, _products.c.is_deleted).where(_products.c.id == product_id)
        ).first()
        if row is None or row.is_deleted:
            raise NotFoundError({"product": [f"Product {product_id} not found"]})

        logger.info("stock_reservation_rejected", product_id=product_id, requested=quantity, available=row.stock)
        raise InsufficientStockError(product_id, quantity, row.stock, name=row.name)

    _expire_cached(session, product_id)
    remaining = _current_stock(session, product_id)
    logger.info("stock_reserved", product_id=product_id, quantity=quantity, remaining=remaining)
    return remaining


def release_stock(session: Session, product_id: str, quantity: int) -> int:
    """Return ``quantity`` units to stock. Returns the stock afterwards."""
    _require_positive(quantity)
    session.flush()

    new_stock = _products.c.stock + quantity
    result = session.execute(
        update(_products)
        .where(_products.c.id == product_id)
        .values(stock=new_stock, availability=_availability_for(new_stock), updated_at=datetime.now(UTC))
    )
    if result.rowcount == 0:
        raise NotFoundError({"product": [f"Product {product_id} not found"]})

    _expire_cached(session, product_id)
    remaining = _current_stock(session, product_id)
    logger.info("stock_released", product_id=product_id, quantity=quantity, remaining=remaining)
    return remaining


def check_inventory(session: Session, items: Iterable[tuple[str, int]]) -> list[InventoryStatus]:
    """Read-only batch check of ``(product_id, quantity)`` pairs."""
    items = list(items)
    product_ids = {product_id for product_id, _ in items}
    rows = session.execute(
        select(_products.c.id, _products.c.stock, _products.c.availability, _products.c.is_deleted).where(
            _products.c.id.in_(product_ids)
        )
    ).all()
    by_id = {row.id: row for row in rows}

    statuses = []
    for product_id, quantity in items:
        row = by_id.get(product_id)
        if row is None or row.is_deleted:
            statuses.append(InventoryStatus(product_id=product_id, available=False, remaining_stock=0))
            continue
        available = row.availability == ProductAvailability.IN_STOCK.value and row.stock >= quantity
        statuses.append(InventoryStatus(product_id=product_id, available=available, remaining_stock=row.stock))
    return statuses


def is_product_available(session: Session, product_id: str, quantity: int) -> bool:
    return check_inventory(session, [(product_id, quantity)])[0].available

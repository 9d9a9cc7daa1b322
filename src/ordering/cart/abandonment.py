"""Cart abandonment detection — find and flag carts left idle with items in them.

Meant to be triggered periodically by an external scheduler through
``manage.py abandon-carts``.
"""

from datetime import UTC, datetime, timedelta

import structlog
from sqlalchemy import select

from ordering.cart.cart import Cart, CartStatus
from shared.config import get_settings
from shared.database import unit_of_work

logger = structlog.get_logger(__name__)


def _idle_carts_stmt(days, as_of=None):
    cutoff = (as_of or datetime.now(UTC)) - timedelta(days=days)
    return (
        select(Cart)
        .where(
            Cart.status == CartStatus.ACTIVE.value,
            Cart.last_active < cutoff,
            Cart.items.any(),
        )
        .order_by(Cart.last_active)
    )


def find_abandoned_carts(days: int | None = None, as_of: datetime | None = None) -> list[Cart]:
    """Active carts with items whose last activity is older than ``days``."""
    days = get_settings().abandoned_cart_days if days is None else days
    with unit_of_work() as session:
        return list(session.scalars(_idle_carts_stmt(days, as_of)))


def abandon_inactive_carts(days: int | None = None, as_of: datetime | None = None) -> int:
    days = get_settings().abandoned_cart_days if days is None else days
    with unit_of_work() as session:
        carts = list(session.scalars(_idle_carts_stmt(days, as_of)))
        for cart in carts:
            cart.mark_abandoned()

    if carts:
        logger.info("abandoned_carts_flagged", count=len(carts), idle_days=days)
    else:
        logger.info("no_abandoned_carts_found", idle_days=days)
    return len(carts)

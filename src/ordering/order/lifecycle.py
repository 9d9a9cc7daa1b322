"""Order status changes driven through the transition table."""

import structlog
from sqlalchemy.orm import Session

from catalogue.inventory.ledger import release_stock
from ordering.order.order import Order, OrderStatus
from ordering.order.queries import load_order
from shared.database import unit_of_work
from shared.exceptions import ConcurrencyConflictError

logger = structlog.get_logger(__name__)


def release_order_stock(session: Session, order: Order) -> bool:
    """Credit the order's lines back to stock, at most once per order."""
    if not order.claim_stock_release():
        return False
    for item in order.items:
        release_stock(session, item.product_id, item.quantity)
    logger.info("order_stock_released", order_id=order.id, lines=len(order.items))
    return True


def _check_version(order: Order, expected_version):
    if expected_version is not None and order.version != expected_version:
        raise ConcurrencyConflictError(
            {"version": [f"Order is at version {order.version}, expected {expected_version}. Reload and try again."]}
        )


def update_order_status(
    order_id: str,
    new_status,
    reason: str | None = None,
    actor_id: str | None = None,
    expected_version: int | None = None,
) -> Order:
    new_status = OrderStatus(new_status)
    with unit_of_work() as session:
        order = load_order(session, order_id)
        _check_version(order, expected_version)
        previous = order.status

        if new_status == OrderStatus.CANCELLED:
            order.cancellation_reason = reason
        order.transition_to(new_status, reason or f"Status changed to {new_status.value}", actor_id)
        release_order_stock(session, order)

    logger.info("order_status_changed", order_id=order_id, previous=previous, status=new_status.value)
    return order

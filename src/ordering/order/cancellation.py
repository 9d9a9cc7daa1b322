"""Order cancellation and refunds."""

import structlog

from ordering.order.lifecycle import release_order_stock
from ordering.order.order import Order
from ordering.order.queries import load_order
from shared.database import unit_of_work

logger = structlog.get_logger(__name__)


def cancel_order(order_id: str, reason: str, actor_id: str | None = None, refund_amount=None) -> Order:
    """Cancel an order, return its stock and refund it if it was paid.

    ``refund_amount`` defaults to the order total; anything less leaves the
    payment partially refunded.
    """
    with unit_of_work() as session:
        order = load_order(session, order_id)
        order.cancel(reason, actor_id=actor_id, refund_amount=refund_amount)
        release_order_stock(session, order)

    logger.info(
        "order_cancelled",
        order_id=order_id,
        actor_id=actor_id,
        payment_status=order.payment_status,
        refund_amount=str(order.refund_amount) if order.refund_amount is not None else None,
    )
    return order


def refund_order(order_id: str, reason: str, amount=None, actor_id: str | None = None) -> Order:
    with unit_of_work() as session:
        order = load_order(session, order_id)
        order.refund(reason, amount=amount, actor_id=actor_id)

    logger.info("order_refunded", order_id=order_id, amount=str(order.refund_amount))
    return order


def check_refund_eligibility(order_id: str) -> bool:
    with unit_of_work() as session:
        return load_order(session, order_id).can_be_refunded()

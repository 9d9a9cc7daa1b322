"""Recording shipment details on orders."""

import structlog

from ordering.order.order import FulfillmentDetails, Order
from ordering.order.queries import load_order
from shared.database import unit_of_work

logger = structlog.get_logger(__name__)


def fulfill_order(order_id: str, details: FulfillmentDetails, actor_id: str | None = None) -> Order:
    """Store fulfillment info; a tracking number also ships the order."""
    with unit_of_work() as session:
        order = load_order(session, order_id)
        order.fulfill(details, actor_id=actor_id)

    logger.info(
        "order_fulfilled",
        order_id=order_id,
        status=order.status,
        tracking_number=details.tracking_number,
    )
    return order

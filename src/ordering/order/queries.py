"""Order lookups."""

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ordering.order.order import Order, OrderStatus
from shared.database import unit_of_work
from shared.exceptions import NotFoundError


def load_order(session: Session, order_id: str) -> Order:
    order = session.get(Order, order_id)
    if order is None:
        raise NotFoundError({"order": [f"Order {order_id} not found"]})
    return order


def _newest_first(stmt):
    return stmt.order_by(Order.created_at.desc(), Order.id)


def get_order(order_id: str) -> Order:
    with unit_of_work() as session:
        return load_order(session, order_id)


def find_by_order_number(order_number: str) -> Order:
    with unit_of_work() as session:
        order = session.scalars(select(Order).where(Order.order_number == order_number)).first()
        if order is None:
            raise NotFoundError({"order": [f"Order {order_number} not found"]})
        return order


def find_by_user(user_id: str) -> list[Order]:
    with unit_of_work() as session:
        return list(session.scalars(_newest_first(select(Order).where(Order.user_id == user_id))))


def find_with_status(status) -> list[Order]:
    status = OrderStatus(status)
    with unit_of_work() as session:
        return list(session.scalars(_newest_first(select(Order).where(Order.status == status.value))))


def find_pending_orders() -> list[Order]:
    """Orders still waiting to ship: pending or processing."""
    statuses = (OrderStatus.PENDING.value, OrderStatus.PROCESSING.value)
    with unit_of_work() as session:
        return list(session.scalars(_newest_first(select(Order).where(Order.status.in_(statuses)))))


def find_recent_orders(limit: int = 10) -> list[Order]:
    with unit_of_work() as session:
        return list(session.scalars(_newest_first(select(Order)).limit(limit)))


def find_in_date_range(start: datetime, end: datetime) -> list[Order]:
    with unit_of_work() as session:
        stmt = select(Order).where(Order.created_at >= start, Order.created_at <= end)
        return list(session.scalars(_newest_first(stmt)))

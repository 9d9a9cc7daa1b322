"""Recording payment outcomes against orders."""

from datetime import UTC, datetime

import structlog

from ordering.order.lifecycle import release_order_stock
from ordering.order.order import Order, PaymentMethod, PaymentResult
from ordering.order.queries import get_order, load_order
from payments.gateway import get_gateway
from shared.database import unit_of_work

logger = structlog.get_logger(__name__)


def process_payment(order_id: str, payment_result: PaymentResult, actor_id: str | None = None) -> Order:
    """Mark the order paid and move it on to PROCESSING."""
    with unit_of_work() as session:
        order = load_order(session, order_id)
        order.record_payment(payment_result, actor_id=actor_id)

    logger.info("order_paid", order_id=order_id, payment_id=payment_result.payment_id)
    return order


def record_payment_failure(order_id: str, reason: str, actor_id: str | None = None) -> Order:
    """Fail the order and give its stock back."""
    with unit_of_work() as session:
        order = load_order(session, order_id)
        order.record_payment_failure(reason, actor_id=actor_id)
        release_order_stock(session, order)

    logger.info("order_payment_failed", order_id=order_id, reason=reason)
    return order


def pay_order(order_id: str, payment_method=None, actor_id: str | None = None) -> Order:
    """Charge the order through the payment gateway and record the outcome.

    The order is checked before the gateway is called, so a paid or closed
    order is never charged.
    """
    order = get_order(order_id)
    order.assert_payable()
    method = PaymentMethod(payment_method or order.payment_method).value

    result = get_gateway().charge(
        amount=order.total_price,
        currency=order.currency,
        payment_method=method,
        idempotency_key=f"order-{order.id}",
    )
    if not result.success:
        return record_payment_failure(order_id, result.failure_reason or "Payment declined", actor_id=actor_id)

    return process_payment(
        order_id,
        PaymentResult(
            payment_id=result.transaction_id,
            status=result.status or "succeeded",
            email=order.email,
            currency=order.currency,
            amount_received=str(order.total_price),
            update_time=datetime.now(UTC).isoformat(),
        ),
        actor_id=actor_id,
    )

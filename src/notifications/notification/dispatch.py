"""Dispatch of customer notifications through the channel adapters."""

import structlog

from notifications.channel import EMAIL, get_channel
from notifications.templates.order_confirmation import render_order_confirmation
from shared.exceptions import NotificationError

logger = structlog.get_logger(__name__)


def send_order_confirmation(order) -> str:
    """Email the order confirmation. Returns the provider's message id.

    Raises ``NotificationError`` when the adapter reports a failed delivery.
    """
    message = render_order_confirmation(order)
    receipt = get_channel(EMAIL).send(
        to=order.email,
        subject=message.subject,
        body=message.body,
        html_body=message.html_body,
    )
    if not receipt.delivered:
        raise NotificationError({"email": [receipt.error or "Unknown dispatch error"]})

    logger.info("order_confirmation_sent", order_id=order.id, message_id=receipt.message_id)
    return receipt.message_id

"""Order confirmation template — sent once an order has been placed."""

from dataclasses import dataclass
from decimal import Decimal
from html import escape

from shared.config import get_settings


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    body: str
    html_body: str


def _money(currency, amount) -> str:
    return f"{currency} {Decimal(str(amount)):.2f}"


def _summary_rows(order):
    rows = [
        ("Subtotal", _money(order.currency, order.items_price)),
        ("Shipping", _money(order.currency, order.shipping_price)),
        ("Tax", _money(order.currency, order.tax_price)),
    ]
    if Decimal(str(order.discount_price)) > 0:
        rows.append(("Discount", "-" + _money(order.currency, order.discount_price)))
    rows.append(("Total", _money(order.currency, order.total_price)))
    return rows


def render_order_confirmation(order) -> RenderedEmail:
    settings = get_settings()
    view_url = f"{settings.client_url.rstrip('/')}/orders/{order.order_number}"
    address = order.shipping
    rows = _summary_rows(order)
    city_line = ", ".join(part for part in (address.city, address.state) if part) + f" {address.postal_code}"

    text_lines = [
        f"Order Confirmation - #{order.order_number}",
        "",
        "Thank you for your order! Here are your order details:",
        "",
        "Items:",
    ]
    for item in order.items:
        text_lines.append(
            f"- {item.name} x {item.quantity} @ {_money(order.currency, item.price)}"
            f" = {_money(order.currency, item.price * item.quantity)}"
        )
    text_lines.append("")
    text_lines.extend(f"{label}: {value}" for label, value in rows)
    text_lines += [
        "",
        "Shipping to:",
        address.full_name,
        address.street,
        city_line,
        address.country,
        "",
        f"Payment method: {order.payment_method}",
        f"View your order: {view_url}",
        "",
        f"Best regards,\n{settings.app_name}",
    ]

    item_rows = "".join(
        f"<tr><td>{escape(item.name)}</td><td>{item.quantity}</td>"
        f"<td>{_money(order.currency, item.price)}</td>"
        f"<td>{_money(order.currency, item.price * item.quantity)}</td></tr>"
        for item in order.items
    )
    total_rows = "".join(
        f'<tr><td colspan="3" style="text-align: right;">{label}:</td><td>{value}</td></tr>' for label, value in rows
    )
    html_body = (
        "<!DOCTYPE html><html><body>"
        f"<h1>{escape(settings.app_name)} Order Confirmation</h1>"
        f"<h3>Order #{escape(order.order_number)}</h3>"
        "<p>Thank you for your order! Here are your order details:</p>"
        "<table><thead><tr><th>Item</th><th>Qty</th><th>Price</th><th>Total</th></tr></thead>"
        f"<tbody>{item_rows}</tbody><tfoot>{total_rows}</tfoot></table>"
        "<h4>Shipping Details</h4>"
        f"<p>{escape(address.full_name)}<br>{escape(address.street)}<br>"
        f"{escape(address.city)} {escape(address.postal_code)}<br>{escape(address.country)}</p>"
        f"<h4>Payment Method</h4><p>{escape(order.payment_method)}</p>"
        f'<a href="{escape(view_url)}">View Order Status</a>'
        f"<p>Best regards,<br>{escape(settings.app_name)}</p>"
        "</body></html>"
    )

    return RenderedEmail(
        subject=f"Order #{order.order_number} Confirmed",
        body="\n".join(text_lines),
        html_body=html_body,
    )

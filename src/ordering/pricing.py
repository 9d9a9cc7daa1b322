"""Pricing engine — pure, deterministic order and cart totals.

Amounts are ``Decimal`` throughout. Intermediate sums keep full precision;
rounding (half up, two places) happens only when a figure is emitted, so
identical inputs always give identical totals.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from shared.exceptions import ValidationError

CENT = Decimal("0.01")
ZERO = Decimal("0")
ONE = Decimal("1")
HUNDRED = Decimal("100")


class DiscountType(Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


def to_decimal(value) -> Decimal:
    """Convert without binary float noise: ``0.1`` becomes ``Decimal("0.1")``."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def round_money(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def _non_negative(field, value) -> Decimal:
    amount = to_decimal(value)
    if amount < ZERO:
        raise ValidationError({field: [f"{field.replace('_', ' ').capitalize()} cannot be negative"]})
    return amount


def _percentage(field, value) -> Decimal:
    amount = _non_negative(field, value)
    if amount > HUNDRED:
        raise ValidationError({field: ["Percentage discount cannot exceed 100"]})
    return amount


@dataclass(frozen=True)
class PricedLine:
    """One line of a cart or order as the engine sees it."""

    price: Decimal
    quantity: int
    discount_amount: Decimal | None = None
    discount_type: DiscountType | None = None

    def net_unit_price(self) -> Decimal:
        price = _non_negative("price", self.price)
        if self.discount_amount is None or self.discount_type is None:
            return price

        if DiscountType(self.discount_type) == DiscountType.PERCENTAGE:
            return price * (ONE - _percentage("discount_amount", self.discount_amount) / HUNDRED)
        return max(price - _non_negative("discount_amount", self.discount_amount), ZERO)

    def checked_quantity(self) -> int:
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int) or self.quantity < 1:
            raise ValidationError({"quantity": ["Quantity must be at least 1"]})
        return self.quantity


@dataclass(frozen=True)
class OrderTotals:
    items_price: Decimal
    tax_price: Decimal
    shipping_price: Decimal
    discount_price: Decimal
    total_price: Decimal


@dataclass(frozen=True)
class CartTotals:
    sub_total: Decimal
    total_quantity: int
    total_price: Decimal


def calculate_totals(
    items: Iterable[PricedLine],
    shipping_price=ZERO,
    tax_rate=ZERO,
    discount_amount=ZERO,
    discount_type=DiscountType.FIXED,
) -> OrderTotals:
    """Compute order totals.

    * ``items_price`` is the sum of ``price x quantity``.
    * ``tax_price`` is ``items_price x tax_rate``.
    * ``discount_price`` is either a percentage of ``items_price`` or a fixed
      amount capped at ``items_price``.
    * ``total_price`` is items + tax + shipping - discount, floored at zero.
    """
    shipping = _non_negative("shipping_price", shipping_price)
    rate = _non_negative("tax_rate", tax_rate)
    if rate > ONE:
        raise ValidationError({"tax_rate": ["Tax rate must be between 0 and 1"]})
    discount_type = DiscountType(discount_type)

    items_exact = sum((line.net_unit_price() * line.checked_quantity() for line in items), ZERO)

    tax_price = round_money(items_exact * rate)

    if discount_type == DiscountType.PERCENTAGE:
        discount_price = round_money(items_exact * _percentage("discount_amount", discount_amount) / HUNDRED)
    else:
        discount_price = round_money(min(_non_negative("discount_amount", discount_amount), items_exact))

    total_price = round_money(items_exact + tax_price + shipping - discount_price)

    return OrderTotals(
        items_price=round_money(items_exact),
        tax_price=tax_price,
        shipping_price=round_money(shipping),
        discount_price=discount_price,
        total_price=max(total_price, ZERO.quantize(CENT)),
    )


def calculate_cart_totals(lines: Iterable[PricedLine], discounts: Iterable = ()) -> CartTotals:
    """Compute cart totals.

    Per-line discounts apply to each unit price before summation. The
    cart-level percentage ``discounts`` then apply one after another in the
    order given, each to the running total left by the previous one.
    """
    lines = list(lines)

    sub_total = sum((_non_negative("price", line.price) * line.checked_quantity() for line in lines), ZERO)
    total_quantity = sum(line.quantity for line in lines)

    running = sum((line.net_unit_price() * line.quantity for line in lines), ZERO)
    for value in discounts:
        running *= ONE - _percentage("discount", value) / HUNDRED

    return CartTotals(
        sub_total=round_money(sub_total),
        total_quantity=total_quantity,
        total_price=max(round_money(running), ZERO.quantize(CENT)),
    )

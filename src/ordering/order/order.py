"""Order aggregate — the lifecycle of a placed order.

State Machine:
    PENDING → PROCESSING → SHIPPED → DELIVERED → COMPLETED
    PENDING/PROCESSING/ON_HOLD → CANCELLED
    SHIPPED/DELIVERED → RETURNED → REFUNDED
    PENDING ⇄ ON_HOLD, PENDING → FAILED

Every status change is checked against ``_VALID_TRANSITIONS`` and appended to
``status_history``. Line items are snapshots taken at creation; later catalogue
edits never change them. Each write bumps ``version``; a write from a stale
copy fails with ``ConcurrencyConflictError``.

Stock held by an order is credited back exactly once, guarded by
``stock_released``. The aggregate decides *whether* to release; the ledger
call itself belongs to the use-case layer.
"""

import secrets
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from pydantic import Field
from sqlalchemy import JSON, Boolean, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ordering.pricing import OrderTotals, PricedLine, round_money, to_decimal
from shared.config import get_settings
from shared.database import Base, UTCDateTime
from shared.exceptions import (
    AlreadyPaidError,
    InvalidTransitionError,
    NotCancellableError,
    NotRefundableError,
    ValidationError,
)
from shared.value_objects import ValueObject


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class OrderStatus(Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    RETURNED = "returned"
    REFUNDED = "refunded"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentStatus(Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class PaymentMethod(Enum):
    CARD = "card"
    PAYPAL = "paypal"
    STRIPE = "stripe"
    MOBILE_MONEY = "mobile_money"
    BANK_TRANSFER = "bank_transfer"
    CASH_ON_DELIVERY = "cash_on_delivery"


class ShippingMethod(Enum):
    STANDARD = "standard"
    EXPRESS = "express"
    OVERNIGHT = "overnight"
    LOCAL_PICKUP = "local_pickup"
    FREE_SHIPPING = "free_shipping"


class Currency(Enum):
    USD = "USD"
    GBP = "GBP"
    EUR = "EUR"
    GHS = "GHS"
    NGN = "NGN"


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {
        OrderStatus.PROCESSING,
        OrderStatus.CANCELLED,
        OrderStatus.ON_HOLD,
        OrderStatus.FAILED,
    },
    OrderStatus.PROCESSING: {OrderStatus.SHIPPED, OrderStatus.CANCELLED, OrderStatus.ON_HOLD},
    OrderStatus.ON_HOLD: {OrderStatus.PROCESSING, OrderStatus.CANCELLED},
    OrderStatus.SHIPPED: {OrderStatus.DELIVERED, OrderStatus.RETURNED},
    OrderStatus.DELIVERED: {OrderStatus.RETURNED, OrderStatus.COMPLETED},
    OrderStatus.RETURNED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),  # Terminal
    OrderStatus.REFUNDED: set(),  # Terminal
    OrderStatus.COMPLETED: set(),  # Terminal
    OrderStatus.FAILED: set(),  # Terminal
}

# Every state that can reach CANCELLED
_CANCELLABLE_STATES = frozenset(
    status for status, targets in _VALID_TRANSITIONS.items() if OrderStatus.CANCELLED in targets
)

# Reaching one of these gives the order's stock back
_STOCK_RELEASING_STATES = frozenset({OrderStatus.CANCELLED, OrderStatus.FAILED})


def allowed_transitions(status) -> set[OrderStatus]:
    return set(_VALID_TRANSITIONS[OrderStatus(status)])


def generate_order_number(now=None) -> str:
    """``ORD-<year>-<6 digits>``. Uniqueness is checked by the caller."""
    year = (now or datetime.now(UTC)).year
    return f"ORD-{year}-{secrets.randbelow(1_000_000):06d}"


# ---------------------------------------------------------------------------
# Value Objects
# ---------------------------------------------------------------------------
class ShippingAddress(ValueObject):
    """A delivery or billing address captured at checkout time.

    Once recorded on an Order, the address is immutable. It represents where
    the order was shipped, regardless of later changes to the customer's
    address book.
    """

    full_name: str = Field(min_length=1, max_length=255)
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    postal_code: str = Field(min_length=1, max_length=20)
    country: str = Field(min_length=1, max_length=100)
    phone_number: str = Field(default="", max_length=30)
    address: str = Field(default="", max_length=255)
    state: str | None = Field(default=None, max_length=100)


class PaymentResult(ValueObject):
    payment_id: str = Field(min_length=1, max_length=255)
    status: str = Field(min_length=1, max_length=50)
    email: str = ""
    currency: str = Currency.USD.value
    amount_received: str = "0.00"
    update_time: str = ""


class FulfillmentDetails(ValueObject):
    tracking_number: str | None = Field(default=None, max_length=100)
    shipping_provider: str | None = Field(default=None, max_length=100)
    tracking_url: str | None = Field(default=None, max_length=500)
    estimated_delivery_date: str | None = None
    notes: str | None = Field(default=None, max_length=1000)

    def as_dict(self):
        return self.model_dump(exclude_none=True)


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------
class OrderItem(Base):
    """A line as it was when the order was placed."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    product_id: Mapped[str] = mapped_column(String(36), index=True)
    name: Mapped[str] = mapped_column(String(200))
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    quantity: Mapped[int] = mapped_column(Integer)
    sku: Mapped[str] = mapped_column(String(50))
    image: Mapped[str] = mapped_column(String(500), default="")

    order: Mapped["Order"] = relationship(back_populates="items")

    @classmethod
    def snapshot_of(cls, product, quantity):
        return cls(
            product_id=product.id,
            name=product.name,
            price=product.price,
            quantity=quantity,
            sku=product.sku,
            image=product.primary_image,
        )

    def priced(self) -> PricedLine:
        return PricedLine(price=to_decimal(self.price), quantity=self.quantity)


class StatusHistoryEntry(Base):
    __tablename__ = "order_status_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[str] = mapped_column(ForeignKey("orders.id", ondelete="CASCADE"), index=True)
    status: Mapped[str] = mapped_column(String(20))
    timestamp: Mapped[datetime] = mapped_column(UTCDateTime)
    description: Mapped[str] = mapped_column(Text, default="")
    actor_id: Mapped[str | None] = mapped_column(String(36), nullable=True)

    order: Mapped["Order"] = relationship(back_populates="status_history")


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    order_number: Mapped[str] = mapped_column(String(20), unique=True)
    user_id: Mapped[str] = mapped_column(String(36), index=True)
    email: Mapped[str] = mapped_column(String(255))
    status: Mapped[str] = mapped_column(String(20), default=OrderStatus.PENDING.value, index=True)
    payment_status: Mapped[str] = mapped_column(String(20), default=PaymentStatus.PENDING.value)
    payment_method: Mapped[str] = mapped_column(String(30))
    shipping_method: Mapped[str] = mapped_column(String(30), default=ShippingMethod.STANDARD.value)
    currency: Mapped[str] = mapped_column(String(3), default=Currency.USD.value)
    shipping_address: Mapped[dict] = mapped_column(JSON)
    billing_address: Mapped[dict] = mapped_column(JSON)
    payment_result: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    items_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    tax_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    shipping_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    discount_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(6, 4))
    discount_info: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False)
    paid_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    is_delivered: Mapped[bool] = mapped_column(Boolean, default=False)
    delivered_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    fulfillment: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    cancellation_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    refund_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    stock_released: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, index=True)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list[OrderItem]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by=OrderItem.id,
        lazy="selectin",
    )
    status_history: Mapped[list[StatusHistoryEntry]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by=StatusHistoryEntry.id,
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        order_number,
        user_id,
        email,
        items: list[OrderItem],
        totals: OrderTotals,
        tax_rate,
        shipping_address: ShippingAddress,
        payment_method,
        billing_address: ShippingAddress | None = None,
        shipping_method=ShippingMethod.STANDARD,
        currency=Currency.USD,
        discount_info=None,
        actor_id=None,
    ):
        if not items:
            raise ValidationError({"items": ["An order needs at least one item"]})

        now = datetime.now(UTC)
        order = cls(
            id=str(uuid4()),
            order_number=order_number,
            user_id=user_id,
            email=email,
            status=OrderStatus.PENDING.value,
            payment_status=PaymentStatus.PENDING.value,
            payment_method=PaymentMethod(payment_method).value,
            shipping_method=ShippingMethod(shipping_method).value,
            currency=Currency(currency).value,
            shipping_address=shipping_address.as_dict(),
            billing_address=(billing_address or shipping_address).as_dict(),
            items_price=totals.items_price,
            tax_price=totals.tax_price,
            shipping_price=totals.shipping_price,
            discount_price=totals.discount_price,
            total_price=totals.total_price,
            tax_rate=to_decimal(tax_rate),
            discount_info=discount_info,
            is_paid=False,
            is_delivered=False,
            stock_released=False,
            items=list(items),
            status_history=[],
            created_at=now,
            updated_at=now,
        )
        order._append_history(OrderStatus.PENDING, "Order created, awaiting payment", actor_id, now)
        return order

    # -------------------------------------------------------------------
    # State transition helpers
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = OrderStatus(self.status)
        target_status = OrderStatus(target_status)
        if target_status not in _VALID_TRANSITIONS[current]:
            raise InvalidTransitionError(current.value, target_status.value)

    def _append_history(self, status, description, actor_id=None, now=None):
        self.status_history.append(
            StatusHistoryEntry(
                status=OrderStatus(status).value,
                timestamp=now or datetime.now(UTC),
                description=description,
                actor_id=actor_id,
            )
        )

    def transition_to(self, target_status, description, actor_id=None):
        """Move to ``target_status`` if the table allows it and record the change."""
        target_status = OrderStatus(target_status)
        self._assert_can_transition(target_status)

        now = datetime.now(UTC)
        self._append_history(target_status, description, actor_id, now)
        self.status = target_status.value
        self.updated_at = now

        if target_status == OrderStatus.DELIVERED:
            self.is_delivered = True
            self.delivered_at = now
        elif target_status == OrderStatus.COMPLETED:
            self.is_delivered = True
            if self.delivered_at is None:
                self.delivered_at = now

    def claim_stock_release(self) -> bool:
        """True exactly once, when the order has stock to give back and hasn't yet."""
        if self.stock_released or OrderStatus(self.status) not in _STOCK_RELEASING_STATES:
            return False
        self.stock_released = True
        return True

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_cancellable(self) -> bool:
        return OrderStatus(self.status) in _CANCELLABLE_STATES

    def can_be_refunded(self, now=None) -> bool:
        if not self.is_paid or self.delivered_at is None:
            return False
        if OrderStatus(self.status) not in (OrderStatus.DELIVERED, OrderStatus.RETURNED):
            return False
        now = now or datetime.now(UTC)
        return self.delivered_at > now - timedelta(days=get_settings().refund_window_days)

    @property
    def shipping(self) -> ShippingAddress:
        return ShippingAddress(**self.shipping_address)

    @property
    def fulfillment_details(self) -> FulfillmentDetails | None:
        if not self.fulfillment:
            return None
        return FulfillmentDetails(**self.fulfillment)

    # -------------------------------------------------------------------
    # Payment
    # -------------------------------------------------------------------
    def assert_payable(self):
        """Raise unless the order can still take a payment."""
        if self.is_paid:
            raise AlreadyPaidError({"payment": ["Order already paid"]})
        if not _VALID_TRANSITIONS[OrderStatus(self.status)]:
            raise ValidationError({"payment": [f"Cannot take payment for a {self.status} order"]})

    def record_payment(self, payment_result: PaymentResult, actor_id=None):
        self.assert_payable()

        now = datetime.now(UTC)
        self.is_paid = True
        self.paid_at = now
        self.payment_result = payment_result.as_dict()
        self.payment_status = PaymentStatus.PAID.value
        self.updated_at = now

        if OrderStatus(self.status) in (OrderStatus.PENDING, OrderStatus.ON_HOLD):
            self.transition_to(OrderStatus.PROCESSING, "Payment processed successfully", actor_id)

    def record_payment_failure(self, reason, actor_id=None):
        if self.is_paid:
            raise AlreadyPaidError({"payment": ["Order already paid"]})

        self.payment_status = PaymentStatus.FAILED.value
        self.transition_to(OrderStatus.FAILED, f"Payment failed: {reason}", actor_id)

    # -------------------------------------------------------------------
    # Cancellation & Refund
    # -------------------------------------------------------------------
    def _refund_amount(self, amount):
        total = to_decimal(self.total_price)
        if amount is None:
            return total
        amount = round_money(to_decimal(amount))
        if amount <= 0:
            raise ValidationError({"refund_amount": ["Refund amount must be greater than 0"]})
        if amount > total:
            raise ValidationError({"refund_amount": ["Refund amount cannot exceed the order total"]})
        return amount

    def _record_refund(self, amount):
        self.refund_amount = amount
        if amount < to_decimal(self.total_price):
            self.payment_status = PaymentStatus.PARTIALLY_REFUNDED.value
        else:
            self.payment_status = PaymentStatus.REFUNDED.value

    def cancel(self, reason, actor_id=None, refund_amount=None):
        """Cancel the order, refunding it when it was paid.

        The status ends as CANCELLED either way; a refund is recorded as an
        extra history entry and in ``payment_status``.
        """
        current = OrderStatus(self.status)
        if current not in _CANCELLABLE_STATES:
            raise NotCancellableError(
                {
                    "status": [
                        f"Cannot cancel order in {current.value} state. "
                        f"Cancellation is only allowed from: "
                        f"{', '.join(sorted(s.value for s in _CANCELLABLE_STATES))}"
                    ]
                }
            )

        amount = self._refund_amount(refund_amount) if self.is_paid else None

        self.cancellation_reason = reason
        self.transition_to(OrderStatus.CANCELLED, f"Order cancelled: {reason}", actor_id)

        if amount is not None:
            self._record_refund(amount)
            self._append_history(
                OrderStatus.REFUNDED,
                f"Refund processed: {reason} (Amount: {amount})",
                actor_id,
            )

    def refund(self, reason, amount=None, actor_id=None, now=None):
        """Refund a delivered or returned order inside the refund window."""
        if not self.can_be_refunded(now):
            raise NotRefundableError(
                {"refund": ["Only paid orders delivered within the refund window can be refunded"]}
            )

        amount = self._refund_amount(amount)
        if OrderStatus(self.status) != OrderStatus.RETURNED:
            self.transition_to(OrderStatus.RETURNED, f"Order returned: {reason}", actor_id)
        self.transition_to(OrderStatus.REFUNDED, f"Refund processed: {reason} (Amount: {amount})", actor_id)
        self._record_refund(amount)

    # -------------------------------------------------------------------
    # Fulfillment
    # -------------------------------------------------------------------
    def fulfill(self, details: FulfillmentDetails, actor_id=None):
        current = OrderStatus(self.status)
        if current not in (OrderStatus.PENDING, OrderStatus.PROCESSING):
            raise InvalidTransitionError(current.value, OrderStatus.SHIPPED.value)

        merged = dict(self.fulfillment or {})
        merged.update(details.as_dict())
        merged.setdefault("fulfillment_date", datetime.now(UTC).isoformat())
        self.fulfillment = merged
        self.updated_at = datetime.now(UTC)

        if details.tracking_number:
            if current == OrderStatus.PENDING:
                self.transition_to(OrderStatus.PROCESSING, "Order is being prepared for shipment", actor_id)
            self.transition_to(
                OrderStatus.SHIPPED,
                f"Order shipped with tracking number: {details.tracking_number}",
                actor_id,
            )


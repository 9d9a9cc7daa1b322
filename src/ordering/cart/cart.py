"""Shopping Cart aggregate — one mutable active cart per user or guest session.

Lines snapshot the product's price, name and first image at the moment they
are added. Totals are derived state: every mutator finishes with
``recalculate()``, so ``sub_total``, ``total_quantity`` and ``total_price``
always agree with the lines and discounts they were computed from.

The aggregate never touches the database. Use-case modules load the live
products it needs and hand them in.
"""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum
from uuid import uuid4

from sqlalchemy import JSON, ForeignKey, Index, Integer, Numeric, String, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ordering.pricing import DiscountType, PricedLine, calculate_cart_totals, to_decimal
from shared.config import get_settings
from shared.database import Base, UTCDateTime
from shared.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    ItemNotFoundError,
    NotFoundError,
    ValidationError,
)

MAX_LINE_QUANTITY = 100
MAX_LINES = 100


class CartStatus(Enum):
    ACTIVE = "active"
    ABANDONED = "abandoned"
    CONVERTED = "converted"


class CartIssueType(Enum):
    PRICES_EXPIRED = "PRICES_EXPIRED"
    PRODUCT_NOT_FOUND = "PRODUCT_NOT_FOUND"
    OUT_OF_STOCK = "OUT_OF_STOCK"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    PRICE_CHANGED = "PRICE_CHANGED"


@dataclass(frozen=True)
class CartIssue:
    type: CartIssueType
    message: str
    product_id: str | None = None


@dataclass(frozen=True)
class CartValidation:
    valid: bool
    item_count: int
    total_price: Decimal
    currency: str
    issues: list[CartIssue] = field(default_factory=list)


def _check_line_quantity(quantity):
    if isinstance(quantity, bool) or not isinstance(quantity, int) or not 1 <= quantity <= MAX_LINE_QUANTITY:
        raise InvalidQuantityError({"quantity": [f"Quantity must be between 1 and {MAX_LINE_QUANTITY}"]})


class CartItem(Base):
    __tablename__ = "cart_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    cart_id: Mapped[str] = mapped_column(ForeignKey("carts.id", ondelete="CASCADE"), index=True)
    product_id: Mapped[str] = mapped_column(String(36))
    quantity: Mapped[int] = mapped_column(Integer)
    price_at_addition: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    name_at_addition: Mapped[str] = mapped_column(String(200))
    image: Mapped[str] = mapped_column(String(500), default="")
    added_at: Mapped[datetime] = mapped_column(UTCDateTime)
    discount_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    discount_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    cart: Mapped["Cart"] = relationship(back_populates="items")

    @classmethod
    def snapshot_of(cls, product, quantity, now=None):
        return cls(
            product_id=product.id,
            quantity=quantity,
            price_at_addition=product.price,
            name_at_addition=product.name,
            image=product.primary_image,
            added_at=now or datetime.now(UTC),
        )

    def resnapshot(self, product) -> bool:
        """Copy the live price, name and image. Returns True when anything changed."""
        changed = (
            to_decimal(self.price_at_addition) != to_decimal(product.price)
            or self.name_at_addition != product.name
            or (self.image or "") != product.primary_image
        )
        if changed:
            self.price_at_addition = product.price
            self.name_at_addition = product.name
            self.image = product.primary_image
        return changed

    def priced(self) -> PricedLine:
        return PricedLine(
            price=to_decimal(self.price_at_addition),
            quantity=self.quantity,
            discount_amount=to_decimal(self.discount_amount) if self.discount_amount is not None else None,
            discount_type=DiscountType(self.discount_type) if self.discount_type else None,
        )


class Cart(Base):
    __tablename__ = "carts"
    # One active cart per user and per guest session
    __table_args__ = (
        Index(
            "uq_carts_active_user",
            "user_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
        Index(
            "uq_carts_active_session",
            "session_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    user_id: Mapped[str | None] = mapped_column(String(36), nullable=True, index=True)
    session_id: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    status: Mapped[str] = mapped_column(String(20), default=CartStatus.ACTIVE.value, index=True)
    currency: Mapped[str] = mapped_column(String(3), default="USD")
    sub_total: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    total_quantity: Mapped[int] = mapped_column(Integer, default=0)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0.00"))
    # code -> percentage, kept in insertion order
    discounts: Mapped[dict] = mapped_column(JSON, default=dict)
    last_updated: Mapped[datetime] = mapped_column(UTCDateTime)
    last_active: Mapped[datetime] = mapped_column(UTCDateTime, index=True)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    items: Mapped[list[CartItem]] = relationship(
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by=CartItem.id,
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version}

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id=None, session_id=None, currency="USD"):
        if not user_id and not session_id:
            raise ValidationError({"cart": ["A cart needs either a user or a guest session"]})

        now = datetime.now(UTC)
        return cls(
            id=str(uuid4()),
            user_id=user_id,
            session_id=None if user_id else session_id,
            status=CartStatus.ACTIVE.value,
            currency=currency,
            sub_total=Decimal("0.00"),
            total_quantity=0,
            total_price=Decimal("0.00"),
            discounts={},
            items=[],
            last_updated=now,
            last_active=now,
            expires_at=now + timedelta(days=get_settings().cart_ttl_days),
            created_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_active(self) -> bool:
        return CartStatus(self.status) == CartStatus.ACTIVE

    @property
    def item_count(self) -> int:
        return len(self.items)

    def line_for(self, product_id) -> CartItem | None:
        return next((item for item in self.items if item.product_id == product_id), None)

    def _require_line(self, product_id) -> CartItem:
        line = self.line_for(product_id)
        if line is None:
            raise ItemNotFoundError({"product_id": ["Item not found in cart"]})
        return line

    def _assert_active(self, action):
        if not self.is_active:
            raise ValidationError({"status": [f"Cannot {action}: cart is {self.status}"]})

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    def recalculate(self, now=None):
        """Recompute derived totals and push the expiry out."""
        totals = calculate_cart_totals(
            (item.priced() for item in self.items),
            (Decimal(str(value)) for value in (self.discounts or {}).values()),
        )
        self.sub_total = totals.sub_total
        self.total_quantity = totals.total_quantity
        self.total_price = totals.total_price

        now = now or datetime.now(UTC)
        self.last_active = now
        self.expires_at = now + timedelta(days=get_settings().cart_ttl_days)

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def add_line(self, product, quantity) -> CartItem:
        """Add ``quantity`` units of ``product``, clamped to live stock.

        An existing line for the product is topped up (capped at stock and at
        the per-line maximum) rather than duplicated.
        """
        self._assert_active("add items")
        _check_line_quantity(quantity)

        if product.stock <= 0 or not product.is_in_stock:
            raise InsufficientStockError(product.id, quantity, product.stock, name=product.name)

        now = datetime.now(UTC)
        line = self.line_for(product.id)
        if line is not None:
            line.quantity = min(line.quantity + quantity, product.stock, MAX_LINE_QUANTITY)
        else:
            if len(self.items) >= MAX_LINES:
                raise ValidationError({"items": [f"Maximum {MAX_LINES} different products in cart"]})
            line = CartItem.snapshot_of(product, min(quantity, product.stock), now=now)
            self.items.append(line)
            self.last_updated = now

        self.recalculate(now)
        return line

    def update_line_quantity(self, product_id, quantity, product=None):
        """Set a line's quantity. Zero or less removes the line."""
        self._assert_active("update items")
        line = self._require_line(product_id)

        if quantity <= 0:
            self.items.remove(line)
        else:
            _check_line_quantity(quantity)
            if product is None:
                raise NotFoundError({"product": [f"Product {product_id} not found"]})
            if not product.is_in_stock or product.stock < quantity:
                raise InsufficientStockError(product.id, quantity, product.stock, name=product.name)
            line.quantity = quantity

        self.recalculate()

    def remove_line(self, product_id):
        self._assert_active("remove items")
        self.items.remove(self._require_line(product_id))
        self.recalculate()

    def clear(self):
        self._assert_active("clear the cart")
        self.items.clear()
        self.recalculate()

    # -------------------------------------------------------------------
    # Discounts
    # -------------------------------------------------------------------
    def apply_discount(self, code, value):
        """Record a cart-wide percentage discount. Re-applying a code replaces its value in place."""
        self._assert_active("apply discounts")
        code = (code or "").strip()
        if not code:
            raise ValidationError({"code": ["Discount code is required"]})
        value = to_decimal(value)
        if not Decimal("0") < value <= Decimal("100"):
            raise ValidationError({"value": ["Discount must be greater than 0 and at most 100"]})

        # Reassign so the JSON column sees the change
        discounts = dict(self.discounts or {})
        discounts[code] = str(value)
        self.discounts = discounts
        self.recalculate()

    def remove_discount(self, code):
        self._assert_active("remove discounts")
        discounts = dict(self.discounts or {})
        if code not in discounts:
            raise NotFoundError({"code": [f"Discount {code} is not applied to this cart"]})
        del discounts[code]
        self.discounts = discounts
        self.recalculate()

    def apply_item_discount(self, product_id, code, amount, discount_type):
        self._assert_active("apply discounts")
        line = self._require_line(product_id)

        discount_type = DiscountType(discount_type)
        amount = to_decimal(amount)
        if amount <= 0:
            raise ValidationError({"amount": ["Discount amount must be greater than 0"]})
        if discount_type == DiscountType.PERCENTAGE and amount > 100:
            raise ValidationError({"amount": ["Percentage discount cannot exceed 100"]})

        line.discount_code = code
        line.discount_amount = amount
        line.discount_type = discount_type.value
        self.recalculate()

    # -------------------------------------------------------------------
    # Consistency with the catalogue
    # -------------------------------------------------------------------
    def refresh_prices(self, products) -> int:
        """Re-snapshot every line from ``products`` (id -> Product).

        Lines whose product is gone are left alone; ``validate`` reports
        them. Returns how many lines changed.
        """
        self._assert_active("refresh prices")
        updated = 0
        for line in self.items:
            product = products.get(line.product_id)
            if product is not None and line.resnapshot(product):
                updated += 1

        now = datetime.now(UTC)
        self.last_updated = now
        self.recalculate(now)
        return updated

    def validate(self, products, now=None) -> CartValidation:
        """Audit the cart against ``products`` (id -> live Product). Never raises."""
        now = now or datetime.now(UTC)
        issues = []

        freshness = timedelta(hours=get_settings().price_freshness_hours)
        if self.items and self.last_updated < now - freshness:
            issues.append(CartIssue(type=CartIssueType.PRICES_EXPIRED, message="Cart prices need refreshing"))

        for line in self.items:
            product = products.get(line.product_id)
            if product is None or not product.is_purchasable:
                issues.append(
                    CartIssue(
                        type=CartIssueType.PRODUCT_NOT_FOUND,
                        product_id=line.product_id,
                        message=f"{line.name_at_addition} is no longer available",
                    )
                )
                continue

            if not product.is_in_stock:
                issues.append(
                    CartIssue(
                        type=CartIssueType.OUT_OF_STOCK,
                        product_id=product.id,
                        message=f"{product.name} is out of stock",
                    )
                )
            if product.stock < line.quantity:
                issues.append(
                    CartIssue(
                        type=CartIssueType.INSUFFICIENT_STOCK,
                        product_id=product.id,
                        message=f"Only {product.stock} {product.name} available",
                    )
                )
            if to_decimal(product.price) != to_decimal(line.price_at_addition):
                issues.append(
                    CartIssue(
                        type=CartIssueType.PRICE_CHANGED,
                        product_id=product.id,
                        message=(
                            f"{product.name} price changed from {line.price_at_addition} to {product.price}"
                        ),
                    )
                )

        return CartValidation(
            valid=not issues,
            issues=issues,
            item_count=len(self.items),
            total_price=self.total_price,
            currency=self.currency,
        )

    # -------------------------------------------------------------------
    # Cart merging (guest -> authenticated)
    # -------------------------------------------------------------------
    def absorb(self, guest: "Cart", products):
        """Fold a guest cart's lines into this one.

        A product in both carts ends up with ``min(sum, stock)`` units and a
        fresh snapshot. A product only in the guest cart is appended with the
        guest's snapshot.
        """
        self._assert_active("merge carts")
        if guest.id == self.id:
            raise ValidationError({"guest_cart_id": ["Cannot merge a cart into itself"]})

        now = datetime.now(UTC)
        for guest_line in guest.items:
            line = self.line_for(guest_line.product_id)
            if line is None:
                if len(self.items) >= MAX_LINES:
                    raise ValidationError({"items": [f"Maximum {MAX_LINES} different products in cart"]})
                self.items.append(
                    CartItem(
                        product_id=guest_line.product_id,
                        quantity=guest_line.quantity,
                        price_at_addition=guest_line.price_at_addition,
                        name_at_addition=guest_line.name_at_addition,
                        image=guest_line.image,
                        added_at=now,
                        discount_code=guest_line.discount_code,
                        discount_amount=guest_line.discount_amount,
                        discount_type=guest_line.discount_type,
                    )
                )
                continue

            product = products.get(guest_line.product_id)
            if product is None:
                continue
            quantity = min(line.quantity + guest_line.quantity, product.stock, MAX_LINE_QUANTITY)
            if quantity <= 0:
                self.items.remove(line)
                continue
            line.quantity = quantity
            line.resnapshot(product)

        self.recalculate(now)

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def mark_abandoned(self):
        self._assert_active("abandon the cart")
        self.status = CartStatus.ABANDONED.value

    def mark_converted(self):
        self._assert_active("convert the cart")
        if not self.items:
            raise ValidationError({"cart": ["Cannot convert an empty cart"]})
        self.status = CartStatus.CONVERTED.value

"""Product aggregate — the inventory-bearing entity of the catalogue.

``stock`` and ``availability`` belong to the inventory ledger
(``catalogue.inventory.ledger``), which changes them with conditional
updates. Admin edits go through ``update_details`` and can never touch
either field. ``availability`` is derived: in-stock exactly when stock > 0.
"""

import re
import secrets
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from uuid import uuid4

from slugify import slugify
from sqlalchemy import JSON, Boolean, CheckConstraint, Float, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from shared.database import Base, UTCDateTime
from shared.exceptions import ValidationError

DEFAULT_RATING = 4.5


class ProductAvailability(Enum):
    IN_STOCK = "in-stock"
    OUT_OF_STOCK = "out-of-stock"
    PRE_ORDER = "pre-order"


# Fields an admin edit may change
_EDITABLE_FIELDS = {"name", "description", "price", "original_price", "images", "brand", "category", "is_active"}
_LEDGER_FIELDS = {"stock", "availability"}


def generate_sku(name: str, category: str | None = None) -> str:
    """Build a SKU of the form ``CAT-NAM-XXXXXX``."""
    category_prefix = re.sub(r"[^a-zA-Z0-9]", "", category or "")[:3].upper() or "GEN"
    name_prefix = re.sub(r"[^a-zA-Z0-9]", "", name)[:3].upper() or "PRD"
    return f"{category_prefix}-{name_prefix}-{secrets.token_hex(3).upper()}"


def availability_for(stock: int) -> ProductAvailability:
    return ProductAvailability.IN_STOCK if stock > 0 else ProductAvailability.OUT_OF_STOCK


class Product(Base):
    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price > 0", name="ck_products_price_positive"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    name: Mapped[str] = mapped_column(String(200))
    slug: Mapped[str] = mapped_column(String(220), unique=True)
    sku: Mapped[str] = mapped_column(String(50), unique=True)
    description: Mapped[str] = mapped_column(Text, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    original_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    images: Mapped[list] = mapped_column(JSON, default=list)
    brand: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    category: Mapped[str | None] = mapped_column(String(100), nullable=True)
    stock: Mapped[int] = mapped_column(Integer, default=0)
    availability: Mapped[str] = mapped_column(String(20), default=ProductAvailability.OUT_OF_STOCK.value)
    ratings_average: Mapped[float] = mapped_column(Float, default=DEFAULT_RATING)
    ratings_quantity: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime)

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        name,
        price,
        stock=0,
        description="",
        images=None,
        brand=None,
        category=None,
        original_price=None,
        sku=None,
        slug=None,
        pre_order=False,
    ):
        name = (name or "").strip()
        if not name:
            raise ValidationError({"name": ["Product name is required"]})
        price = Decimal(str(price))
        if price <= 0:
            raise ValidationError({"price": ["Price must be greater than 0"]})
        if stock < 0:
            raise ValidationError({"stock": ["Stock cannot be negative"]})

        if stock > 0:
            availability = ProductAvailability.IN_STOCK
        elif pre_order:
            availability = ProductAvailability.PRE_ORDER
        else:
            availability = ProductAvailability.OUT_OF_STOCK

        now = datetime.now(UTC)
        return cls(
            id=str(uuid4()),
            name=name,
            slug=slug or slugify(name, lowercase=True),
            sku=sku or generate_sku(name, category),
            description=description or "",
            price=price,
            original_price=Decimal(str(original_price)) if original_price is not None else None,
            images=list(images or []),
            brand=brand,
            category=category,
            stock=stock,
            availability=availability.value,
            ratings_average=DEFAULT_RATING,
            ratings_quantity=0,
            is_active=True,
            is_deleted=False,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def is_purchasable(self) -> bool:
        return self.is_active and not self.is_deleted

    @property
    def is_in_stock(self) -> bool:
        return ProductAvailability(self.availability) == ProductAvailability.IN_STOCK

    @property
    def primary_image(self) -> str:
        return self.images[0] if self.images else ""

    # -------------------------------------------------------------------
    # Admin edits
    # -------------------------------------------------------------------
    def update_details(self, **changes):
        """Apply an admin edit. Returns the previous price when it changed, else None."""
        forbidden = _LEDGER_FIELDS.intersection(changes)
        if forbidden:
            raise ValidationError(
                {field: ["Stock and availability can only change through inventory operations"] for field in forbidden}
            )
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise ValidationError({field: ["Field cannot be edited"] for field in sorted(unknown)})

        previous_price = None
        if "price" in changes and changes["price"] is not None:
            new_price = Decimal(str(changes.pop("price")))
            if new_price <= 0:
                raise ValidationError({"price": ["Price must be greater than 0"]})
            if new_price != self.price:
                previous_price = self.price
                self.price = new_price

        if "name" in changes and changes["name"] is not None:
            name = changes.pop("name").strip()
            if not name:
                raise ValidationError({"name": ["Product name is required"]})
            self.name = name

        for field, value in changes.items():
            if value is None:
                continue
            if field == "original_price":
                value = Decimal(str(value))
            elif field == "images":
                value = list(value)
            setattr(self, field, value)

        self.updated_at = datetime.now(UTC)
        return previous_price

    # -------------------------------------------------------------------
    # Soft delete
    # -------------------------------------------------------------------
    def soft_delete(self):
        if self.is_deleted:
            raise ValidationError({"product": ["Product is already deleted"]})
        now = datetime.now(UTC)
        self.is_deleted = True
        self.deleted_at = now
        self.updated_at = now

    def restore(self):
        if not self.is_deleted:
            raise ValidationError({"product": ["Product is not deleted"]})
        self.is_deleted = False
        self.deleted_at = None
        if ProductAvailability(self.availability) != ProductAvailability.PRE_ORDER or self.stock > 0:
            self.availability = availability_for(self.stock).value
        self.updated_at = datetime.now(UTC)

    # -------------------------------------------------------------------
    # Ratings
    # -------------------------------------------------------------------
    def apply_rating_stats(self, average: float | None, quantity: int):
        """Overwrite rating figures with a fresh aggregation result."""
        self.ratings_quantity = quantity
        if quantity and average is not None:
            self.ratings_average = float(Decimal(str(average)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))
        else:
            self.ratings_average = DEFAULT_RATING

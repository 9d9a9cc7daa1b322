"""Price history — append-only record of admin price changes."""

from datetime import UTC, datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import ForeignKey, Numeric, String, select
from sqlalchemy.orm import Mapped, Session, mapped_column

from shared.database import Base, UTCDateTime


class PriceHistory(Base):
    __tablename__ = "price_history"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    product_id: Mapped[str] = mapped_column(ForeignKey("products.id"), index=True)
    old_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    new_price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    changed_by: Mapped[str | None] = mapped_column(String(36), nullable=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime)


def record_price_change(session: Session, product_id, old_price, new_price, changed_by=None) -> PriceHistory:
    entry = PriceHistory(
        id=str(uuid4()),
        product_id=product_id,
        old_price=old_price,
        new_price=new_price,
        changed_by=changed_by,
        created_at=datetime.now(UTC),
    )
    session.add(entry)
    return entry


def price_history_for(session: Session, product_id) -> list[PriceHistory]:
    """Price changes for a product, newest first."""
    stmt = (
        select(PriceHistory)
        .where(PriceHistory.product_id == product_id)
        .order_by(PriceHistory.created_at.desc(), PriceHistory.id)
    )
    return list(session.scalars(stmt))

"""Product management — create, read, edit, soft delete and restore."""

import structlog
from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from catalogue.product.price_history import PriceHistory, price_history_for, record_price_change
from catalogue.product.product import Product
from shared.database import unit_of_work
from shared.exceptions import NotFoundError, ValidationError

logger = structlog.get_logger(__name__)


def load_product(session: Session, product_id: str, include_deleted: bool = False) -> Product:
    """Fetch a product inside an open session or raise ``NotFoundError``."""
    product = session.get(Product, product_id)
    if product is None or (product.is_deleted and not include_deleted):
        raise NotFoundError({"product": [f"Product {product_id} not found"]})
    return product


def create_product(
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
) -> Product:
    with unit_of_work() as session:
        product = Product.create(
            name=name,
            price=price,
            stock=stock,
            description=description,
            images=images,
            brand=brand,
            category=category,
            original_price=original_price,
            sku=sku,
            slug=slug,
            pre_order=pre_order,
        )
        clash = session.scalars(
            select(Product).where(or_(Product.slug == product.slug, Product.sku == product.sku))
        ).first()
        if clash is not None:
            field = "slug" if clash.slug == product.slug else "sku"
            raise ValidationError({field: [f"A product with this {field} already exists"]})

        session.add(product)

    logger.info("product_created", product_id=product.id, sku=product.sku, stock=product.stock)
    return product


def get_product(product_id: str) -> Product:
    with unit_of_work() as session:
        return load_product(session, product_id)


def update_product(product_id: str, changed_by: str | None = None, **changes) -> Product:
    """Apply an admin edit; a price change is appended to the price history."""
    with unit_of_work() as session:
        product = load_product(session, product_id)
        previous_price = product.update_details(**changes)
        if previous_price is not None:
            record_price_change(session, product.id, previous_price, product.price, changed_by=changed_by)
            logger.info(
                "product_price_changed",
                product_id=product.id,
                old_price=str(previous_price),
                new_price=str(product.price),
            )
    return product


def delete_product(product_id: str) -> Product:
    with unit_of_work() as session:
        product = load_product(session, product_id)
        product.soft_delete()
    logger.info("product_deleted", product_id=product_id)
    return product


def restore_product(product_id: str) -> Product:
    with unit_of_work() as session:
        product = load_product(session, product_id, include_deleted=True)
        product.restore()
    logger.info("product_restored", product_id=product_id)
    return product


def get_price_history(product_id: str) -> list[PriceHistory]:
    with unit_of_work() as session:
        load_product(session, product_id, include_deleted=True)
        return price_history_for(session, product_id)

"""Stock receiving and availability checks exposed to the API."""

import structlog

from catalogue.inventory.ledger import InventoryStatus, check_inventory, release_stock
from catalogue.product.management import load_product
from shared.database import unit_of_work

logger = structlog.get_logger(__name__)


def restock(product_id: str, quantity: int) -> int:
    """Add received units to a product's stock. Returns the new stock level."""
    with unit_of_work() as session:
        load_product(session, product_id)
        stock = release_stock(session, product_id, quantity)
    logger.info("product_restocked", product_id=product_id, quantity=quantity, stock=stock)
    return stock


def check_availability(items: list[tuple[str, int]]) -> list[InventoryStatus]:
    with unit_of_work() as session:
        return check_inventory(session, items)

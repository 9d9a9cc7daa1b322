import os
from pathlib import Path

import pytest


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Point the settings and the engine at a throwaway in-memory database before collection."""
    os.environ["STOREFRONT_ENV"] = session.config.option.env
    os.environ["DATABASE_URI"] = "sqlite://"

    from shared.config import reset_settings
    from shared.database import configure

    reset_settings()
    configure()


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)


@pytest.fixture(scope="session", autouse=True)
def setup_db():
    from shared.database import drop_db, setup_db

    setup_db()

    yield

    drop_db()


@pytest.fixture(autouse=True)
def run_around_tests():
    """Clean rows and swap-in adapters after every test"""
    yield

    from notifications.channel import reset_channels
    from payments.gateway import reset_gateway
    from shared.database import reset_db

    reset_db()
    reset_channels()
    reset_gateway()


@pytest.fixture()
def make_product():
    """Factory for persisted products: ``make_product(price=10, stock=5)``."""
    from catalogue.product.management import create_product

    counter = {"n": 0}

    def _make(name=None, price="10.00", stock=10, **overrides):
        counter["n"] += 1
        return create_product(name=name or f"Test Product {counter['n']}", price=price, stock=stock, **overrides)

    return _make


@pytest.fixture()
def shipping_address():
    from ordering.order.order import ShippingAddress

    return ShippingAddress(
        full_name="Ada Mensah",
        street="12 Independence Ave",
        city="Accra",
        postal_code="GA-123",
        country="Ghana",
    )

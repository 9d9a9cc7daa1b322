"""Runtime configuration for the Storefront services.

Settings are read from the process environment (optionally seeded from a
``.env`` file). ``STOREFRONT_ENV`` selects the environment profile:
``development`` (default), ``test``, ``staging`` or ``production``.
"""

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv

ENVIRONMENTS = ("development", "test", "staging", "production")


@dataclass(frozen=True)
class Settings:
    env: str
    database_uri: str
    app_name: str
    client_url: str
    default_tax_rate: Decimal
    default_shipping_price: Decimal
    cart_ttl_days: int
    price_freshness_hours: int
    refund_window_days: int
    abandoned_cart_days: int

    @property
    def is_production(self) -> bool:
        return self.env in ("production", "staging")


def _load_settings() -> Settings:
    load_dotenv()

    env = os.getenv("STOREFRONT_ENV", "development").lower()
    if env not in ENVIRONMENTS:
        raise ValueError(f"Unknown STOREFRONT_ENV '{env}'. Expected one of: {', '.join(ENVIRONMENTS)}")

    return Settings(
        env=env,
        database_uri=os.getenv("DATABASE_URI", "sqlite:///storefront.db"),
        app_name=os.getenv("APP_NAME", "Storefront"),
        client_url=os.getenv("CLIENT_URL", "http://localhost:3000"),
        default_tax_rate=Decimal(os.getenv("DEFAULT_TAX_RATE", "0.1")),
        default_shipping_price=Decimal(os.getenv("DEFAULT_SHIPPING_PRICE", "10")),
        cart_ttl_days=int(os.getenv("CART_TTL_DAYS", "30")),
        price_freshness_hours=int(os.getenv("PRICE_FRESHNESS_HOURS", "24")),
        refund_window_days=int(os.getenv("REFUND_WINDOW_DAYS", "30")),
        abandoned_cart_days=int(os.getenv("ABANDONED_CART_DAYS", "3")),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings (loaded once)."""
    return _load_settings()


def reset_settings() -> None:
    """Drop cached settings so the next call re-reads the environment."""
    get_settings.cache_clear()

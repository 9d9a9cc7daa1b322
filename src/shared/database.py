"""SQLAlchemy persistence shared by all Storefront contexts.

One declarative ``Base`` backs every aggregate so that multi-aggregate
operations (order creation touches products, carts and orders) commit or
roll back as a single transaction through ``unit_of_work()``.
"""

import importlib
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime

import structlog
from sqlalchemy import DateTime, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError
from sqlalchemy.pool import StaticPool
from sqlalchemy.types import TypeDecorator

from shared.config import get_settings
from shared.exceptions import ConcurrencyConflictError

logger = structlog.get_logger(__name__)

# Modules that declare mapped classes; imported before schema operations
_MODEL_MODULES = (
    "catalogue.product.product",
    "catalogue.product.price_history",
    "ordering.cart.cart",
    "ordering.order.order",
    "reviews.review.review",
)

_IN_MEMORY_URIS = ("sqlite://", "sqlite:///:memory:")


class Base(DeclarativeBase):
    pass


class UTCDateTime(TypeDecorator):
    """Stores naive UTC and always hands back timezone-aware UTC datetimes."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC).replace(tzinfo=None)

    def process_result_value(self, value: datetime | None, dialect):
        if value is None:
            return None
        return value.replace(tzinfo=UTC)


_engine: Engine | None = None
_session_factory: sessionmaker | None = None


def create_storefront_engine(database_uri: str) -> Engine:
    """Create an engine with the connection options Storefront needs."""
    kwargs = {}
    if database_uri.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if database_uri in _IN_MEMORY_URIS:
            # Keep a single connection so the schema outlives each session
            kwargs["poolclass"] = StaticPool
    return create_engine(database_uri, **kwargs)


def configure(database_uri: str | None = None) -> Engine:
    """(Re)bind the module-level engine and session factory."""
    global _engine, _session_factory

    uri = database_uri or get_settings().database_uri
    if _engine is not None:
        _engine.dispose()

    _engine = create_storefront_engine(uri)
    _session_factory = sessionmaker(bind=_engine, expire_on_commit=False)
    logger.debug("database_configured", database_uri=uri)
    return _engine


def get_engine() -> Engine:
    if _engine is None:
        configure()
    return _engine


def new_session() -> Session:
    if _session_factory is None:
        configure()
    return _session_factory()


@contextmanager
def unit_of_work() -> Iterator[Session]:
    """Run a block inside one database transaction.

    Commits when the block completes, rolls back on any exception. A version
    mismatch detected while flushing is surfaced as ``ConcurrencyConflictError``.
    """
    session = new_session()
    try:
        yield session
        session.commit()
    except StaleDataError as exc:
        session.rollback()
        raise ConcurrencyConflictError(
            {"version": ["The record was modified by another request. Reload and try again."]}
        ) from exc
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def load_models() -> None:
    """Import every module that declares mapped classes."""
    for module_name in _MODEL_MODULES:
        importlib.import_module(module_name)


def setup_db(engine: Engine | None = None) -> None:
    """Create all tables."""
    load_models()
    Base.metadata.create_all(engine or get_engine())


def drop_db(engine: Engine | None = None) -> None:
    """Drop all tables."""
    load_models()
    Base.metadata.drop_all(engine or get_engine())


def reset_db(engine: Engine | None = None) -> None:
    """Delete every row while keeping the schema (used between tests)."""
    with (engine or get_engine()).begin() as connection:
        for table in reversed(Base.metadata.sorted_tables):
            connection.execute(table.delete())

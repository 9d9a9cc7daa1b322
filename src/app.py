"""Storefront FastAPI application.

One process serves the catalogue, cart, order and review APIs against a
shared relational database.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from catalogue.api import inventory_router, product_router
from ordering.api import cart_router, order_router
from reviews.api import review_router
from shared.api import register_exception_handlers
from shared.config import get_settings
from shared.database import setup_db
from shared.logging import bind_request_context, clear_request_context, configure_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_db()
    logger.info("storefront_started", env=get_settings().env)
    yield


# ---------------------------------------------------------------------------
# FastAPI app
# ---------------------------------------------------------------------------
configure_logging()

app = FastAPI(
    title=f"{get_settings().app_name} API",
    description="E-commerce core: catalogue, inventory, carts, orders and reviews",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[get_settings().client_url, "*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    """Tag every log line of a request with its id and route."""
    request_id = request.headers.get("X-Request-Id") or str(uuid4())
    bind_request_context(request_id=request_id, method=request.method, path=request.url.path)
    try:
        response = await call_next(request)
        response.headers["X-Request-Id"] = request_id
        return response
    finally:
        clear_request_context()


register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(product_router)
app.include_router(inventory_router)
app.include_router(cart_router)
app.include_router(order_router)
app.include_router(review_router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------
@app.get("/health")
async def health():
    settings = get_settings()
    return {"status": "ok", "app": settings.app_name, "env": settings.env}

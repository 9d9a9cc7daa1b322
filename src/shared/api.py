"""HTTP plumbing shared by every router: error mapping and the caller identity.

Authentication happens upstream. The gateway forwards the verified caller as
``X-User-Id`` / ``X-User-Role`` / ``X-User-Email`` headers and the core
trusts them as-is.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar

import structlog
from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from shared.exceptions import PermissionDeniedError, StorefrontError

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class Envelope(BaseModel, Generic[T]):
    """Success body: ``{"status": "success", "data": ...}``."""

    status: str = "success"
    data: T


@dataclass(frozen=True)
class Actor:
    user_id: str | None
    role: str = "customer"
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def current_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str = Header(default="customer"),
    x_user_email: str | None = Header(default=None),
) -> Actor:
    return Actor(user_id=x_user_id, role=x_user_role.lower(), email=x_user_email)


def authenticated_actor(actor: Actor = Depends(current_actor)) -> Actor:
    if not actor.user_id:
        raise PermissionDeniedError({"user": ["Authentication required"]})
    return actor


def admin_actor(actor: Actor = Depends(authenticated_actor)) -> Actor:
    if not actor.is_admin:
        raise PermissionDeniedError({"user": ["Admin access required"]})
    return actor


def register_exception_handlers(app: FastAPI) -> None:
    """Answer every core failure with ``{"status": "error", "message": ...}``."""

    @app.exception_handler(StorefrontError)
    async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
        logger.info(
            "request_rejected",
            path=request.url.path,
            error=type(exc).__name__,
            status_code=exc.status_code,
            messages=exc.messages,
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"status": "error", "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", path=request.url.path, error=type(exc).__name__)
        return JSONResponse(
            status_code=500,
            content={"status": "error", "message": "Something went wrong"},
        )

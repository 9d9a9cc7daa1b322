"""Reviews domain API package."""

from reviews.api.routes import review_router

__all__ = ["review_router"]

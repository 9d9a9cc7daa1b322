"""Error taxonomy shared by every Storefront context.

Every error carries a ``messages`` dict (``{"field": ["message", ...]}``)
and the HTTP status the API layer answers with. Business-rule violations
are 400s, missing records are 404s and version mismatches are 409s.
"""


class StorefrontError(Exception):
    status_code = 500

    def __init__(self, messages: dict[str, list[str]] | str):
        if isinstance(messages, str):
            messages = {"_entity": [messages]}
        self.messages = messages
        super().__init__(messages)

    @property
    def message(self) -> str:
        return "; ".join(msg for field_messages in self.messages.values() for msg in field_messages)


class NotFoundError(StorefrontError):
    status_code = 404


class ItemNotFoundError(NotFoundError):
    """A cart line for the given product does not exist."""


class ValidationError(StorefrontError):
    status_code = 400


class InvalidQuantityError(ValidationError):
    pass


class InsufficientStockError(ValidationError):
    def __init__(self, product_id: str, requested: int, available: int, name: str | None = None):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        label = name or product_id
        super().__init__(
            {"quantity": [f"Insufficient stock for {label}: {available} available, {requested} requested"]}
        )


class InvalidTransitionError(ValidationError):
    def __init__(self, current: str, attempted: str):
        self.current = current
        self.attempted = attempted
        super().__init__({"status": [f"Cannot transition from {current} to {attempted}"]})


class AlreadyPaidError(ValidationError):
    pass


class NotCancellableError(ValidationError):
    pass


class NotRefundableError(ValidationError):
    pass


class PermissionDeniedError(StorefrontError):
    status_code = 403


class ConcurrencyConflictError(StorefrontError):
    """The record changed since it was read; retry with fresh data."""

    status_code = 409


class NotificationError(StorefrontError):
    """A notification channel reported a delivery failure."""

    status_code = 502

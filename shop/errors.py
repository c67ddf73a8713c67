"""Error taxonomy shared by the domain, the service layer and the API.

Every error carries the HTTP status it maps to, a short message and a list
of human-readable reasons. The service layer and the FastAPI exception
handlers turn them into failure envelopes (see ``shop.responses``).
"""


class ShopError(Exception):
    """Base class for expected, fully described failures."""

    status_code = 400
    default_message = "Bad Request"
    code = "BAD_REQUEST"

    def __init__(self, errors=None, message: str | None = None):
        if errors is None:
            errors = []
        elif isinstance(errors, str):
            errors = [errors]
        self.errors: list[str] = list(errors)
        self.message = message or self.default_message
        super().__init__("; ".join(self.errors) or self.message)


class ValidationError(ShopError, ValueError):
    """Malformed request shape. Raised before any storage is touched."""

    status_code = 400
    default_message = "Validation error"
    code = "VALIDATION_ERROR"


class NotFoundError(ShopError):
    """A referenced entity does not exist."""

    status_code = 404
    default_message = "Not found"
    code = "NOT_FOUND"


class InsufficientStockError(ShopError):
    """Requested quantity exceeds the current stock of a product."""

    status_code = 400
    default_message = "Insufficient stock"
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: str, product_name: str, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__([f"Insufficient stock for {product_name}"])


class ConcurrencyConflictError(ShopError):
    """The transaction could not be serialised against concurrent writers."""

    status_code = 409
    default_message = "Concurrent update conflict"
    code = "CONCURRENCY_CONFLICT"


class ConflictError(ShopError):
    """The request conflicts with existing state (e.g. idempotency key reuse)."""

    status_code = 409
    default_message = "Conflict"
    code = "CONFLICT"


class AuthenticationError(ShopError):
    status_code = 401
    default_message = "Unauthorized"
    code = "UNAUTHORIZED"


class PermissionDeniedError(ShopError):
    status_code = 403
    default_message = "Forbidden"
    code = "FORBIDDEN"


class StorageError(ShopError):
    """Unexpected persistence failure.

    The original cause is kept on ``__cause__`` for logging; it never
    reaches the caller.
    """

    status_code = 500
    default_message = "Internal server error"
    code = "INTERNAL_ERROR"

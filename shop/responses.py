"""Response envelopes returned by every endpoint.

Success::

    {"success": true, "message": "...", "object": <payload>, "errors": null}

Failure::

    {"success": false, "message": "...", "object": null, "errors": ["..."]}
"""

from dataclasses import dataclass, field
from typing import Any

from fastapi.responses import JSONResponse

from .errors import ShopError, StorageError

GENERIC_ERROR_MESSAGE = "Internal server error"
GENERIC_ERROR_REASONS = ["internal error"]


@dataclass
class ApiResponse:
    """Status code plus envelope body, independent of the web framework."""

    status_code: int
    body: dict
    headers: dict[str, str] = field(default_factory=dict)

    def to_response(self) -> JSONResponse:
        return JSONResponse(self.body, status_code=self.status_code, headers=self.headers or None)


def success(status_code: int = 200, message: str = "OK", obj: Any = None) -> ApiResponse:
    return ApiResponse(
        status_code,
        {"success": True, "message": message, "object": obj, "errors": None},
    )


def fail(status_code: int = 400, message: str = "Bad Request", errors=None) -> ApiResponse:
    if errors is None:
        errors = []
    elif not isinstance(errors, (list, tuple)):
        errors = [errors]
    return ApiResponse(
        status_code,
        {"success": False, "message": message, "object": None, "errors": [str(e) for e in errors]},
    )


def internal_error() -> ApiResponse:
    """Generic failure that hides internal detail."""
    return fail(500, GENERIC_ERROR_MESSAGE, GENERIC_ERROR_REASONS)


def from_error(exc: ShopError) -> ApiResponse:
    """Map a ``ShopError`` to its failure envelope.

    ``StorageError`` is always rendered generically.
    """
    if isinstance(exc, StorageError):
        return internal_error()
    return fail(exc.status_code, exc.message, exc.errors or [exc.message])

"""Pydantic parsing helpers that raise ``shop.errors.ValidationError``."""

from typing import Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

M = TypeVar("M", bound=BaseModel)


def format_errors(exc: PydanticValidationError) -> list[str]:
    """Render pydantic errors as ``"<field path>: <message>"`` strings."""
    out = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()))
        out.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return out


def parse(model: type[M], data: Any) -> M:
    """Validate ``data`` against ``model``, collecting every failing rule."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(format_errors(e)) from e

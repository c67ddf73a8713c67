"""HTTP endpoints for orders.

The views stay small: resolve the buyer from the bearer token, handle the
optional ``Idempotency-Key``, delegate to ``OrderService`` and return its
envelope.

Idempotency: the first request with a key is processed and its response
stored; a retry with the same key and payload returns the stored response
with ``Idempotent-Replay: true``; the same key with a different payload
returns 409, as does a retry that arrives while the first request with the
key is still running.
"""

from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Header, Request

from .. import responses
from ..accounts.api import current_user
from ..accounts.models import User
from ..errors import ConflictError
from .idempotency import finalize, get_or_create_idempotent, release
from .providers import get_order_service
from .service import OrderService

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("")
def place_order(
    request: Request,
    payload: Any = Body(default=None),
    idempotency_key: Optional[str] = Header(default=None, alias="Idempotency-Key"),
    user: User = Depends(current_user),
    service: OrderService = Depends(get_order_service),
):
    factory = request.app.state.sessionmaker
    rec = None
    if idempotency_key:
        try:
            existing, rec = get_or_create_idempotent(factory, user.id, idempotency_key, payload)
        except ConflictError as e:
            return responses.from_error(e).to_response()
        if existing:
            replay = responses.ApiResponse(rec.response_status, rec.response_body, {"Idempotent-Replay": "true"})
            return replay.to_response()

    try:
        result = service.place_order(user.id, payload)
    except Exception:
        if rec is not None:
            release(factory, rec)
        raise

    if rec is not None:
        obj = result.body.get("object") or {}
        finalize(factory, rec, result.status_code, result.body, order_id=obj.get("orderId"))
    return result.to_response()


@router.get("")
def my_orders(
    user: User = Depends(current_user),
    service: OrderService = Depends(get_order_service),
):
    return service.list_orders(user.id).to_response()

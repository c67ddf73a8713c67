"""Caller-facing service layer for orders.

``OrderService`` translates the buyer identity and the raw request payload
into engine input, invokes the ``OrderPlacementEngine`` and maps results and
errors to response envelopes. It holds no business rules of its own.
"""

import logging
from typing import Any, List

from pydantic import ValidationError as PydanticValidationError

from .. import responses
from ..errors import ShopError, StorageError, ValidationError
from ..responses import ApiResponse
from ..validation import format_errors
from .domain import RequestedItem
from .placement import OrderPlacementEngine, item_errors
from .schemas import OrderLineIn, OrderOut, OrderSummaryOut, dump

logger = logging.getLogger("shop.orders.service")


def extract_items(payload: Any) -> list:
    """Return the raw line items from a JSON array or ``{"items": [...]}``."""
    if isinstance(payload, dict) and "items" in payload:
        payload = payload["items"]
    if not isinstance(payload, list):
        raise ValidationError(["order must be a non-empty array"])
    return payload


def to_requested_items(payload: Any) -> List[RequestedItem]:
    """Parse raw line items into engine input.

    Lines with wrongly typed fields report their schema errors; well-typed
    lines are checked against the item rules. Every reason from every line
    is raised together.
    """
    items, errors = [], []
    for idx, entry in enumerate(extract_items(payload)):
        try:
            line = OrderLineIn.model_validate(entry)
        except PydanticValidationError as e:
            errors.extend(f"item {idx}: {reason}" for reason in format_errors(e))
            continue
        item = line.to_domain()
        errors.extend(item_errors(idx, item))
        items.append(item)
    if errors:
        raise ValidationError(errors)
    return items


class OrderService:
    """Request/response contract over the placement engine."""

    def __init__(self, engine: OrderPlacementEngine):
        self.engine = engine

    def place_order(self, buyer_id: str, payload: Any) -> ApiResponse:
        """Place an order for ``buyer_id`` from a raw JSON payload.

        Returns:
            ApiResponse: 201 with the order on success; 400/404/409 with the
            failing rules or products; 500 with a generic body on storage
            failure.
        """
        try:
            items = to_requested_items(payload)
            order = self.engine.place_order(buyer_id, items)
        except StorageError:
            logger.exception("order placement failed", extra={"buyer_id": buyer_id})
            return responses.internal_error()
        except ShopError as e:
            logger.info("order rejected", extra={"buyer_id": buyer_id, "code": e.code, "reasons": e.errors})
            return responses.from_error(e)
        return responses.success(201, "Order placed", dump(OrderOut.from_domain(order)))

    def list_orders(self, buyer_id: str) -> ApiResponse:
        try:
            orders = self.engine.list_orders(buyer_id)
        except StorageError:
            logger.exception("listing orders failed", extra={"buyer_id": buyer_id})
            return responses.internal_error()
        except ShopError as e:
            return responses.from_error(e)
        return responses.success(200, "Orders fetched", [dump(OrderSummaryOut.from_domain(o)) for o in orders])

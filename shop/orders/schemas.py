"""Pydantic schemas for orders.

Wire names are camelCase (``productId``, ``totalPrice``); Python attributes
stay snake_case. Money is serialised as a decimal string.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .domain import Order, OrderLineItem, OrderStatus, RequestedItem, money


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderLineIn(CamelModel):
    """Input schema for a single order line.

    Both fields are optional here so that missing values reach the engine's
    precondition check, which reports every offending rule at once.
    ``quantity`` is strict: strings, floats and booleans are rejected.
    """

    product_id: Optional[str] = None
    quantity: Optional[int] = Field(default=None, strict=True)

    def to_domain(self) -> RequestedItem:
        return RequestedItem(product_id=self.product_id, quantity=self.quantity)


class OrderLineOut(CamelModel):
    product_id: str
    quantity: int
    price_at_purchase: Decimal

    @classmethod
    def from_domain(cls, li: OrderLineItem) -> "OrderLineOut":
        return cls(product_id=li.product_id, quantity=li.quantity, price_at_purchase=money(li.price_at_purchase))


class OrderOut(CamelModel):
    """Result of a successful placement."""

    order_id: str
    status: OrderStatus
    total_price: Decimal
    line_items: list[OrderLineOut]
    created_at: datetime

    @classmethod
    def from_domain(cls, order: Order) -> "OrderOut":
        return cls(
            order_id=order.id,
            status=order.status,
            total_price=money(order.total_price),
            line_items=[OrderLineOut.from_domain(li) for li in order.line_items],
            created_at=order.created_at,
        )


class OrderSummaryOut(CamelModel):
    """One entry of a buyer's order history."""

    id: str
    status: OrderStatus
    total_price: Decimal
    created_at: datetime
    line_items: list[OrderLineOut]

    @classmethod
    def from_domain(cls, order: Order) -> "OrderSummaryOut":
        return cls(
            id=order.id,
            status=order.status,
            total_price=money(order.total_price),
            created_at=order.created_at,
            line_items=[OrderLineOut.from_domain(li) for li in order.line_items],
        )


def dump(model: BaseModel) -> dict:
    return model.model_dump(mode="json", by_alias=True)

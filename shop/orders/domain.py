"""Domain models and ports for order placement.

This module contains the dataclasses used as DTOs for products and orders,
and the protocol definitions (ports) for the storage collaborators the
placement engine runs against: an inventory store, an order ledger and the
transaction that binds them into one atomic unit.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Callable, List, Optional, Protocol

CENTS = Decimal("0.01")


def money(value) -> Decimal:
    """Return ``value`` as a Decimal rounded to cents."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


# ---- Enums ----
class OrderStatus(str, Enum):
    """Lifecycle states of an order. New orders start as PENDING."""

    PENDING = "Pending"
    PAID = "Paid"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


# ---- Entities / DTOs ----
@dataclass(frozen=True)
class Product:
    """Inventory view of a product.

    Attributes:
        id: Product identifier.
        name: Display name, used in stock error messages.
        price: Current unit price.
        stock: Remaining purchasable quantity, never negative.
        version: Optimistic-lock counter; a save succeeds only against the
            version that was read.
    """

    id: str
    name: str
    price: Decimal
    stock: int
    version: int = 1


@dataclass(frozen=True)
class RequestedItem:
    """One line of an incoming order request, not yet validated."""

    product_id: Optional[str]
    quantity: object


@dataclass(frozen=True)
class OrderLineItem:
    """A committed line item.

    ``price_at_purchase`` is the product price read at decrement time, so
    later price changes never alter historical orders.
    """

    product_id: str
    quantity: int
    price_at_purchase: Decimal

    @property
    def subtotal(self) -> Decimal:
        return self.price_at_purchase * self.quantity


@dataclass(frozen=True)
class Order:
    id: str
    buyer_id: str
    line_items: tuple[OrderLineItem, ...]
    total_price: Decimal
    created_at: datetime
    status: OrderStatus = OrderStatus.PENDING


# ---- Ports ----
class InventoryStore(Protocol):
    """Product access within the current transaction."""

    def get(self, product_id: str) -> Optional[Product]:
        """Return the product or None when it does not exist."""
        raise NotImplementedError()

    def save(self, product: Product) -> None:
        """Persist ``product`` if its version is still current.

        Raises:
            ConcurrencyConflictError: If another writer changed the product
                since it was read.
        """
        raise NotImplementedError()


class OrderLedger(Protocol):
    """Order records within the current transaction."""

    def insert(self, order: Order) -> None:
        raise NotImplementedError()

    def list_by_buyer(self, buyer_id: str) -> List[Order]:
        """Return the buyer's orders, most recent first."""
        raise NotImplementedError()


class Transaction(Protocol):
    """Atomic unit spanning inventory reads/saves and one order insert.

    Used as a context manager; leaving it without ``commit()`` or through an
    exception rolls every change back.
    """

    inventory: InventoryStore
    ledger: OrderLedger

    def __enter__(self) -> "Transaction": ...

    def __exit__(self, exc_type, exc, tb) -> None: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


TransactionFactory = Callable[[], Transaction]


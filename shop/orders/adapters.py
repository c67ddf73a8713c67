"""In-process adapters for the order placement ports.

These adapters implement ``InventoryStore``, ``OrderLedger`` and
``Transaction`` without a database. They are intended for unit tests and
local development where deterministic behavior is useful.

Transactions are serialised by a single store-wide lock held from
``__enter__`` to ``__exit__``. Changes are staged on the transaction and
only applied to the shared state on ``commit()``.
"""

import threading
from typing import Dict, List, Optional

from ..errors import ConcurrencyConflictError
from .domain import Order, Product


class InMemoryDatabase:
    """Shared state behind the in-memory stores."""

    def __init__(self, products=(), lock_timeout: float = 5.0):
        self.products: Dict[str, Product] = {p.id: p for p in products}
        self.orders: List[Order] = []
        self.lock = threading.Lock()
        self.lock_timeout = lock_timeout
        self.commits = 0

    def add_product(self, product: Product) -> None:
        with self.lock:
            self.products[product.id] = product

    def transaction(self) -> "InMemoryTransaction":
        return InMemoryTransaction(self)


class InMemoryInventory:
    def __init__(self, tx: "InMemoryTransaction"):
        self._tx = tx

    def get(self, product_id: str) -> Optional[Product]:
        staged = self._tx.staged_products.get(product_id)
        if staged is not None:
            return staged
        return self._tx.db.products.get(product_id)

    def save(self, product: Product) -> None:
        current = self.get(product.id)
        if current is not None and current.version != product.version:
            raise ConcurrencyConflictError([f"product {product.id} was modified concurrently"])
        version = current.version + 1 if current is not None else product.version
        self._tx.staged_products[product.id] = Product(
            id=product.id,
            name=product.name,
            price=product.price,
            stock=product.stock,
            version=version,
        )


class InMemoryLedger:
    def __init__(self, tx: "InMemoryTransaction"):
        self._tx = tx

    def insert(self, order: Order) -> None:
        self._tx.staged_orders.append(order)

    def list_by_buyer(self, buyer_id: str) -> List[Order]:
        orders = [o for o in self._tx.db.orders + self._tx.staged_orders if o.buyer_id == buyer_id]
        # insertion order breaks ties between equal timestamps
        indexed = list(enumerate(orders))
        indexed.sort(key=lambda pair: (pair[1].created_at, pair[0]), reverse=True)
        return [o for _, o in indexed]


class InMemoryTransaction:
    """Serialised transaction over an ``InMemoryDatabase``."""

    def __init__(self, db: InMemoryDatabase):
        self.db = db
        self.staged_products: Dict[str, Product] = {}
        self.staged_orders: List[Order] = []
        self.inventory = InMemoryInventory(self)
        self.ledger = InMemoryLedger(self)

    def __enter__(self) -> "InMemoryTransaction":
        if not self.db.lock.acquire(timeout=self.db.lock_timeout):
            raise ConcurrencyConflictError(["timed out waiting for the inventory lock"])
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.rollback()
        finally:
            self.db.lock.release()

    def commit(self) -> None:
        self.db.products.update(self.staged_products)
        self.db.orders.extend(self.staged_orders)
        self.db.commits += 1
        self.staged_products = {}
        self.staged_orders = []

    def rollback(self) -> None:
        self.staged_products = {}
        self.staged_orders = []

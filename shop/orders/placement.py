"""Order placement engine.

``OrderPlacementEngine.place_order`` validates a request, then runs one
transaction that fetches each product in caller order, checks and
decrements its stock, snapshots its price, accumulates the total and
inserts the order. Either every decrement and the order insert commit
together or nothing does.

Concurrency conflicts reported by the store abort the transaction and the
whole unit is retried a bounded number of times with exponential backoff.
"""

import logging
import time
import uuid
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, List, Sequence

from ..errors import ConcurrencyConflictError, InsufficientStockError, NotFoundError, ValidationError
from .domain import (
    Order,
    OrderLineItem,
    OrderStatus,
    RequestedItem,
    Transaction,
    TransactionFactory,
    money,
)

logger = logging.getLogger("shop.orders")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _is_positive_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value > 0


def item_errors(idx: int, it: RequestedItem) -> List[str]:
    """Return the reasons line ``idx`` breaks the item rules."""
    errors = []
    if not it.product_id or not str(it.product_id).strip():
        errors.append(f"item {idx}: productId is required")
    if not _is_positive_int(it.quantity):
        errors.append(f"item {idx}: quantity must be a positive integer")
    return errors


def validate_request(buyer_id, items) -> List[RequestedItem]:
    """Check request shape and return the items as a list.

    Every violated rule is reported, not just the first.

    Raises:
        ValidationError: With one reason per offending rule.
    """
    errors = []
    if not buyer_id or not str(buyer_id).strip():
        errors.append("buyer identity is required")
    items = list(items or [])
    if not items:
        errors.append("order must contain at least one item")
    for idx, it in enumerate(items):
        errors.extend(item_errors(idx, it))
    if errors:
        raise ValidationError(errors)
    return items


class OrderPlacementEngine:
    """Places orders atomically against an inventory store and order ledger.

    The engine owns no storage; it receives a ``TransactionFactory`` that
    opens a fresh atomic unit per attempt.
    """

    def __init__(
        self,
        transactions: TransactionFactory,
        max_retries: int = 3,
        backoff_base: float = 0.05,
        max_sleep: float = 0.5,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """Initialize the engine.

        Args:
            transactions: Factory returning a new ``Transaction`` per attempt.
            max_retries: Extra attempts after a concurrency conflict.
            backoff_base: First backoff sleep in seconds, doubled per retry.
            max_sleep: Cap for a single backoff sleep.
            clock: Source of order creation timestamps.
            sleep: Sleep function, replaceable in tests.
        """
        self.transactions = transactions
        self.max_retries = max_retries
        self.backoff_base = backoff_base
        self.max_sleep = max_sleep
        self.clock = clock
        self.sleep = sleep

    def place_order(self, buyer_id: str, requested_items: Sequence[RequestedItem]) -> Order:
        """Validate, reserve stock, snapshot prices and commit one order.

        Args:
            buyer_id: Identity of the buyer placing the order.
            requested_items: Lines in caller order.

        Returns:
            The committed ``Order`` with status PENDING.

        Raises:
            ValidationError: Malformed request; storage is not touched.
            NotFoundError: A referenced product does not exist.
            InsufficientStockError: A line asks for more than the stock.
            ConcurrencyConflictError: Conflicts persisted after all retries.
            StorageError: Unexpected persistence failure.
        """
        items = validate_request(buyer_id, requested_items)
        attempt = 0
        while True:
            attempt += 1
            try:
                order = self._place_once(buyer_id, items)
            except ConcurrencyConflictError:
                if attempt > self.max_retries:
                    logger.warning("order placement gave up after conflicts", extra={"buyer_id": buyer_id, "attempts": attempt})
                    raise
                logger.info("order placement conflict, retrying", extra={"buyer_id": buyer_id, "attempt": attempt})
                delay = self.backoff_base * (2 ** (attempt - 1))
                if delay > 0:
                    self.sleep(min(delay, self.max_sleep))
                continue
            logger.info(
                "order placed",
                extra={"order_id": order.id, "buyer_id": buyer_id, "total_price": str(order.total_price), "attempts": attempt},
            )
            return order

    def _place_once(self, buyer_id: str, items: List[RequestedItem]) -> Order:
        with self.transactions() as tx:
            line_items = []
            total = Decimal("0")
            for it in items:
                line = self._reserve(tx, it)
                line_items.append(line)
                total += line.subtotal

            order = Order(
                id=str(uuid.uuid4()),
                buyer_id=str(buyer_id),
                line_items=tuple(line_items),
                total_price=money(total),
                created_at=self.clock(),
                status=OrderStatus.PENDING,
            )
            tx.ledger.insert(order)
            tx.commit()
        return order

    @staticmethod
    def _reserve(tx: Transaction, it: RequestedItem) -> OrderLineItem:
        product = tx.inventory.get(it.product_id)
        if product is None:
            raise NotFoundError([f"product {it.product_id} not found"], message="Product not found")
        if product.stock < it.quantity:
            raise InsufficientStockError(product.id, product.name, it.quantity, product.stock)
        tx.inventory.save(replace(product, stock=product.stock - it.quantity))
        return OrderLineItem(product_id=product.id, quantity=it.quantity, price_at_purchase=product.price)

    def list_orders(self, buyer_id: str) -> List[Order]:
        """Return the buyer's orders, newest first."""
        if not buyer_id:
            raise ValidationError(["buyer identity is required"])
        with self.transactions() as tx:
            return tx.ledger.list_by_buyer(str(buyer_id))

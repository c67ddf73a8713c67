"""SQLAlchemy implementations of the order placement ports.

One ``SqlTransaction`` wraps one SQLAlchemy session, so every product read,
product save and the order insert share a single database transaction.
Product reads take a row lock (``SELECT ... FOR UPDATE``) where the database
supports it; the ``version`` column turns any write based on a stale read
into a ``ConcurrencyConflictError``.

Persistence exceptions are translated at this boundary: optimistic-lock
failures, lock timeouts, serialisation failures and deadlocks become
``ConcurrencyConflictError``; anything else becomes ``StorageError``.
"""

import logging
from contextlib import contextmanager
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select, text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from ..catalog.models import ProductModel
from ..errors import ConcurrencyConflictError, ShopError, StorageError
from .domain import Order, OrderLineItem, OrderStatus, Product
from .models import OrderItemModel, OrderModel

logger = logging.getLogger("shop.orders.repository")

# PostgreSQL SQLSTATEs: serialization_failure, deadlock_detected, lock_not_available
_RETRYABLE_SQLSTATES = {"40001", "40P01", "55P03"}
_RETRYABLE_MESSAGES = ("database is locked", "database table is locked")


def is_retryable(exc: BaseException) -> bool:
    """Return True if ``exc`` signals a transient concurrency failure."""
    if isinstance(exc, StaleDataError):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
        if sqlstate in _RETRYABLE_SQLSTATES:
            return True
        return any(m in str(orig).lower() for m in _RETRYABLE_MESSAGES)
    return False


@contextmanager
def translate_errors():
    """Map SQLAlchemy exceptions to the shop error taxonomy."""
    try:
        yield
    except ShopError:
        raise
    except SQLAlchemyError as e:
        if is_retryable(e):
            raise ConcurrencyConflictError([str(e.__class__.__name__)]) from e
        logger.error("storage failure", exc_info=True)
        raise StorageError(["storage failure"]) from e


def to_product(row: ProductModel) -> Product:
    return Product(
        id=row.id,
        name=row.name,
        price=Decimal(row.price),
        stock=row.stock,
        version=row.version,
    )


def to_order(row: OrderModel) -> Order:
    return Order(
        id=row.id,
        buyer_id=row.buyer_id,
        line_items=tuple(
            OrderLineItem(product_id=i.product_id, quantity=i.quantity, price_at_purchase=Decimal(i.price_at_purchase))
            for i in row.items
        ),
        total_price=Decimal(row.total_price),
        created_at=row.created_at,
        status=OrderStatus(row.status),
    )


class SqlInventoryStore:
    """Product reads and conditional saves inside a session."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, product_id: str) -> Optional[Product]:
        with translate_errors():
            row = self.session.get(ProductModel, product_id, with_for_update=True)
        return to_product(row) if row else None

    def save(self, product: Product) -> None:
        """Write ``product`` back if its version is still the stored one.

        Raises:
            ConcurrencyConflictError: The row changed or vanished since it
                was read.
        """
        with translate_errors():
            row = self.session.get(ProductModel, product.id)
            if row is None or row.version != product.version:
                raise ConcurrencyConflictError([f"product {product.id} was modified concurrently"])
            row.name = product.name
            row.price = product.price
            row.stock = product.stock
            # version check happens in the UPDATE's WHERE clause
            self.session.flush()


class SqlOrderLedger:
    def __init__(self, session: Session):
        self.session = session

    def insert(self, order: Order) -> None:
        row = OrderModel(
            id=order.id,
            buyer_id=order.buyer_id,
            status=order.status.value,
            total_price=order.total_price,
            created_at=order.created_at,
        )
        row.items = [
            OrderItemModel(
                position=pos,
                product_id=li.product_id,
                quantity=li.quantity,
                price_at_purchase=li.price_at_purchase,
            )
            for pos, li in enumerate(order.line_items)
        ]
        with translate_errors():
            self.session.add(row)
            self.session.flush()

    def list_by_buyer(self, buyer_id: str) -> List[Order]:
        stmt = (
            select(OrderModel)
            .where(OrderModel.buyer_id == buyer_id)
            .order_by(OrderModel.created_at.desc(), OrderModel.internal_id.desc())
        )
        with translate_errors():
            rows = self.session.execute(stmt).scalars().all()
        return [to_order(r) for r in rows]


class SqlTransaction:
    """Atomic unit over one SQLAlchemy session.

    Leaving the context without ``commit()`` rolls back; the session is
    always closed. On PostgreSQL ``lock_timeout`` bounds how long a row
    lock is waited for; a timeout surfaces as ``ConcurrencyConflictError``.
    """

    def __init__(self, factory: sessionmaker, lock_timeout: Optional[float] = None):
        self._factory = factory
        self._lock_timeout = lock_timeout
        self.session: Optional[Session] = None
        self.inventory: Optional[SqlInventoryStore] = None
        self.ledger: Optional[SqlOrderLedger] = None

    def __enter__(self) -> "SqlTransaction":
        self.session = self._factory()
        try:
            if self._lock_timeout and self.session.get_bind().dialect.name == "postgresql":
                with translate_errors():
                    self.session.execute(text(f"SET LOCAL lock_timeout = '{int(self._lock_timeout * 1000)}ms'"))
        except Exception:
            # __exit__ does not run when __enter__ fails
            self.session.close()
            raise
        self.inventory = SqlInventoryStore(self.session)
        self.ledger = SqlOrderLedger(self.session)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError:
            # keep the in-flight exception; closing the session discards the transaction
            logger.warning("rollback failed", exc_info=True)
        finally:
            self.session.close()

    def commit(self) -> None:
        with translate_errors():
            self.session.commit()

    def rollback(self) -> None:
        # no-op after a successful commit
        with translate_errors():
            self.session.rollback()


class SqlTransactionFactory:
    """Callable producing a fresh ``SqlTransaction`` per placement attempt."""

    def __init__(self, factory: sessionmaker, lock_timeout: Optional[float] = None):
        self.factory = factory
        self.lock_timeout = lock_timeout

    def __call__(self) -> SqlTransaction:
        return SqlTransaction(self.factory, self.lock_timeout)

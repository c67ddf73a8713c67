"""Tests for the SQLAlchemy order placement adapters.

The placement engine runs against real SQLite sessions here: one shared
in-memory database for the single-threaded cases and a database file for
the cases where several threads race for the same stock.
"""

import threading
import time
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from shop.catalog.models import ProductModel
from shop.db import init_db, make_engine, make_sessionmaker
from shop.errors import ConcurrencyConflictError, InsufficientStockError, NotFoundError, StorageError
from shop.orders.domain import RequestedItem
from shop.orders.models import OrderModel
from shop.orders.placement import OrderPlacementEngine
from shop.orders.repository import SqlTransaction, SqlTransactionFactory, is_retryable, translate_errors


def requested_items(pairs):
    return [RequestedItem(product_id=pid, quantity=qty) for pid, qty in pairs]


def add_product(factory, name, price="5.00", stock=10):
    with factory() as s:
        row = ProductModel(name=name, description="sql store test product", price=Decimal(price), stock=stock)
        s.add(row)
        s.commit()
        return row.id


def stock(factory, pid):
    with factory() as s:
        return s.get(ProductModel, pid).stock


def order_count(factory):
    with factory() as s:
        return len(s.execute(select(OrderModel)).scalars().all())


def sql_engine(factory, **kw):
    kw.setdefault("sleep", lambda s: None)
    return OrderPlacementEngine(SqlTransactionFactory(factory), **kw)


def test_order_and_decrements_commit_together(session_factory):
    p1 = add_product(session_factory, "Mug", "5.00", 10)
    p2 = add_product(session_factory, "Plate", "12.50", 4)

    order = sql_engine(session_factory).place_order("buyer-1", requested_items([(p1, 2), (p2, 1)]))

    assert order.total_price == Decimal("22.50")
    assert stock(session_factory, p1) == 8
    assert stock(session_factory, p2) == 3
    with session_factory() as s:
        row = s.execute(select(OrderModel).where(OrderModel.id == order.id)).scalars().one()
        assert row.status == "Pending"
        assert [(i.product_id, i.quantity, Decimal(i.price_at_purchase)) for i in row.items] == [
            (p1, 2, Decimal("5.00")),
            (p2, 1, Decimal("12.50")),
        ]


def test_product_version_is_bumped_on_decrement(session_factory):
    p1 = add_product(session_factory, "Mug")
    with session_factory() as s:
        before = s.get(ProductModel, p1).version

    sql_engine(session_factory).place_order("b", requested_items([(p1, 1)]))

    with session_factory() as s:
        assert s.get(ProductModel, p1).version == before + 1


def test_insufficient_later_item_rolls_back_earlier_decrement(session_factory):
    p1 = add_product(session_factory, "Mug", stock=10)
    p2 = add_product(session_factory, "Plate", stock=1)

    with pytest.raises(InsufficientStockError):
        sql_engine(session_factory).place_order("b", requested_items([(p1, 3), (p2, 2)]))

    assert stock(session_factory, p1) == 10
    assert stock(session_factory, p2) == 1
    assert order_count(session_factory) == 0


def test_missing_product_rolls_back(session_factory):
    p1 = add_product(session_factory, "Mug", stock=10)

    with pytest.raises(NotFoundError):
        sql_engine(session_factory).place_order("b", requested_items([(p1, 1), ("no-such-id", 1)]))

    assert stock(session_factory, p1) == 10
    assert order_count(session_factory) == 0


def test_save_after_concurrent_update_raises_conflict(file_factory):
    p1 = add_product(file_factory, "Mug", stock=10)
    transactions = SqlTransactionFactory(file_factory)

    with transactions() as tx:
        product = tx.inventory.get(p1)
        # another writer sells one unit in the meantime
        with file_factory() as other:
            row = other.get(ProductModel, p1)
            row.stock = 9
            other.commit()
        with pytest.raises(ConcurrencyConflictError):
            tx.inventory.save(replace(product, stock=product.stock - 5))

    assert stock(file_factory, p1) == 9


def test_list_by_buyer_newest_first(session_factory):
    p1 = add_product(session_factory, "Mug", stock=10)
    start = datetime(2024, 5, 1, tzinfo=timezone.utc)
    ticks = iter(start + timedelta(seconds=i) for i in range(5))
    engine = sql_engine(session_factory, clock=lambda: next(ticks))

    a = engine.place_order("alice", requested_items([(p1, 1)]))
    engine.place_order("bob", requested_items([(p1, 1)]))
    b = engine.place_order("alice", requested_items([(p1, 2)]))

    orders = engine.list_orders("alice")
    assert [o.id for o in orders] == [b.id, a.id]
    assert orders[0].line_items[0].quantity == 2
    assert orders[0].total_price == Decimal("10.00")


class _PgError(Exception):
    def __init__(self, sqlstate):
        super().__init__("could not serialize access")
        self.sqlstate = sqlstate


@pytest.mark.parametrize(
    "exc",
    [
        OperationalError("UPDATE products", {}, Exception("database is locked")),
        OperationalError("UPDATE products", {}, _PgError("40001")),
        OperationalError("UPDATE products", {}, _PgError("40P01")),
        OperationalError("SELECT ... FOR UPDATE NOWAIT", {}, _PgError("55P03")),
        StaleDataError("UPDATE statement on table 'products' expected to update 1 row(s); 0 were matched."),
    ],
)
def test_transient_failures_become_conflicts(exc):
    assert is_retryable(exc)
    with pytest.raises(ConcurrencyConflictError):
        with translate_errors():
            raise exc


def test_other_failures_become_storage_errors():
    exc = IntegrityError("INSERT INTO orders", {}, Exception("NOT NULL constraint failed"))
    assert not is_retryable(exc)
    with pytest.raises(StorageError) as e:
        with translate_errors():
            raise exc
    assert e.value.errors == ["storage failure"]
    assert isinstance(e.value.__cause__, IntegrityError)


def test_shop_errors_pass_through_translation():
    with pytest.raises(NotFoundError):
        with translate_errors():
            raise NotFoundError(["product x not found"])


@pytest.fixture
def file_factory(tmp_path):
    eng = make_engine(f"sqlite+pysqlite:///{tmp_path / 'shop.db'}")
    init_db(eng)
    yield make_sessionmaker(eng)
    eng.dispose()


def _race(engine, buyers, items):
    barrier = threading.Barrier(len(buyers))
    results = {}

    def run(buyer):
        barrier.wait()
        try:
            results[buyer] = engine.place_order(buyer, items)
        except Exception as e:
            results[buyer] = e

    threads = [threading.Thread(target=run, args=(b,)) for b in buyers]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)
    return results


def test_concurrent_buyers_do_not_oversell(file_factory):
    p1 = add_product(file_factory, "Last one", stock=3)
    engine = sql_engine(file_factory, max_retries=10, backoff_base=0.01, max_sleep=0.1, sleep=time.sleep)

    results = _race(engine, ["alice", "bob", "carol"], requested_items([(p1, 3)]))

    wins = [r for r in results.values() if not isinstance(r, Exception)]
    losses = [r for r in results.values() if isinstance(r, Exception)]
    assert len(wins) == 1
    assert all(isinstance(r, (InsufficientStockError, ConcurrencyConflictError)) for r in losses)
    assert stock(file_factory, p1) == 0
    assert order_count(file_factory) == 1


class PostgresLikeSession:
    """Stand-in session that reports a PostgreSQL bind."""

    def __init__(self, fail=False):
        self.fail = fail
        self.statements = []
        self.closed = False

    def get_bind(self):
        return SimpleNamespace(dialect=SimpleNamespace(name="postgresql"))

    def execute(self, stmt):
        if self.fail:
            raise OperationalError(str(stmt), {}, Exception("server closed the connection unexpectedly"))
        self.statements.append(str(stmt))

    def rollback(self):
        pass

    def close(self):
        self.closed = True


def test_lock_timeout_is_applied_on_postgresql():
    session = PostgresLikeSession()
    with SqlTransaction(lambda: session, lock_timeout=1.5):
        pass
    assert session.statements == ["SET LOCAL lock_timeout = '1500ms'"]
    assert session.closed


def test_session_is_closed_when_transaction_setup_fails():
    session = PostgresLikeSession(fail=True)
    with pytest.raises(StorageError):
        with SqlTransaction(lambda: session, lock_timeout=1.5):
            pytest.fail("body must not run")
    assert session.closed

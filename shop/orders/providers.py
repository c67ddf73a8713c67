"""Service provider helpers for wiring OrderService with its ports.

``get_order_service`` is a FastAPI dependency returning an ``OrderService``
backed by the SQL transaction factory bound to the application's
sessionmaker. Tests swap it through ``app.dependency_overrides`` to run the
HTTP layer against the in-memory adapters.
"""

from fastapi import Request

from ..config import Settings
from .placement import OrderPlacementEngine
from .repository import SqlTransactionFactory
from .service import OrderService


def build_engine(transactions, settings: Settings) -> OrderPlacementEngine:
    return OrderPlacementEngine(
        transactions,
        max_retries=settings.order_max_retries,
        backoff_base=settings.order_retry_backoff_base,
        max_sleep=settings.order_retry_max_sleep,
    )


def get_order_service(request: Request) -> OrderService:
    """Return an OrderService bound to the application's database."""
    state = request.app.state
    transactions = SqlTransactionFactory(state.sessionmaker, lock_timeout=state.settings.lock_timeout_secs)
    return OrderService(build_engine(transactions, state.settings))

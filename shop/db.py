"""SQLAlchemy engine, declarative base and session helpers.

Models from every app register on the shared ``Base`` so a single
``init_db`` call creates the whole schema. Sessions are produced by a
``sessionmaker`` stored on the FastAPI application, which lets tests swap
in a SQLite engine.
"""

import logging
import time
from contextlib import contextmanager

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger("shop.db")


class Base(DeclarativeBase):
    pass


def make_engine(url: str) -> Engine:
    """Create an engine for ``url``.

    In-memory SQLite databases share one connection across threads so the
    schema survives between sessions.
    """
    if url.startswith("sqlite") and (":memory:" in url or url.rstrip("/").endswith("sqlite:")):
        return create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(url, pool_pre_ping=True)


def make_sessionmaker(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables registered on ``Base``."""
    # model modules register their tables on import
    from .accounts import models as _accounts  # noqa: F401
    from .catalog import models as _catalog  # noqa: F401
    from .orders import models as _orders  # noqa: F401

    Base.metadata.create_all(engine)


def wait_for_db(engine: Engine, timeout: float = 30.0) -> None:
    """Block until the database accepts connections or ``timeout`` elapses."""
    deadline = time.time() + timeout
    while True:
        try:
            with engine.connect() as conn:
                conn.execute(text("select 1"))
            return
        except Exception:
            if time.time() > deadline:
                raise
            logger.info("database not ready, retrying")
            time.sleep(1)


@contextmanager
def session_scope(factory: sessionmaker):
    """Yield a session that commits on success and rolls back on error."""
    with factory() as s:
        try:
            yield s
            s.commit()
        except Exception:
            s.rollback()
            raise


def ping(engine: Engine) -> bool:
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1;"))
        return True
    except Exception:
        logger.warning("database ping failed", exc_info=True)
        return False

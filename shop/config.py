"""Runtime configuration read from environment variables.

All settings are read once into a frozen ``Settings`` instance. Database
connection parameters default to a local PostgreSQL URL suitable for
development; tests override ``DATABASE_URL`` with SQLite.
"""

import os
from dataclasses import dataclass
from functools import lru_cache

DB_HOST = os.getenv("DB_HOST", "shop-db")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_NAME = os.getenv("DB_NAME", "shop")
DB_USER = os.getenv("DB_USER", "shop_user")
DB_PASSWORD = os.getenv("DB_PASSWORD", "shop-pass")

DEFAULT_DATABASE_URL = f"postgresql+psycopg://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"


@dataclass(frozen=True)
class Settings:
    """Application settings.

    Attributes:
        database_url: SQLAlchemy URL of the primary database.
        log_level: Level name for the ``shop`` logger hierarchy.
        order_max_retries: Extra attempts the order engine makes after a
            concurrency conflict before giving up.
        order_retry_backoff_base: Base sleep (seconds) between attempts,
            doubled on each retry.
        order_retry_max_sleep: Upper bound for a single backoff sleep.
        lock_timeout_secs: Bounded wait for the in-memory store lock.
        token_ttl_secs: Lifetime of issued access tokens.
        api_max_bytes: Largest accepted request body.
        db_startup_timeout_secs: How long startup waits for the database.
    """

    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = "INFO"
    order_max_retries: int = 3
    order_retry_backoff_base: float = 0.05
    order_retry_max_sleep: float = 0.5
    lock_timeout_secs: float = 5.0
    token_ttl_secs: int = 24 * 60 * 60
    api_max_bytes: int = 50 * 1024
    db_startup_timeout_secs: float = 30.0

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            order_max_retries=int(os.getenv("ORDER_MAX_RETRIES", "3")),
            order_retry_backoff_base=float(os.getenv("ORDER_RETRY_BACKOFF_BASE", "0.05")),
            order_retry_max_sleep=float(os.getenv("ORDER_RETRY_MAX_SLEEP", "0.5")),
            lock_timeout_secs=float(os.getenv("LOCK_TIMEOUT_SECS", "5")),
            token_ttl_secs=int(os.getenv("TOKEN_TTL_SECS", str(24 * 60 * 60))),
            api_max_bytes=int(os.getenv("API_MAX_BYTES", str(50 * 1024))),
            db_startup_timeout_secs=float(os.getenv("DB_STARTUP_TIMEOUT_SECS", "30")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, read from the environment once."""
    return Settings.from_env()

"""Shop API built with FastAPI.

``create_app`` wires configuration, the database, JSON logging, the
request-id and body-size middlewares, the error handlers that render
failure envelopes, and the auth, catalog and order routers.

Run with ``python -m shop`` or ``uvicorn shop.main:app``.
"""

import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from sqlalchemy.engine import Engine

from . import responses
from .accounts.api import router as auth_router
from .catalog.api import router as catalog_router
from .config import Settings, get_settings
from .db import init_db, make_engine, make_sessionmaker, ping, wait_for_db
from .errors import ShopError, StorageError
from .logging_filters import configure_logging
from .middleware import add_request_id, size_limit
from .orders.api import router as orders_router

logger = logging.getLogger("shop.api")


def create_app(settings: Optional[Settings] = None, engine: Optional[Engine] = None) -> FastAPI:
    """Build the application.

    Args:
        settings: Configuration; read from the environment when omitted.
        engine: SQLAlchemy engine; created from ``settings.database_url``
            when omitted.
    """
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    engine = engine or make_engine(settings.database_url)

    app = FastAPI(title="Shop API")
    app.state.settings = settings
    app.state.engine = engine
    app.state.sessionmaker = make_sessionmaker(engine)

    @app.on_event("startup")
    def _startup_db():
        wait_for_db(engine, settings.db_startup_timeout_secs)
        init_db(engine)

    # last added runs first: request id wraps the size check
    app.middleware("http")(size_limit(settings.api_max_bytes))
    app.middleware("http")(add_request_id)

    @app.exception_handler(ShopError)
    async def _shop_error(request: Request, exc: ShopError):
        if isinstance(exc, StorageError):
            logger.error("storage failure", exc_info=exc)
        return responses.from_error(exc).to_response()

    @app.exception_handler(RequestValidationError)
    async def _request_validation(request: Request, exc: RequestValidationError):
        errors = []
        for err in exc.errors():
            loc = ".".join(str(p) for p in err.get("loc", ()))
            errors.append(f"{loc}: {err['msg']}" if loc else err["msg"])
        return responses.fail(400, "Validation error", errors).to_response()

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception):
        logger.error("unhandled error", exc_info=exc)
        return responses.internal_error().to_response()

    @app.get("/")
    def root():
        return responses.success(200, "E-commerce API is working", None).to_response()

    @app.get("/health")
    def health():
        db_ok = ping(engine)
        return responses.ApiResponse(
            200 if db_ok else 503,
            {"ok": db_ok, "components": {"db": {"ok": db_ok}}},
        ).to_response()

    app.include_router(auth_router)
    app.include_router(catalog_router)
    app.include_router(orders_router)
    return app


app = create_app()

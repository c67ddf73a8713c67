"""Logging setup and filters for request-correlated JSON logs.

``RequestIdFilter`` injects the current request id into log records using
the ContextVar set by ``shop.middleware``. ``configure_logging`` installs a
JSON handler on the ``shop`` logger hierarchy so every module logger
(``shop.orders``, ``shop.catalog``, ...) emits structured lines.
"""

import logging
from logging import Filter, LogRecord

from pythonjsonlogger import jsonlogger

from .middleware import REQUEST_ID_CTX

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(request_id)s"


class RequestIdFilter(Filter):
    """Attach a ``request_id`` attribute to log records.

    The value is retrieved from ``REQUEST_ID_CTX``. If no value is present,
    a hyphen ("-") is used so formatters can reference ``%(request_id)s``.
    """

    def filter(self, record: LogRecord) -> bool:
        if not getattr(record, "request_id", None):
            record.request_id = REQUEST_ID_CTX.get()
        return True


def configure_logging(level: str = "INFO") -> logging.Logger:
    """Attach a JSON stream handler to the ``shop`` logger once."""
    logger = logging.getLogger("shop")
    if not logger.handlers:
        h = logging.StreamHandler()
        h.setFormatter(jsonlogger.JsonFormatter(LOG_FORMAT))
        h.addFilter(RequestIdFilter())
        logger.addHandler(h)
    logger.setLevel(level)
    return logger

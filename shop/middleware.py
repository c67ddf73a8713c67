"""HTTP middleware that assigns and propagates a request identifier.

Every incoming request receives a request id, read from the ``X-Request-ID``
header when the client sends one or generated server-side otherwise. The id
is stored on ``request.state`` and in a context variable so logging and
library code can reach it without passing it explicitly. The response
carries the same id in ``X-Request-ID``.

A second middleware rejects oversized request bodies with 413 before they
reach the handlers.
"""

import contextvars
import logging
import uuid

from fastapi import Request

from .responses import fail

REQUEST_ID_CTX = contextvars.ContextVar("request_id", default="-")
HEADER = "X-Request-ID"

logger = logging.getLogger("shop.http")


async def add_request_id(request: Request, call_next):
    rid = request.headers.get(HEADER) or str(uuid.uuid4())
    request.state.request_id = rid
    token = REQUEST_ID_CTX.set(rid)
    try:
        response = await call_next(request)
        logger.info(
            "request handled",
            extra={"path": request.url.path, "method": request.method, "status": response.status_code},
        )
    finally:
        REQUEST_ID_CTX.reset(token)
    response.headers[HEADER] = rid
    return response


def size_limit(max_bytes: int):
    """Build a middleware rejecting bodies whose Content-Length exceeds ``max_bytes``."""

    async def limit_body(request: Request, call_next):
        clen = request.headers.get("content-length")
        if clen and clen.isdigit() and int(clen) > max_bytes:
            return fail(413, "Payload too large", ["PAYLOAD_TOO_LARGE"]).to_response()
        return await call_next(request)

    return limit_body

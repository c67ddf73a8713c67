"""Idempotency utilities for safely handling duplicate order requests.

This module stores and retrieves idempotency keys to de-duplicate client
requests. It supports creating an idempotent record, detecting conflicts
when the same key is used with a different payload, and finalizing a stored
response so subsequent retries can short-circuit.
"""

import hashlib
import json

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import sessionmaker

from ..errors import ConflictError
from .models import IdempotencyKey


def canonical_hash(payload) -> str:
    """Compute a stable SHA-256 hash for a JSON-serializable payload.

    The payload is serialized with sorted keys and compact separators to
    ensure a deterministic representation before hashing.
    """
    body = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


def get_or_create_idempotent(factory: sessionmaker, buyer_id: str, key: str, payload):
    """Get-or-create an idempotency record for the given key and payload.

    Behavior:
        - First request with a new key: create a record and return
          ``(False, rec)``; the caller finalizes it with the response.
        - Retry with the same key and payload: return ``(True, rec)``.
        - Same key with a different payload: raise ``ConflictError``.
        - Same key while the first request is still running: raise
          ``ConflictError`` (``IDEMPOTENCY_IN_PROGRESS``).

    A concurrent first request racing on the same key hits the primary key
    constraint; the loser re-reads the winner's record under a row lock.

    Returns:
        tuple[bool, IdempotencyKey]: ``(existing, rec)``.

    Raises:
        ConflictError: If the key exists but the payload hash differs,
            or the stored response has not been finalized yet.
    """
    h = canonical_hash(payload)
    with factory() as s:
        try:
            rec = IdempotencyKey(buyer_id=buyer_id, key=key, request_hash=h, response_status=0, response_body={})
            s.add(rec)
            s.commit()
            return False, rec
        except IntegrityError:
            s.rollback()
            rec = s.execute(
                select(IdempotencyKey)
                .where(IdempotencyKey.buyer_id == buyer_id, IdempotencyKey.key == key)
                .with_for_update()
            ).scalars().one()
            s.commit()
    if rec.request_hash != h:
        raise ConflictError(["IDEMPOTENCY_CONFLICT"], message="Idempotency key reused with a different payload")
    if not rec.response_status:
        # first request has not finalized yet
        raise ConflictError(["IDEMPOTENCY_IN_PROGRESS"], message="A request with this idempotency key is still in progress")
    return True, rec


def finalize(factory: sessionmaker, rec: IdempotencyKey, status_code: int, body: dict, order_id=None) -> None:
    """Persist the final response for an idempotent request.

    Stores the HTTP status code and response body, and optionally the id of
    the created order. Subsequent retries return this stored response
    without re-running side effects.
    """
    with factory() as s:
        row = s.get(IdempotencyKey, (rec.buyer_id, rec.key))
        row.response_status = status_code
        row.response_body = body
        if order_id is not None:
            row.order_id = order_id
        s.commit()


def release(factory: sessionmaker, rec: IdempotencyKey) -> None:
    """Drop an unfinalized record so the client can retry with the same key."""
    with factory() as s:
        row = s.get(IdempotencyKey, (rec.buyer_id, rec.key))
        if row is not None and not row.response_status:
            s.delete(row)
            s.commit()

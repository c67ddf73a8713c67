import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import mapped_column, relationship

from ..db import Base
from .domain import OrderStatus


class OrderModel(Base):
    __tablename__ = "orders"

    # Internal incremental id, also the newest-first tie breaker
    internal_id = mapped_column(Integer, primary_key=True, autoincrement=True)

    # UUID exposed in the API
    id = mapped_column(String(36), unique=True, nullable=False, default=lambda: str(uuid.uuid4()))

    buyer_id = mapped_column(String(36), nullable=False, index=True)
    status = mapped_column(String(16), nullable=False, default=OrderStatus.PENDING.value)
    total_price = mapped_column(Numeric(12, 2), nullable=False)
    created_at = mapped_column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    items = relationship(
        "OrderItemModel",
        order_by="OrderItemModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class OrderItemModel(Base):
    __tablename__ = "order_items"

    order_internal_id = mapped_column(Integer, ForeignKey("orders.internal_id", ondelete="CASCADE"), primary_key=True)
    position = mapped_column(Integer, primary_key=True)
    # no FK: products may be deleted later, history keeps the id
    product_id = mapped_column(String(36), nullable=False)
    quantity = mapped_column(Integer, nullable=False)
    price_at_purchase = mapped_column(Numeric(12, 2), nullable=False)


class IdempotencyKey(Base):
    """Persisted idempotency records to deduplicate order creation.

    Attributes:
        buyer_id: Buyer the key belongs to; keys are scoped per buyer.
        key: Client-provided idempotency key.
        request_hash: Canonical SHA-256 hex digest of the original payload.
        response_status: Stored HTTP status (0 while the request is in flight).
        response_body: Stored JSON envelope.
        order_id: Public id of the created order, when one was created.
    """

    __tablename__ = "idempotency_keys"

    buyer_id = mapped_column(String(36), primary_key=True)
    key = mapped_column(String(200), primary_key=True)
    request_hash = mapped_column(String(64), nullable=False)
    response_status = mapped_column(Integer, nullable=False, default=0)
    response_body = mapped_column(JSON, nullable=False, default=dict)
    order_id = mapped_column(String(36), nullable=True)

"""SQLAlchemy model for catalog products.

``stock`` is guarded by a check constraint and every update bumps
``version`` (SQLAlchemy's ``version_id_col``), so a write based on a stale
read fails with ``StaleDataError`` instead of overwriting a concurrent
decrement.
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import CheckConstraint, DateTime, Integer, Numeric, String, Text
from sqlalchemy.orm import mapped_column

from ..db import Base


def _now():
    return datetime.now(timezone.utc)


class ProductModel(Base):
    """A product row.

    Attributes:
        id: Public UUID (string) primary key.
        name: Unique display name.
        price: Unit price with two decimal places.
        stock: Remaining purchasable quantity, never negative.
        version: Optimistic-lock counter maintained by SQLAlchemy.
    """

    __tablename__ = "products"

    id = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = mapped_column(String(100), unique=True, nullable=False)
    description = mapped_column(Text, nullable=False, default="")
    price = mapped_column(Numeric(12, 2), nullable=False)
    stock = mapped_column(Integer, nullable=False, default=0)
    category = mapped_column(String(64), nullable=True)
    owner_id = mapped_column(String(36), nullable=True)
    version = mapped_column(Integer, nullable=False)
    created_at = mapped_column(DateTime(timezone=True), nullable=False, default=_now)
    updated_at = mapped_column(DateTime(timezone=True), nullable=False, default=_now, onupdate=_now)

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        CheckConstraint("price > 0", name="ck_products_price_positive"),
    )
    __mapper_args__ = {"version_id_col": version}

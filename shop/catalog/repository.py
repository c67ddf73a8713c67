"""Catalog persistence: administrative product create/read/update/delete.

Writes go through the versioned ``ProductModel``; an administrative update
racing with an order decrement fails with ``ConcurrencyConflictError``
rather than silently overwriting stock.
"""

import logging
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import NotFoundError, ValidationError
from ..orders.repository import translate_errors
from .models import ProductModel
from .schemas import ProductCreateIn, ProductUpdateIn

logger = logging.getLogger("shop.catalog")


def _name_taken(session: Session, name: str, exclude_id: str | None = None) -> bool:
    stmt = select(ProductModel.id).where(ProductModel.name == name)
    if exclude_id is not None:
        stmt = stmt.where(ProductModel.id != exclude_id)
    return session.execute(stmt).first() is not None


class CatalogRepo:
    """Product CRUD bound to one session."""

    def __init__(self, session: Session):
        self.session = session

    def get(self, product_id: str) -> ProductModel:
        row = self.session.get(ProductModel, product_id)
        if row is None:
            raise NotFoundError(["product not found"], message="Product not found")
        return row

    def list(self) -> List[ProductModel]:
        return list(self.session.execute(select(ProductModel).order_by(ProductModel.name)).scalars())

    def create(self, data: ProductCreateIn, owner_id: str | None = None) -> ProductModel:
        if _name_taken(self.session, data.name):
            raise ValidationError(["product name already exists"])
        row = ProductModel(
            name=data.name,
            description=data.description,
            price=data.price,
            stock=data.stock,
            category=data.category,
            owner_id=owner_id,
        )
        with translate_errors():
            self.session.add(row)
            self.session.flush()
        logger.info("product created", extra={"product_id": row.id})
        return row

    def update(self, product_id: str, data: ProductUpdateIn) -> ProductModel:
        row = self.get(product_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "name" in changes and _name_taken(self.session, changes["name"], exclude_id=product_id):
            raise ValidationError(["product name already exists"])
        for field, value in changes.items():
            setattr(row, field, value)
        with translate_errors():
            self.session.flush()
        logger.info("product updated", extra={"product_id": row.id, "fields": sorted(changes)})
        return row

    def delete(self, product_id: str) -> None:
        row = self.get(product_id)
        with translate_errors():
            self.session.delete(row)
            self.session.flush()
        logger.info("product deleted", extra={"product_id": product_id})

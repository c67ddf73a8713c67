from typing import Any

from fastapi import APIRouter, Body, Depends
from sqlalchemy.orm import Session

from .. import responses
from ..accounts.api import get_db, require_admin
from ..accounts.models import User
from ..validation import parse
from .repository import CatalogRepo
from .schemas import ProductCreateIn, ProductListItem, ProductOut, ProductUpdateIn

router = APIRouter(prefix="/products", tags=["catalog"])


def _out(row) -> dict:
    out = ProductOut(
        id=row.id,
        name=row.name,
        description=row.description,
        price=row.price,
        stock=row.stock,
        category=row.category,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
    return out.model_dump(mode="json", by_alias=True)


@router.get("")
def list_products(db: Session = Depends(get_db)):
    items = [ProductListItem.model_validate(r).model_dump(mode="json") for r in CatalogRepo(db).list()]
    return responses.success(200, "Products fetched", items).to_response()


@router.get("/{product_id}")
def get_product(product_id: str, db: Session = Depends(get_db)):
    return responses.success(200, "Product fetched", _out(CatalogRepo(db).get(product_id))).to_response()


@router.post("")
def create_product(payload: Any = Body(default=None), db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    data = parse(ProductCreateIn, payload)
    row = CatalogRepo(db).create(data, owner_id=admin.id)
    return responses.success(201, "Product created", _out(row)).to_response()


@router.put("/{product_id}")
def update_product(product_id: str, payload: Any = Body(default=None), db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    data = parse(ProductUpdateIn, payload)
    row = CatalogRepo(db).update(product_id, data)
    return responses.success(200, "Product updated", _out(row)).to_response()


@router.delete("/{product_id}")
def delete_product(product_id: str, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    CatalogRepo(db).delete(product_id)
    return responses.success(200, "Product deleted successfully", None).to_response()

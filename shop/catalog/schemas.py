"""Pydantic schemas for catalog products."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProductCreateIn(BaseModel):
    """Input schema for creating a product.

    Attributes:
        name: 3 to 100 characters, unique across the catalog.
        description: At least 10 characters.
        price: Strictly positive unit price.
        stock: Integer quantity, zero or more.
        category: Optional free-form category label.
    """

    name: str = Field(min_length=3, max_length=100)
    description: str = Field(min_length=10)
    price: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    stock: int = Field(ge=0, strict=True)
    category: Optional[str] = Field(default=None, max_length=64)


class ProductUpdateIn(BaseModel):
    """Partial update; only the provided fields are validated and applied."""

    name: Optional[str] = Field(default=None, min_length=3, max_length=100)
    description: Optional[str] = Field(default=None, min_length=10)
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    stock: Optional[int] = Field(default=None, ge=0, strict=True)
    category: Optional[str] = Field(default=None, max_length=64)


class ProductOut(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    name: str
    description: str
    price: Decimal
    stock: int
    category: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ProductListItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    price: Decimal
    stock: int
    category: Optional[str] = None

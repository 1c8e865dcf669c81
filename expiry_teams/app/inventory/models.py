"""Inventory models owned by a team."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class Store(BaseModel):
    id: str
    name: str
    team_id: str

    model_config = ConfigDict(frozen=True)


class Brand(BaseModel):
    id: Optional[str] = None
    name: str
    team_id: str

    model_config = ConfigDict(frozen=True)


class Category(BaseModel):
    id: str
    name: str
    team_id: str

    model_config = ConfigDict(frozen=True)


class Batch(BaseModel):
    """A stock lot of one product with its own expiry date."""

    id: Optional[str] = None
    product_id: str
    name: Optional[str] = None
    expiry_date: date
    amount: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = None
    temp_price: Optional[float] = Field(
        default=None,
        description="Temporary discount price overriding ``price`` while set.",
    )

    model_config = ConfigDict(frozen=True)


class BatchDraft(BaseModel):
    """Batch data supplied by a caller before it is attached to a product."""

    name: Optional[str] = None
    expiry_date: date
    amount: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, ge=0)

    model_config = ConfigDict(frozen=True)


class Product(BaseModel):
    id: Optional[str] = None
    name: str
    code: Optional[str] = None
    brand: Optional[Brand] = None
    category: Optional[Category] = None
    store: Optional[Store] = None
    team_id: str
    batches: List[Batch] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class DuplicateCheck(BaseModel):
    """Result of looking for an existing product with the same code and store."""

    is_duplicate: bool
    product_id: Optional[str] = None

    model_config = ConfigDict(frozen=True)

"""API schemas for product, batch and brand endpoints."""
from __future__ import annotations

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..inventory import Batch, BatchDraft, Brand, Product


class CreateProductRequest(BaseModel):
    """Only the first entry of ``categories`` is linked to the product."""

    name: str
    code: Optional[str] = None
    brand_id: Optional[str] = Field(alias="brandId", default=None)
    store_id: Optional[str] = Field(alias="storeId", default=None)
    categories: List[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class BatchDraftPayload(BaseModel):
    name: Optional[str] = None
    expiry_date: date = Field(alias="expDate")
    amount: Optional[int] = Field(default=None, ge=0)
    price: Optional[float] = Field(default=None, ge=0)

    model_config = ConfigDict(populate_by_name=True)

    def to_draft(self) -> BatchDraft:
        return BatchDraft(
            name=self.name,
            expiry_date=self.expiry_date,
            amount=self.amount,
            price=self.price,
        )


class CreateBatchesRequest(BaseModel):
    batches: List[BatchDraftPayload] = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class BatchDiscountRequest(BaseModel):
    temp_price: Optional[float] = Field(alias="tempPrice", default=None)

    model_config = ConfigDict(populate_by_name=True)


class CreateBrandsRequest(BaseModel):
    names: List[str] = Field(min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class ProductListResponse(BaseModel):
    products: List[Product]

    model_config = ConfigDict(populate_by_name=True)


class BatchListResponse(BaseModel):
    batches: List[Batch]

    model_config = ConfigDict(populate_by_name=True)


class BrandListResponse(BaseModel):
    brands: List[Brand]

    model_config = ConfigDict(populate_by_name=True)

"""API routes for team inventory: products, batches and brands."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status

from ..inventory import Batch, Product
from ..schemas.products import (
    BatchDiscountRequest,
    BatchListResponse,
    BrandListResponse,
    CreateBatchesRequest,
    CreateBrandsRequest,
    CreateProductRequest,
    ProductListResponse,
)
from ..services import coordinator as coordinator_service
from .common import domain_errors, get_caller_id

router = APIRouter(prefix="/api", tags=["inventory"])


@router.post("/teams/{team_id}/products", response_model=Product, status_code=status.HTTP_201_CREATED)
def create_product(
    team_id: str,
    payload: CreateProductRequest,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> Product:
    with domain_errors():
        return coordinator_service.get_coordinator().create_product(
            caller_id,
            team_id,
            name=payload.name,
            code=payload.code,
            brand_id=payload.brand_id,
            category_id=payload.categories[0] if payload.categories else None,
            store_id=payload.store_id,
        )


@router.get("/teams/{team_id}/products", response_model=ProductListResponse)
def list_products(
    team_id: str,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> ProductListResponse:
    with domain_errors():
        products = coordinator_service.get_coordinator().list_products(caller_id, team_id)
    return ProductListResponse(products=products)


@router.get("/teams/{team_id}/products/{product_id}", response_model=Product)
def get_product(
    team_id: str,
    product_id: str,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> Product:
    """Return a product with its batches ordered by expiry date."""
    with domain_errors():
        return coordinator_service.get_coordinator().get_product(caller_id, team_id, product_id)


@router.post(
    "/products/{product_id}/batches",
    response_model=BatchListResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_batches(
    product_id: str,
    payload: CreateBatchesRequest,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> BatchListResponse:
    drafts = [item.to_draft() for item in payload.batches]
    with domain_errors():
        batches = coordinator_service.get_coordinator().create_batches(caller_id, product_id, drafts)
    return BatchListResponse(batches=batches)


@router.put("/batches/{batch_id}/discount", response_model=Batch)
def update_batch_discount(
    batch_id: str,
    payload: BatchDiscountRequest,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> Batch:
    with domain_errors():
        return coordinator_service.get_coordinator().update_batch_discount(caller_id, batch_id, payload.temp_price)


@router.get("/teams/{team_id}/brands", response_model=BrandListResponse)
def list_brands(
    team_id: str,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> BrandListResponse:
    with domain_errors():
        brands = coordinator_service.get_coordinator().list_brands(caller_id, team_id)
    return BrandListResponse(brands=brands)


@router.post("/teams/{team_id}/brands", response_model=BrandListResponse, status_code=status.HTTP_201_CREATED)
def create_brands(
    team_id: str,
    payload: CreateBrandsRequest,
    *,
    caller_id: Optional[str] = Depends(get_caller_id),
) -> BrandListResponse:
    with domain_errors():
        brands = coordinator_service.get_coordinator().create_brands(caller_id, team_id, payload.names)
    return BrandListResponse(brands=brands)

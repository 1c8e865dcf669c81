"""Inventory models (products, batches, brands, categories, stores) and helpers."""

from .batches import sort_batches_by_exp_date
from .duplicates import ProductCodeReader, is_product_duplicate
from .models import Batch, BatchDraft, Brand, Category, DuplicateCheck, Product, Store

__all__ = [
    "Batch",
    "BatchDraft",
    "Brand",
    "Category",
    "DuplicateCheck",
    "Product",
    "ProductCodeReader",
    "Store",
    "is_product_duplicate",
    "sort_batches_by_exp_date",
]

"""Detection of products sharing a code within a team."""
from __future__ import annotations

from typing import Optional, Protocol, Sequence

from ..errors import ValidationError
from .models import DuplicateCheck, Product


class ProductCodeReader(Protocol):
    """Lookup of every product of a team carrying a given code."""

    def find_products_by_code(self, team_id: str, code: str) -> Sequence[Product]:
        ...


def is_product_duplicate(
    repository: ProductCodeReader,
    *,
    code: Optional[str],
    team_id: str,
    store_id: Optional[str] = None,
) -> DuplicateCheck:
    """Check whether ``code`` is already used in the team for the given store.

    Without a code there is no duplicate. With ``store_id`` only products
    assigned to that exact store count; without it only storeless products
    count. The check runs at read time and is not atomic with a later insert.
    """

    if not team_id:
        raise ValidationError("team_id is required")
    if store_id is not None and not store_id.strip():
        raise ValidationError("store_id must not be blank")
    if not code:
        return DuplicateCheck(is_duplicate=False)

    candidates = repository.find_products_by_code(team_id, code)
    if store_id:
        match = next(
            (product for product in candidates if product.store is not None and product.store.id == store_id),
            None,
        )
    else:
        match = next((product for product in candidates if product.store is None), None)

    if match is None:
        return DuplicateCheck(is_duplicate=False)
    return DuplicateCheck(is_duplicate=True, product_id=match.id)

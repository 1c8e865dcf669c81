"""Batch ordering helpers."""
from __future__ import annotations

from typing import Iterable, List

from .models import Batch


def sort_batches_by_exp_date(batches: Iterable[Batch]) -> List[Batch]:
    """Return batches by ascending expiry; equal dates keep their original order."""

    return sorted(batches, key=lambda batch: batch.expiry_date)

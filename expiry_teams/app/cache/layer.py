"""Cache-aside layer used by read paths and the mutation coordinator."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, List, Optional, Tuple

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from .backends import CacheBackend, CacheBackendError

logger = logging.getLogger(__name__)

_ANY_ADAPTER: TypeAdapter[Any] = TypeAdapter(Any)


@lru_cache(maxsize=None)
def _adapter_for(as_type: Any) -> TypeAdapter[Any]:
    return TypeAdapter(as_type)


@dataclass(frozen=True)
class InvalidationReport:
    """Outcome of invalidating a group of keys."""

    invalidated: Tuple[str, ...]
    failed: Tuple[str, ...]

    @property
    def ok(self) -> bool:
        return not self.failed


class CacheCoherenceLayer:
    """Get, save and invalidate serialized values over string keys.

    Read-through is orchestrated by callers: ``get`` and, on a miss, load from
    the source of truth and ``save``. Backing-store failures never raise from
    this layer; they are logged and reported through return values.
    """

    def __init__(
        self,
        backend: CacheBackend,
        *,
        default_ttl_seconds: Optional[int] = None,
        invalidation_retries: int = 0,
    ) -> None:
        self._backend = backend
        self._default_ttl_seconds = default_ttl_seconds
        self._invalidation_retries = max(invalidation_retries, 0)

    def get(self, key: str, as_type: Any) -> Optional[Any]:
        """Return the cached value decoded as ``as_type`` or ``None`` on a miss."""

        try:
            raw = self._backend.get(key)
        except CacheBackendError as exc:
            logger.warning("Cache read failed for %s, treating as miss: %s", key, exc)
            return None
        if raw is None:
            return None

        try:
            return _adapter_for(as_type).validate_json(raw)
        except PydanticValidationError:
            logger.warning("Dropping undecodable cache entry %s", key)
            self.invalidate(key)
            return None

    def save(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> bool:
        ttl = ttl_seconds if ttl_seconds is not None else self._default_ttl_seconds
        payload = _ANY_ADAPTER.dump_json(value).decode("utf-8")
        try:
            self._backend.set(key, payload, ttl)
        except CacheBackendError as exc:
            logger.warning("Cache save failed for %s: %s", key, exc)
            return False
        return True

    def invalidate(self, key: str) -> bool:
        """Delete ``key``; deleting a missing key is a success."""

        attempts = 1 + self._invalidation_retries
        for attempt in range(1, attempts + 1):
            try:
                self._backend.delete(key)
                return True
            except CacheBackendError as exc:
                if attempt < attempts:
                    logger.debug("Retrying invalidation of %s (attempt %s/%s): %s", key, attempt, attempts, exc)
                    continue
                logger.warning("Cache invalidation failed for %s after %s attempt(s): %s", key, attempts, exc)
        return False

    def invalidate_many(self, keys: Iterable[str]) -> InvalidationReport:
        invalidated: List[str] = []
        failed: List[str] = []
        for key in dict.fromkeys(keys):
            if self.invalidate(key):
                invalidated.append(key)
            else:
                failed.append(key)
        return InvalidationReport(invalidated=tuple(invalidated), failed=tuple(failed))

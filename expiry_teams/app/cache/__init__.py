"""Cache-aside coherence layer, its backing stores and key construction."""

from .backends import CacheBackend, CacheBackendError, InMemoryCacheBackend, RedisCacheBackend
from .keys import CacheKeyBuilder, CacheResource
from .layer import CacheCoherenceLayer, InvalidationReport

__all__ = [
    "CacheBackend",
    "CacheBackendError",
    "CacheCoherenceLayer",
    "CacheKeyBuilder",
    "CacheResource",
    "InMemoryCacheBackend",
    "InvalidationReport",
    "RedisCacheBackend",
]

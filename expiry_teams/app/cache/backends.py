"""Backing stores for the cache coherence layer."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Protocol

import redis


class CacheBackendError(RuntimeError):
    """Raised when the backing store cannot serve a request."""


class CacheBackend(Protocol):
    """String key to serialized value store with optional expiry."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        ...

    def delete(self, key: str) -> None:
        ...


@dataclass
class _CacheEntry:
    value: str
    expires_at: Optional[datetime]

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


class InMemoryCacheBackend:
    """Simple in-memory cache suitable for tests and local development."""

    def __init__(self, *, clock: Optional[Callable[[], datetime]] = None) -> None:
        self._entries: Dict[str, _CacheEntry] = {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def get(self, key: str) -> Optional[str]:
        entry = self._entries.get(key)
        if not entry:
            return None
        if entry.is_expired(self._clock()):
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        if ttl_seconds is not None and ttl_seconds <= 0:
            self._entries.pop(key, None)
            return
        expires_at = None
        if ttl_seconds is not None:
            expires_at = self._clock() + timedelta(seconds=ttl_seconds)
        self._entries[key] = _CacheEntry(value=value, expires_at=expires_at)

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def keys(self) -> List[str]:
        now = self._clock()
        return [key for key, entry in self._entries.items() if not entry.is_expired(now)]


class RedisCacheBackend:
    """Redis store shared by every API instance; last writer wins per key."""

    def __init__(self, client: redis.Redis, *, key_prefix: str = "") -> None:
        self._client = client
        self._prefix = key_prefix

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key_prefix: str = "",
        socket_timeout: Optional[float] = None,
    ) -> "RedisCacheBackend":
        client = redis.Redis.from_url(url, decode_responses=True, socket_timeout=socket_timeout)
        return cls(client, key_prefix=key_prefix)

    def get(self, key: str) -> Optional[str]:
        try:
            raw = self._client.get(self._prefix + key)
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis GET failed for {key}") from exc
        if raw is None:
            return None
        if isinstance(raw, bytes):
            return raw.decode("utf-8")
        return raw

    def set(self, key: str, value: str, ttl_seconds: Optional[int] = None) -> None:
        try:
            if ttl_seconds is None:
                self._client.set(self._prefix + key, value)
            elif ttl_seconds <= 0:
                self._client.delete(self._prefix + key)
            else:
                self._client.set(self._prefix + key, value, ex=int(ttl_seconds))
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis SET failed for {key}") from exc

    def delete(self, key: str) -> None:
        try:
            self._client.delete(self._prefix + key)
        except redis.RedisError as exc:
            raise CacheBackendError(f"Redis DEL failed for {key}") from exc

"""Application configuration helpers."""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Dict, Mapping, Optional
import os


@dataclass(frozen=True)
class DatabaseConfig:
    host: str
    port: int
    dbname: str
    user: str
    password: str
    connect_timeout: float

    def connect_kwargs(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "dbname": self.dbname,
            "user": self.user,
            "password": self.password,
            "connect_timeout": self.connect_timeout,
        }


@dataclass(frozen=True)
class AppConfig:
    """Runtime settings for the team inventory API."""

    database: DatabaseConfig
    redis_url: Optional[str]
    cache_key_prefix: str
    cache_ttl_seconds: Optional[int]
    cache_invalidation_retries: int
    cache_socket_timeout_seconds: float
    revenuecat_api_url: str
    revenuecat_api_key: str
    billing_timeout_seconds: float
    enforce_team_subscription: bool
    jwt_secret_key: str
    jwt_algorithm: str
    jwt_exp_minutes: int
    log_level: str


def _to_bool(value: Optional[str], *, default: bool) -> bool:
    if value is None:
        return default
    lowered = value.strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off"}:
        return False
    return default


def _to_int(value: Optional[str], *, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected integer value, got {value!r}") from exc


def _to_float(value: Optional[str], *, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"Expected float value, got {value!r}") from exc


def load_app_config(env: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Load :class:`AppConfig` from environment variables."""

    env_mapping = os.environ if env is None else env

    connect_timeout = _to_float(env_mapping.get("DB_CONNECT_TIMEOUT"), default=5.0)
    if connect_timeout < 0:
        raise ValueError("DB_CONNECT_TIMEOUT must be non-negative")
    database = DatabaseConfig(
        host=env_mapping.get("DB_HOST", "127.0.0.1"),
        port=_to_int(env_mapping.get("DB_PORT"), default=5432),
        dbname=env_mapping.get("DB_NAME", "expiry_teams"),
        user=env_mapping.get("DB_USER", "expiry"),
        password=env_mapping.get("DB_PASSWORD", "expiry"),
        connect_timeout=connect_timeout,
    )

    # A non-positive TTL keeps entries until they are invalidated.
    cache_ttl = _to_int(env_mapping.get("CACHE_TTL_SECONDS"), default=3600)

    return AppConfig(
        database=database,
        redis_url=(env_mapping.get("REDIS_URL") or "").strip() or None,
        cache_key_prefix=env_mapping.get("CACHE_KEY_PREFIX", ""),
        cache_ttl_seconds=cache_ttl if cache_ttl > 0 else None,
        cache_invalidation_retries=max(0, _to_int(env_mapping.get("CACHE_INVALIDATION_RETRIES"), default=1)),
        cache_socket_timeout_seconds=max(0.0, _to_float(env_mapping.get("CACHE_SOCKET_TIMEOUT_SECONDS"), default=2.0)),
        revenuecat_api_url=env_mapping.get("REVENUECAT_API_URL", "https://api.revenuecat.com/v1").rstrip("/"),
        revenuecat_api_key=env_mapping.get("REVENUECAT_API_KEY", ""),
        billing_timeout_seconds=max(0.0, _to_float(env_mapping.get("BILLING_TIMEOUT_SECONDS"), default=5.0)),
        enforce_team_subscription=_to_bool(env_mapping.get("ENFORCE_TEAM_SUBSCRIPTION"), default=False),
        jwt_secret_key=env_mapping.get("JWT_SECRET_KEY", "dev-secret-change-me"),
        jwt_algorithm="HS256",
        jwt_exp_minutes=max(1, _to_int(env_mapping.get("JWT_EXP_MINUTES"), default=60 * 24 * 7)),
        log_level=(env_mapping.get("LOG_LEVEL") or "INFO").strip().upper(),
    )


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    return load_app_config()

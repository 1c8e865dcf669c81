"""Factory wiring the mutation coordinator from application configuration."""
from __future__ import annotations

import logging
from functools import lru_cache
from typing import Optional

from ...config import AppConfig, get_app_config
from ..cache import CacheBackend, CacheCoherenceLayer, InMemoryCacheBackend, RedisCacheBackend
from ..coordinator import ResourceMutationCoordinator
from ..coordinator.repository import PostgresInventoryRepository, PostgresTeamRepository
from ..subscriptions import RevenueCatBillingSource, SubscriptionGate
from ..teams import AuthorizationGuard

logger = logging.getLogger(__name__)


def create_cache_backend(config: AppConfig) -> CacheBackend:
    if config.redis_url:
        return RedisCacheBackend.from_url(
            config.redis_url,
            key_prefix=config.cache_key_prefix,
            socket_timeout=config.cache_socket_timeout_seconds or None,
        )
    logger.info("REDIS_URL not set; using a process-local cache")
    return InMemoryCacheBackend()


def build_coordinator(config: AppConfig, *, cache_backend: Optional[CacheBackend] = None) -> ResourceMutationCoordinator:
    teams = PostgresTeamRepository()
    inventory = PostgresInventoryRepository()
    billing_source = RevenueCatBillingSource(
        config.revenuecat_api_url,
        config.revenuecat_api_key,
        timeout_seconds=config.billing_timeout_seconds,
    )
    cache = CacheCoherenceLayer(
        cache_backend if cache_backend is not None else create_cache_backend(config),
        default_ttl_seconds=config.cache_ttl_seconds,
        invalidation_retries=config.cache_invalidation_retries,
    )
    return ResourceMutationCoordinator(
        teams=teams,
        inventory=inventory,
        guard=AuthorizationGuard(teams),
        gate=SubscriptionGate(billing_source, teams),
        cache=cache,
        cache_ttl_seconds=config.cache_ttl_seconds,
        enforce_subscription=config.enforce_team_subscription,
    )


@lru_cache(maxsize=1)
def get_coordinator() -> ResourceMutationCoordinator:
    return build_coordinator(get_app_config())


__all__ = ["build_coordinator", "create_cache_backend", "get_coordinator"]

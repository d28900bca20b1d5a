"""
FanForge Redis Caching Utilities

Helpers over the global Redis client plus the role grant cache used by the
permission check on every review request.

Every helper degrades to a cache miss when Redis is not initialized or a call
fails. Authorization correctness never depends on the cache, only latency.

Usage:
    ```python
    from app.utils.cache import RoleCache, invalidate_user_cache

    cache = RoleCache(ttl_seconds=settings.role_cache_ttl_seconds)
    grants = await cache.get(user_id)
    if grants is None:
        grants = await load_grants(user_id)
        await cache.set(user_id, grants)

    # after a role change
    await invalidate_user_cache(user_id)
    ```
"""

import logging

from collections.abc import Callable
from typing import Any

from app.core.redis_client import CacheKeys, CacheTTL, RedisClient, get_redis_client


logger = logging.getLogger(__name__)


# =============================================================================
# Basic Cache Operations
# =============================================================================


async def get_cached_value(key: str) -> Any | None:
    """
    Retrieve a JSON value from Redis.

    Returns:
        The cached value, or None on miss or when Redis is unavailable.
    """
    client = get_redis_client()
    if client is None:
        return None

    value = await client.get_json(key)
    logger.debug("Cache %s for key '%s'", "hit" if value is not None else "miss", key)
    return value


async def set_cached_value(key: str, value: Any, ttl_seconds: int = CacheTTL.USER) -> bool:
    client = get_redis_client()
    if client is None:
        return False
    return await client.set_json(key, value, ttl=ttl_seconds)


async def delete_cached_value(key: str) -> bool:
    client = get_redis_client()
    if client is None:
        return False
    return await client.delete(key)


# =============================================================================
# Role Grant Cache
# =============================================================================


def role_cache_key(user_id: str) -> str:
    return f"{CacheKeys.ROLES}:{user_id}"


class RoleCache:
    """
    TTL cache of a user's role grants, keyed by user id.

    Grants are stored as a list of ``{"role": ..., "brand_id": ...}`` dicts.
    Entries expire after ``ttl_seconds`` and are dropped eagerly by
    ``invalidate`` whenever a user's roles change, so a revoked reviewer loses
    access no later than the TTL and usually immediately.

    The Redis client is resolved lazily through ``client_getter`` so tests can
    inject a fake and a cache built before startup picks up the live client.
    """

    def __init__(
        self,
        ttl_seconds: int = CacheTTL.ROLES,
        client_getter: Callable[[], RedisClient | None] = get_redis_client,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._client_getter = client_getter

    async def get(self, user_id: str) -> list[dict[str, Any]] | None:
        client = self._client_getter()
        if client is None:
            return None

        cached = await client.get_json(role_cache_key(user_id))
        if not isinstance(cached, list):
            return None
        return cached

    async def set(self, user_id: str, grants: list[dict[str, Any]]) -> None:
        client = self._client_getter()
        if client is None:
            return
        await client.set_json(role_cache_key(user_id), grants, ttl=self.ttl_seconds)

    async def invalidate(self, user_id: str) -> None:
        client = self._client_getter()
        if client is None:
            return
        await client.delete(role_cache_key(user_id))
        logger.info("Invalidated role cache for user '%s'", user_id)


# =============================================================================
# Invalidation
# =============================================================================


async def invalidate_user_cache(user_id: str) -> int:
    """
    Drop every cached entry for a user: profile and role grants.

    Call after a profile update or any role grant/revoke.

    Returns:
        int: Number of keys deleted.
    """
    if not user_id:
        logger.warning("Empty user_id provided to invalidate_user_cache")
        return 0

    deleted = 0
    for key in (f"{CacheKeys.USER}:{user_id}", role_cache_key(user_id)):
        if await delete_cached_value(key):
            deleted += 1

    logger.info("Invalidated %d cache entries for user '%s'", deleted, user_id)
    return deleted

"""
FanForge Async Redis Client Module

Thin async Redis wrapper used for short-lived caches in the review backend:

- Connection management with retry (3 attempts, exponential backoff)
- Key/value operations with TTL
- JSON helpers for cached documents (role grants, user profiles)

Redis is an optimization only. Every caller treats a missing client, or a
failed call, as a cache miss and falls back to MongoDB.

Usage:
    ```python
    from app.core.redis_client import init_redis, get_redis_client

    await init_redis()
    client = get_redis_client()
    if client:
        await client.set_json(f"{CacheKeys.ROLES}:{user_id}", grants, ttl=CacheTTL.ROLES)
    ```
"""

import asyncio
import json
import logging

from typing import Any

import redis.asyncio as redis

from redis.exceptions import ConnectionError as RedisConnectionError, RedisError

from app.config import Settings, get_settings


logger = logging.getLogger(__name__)


class _RedisClientContainer:
    """Holds the process-wide Redis client."""

    client: "RedisClient | None" = None


_container = _RedisClientContainer()


class RedisClient:
    """
    Async Redis client wrapper.

    Every operation returns a neutral value (None / False / -2) instead of
    raising when Redis misbehaves, and logs the failure.

    Attributes:
        settings: Application settings containing Redis configuration
        _client: Underlying redis async client instance
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self._client: redis.Redis | None = None

        logger.info(
            "RedisClient initialized with URL: %s",
            self._mask_url(self.settings.redis_url),
        )

    @staticmethod
    def _mask_url(url: str) -> str:
        """Hide credentials in a Redis URL for logging."""
        if "@" in url:
            return f"redis://***@{url.split('@')[-1]}"
        return url

    async def connect(self, max_retries: int = 3) -> bool:
        """
        Connect to Redis, retrying with backoff of 1s then 2s.

        Returns:
            bool: True if connection successful, False otherwise.
        """
        base_delay = 1.0

        for attempt in range(1, max_retries + 1):
            try:
                logger.info("Attempting Redis connection (attempt %d/%d)", attempt, max_retries)

                self._client = redis.from_url(  # type: ignore[no-untyped-call]
                    self.settings.redis_url,
                    encoding="utf-8",
                    decode_responses=True,
                    socket_connect_timeout=5.0,
                    socket_timeout=5.0,
                )
                await self._client.ping()  # type: ignore[misc]

                logger.info("Successfully connected to Redis")
                return True

            except RedisConnectionError as e:
                logger.warning(
                    "Redis connection failed (attempt %d/%d): %s", attempt, max_retries, e
                )
            except RedisError:
                logger.exception("Redis error during connection")

            if attempt < max_retries:
                await asyncio.sleep(base_delay * (2 ** (attempt - 1)))

        logger.error("Failed to connect to Redis after %d attempts", max_retries)
        return False

    async def close(self) -> None:
        """Close the connection pool. Safe to call multiple times."""
        if self._client:
            try:
                await self._client.aclose()
                logger.info("Redis connection closed")
            except RedisError:
                logger.exception("Error closing Redis connection")
            finally:
                self._client = None

    async def ping(self) -> bool:
        if not self._client:
            return False

        try:
            result = await self._client.ping()  # type: ignore[misc]
            return result is True or result == "PONG"
        except RedisError as e:
            logger.warning("Redis ping failed: %s", e)
            return False

    # =========================================================================
    # Core Operations
    # =========================================================================

    async def get(self, key: str) -> str | None:
        if not self._client:
            logger.error("Redis client not connected")
            return None

        try:
            result: str | None = await self._client.get(key)
            return result
        except RedisError:
            logger.exception("Failed to get key '%s'", key)
            return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Set a value, with an expiry when ``ttl`` is positive.

        Returns:
            bool: True if set successfully, False on error.
        """
        if not self._client:
            logger.error("Redis client not connected")
            return False

        try:
            str_value = value if isinstance(value, str) else str(value)
            if ttl is not None and ttl > 0:
                await self._client.setex(key, ttl, str_value)
            else:
                await self._client.set(key, str_value)
            return True
        except RedisError:
            logger.exception("Failed to set key '%s'", key)
            return False

    async def delete(self, key: str) -> bool:
        """
        Delete a key.

        Returns:
            bool: True if a key was removed.
        """
        if not self._client:
            logger.error("Redis client not connected")
            return False

        try:
            result: int = await self._client.delete(key)
            return result > 0
        except RedisError:
            logger.exception("Failed to delete key '%s'", key)
            return False

    # =========================================================================
    # JSON Operations
    # =========================================================================

    async def get_json(self, key: str) -> Any | None:
        """
        Get and deserialize a JSON value.

        Returns:
            The decoded object, or None when missing or undecodable.
        """
        raw = await self.get(key)
        if raw is None:
            return None

        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.exception("Failed to decode JSON for key '%s'", key)
            return None

    async def set_json(self, key: str, value: Any, ttl: int | None = None) -> bool:
        try:
            json_value = json.dumps(value, default=str)
        except (TypeError, ValueError):
            logger.exception("Failed to serialize JSON for key '%s'", key)
            return False
        return await self.set(key, json_value, ttl=ttl)


# =============================================================================
# Module-Level Initialization Functions
# =============================================================================


async def init_redis(settings: Settings | None = None) -> RedisClient:
    """
    Initialize and connect the global Redis client.

    Raises:
        RuntimeError: If Redis connection fails after retry attempts.
    """
    if _container.client is not None:
        logger.warning("Redis client already initialized")
        return _container.client

    client = RedisClient(settings)
    if not await client.connect():
        raise RuntimeError("Failed to connect to Redis after multiple attempts")

    _container.client = client
    logger.info("Redis client initialized successfully")
    return client


async def close_redis() -> None:
    """Close the global Redis client. Subsequent calls are no-ops."""
    if _container.client is not None:
        await _container.client.close()
        _container.client = None
    else:
        logger.debug("Redis client already closed or not initialized")


def get_redis_client() -> RedisClient | None:
    """
    Get the global Redis client.

    Returns:
        The client, or None when Redis was never initialized (caching disabled).
    """
    return _container.client


# =============================================================================
# Cache Key Constants
# =============================================================================


class CacheKeys:
    """Key prefixes for cached data, grouped so invalidation is a single delete."""

    USER = "user"
    ROLES = "roles"


class CacheTTL:
    """Cache TTL values in seconds."""

    USER = 300
    ROLES = 120

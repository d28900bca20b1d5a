"""
FanForge MongoDB Client Module

Async MongoDB connection management for the review backend, built on Motor:
- Pooled connections sized from settings
- Ping-based health check for readiness probes
- Accessors for every collection the review workflow touches
- Index creation for the lookups the workflow performs on every request
- Startup/shutdown helpers wired into the FastAPI lifespan

Connection establishment retries with exponential backoff so a database that
is still starting (docker compose, k8s) does not take the API down with it.
"""

import asyncio
import logging

from motor.motor_asyncio import (
    AsyncIOMotorClient,
    AsyncIOMotorCollection,
    AsyncIOMotorDatabase,
)
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from app.config import Settings


logger = logging.getLogger(__name__)

# Collection names
SUBMISSIONS_COLLECTION = "submissions"
CAMPAIGNS_COLLECTION = "campaigns"
BRANDS_COLLECTION = "brands"
USERS_COLLECTION = "users"
USER_ROLES_COLLECTION = "user_roles"
ASSETS_COLLECTION = "assets"
AUDIT_LOGS_COLLECTION = "audit_logs"
NOTIFICATIONS_COLLECTION = "notifications"

_NOT_CONNECTED = "MongoDB database not available. Call connect() first or check connection status."


class DatabaseClient:
    """
    Async MongoDB client wrapper with connection pooling and lifecycle management.

    Attributes:
        _settings: Settings instance containing MongoDB configuration
        _client: Motor async MongoDB client instance
        _database: Motor async database instance

    Example usage:
        ```python
        db_client = DatabaseClient(get_settings())
        await db_client.connect()
        submissions = db_client.get_submissions_collection()
        await db_client.close()
        ```
    """

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._mongodb_uri = settings.mongodb_uri
        self._db_name = settings.mongodb_db_name
        self._min_pool_size = settings.mongodb_min_pool_size
        self._max_pool_size = settings.mongodb_max_pool_size
        self._client: AsyncIOMotorClient | None = None
        self._database: AsyncIOMotorDatabase | None = None

        logger.info(
            "DatabaseClient initialized with pool size %s-%s for database: %s",
            self._min_pool_size,
            self._max_pool_size,
            self._db_name,
        )

    async def connect(self, max_retries: int = 3) -> bool:
        """
        Establish the MongoDB connection, retrying with exponential backoff.

        Waits 1s, 2s, 4s... between attempts and verifies each attempt with a
        ping before reporting success.

        Returns:
            bool: True if connected, False once every attempt has failed.
        """
        retry_delay = 1.0

        for attempt in range(1, max_retries + 1):
            try:
                logger.info(
                    "Attempting MongoDB connection (attempt %s/%s) to %s",
                    attempt,
                    max_retries,
                    self._db_name,
                )
                self._client = AsyncIOMotorClient(
                    self._mongodb_uri,
                    minPoolSize=self._min_pool_size,
                    maxPoolSize=self._max_pool_size,
                    serverSelectionTimeoutMS=5000,
                    tz_aware=True,
                )
                self._database = self._client[self._db_name]
                await self._client.admin.command("ping")

                logger.info("Connected to MongoDB database: %s", self._db_name)
                return True

            except (ServerSelectionTimeoutError, ConnectionFailure):
                logger.exception(
                    "MongoDB connection failure (attempt %s/%s)", attempt, max_retries
                )
            except Exception:
                logger.exception(
                    "Unexpected error connecting to MongoDB (attempt %s/%s)",
                    attempt,
                    max_retries,
                )

            if attempt < max_retries:
                logger.warning("Retrying MongoDB connection in %s seconds...", retry_delay)
                await asyncio.sleep(retry_delay)
                retry_delay *= 2

        logger.error(
            "Failed to connect to MongoDB after %s attempts. "
            "Check connection URI and server availability.",
            max_retries,
        )
        return False

    async def close(self) -> None:
        """Close the Motor client. Safe to call when not connected."""
        if self._client is None:
            logger.warning("MongoDB close called but no active connection exists")
            return

        try:
            self._client.close()
            logger.info("MongoDB connection closed for database: %s", self._db_name)
        except Exception:
            logger.exception("Error closing MongoDB connection")
        finally:
            self._client = None
            self._database = None

    async def ping(self) -> bool:
        """
        Health check using the MongoDB admin ping command.

        Returns:
            bool: True if the server answered, False otherwise.
        """
        if self._client is None:
            logger.warning("MongoDB ping failed: No active connection")
            return False

        try:
            await self._client.admin.command("ping")
            return True
        except (ConnectionFailure, ServerSelectionTimeoutError):
            logger.exception("MongoDB ping failed")
            return False

    def get_database(self) -> AsyncIOMotorDatabase:
        """
        Get the database instance for direct operations.

        Raises:
            RuntimeError: If not connected to MongoDB.
        """
        if self._database is None:
            raise RuntimeError(_NOT_CONNECTED)
        return self._database

    def _collection(self, name: str) -> AsyncIOMotorCollection:
        return self.get_database()[name]

    def get_submissions_collection(self) -> AsyncIOMotorCollection:
        """
        Get the submissions collection.

        Holds creator artwork plus its review state: status, reviewer fields,
        feedback, rating, visibility and the external IP id once registered.
        """
        return self._collection(SUBMISSIONS_COLLECTION)

    def get_campaigns_collection(self) -> AsyncIOMotorCollection:
        return self._collection(CAMPAIGNS_COLLECTION)

    def get_brands_collection(self) -> AsyncIOMotorCollection:
        return self._collection(BRANDS_COLLECTION)

    def get_users_collection(self) -> AsyncIOMotorCollection:
        return self._collection(USERS_COLLECTION)

    def get_user_roles_collection(self) -> AsyncIOMotorCollection:
        """Get role grants (platform_admin, brand_admin, brand_reviewer, creator)."""
        return self._collection(USER_ROLES_COLLECTION)

    def get_assets_collection(self) -> AsyncIOMotorCollection:
        """Get brand IP kit assets, each optionally carrying a registry anchor ``ip_id``."""
        return self._collection(ASSETS_COLLECTION)

    def get_audit_logs_collection(self) -> AsyncIOMotorCollection:
        """Get the append-only audit trail."""
        return self._collection(AUDIT_LOGS_COLLECTION)

    def get_notifications_collection(self) -> AsyncIOMotorCollection:
        return self._collection(NOTIFICATIONS_COLLECTION)

    async def create_indexes(self) -> None:
        """
        Create indexes backing the review workflow's lookups.

        - submissions: campaign_id, creator_id, status, external_ip_id
        - campaigns: brand_id
        - user_roles: (user_id, role, brand_id) unique
        - audit_logs: (entity_type, entity_id, created_at)
        - notifications: (user_id, created_at)
        - users: auth0_id (unique, sparse), email (unique)
        """
        database = self.get_database()

        try:
            logger.info("Creating MongoDB indexes...")

            submissions = database[SUBMISSIONS_COLLECTION]
            await submissions.create_index("campaign_id")
            await submissions.create_index("creator_id")
            await submissions.create_index([("campaign_id", 1), ("status", 1)])
            await submissions.create_index("external_ip_id", sparse=True)

            await database[CAMPAIGNS_COLLECTION].create_index("brand_id")
            await database[BRANDS_COLLECTION].create_index("owner_id")

            await database[USER_ROLES_COLLECTION].create_index(
                [("user_id", 1), ("role", 1), ("brand_id", 1)], unique=True
            )

            await database[AUDIT_LOGS_COLLECTION].create_index(
                [("entity_type", 1), ("entity_id", 1), ("created_at", -1)]
            )
            await database[NOTIFICATIONS_COLLECTION].create_index(
                [("user_id", 1), ("created_at", -1)]
            )

            users = database[USERS_COLLECTION]
            await users.create_index("auth0_id", unique=True, sparse=True)
            await users.create_index("email", unique=True)

            logger.info("All MongoDB indexes created successfully")

        except Exception:
            logger.exception("Error creating MongoDB indexes")
            raise


class _DatabaseClientContainer:
    """Holds the process-wide database client."""

    client: DatabaseClient | None = None


_container = _DatabaseClientContainer()


async def init_db(settings: Settings | None = None) -> DatabaseClient:
    """
    Initialize the global database client, connect, and create indexes.

    Raises:
        RuntimeError: If connection to MongoDB fails after all retries.
    """
    if _container.client is not None:
        logger.warning("Database client already initialized, returning existing instance")
        return _container.client

    if settings is None:
        settings = Settings()

    client = DatabaseClient(settings)
    if not await client.connect():
        raise RuntimeError(
            "Failed to establish MongoDB connection. "
            "Check mongodb_uri configuration and server availability."
        )

    await client.create_indexes()
    _container.client = client
    logger.info("MongoDB database client initialization complete")
    return client


async def close_db() -> None:
    """Close the global database client, if any."""
    if _container.client is None:
        logger.warning("close_db called but no database client exists")
        return

    await _container.client.close()
    _container.client = None


def get_db_client() -> DatabaseClient:
    """
    Get the global database client.

    Raises:
        RuntimeError: If init_db() has not run.
    """
    if _container.client is None:
        raise RuntimeError(
            "Database client not initialized. Call init_db() first during application startup."
        )
    return _container.client


def get_database() -> AsyncIOMotorDatabase:
    """Shortcut for ``get_db_client().get_database()``."""
    return get_db_client().get_database()

"""
app/db/mongo.py

Purpose: MongoDB connection setup

- Initializes Motor client with connection pooling
- Collections: resources (documents / business cards), tracking_events (append-only log)
- Health checks and retry logic
- Proper connection lifecycle management
"""

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError, PyMongoError
from typing import Optional
import asyncio
from app.core.config import settings
from app.core.logging import get_logger
from utils.constants import RESOURCES_COLLECTION, TRACKING_EVENTS_COLLECTION

logger = get_logger(__name__)

# Global MongoDB client
_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo():
    """
    Establishes connection to MongoDB with retry logic.
    Called during application startup.
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    max_retries = 3
    retry_delay = 2

    for attempt in range(1, max_retries + 1):
        try:
            logger.info(
                f"Attempting to connect to MongoDB (attempt {attempt}/{max_retries})"
            )

            client = AsyncIOMotorClient(
                settings.MONGODB_URL,
                maxPoolSize=50,
                minPoolSize=10,
                serverSelectionTimeoutMS=settings.MONGODB_TIMEOUT_MS,
                connectTimeoutMS=10000,
                socketTimeoutMS=settings.MONGODB_TIMEOUT_MS,
                retryWrites=True,
                retryReads=True,
                tz_aware=True,
            )

            # Verify connection
            await client.admin.command("ping")

            _client = client
            _database = client[settings.MONGODB_DB_NAME]

            logger.info(
                f"✅ Successfully connected to MongoDB: {settings.MONGODB_DB_NAME}"
            )
            return

        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            logger.error(
                f"Failed to connect to MongoDB (attempt {attempt}/{max_retries}): {e}"
            )
            client.close()

            if attempt < max_retries:
                logger.info(f"Retrying in {retry_delay} seconds...")
                await asyncio.sleep(retry_delay)
                retry_delay *= 2  # Exponential backoff
            else:
                logger.critical("Failed to connect to MongoDB after all retries")
                raise ConnectionError("Could not establish MongoDB connection") from e


async def close_mongo_connection():
    """
    Closes the MongoDB connection.
    Called during application shutdown.
    """
    global _client, _database

    if _client:
        logger.info("Closing MongoDB connection")
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


async def check_database_health() -> bool:
    """
    Checks if the database connection is healthy.

    Returns:
        True if connection is healthy, False otherwise
    """
    try:
        if _client is None:
            logger.error("MongoDB client not initialized")
            return False

        await _client.admin.command("ping")
        return True

    except PyMongoError as e:
        logger.error(f"Database health check failed: {str(e)}")
        return False


def get_database() -> AsyncIOMotorDatabase:
    """
    Returns the MongoDB database instance.

    Raises:
        RuntimeError: If database is not initialized
    """
    if _database is None:
        raise RuntimeError(
            "Database not initialized. Call connect_to_mongo() during startup."
        )
    return _database


def get_resources_collection() -> AsyncIOMotorCollection:
    """
    Returns the resources collection.

    Fields:
    - resource_id: str (unique, public id used in QR links)
    - resource_type: "document" | "business_card"
    - owner_id: str, owner_email: str | None
    - name: str | None, target_url: str | None
    - scan_count: int, download_count: int (denormalized counters)
    - active: bool, tracking_enabled: bool
    - created_at, updated_at: datetime
    """
    return get_database()[RESOURCES_COLLECTION]


def get_tracking_events_collection() -> AsyncIOMotorCollection:
    """
    Returns the append-only tracking events collection.

    Fields:
    - event_id: str (unique)
    - kind: "scan" | "download"
    - resource_id: str
    - timestamp: datetime
    - user_agent: str, origin: str, location: str | None
    """
    return get_database()[TRACKING_EVENTS_COLLECTION]

"""
app/db/indexes.py

Purpose: Database index management

- Unique index on resource ids and event ids
- Per-resource/kind indexes for counting and recent-event queries
- Timestamp index for weekly statistics
"""

from pymongo import ASCENDING, DESCENDING

from app.db.mongo import (
    get_resources_collection,
    get_tracking_events_collection,
)
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes for optimal performance.
    This function is idempotent - safe to run multiple times.
    """
    try:
        resources = get_resources_collection()
        events = get_tracking_events_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # RESOURCES COLLECTION INDEXES
        # ==============================================

        await resources.create_index("resource_id", unique=True, name="resource_id_unique")
        logger.debug("Created unique index on resources.resource_id")

        await resources.create_index("owner_id", name="owner_idx")
        logger.debug("Created index on resources.owner_id")

        await resources.create_index(
            [("resource_type", ASCENDING), ("created_at", DESCENDING)],
            name="type_created_idx"
        )
        logger.debug("Created compound index on resources.resource_type + created_at")

        # ==============================================
        # TRACKING EVENTS COLLECTION INDEXES
        # ==============================================

        await events.create_index("event_id", unique=True, name="event_id_unique")
        logger.debug("Created unique index on tracking_events.event_id")

        # Counting per resource and kind
        await events.create_index(
            [("resource_id", ASCENDING), ("kind", ASCENDING)],
            name="resource_kind_idx"
        )
        logger.debug("Created compound index on tracking_events.resource_id + kind")

        # Recent events for resource stats
        await events.create_index(
            [("resource_id", ASCENDING), ("timestamp", DESCENDING)],
            name="resource_recent_idx"
        )
        logger.debug("Created compound index on tracking_events.resource_id + timestamp")

        # Weekly/global statistics
        await events.create_index(
            [("kind", ASCENDING), ("timestamp", DESCENDING)],
            name="kind_timestamp_idx"
        )
        logger.debug("Created compound index on tracking_events.kind + timestamp")

        logger.info("✅ All database indexes created successfully")

        resource_indexes = await resources.index_information()
        event_indexes = await events.index_information()

        logger.info(
            f"Index summary: Resources={len(resource_indexes)}, "
            f"TrackingEvents={len(event_indexes)}"
        )

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


async def drop_all_indexes():
    """
    Drops all custom indexes (keeps _id index).
    Use with caution! Only for maintenance/migration.
    """
    try:
        resources = get_resources_collection()
        events = get_tracking_events_collection()

        logger.warning("Dropping all database indexes...")

        await resources.drop_indexes()
        await events.drop_indexes()

        logger.info("✅ All indexes dropped successfully")

    except Exception as e:
        logger.error(f"Failed to drop indexes: {str(e)}", exc_info=True)
        raise

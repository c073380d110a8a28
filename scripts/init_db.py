"""
Database initialization script

Creates indexes for the resources and tracking_events collections and can
seed a few demo resources:
    python scripts/init_db.py
    python scripts/init_db.py --seed
    python scripts/init_db.py --rebuild-indexes
"""

import argparse
import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

# Load environment variables
load_dotenv()

import logging

from app.core.config import settings
from app.db.mongo import connect_to_mongo, close_mongo_connection, check_database_health, get_database
from app.db.indexes import create_indexes, drop_all_indexes
from app.models.resource import Resource, ResourceType
from app.repositories.dependencies import build_repository
from utils.constants import RESOURCES_COLLECTION, TRACKING_EVENTS_COLLECTION

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


DEMO_RESOURCES = [
    Resource(
        resource_id="demo-doc",
        resource_type=ResourceType.DOCUMENT,
        owner_id="demo-owner",
        owner_email="owner@example.com",
        name="Demo brochure",
    ),
    Resource(
        resource_id="demo-card",
        resource_type=ResourceType.BUSINESS_CARD,
        owner_id="demo-owner",
        owner_email="owner@example.com",
        name="Demo business card",
    ),
    Resource(
        resource_id="demo-private",
        resource_type=ResourceType.DOCUMENT,
        owner_id="demo-owner",
        owner_email="owner@example.com",
        name="Confidential document",
        tracking_enabled=False,
    ),
]


async def seed_resources():
    """Upserts the demo resources"""
    repository = build_repository("mongo")
    for resource in DEMO_RESOURCES:
        existing = await repository.get_resource(resource.resource_id)
        if existing:
            logger.info(f"  ℹ️  {resource.resource_id} already exists")
            continue
        await repository.save_resource(resource)
        logger.info(f"  ✅ {resource.resource_id} created")


async def main(seed: bool, rebuild_indexes: bool):
    """Main initialization"""
    logger.info("=" * 60)
    logger.info("  QR Track Database Setup")
    logger.info("=" * 60 + "\n")

    logger.info(f"🔌 Connecting to MongoDB: {settings.MONGODB_DB_NAME}")
    await connect_to_mongo()

    try:
        if not await check_database_health():
            raise RuntimeError("MongoDB ping failed")

        if rebuild_indexes:
            await drop_all_indexes()
        await create_indexes()

        if seed:
            logger.info("\n🌱 Seeding demo resources...")
            await seed_resources()

        db = get_database()
        logger.info("\n📊 Current documents:")
        for collection_name in (RESOURCES_COLLECTION, TRACKING_EVENTS_COLLECTION):
            count = await db[collection_name].count_documents({})
            logger.info(f"  {collection_name}: {count}")

        logger.info("\n✅ Database initialization complete!")

    except Exception as e:
        logger.error(f"\n❌ Error: {e}")
        raise

    finally:
        await close_mongo_connection()

    logger.info("\n" + "=" * 60)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create indexes and optionally seed demo resources")
    parser.add_argument("--seed", action="store_true", help="Insert demo resources")
    parser.add_argument("--rebuild-indexes", action="store_true", help="Drop custom indexes before recreating them")
    args = parser.parse_args()

    asyncio.run(main(args.seed, args.rebuild_indexes))

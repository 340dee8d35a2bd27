"""
Database initialization script

Run once (or after schema changes) to create collections and indexes:
    python scripts/init_db.py
"""

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
from app.db.mongo import (
    connect_to_mongo,
    close_mongo_connection,
    get_database,
    USERS,
    DRAFT_APPLICATIONS,
    APPLICATIONS,
    THREAD_MAP,
    MESSAGES,
)
from app.db.indexes import create_indexes

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)

COLLECTIONS = [USERS, DRAFT_APPLICATIONS, APPLICATIONS, THREAD_MAP, MESSAGES]


async def main():
    logger.info("=" * 60)
    logger.info("  Relay Bot Database Setup")
    logger.info("=" * 60 + "\n")

    logger.info(f"🔌 Connecting to MongoDB: {settings.MONGODB_DB_NAME}")
    await connect_to_mongo()

    try:
        await create_indexes()

        db = await get_database()

        logger.info("\n🔍 Verifying indexes...")
        for collection_name in COLLECTIONS:
            indexes = await db[collection_name].index_information()
            logger.info(f"\n  {collection_name}:")
            for idx_name, spec in indexes.items():
                if idx_name == "_id_":
                    continue
                ttl = spec.get("expireAfterSeconds")
                suffix = f" (TTL {ttl}s)" if ttl is not None else ""
                logger.info(f"    ✅ {idx_name}{suffix}")

        logger.info("\n📊 Current documents:")
        for collection_name in COLLECTIONS:
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
    asyncio.run(main())

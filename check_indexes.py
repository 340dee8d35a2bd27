import asyncio
from app.db.mongo import connect_to_mongo, close_mongo_connection, get_database, DRAFT_APPLICATIONS, THREAD_MAP

# Configure logging
import logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


async def check_indexes():
    await connect_to_mongo()
    db = await get_database()

    try:
        drafts = await db[DRAFT_APPLICATIONS].index_information()
        logger.info(f"Draft indexes: {list(drafts.keys())}")

        ttl = drafts.get("draft_expiry_ttl_idx")
        if ttl is None:
            logger.error("❌ Draft TTL index missing! Stale drafts will never expire.")
        elif ttl.get("expireAfterSeconds") != 0:
            logger.warning(f"⚠️ Draft TTL index has expireAfterSeconds={ttl.get('expireAfterSeconds')}, expected 0")
        else:
            logger.info("✅ Draft TTL index present.")

        thread_map = await db[THREAD_MAP].index_information()
        if thread_map.get("group_message_unique", {}).get("unique"):
            logger.info("✅ Thread map is unique on group_message_id.")
        else:
            logger.error("❌ Thread map unique index missing (run scripts/init_db.py).")

    except Exception as e:
        logger.error(f"Error checking indexes: {e}")
    finally:
        await close_mongo_connection()

if __name__ == "__main__":
    asyncio.run(check_indexes())

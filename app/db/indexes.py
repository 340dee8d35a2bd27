"""
app/db/indexes.py

Purpose: Database index management

- Creates unique and lookup indexes
- Enforces one draft per user and one map entry per admin post
- TTL index for automatic draft expiry
"""

from app.db.mongo import (
    get_users_collection,
    get_drafts_collection,
    get_applications_collection,
    get_thread_map_collection,
    get_messages_collection,
)
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = get_users_collection()
        drafts = get_drafts_collection()
        applications = get_applications_collection()
        thread_map = get_thread_map_collection()
        messages = get_messages_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS
        # ==============================================
        await users.create_index("user_id", unique=True, name="user_id_unique")
        logger.debug("Created unique index on users.user_id")

        await users.create_index("application_status", name="application_status_idx")
        logger.debug("Created index on users.application_status")

        # ==============================================
        # DRAFT APPLICATIONS
        # ==============================================
        await drafts.create_index("user_id", unique=True, name="draft_user_unique")
        logger.debug("Created unique index on draft_applications.user_id")

        # Stale drafts are purged by MongoDB once expires_at is reached
        await drafts.create_index(
            "expires_at",
            expireAfterSeconds=0,
            name="draft_expiry_ttl_idx"
        )
        logger.debug("Created TTL index on draft_applications.expires_at")

        # ==============================================
        # APPLICATIONS
        # ==============================================
        await applications.create_index(
            [("user_id", 1), ("submitted_at", -1)],
            name="user_applications_idx"
        )
        logger.debug("Created compound index on applications.user_id + submitted_at")

        await applications.create_index("status", name="application_status_idx")
        logger.debug("Created index on applications.status")

        # ==============================================
        # THREAD MAP
        # ==============================================
        await thread_map.create_index(
            "group_message_id",
            unique=True,
            name="group_message_unique"
        )
        logger.debug("Created unique index on thread_map.group_message_id")

        await thread_map.create_index("user_id", name="thread_user_idx")
        logger.debug("Created index on thread_map.user_id")

        # ==============================================
        # MESSAGES (audit log)
        # ==============================================
        await messages.create_index(
            [("user_id", 1), ("created_at", -1)],
            name="user_messages_idx"
        )
        logger.debug("Created compound index on messages.user_id + created_at")

        logger.info("✅ All database indexes created successfully")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    """
    Run this script directly to create indexes manually.
    """
    import asyncio
    from app.db.mongo import connect_to_mongo, close_mongo_connection

    async def main():
        await connect_to_mongo()
        await create_indexes()
        await close_mongo_connection()

    asyncio.run(main())

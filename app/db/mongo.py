"""
app/db/mongo.py

Purpose: MongoDB connection and collection access

- One Motor client per process, opened at startup with retry/backoff
- Timezone-aware datetimes (draft expiry is compared against UTC now)
- Collection getters for users, draft_applications, applications,
  thread_map and messages
"""

import asyncio
from typing import Optional

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase, AsyncIOMotorCollection
from pymongo.errors import ConnectionFailure, ServerSelectionTimeoutError

from app.core.config import settings
from app.core.logging import get_logger

logger = get_logger(__name__)

USERS = "users"
DRAFT_APPLICATIONS = "draft_applications"
APPLICATIONS = "applications"
THREAD_MAP = "thread_map"
MESSAGES = "messages"

CONNECT_ATTEMPTS = 3
FIRST_RETRY_DELAY = 2  # seconds, doubled after each failure

_client: Optional[AsyncIOMotorClient] = None
_database: Optional[AsyncIOMotorDatabase] = None


async def connect_to_mongo(url: Optional[str] = None, db_name: Optional[str] = None):
    """
    Opens the shared client and verifies it with a ping.

    Args:
        url, db_name: Override MONGODB_URL / MONGODB_DB_NAME (scripts)

    Raises:
        ConnectionError: The server could not be reached after all attempts
    """
    global _client, _database

    if _client is not None:
        logger.warning("MongoDB client already initialized")
        return

    url = url or settings.MONGODB_URL
    db_name = db_name or settings.MONGODB_DB_NAME
    delay = FIRST_RETRY_DELAY

    for attempt in range(1, CONNECT_ATTEMPTS + 1):
        client = AsyncIOMotorClient(
            url,
            maxPoolSize=20,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=10000,
            retryWrites=True,
            tz_aware=True,
        )
        try:
            await client.admin.command("ping")
        except (ConnectionFailure, ServerSelectionTimeoutError) as e:
            client.close()
            logger.error(f"MongoDB unreachable (attempt {attempt}/{CONNECT_ATTEMPTS}): {e}")
            if attempt == CONNECT_ATTEMPTS:
                raise ConnectionError("Could not establish MongoDB connection") from e
            await asyncio.sleep(delay)
            delay *= 2
            continue

        _client = client
        _database = client[db_name]
        logger.info(f"✅ Connected to MongoDB database '{db_name}'")
        return


async def close_mongo_connection():
    global _client, _database

    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


async def check_database_health() -> bool:
    """
    Pings the server. Never raises.
    """
    if _client is None:
        return False
    try:
        await _client.admin.command("ping")
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False


async def get_database() -> AsyncIOMotorDatabase:
    """
    Raises:
        RuntimeError: connect_to_mongo() has not run
    """
    if _database is None:
        raise RuntimeError("Database not initialized. Call connect_to_mongo() during startup.")
    return _database


def _collection(name: str) -> AsyncIOMotorCollection:
    if _database is None:
        raise RuntimeError("Database not initialized. Call connect_to_mongo() during startup.")
    return _database[name]


def get_users_collection() -> AsyncIOMotorCollection:
    """
    users: one document per Telegram user

    - user_id: int (unique)
    - username, first_name, last_name: str | None
    - state: none | messaging_admin | collecting_application
    - application_status: none | pending | approved | rejected
    - created_at, updated_at: datetime
    """
    return _collection(USERS)


def get_drafts_collection() -> AsyncIOMotorCollection:
    """
    draft_applications: at most one per user_id, purged by the TTL index
    once expires_at passes.
    """
    return _collection(DRAFT_APPLICATIONS)


def get_applications_collection() -> AsyncIOMotorCollection:
    return _collection(APPLICATIONS)


def get_thread_map_collection() -> AsyncIOMotorCollection:
    """thread_map: admin group post id -> user (unique on group_message_id)."""
    return _collection(THREAD_MAP)


def get_messages_collection() -> AsyncIOMotorCollection:
    """messages: append-only relay audit log."""
    return _collection(MESSAGES)

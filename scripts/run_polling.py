"""
Long-polling runner for local development

Removes any registered webhook, then feeds getUpdates results through the
same dispatcher the webhook uses:
    python scripts/run_polling.py
"""

import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from app.core.config import settings, validate_settings, BotConfig
from app.core.exceptions import ExternalServiceError
from app.core.logging import setup_logging, get_logger
from app.db.mongo import connect_to_mongo, close_mongo_connection
from app.db.indexes import create_indexes
from app.flow.context import HandlerContext
from app.flow.dispatcher import Dispatcher
from app.services.telegram_service import get_telegram_service, close_telegram_service

setup_logging()
logger = get_logger("scripts.run_polling")

POLL_TIMEOUT = 25
ERROR_BACKOFF = 5


async def poll(dispatcher: Dispatcher):
    telegram = dispatcher.ctx.telegram
    offset = None

    while True:
        try:
            updates = await telegram.get_updates(offset=offset, timeout=POLL_TIMEOUT)
        except ExternalServiceError as e:
            logger.error(f"getUpdates failed: {e.message}, retrying in {ERROR_BACKOFF}s")
            await asyncio.sleep(ERROR_BACKOFF)
            continue

        for update in updates:
            offset = update["update_id"] + 1
            await dispatcher.process_update(update)


async def main():
    validate_settings()
    await connect_to_mongo()
    await create_indexes()

    telegram = get_telegram_service()
    me = await telegram.get_me()
    logger.info(f"🤖 Polling as @{me.get('username')}")

    await telegram.delete_webhook()
    dispatcher = Dispatcher(HandlerContext.build(BotConfig.from_settings(settings), telegram))

    try:
        await poll(dispatcher)
    finally:
        await close_telegram_service()
        await close_mongo_connection()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("👋 Polling stopped")

"""
Registers (or removes) the Telegram webhook

    python scripts/set_webhook.py https://bot.example.com
    python scripts/set_webhook.py --delete
"""

import argparse
import asyncio
import sys
from pathlib import Path
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from app.core.config import settings
from app.services.telegram_service import get_telegram_service, close_telegram_service


async def main(base_url: str, delete: bool):
    telegram = get_telegram_service()
    try:
        if delete:
            await telegram.delete_webhook()
            print("✅ Webhook removed")
            return

        url = base_url.rstrip("/") + f"{settings.API_PREFIX}/telegram/webhook"
        await telegram.set_webhook(url, secret_token=settings.WEBHOOK_SECRET)
        print(f"✅ Webhook set: {url}")
        if not settings.WEBHOOK_SECRET:
            print("⚠️  WEBHOOK_SECRET is not set; the endpoint accepts unsigned updates")
    finally:
        await close_telegram_service()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Manage the Telegram webhook")
    parser.add_argument("base_url", nargs="?", default=settings.WEBHOOK_URL)
    parser.add_argument("--delete", action="store_true", help="Remove the webhook instead")
    args = parser.parse_args()

    if not args.delete and not args.base_url:
        parser.error("base_url is required (or set WEBHOOK_URL)")

    asyncio.run(main(args.base_url, args.delete))

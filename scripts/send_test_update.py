"""
Sends a fake Telegram update to a running server to verify the webhook

    python scripts/send_test_update.py 123456789 "/start"
"""

import asyncio
import sys
import time
from pathlib import Path

import httpx
from dotenv import load_dotenv

sys.path.insert(0, str(Path(__file__).parent.parent))

load_dotenv()

from app.core.config import settings


def build_update(user_id: int, text: str) -> dict:
    now = int(time.time())
    return {
        "update_id": now,
        "message": {
            "message_id": now % 100000,
            "date": now,
            "chat": {"id": user_id, "type": "private"},
            "from": {"id": user_id, "is_bot": False, "first_name": "Test"},
            "text": text,
        },
    }


async def send_update(user_id: int, text: str):
    url = f"http://localhost:8000{settings.API_PREFIX}/telegram/webhook"
    headers = {}
    if settings.WEBHOOK_SECRET:
        headers["X-Telegram-Bot-Api-Secret-Token"] = settings.WEBHOOK_SECRET

    update = build_update(user_id, text)
    print(f"🧪 Testing webhook: {url}")
    print(f"📤 Sending update: {update}\n")

    try:
        async with httpx.AsyncClient() as client:
            response = await client.post(url, json=update, headers=headers, timeout=10.0)

        print(f"✅ Status: {response.status_code}")
        print(f"📥 Response: {response.text[:200]}")

        if response.status_code == 200:
            print("\n✅ Webhook is working!")
        else:
            print(f"\n❌ Webhook returned {response.status_code}")

    except httpx.HTTPError as e:
        print(f"❌ Error: {e}")


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: python scripts/send_test_update.py <user_id> [text]")
        sys.exit(1)
    asyncio.run(send_update(int(sys.argv[1]), sys.argv[2] if len(sys.argv) > 2 else "/start"))

"""
app/api/webhook.py

Purpose: Telegram webhook endpoint

- Receives Bot API updates pushed by Telegram
- Verifies the secret token header when a secret is configured
- Passes control to the flow dispatcher
- Always answers 200 for processed updates so Telegram stops redelivering
"""

import hmac
from typing import Optional

from fastapi import APIRouter, Request, Header, HTTPException

from app.core.config import settings
from app.core.exceptions import AuthenticationError
from app.core.logging import get_logger
from app.schemas.response import WebhookAck

logger = get_logger(__name__)
router = APIRouter()

SECRET_HEADER = "X-Telegram-Bot-Api-Secret-Token"


def verify_secret_token(received: Optional[str], expected: Optional[str]):
    """
    Raises AuthenticationError when a secret is configured and the
    request does not carry it.
    """
    if not expected:
        return
    if received is None or not hmac.compare_digest(received.encode(), expected.encode()):
        raise AuthenticationError("Invalid webhook secret token")


@router.post("/telegram/webhook", response_model=WebhookAck)
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: Optional[str] = Header(None, alias=SECRET_HEADER),
):
    """
    Telegram webhook endpoint.

    Handler failures are reported to the user and logged by the
    dispatcher; the update is acknowledged either way.
    """
    verify_secret_token(x_telegram_bot_api_secret_token, settings.WEBHOOK_SECRET)

    try:
        payload = await request.json()
    except ValueError:
        logger.error("Webhook body is not valid JSON")
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    logger.info(f"📱 Telegram update received: {payload.get('update_id')}")

    dispatcher = request.app.state.dispatcher
    result = await dispatcher.process_update(payload)
    return WebhookAck(ok=True, status=result.get("status"))


@router.get("/telegram/webhook")
async def webhook_status():
    """
    Webhook liveness endpoint
    """
    return {"status": "ok", "message": "Webhook endpoint is active"}

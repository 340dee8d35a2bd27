"""
app/flow/handlers/welcome.py

Handles: /start and /id

- /start creates or refreshes the user and shows the main menu
- /id reports chat, topic and user identifiers (setup diagnostics)
"""

from typing import Dict, Any, Optional

from app.core.logging import get_logger, LogContext
from app.flow.context import HandlerContext, reply
from app.schemas.telegram import CommandEvent
from app.services.user_service import register_user
from utils.constants import WELCOME_MESSAGE
from utils.telegram_utils import main_menu_keyboard, escape_html

logger = get_logger(__name__)


async def handle_start(ctx: HandlerContext, event: CommandEvent) -> Optional[Dict[str, Any]]:
    """
    Registers the sender and resets the conversation to the main menu.
    Only private chats start a conversation.
    """
    if not event.chat.is_private:
        return None

    with LogContext(user_id=event.sender.id, state="none"):
        await register_user(
            event.sender.id,
            username=event.sender.username,
            first_name=event.sender.first_name,
            last_name=event.sender.last_name,
        )
        logger.info("User started the bot")

    return reply(WELCOME_MESSAGE, main_menu_keyboard())


async def handle_id(ctx: HandlerContext, event: CommandEvent) -> Dict[str, Any]:
    """
    Shows the identifiers needed to configure ADMIN_GROUP_ID and the topics.
    """
    text = "🧭 ID info:\n"
    text += f"• Chat ID: <code>{event.chat.id}</code>\n"
    if event.thread_id is not None:
        text += f"• Topic ID: <code>{event.thread_id}</code>\n"
    text += f"• Your ID: <code>{event.sender.id}</code>\n"
    if event.chat.title:
        text += f"• Chat title: {escape_html(event.chat.title)}\n"
    text += f"• Chat type: {event.chat.type}"

    return reply(text, parse_mode="HTML")

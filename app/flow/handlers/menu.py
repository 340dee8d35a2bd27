"""
app/flow/handlers/menu.py

Handles: main-menu navigation buttons

- "Message admin" -> MESSAGING_ADMIN
- "Cancel" / "Back to menu" -> NONE from any state
"""

from typing import Dict, Any

from app.flow.context import HandlerContext, reply
from app.flow.states import UserState
from app.schemas.telegram import ButtonPressEvent
from app.services.user_service import get_user, update_user_state
from utils.constants import (
    MESSAGE_ADMIN_PROMPT,
    CANCELLED_MESSAGE,
    WELCOME_MESSAGE,
    START_REQUIRED_MESSAGE,
)
from utils.telegram_utils import main_menu_keyboard, cancel_keyboard


async def handle_message_admin(ctx: HandlerContext, event: ButtonPressEvent) -> Dict[str, Any]:
    if await get_user(event.sender.id) is None:
        return reply(START_REQUIRED_MESSAGE)

    await update_user_state(event.sender.id, UserState.MESSAGING_ADMIN)
    return reply(MESSAGE_ADMIN_PROMPT, cancel_keyboard())


async def handle_cancel(ctx: HandlerContext, event: ButtonPressEvent) -> Dict[str, Any]:
    if await get_user(event.sender.id) is None:
        return reply(START_REQUIRED_MESSAGE)

    await update_user_state(event.sender.id, UserState.NONE)
    return reply(CANCELLED_MESSAGE, main_menu_keyboard())


async def handle_back_to_menu(ctx: HandlerContext, event: ButtonPressEvent) -> Dict[str, Any]:
    if await get_user(event.sender.id) is None:
        return reply(START_REQUIRED_MESSAGE)

    await update_user_state(event.sender.id, UserState.NONE)
    return reply(WELCOME_MESSAGE, main_menu_keyboard())

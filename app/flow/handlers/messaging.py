"""
app/flow/handlers/messaging.py

Handles: the message-admin flow and admin replies

- A user message while MESSAGING_ADMIN is relayed to the admin group,
  then the user returns to NONE
- An admin reply in the group is routed back to the mapped user
"""

from typing import Dict, Any, Optional

from app.flow.context import HandlerContext, reply
from app.flow.states import UserState
from app.schemas.telegram import GenericMessageEvent
from app.services.user_service import update_user_state
from utils.constants import MESSAGE_SENT
from utils.telegram_utils import main_menu_keyboard


async def handle_user_message(ctx: HandlerContext, event: GenericMessageEvent) -> Dict[str, Any]:
    await ctx.relay.route_to_admin(
        event.sender.id,
        event.text_or_caption,
        event.attachment,
        first_name=event.sender.first_name,
        last_name=event.sender.last_name,
        username=event.sender.username,
    )
    await update_user_state(event.sender.id, UserState.NONE)
    return reply(MESSAGE_SENT, main_menu_keyboard())


async def handle_admin_reply(ctx: HandlerContext, event: GenericMessageEvent) -> Optional[Dict[str, Any]]:
    """
    Only replies to mapped posts are routed; anything else in the admin
    group is ordinary admin chatter. Nothing is said back in the group.
    """
    await ctx.relay.route_to_user(
        event.reply_to_message_id,
        event.message_id,
        event.text_or_caption,
        event.attachment,
        thread_id=event.thread_id,
    )
    return None

"""
app/flow/handlers/decision.py

Handles: approve / reject buttons on application summaries

- Applies the decision through the application workflow
- Removes the buttons from the admin post
- Acknowledges the press (alert when the application or user is gone)
"""

from app.core.exceptions import ApplicationNotFoundError, UserNotFoundError
from app.core.logging import get_logger
from app.flow.context import HandlerContext
from app.flow.states import DecisionAction
from app.schemas.telegram import AdminDecisionEvent
from app.services.telegram_service import TelegramAPIError
from utils.constants import (
    ADMIN_APPROVED_ACK,
    ADMIN_REJECTED_ACK,
    APPLICATION_NOT_FOUND_ALERT,
    USER_NOT_FOUND_ALERT,
)

logger = get_logger(__name__)


async def handle_decision(ctx: HandlerContext, event: AdminDecisionEvent) -> None:
    if event.chat is not None and not ctx.is_admin_group(event.chat.id):
        logger.warning(f"Decision button pressed outside the admin group: chat {event.chat.id}")
        await ctx.telegram.answer_callback_query(event.callback_query_id)
        return

    try:
        await ctx.applications.decide(event.action, event.application_id)
    except ApplicationNotFoundError:
        await ctx.telegram.answer_callback_query(
            event.callback_query_id, APPLICATION_NOT_FOUND_ALERT, show_alert=True
        )
        return
    except UserNotFoundError:
        await ctx.telegram.answer_callback_query(
            event.callback_query_id, USER_NOT_FOUND_ALERT, show_alert=True
        )
        return

    if event.chat is not None and event.message_id is not None:
        try:
            await ctx.telegram.edit_message_reply_markup(event.chat.id, event.message_id)
        except TelegramAPIError as e:
            # "message is not modified" when the buttons are already gone
            logger.warning(f"Could not remove decision buttons: {e.description}")

    ack = ADMIN_APPROVED_ACK if event.action == DecisionAction.APPROVE else ADMIN_REJECTED_ACK
    await ctx.telegram.answer_callback_query(event.callback_query_id, ack)

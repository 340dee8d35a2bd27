"""
app/flow/dispatcher.py

Purpose: Central update dispatcher

- Receives raw Telegram updates (webhook or long polling)
- Normalizes them into inbound events
- Routes to the appropriate flow handler based on event type and user state
- Sends handler responses back via the Telegram Bot API
- Serializes events per user
"""

import asyncio
import weakref
from typing import Dict, Any, Optional

from pydantic import ValidationError as PydanticValidationError

from app.core.logging import get_logger, LogContext
from app.flow.context import HandlerContext, reply
from app.flow.states import UserState
from app.schemas.telegram import (
    TgUpdate,
    parse_update,
    InboundEvent,
    CommandEvent,
    ButtonPressEvent,
    AdminDecisionEvent,
    GenericMessageEvent,
    MenuButton,
)
from app.services.user_service import get_user
from utils.constants import (
    ERROR_MESSAGE,
    ADMIN_ERROR_ALERT,
    START_REQUIRED_MESSAGE,
    CHOOSE_BUTTON_MESSAGE,
)
from utils.telegram_utils import main_menu_keyboard

logger = get_logger(__name__)


class Dispatcher:
    """
    Routes inbound Telegram events to flow handlers.

    One event per user is processed at a time; events of different
    users run concurrently.
    """

    def __init__(self, ctx: HandlerContext):
        self.ctx = ctx
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()

    def _lock_for(self, user_id: int) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def process_update(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Main entry point for one raw update.

        Never raises: malformed updates are logged and skipped, handler
        failures are reported to the user and logged.
        """
        try:
            update = TgUpdate.model_validate(payload)
        except PydanticValidationError as e:
            logger.warning(f"⚠️ Ignoring malformed update: {e.error_count()} validation error(s)")
            return {"status": "ignored"}

        event = parse_update(update)
        if event is None:
            logger.debug(f"Update {update.update_id} carries nothing to handle")
            return {"status": "ignored"}

        return await self.dispatch(event)

    async def dispatch(self, event: InboundEvent) -> Dict[str, Any]:
        chat_id = event.chat.id if event.chat is not None else None
        lock = self._lock_for(event.sender.id)

        async with lock:
            with LogContext(user_id=event.sender.id, chat_id=chat_id):
                logger.info(f"📨 Dispatching {event.kind} event")
                try:
                    response = await self.route_to_handler(event)
                    if response is not None and chat_id is not None:
                        await self.send_response(chat_id, response, self._reply_thread(event))
                    return {"status": "success"}

                except Exception as e:
                    logger.error(f"❌ Dispatcher error: {e}", exc_info=True)
                    await self._report_failure(event)
                    return {"status": "error", "error": str(e)}

    async def route_to_handler(self, event: InboundEvent) -> Optional[Dict[str, Any]]:
        """
        Picks the handler for an event.

        Returns the handler's response payload, or None when nothing
        should be said back.
        """
        from app.flow.handlers.welcome import handle_start, handle_id
        from app.flow.handlers.menu import handle_message_admin, handle_cancel, handle_back_to_menu
        from app.flow.handlers.application import handle_apply, handle_submit, handle_application_file
        from app.flow.handlers.messaging import handle_user_message, handle_admin_reply
        from app.flow.handlers.decision import handle_decision

        ctx = self.ctx

        if isinstance(event, AdminDecisionEvent):
            await handle_decision(ctx, event)
            return None

        if isinstance(event, CommandEvent):
            if event.command == "start":
                return await handle_start(ctx, event)
            if event.command == "id":
                return await handle_id(ctx, event)
            logger.warning(f"⚠️ Unrouted command: /{event.command}")
            return None

        if isinstance(event, ButtonPressEvent):
            button_handlers = {
                MenuButton.MESSAGE_ADMIN: handle_message_admin,
                MenuButton.APPLY: handle_apply,
                MenuButton.CANCEL: handle_cancel,
                MenuButton.BACK_TO_MENU: handle_back_to_menu,
                MenuButton.SUBMIT_APPLICATION: handle_submit,
            }
            return await button_handlers[event.button](ctx, event)

        if isinstance(event, GenericMessageEvent):
            if ctx.is_admin_group(event.chat.id):
                if event.reply_to_message_id is None:
                    return None
                return await handle_admin_reply(ctx, event)

            if not event.chat.is_private:
                return None

            user = await get_user(event.sender.id)
            if user is None:
                return reply(START_REQUIRED_MESSAGE)

            logger.info(f"🔄 User state: {user.state.value}")

            if user.state == UserState.MESSAGING_ADMIN:
                return await handle_user_message(ctx, event)
            if user.state == UserState.COLLECTING_APPLICATION:
                return await handle_application_file(ctx, event)
            return reply(CHOOSE_BUTTON_MESSAGE, main_menu_keyboard())

        raise TypeError(f"Unhandled event type: {type(event).__name__}")

    async def send_response(
        self,
        chat_id: int,
        response: Dict[str, Any],
        thread_id: Optional[int] = None
    ):
        """
        Sends a handler response payload to a chat.
        """
        text = response.get("text", "")
        if not text:
            logger.warning("⚠️ Empty response message")
            return

        await self.ctx.telegram.send_message(
            chat_id,
            text,
            parse_mode=response.get("parse_mode"),
            message_thread_id=thread_id,
            reply_markup=response.get("reply_markup"),
        )

    @staticmethod
    def _reply_thread(event: InboundEvent) -> Optional[int]:
        if isinstance(event, (CommandEvent, GenericMessageEvent)):
            return event.thread_id
        return None

    async def _report_failure(self, event: InboundEvent):
        try:
            if isinstance(event, AdminDecisionEvent):
                await self.ctx.telegram.answer_callback_query(
                    event.callback_query_id, ADMIN_ERROR_ALERT, show_alert=True
                )
            elif event.chat.is_private:
                await self.ctx.telegram.send_message(event.chat.id, ERROR_MESSAGE)
        except Exception as e:
            logger.error(f"❌ Could not report failure to chat: {e}")

import asyncio
import itertools
from unittest.mock import AsyncMock

from app.db.mongo import USERS, DRAFT_APPLICATIONS, APPLICATIONS, THREAD_MAP
from app.services.telegram_service import TelegramAPIError
from utils.constants import (
    BUTTON_MESSAGE_ADMIN,
    BUTTON_APPLY,
    BUTTON_CANCEL,
    BUTTON_SUBMIT_APPLICATION,
    WELCOME_MESSAGE,
    MESSAGE_ADMIN_PROMPT,
    MESSAGE_SENT,
    ADMIN_REPLY_PREFIX,
    APPLY_PROMPT,
    FILE_TOO_LARGE,
    NEED_FILE_MESSAGE,
    APPLICATION_RECEIVED,
    APPROVED_USER,
    ADMIN_APPROVED_ACK,
    START_REQUIRED_MESSAGE,
    CHOOSE_BUTTON_MESSAGE,
    CANCELLED_MESSAGE,
    ERROR_MESSAGE,
    ADMIN_ERROR_ALERT,
    APPLICATION_NOT_FOUND_ALERT,
)

USER_ID = 42
ADMIN_ID = 7

_update_ids = itertools.count(1)
_message_ids = itertools.count(1)


def private_update(text=None, **extra):
    message = {
        "message_id": next(_message_ids),
        "chat": {"id": USER_ID, "type": "private"},
        "from": {"id": USER_ID, "is_bot": False, "first_name": "Ada", "username": "ada"},
    }
    if text is not None:
        message["text"] = text
    message.update(extra)
    return {"update_id": next(_update_ids), "message": message}


def document_update(name, size):
    return private_update(document={"file_id": f"id-{name}", "file_name": name, "file_size": size})


def admin_group_update(chat_id, text, reply_to=None, thread_id=None):
    message = {
        "message_id": next(_message_ids),
        "chat": {"id": chat_id, "type": "supergroup", "title": "Admins"},
        "from": {"id": ADMIN_ID, "is_bot": False, "first_name": "Admin"},
        "text": text,
    }
    if reply_to is not None:
        message["reply_to_message"] = {"message_id": reply_to, "chat": {"id": chat_id, "type": "supergroup"}}
    if thread_id is not None:
        message["message_thread_id"] = thread_id
        message["is_topic_message"] = True
    return {"update_id": next(_update_ids), "message": message}


def callback_update(chat_id, data, message_id=1):
    return {
        "update_id": next(_update_ids),
        "callback_query": {
            "id": f"cb-{next(_update_ids)}",
            "from": {"id": ADMIN_ID, "first_name": "Admin"},
            "data": data,
            "message": {"message_id": message_id, "chat": {"id": chat_id, "type": "supergroup"}},
        },
    }


def last_text_to(telegram, chat_id):
    texts = telegram.texts_to(chat_id)
    return texts[-1] if texts else None


def user_doc(db):
    return next(d for d in db[USERS].documents if d["user_id"] == USER_ID)


def test_full_relay_and_application_flow(db, config, telegram, dispatcher):
    admin_group = config.admin_group_id

    async def scenario():
        # Register
        await dispatcher.process_update(private_update("/start"))
        assert last_text_to(telegram, USER_ID) == WELCOME_MESSAGE

        # Message the admin
        await dispatcher.process_update(private_update(BUTTON_MESSAGE_ADMIN))
        assert last_text_to(telegram, USER_ID) == MESSAGE_ADMIN_PROMPT
        assert user_doc(db)["state"] == "messaging_admin"

        await dispatcher.process_update(private_update("Hello admin"))
        assert last_text_to(telegram, USER_ID) == MESSAGE_SENT
        assert user_doc(db)["state"] == "none"

        relay_call = next(c for c in telegram.send_message.call_args_list if c.args[0] == admin_group)
        assert "Hello admin" in relay_call.args[1]
        assert relay_call.kwargs["message_thread_id"] == config.message_topic_id
        group_post_id = db[THREAD_MAP].documents[0]["group_message_id"]

        # Admin replies to the relayed post
        await dispatcher.process_update(
            admin_group_update(admin_group, "Hi Ada", reply_to=group_post_id, thread_id=config.message_topic_id)
        )
        assert last_text_to(telegram, USER_ID) == f"{ADMIN_REPLY_PREFIX}\n\nHi Ada"

        # Apply with one good and one oversized file
        await dispatcher.process_update(private_update(BUTTON_APPLY))
        assert last_text_to(telegram, USER_ID) == APPLY_PROMPT

        await dispatcher.process_update(document_update("cv.pdf", 2048))
        assert "cv.pdf" in last_text_to(telegram, USER_ID)

        await dispatcher.process_update(document_update("huge.zip", 31457281))
        assert last_text_to(telegram, USER_ID) == FILE_TOO_LARGE

        await dispatcher.process_update(private_update("here is my text"))
        assert last_text_to(telegram, USER_ID) == NEED_FILE_MESSAGE
        assert len(db[DRAFT_APPLICATIONS].documents[0]["files"]) == 1

        await dispatcher.process_update(private_update(BUTTON_SUBMIT_APPLICATION))
        assert last_text_to(telegram, USER_ID) == APPLICATION_RECEIVED
        assert user_doc(db)["application_status"] == "pending"

        # Admin approves from the summary post
        application = db[APPLICATIONS].documents[0]
        await dispatcher.process_update(callback_update(
            admin_group, f"app:approve:{application['_id']}", message_id=application["group_message_id"]
        ))
        assert last_text_to(telegram, USER_ID) == APPROVED_USER
        telegram.edit_message_reply_markup.assert_awaited_once_with(admin_group, application["group_message_id"])
        assert telegram.answer_callback_query.call_args.args[1] == ADMIN_APPROVED_ACK
        assert user_doc(db)["application_status"] == "approved"

        # Approved users cannot apply again
        await dispatcher.process_update(private_update(BUTTON_APPLY))
        assert last_text_to(telegram, USER_ID) == APPROVED_USER
        assert db[DRAFT_APPLICATIONS].documents == []

    asyncio.run(scenario())


def test_button_before_start(db, telegram, dispatcher):
    asyncio.run(dispatcher.process_update(private_update(BUTTON_APPLY)))

    assert last_text_to(telegram, USER_ID) == START_REQUIRED_MESSAGE
    assert db[USERS].documents == []


def test_text_before_start(db, telegram, dispatcher):
    asyncio.run(dispatcher.process_update(private_update("hello?")))

    assert last_text_to(telegram, USER_ID) == START_REQUIRED_MESSAGE


def test_free_text_in_menu_shows_buttons(db, telegram, dispatcher):
    async def scenario():
        await dispatcher.process_update(private_update("/start"))
        await dispatcher.process_update(private_update("what now"))

    asyncio.run(scenario())

    assert last_text_to(telegram, USER_ID) == CHOOSE_BUTTON_MESSAGE
    assert db[THREAD_MAP].documents == []


def test_submit_outside_application_flow(db, telegram, dispatcher):
    async def scenario():
        await dispatcher.process_update(private_update("/start"))
        await dispatcher.process_update(private_update(BUTTON_SUBMIT_APPLICATION))

    asyncio.run(scenario())

    assert last_text_to(telegram, USER_ID) == CHOOSE_BUTTON_MESSAGE
    assert db[APPLICATIONS].documents == []


def test_submit_with_no_files_reprompts(db, telegram, dispatcher):
    async def scenario():
        await dispatcher.process_update(private_update("/start"))
        await dispatcher.process_update(private_update(BUTTON_APPLY))
        await dispatcher.process_update(private_update(BUTTON_SUBMIT_APPLICATION))

    asyncio.run(scenario())

    assert last_text_to(telegram, USER_ID) == NEED_FILE_MESSAGE
    assert user_doc(db)["state"] == "collecting_application"


def test_cancel_returns_to_menu(db, telegram, dispatcher):
    async def scenario():
        await dispatcher.process_update(private_update("/start"))
        await dispatcher.process_update(private_update(BUTTON_APPLY))
        await dispatcher.process_update(private_update(BUTTON_CANCEL))

    asyncio.run(scenario())

    assert last_text_to(telegram, USER_ID) == CANCELLED_MESSAGE
    assert user_doc(db)["state"] == "none"


def test_start_resets_state(db, telegram, dispatcher):
    async def scenario():
        await dispatcher.process_update(private_update("/start"))
        await dispatcher.process_update(private_update(BUTTON_MESSAGE_ADMIN))
        await dispatcher.process_update(private_update("/start"))

    asyncio.run(scenario())

    assert user_doc(db)["state"] == "none"
    assert len(db[USERS].documents) == 1


def test_start_in_group_is_ignored(db, config, telegram, dispatcher):
    asyncio.run(dispatcher.process_update(admin_group_update(config.admin_group_id, "/start")))

    telegram.send_message.assert_not_called()
    assert db[USERS].documents == []


def test_id_command_reports_topic(db, config, telegram, dispatcher):
    update = admin_group_update(config.admin_group_id, "/id", thread_id=config.application_topic_id)

    asyncio.run(dispatcher.process_update(update))

    call = telegram.send_message.call_args
    assert call.args[0] == config.admin_group_id
    assert f"<code>{config.application_topic_id}</code>" in call.args[1]
    assert call.kwargs["parse_mode"] == "HTML"
    assert call.kwargs["message_thread_id"] == config.application_topic_id


def test_admin_chatter_is_not_relayed(db, config, telegram, dispatcher):
    asyncio.run(dispatcher.process_update(admin_group_update(config.admin_group_id, "coffee?")))

    telegram.send_message.assert_not_called()
    telegram.send_media.assert_not_called()


def test_reply_to_untracked_post_is_silent(db, config, telegram, dispatcher):
    asyncio.run(dispatcher.process_update(admin_group_update(config.admin_group_id, "hm", reply_to=999)))

    telegram.send_message.assert_not_called()


def test_other_groups_are_ignored(db, telegram, dispatcher):
    asyncio.run(dispatcher.process_update(admin_group_update(-100999, "hello", reply_to=1)))

    telegram.send_message.assert_not_called()


def test_malformed_update_is_ignored(db, telegram, dispatcher):
    result = asyncio.run(dispatcher.process_update({"message": {"text": "no ids"}}))

    assert result == {"status": "ignored"}
    telegram.send_message.assert_not_called()


def test_unknown_application_alerts_admin(db, config, telegram, dispatcher):
    update = callback_update(config.admin_group_id, "app:approve:65f0c0ffee0000000000abcd")

    asyncio.run(dispatcher.process_update(update))

    call = telegram.answer_callback_query.call_args
    assert call.args[1] == APPLICATION_NOT_FOUND_ALERT
    assert call.kwargs["show_alert"] is True
    telegram.edit_message_reply_markup.assert_not_called()


def test_decision_outside_admin_group_is_ignored(db, telegram, dispatcher):
    asyncio.run(dispatcher.process_update(callback_update(-100999, "app:approve:65f0c0ffee0000000000abcd")))

    telegram.answer_callback_query.assert_awaited_once()
    call = telegram.answer_callback_query.call_args
    assert len(call.args) == 1 and not call.kwargs
    telegram.edit_message_reply_markup.assert_not_called()


def test_unmodified_markup_does_not_block_ack(db, config, telegram, ctx, dispatcher):
    telegram.edit_message_reply_markup.side_effect = TelegramAPIError(
        "editMessageReplyMarkup", 400, "Bad Request: message is not modified"
    )

    async def scenario():
        await dispatcher.process_update(private_update("/start"))
        await dispatcher.process_update(private_update(BUTTON_APPLY))
        await dispatcher.process_update(document_update("cv.pdf", 10))
        await dispatcher.process_update(private_update(BUTTON_SUBMIT_APPLICATION))
        application = db[APPLICATIONS].documents[0]
        return await dispatcher.process_update(
            callback_update(config.admin_group_id, f"app:reject:{application['_id']}")
        )

    result = asyncio.run(scenario())

    assert result["status"] == "success"
    assert telegram.answer_callback_query.await_count == 1
    assert user_doc(db)["application_status"] == "rejected"


def test_handler_failure_sends_error_message(db, telegram, ctx, dispatcher, monkeypatch):
    monkeypatch.setattr(ctx.applications, "start_application", AsyncMock(side_effect=RuntimeError("boom")))

    async def scenario():
        await dispatcher.process_update(private_update("/start"))
        return await dispatcher.process_update(private_update(BUTTON_APPLY))

    result = asyncio.run(scenario())

    assert result["status"] == "error"
    assert last_text_to(telegram, USER_ID) == ERROR_MESSAGE


def test_decision_failure_alerts_admin(db, config, telegram, ctx, dispatcher, monkeypatch):
    monkeypatch.setattr(ctx.applications, "decide", AsyncMock(side_effect=RuntimeError("boom")))

    asyncio.run(dispatcher.process_update(callback_update(config.admin_group_id, "app:approve:x")))

    call = telegram.answer_callback_query.call_args
    assert call.args[1] == ADMIN_ERROR_ALERT
    assert call.kwargs["show_alert"] is True


def test_back_to_back_files_are_all_kept(db, telegram, dispatcher):
    async def scenario():
        await dispatcher.process_update(private_update("/start"))
        await dispatcher.process_update(private_update(BUTTON_APPLY))
        await asyncio.gather(*(
            dispatcher.process_update(document_update(f"page{i}.jpg", 100)) for i in range(5)
        ))

    asyncio.run(scenario())

    assert len(db[DRAFT_APPLICATIONS].documents[0]["files"]) == 5

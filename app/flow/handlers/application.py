"""
app/flow/handlers/application.py

Handles: the application flow

- "Apply" -> fresh draft + COLLECTING_APPLICATION (or a refusal)
- Files while COLLECTING_APPLICATION -> appended to the draft
- "Submit application" -> Application posted to admins, status pending
"""

from typing import Dict, Any

from app.core.exceptions import (
    FileTooLargeError,
    MissingFileError,
    EmptySubmissionError,
    UserNotFoundError,
)
from app.flow.context import HandlerContext, reply
from app.flow.states import UserState
from app.schemas.telegram import ButtonPressEvent, GenericMessageEvent
from app.services.application_service import ApplyOutcome
from app.services.user_service import get_user
from utils.constants import (
    APPLY_PROMPT,
    ALREADY_APPLIED,
    APPROVED_USER,
    START_REQUIRED_MESSAGE,
    NEED_FILE_MESSAGE,
    FILE_TOO_LARGE,
    APPLICATION_DRAFT_ADDED,
    APPLICATION_RECEIVED,
    CHOOSE_BUTTON_MESSAGE,
    BUTTON_SUBMIT_APPLICATION,
)
from utils.telegram_utils import (
    main_menu_keyboard,
    cancel_keyboard,
    submit_application_keyboard,
)


async def handle_apply(ctx: HandlerContext, event: ButtonPressEvent) -> Dict[str, Any]:
    outcome = await ctx.applications.start_application(event.sender.id)

    if outcome == ApplyOutcome.STARTED:
        return reply(APPLY_PROMPT, cancel_keyboard())
    if outcome == ApplyOutcome.ALREADY_PENDING:
        return reply(ALREADY_APPLIED, main_menu_keyboard())
    if outcome == ApplyOutcome.ALREADY_APPROVED:
        return reply(APPROVED_USER, main_menu_keyboard())
    if outcome == ApplyOutcome.USER_NOT_FOUND:
        return reply(START_REQUIRED_MESSAGE)
    raise ValueError(f"Unhandled apply outcome: {outcome}")


async def handle_application_file(ctx: HandlerContext, event: GenericMessageEvent) -> Dict[str, Any]:
    """
    Collects one file into the draft. Text without a file and oversized
    files are refused without touching the draft.
    """
    try:
        file_count = await ctx.applications.add_file(event.sender.id, event.attachment)
    except MissingFileError:
        return reply(NEED_FILE_MESSAGE)
    except FileTooLargeError:
        return reply(FILE_TOO_LARGE)

    return reply(
        APPLICATION_DRAFT_ADDED.format(
            file_name=event.attachment.file_name,
            file_count=file_count,
            submit=BUTTON_SUBMIT_APPLICATION,
        ),
        submit_application_keyboard(),
    )


async def handle_submit(ctx: HandlerContext, event: ButtonPressEvent) -> Dict[str, Any]:
    user = await get_user(event.sender.id)
    if user is None:
        return reply(START_REQUIRED_MESSAGE)
    if user.state != UserState.COLLECTING_APPLICATION:
        return reply(CHOOSE_BUTTON_MESSAGE, main_menu_keyboard())

    try:
        await ctx.applications.submit(event.sender.id)
    except EmptySubmissionError:
        return reply(NEED_FILE_MESSAGE)
    except UserNotFoundError:
        return reply(START_REQUIRED_MESSAGE)

    return reply(APPLICATION_RECEIVED, main_menu_keyboard())

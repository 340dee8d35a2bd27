"""
app/schemas/telegram.py

Purpose: Telegram webhook payload schemas and parsers

- Validates incoming Bot API updates (the subset the bot reads)
- Normalizes them into one tagged inbound event:
  CommandEvent | ButtonPressEvent | AdminDecisionEvent | GenericMessageEvent
- Extracts the single file attachment a message may carry
"""

import re
from enum import Enum
from typing import Optional, List, Literal, Union, Annotated

from pydantic import BaseModel, ConfigDict, Field

from app.flow.states import DecisionAction
from app.models.application import FileAttachment, MediaType
from utils.constants import (
    BUTTON_MESSAGE_ADMIN,
    BUTTON_APPLY,
    BUTTON_CANCEL,
    BUTTON_BACK_TO_MENU,
    BUTTON_SUBMIT_APPLICATION,
    DECISION_CALLBACK_PREFIX,
)


# ============================================================
# RAW BOT API OBJECTS
# ============================================================

class _TelegramObject(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class TgUser(_TelegramObject):
    id: int
    is_bot: bool = False
    first_name: str = ""
    last_name: Optional[str] = None
    username: Optional[str] = None


class TgChat(_TelegramObject):
    id: int
    type: str = "private"
    title: Optional[str] = None

    @property
    def is_private(self) -> bool:
        return self.type == "private"


class TgPhotoSize(_TelegramObject):
    file_id: str
    file_unique_id: Optional[str] = None
    width: int = 0
    height: int = 0
    file_size: Optional[int] = None


class TgFile(_TelegramObject):
    """Audio, voice, video, document, sticker and video note share these fields."""
    file_id: str
    file_unique_id: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    mime_type: Optional[str] = None


class TgMessage(_TelegramObject):
    message_id: int
    chat: TgChat
    from_user: Optional[TgUser] = Field(default=None, alias="from")
    message_thread_id: Optional[int] = None
    is_topic_message: bool = False
    text: Optional[str] = None
    caption: Optional[str] = None
    reply_to_message: Optional["TgMessage"] = None
    photo: Optional[List[TgPhotoSize]] = None
    audio: Optional[TgFile] = None
    voice: Optional[TgFile] = None
    video: Optional[TgFile] = None
    document: Optional[TgFile] = None
    sticker: Optional[TgFile] = None
    video_note: Optional[TgFile] = None

    @property
    def text_or_caption(self) -> str:
        return self.text or self.caption or ""


class TgCallbackQuery(_TelegramObject):
    id: str
    from_user: TgUser = Field(alias="from")
    message: Optional[TgMessage] = None
    data: Optional[str] = None


class TgUpdate(_TelegramObject):
    update_id: int
    message: Optional[TgMessage] = None
    callback_query: Optional[TgCallbackQuery] = None


TgMessage.model_rebuild()


# ============================================================
# INBOUND EVENTS
# ============================================================

class MenuButton(str, Enum):
    """Reply keyboard buttons, valued by their exact label."""

    MESSAGE_ADMIN = BUTTON_MESSAGE_ADMIN
    APPLY = BUTTON_APPLY
    CANCEL = BUTTON_CANCEL
    BACK_TO_MENU = BUTTON_BACK_TO_MENU
    SUBMIT_APPLICATION = BUTTON_SUBMIT_APPLICATION


KNOWN_COMMANDS = ("start", "id")

DECISION_PATTERN = re.compile(
    rf"^{re.escape(DECISION_CALLBACK_PREFIX)}:(approve|reject):(.+)$"
)


class CommandEvent(BaseModel):
    kind: Literal["command"] = "command"
    command: str
    args: List[str] = Field(default_factory=list)
    chat: TgChat
    sender: TgUser
    message_id: int
    thread_id: Optional[int] = None


class ButtonPressEvent(BaseModel):
    kind: Literal["button"] = "button"
    button: MenuButton
    chat: TgChat
    sender: TgUser
    message_id: int


class AdminDecisionEvent(BaseModel):
    kind: Literal["decision"] = "decision"
    action: DecisionAction
    application_id: str
    callback_query_id: str
    sender: TgUser
    chat: Optional[TgChat] = None
    message_id: Optional[int] = None


class GenericMessageEvent(BaseModel):
    kind: Literal["message"] = "message"
    chat: TgChat
    sender: TgUser
    message_id: int
    text: Optional[str] = None
    attachment: Optional[FileAttachment] = None
    reply_to_message_id: Optional[int] = None
    thread_id: Optional[int] = None

    @property
    def text_or_caption(self) -> str:
        return self.text or ""


InboundEvent = Annotated[
    Union[CommandEvent, ButtonPressEvent, AdminDecisionEvent, GenericMessageEvent],
    Field(discriminator="kind"),
]


def _synthetic_name(prefix: str, unique: Optional[str], extension: str) -> str:
    return f"{prefix}_{unique}{extension}" if unique else f"{prefix}{extension}"


def get_file_info(message: TgMessage) -> Optional[FileAttachment]:
    """
    Extracts the single attachment carried by a message, if any.

    Photos arrive as several sizes; the largest one is kept. Media
    without a file name get a synthetic one so captions and summaries
    always have something to show.
    """
    if message.photo:
        largest = max(message.photo, key=lambda p: (p.file_size or 0, p.width * p.height))
        return FileAttachment(
            media_type=MediaType.PHOTO,
            file_id=largest.file_id,
            file_name=_synthetic_name("photo", largest.file_unique_id, ".jpg"),
            file_size=largest.file_size or 0,
        )

    candidates = (
        (MediaType.DOCUMENT, message.document, "document", ""),
        (MediaType.VIDEO, message.video, "video", ".mp4"),
        (MediaType.AUDIO, message.audio, "audio", ".mp3"),
        (MediaType.VOICE, message.voice, "voice", ".ogg"),
        (MediaType.VIDEO_NOTE, message.video_note, "video_note", ".mp4"),
        (MediaType.STICKER, message.sticker, "sticker", ".webp"),
    )
    for media_type, media, prefix, extension in candidates:
        if media is None:
            continue
        return FileAttachment(
            media_type=media_type,
            file_id=media.file_id,
            file_name=media.file_name or _synthetic_name(prefix, media.file_unique_id, extension),
            file_size=media.file_size or 0,
        )

    return None


def parse_command(text: str) -> Optional[tuple]:
    """
    Splits "/start@MyBot arg1 arg2" into ("start", ["arg1", "arg2"]).
    Returns None for text that is not a command.
    """
    if not text or not text.startswith("/"):
        return None
    parts = text.split()
    command = parts[0][1:].split("@", 1)[0].lower()
    if not command:
        return None
    return command, parts[1:]


def parse_update(update: TgUpdate) -> Optional[InboundEvent]:
    """
    Normalizes a Telegram update into an inbound event.

    Returns None for updates the bot does not act on (edited messages,
    channel posts, messages from other bots, unknown callback data).
    """
    if update.callback_query is not None:
        query = update.callback_query
        match = DECISION_PATTERN.match(query.data or "")
        if not match:
            return None
        message = query.message
        return AdminDecisionEvent(
            action=DecisionAction(match.group(1)),
            application_id=match.group(2),
            callback_query_id=query.id,
            sender=query.from_user,
            chat=message.chat if message else None,
            message_id=message.message_id if message else None,
        )

    message = update.message
    if message is None or message.from_user is None or message.from_user.is_bot:
        return None

    parsed = parse_command(message.text or "")
    if parsed and parsed[0] in KNOWN_COMMANDS:
        command, args = parsed
        return CommandEvent(
            command=command,
            args=args,
            chat=message.chat,
            sender=message.from_user,
            message_id=message.message_id,
            thread_id=message.message_thread_id,
        )

    if message.chat.is_private and message.text:
        try:
            button = MenuButton(message.text.strip())
        except ValueError:
            button = None
        if button is not None:
            return ButtonPressEvent(
                button=button,
                chat=message.chat,
                sender=message.from_user,
                message_id=message.message_id,
            )

    reply = message.reply_to_message
    return GenericMessageEvent(
        chat=message.chat,
        sender=message.from_user,
        message_id=message.message_id,
        text=message.text_or_caption or None,
        attachment=get_file_info(message),
        reply_to_message_id=reply.message_id if reply else None,
        thread_id=message.message_thread_id,
    )

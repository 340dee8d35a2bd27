"""
app/services/relay_service.py

Purpose: Message relay between users and the admin group

- Posts user messages and application summaries into the admin group
- Falls back to the group's general area when a forum topic is gone
- Binds every admin-group post to its user (thread_map)
- Routes admin replies back to the mapped user
- Appends every relayed message to the audit log (messages)
"""

from typing import Optional, Dict, Any, List

from app.core.config import BotConfig
from app.core.exceptions import ExternalServiceError
from app.core.logging import get_logger, LogContext
from app.db.mongo import get_thread_map_collection, get_messages_collection
from app.models.application import Application, FileAttachment
from app.models.thread_map import ThreadMapEntry, ThreadKind, MessageLog, Direction
from app.models.user import User
from app.services.telegram_service import TelegramService, TelegramAPIError, supports_caption
from utils.constants import (
    ADMIN_APPLICATION_HEADER,
    ADMIN_REPLY_PREFIX,
    ADMIN_REPLY_EMPTY,
    NO_USERNAME,
)
from utils.telegram_utils import (
    escape_html,
    format_file_size,
    make_user_link,
    admin_application_actions,
)
from utils.time_utils import utcnow, format_timestamp

logger = get_logger(__name__)

# Telegram limits media captions to 1024 characters
MAX_CAPTION_LENGTH = 1024
MAX_RELAYED_TEXT = 3500


def build_admin_caption(
    user_id: int,
    first_name: Optional[str],
    last_name: Optional[str],
    username: Optional[str],
    text: str,
    attachment: Optional[FileAttachment]
) -> str:
    """
    Builds the HTML header shown above a user's message in the admin group.
    """
    handle = f"@{escape_html(username)}" if username else NO_USERNAME
    caption = (
        f"👤 User: {make_user_link(user_id, first_name, last_name)} {handle}\n"
        f"🆔 ID: {user_id}\n\n"
    )
    if text:
        if len(text) > MAX_RELAYED_TEXT:
            text = text[:MAX_RELAYED_TEXT] + "…"
        caption += f"💬 Message: {escape_html(text)}\n"
    if attachment:
        caption += f"📎 File: {escape_html(attachment.file_name)}\n"
        caption += f"📊 Size: {format_file_size(attachment.file_size)}\n"
        caption += f"🗂 Type: {attachment.media_type.value.upper()}"
    return caption


def build_application_summary(user: User, application: Application) -> str:
    """
    Builds the HTML summary posted for a submitted application.
    """
    handle = f"@{escape_html(user.username)}" if user.username else NO_USERNAME
    summary = (
        f"{ADMIN_APPLICATION_HEADER}\n\n"
        f"👤 User: {make_user_link(user.user_id, user.first_name, user.last_name)} {handle}\n"
        f"🆔 ID: {user.user_id}\n"
        f"📅 Submitted: {format_timestamp(application.submitted_at)} UTC\n"
        f"📁 Files: {len(application.files)}\n"
    )
    for index, attachment in enumerate(application.files, start=1):
        summary += f"\n{index}. {escape_html(attachment.file_name)} ({format_file_size(attachment.file_size)})"
    return summary


class RelayService:
    """
    Routes messages between end users and the admin group.
    """

    def __init__(self, telegram: TelegramService, config: BotConfig):
        self.telegram = telegram
        self.config = config

    # ------------------------------------------------------------------
    # Admin group delivery with topic fallback
    # ------------------------------------------------------------------

    async def send_text_to_admin(
        self,
        text: str,
        thread_id: Optional[int] = None,
        *,
        reply_markup: Optional[Dict[str, Any]] = None,
        reply_to_message_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Sends HTML text into the admin group, inside thread_id when given.
        A deleted topic is retried once without the topic.
        """
        try:
            return await self.telegram.send_message(
                self.config.admin_group_id,
                text,
                parse_mode="HTML",
                message_thread_id=thread_id,
                reply_to_message_id=reply_to_message_id,
                reply_markup=reply_markup,
            )
        except TelegramAPIError as e:
            if not (thread_id and e.is_thread_not_found):
                raise
            logger.warning(f"Topic {thread_id} not found, sending to the group's general area")
            return await self.telegram.send_message(
                self.config.admin_group_id,
                text,
                parse_mode="HTML",
                reply_to_message_id=reply_to_message_id,
                reply_markup=reply_markup,
            )

    async def send_media_to_admin(
        self,
        attachment: FileAttachment,
        thread_id: Optional[int] = None,
        *,
        caption: Optional[str] = None,
        reply_to_message_id: Optional[int] = None
    ) -> Dict[str, Any]:
        """
        Sends a file into the admin group with the same topic fallback.
        """
        try:
            return await self.telegram.send_media(
                self.config.admin_group_id,
                attachment,
                caption=caption,
                parse_mode="HTML" if caption else None,
                message_thread_id=thread_id,
                reply_to_message_id=reply_to_message_id,
            )
        except TelegramAPIError as e:
            if not (thread_id and e.is_thread_not_found):
                raise
            logger.warning(f"Topic {thread_id} not found, sending file to the group's general area")
            return await self.telegram.send_media(
                self.config.admin_group_id,
                attachment,
                caption=caption,
                parse_mode="HTML" if caption else None,
                reply_to_message_id=reply_to_message_id,
            )

    # ------------------------------------------------------------------
    # Thread map and audit log
    # ------------------------------------------------------------------

    async def record_thread(
        self,
        group_message_id: int,
        user_id: int,
        kind: ThreadKind = ThreadKind.MESSAGE,
        application_id: Optional[str] = None
    ) -> None:
        """
        Binds an admin-group post to a user. Entries are append-only: an
        existing binding for the same post is never overwritten, so a
        retried write is harmless.
        """
        thread_map = get_thread_map_collection()
        await thread_map.update_one(
            {"group_message_id": group_message_id},
            {
                "$setOnInsert": {
                    "group_message_id": group_message_id,
                    "user_id": user_id,
                    "kind": kind.value,
                    "application_id": application_id,
                    "created_at": utcnow(),
                }
            },
            upsert=True
        )
        logger.debug(f"Mapped group message {group_message_id} -> user {user_id} ({kind.value})")

    async def find_thread(self, group_message_id: int) -> Optional[ThreadMapEntry]:
        thread_map = get_thread_map_collection()
        return ThreadMapEntry.from_document(
            await thread_map.find_one({"group_message_id": group_message_id})
        )

    async def log_message(self, entry: MessageLog) -> None:
        messages = get_messages_collection()
        if entry.created_at is None:
            entry.created_at = utcnow()
        await messages.insert_one(entry.to_document())

    # ------------------------------------------------------------------
    # User -> admin
    # ------------------------------------------------------------------

    async def route_to_admin(
        self,
        user_id: int,
        text: str = "",
        attachment: Optional[FileAttachment] = None,
        *,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        username: Optional[str] = None
    ) -> int:
        """
        Relays a user's free-form message into the admin group (message
        topic) and maps the resulting post(s) back to the user.

        Media that cannot carry the header (stickers, video notes, or a
        header longer than a caption allows) is posted as a reply to a
        separate header text post; both posts are mapped.

        Returns:
            The group message id of the header post
        """
        with LogContext(user_id=user_id):
            thread_id = self.config.message_topic_id
            caption = build_admin_caption(user_id, first_name, last_name, username, text, attachment)
            posted: List[int] = []

            if attachment is None:
                sent = await self.send_text_to_admin(caption, thread_id)
                posted.append(sent["message_id"])
            elif supports_caption(attachment.media_type) and len(caption) <= MAX_CAPTION_LENGTH:
                sent = await self.send_media_to_admin(attachment, thread_id, caption=caption)
                posted.append(sent["message_id"])
            else:
                header = await self.send_text_to_admin(caption, thread_id)
                posted.append(header["message_id"])
                media = await self.send_media_to_admin(
                    attachment, thread_id, reply_to_message_id=header["message_id"]
                )
                posted.append(media["message_id"])

            for group_message_id in posted:
                await self.record_thread(group_message_id, user_id, ThreadKind.MESSAGE)

            await self.log_message(MessageLog(
                user_id=user_id,
                direction=Direction.TO_ADMIN,
                kind=ThreadKind.MESSAGE,
                content=text,
                media_type=attachment.media_type.value if attachment else "text",
                media_file_id=attachment.file_id if attachment else None,
                file_name=attachment.file_name if attachment else None,
                file_size=attachment.file_size if attachment else None,
                group_message_id=posted[0],
                topic_id=thread_id,
            ))

            logger.info(f"Relayed user message to admin group as {posted[0]}")
            return posted[0]

    async def post_application(self, user: User, application: Application) -> int:
        """
        Posts an application summary with approve/reject buttons into the
        application topic, then every file as a reply to it.

        A file that fails to send is logged and skipped; the summary and
        its mapping are what the decision depends on.

        Returns:
            The group message id of the summary post
        """
        with LogContext(user_id=user.user_id, application_id=application.application_id):
            thread_id = self.config.application_topic_id

            root = await self.send_text_to_admin(
                build_application_summary(user, application),
                thread_id,
                reply_markup=admin_application_actions(application.application_id),
            )
            root_id = root["message_id"]

            await self.record_thread(
                root_id, user.user_id, ThreadKind.APPLICATION, application.application_id
            )

            for attachment in application.files:
                try:
                    sent = await self.send_media_to_admin(
                        attachment, thread_id, reply_to_message_id=root_id
                    )
                except ExternalServiceError as e:
                    logger.error(f"Failed to relay application file {attachment.file_name}: {e}")
                    continue
                await self.record_thread(
                    sent["message_id"], user.user_id, ThreadKind.APPLICATION, application.application_id
                )

            await self.log_message(MessageLog(
                user_id=user.user_id,
                direction=Direction.TO_ADMIN,
                kind=ThreadKind.APPLICATION,
                content=f"Application {application.application_id} submitted ({len(application.files)} files)",
                group_message_id=root_id,
                topic_id=thread_id,
            ))

            logger.info(f"Application summary posted as {root_id}")
            return root_id

    # ------------------------------------------------------------------
    # Admin -> user
    # ------------------------------------------------------------------

    async def route_to_user(
        self,
        reply_to_message_id: Optional[int],
        group_message_id: int,
        text: str = "",
        attachment: Optional[FileAttachment] = None,
        thread_id: Optional[int] = None
    ) -> bool:
        """
        Forwards an admin's reply to the user mapped to the replied-to post.

        Replies to posts the bot never mapped are not conversations with a
        user and are dropped silently.

        Returns:
            True if the reply was delivered
        """
        if not reply_to_message_id:
            return False

        entry = await self.find_thread(reply_to_message_id)
        if entry is None:
            logger.debug(f"Reply to untracked group message {reply_to_message_id} ignored")
            return False

        with LogContext(user_id=entry.user_id):
            if attachment is not None and text and (
                not supports_caption(attachment.media_type) or len(text) > MAX_CAPTION_LENGTH
            ):
                header = await self.telegram.send_message(entry.user_id, f"{ADMIN_REPLY_PREFIX}\n\n{text}")
                await self.telegram.send_media(
                    entry.user_id, attachment, reply_to_message_id=header["message_id"]
                )
            elif attachment is not None:
                await self.telegram.send_media(entry.user_id, attachment, caption=text or None)
            else:
                await self.telegram.send_message(
                    entry.user_id,
                    f"{ADMIN_REPLY_PREFIX}\n\n{text}" if text else ADMIN_REPLY_EMPTY,
                )

            await self.log_message(MessageLog(
                user_id=entry.user_id,
                direction=Direction.TO_USER,
                kind=entry.kind,
                content=text,
                media_type=attachment.media_type.value if attachment else None,
                media_file_id=attachment.file_id if attachment else None,
                file_name=attachment.file_name if attachment else None,
                file_size=attachment.file_size if attachment else None,
                group_message_id=group_message_id,
                reply_to_group_message_id=reply_to_message_id,
                topic_id=thread_id,
            ))

            logger.info(f"Admin reply {group_message_id} delivered")
            return True

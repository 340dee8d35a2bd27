"""
app/services/telegram_service.py

Purpose: Telegram Bot API client

- Sends text and typed media to users and to the admin group
- Supports forum topics, reply linkage and keyboards
- Removes inline keyboards and acknowledges button presses
- Long polling and webhook registration
"""

import re
import httpx
from typing import Dict, Any, Optional, List

from app.core.config import settings
from app.core.exceptions import ExternalServiceError
from app.core.logging import get_logger
from app.models.application import FileAttachment, MediaType

logger = get_logger(__name__)

THREAD_NOT_FOUND = re.compile(r"thread not found", re.IGNORECASE)

# media type -> (Bot API method, payload field, supports caption)
MEDIA_METHODS = {
    MediaType.PHOTO: ("sendPhoto", "photo", True),
    MediaType.AUDIO: ("sendAudio", "audio", True),
    MediaType.VOICE: ("sendVoice", "voice", True),
    MediaType.VIDEO: ("sendVideo", "video", True),
    MediaType.DOCUMENT: ("sendDocument", "document", True),
    MediaType.STICKER: ("sendSticker", "sticker", False),
    MediaType.VIDEO_NOTE: ("sendVideoNote", "video_note", False),
}

ALLOWED_UPDATES = ["message", "callback_query"]


class TelegramAPIError(ExternalServiceError):
    """Raised when the Bot API answers with ok=false."""

    def __init__(self, method: str, error_code: int, description: str, parameters: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Telegram {method} failed: {error_code} {description}",
            details={"method": method, "error_code": error_code, "description": description},
        )
        self.method = method
        self.error_code = error_code
        self.description = description or ""
        self.parameters = parameters or {}

    @property
    def is_thread_not_found(self) -> bool:
        """The targeted forum topic was deleted or never existed."""
        return self.error_code == 400 and bool(THREAD_NOT_FOUND.search(self.description))


def supports_caption(media_type: MediaType) -> bool:
    return MEDIA_METHODS.get(media_type, MEDIA_METHODS[MediaType.DOCUMENT])[2]


class TelegramService:
    """Minimal async client for the Telegram Bot API."""

    def __init__(
        self,
        token: str,
        *,
        base_url: str = "https://api.telegram.org",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None
    ):
        self.token = token
        self._timeout = timeout
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._base_url = f"{base_url.rstrip('/')}/bot{token}"

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, payload: Dict[str, Any], *, timeout: Optional[float] = None) -> Any:
        """
        Calls a Bot API method and returns its "result".

        Raises:
            TelegramAPIError: The API rejected the call
            ExternalServiceError: The API could not be reached
        """
        url = f"{self._base_url}/{method}"
        try:
            response = await self._client.post(url, json=payload, timeout=timeout or self._timeout)
        except httpx.TimeoutException as e:
            logger.error(f"Telegram API timeout on {method}")
            raise ExternalServiceError(f"Telegram {method} timed out") from e
        except httpx.RequestError as e:
            logger.error(f"Network error calling Telegram {method}: {e}")
            raise ExternalServiceError(f"Unable to reach Telegram for {method}") from e

        try:
            data = response.json()
        except ValueError:
            raise TelegramAPIError(method, response.status_code, response.text[:200])

        if not isinstance(data, dict) or not data.get("ok"):
            data = data if isinstance(data, dict) else {}
            raise TelegramAPIError(
                method,
                data.get("error_code", response.status_code),
                data.get("description", ""),
                data.get("parameters"),
            )

        return data.get("result")

    @staticmethod
    def _target(
        payload: Dict[str, Any],
        message_thread_id: Optional[int],
        reply_to_message_id: Optional[int],
        reply_markup: Optional[Dict[str, Any]],
        parse_mode: Optional[str],
    ) -> Dict[str, Any]:
        if message_thread_id:
            payload["message_thread_id"] = message_thread_id
        if reply_to_message_id:
            payload["reply_parameters"] = {
                "message_id": reply_to_message_id,
                "allow_sending_without_reply": True,
            }
        if reply_markup:
            payload["reply_markup"] = reply_markup
        if parse_mode:
            payload["parse_mode"] = parse_mode
        return payload

    async def send_message(
        self,
        chat_id: int,
        text: str,
        *,
        parse_mode: Optional[str] = None,
        message_thread_id: Optional[int] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Sends a text message.

        Returns:
            The sent Message object (dict with "message_id")
        """
        payload = self._target(
            {"chat_id": chat_id, "text": text},
            message_thread_id,
            reply_to_message_id,
            reply_markup,
            parse_mode,
        )
        return await self._request("sendMessage", payload)

    async def send_media(
        self,
        chat_id: int,
        attachment: FileAttachment,
        *,
        caption: Optional[str] = None,
        parse_mode: Optional[str] = None,
        message_thread_id: Optional[int] = None,
        reply_to_message_id: Optional[int] = None,
        reply_markup: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Sends a previously uploaded file by its file_id, using the Bot API
        method that matches its media type. Captions are dropped for
        stickers and video notes, which cannot carry one.
        """
        method, field, captionable = MEDIA_METHODS.get(
            attachment.media_type, MEDIA_METHODS[MediaType.DOCUMENT]
        )
        payload: Dict[str, Any] = {"chat_id": chat_id, field: attachment.file_id}
        if caption and captionable:
            payload["caption"] = caption
        else:
            parse_mode = None

        payload = self._target(payload, message_thread_id, reply_to_message_id, reply_markup, parse_mode)
        return await self._request(method, payload)

    async def edit_message_reply_markup(
        self,
        chat_id: int,
        message_id: int,
        reply_markup: Optional[Dict[str, Any]] = None
    ) -> Any:
        """Replaces the inline keyboard of a message; no markup removes it."""
        payload: Dict[str, Any] = {"chat_id": chat_id, "message_id": message_id}
        if reply_markup:
            payload["reply_markup"] = reply_markup
        return await self._request("editMessageReplyMarkup", payload)

    async def answer_callback_query(
        self,
        callback_query_id: str,
        text: Optional[str] = None,
        show_alert: bool = False
    ) -> Any:
        payload: Dict[str, Any] = {"callback_query_id": callback_query_id}
        if text:
            payload["text"] = text
        if show_alert:
            payload["show_alert"] = True
        return await self._request("answerCallbackQuery", payload)

    async def get_updates(self, offset: Optional[int] = None, timeout: int = 25) -> List[Dict[str, Any]]:
        """Long-polls for updates; the HTTP timeout outlives the poll."""
        payload: Dict[str, Any] = {"timeout": timeout, "allowed_updates": ALLOWED_UPDATES}
        if offset is not None:
            payload["offset"] = offset
        result = await self._request("getUpdates", payload, timeout=timeout + 10)
        return result or []

    async def set_webhook(self, url: str, secret_token: Optional[str] = None) -> Any:
        payload: Dict[str, Any] = {"url": url, "allowed_updates": ALLOWED_UPDATES}
        if secret_token:
            payload["secret_token"] = secret_token
        logger.info(f"Registering Telegram webhook: {url}")
        return await self._request("setWebhook", payload)

    async def delete_webhook(self, drop_pending_updates: bool = False) -> Any:
        return await self._request("deleteWebhook", {"drop_pending_updates": drop_pending_updates})

    async def get_me(self) -> Dict[str, Any]:
        return await self._request("getMe", {})


_telegram_service: Optional[TelegramService] = None


def get_telegram_service() -> TelegramService:
    """Get or create the global Telegram client."""
    global _telegram_service
    if _telegram_service is None:
        _telegram_service = TelegramService(
            settings.BOT_TOKEN,
            base_url=settings.TELEGRAM_API_URL,
            timeout=settings.TELEGRAM_TIMEOUT,
        )
    return _telegram_service


async def close_telegram_service():
    """Close the Telegram client and cleanup resources."""
    global _telegram_service
    if _telegram_service:
        await _telegram_service.close()
        _telegram_service = None

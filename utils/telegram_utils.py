"""
utils/telegram_utils.py

Purpose: Telegram message builders

- Reply keyboards (main menu, cancel, submit)
- Inline decision keyboard for the admin summary post
- HTML helpers for captions (escaping, user links, file sizes)
"""

from html import escape
from typing import List, Dict, Optional, Any

from utils.constants import (
    BUTTON_MESSAGE_ADMIN,
    BUTTON_APPLY,
    BUTTON_CANCEL,
    BUTTON_BACK_TO_MENU,
    BUTTON_SUBMIT_APPLICATION,
    BUTTON_APPROVE,
    BUTTON_REJECT,
    DECISION_CALLBACK_PREFIX,
)


def escape_html(text: Optional[str]) -> str:
    """
    Escapes text for Telegram HTML parse mode.
    """
    if not text:
        return ""
    return escape(str(text), quote=False)


def format_file_size(size: Optional[int]) -> str:
    """
    Formats a byte count for humans.

    Examples:
        512 -> "512 B"
        1536 -> "1.5 KB"
        31457280 -> "30.0 MB"
    """
    if not size or size < 0:
        return "0 B"
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    if size < 1024 * 1024 * 1024:
        return f"{size / (1024 * 1024):.1f} MB"
    return f"{size / (1024 * 1024 * 1024):.1f} GB"


def make_user_link(user_id: int, first_name: Optional[str] = None, last_name: Optional[str] = None) -> str:
    """
    Builds an HTML mention that opens the user's profile.
    """
    name = " ".join(part for part in (first_name, last_name) if part) or str(user_id)
    return f'<a href="tg://user?id={user_id}">{escape_html(name)}</a>'


def _reply_keyboard(rows: List[List[str]]) -> Dict[str, Any]:
    return {
        "keyboard": [[{"text": label} for label in row] for row in rows],
        "resize_keyboard": True,
        "is_persistent": True,
    }


def main_menu_keyboard() -> Dict[str, Any]:
    return _reply_keyboard([
        [BUTTON_MESSAGE_ADMIN],
        [BUTTON_APPLY],
    ])


def cancel_keyboard() -> Dict[str, Any]:
    return _reply_keyboard([
        [BUTTON_CANCEL],
        [BUTTON_BACK_TO_MENU],
    ])


def submit_application_keyboard() -> Dict[str, Any]:
    return _reply_keyboard([
        [BUTTON_SUBMIT_APPLICATION],
        [BUTTON_CANCEL],
    ])


def decision_callback_data(action: str, application_id: str) -> str:
    return f"{DECISION_CALLBACK_PREFIX}:{action}:{application_id}"


def admin_application_actions(application_id: str) -> Dict[str, Any]:
    """
    Inline keyboard with approve/reject buttons addressed to one application.
    """
    return {
        "inline_keyboard": [[
            {"text": BUTTON_APPROVE, "callback_data": decision_callback_data("approve", application_id)},
            {"text": BUTTON_REJECT, "callback_data": decision_callback_data("reject", application_id)},
        ]]
    }

"""
app/flow/context.py

Purpose: Collaborators handed to every flow handler

- Immutable bot configuration
- Telegram client, relay and application workflow
"""

from dataclasses import dataclass
from typing import Optional, Dict, Any

from app.core.config import BotConfig
from app.services.application_service import ApplicationService
from app.services.relay_service import RelayService
from app.services.telegram_service import TelegramService


@dataclass(frozen=True)
class HandlerContext:
    config: BotConfig
    telegram: TelegramService
    relay: RelayService
    applications: ApplicationService

    @classmethod
    def build(cls, config: BotConfig, telegram: TelegramService) -> "HandlerContext":
        relay = RelayService(telegram, config)
        return cls(
            config=config,
            telegram=telegram,
            relay=relay,
            applications=ApplicationService(config, relay),
        )

    def is_admin_group(self, chat_id: Optional[int]) -> bool:
        return chat_id is not None and chat_id == self.config.admin_group_id


def reply(text: str, reply_markup: Optional[Dict[str, Any]] = None, parse_mode: Optional[str] = None) -> Dict[str, Any]:
    """Response payload returned by handlers and sent by the dispatcher."""
    return {"text": text, "reply_markup": reply_markup, "parse_mode": parse_mode}

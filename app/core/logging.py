"""
app/core/logging.py

Purpose: Logging configuration

- JSON lines in production, coloured single lines in development
- Per-task context (user_id, chat_id, state, application_id) carried
  through contextvars so concurrent updates never mix their fields
- Bot token masked wherever it would appear (Bot API URLs)
"""

import contextvars
import json
import logging
import re
import sys
from datetime import datetime, timezone
from typing import Dict, Any

from app.core.config import settings


CONTEXT_FIELDS = ("user_id", "chat_id", "state", "application_id")

# Short labels for the development formatter
_CONTEXT_LABELS = {
    "user_id": "user",
    "chat_id": "chat",
    "state": "state",
    "application_id": "application",
}

_log_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar("relaybot_log_context", default={})

BOT_TOKEN_PATTERN = re.compile(r"bot\d+:[A-Za-z0-9_-]+")


def _context_of(record: logging.LogRecord) -> Dict[str, Any]:
    return {field: getattr(record, field) for field in CONTEXT_FIELDS if getattr(record, field, None) is not None}


class StructuredFormatter(logging.Formatter):
    """
    One JSON object per line for log shippers.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "location": f"{record.module}:{record.funcName}:{record.lineno}",
        }
        entry.update(_context_of(record))

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str, ensure_ascii=False)


class DevelopmentFormatter(logging.Formatter):
    """
    Human-readable formatter for development environment.
    """

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.RESET)
        clock = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"{color}[{clock}] {record.levelname:<8}{self.RESET} {record.name}: {record.getMessage()}"

        context = _context_of(record)
        if context:
            line += " [" + ", ".join(f"{_CONTEXT_LABELS[k]}={v}" for k, v in context.items()) + "]"

        if record.exc_info:
            line += "\n" + self.formatException(record.exc_info)

        return line


class TokenRedactingFilter(logging.Filter):
    """Masks the bot token in messages; it is part of every Bot API URL."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        if BOT_TOKEN_PATTERN.search(message):
            record.msg = BOT_TOKEN_PATTERN.sub("bot<redacted>", message)
            record.args = None
        return True


class ContextFilter(logging.Filter):
    """Copies the current LogContext onto records that do not set the field themselves."""

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in _log_context.get().items():
            if getattr(record, key, None) is None:
                setattr(record, key, value)
        return True


def setup_logging():
    """
    Configures application-wide logging.
    Uses JSON format in production, human-readable otherwise.
    """
    log_level = getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(StructuredFormatter() if settings.is_production else DevelopmentFormatter())
    handler.addFilter(ContextFilter())
    handler.addFilter(TokenRedactingFilter())

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    # Third-party chatter; httpx would log every Bot API call at INFO
    for noisy in ("httpx", "httpcore", "motor", "pymongo", "uvicorn.access"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger = logging.getLogger("relaybot")
    logger.info(f"Logging configured ({settings.ENVIRONMENT}, level {settings.LOG_LEVEL})")
    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger under the "relaybot" namespace.
    """
    return logging.getLogger(f"relaybot.{name}")


class LogContext:
    """
    Adds structured fields to every record logged inside the block, in
    the current task only. Blocks nest; inner values win.

    Usage:
        with LogContext(user_id=123, state="collecting_application"):
            logger.info("File appended to draft")
    """

    def __init__(self, **kwargs):
        self.context = kwargs
        self._token = None

    def __enter__(self):
        self._token = _log_context.set({**_log_context.get(), **self.context})
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        _log_context.reset(self._token)


def current_log_context() -> Dict[str, Any]:
    return dict(_log_context.get())

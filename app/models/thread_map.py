"""
app/models/thread_map.py

Purpose: Relay bookkeeping models

- ThreadMapEntry: admin group post id -> originating user
- MessageLog: append-only audit record of every relayed message
"""

from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any

from pydantic import BaseModel, ConfigDict


class ThreadKind(str, Enum):
    MESSAGE = "message"
    APPLICATION = "application"


class Direction(str, Enum):
    TO_ADMIN = "to_admin"
    TO_USER = "to_user"


class ThreadMapEntry(BaseModel):
    model_config = ConfigDict(extra="ignore")

    group_message_id: int
    user_id: int
    kind: ThreadKind = ThreadKind.MESSAGE
    application_id: Optional[str] = None
    created_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Optional[Dict[str, Any]]) -> Optional["ThreadMapEntry"]:
        if not document:
            return None
        return cls.model_validate(document)


class MessageLog(BaseModel):
    model_config = ConfigDict(extra="ignore", use_enum_values=True, validate_default=True)

    user_id: int
    direction: Direction
    kind: ThreadKind = ThreadKind.MESSAGE
    content: str = ""
    media_type: Optional[str] = None
    media_file_id: Optional[str] = None
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    group_message_id: Optional[int] = None
    reply_to_group_message_id: Optional[int] = None
    topic_id: Optional[int] = None
    created_at: Optional[datetime] = None

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="python")

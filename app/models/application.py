"""
app/models/application.py

Purpose: Application document models

- FileAttachment value type (Telegram file handle + metadata)
- DraftApplication: the in-progress collection of files, one per user
- Application: immutable submission snapshot plus its admin decision
"""

from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field

from app.flow.states import SubmissionStatus


class MediaType(str, Enum):
    PHOTO = "photo"
    AUDIO = "audio"
    VOICE = "voice"
    VIDEO = "video"
    DOCUMENT = "document"
    STICKER = "sticker"
    VIDEO_NOTE = "video_note"


class FileAttachment(BaseModel):
    """A single file as Telegram stores it; file_id is opaque."""

    model_config = ConfigDict(extra="ignore")

    media_type: MediaType
    file_id: str
    file_name: str
    file_size: int = 0

    def to_document(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class DraftApplication(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: int
    files: List[FileAttachment] = Field(default_factory=list)
    expires_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_document(cls, document: Optional[Dict[str, Any]]) -> Optional["DraftApplication"]:
        if not document:
            return None
        return cls.model_validate(document)


class Application(BaseModel):
    model_config = ConfigDict(extra="ignore", arbitrary_types_allowed=True, populate_by_name=True)

    id: Optional[ObjectId] = Field(default=None, alias="_id")
    user_id: int
    files: List[FileAttachment] = Field(default_factory=list)
    status: SubmissionStatus = SubmissionStatus.SUBMITTED
    submitted_at: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    group_message_id: Optional[int] = None

    @property
    def application_id(self) -> str:
        return str(self.id) if self.id is not None else ""

    def to_document(self) -> Dict[str, Any]:
        document = {
            "user_id": self.user_id,
            "files": [f.to_document() for f in self.files],
            "status": self.status.value,
            "submitted_at": self.submitted_at,
            "processed_at": self.processed_at,
            "group_message_id": self.group_message_id,
        }
        if self.id is not None:
            document["_id"] = self.id
        return document

    @classmethod
    def from_document(cls, document: Optional[Dict[str, Any]]) -> Optional["Application"]:
        if not document:
            return None
        return cls.model_validate(document)

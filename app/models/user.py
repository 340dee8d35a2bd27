"""
app/models/user.py

Purpose: User document model

- Telegram identity (id, username, names)
- Current conversation state
- Application status mirrored from the latest decision
"""

from datetime import datetime
from typing import Optional, Dict, Any

from pydantic import BaseModel, ConfigDict, field_validator

from app.flow.states import (
    UserState,
    ApplicationStatus,
    parse_state,
    parse_application_status,
)


class User(BaseModel):
    model_config = ConfigDict(extra="ignore")

    user_id: int
    username: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    state: UserState = UserState.NONE
    application_status: ApplicationStatus = ApplicationStatus.NONE
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("state", mode="before")
    @classmethod
    def coerce_state(cls, v):
        return parse_state(v)

    @field_validator("application_status", mode="before")
    @classmethod
    def coerce_application_status(cls, v):
        return parse_application_status(v)

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @classmethod
    def from_document(cls, document: Optional[Dict[str, Any]]) -> Optional["User"]:
        if not document:
            return None
        return cls.model_validate(document)

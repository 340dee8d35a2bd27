"""
app/schemas/response.py

Purpose: HTTP response bodies
"""

from pydantic import BaseModel
from typing import Optional, Any


class ErrorResponse(BaseModel):
    """
    Error envelope returned by every exception handler.
    """
    error: str
    code: str
    details: Optional[Any] = None


class WebhookAck(BaseModel):
    """Body returned to Telegram for every webhook delivery."""
    ok: bool = True
    status: Optional[str] = None

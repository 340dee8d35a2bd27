"""
utils/time_utils.py

Purpose: Time and expiry helpers

- UTC timestamps for stored documents
- Draft expiry calculations
- Timestamp formatting
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """
    Returns the current time as an aware UTC datetime.
    """
    return datetime.now(timezone.utc)


def calculate_draft_expiry(ttl_hours: int = 24, now: Optional[datetime] = None) -> datetime:
    """
    Calculates when a draft application expires, counted from now.
    """
    return (now or utcnow()) + timedelta(hours=ttl_hours)


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """
    Checks whether an expiry timestamp has passed.
    Naive datetimes are read as UTC.
    """
    if not expires_at:
        return True
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return (now or utcnow()) > expires_at


def format_timestamp(dt: Optional[datetime], format_str: str = "%Y-%m-%d %H:%M:%S") -> str:
    """
    Formats a datetime object to string.
    """
    if not dt:
        return "N/A"
    return dt.strftime(format_str)

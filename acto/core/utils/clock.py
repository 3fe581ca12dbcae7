"""
UTC timestamps for stored records and wire payloads.

Records are stored as naive UTC datetimes (SQLite drops tzinfo); payloads carry
ISO-8601 strings with an explicit offset.
"""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value: Optional[datetime]) -> Optional[str]:
    """Render a stored naive-UTC datetime as ISO-8601 with a UTC offset."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()

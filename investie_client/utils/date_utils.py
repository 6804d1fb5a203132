"""Date manipulation utilities"""

from datetime import datetime, timezone
from typing import Any, Optional


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 timestamp from the platform; None for missing or malformed values"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        # Python < 3.11 does not accept the trailing "Z"
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

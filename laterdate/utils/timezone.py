from datetime import datetime, timezone as dt_timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(dt_timezone.utc)


def to_utc_aware(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize any datetime to UTC-aware (tzinfo=UTC).
    - Aware datetimes are converted to UTC
    - Naive datetimes are assumed UTC and tz attached
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=dt_timezone.utc)
    return dt.astimezone(dt_timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting both Z and +00:00, into UTC-aware."""
    return to_utc_aware(datetime.fromisoformat(value.strip().replace("Z", "+00:00")))

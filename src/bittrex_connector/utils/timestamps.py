"""Timestamp helpers. All connector timestamps are timezone-aware UTC."""

from datetime import datetime, timezone
from typing import Optional


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC; convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_iso8601(value: Optional[str]) -> Optional[datetime]:
    """
    Parse the exchange's ISO 8601 timestamps.

    Bittrex omits the zone designator (times are UTC) and uses a variable
    number of fractional digits, e.g. ``2014-07-09T03:21:20.08``.
    """
    if not value:
        return None
    text = value.strip().rstrip("Z")
    if "." in text:
        whole, fraction = text.split(".", 1)
        text = f"{whole}.{fraction[:6].ljust(6, '0')}"
    return ensure_utc(datetime.fromisoformat(text))


def utcnow() -> datetime:
    return datetime.now(timezone.utc)

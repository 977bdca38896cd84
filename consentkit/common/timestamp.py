"""
Timestamp Utilities

ISO-8601 helpers shared by the store and the delivery payloads.
All timestamps are UTC.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """
    Current UTC time as an ISO-8601 string with a trailing "Z".

    Matches the format the consent backend expects, e.g.
    "2024-01-15T10:30:17Z".
    """
    return to_iso(utc_now())


def to_iso(ts: datetime) -> str:
    """Format a datetime as ISO-8601 UTC with second precision"""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")

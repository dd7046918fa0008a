"""
Time helpers.

All times are stored as naive UTC datetimes. Upstream timestamps arrive as
ISO-8601 strings with a ``Z`` suffix and are normalised here.
"""
from datetime import datetime, date, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as a naive UTC datetime."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def utc_today() -> date:
    """Calendar day used for run gating and featured pick sets."""
    return utcnow().date()


def parse_iso_utc(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO-8601 timestamp into a naive UTC datetime.

    Returns None for missing or unparseable values.

    Examples:
        >>> parse_iso_utc("2025-10-12T17:00:00Z")
        datetime.datetime(2025, 10, 12, 17, 0)
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed

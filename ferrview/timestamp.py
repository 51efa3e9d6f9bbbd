"""UTC timestamps in the YYYY-MM-DDTHH:MM:SSZ form used on the wire."""

from __future__ import annotations

from datetime import datetime, timezone

_UTC_FORMAT = "%Y-%m-%dT%H:%M:%SZ"


def format_utc(dt: datetime) -> str:
    """Format a datetime as UTC with second precision; naive values are taken as UTC."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    utc = dt.astimezone(timezone.utc)
    return f"{utc.year:04d}" + utc.strftime(_UTC_FORMAT)[utc.strftime("%Y").__len__():]


def utc_timestamp() -> str:
    """The current time as a UTC timestamp string."""
    return format_utc(datetime.now(timezone.utc))
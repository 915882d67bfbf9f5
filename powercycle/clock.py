"""
Time helpers for a single power-cycle run.

A run pins "now" once and passes it explicitly to everything that needs it,
so evaluation is reproducible in tests and across resources.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

UTC = timezone.utc


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def parse_time(value: Union[str, int, float, datetime]) -> datetime:
    """
    Parse a run time into an aware UTC datetime.

    Args:
        value: ISO-8601 string (``Z`` suffix allowed), epoch milliseconds, or a datetime.
            Naive values are taken to be UTC.

    Returns:
        Aware datetime in UTC

    Raises:
        ValueError: If the value can't be interpreted as a time
    """
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value / 1000.0, UTC)
    else:
        text = value.strip()
        if text.isdigit():
            dt = datetime.fromtimestamp(int(text) / 1000.0, UTC)
        else:
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            try:
                dt = datetime.fromisoformat(text)
            except ValueError as exc:
                raise ValueError(f"Invalid time: {value}") from exc

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def get_zone(tz: Optional[str]):
    """Return a tzinfo for a timezone name, falling back to UTC for unknown names."""
    if not tz or tz.lower() == "utc":
        return UTC
    try:
        return ZoneInfo(tz)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz!r}, using UTC")
        return UTC


def local_time(now: datetime, tz: Optional[str]) -> datetime:
    """Convert the pinned run time into the given timezone."""
    return now.astimezone(get_zone(tz))


def uptime_hours(launch_time: Optional[datetime], now: datetime) -> Optional[float]:
    """Hours elapsed between launch and now, or None when the launch time is unknown."""
    if launch_time is None:
        return None
    if launch_time.tzinfo is None:
        launch_time = launch_time.replace(tzinfo=UTC)
    return (now - launch_time).total_seconds() / 3600.0

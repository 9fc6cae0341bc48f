"""
Time source for the OTP engine.

Everything time-dependent (counter buckets, expiry, gaps between codes)
reads the current instant through a ``Clock`` so tests can drive time
explicitly instead of sleeping.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol
from zoneinfo import ZoneInfo


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant as a timezone-aware UTC datetime."""
        ...


class SystemClock:
    """Wall clock."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def day_key(instant: datetime, tz: ZoneInfo) -> str:
    """Calendar day of *instant* in *tz*, as ``YYYY-MM-DD``."""
    return instant.astimezone(tz).date().isoformat()


def start_of_day(instant: datetime, tz: ZoneInfo) -> datetime:
    """Midnight (in *tz*) of the day containing *instant*, returned in UTC."""
    local = instant.astimezone(tz)
    midnight = local.replace(hour=0, minute=0, second=0, microsecond=0)
    return midnight.astimezone(timezone.utc)

"""
In-memory abuse counters keyed by request source (client IP).

Two flavours share the same increment-or-reject contract:

  • ``WindowCounterStore``  – fixed windows (e.g. 3 hits per 10 minutes)
  • ``DailySourceCounter``  – calendar-day caps (e.g. 10 hits per day)

Both are process-local: a restart resets every counter. Each store owns a
periodic sweep (also run once on start) that drops buckets which can no
longer be written, so memory stays bounded even for sources that stop
sending requests.

Usage::

    store = WindowCounterStore(clock)
    await store.start()               # starts the sweep loop
    store.admit("10.0.0.1", 600, 3)   # True / False
    ...
    await store.stop()
"""

from __future__ import annotations

import logging
import threading
from zoneinfo import ZoneInfo

from otpguard.clock import Clock, day_key
from otpguard.services.background import BackgroundWorker

logger = logging.getLogger(__name__)

# (source, window_seconds, bucket_index)
_WindowKey = tuple[str, int, int]
# (source, "YYYY-MM-DD")
_DayKey = tuple[str, str]


def bucket_index(timestamp: float, window_seconds: int) -> int:
    return int(timestamp // window_seconds)


class WindowCounterStore(BackgroundWorker):
    """Fixed-window hit counters with a background sweep of expired buckets."""

    def __init__(
        self,
        clock: Clock,
        *,
        sweep_interval: float = 3600.0,
    ) -> None:
        super().__init__(interval=sweep_interval, name="window-counter-sweep")
        self._clock = clock
        self._counts: dict[_WindowKey, int] = {}
        self._lock = threading.Lock()

    def admit(self, source: str, window_seconds: int, max_hits: int) -> bool:
        """
        Count one hit for *source* in the current window.

        Returns False (without counting) once *max_hits* hits have already
        been admitted in this window.
        """
        now = self._clock.now().timestamp()
        key = (source, window_seconds, bucket_index(now, window_seconds))
        with self._lock:
            count = self._counts.get(key, 0)
            if count >= max_hits:
                return False
            self._counts[key] = count + 1
            return True

    def hits(self, source: str, window_seconds: int) -> int:
        """Hits admitted for *source* in the current window."""
        now = self._clock.now().timestamp()
        key = (source, window_seconds, bucket_index(now, window_seconds))
        with self._lock:
            return self._counts.get(key, 0)

    def sweep(self) -> int:
        """Drop every bucket whose window has fully elapsed. Returns the count."""
        now = self._clock.now().timestamp()
        with self._lock:
            stale = [
                key for key in self._counts
                if key[2] < bucket_index(now, key[1])
            ]
            for key in stale:
                del self._counts[key]
        if stale:
            logger.debug("Swept %d expired window buckets", len(stale))
        return len(stale)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

    @property
    def size(self) -> int:
        return len(self._counts)

    async def _on_start(self) -> None:
        self.sweep()

    async def _tick(self) -> None:
        self.sweep()


class DailySourceCounter(BackgroundWorker):
    """Per-source calendar-day caps, days evaluated in one fixed time zone."""

    def __init__(
        self,
        clock: Clock,
        tz: ZoneInfo,
        *,
        sweep_interval: float = 3600.0,
    ) -> None:
        super().__init__(interval=sweep_interval, name="daily-counter-sweep")
        self._clock = clock
        self._tz = tz
        self._counts: dict[_DayKey, int] = {}
        self._lock = threading.Lock()

    def admit_daily(self, source: str, max_per_day: int) -> bool:
        key = (source, day_key(self._clock.now(), self._tz))
        with self._lock:
            count = self._counts.get(key, 0)
            if count >= max_per_day:
                return False
            self._counts[key] = count + 1
            return True

    def sweep(self) -> int:
        """Drop every entry whose day is no longer today. Returns the count."""
        today = day_key(self._clock.now(), self._tz)
        with self._lock:
            stale = [key for key in self._counts if key[1] != today]
            for key in stale:
                del self._counts[key]
        if stale:
            logger.debug("Swept %d stale daily counters", len(stale))
        return len(stale)

    def reset(self) -> None:
        with self._lock:
            self._counts.clear()

    @property
    def size(self) -> int:
        return len(self._counts)

    async def _on_start(self) -> None:
        self.sweep()

    async def _tick(self) -> None:
        self.sweep()

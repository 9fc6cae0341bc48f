"""
Abstract interface for OTP record storage.

The lifecycle manager and the identity gate only talk to this protocol,
so the storage engine (SQLite in ``otpguard.db``, an in-memory double in
tests) can be swapped freely. Implementations must index records by
identity and by creation time.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable
from datetime import datetime
from typing import Protocol, TypeVar

from otpguard.errors import RepositoryUnavailableError
from otpguard.models import OTPRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class OTPRepository(Protocol):
    """Protocol that every OTP record store must satisfy."""

    # ── Reads ─────────────────────────────────────────────────────────
    async def find_latest(self, identity: str) -> OTPRecord | None:
        """Most recently created record for *identity*, whatever its status."""
        ...

    async def find_active(self, identity: str, now: datetime) -> OTPRecord | None:
        """Most recent unused record for *identity* that expires after *now*."""
        ...

    async def count_since(self, identity: str, since: datetime) -> int:
        """Number of records for *identity* created at or after *since*."""
        ...

    # ── Writes ────────────────────────────────────────────────────────
    async def supersede_and_insert(self, record: OTPRecord) -> int:
        """
        Mark every unused record for ``record.identity`` as used, then store
        *record*. Both happen or neither does. Returns the superseded count.
        """
        ...

    async def update_attempts(self, record_id: str, attempts: int) -> None:
        ...

    async def mark_used(self, record_id: str, verified_at: datetime | None = None) -> None:
        ...


class GuardedRepository:
    """
    Wraps any OTPRepository so a slow or failing store cannot stall callers.

    Every call is bounded by *timeout* seconds. Timeouts and storage errors
    are logged with their cause and re-raised as RepositoryUnavailableError;
    nothing is retried here.
    """

    def __init__(self, delegate: OTPRepository, *, timeout: float = 5.0) -> None:
        self._delegate = delegate
        self._timeout = timeout

    @property
    def delegate(self) -> OTPRepository:
        return self._delegate

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.error("OTP repository %s timed out after %.1fs", operation, self._timeout)
            raise RepositoryUnavailableError() from None
        except Exception as exc:
            logger.error("OTP repository %s failed: %s", operation, exc, exc_info=True)
            raise RepositoryUnavailableError() from exc

    async def find_latest(self, identity: str) -> OTPRecord | None:
        return await self._call("find_latest", self._delegate.find_latest(identity))

    async def find_active(self, identity: str, now: datetime) -> OTPRecord | None:
        return await self._call("find_active", self._delegate.find_active(identity, now))

    async def count_since(self, identity: str, since: datetime) -> int:
        return await self._call("count_since", self._delegate.count_since(identity, since))

    async def supersede_and_insert(self, record: OTPRecord) -> int:
        return await self._call(
            "supersede_and_insert", self._delegate.supersede_and_insert(record)
        )

    async def update_attempts(self, record_id: str, attempts: int) -> None:
        await self._call("update_attempts", self._delegate.update_attempts(record_id, attempts))

    async def mark_used(self, record_id: str, verified_at: datetime | None = None) -> None:
        await self._call("mark_used", self._delegate.mark_used(record_id, verified_at))

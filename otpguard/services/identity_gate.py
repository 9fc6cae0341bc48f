"""
Per-phone issuance limits backed by the OTP history.

Checks run in a fixed order and stop at the first failure, so a phone
that is merely "too soon" never costs the hourly and daily count queries.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from zoneinfo import ZoneInfo

from otpguard.clock import start_of_day
from otpguard.services.repository import OTPRepository


class IdentityGateStatus(str, Enum):
    ALLOWED = "allowed"
    TOO_SOON = "too_soon"
    HOURLY_EXCEEDED = "hourly_exceeded"
    DAILY_EXCEEDED = "daily_exceeded"


@dataclass(frozen=True)
class IdentityGateOutcome:
    status: IdentityGateStatus
    retry_after_seconds: int | None = None

    @property
    def allowed(self) -> bool:
        return self.status is IdentityGateStatus.ALLOWED


ALLOWED = IdentityGateOutcome(IdentityGateStatus.ALLOWED)
HOURLY_EXCEEDED = IdentityGateOutcome(IdentityGateStatus.HOURLY_EXCEEDED)
DAILY_EXCEEDED = IdentityGateOutcome(IdentityGateStatus.DAILY_EXCEEDED)


@dataclass(frozen=True)
class IdentityGatePolicy:
    min_gap_seconds: int = 60
    max_per_hour: int = 5
    max_per_day: int = 10


class IdentityGate:
    def __init__(
        self,
        repository: OTPRepository,
        tz: ZoneInfo,
        policy: IdentityGatePolicy | None = None,
    ) -> None:
        self._repository = repository
        self._tz = tz
        self.policy = policy or IdentityGatePolicy()

    async def check(self, identity: str, now: datetime) -> IdentityGateOutcome:
        policy = self.policy

        latest = await self._repository.find_latest(identity)
        if latest is not None:
            elapsed = (now - latest.created_at).total_seconds()
            if elapsed < policy.min_gap_seconds:
                return IdentityGateOutcome(
                    IdentityGateStatus.TOO_SOON,
                    retry_after_seconds=math.ceil(policy.min_gap_seconds - elapsed),
                )

        hourly = await self._repository.count_since(identity, now - timedelta(hours=1))
        if hourly >= policy.max_per_hour:
            return HOURLY_EXCEEDED

        daily = await self._repository.count_since(identity, start_of_day(now, self._tz))
        if daily >= policy.max_per_day:
            return DAILY_EXCEEDED

        return ALLOWED

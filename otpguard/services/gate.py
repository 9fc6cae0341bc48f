"""
Admission pipeline in front of the OTP lifecycle.

Issuance requests pass, in order:

1.  source window   – e.g. 3 requests per 10 minutes per IP
2.  source daily    – e.g. 10 requests per day per IP
3.  phone format    – normalize or reject
4.  identity gate   – per-phone gap / hourly / daily caps

The first rejection wins and is raised as a typed error carrying the
scope and, where it makes sense, a retry hint. Step 4 runs under the
per-phone lock together with the code generation it guards.

Verification requests only pass the source window, counted separately
from issuance.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from otpguard.clock import Clock
from otpguard.errors import RateLimitedError, RateLimitScope
from otpguard.services.counters import DailySourceCounter, WindowCounterStore
from otpguard.services.identity_gate import IdentityGate, IdentityGateStatus
from otpguard.services.lifecycle import GenerateResult, OTPLifecycle
from otpguard.services.phone import mask_phone, normalize_phone

logger = logging.getLogger(__name__)

_ISSUE_NS = "issue"
_VERIFY_NS = "verify"


@dataclass(frozen=True)
class SourceLimits:
    window_seconds: int = 600
    window_max: int = 3
    daily_max: int = 10
    verify_window_seconds: int = 600
    verify_window_max: int = 10


class GateOrchestrator:
    def __init__(
        self,
        window_store: WindowCounterStore,
        daily_counter: DailySourceCounter,
        identity_gate: IdentityGate,
        lifecycle: OTPLifecycle,
        clock: Clock,
        limits: SourceLimits | None = None,
    ) -> None:
        self._window_store = window_store
        self._daily_counter = daily_counter
        self._identity_gate = identity_gate
        self._lifecycle = lifecycle
        self._clock = clock
        self.limits = limits or SourceLimits()

    async def issue(self, source: str, raw_identity: str | None) -> GenerateResult:
        """
        Run the issuance pipeline and, if every check passes, issue a code.

        The per-phone checks run inside the lifecycle's per-phone lock,
        together with the write, so concurrent requests for one number are
        judged one after another against the stored history.
        """
        identity = self._admit_source(source, raw_identity)
        return await self._lifecycle.generate(identity, admit=self._admit_identity)

    def _admit_source(self, source: str, raw_identity: str | None) -> str:
        """Source window, source daily cap, then format. Returns the normalized phone."""
        limits = self.limits

        if not self._window_store.admit(
            f"{_ISSUE_NS}:{source}", limits.window_seconds, limits.window_max
        ):
            logger.warning("OTP window limit hit for source %s", source)
            raise RateLimitedError(
                RateLimitScope.SOURCE_WINDOW,
                f"Too many OTP requests, please try again after {limits.window_seconds // 60} minutes",
                retry_after=self._seconds_to_window_end(limits.window_seconds),
            )

        if not self._daily_counter.admit_daily(f"{_ISSUE_NS}:{source}", limits.daily_max):
            logger.warning("OTP daily limit hit for source %s", source)
            raise RateLimitedError(
                RateLimitScope.SOURCE_DAILY,
                "Daily OTP limit exceeded. Try again tomorrow.",
            )

        return normalize_phone(raw_identity)

    async def _admit_identity(self, identity: str, now: datetime) -> None:
        outcome = await self._identity_gate.check(identity, now)
        if outcome.status is IdentityGateStatus.TOO_SOON:
            raise RateLimitedError(
                RateLimitScope.IDENTITY_GAP,
                f"Please wait {outcome.retry_after_seconds} seconds before requesting new OTP",
                retry_after=outcome.retry_after_seconds,
            )
        if outcome.status is IdentityGateStatus.HOURLY_EXCEEDED:
            logger.warning("Hourly OTP limit hit for %s", mask_phone(identity))
            raise RateLimitedError(
                RateLimitScope.IDENTITY_HOURLY,
                f"OTP limit reached. Maximum {self._identity_gate.policy.max_per_hour} OTPs per hour.",
            )
        if outcome.status is IdentityGateStatus.DAILY_EXCEEDED:
            logger.warning("Daily OTP limit hit for %s", mask_phone(identity))
            raise RateLimitedError(
                RateLimitScope.IDENTITY_DAILY,
                "Daily OTP limit reached. Try again tomorrow.",
            )

    def check_verification(self, source: str) -> None:
        limits = self.limits
        if not self._window_store.admit(
            f"{_VERIFY_NS}:{source}", limits.verify_window_seconds, limits.verify_window_max
        ):
            logger.warning("OTP verification window limit hit for source %s", source)
            raise RateLimitedError(
                RateLimitScope.SOURCE_WINDOW,
                f"Too many verification attempts, please try again after "
                f"{limits.verify_window_seconds // 60} minutes",
                retry_after=self._seconds_to_window_end(limits.verify_window_seconds),
            )

    def _seconds_to_window_end(self, window_seconds: int) -> int:
        now = self._clock.now().timestamp()
        return max(1, math.ceil(window_seconds - now % window_seconds))

"""
OTP lifecycle: issuing codes and checking guesses.

Record states::

    unused ──verify ok──────────────▶ used (verified_at set)
       │
       ├──attempts >= max on verify─▶ used (locked out)
       │
       └──newer code generated──────▶ used (superseded)

All mutations for one phone number run under a per-phone lock, so
supersede-then-insert and attempt counting never interleave with another
request for the same number. Different numbers never wait on each other.

Attempt accounting: a wrong guess increments ``attempts`` and reports
``remaining = max_attempts - attempts`` (after the increment). The lockout
itself is reported by the *next* call, which finds
``attempts >= max_attempts`` before comparing the code. With
``max_attempts=5`` a caller therefore sees remaining 4, 3, 2, 1, 0 and
then ATTEMPTS_EXCEEDED.
"""

from __future__ import annotations

import asyncio
import hmac
import logging
import secrets
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from otpguard.clock import Clock
from otpguard.errors import DeliveryFailedError
from otpguard.models import OTPRecord
from otpguard.services.delivery import DeliveryChannel, DeliveryError
from otpguard.services.locks import KeyedLock
from otpguard.services.phone import mask_phone
from otpguard.services.repository import OTPRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OTPPolicy:
    otp_length: int = 6
    expiry_minutes: int = 10
    max_attempts: int = 5
    app_name: str = "App"
    delivery_timeout: float = 10.0


@dataclass(frozen=True)
class GenerateResult:
    identity: str
    expires_in_seconds: int


class VerifyStatus(str, Enum):
    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ATTEMPTS_EXCEEDED = "attempts_exceeded"
    MISMATCH = "mismatch"


@dataclass(frozen=True)
class VerifyOutcome:
    status: VerifyStatus
    remaining_attempts: int | None = None

    @property
    def success(self) -> bool:
        return self.status is VerifyStatus.SUCCESS


def generate_code(length: int) -> str:
    """Uniformly random *length*-digit string from the OS CSPRNG."""
    return "".join(secrets.choice("0123456789") for _ in range(length))


def render_message(app_name: str, code: str, expiry_minutes: int) -> str:
    return (
        f"Your {app_name} verification code is: {code}. "
        f"Valid for {expiry_minutes} minutes. Do not share with anyone."
    )


class OTPLifecycle:
    def __init__(
        self,
        repository: OTPRepository,
        delivery: DeliveryChannel,
        clock: Clock,
        policy: OTPPolicy | None = None,
        *,
        locks: KeyedLock | None = None,
    ) -> None:
        self._repository = repository
        self._delivery = delivery
        self._clock = clock
        self.policy = policy or OTPPolicy()
        self._locks = locks or KeyedLock()

    # ── Generation ────────────────────────────────────────────────────

    async def generate(
        self,
        identity: str,
        *,
        admit: Callable[[str, datetime], Awaitable[None]] | None = None,
    ) -> GenerateResult:
        """
        Issue a fresh code for *identity* and hand it to the delivery channel.

        *admit*, when given, runs under the per-phone lock before anything is
        written and may raise to refuse the request.

        Any previous unused code for the same number is superseded in the
        same write as the insert. If delivery fails the new record stays in
        place (it simply expires) and DeliveryFailedError is raised. The code
        itself is never returned.
        """
        policy = self.policy
        code = generate_code(policy.otp_length)

        async with self._locks.hold(identity):
            now = self._clock.now()
            if admit is not None:
                await admit(identity, now)
            record = OTPRecord(
                identity=identity,
                code=code,
                created_at=now,
                expires_at=now + timedelta(minutes=policy.expiry_minutes),
            )
            superseded = await self._repository.supersede_and_insert(record)

        logger.info(
            "Generated OTP for %s (superseded %d, expires %s)",
            mask_phone(identity), superseded, record.expires_at.isoformat(),
        )

        message = render_message(policy.app_name, code, policy.expiry_minutes)
        try:
            await asyncio.wait_for(
                self._delivery.send(identity, message),
                timeout=policy.delivery_timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                "OTP delivery to %s timed out after %.1fs",
                mask_phone(identity), policy.delivery_timeout,
            )
            raise DeliveryFailedError() from None
        except DeliveryError as exc:
            logger.error("OTP delivery to %s failed: %s", mask_phone(identity), exc)
            raise DeliveryFailedError() from exc

        return GenerateResult(identity=identity, expires_in_seconds=policy.expiry_minutes * 60)

    # ── Verification ──────────────────────────────────────────────────

    async def verify(
        self,
        identity: str,
        submitted_code: str,
        max_attempts: int | None = None,
    ) -> VerifyOutcome:
        if max_attempts is None:
            max_attempts = self.policy.max_attempts

        async with self._locks.hold(identity):
            now = self._clock.now()
            record = await self._repository.find_active(identity, now)
            if record is None:
                # Never requested and expired look the same from outside.
                logger.info("No active OTP for %s", mask_phone(identity))
                return VerifyOutcome(VerifyStatus.NOT_FOUND)

            if record.attempts >= max_attempts:
                await self._repository.mark_used(record.id)
                logger.warning("OTP for %s locked after %d attempts", mask_phone(identity), record.attempts)
                return VerifyOutcome(VerifyStatus.ATTEMPTS_EXCEEDED)

            if not hmac.compare_digest(submitted_code.encode(), record.code.encode()):
                attempts = record.attempts + 1
                await self._repository.update_attempts(record.id, attempts)
                remaining = max(max_attempts - attempts, 0)
                logger.warning(
                    "Invalid OTP for %s (%d attempts remaining)", mask_phone(identity), remaining
                )
                return VerifyOutcome(VerifyStatus.MISMATCH, remaining_attempts=remaining)

            await self._repository.mark_used(record.id, verified_at=now)

        logger.info("OTP verified for %s", mask_phone(identity))
        return VerifyOutcome(VerifyStatus.SUCCESS)

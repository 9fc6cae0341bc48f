"""
OTP engine – wires the throttles and the lifecycle manager together.

Constructed once at application startup (see ``otpguard.main``) and torn
down explicitly at shutdown. Owns the lifetime of the counter sweep
loops, the database connection and the delivery channel's HTTP client.
"""

from __future__ import annotations

import logging
from zoneinfo import ZoneInfo

from otpguard import config
from otpguard.clock import Clock, SystemClock
from otpguard.db import SQLiteOTPRepository
from otpguard.services.counters import DailySourceCounter, WindowCounterStore
from otpguard.services.delivery import DeliveryChannel, build_delivery_channel
from otpguard.services.gate import GateOrchestrator, SourceLimits
from otpguard.services.identity_gate import IdentityGate, IdentityGatePolicy
from otpguard.services.lifecycle import OTPLifecycle, OTPPolicy
from otpguard.services.repository import GuardedRepository, OTPRepository

logger = logging.getLogger(__name__)


class OTPEngine:
    def __init__(
        self,
        repository: OTPRepository,
        delivery: DeliveryChannel,
        *,
        clock: Clock | None = None,
        tz: ZoneInfo | None = None,
        otp_policy: OTPPolicy | None = None,
        gate_policy: IdentityGatePolicy | None = None,
        source_limits: SourceLimits | None = None,
        repository_timeout: float = 5.0,
        sweep_interval: float = 3600.0,
    ) -> None:
        self.clock = clock or SystemClock()
        tz = tz or ZoneInfo("UTC")

        self.store = repository
        self.repository = GuardedRepository(repository, timeout=repository_timeout)
        self.delivery = delivery

        self.window_store = WindowCounterStore(self.clock, sweep_interval=sweep_interval)
        self.daily_counter = DailySourceCounter(self.clock, tz, sweep_interval=sweep_interval)
        self.identity_gate = IdentityGate(self.repository, tz, gate_policy)
        self.lifecycle = OTPLifecycle(self.repository, delivery, self.clock, otp_policy)
        self.gate = GateOrchestrator(
            self.window_store,
            self.daily_counter,
            self.identity_gate,
            self.lifecycle,
            self.clock,
            source_limits,
        )

    # ── Lifecycle ──────────────────────────────────────────────────────

    async def start(self) -> None:
        connect = getattr(self.store, "connect", None)
        if connect is not None:
            await connect()
        await self.window_store.start()
        await self.daily_counter.start()
        logger.info("OTP engine started")

    async def stop(self) -> None:
        await self.window_store.stop()
        await self.daily_counter.stop()
        await self.delivery.close()
        close = getattr(self.store, "close", None)
        if close is not None:
            await close()
        logger.info("OTP engine stopped")


def build_engine() -> OTPEngine:
    """Build the engine from environment configuration."""
    return OTPEngine(
        SQLiteOTPRepository(config.DB_PATH),
        build_delivery_channel(timeout=config.DELIVERY_TIMEOUT_SECONDS),
        tz=ZoneInfo(config.OTP_TIMEZONE),
        otp_policy=OTPPolicy(
            otp_length=config.OTP_LENGTH,
            expiry_minutes=config.OTP_EXPIRY_MINUTES,
            max_attempts=config.OTP_MAX_ATTEMPTS,
            app_name=config.APP_NAME,
            delivery_timeout=config.DELIVERY_TIMEOUT_SECONDS,
        ),
        gate_policy=IdentityGatePolicy(
            min_gap_seconds=config.OTP_MIN_GAP_SECONDS,
            max_per_hour=config.OTP_MAX_PER_HOUR,
            max_per_day=config.OTP_MAX_PER_DAY,
        ),
        source_limits=SourceLimits(
            window_seconds=config.SOURCE_WINDOW_SECONDS,
            window_max=config.SOURCE_WINDOW_MAX,
            daily_max=config.SOURCE_DAILY_MAX,
            verify_window_seconds=config.VERIFY_WINDOW_SECONDS,
            verify_window_max=config.VERIFY_WINDOW_MAX,
        ),
        repository_timeout=config.REPOSITORY_TIMEOUT_SECONDS,
        sweep_interval=config.COUNTER_SWEEP_INTERVAL,
    )

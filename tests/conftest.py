"""
Shared test fixtures.

Provides an OTPEngine wired to:
  • an in-memory OTP repository (no SQLite)
  • a frozen, manually advanced clock
  • a recording delivery channel (no SMS)

The `client` fixture runs the full app lifespan with that engine swapped
in, so the counter sweep loops start and stop as they do in production.
"""

from __future__ import annotations

from zoneinfo import ZoneInfo

import pytest
from fastapi.testclient import TestClient

from otpguard.main import app
from otpguard.services.engine import OTPEngine
from otpguard.services.gate import SourceLimits
from otpguard.services.identity_gate import IdentityGatePolicy
from otpguard.services.lifecycle import OTPPolicy
from tests.mocks.clock import FrozenClock
from tests.mocks.delivery import RecordingDelivery
from tests.mocks.repository import InMemoryOTPRepository


# ── Building blocks ────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture()
def repository() -> InMemoryOTPRepository:
    return InMemoryOTPRepository()


@pytest.fixture()
def delivery() -> RecordingDelivery:
    return RecordingDelivery()


@pytest.fixture()
def engine(
    repository: InMemoryOTPRepository,
    delivery: RecordingDelivery,
    clock: FrozenClock,
) -> OTPEngine:
    """Engine with the stock limits: 3/10min + 10/day per IP, 60s/5/10 per phone."""
    return OTPEngine(
        repository,
        delivery,
        clock=clock,
        tz=ZoneInfo("UTC"),
        otp_policy=OTPPolicy(otp_length=6, expiry_minutes=10, max_attempts=5, app_name="TestApp"),
        gate_policy=IdentityGatePolicy(min_gap_seconds=60, max_per_hour=5, max_per_day=10),
        source_limits=SourceLimits(),
        repository_timeout=1.0,
    )


# ── HTTP ───────────────────────────────────────────────────────────────────


@pytest.fixture()
def _test_env(monkeypatch, engine: OTPEngine) -> OTPEngine:
    """
    Patch the engine factory used by the lifespan and disable the coarse
    slowapi limiter so only the OTP throttles are under test.
    """
    monkeypatch.setattr("otpguard.main.build_engine", lambda: engine)

    from otpguard.rate_limit import limiter as _limiter
    monkeypatch.setattr(_limiter, "enabled", False)

    return engine


@pytest.fixture()
def client(_test_env: OTPEngine) -> TestClient:
    """TestClient with the test engine. Uses a context manager so the lifespan runs."""
    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc

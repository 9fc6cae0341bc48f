"""
Pre-built values for use in tests.

    from tests.mocks.models import PHONE, make_record
"""

from __future__ import annotations

from datetime import datetime, timedelta

from otpguard.models import OTPRecord
from tests.mocks.clock import DEFAULT_START

# ── Phone numbers ──────────────────────────────────────────────────────────

PHONE = "9998887776"          # Indian mobile, 10 digits
PHONE_2 = "919876543210"      # with country code
PHONE_FORMATTED = "+91 98765-43210"


# ── Records ────────────────────────────────────────────────────────────────


def make_record(**overrides) -> OTPRecord:
    """Factory for test OTP records, issued at the default clock start."""
    created_at = overrides.pop("created_at", DEFAULT_START)
    defaults = dict(
        identity=PHONE,
        code="123456",
        created_at=created_at,
        expires_at=created_at + timedelta(minutes=10),
    )
    defaults.update(overrides)
    return OTPRecord(**defaults)


def ago(now: datetime, **delta: float) -> datetime:
    return now - timedelta(**delta)

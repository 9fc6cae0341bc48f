"""
Application configuration from environment variables.

All settings have sensible defaults for local development.
A .env file in the project root is loaded automatically (if present).
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env file before reading any env vars
load_dotenv(Path(__file__).resolve().parent.parent / ".env")

# ── Environment ───────────────────────────────────────────────────────────

ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
APP_NAME: str = os.getenv("APP_NAME", "otpguard")
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "info")

# ── Paths ─────────────────────────────────────────────────────────────────

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"

# SQLite database file
DB_PATH: str = os.getenv("DB_PATH", str(DATA_DIR / "otpguard.db"))

# ── OTP codes ─────────────────────────────────────────────────────────────

OTP_LENGTH: int = int(os.getenv("OTP_LENGTH", "6"))
OTP_EXPIRY_MINUTES: int = int(os.getenv("OTP_EXPIRY_MINUTES", "10"))
OTP_MAX_ATTEMPTS: int = int(os.getenv("OTP_MAX_ATTEMPTS", "5"))

# ── Per-phone limits (backed by the OTP history) ──────────────────────────

OTP_MIN_GAP_SECONDS: int = int(os.getenv("OTP_MIN_GAP_SECONDS", "60"))
OTP_MAX_PER_HOUR: int = int(os.getenv("OTP_MAX_PER_HOUR", "5"))
OTP_MAX_PER_DAY: int = int(os.getenv("OTP_MAX_PER_DAY", "10"))

# ── Per-IP limits (in-memory counters) ────────────────────────────────────

SOURCE_WINDOW_SECONDS: int = int(os.getenv("SOURCE_WINDOW_SECONDS", "600"))
SOURCE_WINDOW_MAX: int = int(os.getenv("SOURCE_WINDOW_MAX", "3"))
SOURCE_DAILY_MAX: int = int(os.getenv("SOURCE_DAILY_MAX", "10"))

# Verification requests are counted in a window of their own.
VERIFY_WINDOW_SECONDS: int = int(os.getenv("VERIFY_WINDOW_SECONDS", "600"))
VERIFY_WINDOW_MAX: int = int(os.getenv("VERIFY_WINDOW_MAX", "10"))

# Calendar days for daily caps are evaluated in this zone, never per request.
OTP_TIMEZONE: str = os.getenv("OTP_TIMEZONE", "UTC")

# How often stale counter buckets are swept (seconds).
COUNTER_SWEEP_INTERVAL: float = float(os.getenv("COUNTER_SWEEP_INTERVAL", "3600"))

# Coarse app-wide limit applied to every endpoint (slowapi syntax).
API_RATE_LIMIT: str = os.getenv("API_RATE_LIMIT", "100 per 15 minutes")

# ── Timeouts ──────────────────────────────────────────────────────────────

REPOSITORY_TIMEOUT_SECONDS: float = float(os.getenv("REPOSITORY_TIMEOUT_SECONDS", "5"))
DELIVERY_TIMEOUT_SECONDS: float = float(os.getenv("DELIVERY_TIMEOUT_SECONDS", "10"))

# ── SMS gateway ───────────────────────────────────────────────────────────

SMS_GATEWAY_URL: str = os.getenv("SMS_GATEWAY_URL", "")
SMS_API_KEY: str = os.getenv("SMS_API_KEY", "")
SMS_SENDER_ID: str = os.getenv("SMS_SENDER_ID", "OTPGRD")

# Set to "false" to force console-only mode even when gateway credentials
# are present. Handy for local development to avoid burning SMS credits.
_SMS_ENABLED_OVERRIDE: str = os.getenv("SMS_ENABLED", "auto")


def sms_enabled() -> bool:
    """True when OTP messages should actually go out through the SMS gateway.

    Controlled by SMS_ENABLED env var:
      • "auto" (default): send if the gateway is configured
      • "true":  always send (will fail if the gateway is missing)
      • "false": never send, log to console instead
    """
    if _SMS_ENABLED_OVERRIDE.lower() == "false":
        return False
    if _SMS_ENABLED_OVERRIDE.lower() == "true":
        return True
    # "auto": send only when the gateway is fully configured
    return bool(SMS_GATEWAY_URL and SMS_API_KEY)

"""
Coarse app-wide rate limiting using slowapi.

Every endpoint gets the same per-IP budget (API_RATE_LIMIT, default
100 per 15 minutes), counted per route. The OTP-specific throttles
(windows, daily caps, per-phone caps) live in ``otpguard.services``
and run on top of this.

The limiter keys on client IP.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from otpguard.config import API_RATE_LIMIT

limiter = Limiter(key_func=get_remote_address, default_limits=[API_RATE_LIMIT])

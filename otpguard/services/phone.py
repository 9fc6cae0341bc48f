"""
Phone number normalization.

Numbers are compared and stored as bare digit strings: spaces, dashes and
a leading '+' are stripped before validation.
"""

from __future__ import annotations

import re

from otpguard.errors import InvalidIdentityFormatError

_STRIP = re.compile(r"[\s\-+]")

# Indian mobile: 10 digits starting with 6-9
_INDIAN_MOBILE = re.compile(r"^[6-9]\d{9}$", re.ASCII)
# International: 10-15 digits
_INTERNATIONAL = re.compile(r"^\d{10,15}$", re.ASCII)


def normalize_phone(raw: str | None) -> str:
    """Return the digits-only form of *raw* or raise InvalidIdentityFormatError."""
    if not raw or not raw.strip():
        raise InvalidIdentityFormatError("Phone number is required")

    phone = _STRIP.sub("", raw)
    if not _INDIAN_MOBILE.match(phone) and not _INTERNATIONAL.match(phone):
        raise InvalidIdentityFormatError("Invalid phone number format")
    return phone


def mask_phone(phone: str) -> str:
    """Log-safe form of a phone number: only the last four digits survive."""
    if len(phone) <= 4:
        return "*" * len(phone)
    return "*" * (len(phone) - 4) + phone[-4:]

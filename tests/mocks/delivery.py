"""
Test doubles for the SMS delivery channel.
"""

from __future__ import annotations

import asyncio
import re

from otpguard.services.delivery import DeliveryError

_CODE = re.compile(r"verification code is: (\d+)\.")


class RecordingDelivery:
    """Keeps every (phone, message) pair instead of sending it."""

    def __init__(self, *, fail: bool = False, delay: float = 0.0) -> None:
        self.sent: list[tuple[str, str]] = []
        self.fail = fail
        self.delay = delay
        self.closed = False

    async def send(self, identity: str, message: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise DeliveryError("gateway down")
        self.sent.append((identity, message))

    async def close(self) -> None:
        self.closed = True

    def last_code(self, identity: str) -> str:
        """The code from the most recent message sent to *identity*."""
        for phone, message in reversed(self.sent):
            if phone == identity:
                match = _CODE.search(message)
                assert match is not None, message
                return match.group(1)
        raise AssertionError(f"nothing sent to {identity}")

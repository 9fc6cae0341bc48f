"""
Delivery channels that get a rendered OTP message to the phone.

In development (no SMS gateway configured), messages are logged to the
console so you can see what *would* be sent without burning SMS credits.
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from otpguard.config import (
    ENVIRONMENT,
    SMS_API_KEY,
    SMS_GATEWAY_URL,
    SMS_SENDER_ID,
    sms_enabled,
)
from otpguard.services.phone import mask_phone

logger = logging.getLogger(__name__)


class DeliveryError(Exception):
    """The message could not be handed to the delivery provider."""


class DeliveryChannel(Protocol):
    async def send(self, identity: str, message: str) -> None:
        """Deliver *message* to *identity* or raise DeliveryError."""
        ...

    async def close(self) -> None:
        ...


class ConsoleDelivery:
    """Dev-mode channel: logs the message instead of sending it."""

    async def send(self, identity: str, message: str) -> None:
        logger.info("📱 [DEV] Would send SMS to %s:\n  %s", identity, message)

    async def close(self) -> None:
        pass


class HttpSmsDelivery:
    """
    Posts messages to an HTTP SMS gateway.

    The gateway is expected to accept a form-encoded body with
    ``to`` / ``text`` / ``from`` fields and an API key header, and to
    answer 2xx on acceptance.
    """

    def __init__(
        self,
        gateway_url: str,
        api_key: str,
        sender_id: str = SMS_SENDER_ID,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not gateway_url or not api_key:
            raise ValueError("SMS gateway credentials not configured")
        self._gateway_url = gateway_url
        self._sender_id = sender_id
        self._client = httpx.AsyncClient(
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def send(self, identity: str, message: str) -> None:
        data = {
            "to": identity,
            "text": message,
            "from": self._sender_id,
        }
        try:
            resp = await self._client.post(self._gateway_url, data=data)
        except httpx.HTTPError as exc:
            logger.error("SMS gateway request failed for %s: %s", mask_phone(identity), exc)
            raise DeliveryError(f"SMS gateway unreachable: {exc}") from exc

        if not resp.is_success:
            logger.warning(
                "SMS gateway rejected message for %s. Status: %s, Response: %s",
                mask_phone(identity), resp.status_code, resp.text,
            )
            raise DeliveryError(f"SMS gateway answered {resp.status_code}")

        logger.info("OTP SMS sent to %s", mask_phone(identity))


def build_delivery_channel(*, timeout: float = 10.0) -> DeliveryChannel:
    """Real gateway when SMS is enabled, console fallback otherwise."""
    if sms_enabled():
        return HttpSmsDelivery(SMS_GATEWAY_URL, SMS_API_KEY, SMS_SENDER_ID, timeout=timeout)
    if ENVIRONMENT == "production":
        logger.warning("SMS gateway not enabled in production, OTP messages will only be logged")
    else:
        logger.info("SMS gateway not enabled, OTP messages will be logged to console")
    return ConsoleDelivery()

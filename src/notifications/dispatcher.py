"""NotificationDispatcher — address fallback, concurrent delivery and retry."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from src.config import settings
from src.notifications.channels import SendResult
from src.whatsapp.phone import candidate_addresses

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from src.notifications.channels import MessagingGateway

logger = logging.getLogger(__name__)


class NotificationDispatcher:
    """Delivers a message to a recipient contact through a gateway.

    Every candidate address derived from the contact is tried concurrently;
    the first accepted one wins. A fully failed attempt is retried with
    exponential backoff (``base_delay * 2**n``, capped at ``max_delay``).

    Args:
        gateway: The MessagingGateway used for delivery.
        max_attempts: Total attempts per message (including the first).
        base_delay: Delay before the second attempt, in seconds.
        max_delay: Upper bound for any single delay.
        country_code: Country prefix assumed for domestic numbers.
        sleep: Awaitable sleep (injectable for tests).
    """

    def __init__(
        self,
        gateway: MessagingGateway,
        *,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 5.0,
        country_code: str = "55",
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._gateway = gateway
        self._max_attempts = max(1, max_attempts)
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._country_code = country_code
        self._sleep = sleep

    @classmethod
    def from_settings(cls, gateway: MessagingGateway) -> NotificationDispatcher:
        return cls(
            gateway,
            max_attempts=settings.send_max_attempts,
            base_delay=settings.send_retry_base_seconds,
            max_delay=settings.send_retry_max_seconds,
            country_code=settings.default_country_code,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed *attempt* (1-based)."""
        return min(self._base_delay * 2 ** (attempt - 1), self._max_delay)

    async def _send_to(self, address: str, text: str) -> SendResult:
        try:
            return await self._gateway.send(address, text)
        except Exception as exc:
            logger.exception("Gateway %s raised during send", self._gateway.name)
            return SendResult(success=False, error=str(exc) or type(exc).__name__, address=address)

    async def send_once(self, contact: str, text: str) -> SendResult:
        """One attempt across every candidate address of *contact*."""
        addresses = candidate_addresses(contact, self._country_code)
        if not addresses:
            return SendResult(success=False, error=f"Invalid contact: {contact!r}")

        results = await asyncio.gather(*(self._send_to(addr, text) for addr in addresses))
        for result in results:
            if result.success:
                logger.info("Delivered via %s", self._gateway.name)
                logger.debug("Accepted address: %s", result.address)
                return result

        errors = "; ".join(f"{r.address}: {r.error or 'Unknown error'}" for r in results)
        return SendResult(success=False, error=f"Failed to send to all addresses: {errors}")

    async def send(self, contact: str, text: str) -> SendResult:
        """Deliver with retry. Returns the final outcome; never raises."""
        last_error = ""
        for attempt in range(1, self._max_attempts + 1):
            result = await self.send_once(contact, text)
            if result.success:
                return result
            last_error = result.error or "Unknown error"
            logger.warning(
                "Delivery attempt %d/%d failed: %s", attempt, self._max_attempts, last_error
            )
            if attempt < self._max_attempts:
                await self._sleep(self.backoff_delay(attempt))

        return SendResult(
            success=False,
            error=f"Failed after {self._max_attempts} attempts. Last error: {last_error}",
        )

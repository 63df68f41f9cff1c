"""Waapi WhatsApp gateway client using aiohttp."""

from __future__ import annotations

import logging

import aiohttp

from src.config import settings
from src.notifications.channels import SendResult

logger = logging.getLogger(__name__)


class GatewayConfigError(RuntimeError):
    """Gateway credentials are missing; no message can be sent."""


class WaapiClient:
    """Sends WhatsApp text messages through a Waapi instance.

    Args:
        api_url: Base URL, e.g. ``https://waapi.app/api/v1``.
        instance_id: Waapi instance identifier.
        token: Bearer token for the instance.
        timeout: Per-request timeout in seconds.

    Raises:
        GatewayConfigError: if *instance_id* or *token* is empty.
    """

    def __init__(
        self,
        api_url: str,
        instance_id: str,
        token: str,
        timeout: float = 15.0,
    ) -> None:
        if not instance_id.strip():
            msg = "WAAPI_INSTANCE_ID is not configured"
            raise GatewayConfigError(msg)
        if not token.strip():
            msg = "WAAPI_TOKEN is not configured"
            raise GatewayConfigError(msg)
        self._api_url = api_url.rstrip("/")
        self._instance_id = instance_id
        self._token = token
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._session: aiohttp.ClientSession | None = None

    @classmethod
    def from_settings(cls) -> WaapiClient:
        return cls(
            api_url=settings.waapi_api_url,
            instance_id=settings.waapi_instance_id,
            token=settings.waapi_token,
            timeout=settings.gateway_timeout_seconds,
        )

    @property
    def name(self) -> str:
        return "whatsapp"

    @property
    def send_url(self) -> str:
        return f"{self._api_url}/instances/{self._instance_id}/client/action/send-message"

    def _get_session(self) -> aiohttp.ClientSession:
        """Return (and lazily create) the client's aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                headers={"Authorization": f"Bearer {self._token}"},
                timeout=self._timeout,
            )
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def send(self, address: str, text: str) -> SendResult:
        """Send *text* to the chat *address*. Never raises on delivery errors."""
        payload = {"chatId": address, "message": text}
        session = self._get_session()
        try:
            async with session.post(self.send_url, json=payload) as resp:
                if resp.status >= 400:
                    body = await resp.text()
                    logger.warning(
                        "WhatsApp send rejected: status=%d body=%s", resp.status, body[:200]
                    )
                    return SendResult(
                        success=False, error=f"HTTP {resp.status}: {body[:200]}", address=address
                    )
                data = await resp.json(content_type=None)
        except Exception as exc:
            logger.exception("WhatsApp send failed (network error)")
            return SendResult(success=False, error=str(exc) or type(exc).__name__, address=address)

        message_id = None
        if isinstance(data, dict):
            raw_id = data.get("id") or data.get("messageId")
            message_id = str(raw_id) if raw_id is not None else None
        logger.info("WhatsApp message accepted (%d chars)", len(text))
        return SendResult(success=True, message_id=message_id, address=address)

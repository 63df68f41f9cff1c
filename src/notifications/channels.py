"""MessagingGateway protocol — interface for outbound message delivery."""

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class SendResult:
    """Outcome of one delivery attempt.

    Attributes:
        success: Whether the gateway accepted the message.
        message_id: Gateway-assigned ID on success, when provided.
        error: Human-readable failure reason.
        address: The canonical address the result refers to.
    """

    success: bool
    message_id: str | None = None
    error: str | None = None
    address: str | None = None


@runtime_checkable
class MessagingGateway(Protocol):
    """Protocol that all messaging gateways must satisfy."""

    @property
    def name(self) -> str:
        """Unique gateway identifier (e.g. 'whatsapp')."""
        ...

    async def send(self, address: str, text: str) -> SendResult:
        """Deliver *text* to a canonical *address*. Must not raise on delivery errors."""
        ...

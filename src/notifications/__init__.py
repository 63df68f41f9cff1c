"""Outbound message delivery — gateway protocol and retrying dispatcher."""

from src.notifications.channels import MessagingGateway, SendResult
from src.notifications.dispatcher import NotificationDispatcher

__all__ = [
    "MessagingGateway",
    "NotificationDispatcher",
    "SendResult",
]

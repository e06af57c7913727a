from .base import ChannelStatus, DeliveryResult, DeliveryStatus, MessagingChannel
from .webhook import WebhookChannel

__all__ = [
    "ChannelStatus",
    "DeliveryResult",
    "DeliveryStatus",
    "MessagingChannel",
    "WebhookChannel",
]

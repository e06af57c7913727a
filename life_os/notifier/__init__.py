"""
Notifier - outbound messaging policy, channels, and the proactive question queue.
"""

from .channels import ChannelStatus, DeliveryResult, DeliveryStatus, MessagingChannel, WebhookChannel
from .policy import MessagingPolicy
from .questions import Question, QuestionQueue

__all__ = [
    "ChannelStatus",
    "DeliveryResult",
    "DeliveryStatus",
    "MessagingChannel",
    "WebhookChannel",
    "MessagingPolicy",
    "Question",
    "QuestionQueue",
]

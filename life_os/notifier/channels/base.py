"""Messaging channel interface and delivery result variants."""

import enum
from dataclasses import dataclass


class DeliveryStatus(str, enum.Enum):
    SENT = "sent"
    QUOTA_EXCEEDED = "quota_exceeded"
    QUIET_HOURS = "quiet_hours"
    NOT_VERIFIED = "not_verified"
    FAILED = "failed"


@dataclass
class DeliveryResult:
    status: DeliveryStatus
    error: str | None = None
    message_id: str | None = None

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.SENT


@dataclass
class ChannelStatus:
    phone_verified: bool
    can_send: bool
    reason: str | None = None


class MessagingChannel:
    """Outbound channel to the user's phone. Transports live outside the engine."""

    def status(self) -> ChannelStatus:
        raise NotImplementedError

    async def send_alert(self, text: str) -> DeliveryResult:
        raise NotImplementedError

    async def ask_question(self, text: str, question_id: str) -> DeliveryResult:
        raise NotImplementedError

    def usage(self) -> dict:
        """Send counters worth keeping across restarts."""
        return {}

    def restore_usage(self, data: dict | None) -> None:
        pass

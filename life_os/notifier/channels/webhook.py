"""Webhook messaging channel (JSON POST to a relay that reaches the phone)."""

import logging

import httpx

from ..policy import MessagingPolicy
from .base import ChannelStatus, DeliveryResult, DeliveryStatus, MessagingChannel

logger = logging.getLogger(__name__)


class WebhookChannel(MessagingChannel):
    """Delivers alerts and questions via a webhook.

    Every send consults the MessagingPolicy first, so a send outside quiet
    hours or over the daily cap comes back as a QUIET_HOURS or
    QUOTA_EXCEEDED result instead of reaching the relay.
    """

    def __init__(
        self,
        webhook_url: str,
        policy: MessagingPolicy,
        phone_verified: bool = False,
        dry_run: bool = False,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.webhook_url = webhook_url
        self.policy = policy
        self.phone_verified = phone_verified
        self.dry_run = dry_run
        self.timeout = timeout
        self._client = client

    def status(self) -> ChannelStatus:
        if not self.phone_verified:
            return ChannelStatus(False, False, DeliveryStatus.NOT_VERIFIED.value)
        blocked = self.policy.check()
        return ChannelStatus(True, blocked is None, blocked.value if blocked else None)

    async def send_alert(self, text: str) -> DeliveryResult:
        return await self._deliver({"type": "alert", "text": text})

    async def ask_question(self, text: str, question_id: str) -> DeliveryResult:
        return await self._deliver({"type": "question", "id": question_id, "text": text})

    async def _deliver(self, payload: dict) -> DeliveryResult:
        if not self.phone_verified:
            return DeliveryResult(DeliveryStatus.NOT_VERIFIED, error="phone not verified")
        blocked = self.policy.check()
        if blocked is not None:
            return DeliveryResult(blocked, error=blocked.value)

        if self.dry_run:
            logger.info("DRY RUN - webhook payload: %s", payload)
            self.policy.record_send()
            return DeliveryResult(DeliveryStatus.SENT, message_id="dry-run")

        try:
            response = await self._post(payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            if e.response.status_code == 429:
                return DeliveryResult(DeliveryStatus.QUOTA_EXCEEDED, error=str(e))
            logger.error("Webhook HTTP error: %s", e)
            return DeliveryResult(DeliveryStatus.FAILED, error=str(e))
        except httpx.RequestError as e:
            logger.error("Webhook request error: %s", e)
            return DeliveryResult(DeliveryStatus.FAILED, error=str(e))

        self.policy.record_send()
        return DeliveryResult(DeliveryStatus.SENT, message_id=self._message_id(response))

    @staticmethod
    def _message_id(response: httpx.Response) -> str | None:
        if not response.headers.get("content-type", "").startswith("application/json"):
            return None
        try:
            body = response.json()
        except ValueError as e:
            logger.warning("Webhook accepted the message but returned invalid JSON: %s", e)
            return None
        if not isinstance(body, dict):
            return None
        return str(body.get("id") or "") or None

    def usage(self) -> dict:
        return self.policy.usage()

    def restore_usage(self, data: dict | None) -> None:
        self.policy.restore_usage(data)

    async def _post(self, payload: dict) -> httpx.Response:
        if self._client is not None:
            return await self._client.post(self.webhook_url, json=payload, timeout=self.timeout)
        async with httpx.AsyncClient() as client:
            return await client.post(self.webhook_url, json=payload, timeout=self.timeout)

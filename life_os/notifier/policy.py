"""
Messaging policy: quiet hours and a daily message cap.

Quiet hours may wrap midnight (22 -> 7 means 22:00-06:59 is quiet).
The daily counter resets when the local date changes and is persisted
with the engine state so a restart does not reset it.
"""

import logging
from datetime import date, datetime
from zoneinfo import ZoneInfo

from ..clock import Clock, SystemClock
from .channels.base import DeliveryStatus

logger = logging.getLogger(__name__)


class MessagingPolicy:
    def __init__(
        self,
        quiet_hours_start: int = 22,
        quiet_hours_end: int = 7,
        max_messages_per_day: int = 10,
        timezone: str | None = None,
        clock: Clock | None = None,
    ):
        self.quiet_hours_start = quiet_hours_start
        self.quiet_hours_end = quiet_hours_end
        self.max_messages_per_day = max_messages_per_day
        self.tz = ZoneInfo(timezone) if timezone else None
        self.clock = clock or SystemClock()
        self._day: date | None = None
        self._sent_today = 0

    def _local(self, now: datetime | None = None) -> datetime:
        now = now or self.clock.now()
        return now.astimezone(self.tz) if self.tz else now

    def in_quiet_hours(self, now: datetime | None = None) -> bool:
        start, end = self.quiet_hours_start, self.quiet_hours_end
        if start == end:
            return False
        hour = self._local(now).hour
        if start > end:
            return hour >= start or hour < end
        return start <= hour < end

    @property
    def sent_today(self) -> int:
        self._roll_day()
        return self._sent_today

    def _roll_day(self) -> None:
        today = self._local().date()
        if self._day != today:
            self._day = today
            self._sent_today = 0

    def check(self) -> DeliveryStatus | None:
        """None when a message may go out now, otherwise the blocking status."""
        if self.in_quiet_hours():
            return DeliveryStatus.QUIET_HOURS
        if self.sent_today >= self.max_messages_per_day:
            return DeliveryStatus.QUOTA_EXCEEDED
        return None

    def record_send(self) -> None:
        self._roll_day()
        self._sent_today += 1
        logger.debug(f"Messages sent today: {self._sent_today}/{self.max_messages_per_day}")

    def usage(self) -> dict:
        """The daily counter, for persisting across restarts."""
        self._roll_day()
        return {"date": self._day.isoformat(), "sent": self._sent_today}

    def restore_usage(self, data: dict | None) -> None:
        """Resume a persisted counter; one from an earlier date is ignored."""
        if not data:
            return
        try:
            day = date.fromisoformat(str(data.get("date")))
            sent = int(data.get("sent", 0))
        except (TypeError, ValueError):
            logger.warning(f"Ignoring unreadable message counter: {data!r}")
            return
        self._roll_day()
        if day == self._day:
            self._sent_today = max(self._sent_today, sent)

"""
Event Bus - typed, in-process fan-out of engine events.

Topics are a closed enum and each topic declares the payload keys it
carries. Handlers are called synchronously in publish order, so
observers see events in exactly the order the scheduler emits them.
Async consumers (the SSE stream) subscribe with a queue instead.
"""

import asyncio
import enum
import json
import logging
from collections.abc import Callable
from dataclasses import asdict, dataclass
from uuid import uuid4

from .clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class Topic(str, enum.Enum):
    INITIALIZED = "initialized"
    BOOT_STARTED = "boot-started"
    BOOT_COMPLETE = "boot-complete"
    COVERAGE_UPDATED = "coverage-updated"
    OPTIMIZATION_STARTED = "optimization-started"
    CYCLE_START = "cycle-start"
    CYCLE_STEP = "cycle-step"
    CYCLE_COMPLETE = "cycle-complete"
    CYCLE_ERROR = "cycle-error"
    CYCLE_ABORTED = "cycle-aborted"
    TICK_DROPPED = "tick-dropped"
    INSIGHT_ADDED = "insight-added"
    ACTION_BLOCKED = "action-blocked"
    GOAL_CHANGED = "goal-changed"
    GOAL_COMPLETED = "goal-completed"
    GOAL_ON_HOLD = "goal-on-hold"
    TASK_ON_HOLD = "task-on-hold"
    CRITERIA_EVALUATED = "criteria-evaluated"
    ALL_TASKS_BLOCKED = "all-tasks-blocked"
    CRITICAL_FAILURE = "critical-failure"


# Keys every payload of a topic must carry; extra keys are allowed
PAYLOAD_FIELDS: dict[Topic, tuple[str, ...]] = {
    Topic.INITIALIZED: ("coverage", "ready", "missing"),
    Topic.BOOT_STARTED: (),
    Topic.BOOT_COMPLETE: ("coverage",),
    Topic.COVERAGE_UPDATED: ("coverage", "ready", "missing"),
    Topic.OPTIMIZATION_STARTED: ("coverage",),
    Topic.CYCLE_START: ("cycle",),
    Topic.CYCLE_STEP: ("cycle", "step", "outcome", "duration_ms"),
    Topic.CYCLE_COMPLETE: ("cycle", "duration_ms"),
    Topic.CYCLE_ERROR: ("cycle", "error", "consecutive_failures", "backoff_ms"),
    Topic.CYCLE_ABORTED: ("cycle",),
    Topic.TICK_DROPPED: ("dropped_ticks",),
    Topic.INSIGHT_ADDED: ("insight",),
    Topic.ACTION_BLOCKED: ("action", "reason"),
    Topic.GOAL_CHANGED: ("goal",),
    Topic.GOAL_COMPLETED: ("goal",),
    Topic.GOAL_ON_HOLD: ("goal_id", "reason", "review_at"),
    Topic.TASK_ON_HOLD: ("task_id", "reason", "review_at"),
    Topic.CRITERIA_EVALUATED: ("goal_id", "overall_complete", "criteria"),
    Topic.ALL_TASKS_BLOCKED: ("goal_id",),
    Topic.CRITICAL_FAILURE: ("kind", "consecutive_failures"),
}

Handler = Callable[["Event"], None]


@dataclass
class Event:
    """A single published event."""

    id: str
    topic: str
    data: dict
    timestamp: str

    def to_sse(self) -> str:
        """Format event as SSE message."""
        lines = [
            f"id: {self.id}",
            f"event: {self.topic}",
            f"data: {json.dumps(self.data, default=str)}",
        ]
        return "\n".join(lines) + "\n\n"

    def to_dict(self) -> dict:
        return asdict(self)


class EventBus:
    """Fans engine events out to topic handlers and streaming subscribers."""

    def __init__(self, clock: Clock | None = None, max_history: int = 100, queue_size: int = 1000):
        self._clock = clock or SystemClock()
        self._handlers: dict[Topic, list[Handler]] = {t: [] for t in Topic}
        self._wildcard: list[Handler] = []
        self._queues: list[asyncio.Queue] = []
        self._history: list[Event] = []
        self._max_history = max_history
        self._queue_size = queue_size

    def subscribe(self, topic: Topic | str, handler: Handler) -> Callable[[], None]:
        """Register a handler for one topic. Returns an unsubscribe callable."""
        topic = Topic(topic)
        self._handlers[topic].append(handler)

        def _unsubscribe() -> None:
            if handler in self._handlers[topic]:
                self._handlers[topic].remove(handler)

        return _unsubscribe

    def subscribe_all(self, handler: Handler) -> Callable[[], None]:
        """Register a handler for every topic."""
        self._wildcard.append(handler)

        def _unsubscribe() -> None:
            if handler in self._wildcard:
                self._wildcard.remove(handler)

        return _unsubscribe

    def open_stream(self) -> asyncio.Queue:
        """Subscribe a queue that receives every event (used by SSE)."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._queue_size)
        self._queues.append(queue)
        return queue

    def close_stream(self, queue: asyncio.Queue) -> None:
        if queue in self._queues:
            self._queues.remove(queue)

    def publish(self, topic: Topic | str, data: dict | None = None) -> Event:
        """Publish an event to all subscribers of `topic`, in registration order."""
        topic = Topic(topic)
        payload = dict(data or {})
        missing = [k for k in PAYLOAD_FIELDS[topic] if k not in payload]
        if missing:
            raise ValueError(f"Event {topic.value} missing payload keys: {missing}")

        event = Event(
            id=str(uuid4()),
            topic=topic.value,
            data=payload,
            timestamp=self._clock.now().isoformat(),
        )

        self._history.append(event)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        for handler in list(self._handlers[topic]) + list(self._wildcard):
            try:
                handler(event)
            except Exception:
                logger.exception(f"Event handler failed for {topic.value}")

        dead_queues = []
        for queue in self._queues:
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning("Event queue full, dropping subscriber")
                dead_queues.append(queue)
        for queue in dead_queues:
            self.close_stream(queue)

        return event

    def history(self, topic: Topic | str | None = None) -> list[Event]:
        """Recent events, oldest first, optionally filtered by topic."""
        if topic is None:
            return self._history.copy()
        name = Topic(topic).value
        return [e for e in self._history if e.topic == name]

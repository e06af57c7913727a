"""
Action Dispatcher - applies per-type policy and hands actions to outbound
collaborators.

    prompt     -> question queue
    alert      -> messaging channel when verified and within policy,
                  otherwise downgraded to an in-app alert insight
    recommend  -> recommendation insight
    other      -> recorded only

Any action matching an approval rule is refused: it stays in
pending_actions with a blocked marker and is never retried. Actions are
identified by (insight_id, type); one completed within the dedupe window
is not dispatched again.

The dispatcher mutates only the EngineState it is handed, which is the
scheduler's per-cycle working copy.
"""

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from datetime import timedelta

from ..clock import Clock, SystemClock, parse_instant
from ..events import EventBus, Topic
from ..models import Action, ActionType, Insight, InsightType
from ..notifier.channels.base import DeliveryResult, DeliveryStatus, MessagingChannel
from ..notifier.questions import Question, QuestionQueue
from ..observability.metrics import EngineMetrics
from ..state_store import EngineState
from .approval_policies import ApprovalPolicy

logger = logging.getLogger(__name__)

DEDUPE_WINDOW = timedelta(hours=1)
EXECUTE_MIN_PRIORITY = 8


class DispatchStatus(str, enum.Enum):
    COMPLETED = "completed"
    QUEUED = "queued"
    DOWNGRADED = "downgraded"
    BLOCKED = "blocked"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass
class DispatchResult:
    action: Action
    status: DispatchStatus
    detail: str | None = None
    insights: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "action": self.action.to_dict(),
            "status": self.status.value,
            "detail": self.detail,
        }


def _key_of(record: dict) -> tuple:
    return (record.get("insight_ref"), record.get("type"))


class ActionDispatcher:
    def __init__(
        self,
        events: EventBus,
        questions: QuestionQueue | None = None,
        channel: MessagingChannel | None = None,
        policy: ApprovalPolicy | None = None,
        clock: Clock | None = None,
        dedupe_window: timedelta = DEDUPE_WINDOW,
        send_timeout: float = 10.0,
        metrics: EngineMetrics | None = None,
    ):
        self.events = events
        self.questions = questions if questions is not None else QuestionQueue()
        self.channel = channel
        self.policy = policy or ApprovalPolicy()
        self.clock = clock or SystemClock()
        self.dedupe_window = dedupe_window
        self.send_timeout = send_timeout
        self.metrics = metrics

    async def dispatch(self, actions: list[Action], state: EngineState) -> list[DispatchResult]:
        """Dispatch actions in order. Outcomes are recorded on `state`."""
        results = []
        for action in actions:
            result = await self.dispatch_one(action, state)
            logger.info(f"Action {action.type.value} [{action.area}] -> {result.status.value}")
            results.append(result)
        return results

    async def dispatch_one(self, action: Action, state: EngineState) -> DispatchResult:
        if self._already_blocked(action, state):
            return DispatchResult(action, DispatchStatus.BLOCKED, "awaiting approval")
        if self._recently_completed(action, state):
            return DispatchResult(action, DispatchStatus.DUPLICATE, "completed within dedupe window")

        decision = self.policy.evaluate(action)
        if decision.requires_approval:
            return self._block(action, decision.reason, state)

        if action.type == ActionType.PROMPT:
            result = self._enqueue_question(action)
        elif action.type == ActionType.ALERT:
            result = await self._send_alert(action, state)
        elif action.type == ActionType.RECOMMEND:
            insight = self._add_insight(
                state,
                Insight.build(
                    action.area or "general",
                    InsightType.RECOMMENDATION,
                    action.priority,
                    action.action_text,
                    f"Recommended action for {action.area or 'general'}: {action.action_text}",
                    created_at=self.clock.now().isoformat(),
                    tags=["recommendation"],
                ),
            )
            result = DispatchResult(action, DispatchStatus.COMPLETED, "recommendation added", insight)
        else:
            result = DispatchResult(action, DispatchStatus.COMPLETED, "recorded")

        self._record_completed(action, result, state)
        if self.metrics is not None:
            self.metrics.actions_dispatched.inc()
        return result

    # =========================================================================
    # Policy
    # =========================================================================

    @staticmethod
    def _already_blocked(action: Action, state: EngineState) -> bool:
        return any(p.get("blocked") and _key_of(p) == action.key for p in state.pending_actions)

    def _recently_completed(self, action: Action, state: EngineState) -> bool:
        now = self.clock.now()
        for record in state.completed_actions:
            if _key_of(record) != action.key:
                continue
            completed_at = parse_instant(record.get("completed_at"))
            if completed_at is not None and now - completed_at < self.dedupe_window:
                return True
        return False

    def _block(self, action: Action, reason: str, state: EngineState) -> DispatchResult:
        now = self.clock.now().isoformat()
        entry = {**action.to_dict(), "blocked": True, "blocked_reason": reason, "blocked_at": now}
        state.pending_actions.append(entry)

        insight = self._add_insight(
            state,
            Insight.build(
                action.area or "general",
                InsightType.ALERT,
                action.priority,
                f"Approval needed: {action.action_text}",
                f"Blocked pending your approval ({reason}).",
                created_at=now,
                tags=["blocked-action"],
                action=entry,
            ),
        )
        logger.warning(f"Action blocked pending approval: {action.action_text!r} ({reason})")
        if self.metrics is not None:
            self.metrics.actions_blocked.inc()
        self.events.publish(Topic.ACTION_BLOCKED, {"action": entry, "reason": reason})
        return DispatchResult(action, DispatchStatus.BLOCKED, reason, insight)

    # =========================================================================
    # Per-type handling
    # =========================================================================

    def _enqueue_question(self, action: Action) -> DispatchResult:
        question = self.questions.enqueue(
            action.action_text, action.area or "general", action.priority, self.clock.now()
        )
        detail = question.id if question is not None else "already queued"
        return DispatchResult(action, DispatchStatus.QUEUED, detail)

    async def _send_alert(self, action: Action, state: EngineState) -> DispatchResult:
        if self.channel is None:
            return self._downgrade(action, "no messaging channel", state)

        status = self.channel.status()
        if not status.phone_verified:
            return self._downgrade(action, DeliveryStatus.NOT_VERIFIED.value, state)
        if not status.can_send:
            return self._downgrade(action, status.reason or "channel unavailable", state)

        delivery = await self._deliver(self.channel.send_alert(action.action_text))
        if delivery.delivered:
            return DispatchResult(action, DispatchStatus.COMPLETED, "sent")
        return self._downgrade(action, delivery.error or delivery.status.value, state)

    async def _deliver(self, send) -> DeliveryResult:
        try:
            return await asyncio.wait_for(send, timeout=self.send_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Outbound message timed out after {self.send_timeout}s")
            return DeliveryResult(DeliveryStatus.FAILED, error="timeout")
        except Exception as e:
            logger.error(f"Outbound message failed: {e}")
            return DeliveryResult(DeliveryStatus.FAILED, error=str(e))

    def _downgrade(self, action: Action, reason: str, state: EngineState) -> DispatchResult:
        insight = self._add_insight(
            state,
            Insight.build(
                action.area or "general",
                InsightType.ALERT,
                action.priority,
                action.action_text,
                f"Shown in-app instead of sent ({reason}).",
                created_at=self.clock.now().isoformat(),
                tags=["in-app-alert"],
            ),
        )
        return DispatchResult(action, DispatchStatus.DOWNGRADED, reason, insight)

    def _add_insight(self, state: EngineState, insight: Insight) -> list[dict]:
        data = insight.to_dict()
        if not state.add_insight(data):
            return []
        if self.metrics is not None:
            self.metrics.insights_added.inc()
        self.events.publish(Topic.INSIGHT_ADDED, {"insight": data})
        return [data]

    def _record_completed(self, action: Action, result: DispatchResult, state: EngineState) -> None:
        state.add_completed_action(
            {
                **action.to_dict(),
                "completed_at": self.clock.now().isoformat(),
                "outcome": result.status.value,
                "detail": result.detail,
            }
        )

    # =========================================================================
    # Proactive questions and critical alerts
    # =========================================================================

    async def send_next_question(self) -> Question | None:
        """Send the highest-priority unasked question, if the channel allows it."""
        question = self.questions.current()
        if question is None or self.channel is None:
            return None
        status = self.channel.status()
        if not (status.phone_verified and status.can_send):
            logger.debug(f"Holding question, channel unavailable: {status.reason}")
            return None

        delivery = await self._deliver(self.channel.ask_question(question.text, question.id))
        if not delivery.delivered:
            logger.info(f"Question not sent ({delivery.status.value}): {question.text}")
            return None
        self.questions.mark_asked(question.id, self.clock.now())
        return question

    async def send_critical_alert(self, text: str) -> DeliveryResult | None:
        """Best-effort alert; never raises."""
        if self.channel is None:
            logger.warning(f"Critical alert not sent, no channel: {text}")
            return None
        result = await self._deliver(self.channel.send_alert(text))
        if not result.delivered:
            logger.warning(f"Critical alert not delivered ({result.status.value}): {text}")
        return result

    def channel_usage(self) -> dict:
        return self.channel.usage() if self.channel is not None else {}

    def restore_channel_usage(self, data: dict | None) -> None:
        if self.channel is not None:
            self.channel.restore_usage(data)

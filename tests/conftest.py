"""
Test configuration - ensures repo root is in sys.path and provides the
shared engine fixtures.

This allows tests to import from top-level packages (life_os, api, cli).
Every test gets its own LIFE_OS_HOME so nothing touches ~/.life_os.
"""

import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import life_os.*, api.*, cli.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from life_os.actions import ActionDispatcher  # noqa: E402
from life_os.clock import ManualClock  # noqa: E402
from life_os.events import EventBus, Topic  # noqa: E402
from life_os.goals import GoalManager  # noqa: E402
from life_os.heartbeat import HeartbeatRecorder  # noqa: E402
from life_os.notifier import QuestionQueue  # noqa: E402
from life_os.notifier.channels.base import (  # noqa: E402
    ChannelStatus,
    DeliveryResult,
    DeliveryStatus,
    MessagingChannel,
)
from life_os.observability.metrics import EngineMetrics, MetricsRegistry  # noqa: E402
from life_os.providers import DEFAULT_PROVIDERS, ProviderRegistry, StaticProvider  # noqa: E402
from life_os.scheduler import CycleScheduler  # noqa: E402
from life_os.state_store import StateStore  # noqa: E402

# =============================================================================
# ISOLATION: per-test engine home
# =============================================================================


@pytest.fixture(autouse=True)
def life_os_home(tmp_path, monkeypatch):
    """Point LIFE_OS_HOME at a temp directory for every test."""
    home = tmp_path / "life_os_home"
    monkeypatch.setenv("LIFE_OS_HOME", str(home))
    monkeypatch.delenv("LIFE_OS_STATE_FILE", raising=False)
    for name in ("LIFE_OS_INTERVAL", "LIFE_OS_CYCLE_TIMEOUT", "LIFE_OS_STEP_TIMEOUT",
                 "LIFE_OS_LOG_LEVEL", "LIFE_OS_WEBHOOK_URL", "ANTHROPIC_API_KEY"):
        monkeypatch.delenv(name, raising=False)
    return home


# =============================================================================
# COLLABORATORS
# =============================================================================


class EventRecorder:
    """Collects every event published on a bus, in order."""

    def __init__(self, bus: EventBus):
        self.events = []
        bus.subscribe_all(self.events.append)

    def topics(self) -> list[str]:
        return [e.topic for e in self.events]

    def of(self, topic: Topic) -> list:
        return [e for e in self.events if e.topic == Topic(topic).value]

    def clear(self) -> None:
        self.events.clear()


class FakeChannel(MessagingChannel):
    """Records outbound messages instead of sending them."""

    def __init__(self, phone_verified: bool = True, can_send: bool = True, reason: str | None = None,
                 result: DeliveryStatus = DeliveryStatus.SENT):
        self.phone_verified = phone_verified
        self.can_send = can_send
        self.reason = reason
        self.result = result
        self.alerts: list[str] = []
        self.questions: list[tuple[str, str]] = []

    def status(self) -> ChannelStatus:
        return ChannelStatus(self.phone_verified, self.can_send, self.reason)

    async def send_alert(self, text: str) -> DeliveryResult:
        self.alerts.append(text)
        return DeliveryResult(self.result)

    async def ask_question(self, text: str, question_id: str) -> DeliveryResult:
        self.questions.append((text, question_id))
        return DeliveryResult(self.result)

    @property
    def calls(self) -> int:
        return len(self.alerts) + len(self.questions)


@pytest.fixture
def clock():
    """Deterministic clock starting Monday 2025-01-06 12:00 UTC."""
    return ManualClock()


@pytest.fixture
def events(clock):
    return EventBus(clock)


@pytest.fixture
def recorder(events):
    return EventRecorder(events)


@pytest.fixture
def fake_channel():
    return FakeChannel()


@pytest.fixture
def metrics():
    return EngineMetrics(MetricsRegistry())


@pytest.fixture
def build_scheduler(tmp_path, clock, events, metrics):
    """
    Factory for a fully wired CycleScheduler on temp files.

    Usage:
        scheduler = build_scheduler(handles=[StaticProvider(...)], step_timeout=0.1)
    """

    def _build(
        handles=(),
        declared=DEFAULT_PROVIDERS,
        channel=None,
        analyzer=None,
        insight_generator=None,
        planner=None,
        goal_planner=None,
        task_executor=None,
        step_timeout=1.0,
        cycle_timeout=5.0,
        fetch_timeout=1.0,
        **kwargs,
    ) -> CycleScheduler:
        registry = ProviderRegistry(
            declared, handles=list(handles), fetch_timeout=fetch_timeout, clock=clock
        )
        goals = GoalManager(events, clock, planner=goal_planner, planner_timeout=step_timeout)
        dispatcher = ActionDispatcher(
            events, QuestionQueue(), channel=channel, clock=clock, metrics=metrics
        )
        heartbeat = HeartbeatRecorder(
            tmp_path / "engine-heartbeat.json", clock, step_timeout=step_timeout
        )
        return CycleScheduler(
            StateStore(tmp_path / "engine_state.json"),
            events,
            registry,
            goals,
            dispatcher,
            heartbeat,
            clock=clock,
            analyzer=analyzer,
            insight_generator=insight_generator,
            planner=planner,
            metrics=metrics,
            task_executor=task_executor,
            step_timeout=step_timeout,
            cycle_timeout=cycle_timeout,
            shutdown_timeout=kwargs.pop("shutdown_timeout", 1.0),
            **kwargs,
        )

    return _build


# =============================================================================
# PROVIDER PAYLOADS
# =============================================================================

PROVIDERS_BY_ID = {p.id: p for p in DEFAULT_PROVIDERS}

DEFAULT_GOAL = {
    "id": "learn-rust",
    "title": "Finish Rust course",
    "category": "growth",
    "priority": 1,
    "target_value": 100,
    "current_value": 40,
}

IDENTITY_PAYLOAD = {
    "name": "Sam Rivera",
    "headline": "Staff Engineer",
    "positions": [{"title": "Staff Engineer", "company": "Acme"}],
    "skills": ["python", "distributed systems"],
}


def static(provider_id: str, payload: dict) -> StaticProvider:
    return StaticProvider(PROVIDERS_BY_ID[provider_id], payload)


def make_ready_handles(active_goals=None) -> list:
    """Handles that put weighted coverage at 82%: email and safety missing,
    bank_accounts reporting two of its three fields."""
    goals = [dict(DEFAULT_GOAL)] if active_goals is None else active_goals
    return [
        static("identity", IDENTITY_PAYLOAD),
        static("goals", {"active_goals": goals}),
        static("ai_model", {"model": "claude", "available": True}),
        static("portfolio", {"equity": 250000, "positions": [{"VTI": 100}], "buying_power": 5000}),
        static(
            "health",
            {
                "sleep": {"score": 81},
                "readiness": {"score": 77},
                "activity": {"steps": 8000},
                "history": {"consecutive_days": 12},
            },
        ),
        static("calendar", {"events": [{"title": "Family dinner"}], "weekly_hours": 9}),
        static("bank_accounts", {"accounts": [{"id": "chk"}], "balances": {"chk": 4200}}),
    ]

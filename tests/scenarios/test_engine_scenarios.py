"""
End-to-end engine scenarios.

Each scenario wires a real scheduler on temp files and drives it through
boot and one or more cycles, asserting on what an observer would see:
events, display data, the persisted state and the outbound channel.
Deadlines are scaled down so the suite stays fast.
"""

import asyncio
import functools

from life_os.analyzers import AreaAnalyzer
from life_os.cycle_result import CycleStatus, TickOutcome
from life_os.events import Topic
from life_os.goals import HoldReason
from life_os.models import Action, ActionType
from life_os.providers import DataProvider
from life_os.scheduler import STEP_ADVANCE_GOALS, STEP_ANALYZE
from life_os.state_store import read_json
from tests.conftest import (
    IDENTITY_PAYLOAD,
    PROVIDERS_BY_ID,
    FakeChannel,
    make_ready_handles,
    static,
)


def async_test(coro):
    """Decorator to run async tests with asyncio.run."""

    @functools.wraps(coro)
    def wrapper(*args, **kwargs):
        return asyncio.run(coro(*args, **kwargs))

    return wrapper


class SleepyAnalyzer(AreaAnalyzer):
    async def analyze(self, context, goals=None):
        await asyncio.sleep(60)
        return super().analyze(context, goals)


class StalledGather(DataProvider):
    """Identity handle that can be told to hang past any deadline."""

    def __init__(self):
        super().__init__(PROVIDERS_BY_ID["identity"])
        self.hang = False

    async def fetch(self, ctx):
        if self.hang:
            await asyncio.sleep(60)
        return dict(IDENTITY_PAYLOAD)


class FixedPlanner:
    def __init__(self, actions):
        self.actions = actions

    def plan(self, insights):
        return list(self.actions)


FINANCIAL_GOAL = {
    "id": "fi-1m",
    "title": "Reach a 1M portfolio",
    "category": "financial",
    "priority": 1,
    "target_value": 1_000_000,
}


# =============================================================================
# S1: COLD BOOT
# =============================================================================


class TestColdBoot:
    @async_test
    async def test_cold_boot_one_concern_per_area(self, build_scheduler, tmp_path):
        scheduler = build_scheduler()
        await scheduler.boot()
        result = await scheduler.run_cycle()

        data = scheduler.display_data()
        assert result.status == CycleStatus.COMPLETE
        assert data["coverage"] == 0
        assert data["ready"] is False
        assert data["cycle_count"] == 1
        assert data["heartbeat"]["status"] == "running"

        insights = scheduler.state.insights
        assert sorted(i["area"] for i in insights) == sorted(
            ["financial", "health", "career", "family", "safety", "growth"]
        )
        assert {(i["type"], i["priority"]) for i in insights} == {("concern", 8)}
        assert read_json(tmp_path / "engine_state.json")["cycle_count"] == 1

    @async_test
    async def test_no_alerts_without_channel(self, build_scheduler):
        scheduler = build_scheduler()
        await scheduler.run_cycle()
        assert not any(i.get("tags") for i in scheduler.state.insights)
        assert all(a["type"] == "prompt" for a in scheduler.state.completed_actions)


# =============================================================================
# S2 / S3: COVERAGE GATE
# =============================================================================


class TestCoverageGate:
    @async_test
    async def test_partial_data_below_threshold(self, build_scheduler, recorder):
        scheduler = build_scheduler(
            handles=[
                static("identity", IDENTITY_PAYLOAD),
                static("goals", {"active_goals": [{"id": "g1", "title": "Run a marathon"}]}),
            ]
        )
        await scheduler.boot()
        result = await scheduler.run_cycle()

        data = scheduler.display_data()
        assert data["coverage"] == 30
        assert data["ready"] is False
        assert [m["provider_id"] for m in data["missing"][:2]] == ["portfolio", "health"]
        assert result.step(STEP_ADVANCE_GOALS) is None
        assert recorder.of(Topic.OPTIMIZATION_STARTED) == []

    @async_test
    async def test_gate_crossing(self, build_scheduler, recorder):
        scheduler = build_scheduler(handles=make_ready_handles())
        snapshot = await scheduler.boot()
        assert snapshot.overall == 82
        assert snapshot.ready is True

        first = await scheduler.run_cycle()
        second = await scheduler.run_cycle()

        assert len(recorder.of(Topic.OPTIMIZATION_STARTED)) == 1
        assert scheduler.state.optimization_started is True
        for result in (first, second):
            assert result.step(STEP_ADVANCE_GOALS) is not None

    @async_test
    async def test_gate_announcement_survives_restart(self, build_scheduler, recorder):
        first = build_scheduler(handles=make_ready_handles())
        await first.boot()
        await first.run_cycle()

        second = build_scheduler(handles=make_ready_handles())
        await second.boot()
        await second.run_cycle()
        assert len(recorder.of(Topic.OPTIMIZATION_STARTED)) == 1


# =============================================================================
# S4 / S5: DEADLINES
# =============================================================================


class TestDeadlines:
    @async_test
    async def test_analyzer_step_timeout(self, build_scheduler, recorder, clock):
        scheduler = build_scheduler(analyzer=SleepyAnalyzer(), step_timeout=0.1, cycle_timeout=3)
        await scheduler.boot()
        booted_beat = scheduler.heartbeat.data["last_beat"]
        clock.advance(60)
        recorder.clear()

        result = await scheduler.run_cycle()

        assert recorder.topics()[0] == "cycle-start"
        assert recorder.topics()[-1] == "cycle-complete"
        assert result.timed_out_steps == [STEP_ANALYZE]
        assert result.step("plan-actions").value == []
        assert scheduler.state.insights == []
        assert scheduler.consecutive_failures == 0
        assert scheduler.heartbeat.data["last_beat"] > booted_beat

    @async_test
    async def test_slow_gather_fails_cycle_and_backs_off(self, build_scheduler, recorder, clock):
        provider = StalledGather()
        scheduler = build_scheduler(handles=[provider], step_timeout=0.05, cycle_timeout=2)
        await scheduler.boot()
        provider.hang = True

        assert await scheduler.tick() == TickOutcome.RAN
        assert recorder.of(Topic.CYCLE_ERROR)
        assert scheduler.consecutive_failures == 1
        assert scheduler.backoff_ms == 5000

        clock.advance(1)
        assert await scheduler.tick() == TickOutcome.SKIPPED_BACKOFF

        provider.hang = False
        clock.advance(5)
        assert await scheduler.tick() == TickOutcome.RAN
        assert scheduler.state.cycle_count == 1


# =============================================================================
# S6: GOAL ON HOLD FOR UNMET TARGET
# =============================================================================


class TestGoalOnHold:
    @async_test
    async def test_unmet_external_target_then_completion(self, build_scheduler, recorder):
        handles = make_ready_handles(active_goals=[dict(FINANCIAL_GOAL)])
        portfolio = next(h for h in handles if h.provider_id == "portfolio")
        scheduler = build_scheduler(handles=handles)
        await scheduler.boot()

        goals = scheduler.goals
        assert goals.current_goal_id == "fi-1m"
        assert goals.on_hold_goals["fi-1m"].reason == HoldReason.TARGET_NOT_MET
        assert recorder.of(Topic.GOAL_ON_HOLD)[0].data["reason"] == "target_not_met"

        first = await scheduler.run_cycle()
        criteria = goals.criteria["fi-1m"]
        assert criteria.criteria[0].current_value == 250000
        assert criteria.criteria[0].is_complete is False
        assert first.step(STEP_ADVANCE_GOALS).value == {
            "task_id": "fi-1m-research",
            "state": "in_progress",
        }

        portfolio.update({"equity": 1_200_000, "positions": [{"VTI": 500}], "buying_power": 0})
        await scheduler.run_cycle()

        completed = recorder.of(Topic.GOAL_COMPLETED)
        assert [e.data["goal"]["id"] for e in completed] == ["fi-1m"]
        evaluated = recorder.of(Topic.CRITERIA_EVALUATED)[-1].data
        assert evaluated["overall_complete"] is True
        assert scheduler.state.completed_goals[0]["goal_id"] == "fi-1m"


# =============================================================================
# S7: APPROVAL-GATED ACTION
# =============================================================================


class TestApprovalGate:
    @async_test
    async def test_buy_alert_is_blocked(self, build_scheduler, recorder, metrics):
        channel = FakeChannel()
        planner = FixedPlanner(
            [Action(ActionType.ALERT, 9, "ins_rebalance", "Buy more VTI before the close", area="financial")]
        )
        scheduler = build_scheduler(channel=channel, planner=planner)
        await scheduler.run_cycle()

        pending = scheduler.state.pending_actions
        assert len(pending) == 1
        assert pending[0]["blocked"] is True
        assert "buy" in pending[0]["blocked_reason"]
        assert channel.alerts == []
        assert metrics.actions_blocked.value == 1

        visible = [i for i in scheduler.display_data()["insights"] if "blocked-action" in i.get("tags", [])]
        assert visible[0]["title"] == "Approval needed: Buy more VTI before the close"
        assert visible[0]["action"]["blocked"] is True

        # never retried on later cycles
        await scheduler.run_cycle()
        assert len(scheduler.state.pending_actions) == 1
        assert len(recorder.of(Topic.ACTION_BLOCKED)) == 1


# =============================================================================
# S8: IDEMPOTENT INSIGHT IDS
# =============================================================================


class TestIdempotentInsights:
    @async_test
    async def test_identical_cycles_do_not_grow_insights(self, build_scheduler):
        scheduler = build_scheduler(handles=[static("identity", IDENTITY_PAYLOAD)])
        await scheduler.run_cycle()
        first_ids = [i["id"] for i in scheduler.state.insights]

        await scheduler.run_cycle()
        second_ids = [i["id"] for i in scheduler.state.insights]

        assert first_ids
        assert second_ids == first_ids
        assert scheduler.state.cycle_count == 2

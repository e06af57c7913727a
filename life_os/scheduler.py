"""
Cycle Scheduler - the engine's single coordinator.

Each cycle runs a fixed step sequence:

    gather-context -> analyze-life-areas -> generate-insights ->
    plan-actions -> execute-actions -> check-proactive-prompts ->
    update-life-scores [-> advance-goals once coverage reaches 80]

Every step runs under the step deadline and the whole cycle under the
cycle deadline. A timed-out or failed step yields its default output and
the cycle carries on; only a gather-context failure, a cycle timeout or
an unexpected error fails the cycle. Failures arm an exponential backoff
that makes the next ticks skip until the window has passed.

A cycle works on a copy of EngineState. The copy replaces the committed
state only when the cycle completes; a failed cycle records nothing but
error_recovery.
"""

import asyncio
import copy
import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any

from . import coverage as coverage_mod
from .actions.dispatcher import EXECUTE_MIN_PRIORITY, ActionDispatcher
from .analyzers import ActionPlanner, AreaAnalyzer, InsightGenerator
from .clock import Clock, SystemClock
from .context import Context
from .coverage import CoverageSnapshot
from .cycle_result import CycleResult, CycleStatus, StepOutcome, StepResult, TickOutcome
from .digest import write_insights_digest
from .errors import CycleTimeout, GatherFailed, LifeOSError, PersistenceError
from .events import EventBus, Topic
from .goals import GoalManager, HoldReason, Task
from .heartbeat import HeartbeatRecorder
from .notifier.questions import QuestionQueue
from .observability.context import CycleContext
from .observability.metrics import EngineMetrics, MetricsRegistry
from .providers.registry import ProviderRegistry
from .state_store import EngineState, StateStore, default_error_recovery

logger = logging.getLogger(__name__)

STEP_GATHER = "gather-context"
STEP_ANALYZE = "analyze-life-areas"
STEP_INSIGHTS = "generate-insights"
STEP_PLAN = "plan-actions"
STEP_EXECUTE = "execute-actions"
STEP_PROMPTS = "check-proactive-prompts"
STEP_SCORES = "update-life-scores"
STEP_ADVANCE_GOALS = "advance-goals"

STEPS = (
    STEP_GATHER,
    STEP_ANALYZE,
    STEP_INSIGHTS,
    STEP_PLAN,
    STEP_EXECUTE,
    STEP_PROMPTS,
    STEP_SCORES,
)

BANNER = "═" * 39


class TaskExecutor(ABC):
    """Runs one goal task. Return results to complete it, None to park it."""

    @abstractmethod
    async def execute(self, task: Task, context: Context) -> dict | None:
        pass


async def _invoke(fn, *args) -> Any:
    value = fn(*args)
    if inspect.isawaitable(value):
        value = await value
    return value


class CycleScheduler:
    def __init__(
        self,
        store: StateStore,
        events: EventBus,
        registry: ProviderRegistry,
        goals: GoalManager,
        dispatcher: ActionDispatcher,
        heartbeat: HeartbeatRecorder,
        clock: Clock | None = None,
        analyzer: AreaAnalyzer | None = None,
        insight_generator: InsightGenerator | None = None,
        planner: ActionPlanner | None = None,
        metrics: EngineMetrics | None = None,
        task_executor: TaskExecutor | None = None,
        interval: float = 300.0,
        step_timeout: float = 30.0,
        cycle_timeout: float = 240.0,
        shutdown_timeout: float = 10.0,
        backoff_base_ms: int = 5000,
        backoff_cap_ms: int = 60000,
        max_consecutive_failures: int = 5,
        digest_path=None,
    ):
        self.store = store
        self.events = events
        self.registry = registry
        self.goals = goals
        self.dispatcher = dispatcher
        self.heartbeat = heartbeat
        self.clock = clock or SystemClock()
        self.analyzer = analyzer or AreaAnalyzer()
        self.insight_generator = insight_generator or InsightGenerator(self.clock)
        self.planner = planner or ActionPlanner()
        self.metrics = metrics or EngineMetrics(MetricsRegistry())
        self.task_executor = task_executor

        self.interval = interval
        self.step_timeout = step_timeout
        self.cycle_timeout = cycle_timeout
        self.shutdown_timeout = shutdown_timeout
        self.backoff_base_ms = backoff_base_ms
        self.backoff_cap_ms = backoff_cap_ms
        self.max_consecutive_failures = max_consecutive_failures
        self.digest_path = digest_path

        self.state = EngineState()
        self.coverage: CoverageSnapshot | None = None
        self.last_result: CycleResult | None = None
        self._loaded = False
        self._booted = False
        self._optimization_announced = False

        # cycle bookkeeping
        self._in_progress = False
        self._cycle_task: asyncio.Task | None = None
        self._abort_requested = False
        self._current_step: str | None = None
        self._step_started: float | None = None
        self._idle = asyncio.Event()
        self._idle.set()

        # failure bookkeeping
        self.consecutive_failures = 0
        self.backoff_ms = 0
        self._last_failure_mono: float | None = None
        self._critical_sent = False
        self.persistence_failures = 0
        self._persistence_alerted = False
        self.dropped_ticks = 0
        self.skipped_ticks = 0

        # run loop
        self._loop_task: asyncio.Task | None = None
        self._tick_tasks: set[asyncio.Task] = set()
        self._wakeup = asyncio.Event()
        self._stop_requested = False

    # =========================================================================
    # Boot
    # =========================================================================

    def _load_state(self) -> None:
        self.state = self.store.load()
        self.goals.restore(self.state)
        self.dispatcher.questions = QuestionQueue.from_list(self.state.pending_questions)
        self._optimization_announced = self.state.optimization_started
        self.dispatcher.restore_channel_usage(self.state.messaging_usage)
        self._loaded = True
        logger.info(
            f"Loaded state: {self.state.cycle_count} cycles, {len(self.state.insights)} insights"
        )

    async def boot(self) -> CoverageSnapshot:
        """Initial context gathering, coverage and goal selection."""
        self.heartbeat.start()
        await self._flush_heartbeat()
        self._load_state()
        self.events.publish(Topic.BOOT_STARTED, {})
        logger.info("Boot: gathering initial context")

        try:
            results = await asyncio.wait_for(self.registry.gather(0), timeout=self.cycle_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Boot context gathering timed out after {self.cycle_timeout}s")
            results = {}
        context = self._build_context(0, results, self.state)
        self._announce_optimization(self.state, context.coverage.overall)

        self.state.initialized = True
        await self._persist()
        self.events.publish(Topic.BOOT_COMPLETE, {"coverage": context.coverage.overall})

        try:
            self.goals.sync_goals(context.active_goals)
            await self.goals.initialize()
        except Exception as e:
            logger.error(f"Goal initialization failed, continuing without a goal: {e}", exc_info=True)
            self.heartbeat.record_error(f"goal initialization failed: {e}")
            self.goals.restore(self.state)
        self.goals.write_to(self.state)

        snapshot = context.coverage
        self.events.publish(
            Topic.INITIALIZED,
            {
                "coverage": snapshot.overall,
                "ready": snapshot.ready,
                "missing": [m.to_dict() for m in snapshot.missing],
            },
        )
        self._booted = True
        logger.info(f"Boot complete: coverage {snapshot.overall}% (ready={snapshot.ready})")
        return snapshot

    # =========================================================================
    # Run loop
    # =========================================================================

    def start(self, interval: float | None = None) -> asyncio.Task:
        """Begin recurring cycles. Calling start() again returns the running loop."""
        if self._loop_task is not None and not self._loop_task.done():
            return self._loop_task
        if interval is not None:
            self.interval = interval
        self._stop_requested = False
        self._wakeup.clear()
        self._loop_task = asyncio.create_task(self._run_forever())
        return self._loop_task

    async def _run_forever(self) -> None:
        await self._boot_until_ready()
        if not self._booted:
            return
        logger.info(f"Scheduler started (interval {self.interval}s)")
        while not self._stop_requested:
            # ticks fire on the timer whether or not a cycle is running
            task = asyncio.create_task(self.tick())
            self._tick_tasks.add(task)
            task.add_done_callback(self._tick_tasks.discard)
            try:
                await asyncio.wait_for(self._wakeup.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass
        logger.info("Scheduler loop exited")

    async def _boot_until_ready(self) -> None:
        """Boot, retrying with the cycle backoff until it succeeds or stop() is called."""
        attempt = 0
        while not self._booted and not self._stop_requested:
            try:
                await self.boot()
            except Exception as e:
                attempt += 1
                delay_ms = min(self.backoff_base_ms * 2 ** (attempt - 1), self.backoff_cap_ms)
                logger.error(f"Boot failed (attempt {attempt}), retrying in {delay_ms}ms: {e}", exc_info=True)
                self.heartbeat.pause()
                self.heartbeat.record_error(f"boot failed: {e}")
                await self._flush_heartbeat()
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=delay_ms / 1000)
                except asyncio.TimeoutError:
                    pass

    async def stop(self) -> None:
        """Let the in-flight cycle finish within the shutdown deadline, then flush."""
        self._stop_requested = True
        self._wakeup.set()

        if self._in_progress:
            try:
                await asyncio.wait_for(self._idle.wait(), timeout=self.shutdown_timeout)
            except asyncio.TimeoutError:
                logger.warning(f"Cycle still running after {self.shutdown_timeout}s, aborting")
                self.abort_current_cycle()
                await self._idle.wait()

        if self._loop_task is not None:
            await self._loop_task
            self._loop_task = None
        if self._tick_tasks:
            await asyncio.gather(*self._tick_tasks, return_exceptions=True)

        self.heartbeat.stop()
        await self._flush_heartbeat()
        if self._loaded:
            await self._persist()
        logger.info("Scheduler stopped")

    async def tick(self) -> TickOutcome:
        """One timer tick: run a cycle unless one is running or backoff is armed."""
        if self._in_progress:
            self.dropped_ticks += 1
            self.metrics.ticks_dropped.inc()
            logger.warning(f"Tick dropped: cycle {self.state.cycle_count + 1} still running")
            self.events.publish(
                Topic.TICK_DROPPED,
                {"dropped_ticks": self.dropped_ticks, "current_step": self._current_step},
            )
            return TickOutcome.DROPPED

        if self._in_backoff():
            self.skipped_ticks += 1
            self.metrics.ticks_skipped.inc()
            logger.info(
                f"Tick skipped: backoff {self.backoff_ms}ms after "
                f"{self.consecutive_failures} consecutive failure(s)"
            )
            return TickOutcome.SKIPPED_BACKOFF

        await self.run_cycle()
        return TickOutcome.RAN

    def _in_backoff(self) -> bool:
        if self.consecutive_failures == 0 or self._last_failure_mono is None:
            return False
        elapsed_ms = (self.clock.monotonic() - self._last_failure_mono) * 1000
        return elapsed_ms < self.backoff_ms

    # =========================================================================
    # Cycle
    # =========================================================================

    async def run_cycle(self) -> CycleResult:
        if self._in_progress:
            raise LifeOSError("A cycle is already in progress")
        if not self._loaded:
            self._load_state()

        number = self.state.cycle_count + 1
        working = self.state.copy()
        started_at = self.clock.now()
        started = self.clock.monotonic()
        result = CycleResult(number, started_at, started_at)

        self._in_progress = True
        self._idle.clear()
        self.metrics.cycles.inc()

        with CycleContext(cycle_number=number):
            logger.info(BANNER)
            logger.info(f"  CYCLE {number} STARTING")
            logger.info(BANNER)
            self.events.publish(Topic.CYCLE_START, {"cycle": number, "started_at": started_at.isoformat()})
            self._cycle_task = asyncio.create_task(self._execute_steps(number, working, result))
            try:
                await asyncio.wait_for(self._cycle_task, timeout=self.cycle_timeout)
            except asyncio.TimeoutError:
                await self._fail_cycle(
                    result, CycleTimeout(f"Cycle exceeded {self.cycle_timeout}s deadline")
                )
            except asyncio.CancelledError:
                if not self._abort_requested:
                    self._rollback()
                    raise
                self._abort_cycle(result)
            except Exception as e:
                logger.error(f"Cycle {number} failed: {e}", exc_info=not isinstance(e, GatherFailed))
                await self._fail_cycle(result, e)
            else:
                await self._commit(working, result, started)
            finally:
                result.completed_at = self.clock.now()
                self.metrics.cycle_duration.observe(self.clock.monotonic() - started)
                self._in_progress = False
                self._cycle_task = None
                self._abort_requested = False
                self._current_step = None
                self._step_started = None
                self._idle.set()

        self.last_result = result
        return result

    async def _execute_steps(self, number: int, working: EngineState, result: CycleResult) -> None:
        gathered = await self._step(result, STEP_GATHER, self._gather_context, number, working)
        if not gathered.ok:
            raise GatherFailed(f"gather-context {gathered.outcome.value}: {gathered.error}")
        context: Context = gathered.value

        analyses = (
            await self._step(result, STEP_ANALYZE, self.analyzer.analyze, context)
        ).value_or({})
        insights = (
            await self._step(result, STEP_INSIGHTS, self._generate_insights, analyses, working)
        ).value_or([])
        actions = (await self._step(result, STEP_PLAN, self.planner.plan, insights)).value_or([])
        await self._step(result, STEP_EXECUTE, self._execute_actions, actions, working)
        await self._step(result, STEP_PROMPTS, self.dispatcher.send_next_question)
        await self._step(result, STEP_SCORES, self._update_life_scores, analyses, working)

        if context.coverage.ready:
            await self._step(result, STEP_ADVANCE_GOALS, self._advance_goals, context)

    async def _step(self, result: CycleResult, name: str, fn, *args) -> StepResult:
        self._current_step = name
        self._step_started = self.clock.monotonic()
        self.heartbeat.beat(name)
        await self._flush_heartbeat()
        logger.info(f"▶ {name}")

        try:
            value = await asyncio.wait_for(_invoke(fn, *args), timeout=self.step_timeout)
            step = StepResult(name, StepOutcome.OK, value=value)
        except asyncio.TimeoutError:
            self.metrics.step_timeouts.inc()
            logger.warning(f"  {name} timed out after {self.step_timeout}s, using defaults")
            step = StepResult(name, StepOutcome.TIMEOUT, error=f"timeout after {self.step_timeout}s")
        except Exception as e:
            logger.error(f"  {name} failed: {e}", exc_info=True)
            step = StepResult(name, StepOutcome.FAILED, error=str(e), error_kind=type(e).__name__)

        step.duration_seconds = self.clock.monotonic() - self._step_started
        self.metrics.step_duration.observe(step.duration_seconds)
        result.steps.append(step)
        self.events.publish(
            Topic.CYCLE_STEP,
            {
                "cycle": result.cycle_number,
                "step": name,
                "outcome": step.outcome.value,
                "duration_ms": round(step.duration_seconds * 1000),
                "error": step.error,
            },
        )
        return step

    # =========================================================================
    # Steps
    # =========================================================================

    async def _gather_context(self, number: int, working: EngineState) -> Context:
        results = await self.registry.gather(number)
        return self._build_context(number, results, working)

    def _build_context(self, number: int, results: dict, state: EngineState) -> Context:
        providers = self.registry.providers
        snapshot = coverage_mod.evaluate(results, providers)
        self.coverage = snapshot
        state.coverage = snapshot.to_dict()
        self.metrics.coverage.set(snapshot.overall)

        connected = sum(1 for r in results.values() if r.connected)
        logger.info(f"  Coverage {snapshot.overall}% ({connected}/{len(providers)} providers connected)")
        self.events.publish(
            Topic.COVERAGE_UPDATED,
            {
                "coverage": snapshot.overall,
                "ready": snapshot.ready,
                "missing": [m.to_dict() for m in snapshot.missing],
            },
        )

        if snapshot.ready and not state.optimization_started:
            state.optimization_started = True
            logger.info(f"Coverage gate reached ({snapshot.overall}%)")

        return Context(
            cycle=number,
            gathered_at=self.clock.now(),
            results=results,
            coverage=snapshot,
            categories={p.id: p.category for p in providers},
        )

    async def _generate_insights(self, analyses: dict, working: EngineState) -> list:
        insights = await _invoke(self.insight_generator.generate, analyses)
        added = 0
        # unshift lowest priority first so the highest ends up on top
        for insight in reversed(insights):
            data = insight.to_dict()
            if working.add_insight(data):
                added += 1
                self.metrics.insights_added.inc()
                self.events.publish(Topic.INSIGHT_ADDED, {"insight": data})
        logger.info(f"  {len(insights)} insights ({added} new)")
        return insights

    async def _execute_actions(self, actions: list, working: EngineState) -> list:
        due = [a for a in actions if a.priority >= EXECUTE_MIN_PRIORITY]
        if not due:
            return []
        results = await self.dispatcher.dispatch(due, working)
        logger.info(f"  Dispatched {len(results)} of {len(actions)} planned actions")
        return results

    async def _update_life_scores(self, analyses: dict, working: EngineState) -> dict:
        if analyses:
            working.area_scores = {area.value: a.score for area, a in analyses.items()}
        if self.digest_path is not None:
            await asyncio.to_thread(
                write_insights_digest,
                self.digest_path,
                working.insights,
                working.area_scores,
                self.clock.now(),
            )
        return working.area_scores

    async def _advance_goals(self, context: Context) -> dict | None:
        self.goals.sync_goals(context.active_goals)
        self.goals.release_due_holds()
        await self.goals.reconsider()
        await self.goals.evaluate_criteria(context)

        task = self.goals.next_task()
        if task is None:
            return None
        self.goals.start_task(task.id)
        if self.task_executor is None:
            return {"task_id": task.id, "state": task.state.value}

        try:
            outcome = await self.task_executor.execute(task, context)
        except Exception as e:
            logger.warning(f"  Task {task.id} failed: {e}")
            self.goals.put_task_on_hold(task.id, HoldReason.WAITING_EXTERNAL, notes=str(e))
            return {"task_id": task.id, "state": task.state.value, "error": str(e)}

        if outcome is None:
            self.goals.put_task_on_hold(task.id, HoldReason.WAITING_DATA, notes="No result yet")
        else:
            await self.goals.complete_task(task.id, outcome)
        return {"task_id": task.id, "state": task.state.value}

    # =========================================================================
    # Outcomes
    # =========================================================================

    async def _commit(self, working: EngineState, result: CycleResult, started: float) -> None:
        duration_ms = round((self.clock.monotonic() - started) * 1000)
        number = result.cycle_number

        working.cycle_count = number
        working.last_cycle = self.clock.now().isoformat()
        working.error_recovery = default_error_recovery()
        working.pending_questions = self.dispatcher.questions.to_list()
        self.goals.write_to(working)
        self.state = working
        self._announce_optimization(working, self.coverage.overall if self.coverage else None)

        self.consecutive_failures = 0
        self.backoff_ms = 0
        self._last_failure_mono = None
        self._critical_sent = False

        self.heartbeat.record_work(f"cycle {number}", duration_ms)
        await self._persist()
        await self._flush_heartbeat()

        result.status = CycleStatus.COMPLETE
        self.events.publish(
            Topic.CYCLE_COMPLETE,
            {
                "cycle": number,
                "duration_ms": duration_ms,
                "coverage": self.coverage.overall if self.coverage else None,
                "timed_out_steps": result.timed_out_steps,
                "failed_steps": result.failed_steps,
            },
        )
        logger.info(BANNER)
        logger.info(f"  CYCLE {number} COMPLETE ({duration_ms}ms)")
        logger.info(BANNER)

    async def _fail_cycle(self, result: CycleResult, error: Exception) -> None:
        self._rollback()
        self.consecutive_failures += 1
        self.backoff_ms = min(
            self.backoff_base_ms * 2 ** (self.consecutive_failures - 1), self.backoff_cap_ms
        )
        self._last_failure_mono = self.clock.monotonic()
        self.metrics.cycle_failures.inc()

        message = str(error) or type(error).__name__
        result.status = CycleStatus.FAILED
        result.error = message

        self.state.error_recovery.update(
            {
                "consecutive_failures": self.consecutive_failures,
                "backoff_ms": self.backoff_ms,
                "last_failure_at": self.clock.now().isoformat(),
                "last_error": message,
            }
        )
        self.heartbeat.record_error(message)
        await self._persist()
        await self._flush_heartbeat()

        logger.error(
            f"Cycle {result.cycle_number} failed ({self.consecutive_failures} consecutive), "
            f"backoff {self.backoff_ms}ms: {message}"
        )
        self.events.publish(
            Topic.CYCLE_ERROR,
            {
                "cycle": result.cycle_number,
                "error": message,
                "consecutive_failures": self.consecutive_failures,
                "backoff_ms": self.backoff_ms,
            },
        )

        if self.consecutive_failures >= self.max_consecutive_failures and not self._critical_sent:
            self._critical_sent = True
            await self._critical("cycle", self.consecutive_failures, message)

    def _abort_cycle(self, result: CycleResult) -> None:
        self._rollback()
        self.metrics.cycle_aborts.inc()
        result.status = CycleStatus.ABORTED
        result.error = "aborted"
        logger.warning(f"Cycle {result.cycle_number} aborted during {self._current_step}")
        self.events.publish(
            Topic.CYCLE_ABORTED, {"cycle": result.cycle_number, "step": self._current_step}
        )

    def _announce_optimization(self, state: EngineState, coverage: int | None) -> None:
        """Publish optimization-started once, after the flag is part of committed state."""
        if state.optimization_started and not self._optimization_announced:
            self._optimization_announced = True
            logger.info("Optimization started")
            self.events.publish(Topic.OPTIMIZATION_STARTED, {"coverage": coverage})

    def _rollback(self) -> None:
        """Discard goal and question changes made by an uncommitted cycle."""
        self.goals.restore(self.state)
        self.dispatcher.questions = QuestionQueue.from_list(self.state.pending_questions)

    async def _critical(self, kind: str, count: int, detail: str) -> None:
        logger.critical(f"Critical failure ({kind}): {count} consecutive failures. Last: {detail}")
        self.events.publish(
            Topic.CRITICAL_FAILURE,
            {"kind": kind, "consecutive_failures": count, "last_error": detail},
        )
        await self.dispatcher.send_critical_alert(
            f"Life engine critical failure ({kind}): {count} consecutive failures. {detail}"
        )

    async def _persist(self) -> None:
        self.state.messaging_usage = self.dispatcher.channel_usage()
        self.state.error_recovery["persistence_failures"] = self.persistence_failures
        try:
            await self.store.save_async(self.state)
        except PersistenceError as e:
            self.persistence_failures += 1
            self.state.error_recovery["persistence_failures"] = self.persistence_failures
            self.metrics.persistence_failures.inc()
            logger.error(f"State save failed ({self.persistence_failures} in a row): {e}")
            if (
                self.persistence_failures >= self.max_consecutive_failures
                and not self._persistence_alerted
            ):
                self._persistence_alerted = True
                await self._critical("persistence", self.persistence_failures, str(e))
            return
        self.persistence_failures = 0
        self.state.error_recovery["persistence_failures"] = 0
        self._persistence_alerted = False

    async def _flush_heartbeat(self) -> None:
        try:
            await self.heartbeat.flush_async()
        except PersistenceError as e:
            logger.warning(f"Heartbeat write failed: {e}")

    # =========================================================================
    # Control and observers
    # =========================================================================

    def abort_current_cycle(self) -> bool:
        """Cancel the running cycle. Returns False when nothing was running."""
        if not self._in_progress or self._cycle_task is None:
            return False
        self._abort_requested = True
        self._cycle_task.cancel()
        return True

    def reset_error_recovery(self) -> None:
        self.consecutive_failures = 0
        self.backoff_ms = 0
        self._last_failure_mono = None
        self._critical_sent = False
        self.state.error_recovery.update(
            {"consecutive_failures": 0, "backoff_ms": 0, "last_error": None}
        )
        logger.info("Error recovery reset")

    def is_running(self) -> bool:
        return self._in_progress

    def current_step(self) -> str | None:
        return self._current_step

    def step_duration(self) -> float:
        """Seconds spent in the current step, 0 when idle."""
        if self._step_started is None:
            return 0.0
        return max(0.0, self.clock.monotonic() - self._step_started)

    @property
    def started(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def display_data(self) -> dict:
        state = self.state
        return copy.deepcopy(
            {
                "running": self.is_running(),
                "started": self.started,
                "current_step": self._current_step,
                "step_duration": round(self.step_duration(), 3),
                "cycle_count": state.cycle_count,
                "last_cycle": state.last_cycle,
                "coverage": self.coverage.overall if self.coverage else None,
                "ready": self.coverage.ready if self.coverage else False,
                "missing": [m.to_dict() for m in self.coverage.missing] if self.coverage else [],
                "optimization_started": state.optimization_started,
                "area_scores": state.area_scores,
                "insights": state.insights[:20],
                "pending_actions": state.pending_actions,
                "completed_actions": state.completed_actions[:20],
                "pending_questions": [q for q in state.pending_questions if not q.get("asked")],
                "error_recovery": {
                    "consecutive_failures": self.consecutive_failures,
                    "backoff_ms": self.backoff_ms,
                    "persistence_failures": self.persistence_failures,
                    "dropped_ticks": self.dropped_ticks,
                    "skipped_ticks": self.skipped_ticks,
                    "last_error": state.error_recovery.get("last_error"),
                },
                "goals": self.goals.display_data(),
                "heartbeat": self.heartbeat.view(),
            }
        )

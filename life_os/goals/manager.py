"""
Goal Manager - owns the current goal, its criteria, and its task DAG.

Lifecycle:
    set_current(goal)      criteria + tasks generated, goal-changed emitted;
                           parked on hold at once if it waits on external data
    next_task()            first runnable task in priority order
    evaluate_criteria(ctx) refresh criteria from context; complete when met
    complete_current()     mark completed, clear tasks, select the next goal

Completion is decided by the criteria. Finishing every task without
meeting them parks the goal on hold with target_not_met. A goal with no
criteria completes once its tasks are done and current_value reaches
target_value.

All data here is owned by the scheduler; observers get copies via
snapshot() and display_data().
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import timedelta
from typing import Any

from ..clock import Clock, SystemClock, parse_instant
from ..context import Context
from ..errors import InvalidHoldReason, UnknownGoalError, UnknownTaskError
from ..events import EventBus, Topic
from ..state_store import MAX_ACTION_HISTORY, EngineState
from .criteria import criterion_met, fallback_criteria, is_external_source
from .models import (
    CriteriaSet,
    Goal,
    GoalStatus,
    HoldInfo,
    HoldReason,
    Task,
    TaskState,
    WorkPlan,
)
from .planner import GoalPlanner
from .tasks import fallback_tasks, validate_task_graph

logger = logging.getLogger(__name__)

TASK_HOLD_DEFAULT = timedelta(hours=1)
GOAL_HOLD_DEFAULT = timedelta(hours=24)
MAX_COMPLETED_GOALS = 50

_SELECTABLE = (GoalStatus.ACTIVE, GoalStatus.ON_HOLD)


def _hold_reason(reason: HoldReason | str) -> HoldReason:
    try:
        return HoldReason(reason)
    except ValueError:
        raise InvalidHoldReason(
            f"Unknown hold reason {reason!r}; expected one of {[r.value for r in HoldReason]}"
        ) from None


class GoalManager:
    def __init__(
        self,
        events: EventBus,
        clock: Clock | None = None,
        planner: GoalPlanner | None = None,
        planner_timeout: float = 30.0,
        task_hold: timedelta = TASK_HOLD_DEFAULT,
        goal_hold: timedelta = GOAL_HOLD_DEFAULT,
    ):
        self.events = events
        self.clock = clock or SystemClock()
        self.planner = planner
        self.planner_timeout = planner_timeout
        self.task_hold = task_hold
        self.goal_hold = goal_hold

        self.goals: dict[str, Goal] = {}
        self.current_goal_id: str | None = None
        self.criteria: dict[str, CriteriaSet] = {}
        self.tasks: dict[str, list[Task]] = {}
        self.on_hold_tasks: dict[str, HoldInfo] = {}
        self.on_hold_goals: dict[str, HoldInfo] = {}
        self.work_plan: WorkPlan | None = None
        self.action_history: list[dict] = []
        self.completed_goals: list[dict] = []

    # =========================================================================
    # Goal registry
    # =========================================================================

    @property
    def current_goal(self) -> Goal | None:
        return self.goals.get(self.current_goal_id) if self.current_goal_id else None

    def add_goal(self, goal: Goal | dict) -> Goal:
        if isinstance(goal, dict):
            goal = Goal.from_dict(goal)
        now = self.clock.now().isoformat()
        goal.created_at = goal.created_at or now
        goal.updated_at = goal.updated_at or now
        self.goals[goal.id] = goal
        return goal

    def sync_goals(self, goal_dicts: Iterable[dict]) -> int:
        """
        Merge goals reported by the goals provider. Returns how many were new.

        Entries that cannot be parsed (unknown status, non-numeric priority
        or target) are logged and skipped; the rest of the batch still applies.
        """
        added = 0
        for data in goal_dicts or ():
            if not isinstance(data, dict) or "id" not in data:
                continue
            try:
                incoming = Goal.from_dict(data)
            except (AttributeError, KeyError, OverflowError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed goal {data.get('id')!r}: {e}")
                continue

            existing = self.goals.get(incoming.id)
            if existing is None:
                self.add_goal(incoming)
                added += 1
                continue
            for attr in ("title", "priority", "target_value", "current_value", "unit", "urgency"):
                if data.get(attr) is not None:
                    setattr(existing, attr, getattr(incoming, attr))
            if incoming.status in (GoalStatus.COMPLETED, GoalStatus.FAILED):
                existing.status = incoming.status
        if added:
            logger.info(f"Synced {added} new goal(s) from provider")
        return added

    def active_goals(self) -> list[Goal]:
        return [g for g in self.goals.values() if g.status == GoalStatus.ACTIVE]

    def _goal(self, goal_id: str) -> Goal:
        goal = self.goals.get(goal_id)
        if goal is None:
            raise UnknownGoalError(goal_id)
        return goal

    # =========================================================================
    # Selection
    # =========================================================================

    async def initialize(self) -> Goal | None:
        """Resume the persisted goal, or pick the highest-priority candidate."""
        goal = self.current_goal
        if goal is not None and goal.status in _SELECTABLE:
            if goal.id not in self.tasks or goal.id not in self.criteria:
                return await self.set_current(goal)
            logger.info(f"Resuming goal: {goal.title}")
            return goal

        self.current_goal_id = None
        candidate = self.select_next_goal()
        if candidate is None:
            logger.info("No active goals to work on")
            return None
        return await self.set_current(candidate)

    def select_next_goal(self, exclude: Iterable[str] = ()) -> Goal | None:
        """priority asc, then urgency (high first), then created_at asc."""
        now = self.clock.now()
        skip = set(exclude)
        candidates = []
        for goal in self.goals.values():
            if goal.id in skip or goal.status not in _SELECTABLE:
                continue
            hold = self.on_hold_goals.get(goal.id)
            if hold is not None and not hold.is_due(now):
                continue
            candidates.append(goal)
        if not candidates:
            return None
        candidates.sort(key=lambda g: (g.priority, g.urgency_rank, g.created_at or ""))
        return candidates[0]

    async def reconsider(self) -> Goal | None:
        """Switch away from a parked goal once another one is eligible."""
        goal = self.current_goal
        if goal is not None and goal.status == GoalStatus.ACTIVE:
            return goal
        candidate = self.select_next_goal()
        if candidate is None or (goal is not None and candidate.id == goal.id):
            return goal
        return await self.set_current(candidate)

    async def set_current(self, goal: Goal | dict) -> Goal:
        """Make `goal` current with fresh criteria and tasks."""
        if isinstance(goal, dict) or goal.id not in self.goals:
            goal = self.add_goal(goal)
        now = self.clock.now()

        criteria = await self._generate_criteria(goal)
        tasks = await self._generate_tasks(goal, criteria)
        self.criteria[goal.id] = criteria
        self.tasks[goal.id] = tasks
        for task in tasks:
            self.on_hold_tasks.pop(task.id, None)

        self.on_hold_goals.pop(goal.id, None)
        goal.status = GoalStatus.ACTIVE
        goal.updated_at = now.isoformat()
        self.current_goal_id = goal.id
        self.work_plan = WorkPlan(goal_id=goal.id, started_at=now.isoformat())

        logger.info(f"Current goal: {goal.title} ({len(criteria.criteria)} criteria, {len(tasks)} tasks)")
        self._record("goal_selected", goal_id=goal.id, title=goal.title)
        self.events.publish(Topic.GOAL_CHANGED, {"goal": goal.to_dict()})

        if self._waiting_on_external(criteria):
            await self.put_goal_on_hold(
                goal.id,
                HoldReason.TARGET_NOT_MET,
                notes="Criteria depend on external data that has not reached target",
            )
        return goal

    async def _generate_criteria(self, goal: Goal) -> CriteriaSet:
        if self.planner is not None:
            try:
                generated = await asyncio.wait_for(
                    self.planner.generate_criteria(goal), timeout=self.planner_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(f"Criteria planner timed out for {goal.id}")
                generated = None
            if generated is not None and generated.criteria:
                for c in generated.criteria:
                    if c.current_value is not None:
                        c.is_complete = criterion_met(c)
                generated.recompute()
                return generated
        return fallback_criteria(goal)

    async def _generate_tasks(self, goal: Goal, criteria: CriteriaSet) -> list[Task]:
        if self.planner is not None:
            try:
                generated = await asyncio.wait_for(
                    self.planner.generate_tasks(goal, criteria), timeout=self.planner_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(f"Task planner timed out for {goal.id}")
                generated = None
            if generated and validate_task_graph(generated):
                return generated
        return fallback_tasks(goal, criteria)

    @staticmethod
    def _waiting_on_external(criteria: CriteriaSet) -> bool:
        if not criteria.criteria or any(c.is_complete for c in criteria.criteria):
            return False
        return any(is_external_source(c.data_source) for c in criteria.criteria)

    # =========================================================================
    # Holds
    # =========================================================================

    async def put_goal_on_hold(
        self,
        goal_id: str,
        reason: HoldReason | str,
        review_at=None,
        notes: str = "",
    ) -> HoldInfo:
        """Park a goal. If it was current, switch to the next eligible goal."""
        reason = _hold_reason(reason)
        goal = self._goal(goal_id)
        now = self.clock.now()
        hold = HoldInfo(
            reason=reason,
            review_at=parse_instant(review_at) or now + self.goal_hold,
            notes=notes,
            put_on_hold_at=now,
        )
        self.on_hold_goals[goal_id] = hold
        goal.status = GoalStatus.ON_HOLD
        goal.updated_at = now.isoformat()

        logger.info(f"Goal on hold: {goal.title} ({reason.value}) until {hold.review_at.isoformat()}")
        self._record("goal_on_hold", goal_id=goal_id, reason=reason.value)
        self.events.publish(
            Topic.GOAL_ON_HOLD,
            {
                "goal_id": goal_id,
                "reason": reason.value,
                "review_at": hold.review_at.isoformat(),
                "notes": notes,
            },
        )

        if goal_id == self.current_goal_id:
            candidate = self.select_next_goal(exclude={goal_id})
            if candidate is not None:
                await self.set_current(candidate)
            else:
                logger.info(f"No other goal available; staying on {goal.title} in research mode")
        return hold

    def put_task_on_hold(
        self,
        task_id: str,
        reason: HoldReason | str,
        review_at=None,
        notes: str = "",
    ) -> HoldInfo:
        reason = _hold_reason(reason)
        task = self._task(task_id)
        now = self.clock.now()
        hold = HoldInfo(
            reason=reason,
            review_at=parse_instant(review_at) or now + self.task_hold,
            notes=notes,
            put_on_hold_at=now,
        )
        task.state = TaskState.ON_HOLD
        self.on_hold_tasks[task_id] = hold

        logger.info(f"Task on hold: {task.title} ({reason.value})")
        self._record("task_on_hold", task_id=task_id, reason=reason.value)
        self.events.publish(
            Topic.TASK_ON_HOLD,
            {
                "task_id": task_id,
                "goal_id": self.current_goal_id,
                "reason": reason.value,
                "review_at": hold.review_at.isoformat(),
                "notes": notes,
            },
        )
        return hold

    def release_due_holds(self) -> list[str]:
        """Return due on-hold goals to active. Due task holds are released too."""
        now = self.clock.now()
        released = []
        for goal_id, hold in list(self.on_hold_goals.items()):
            if hold.is_due(now):
                del self.on_hold_goals[goal_id]
                goal = self.goals.get(goal_id)
                if goal is not None and goal.status == GoalStatus.ON_HOLD:
                    goal.status = GoalStatus.ACTIVE
                    released.append(goal_id)
                    logger.info(f"Goal hold expired, re-evaluating: {goal.title}")
        for tasks in self.tasks.values():
            for task in tasks:
                hold = self.on_hold_tasks.get(task.id)
                if task.state == TaskState.ON_HOLD and (hold is None or hold.is_due(now)):
                    self._release_task(task)
        return released

    def _release_task(self, task: Task) -> None:
        self.on_hold_tasks.pop(task.id, None)
        task.state = TaskState.PENDING

    # =========================================================================
    # Tasks
    # =========================================================================

    def _task(self, task_id: str) -> Task:
        for tasks in self.tasks.values():
            for task in tasks:
                if task.id == task_id:
                    return task
        raise UnknownTaskError(task_id)

    def current_tasks(self) -> list[Task]:
        return list(self.tasks.get(self.current_goal_id, [])) if self.current_goal_id else []

    def next_task(self) -> Task | None:
        """
        First task in priority order that is not done, has every dependency
        completed, and is not held past now. While the current goal is on
        hold only tasks without external data needs are offered.
        """
        goal = self.current_goal
        if goal is None:
            return None
        tasks = self.tasks.get(goal.id, [])
        now = self.clock.now()
        completed = {t.id for t in tasks if t.state == TaskState.COMPLETED}
        research_mode = goal.status == GoalStatus.ON_HOLD
        waiting: list[str] = []

        for task in sorted(tasks, key=lambda t: t.priority):
            if task.is_done:
                continue
            if task.state == TaskState.ON_HOLD:
                hold = self.on_hold_tasks.get(task.id)
                if hold is not None and not hold.is_due(now):
                    waiting.append(task.id)
                    continue
                self._release_task(task)
            if task.state == TaskState.BLOCKED:
                waiting.append(task.id)
                continue
            if any(dep not in completed for dep in task.dependencies):
                waiting.append(task.id)
                continue
            if research_mode and self._needs_external(task):
                waiting.append(task.id)
                continue
            return task

        if waiting:
            logger.info(f"All remaining tasks for {goal.title} are blocked or on hold")
            self.events.publish(Topic.ALL_TASKS_BLOCKED, {"goal_id": goal.id, "task_ids": waiting})
        return None

    @staticmethod
    def _needs_external(task: Task) -> bool:
        return bool(task.hold_conditions) or any(is_external_source(s) for s in task.data_sources)

    def start_task(self, task_id: str) -> Task:
        task = self._task(task_id)
        task.state = TaskState.IN_PROGRESS
        task.started_at = self.clock.now().isoformat()
        task.attempts += 1
        if self.work_plan is not None and task.category.value in self.work_plan.phases:
            self.work_plan.current_phase = task.category.value
        self._record("task_started", task_id=task_id, title=task.title)
        return task

    async def complete_task(self, task_id: str, results: Any = None) -> Task:
        task = self._task(task_id)
        task.state = TaskState.COMPLETED
        task.completed_at = self.clock.now().isoformat()
        if results is not None:
            task.results.append(results)
        self.on_hold_tasks.pop(task_id, None)
        self._record("task_completed", task_id=task_id, title=task.title)
        self._update_progress()

        goal = self.current_goal
        if goal is not None and task in self.tasks.get(goal.id, []):
            if all(t.is_done for t in self.tasks[goal.id]):
                await self._on_tasks_finished(goal)
        return task

    async def _on_tasks_finished(self, goal: Goal) -> None:
        if self._goal_satisfied(goal):
            await self.complete_current(summary="All tasks done and criteria met")
        elif goal.status != GoalStatus.ON_HOLD:
            await self.put_goal_on_hold(
                goal.id,
                HoldReason.TARGET_NOT_MET,
                notes="All tasks complete but criteria not met",
            )

    def _update_progress(self) -> None:
        if self.work_plan is None:
            return
        tasks = self.tasks.get(self.work_plan.goal_id, [])
        if tasks:
            self.work_plan.progress = round(sum(1 for t in tasks if t.is_done) / len(tasks), 3)

    # =========================================================================
    # Criteria and completion
    # =========================================================================

    async def evaluate_criteria(self, context: Context) -> CriteriaSet | None:
        """Refresh criteria from context; completes the goal when they hold."""
        goal = self.current_goal
        if goal is None:
            return None
        criteria = self.criteria.get(goal.id)
        if criteria is None:
            return None

        checked_at = self.clock.now().isoformat()
        for criterion in criteria.criteria:
            value = self._read_source(goal, criterion, context)
            criterion.last_checked = checked_at
            if value is None:
                continue
            criterion.current_value = value
            criterion.is_complete = criterion_met(criterion)
        criteria.recompute()

        self.events.publish(
            Topic.CRITERIA_EVALUATED,
            {
                "goal_id": goal.id,
                "overall_complete": criteria.overall_complete,
                "criteria": [c.to_dict() for c in criteria.criteria],
            },
        )

        if self._goal_satisfied(goal):
            await self.complete_current(summary="Completion criteria met")
        return criteria

    @staticmethod
    def _read_source(goal: Goal, criterion, context: Context) -> Any:
        source = criterion.data_source
        if source == "manual_tracking":
            return goal.current_value if goal.current_value is not None else criterion.current_value
        if source == "user_input":
            return criterion.current_value
        return context.resolve(source)

    def _goal_satisfied(self, goal: Goal) -> bool:
        criteria = self.criteria.get(goal.id)
        if criteria is not None and criteria.criteria:
            return criteria.overall_complete
        tasks = self.tasks.get(goal.id, [])
        if not tasks or not all(t.is_done for t in tasks):
            return False
        if goal.target_value is None or goal.current_value is None:
            return False
        return goal.current_value >= goal.target_value

    async def complete_current(self, summary: str = "") -> Goal | None:
        goal = self.current_goal
        if goal is None:
            return None
        now = self.clock.now().isoformat()
        goal.status = GoalStatus.COMPLETED
        goal.updated_at = now

        for task in self.tasks.pop(goal.id, []):
            self.on_hold_tasks.pop(task.id, None)
        self.criteria.pop(goal.id, None)
        self.on_hold_goals.pop(goal.id, None)
        self.current_goal_id = None
        self.work_plan = None

        self.completed_goals.insert(
            0, {"goal_id": goal.id, "title": goal.title, "completed_at": now, "summary": summary}
        )
        del self.completed_goals[MAX_COMPLETED_GOALS:]

        logger.info(f"Goal completed: {goal.title}")
        self._record("goal_completed", goal_id=goal.id, title=goal.title)
        self.events.publish(Topic.GOAL_COMPLETED, {"goal": goal.to_dict(), "summary": summary})

        candidate = self.select_next_goal()
        if candidate is not None:
            await self.set_current(candidate)
        return goal

    # =========================================================================
    # History, persistence, observers
    # =========================================================================

    def _record(self, kind: str, **details) -> None:
        self.action_history.insert(
            0, {"action": kind, "timestamp": self.clock.now().isoformat(), **details}
        )
        del self.action_history[MAX_ACTION_HISTORY:]

    def record_action(self, kind: str, **details) -> None:
        self._record(kind, **details)

    def snapshot(self) -> dict:
        goal = self.current_goal
        return {
            "current_goal": goal.to_dict() if goal else None,
            "work_plan": self.work_plan.to_dict() if self.work_plan else None,
            "goal_criteria": {gid: cs.to_dict() for gid, cs in self.criteria.items()},
            "goal_tasks": {gid: [t.to_dict() for t in ts] for gid, ts in self.tasks.items()},
            "on_hold_tasks": {tid: h.to_dict() for tid, h in self.on_hold_tasks.items()},
            "on_hold_goals": {gid: h.to_dict() for gid, h in self.on_hold_goals.items()},
            "action_history": list(self.action_history),
            "goals": [g.to_dict() for g in self.goals.values()],
            "completed_goals": list(self.completed_goals),
        }

    def write_to(self, state: EngineState) -> None:
        for key, value in self.snapshot().items():
            setattr(state, key, value)

    def restore(self, state: EngineState) -> None:
        self.goals = {}
        self.current_goal_id = None
        for data in state.goals:
            goal = Goal.from_dict(data)
            self.goals[goal.id] = goal
        if state.current_goal:
            goal = Goal.from_dict(state.current_goal)
            self.goals.setdefault(goal.id, goal)
            self.current_goal_id = goal.id
        self.criteria = {
            gid: CriteriaSet.from_dict(cs) for gid, cs in (state.goal_criteria or {}).items()
        }
        self.tasks = {
            gid: [Task.from_dict(t) for t in ts] for gid, ts in (state.goal_tasks or {}).items()
        }
        self.on_hold_tasks = {
            tid: HoldInfo.from_dict(h) for tid, h in (state.on_hold_tasks or {}).items()
        }
        self.on_hold_goals = {
            gid: HoldInfo.from_dict(h) for gid, h in (state.on_hold_goals or {}).items()
        }
        self.work_plan = WorkPlan.from_dict(state.work_plan) if state.work_plan else None
        self.action_history = list(state.action_history or [])[:MAX_ACTION_HISTORY]
        self.completed_goals = list(state.completed_goals or [])[:MAX_COMPLETED_GOALS]

    def display_data(self) -> dict:
        goal = self.current_goal
        tasks = self.current_tasks()
        criteria = self.criteria.get(goal.id) if goal else None
        return {
            "current_goal": goal.to_dict() if goal else None,
            "criteria": criteria.to_dict() if criteria else None,
            "tasks": [t.to_dict() for t in tasks],
            "tasks_done": sum(1 for t in tasks if t.is_done),
            "work_plan": self.work_plan.to_dict() if self.work_plan else None,
            "on_hold_goals": {gid: h.to_dict() for gid, h in self.on_hold_goals.items()},
            "on_hold_tasks": {tid: h.to_dict() for tid, h in self.on_hold_tasks.items()},
            "active_goals": len(self.active_goals()),
            "completed_goals": list(self.completed_goals[:10]),
            "recent_history": list(self.action_history[:10]),
        }

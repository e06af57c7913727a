"""
Goal, criteria and task types for the goal manager.

Hold reasons and task states are closed enums; the observer UI keys
off their string values.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..clock import parse_instant


class GoalStatus(str, enum.Enum):
    ACTIVE = "active"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    FAILED = "failed"
    BLOCKED = "blocked"


class TaskState(str, enum.Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    ON_HOLD = "on_hold"
    COMPLETED = "completed"
    BLOCKED = "blocked"
    SKIPPED = "skipped"


class TaskCategory(str, enum.Enum):
    RESEARCH = "research"
    ANALYZE = "analyze"
    PLAN = "plan"
    EXECUTE = "execute"
    VALIDATE = "validate"


class HoldReason(str, enum.Enum):
    WAITING_EXTERNAL = "waiting_external"
    WAITING_DATA = "waiting_data"
    WAITING_APPROVAL = "waiting_approval"
    WAITING_DEPENDENCY = "waiting_dependency"
    WAITING_TIME = "waiting_time"
    TARGET_NOT_MET = "target_not_met"


class MeasureType(str, enum.Enum):
    VALUE = "value"
    BOOLEAN = "boolean"
    PERCENTAGE = "percentage"
    DATE = "date"


URGENCY_RANK = {"high": 0, "medium": 1, "low": 2}

# statuses other trackers report, folded onto ours
GOAL_STATUS_ALIASES = {
    "paused": GoalStatus.BLOCKED,
    "in_progress": GoalStatus.ACTIVE,
    "done": GoalStatus.COMPLETED,
    "achieved": GoalStatus.COMPLETED,
    "abandoned": GoalStatus.FAILED,
    "cancelled": GoalStatus.FAILED,
}
PRIORITY_NAMES = {"urgent": 1, "critical": 1, "high": 2, "medium": 3, "normal": 3, "low": 4, "someday": 5}


def parse_goal_status(value: Any) -> GoalStatus:
    """Map a reported status onto GoalStatus. Raises ValueError for anything unknown."""
    if value is None or value == "":
        return GoalStatus.ACTIVE
    if isinstance(value, GoalStatus):
        return value
    key = str(value).strip().lower()
    return GOAL_STATUS_ALIASES.get(key) or GoalStatus(key)


def parse_goal_priority(value: Any) -> int:
    """1 (urgent) to 5 (someday); accepts numbers or priority names."""
    if value is None or value == "":
        return 5
    if isinstance(value, str) and value.strip().lower() in PRIORITY_NAMES:
        return PRIORITY_NAMES[value.strip().lower()]
    if isinstance(value, bool):
        raise ValueError(f"invalid goal priority {value!r}")
    return max(1, min(5, int(float(value))))


def parse_optional_number(value: Any) -> float | None:
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"expected a number, got {value!r}")
    if isinstance(value, (int, float)):
        return value
    return float(value)
WORK_PHASES = ("research", "analyze", "plan", "execute", "validate")


@dataclass
class Milestone:
    target: float
    label: str
    achieved: bool = False
    achieved_at: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Milestone":
        return cls(
            target=data.get("target", 0),
            label=data.get("label", ""),
            achieved=bool(data.get("achieved", False)),
            achieved_at=data.get("achieved_at"),
        )

    def to_dict(self) -> dict:
        return {
            "target": self.target,
            "label": self.label,
            "achieved": self.achieved,
            "achieved_at": self.achieved_at,
        }


@dataclass
class Goal:
    id: str
    title: str
    category: str = "general"
    priority: int = 5
    status: GoalStatus = GoalStatus.ACTIVE
    target_value: float | None = None
    current_value: float | None = None
    unit: str | None = None
    urgency: str = "low"
    description: str = ""
    milestones: list[Milestone] = field(default_factory=list)
    created_at: str | None = None
    updated_at: str | None = None

    @property
    def progress(self) -> float:
        return goal_progress(self)

    @property
    def urgency_rank(self) -> int:
        return URGENCY_RANK.get(self.urgency, 2)

    @classmethod
    def from_dict(cls, data: dict) -> "Goal":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or data.get("name") or str(data["id"]),
            category=data.get("category") or "general",
            priority=parse_goal_priority(data.get("priority")),
            status=parse_goal_status(data.get("status")),
            target_value=parse_optional_number(data.get("target_value")),
            current_value=parse_optional_number(data.get("current_value")),
            unit=data.get("unit"),
            urgency=data.get("urgency") or "low",
            description=data.get("description") or "",
            milestones=[Milestone.from_dict(m) for m in data.get("milestones") or []],
            created_at=data.get("created_at"),
            updated_at=data.get("updated_at"),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "category": self.category,
            "priority": self.priority,
            "status": self.status.value,
            "target_value": self.target_value,
            "current_value": self.current_value,
            "unit": self.unit,
            "urgency": self.urgency,
            "description": self.description,
            "milestones": [m.to_dict() for m in self.milestones],
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def goal_progress(goal: "Goal | dict") -> float:
    """Fraction of target reached, clamped to [0, 1]."""
    if isinstance(goal, Goal):
        current, target, explicit = goal.current_value, goal.target_value, None
    else:
        current, target, explicit = (
            goal.get("current_value"),
            goal.get("target_value"),
            goal.get("progress"),
        )
    if isinstance(explicit, (int, float)):
        value = explicit / 100 if explicit > 1 else explicit
        return max(0.0, min(1.0, float(value)))
    if not isinstance(current, (int, float)) or not isinstance(target, (int, float)) or not target:
        return 0.0
    return max(0.0, min(1.0, current / target))


@dataclass
class HoldInfo:
    reason: HoldReason
    review_at: datetime
    notes: str = ""
    put_on_hold_at: datetime | None = None

    def is_due(self, now: datetime) -> bool:
        return self.review_at <= now

    def to_dict(self) -> dict:
        return {
            "reason": self.reason.value,
            "review_at": self.review_at.isoformat(),
            "notes": self.notes,
            "put_on_hold_at": self.put_on_hold_at.isoformat() if self.put_on_hold_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "HoldInfo":
        return cls(
            reason=HoldReason(data["reason"]),
            review_at=parse_instant(data["review_at"]),
            notes=data.get("notes") or "",
            put_on_hold_at=parse_instant(data.get("put_on_hold_at")),
        )


@dataclass
class Criterion:
    id: str
    description: str
    measure_type: MeasureType
    target_value: Any
    data_source: str
    current_value: Any = None
    is_complete: bool = False
    last_checked: str | None = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "description": self.description,
            "measure_type": self.measure_type.value,
            "target_value": self.target_value,
            "current_value": self.current_value,
            "data_source": self.data_source,
            "is_complete": self.is_complete,
            "last_checked": self.last_checked,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Criterion":
        return cls(
            id=str(data["id"]),
            description=data.get("description", ""),
            measure_type=MeasureType(data.get("measure_type", "value")),
            target_value=data.get("target_value"),
            data_source=data.get("data_source") or "manual_tracking",
            current_value=data.get("current_value"),
            is_complete=bool(data.get("is_complete", False)),
            last_checked=data.get("last_checked"),
        )


@dataclass
class CriteriaSet:
    goal_id: str
    criteria: list[Criterion] = field(default_factory=list)
    minimum_required: str | int = "all"
    overall_complete: bool = False

    def recompute(self) -> bool:
        self.overall_complete = requirement_met(
            [c.is_complete for c in self.criteria], self.minimum_required
        )
        return self.overall_complete

    @property
    def unmet(self) -> list[Criterion]:
        return [c for c in self.criteria if not c.is_complete]

    def to_dict(self) -> dict:
        return {
            "goal_id": self.goal_id,
            "criteria": [c.to_dict() for c in self.criteria],
            "minimum_required": self.minimum_required,
            "overall_complete": self.overall_complete,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CriteriaSet":
        return cls(
            goal_id=str(data["goal_id"]),
            criteria=[Criterion.from_dict(c) for c in data.get("criteria") or []],
            minimum_required=normalize_minimum_required(data.get("minimum_required", "all")),
            overall_complete=bool(data.get("overall_complete", False)),
        )


def requirement_met(flags: list[bool], minimum_required: str | int) -> bool:
    """
    The minimum_required predicate over criterion completion flags.

    "all" needs every flag, "any" needs one, a number n needs at least n.
    An empty criteria list proves nothing and is never complete. Anything
    else, including numbers below 1, is read as "all".
    """
    if not flags:
        return False
    minimum_required = normalize_minimum_required(minimum_required)
    if minimum_required == "all":
        return all(flags)
    if minimum_required == "any":
        return any(flags)
    return sum(1 for f in flags if f) >= minimum_required


def normalize_minimum_required(value: Any) -> str | int:
    """"all", "any" or a count of at least 1; everything else becomes "all"."""
    if value in ("all", "any"):
        return value
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        return "all"
    return value


@dataclass
class Task:
    id: str
    title: str
    category: TaskCategory
    priority: int
    description: str = ""
    dependencies: list[str] = field(default_factory=list)
    can_be_parallel: bool = False
    hold_conditions: list[str] = field(default_factory=list)
    success_criteria: str = ""
    data_sources: list[str] = field(default_factory=list)
    state: TaskState = TaskState.PENDING
    attempts: int = 0
    results: list = field(default_factory=list)
    started_at: str | None = None
    completed_at: str | None = None

    @property
    def is_done(self) -> bool:
        return self.state in (TaskState.COMPLETED, TaskState.SKIPPED)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "category": self.category.value,
            "priority": self.priority,
            "dependencies": list(self.dependencies),
            "can_be_parallel": self.can_be_parallel,
            "hold_conditions": list(self.hold_conditions),
            "success_criteria": self.success_criteria,
            "data_sources": list(self.data_sources),
            "state": self.state.value,
            "attempts": self.attempts,
            "results": list(self.results),
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Task":
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description", ""),
            category=TaskCategory(data.get("category", "research")),
            priority=int(data.get("priority", 5)),
            dependencies=list(data.get("dependencies") or []),
            can_be_parallel=bool(data.get("can_be_parallel", False)),
            hold_conditions=list(data.get("hold_conditions") or []),
            success_criteria=data.get("success_criteria", ""),
            data_sources=list(data.get("data_sources") or []),
            state=TaskState(data.get("state", "pending")),
            attempts=int(data.get("attempts", 0)),
            results=list(data.get("results") or []),
            started_at=data.get("started_at"),
            completed_at=data.get("completed_at"),
        )


@dataclass
class WorkPlan:
    goal_id: str
    phases: tuple[str, ...] = WORK_PHASES
    current_phase: str = "research"
    started_at: str | None = None
    progress: float = 0.0

    def to_dict(self) -> dict:
        return {
            "goal_id": self.goal_id,
            "phases": list(self.phases),
            "current_phase": self.current_phase,
            "started_at": self.started_at,
            "progress": self.progress,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "WorkPlan":
        return cls(
            goal_id=str(data["goal_id"]),
            phases=tuple(data.get("phases") or WORK_PHASES),
            current_phase=data.get("current_phase", "research"),
            started_at=data.get("started_at"),
            progress=float(data.get("progress", 0.0)),
        )

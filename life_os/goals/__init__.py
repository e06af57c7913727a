"""
Goals - criteria, task DAGs and on-hold handling for the current goal.
"""

from .manager import GoalManager
from .models import (
    CriteriaSet,
    Criterion,
    Goal,
    GoalStatus,
    HoldInfo,
    HoldReason,
    MeasureType,
    Milestone,
    Task,
    TaskCategory,
    TaskState,
    WorkPlan,
)
from .planner import AnthropicGoalPlanner, GoalPlanner

__all__ = [
    "GoalManager",
    "GoalPlanner",
    "AnthropicGoalPlanner",
    "Goal",
    "GoalStatus",
    "Milestone",
    "Criterion",
    "CriteriaSet",
    "MeasureType",
    "Task",
    "TaskCategory",
    "TaskState",
    "HoldInfo",
    "HoldReason",
    "WorkPlan",
]

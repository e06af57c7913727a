"""
Task DAG generation and validation.
"""

import logging
from graphlib import CycleError, TopologicalSorter

from .criteria import is_external_source
from .models import CriteriaSet, Goal, Task, TaskCategory

logger = logging.getLogger(__name__)


def fallback_tasks(goal: Goal, criteria: CriteriaSet) -> list[Task]:
    """research -> analyze -> execute -> validate."""
    prefix = goal.id
    unmet = criteria.unmet
    sources = sorted({c.data_source for c in criteria.criteria if is_external_source(c.data_source)})

    return [
        Task(
            id=f"{prefix}-research",
            title=f"Research approaches for: {goal.title}",
            description="Gather background and options before committing to a plan.",
            category=TaskCategory.RESEARCH,
            priority=1,
            can_be_parallel=True,
            success_criteria="Options documented",
        ),
        Task(
            id=f"{prefix}-analyze",
            title="Analyze current position against criteria",
            description="Compare current values with each completion criterion.",
            category=TaskCategory.ANALYZE,
            priority=2,
            dependencies=[f"{prefix}-research"],
            success_criteria="Gap to each criterion quantified",
        ),
        Task(
            id=f"{prefix}-execute",
            title=f"Execute plan for: {goal.title}",
            description="Carry out the chosen plan until the criteria move.",
            category=TaskCategory.EXECUTE,
            priority=3,
            dependencies=[f"{prefix}-analyze"],
            hold_conditions=[c.description for c in unmet],
            data_sources=sources,
            success_criteria="Criteria trending toward target",
        ),
        Task(
            id=f"{prefix}-validate",
            title="Validate results",
            description="Confirm the criteria are met from connected data.",
            category=TaskCategory.VALIDATE,
            priority=4,
            dependencies=[f"{prefix}-execute"],
            data_sources=sources,
            success_criteria="All criteria complete",
        ),
    ]


def validate_task_graph(tasks: list[Task]) -> bool:
    """True when ids are unique, every dependency exists, and there is no cycle."""
    ids = [t.id for t in tasks]
    if not tasks or len(ids) != len(set(ids)):
        return False
    known = set(ids)
    graph: dict[str, set[str]] = {}
    for t in tasks:
        unknown = [d for d in t.dependencies if d not in known]
        if unknown:
            logger.warning(f"Task {t.id} depends on unknown tasks {unknown}")
            return False
        graph[t.id] = set(t.dependencies)
    try:
        tuple(TopologicalSorter(graph).static_order())
    except CycleError as e:
        logger.warning(f"Task graph has a cycle: {e.args[1] if len(e.args) > 1 else e}")
        return False
    return True

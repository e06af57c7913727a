"""
Completion criteria: deterministic generation and evaluation.
"""

import logging
from typing import Any

from ..clock import parse_instant
from ..context import SELF_REPORTED_SOURCES
from .models import CriteriaSet, Criterion, Goal, MeasureType

logger = logging.getLogger(__name__)


def is_external_source(source: str | None) -> bool:
    """Data the engine waits on from outside, as opposed to self-reported progress."""
    return bool(source) and source not in SELF_REPORTED_SOURCES


def fallback_criteria(goal: Goal) -> CriteriaSet:
    """Criteria keyed on the goal's category, used when no planner answers."""
    category = (goal.category or "").lower()
    target = goal.target_value
    current = goal.current_value

    if category in ("financial", "finance"):
        criteria = [
            Criterion(
                id=f"{goal.id}-portfolio",
                description=f"Portfolio value reaches {target if target is not None else 1_000_000}",
                measure_type=MeasureType.VALUE,
                target_value=target if target is not None else 1_000_000,
                data_source="portfolio",
                current_value=current,
            )
        ]
    elif category == "health":
        criteria = [
            Criterion(
                id=f"{goal.id}-sleep-score",
                description=f"Sleep score at or above {target if target is not None else 85}",
                measure_type=MeasureType.VALUE,
                target_value=target if target is not None else 85,
                data_source="health.sleep.score",
                current_value=current,
            ),
            Criterion(
                id=f"{goal.id}-consistency",
                description="Maintained for 30 consecutive days",
                measure_type=MeasureType.VALUE,
                target_value=30,
                data_source="health.history.consecutive_days",
            ),
        ]
    elif category == "family":
        criteria = [
            Criterion(
                id=f"{goal.id}-weekly-hours",
                description=f"{target if target is not None else 14} hours of family time per week",
                measure_type=MeasureType.VALUE,
                target_value=target if target is not None else 14,
                data_source="calendar.weekly_hours",
                current_value=current,
            )
        ]
    else:
        criteria = [
            Criterion(
                id=f"{goal.id}-progress",
                description=f"Progress reaches {target if target is not None else 100}%",
                measure_type=MeasureType.PERCENTAGE,
                target_value=target if target is not None else 100,
                data_source="manual_tracking",
                current_value=current,
            )
        ]

    criteria_set = CriteriaSet(goal_id=goal.id, criteria=criteria, minimum_required="all")
    for c in criteria_set.criteria:
        if c.current_value is not None:
            c.is_complete = criterion_met(c)
    criteria_set.recompute()
    return criteria_set


def criterion_met(criterion: Criterion) -> bool:
    """Whether current_value satisfies target_value for the criterion's measure type."""
    current, target = criterion.current_value, criterion.target_value
    if current is None:
        return False

    if criterion.measure_type == MeasureType.BOOLEAN:
        expected = True if target is None else target
        return _as_bool(current) == _as_bool(expected)

    if criterion.measure_type == MeasureType.DATE:
        current_dt, target_dt = parse_instant(current), parse_instant(target)
        if current_dt is None or target_dt is None:
            return False
        return current_dt >= target_dt

    try:
        return float(current) >= float(target)
    except (TypeError, ValueError):
        logger.debug(f"Criterion {criterion.id}: cannot compare {current!r} to {target!r}")
        return False


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1", "verified")
    return bool(value)

"""
LLM-assisted goal planning.

The goal manager asks a GoalPlanner for criteria and a task list when
one is configured, and falls back to the deterministic templates when
the planner returns None, times out, or produces an invalid task graph.
"""

import json
import logging
import re

import anthropic

from .models import (
    CriteriaSet,
    Criterion,
    Goal,
    MeasureType,
    Task,
    TaskCategory,
    normalize_minimum_required,
)

logger = logging.getLogger(__name__)

CRITERIA_PROMPT = """Define measurable completion criteria for this personal goal.

Goal: {title}
Category: {category}
Description: {description}
Target: {target} {unit}
Current: {current} {unit}

Each criterion needs:
- description: what must be true
- measure_type: one of "value", "boolean", "percentage", "date"
- target_value: the threshold
- data_source: one of "portfolio", "net_worth", "health.sleep.score",
  "health.history.consecutive_days", "calendar.weekly_hours",
  "manual_tracking", "user_input"

Return a JSON object:
{{"criteria": [...], "minimum_required": "all" | "any" | <number>}}

JSON output (object only, no explanation):"""

TASKS_PROMPT = """Break this personal goal into a small dependency graph of tasks.

Goal: {title}
Category: {category}
Criteria:
{criteria}

Each task needs:
- id: short slug, unique
- title
- category: one of "research", "analyze", "plan", "execute", "validate"
- priority: 1 (first) to 10
- dependencies: list of task ids that must complete first
- data_sources: list of data sources the task needs (may be empty)

Return a JSON object: {{"tasks": [...]}}

JSON output (object only, no explanation):"""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json_object(text: str) -> dict | None:
    """Pull the outermost JSON object out of a model response."""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return None
    try:
        data = json.loads(match.group())
    except json.JSONDecodeError as e:
        logger.info(f"Planner returned malformed JSON: {e}")
        return None
    return data if isinstance(data, dict) else None


class GoalPlanner:
    """Planner interface. The base class never answers, forcing the fallbacks."""

    async def generate_criteria(self, goal: Goal) -> CriteriaSet | None:
        return None

    async def generate_tasks(self, goal: Goal, criteria: CriteriaSet) -> list[Task] | None:
        return None


class AnthropicGoalPlanner(GoalPlanner):
    """Asks Claude for criteria and tasks."""

    def __init__(
        self,
        api_key: str,
        model: str = "claude-3-5-haiku-latest",
        max_tokens: int = 1024,
        client: "anthropic.AsyncAnthropic | None" = None,
    ):
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or anthropic.AsyncAnthropic(api_key=api_key)

    async def _complete(self, prompt: str) -> dict | None:
        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as e:
            logger.info(f"Planner request failed: {e}")
            return None
        text = "".join(
            getattr(block, "text", "") for block in response.content
        ).strip()
        return extract_json_object(text)

    async def generate_criteria(self, goal: Goal) -> CriteriaSet | None:
        data = await self._complete(
            CRITERIA_PROMPT.format(
                title=goal.title,
                category=goal.category,
                description=goal.description or "-",
                target=goal.target_value,
                current=goal.current_value,
                unit=goal.unit or "",
            )
        )
        if not data or not data.get("criteria"):
            return None
        try:
            criteria = [
                Criterion(
                    id=f"{goal.id}-c{i + 1}",
                    description=str(item["description"]),
                    measure_type=MeasureType(item.get("measure_type", "value")),
                    target_value=item.get("target_value"),
                    data_source=item.get("data_source") or "manual_tracking",
                )
                for i, item in enumerate(data["criteria"])
            ]
        except (KeyError, TypeError, ValueError) as e:
            logger.info(f"Planner criteria rejected: {e}")
            return None
        minimum = normalize_minimum_required(data.get("minimum_required", "all"))
        return CriteriaSet(goal_id=goal.id, criteria=criteria, minimum_required=minimum)

    async def generate_tasks(self, goal: Goal, criteria: CriteriaSet) -> list[Task] | None:
        listing = "\n".join(
            f"- {c.description} (source: {c.data_source})" for c in criteria.criteria
        )
        data = await self._complete(
            TASKS_PROMPT.format(title=goal.title, category=goal.category, criteria=listing)
        )
        if not data or not data.get("tasks"):
            return None
        try:
            return [
                Task(
                    id=f"{goal.id}-{item['id']}",
                    title=str(item["title"]),
                    category=TaskCategory(item.get("category", "research")),
                    priority=int(item.get("priority", 5)),
                    description=str(item.get("description", "")),
                    dependencies=[f"{goal.id}-{d}" for d in item.get("dependencies") or []],
                    data_sources=list(item.get("data_sources") or []),
                    hold_conditions=list(item.get("hold_conditions") or []),
                )
                for item in data["tasks"]
            ]
        except (KeyError, TypeError, ValueError) as e:
            logger.info(f"Planner tasks rejected: {e}")
            return None

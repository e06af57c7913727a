"""
Action Planner - turns insights into prioritized actions.

Pure and deterministic: the same insights always produce the same
actions in the same order.
"""

from ..models import Action, ActionType, Insight, InsightType

PROMPT_MIN_PRIORITY = 7


class ActionPlanner:
    def plan(self, insights: list[Insight]) -> list[Action]:
        actions: list[Action] = []
        seen: set[tuple] = set()

        def add(action: Action) -> None:
            if action.key not in seen:
                seen.add(action.key)
                actions.append(action)

        for insight in insights:
            if insight.type == InsightType.CONCERN and insight.priority >= PROMPT_MIN_PRIORITY:
                add(
                    Action(
                        type=ActionType.PROMPT,
                        priority=insight.priority,
                        insight_ref=insight.id,
                        action_text=f"Ask user about {insight.area}",
                        area=insight.area,
                    )
                )
            if insight.type == InsightType.WARNING:
                add(
                    Action(
                        type=ActionType.ALERT,
                        priority=insight.priority,
                        insight_ref=insight.id,
                        action_text=insight.title,
                        area=insight.area,
                    )
                )
            if insight.recommendations:
                add(
                    Action(
                        type=ActionType.RECOMMEND,
                        priority=max(1, insight.priority - 1),
                        insight_ref=insight.id,
                        action_text=insight.recommendations[0],
                        area=insight.area,
                    )
                )

        return actions

"""
Area Analyzer - scores each life area and extracts concerns.

Every LifeArea gets an AreaAnalysis on every cycle, connected data or
not. The score starts from the life_scores feed (default 50) and is
blended 50/50 with the average progress of active goals in the area.
"""

import logging
from collections.abc import Iterable

from ..context import Context
from ..coverage import round_half_up
from ..goals.models import Goal, goal_progress
from ..models import LIFE_AREAS, AreaAnalysis, AreaStatus, LifeArea, LifeAreaId, area_for_category

logger = logging.getLogger(__name__)

DEFAULT_SCORE = 50
PREDICTION_THRESHOLD = 0.6
HEALTH_FLOOR = 50
HEALTH_RECOMMENDATION = "Focus on sleep and exercise"


class AreaAnalyzer:
    """Produces one AreaAnalysis per life area from a gathered Context."""

    def analyze(
        self, context: Context, goals: Iterable[Goal | dict] | None = None
    ) -> dict[LifeAreaId, AreaAnalysis]:
        goal_list = list(goals) if goals is not None else context.active_goals
        scores = context.life_scores
        connected = context.connected_categories()

        analyses: dict[LifeAreaId, AreaAnalysis] = {}
        for area in LIFE_AREAS:
            analysis = AreaAnalysis(area=area.id)
            analysis.has_data = area.id.value in scores or bool(
                connected.intersection(area.provider_categories)
            )
            analysis.score = self._score(area, scores, goal_list)
            analysis.opportunities = list(context.opportunities.get(area.id.value) or [])

            rule = getattr(self, f"_analyze_{area.id.value}", None)
            if rule is not None:
                rule(analysis, context)
            analyses[area.id] = analysis

        logger.debug(
            "Analyzed areas: "
            + ", ".join(f"{a.area.value}={a.score}" for a in analyses.values())
        )
        return analyses

    def _score(self, area: LifeArea, scores: dict[str, float], goals: list) -> int:
        base = scores.get(area.id.value, DEFAULT_SCORE)
        progress = [
            goal_progress(g)
            for g in goals
            if _is_active(g) and area_for_category(_category(g)) == area.id
        ]
        if progress:
            base = (base + sum(progress) / len(progress) * 100) / 2
        return max(0, min(100, round_half_up(base)))

    # ---- area-specific rules ----

    def _analyze_financial(self, analysis: AreaAnalysis, context: Context) -> None:
        for market in context.predictions:
            if not _is_financial(market):
                continue
            probability = market.get("probability")
            if isinstance(probability, (int, float)) and probability >= PREDICTION_THRESHOLD:
                title = market.get("title") or market.get("question") or "Market event"
                analysis.concerns.append(f"{title} ({probability:.0%} probability)")

    def _analyze_health(self, analysis: AreaAnalysis, context: Context) -> None:
        sub_score = context.life_scores.get("health")
        if sub_score is None:
            readiness = context.payload("health").get("readiness")
            if isinstance(readiness, dict):
                sub_score = readiness.get("score")
        if isinstance(sub_score, (int, float)) and sub_score < HEALTH_FLOOR:
            analysis.status = AreaStatus.NEEDS_IMPROVEMENT
            analysis.recommendations.append(HEALTH_RECOMMENDATION)

    def _analyze_safety(self, analysis: AreaAnalysis, context: Context) -> None:
        alerts = context.safety_alerts
        if alerts:
            analysis.status = AreaStatus.ATTENTION_NEEDED
            for alert in alerts:
                kind = alert.get("type") if isinstance(alert, dict) else str(alert)
                analysis.concerns.append(kind or "unknown alert")


def _is_active(goal) -> bool:
    status = goal.status if isinstance(goal, Goal) else goal.get("status", "active")
    return getattr(status, "value", status) == "active"


def _category(goal) -> str | None:
    return goal.category if isinstance(goal, Goal) else goal.get("category")


def _is_financial(market: dict) -> bool:
    if not isinstance(market, dict):
        return False
    relevance = market.get("relevance")
    if isinstance(relevance, str):
        return relevance == "financial"
    if isinstance(relevance, (list, tuple)):
        return "financial" in relevance
    return "financial" in (market.get("tags") or [])

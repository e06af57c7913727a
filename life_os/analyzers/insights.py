"""
Insight Generator - ranks area analyses into typed insights.

Ids are derived from (area, type, title), so regenerating the same
insight on a later cycle yields the same id and the store dedupes it.
"""

from ..clock import Clock, SystemClock
from ..models import AREAS_BY_ID, LIFE_AREAS, AreaAnalysis, Insight, InsightType, LifeAreaId

LOW_SCORE = 40
CONCERN_PRIORITY = 8
WARNING_PRIORITY = 7
OPPORTUNITY_PRIORITY = 5


class InsightGenerator:
    def __init__(self, clock: Clock | None = None):
        self.clock = clock or SystemClock()

    def generate(self, analyses: dict[LifeAreaId, AreaAnalysis]) -> list[Insight]:
        """Insights for every analyzed area, highest priority first."""
        created_at = self.clock.now().isoformat()
        insights: list[Insight] = []

        for area in LIFE_AREAS:
            analysis = analyses.get(area.id)
            if analysis is None:
                continue
            insights.extend(self._for_area(analysis, created_at))

        # sorted() is stable, so equal priorities keep area order
        return sorted(insights, key=lambda i: -i.priority)

    def _for_area(self, analysis: AreaAnalysis, created_at: str) -> list[Insight]:
        area = AREAS_BY_ID[analysis.area]
        out: list[Insight] = []

        if not analysis.has_data:
            out.append(
                Insight.build(
                    area.id,
                    InsightType.CONCERN,
                    CONCERN_PRIORITY,
                    f"{area.name} has no connected data",
                    f"No data source for {area.name.lower()} is connected. "
                    f"Score defaults to {analysis.score}/100.",
                    created_at=created_at,
                )
            )

        if analysis.score < LOW_SCORE:
            out.append(
                Insight.build(
                    area.id,
                    InsightType.CONCERN,
                    CONCERN_PRIORITY,
                    f"{area.name} needs attention",
                    f"Score: {analysis.score}/100. Status: {analysis.status.value}.",
                    recommendations=analysis.recommendations,
                    created_at=created_at,
                )
            )

        for concern in analysis.concerns:
            out.append(
                Insight.build(
                    area.id,
                    InsightType.WARNING,
                    WARNING_PRIORITY,
                    concern,
                    f"{area.name}: {concern}",
                    created_at=created_at,
                )
            )

        for opportunity in analysis.opportunities:
            out.append(
                Insight.build(
                    area.id,
                    InsightType.OPPORTUNITY,
                    OPPORTUNITY_PRIORITY,
                    opportunity,
                    f"{area.name} opportunity: {opportunity}",
                    created_at=created_at,
                )
            )

        return out

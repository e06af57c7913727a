"""
Tests for the area analyzer, insight generator and action planner.
"""

from datetime import UTC, datetime

from life_os.analyzers import ActionPlanner, AreaAnalyzer, InsightGenerator
from life_os.context import Context
from life_os.coverage import evaluate
from life_os.models import (
    ActionType,
    AreaAnalysis,
    AreaStatus,
    Insight,
    InsightType,
    LifeAreaId,
    make_insight_id,
)
from life_os.providers import DEFAULT_PROVIDERS, ProviderResult

NOW = datetime(2025, 1, 6, 12, 0, tzinfo=UTC)


def make_context(**payloads) -> Context:
    """Context where each keyword is a connected provider with that payload."""
    results = {
        pid: ProviderResult(pid, True, payload=payload, fetched_at=NOW)
        for pid, payload in payloads.items()
    }
    return Context(
        cycle=1,
        gathered_at=NOW,
        results=results,
        coverage=evaluate(results, DEFAULT_PROVIDERS),
        categories={p.id: p.category for p in DEFAULT_PROVIDERS},
    )


# =============================================================================
# AREA ANALYZER
# =============================================================================


class TestAreaAnalyzer:
    """Tests for AreaAnalyzer.analyze."""

    def test_every_area_analyzed_with_default_score(self):
        analyses = AreaAnalyzer().analyze(make_context())
        assert set(analyses) == set(LifeAreaId)
        assert all(a.score == 50 for a in analyses.values())
        assert not any(a.has_data for a in analyses.values())

    def test_life_scores_feed_sets_score_and_has_data(self):
        context = make_context(life_scores={"categories": {"career": 72, "health": {"score": 64}}})
        analyses = AreaAnalyzer().analyze(context)
        assert analyses[LifeAreaId.CAREER].score == 72
        assert analyses[LifeAreaId.CAREER].has_data is True
        assert analyses[LifeAreaId.HEALTH].score == 64

    def test_connected_category_counts_as_data(self):
        analyses = AreaAnalyzer().analyze(make_context(calendar={"events": []}))
        assert analyses[LifeAreaId.FAMILY].has_data is True
        assert analyses[LifeAreaId.SAFETY].has_data is False

    def test_goal_progress_blends_score(self):
        goals = [{"id": "g", "category": "financial", "current_value": 30, "target_value": 100}]
        context = make_context(
            life_scores={"categories": {"financial": 70}}, goals={"active_goals": goals}
        )
        # (70 + 30) / 2
        assert AreaAnalyzer().analyze(context)[LifeAreaId.FINANCIAL].score == 50

    def test_inactive_goals_ignored(self):
        goals = [{"id": "g", "category": "health", "status": "completed", "progress": 100}]
        context = make_context(goals={"active_goals": goals})
        assert AreaAnalyzer().analyze(context)[LifeAreaId.HEALTH].score == 50

    def test_financial_predictions_become_concerns(self):
        markets = [
            {"title": "Recession in 2025", "probability": 0.65, "relevance": "financial"},
            {"title": "Rate cut", "probability": 0.4, "relevance": "financial"},
            {"title": "Election", "probability": 0.9, "relevance": "politics"},
        ]
        analyses = AreaAnalyzer().analyze(make_context(predictions={"markets": markets}))
        assert analyses[LifeAreaId.FINANCIAL].concerns == ["Recession in 2025 (65% probability)"]

    def test_low_health_needs_improvement(self):
        context = make_context(life_scores={"categories": {"health": 42}})
        health = AreaAnalyzer().analyze(context)[LifeAreaId.HEALTH]
        assert health.status == AreaStatus.NEEDS_IMPROVEMENT
        assert health.recommendations == ["Focus on sleep and exercise"]

    def test_safety_alerts(self):
        context = make_context(safety={"active_alerts": [{"type": "wildfire"}, {"type": "flood"}]})
        safety = AreaAnalyzer().analyze(context)[LifeAreaId.SAFETY]
        assert safety.status == AreaStatus.ATTENTION_NEEDED
        assert safety.concerns == ["wildfire", "flood"]

    def test_opportunities_copied(self):
        context = make_context(life_scores={"opportunities": {"growth": ["Finish the course"]}})
        assert AreaAnalyzer().analyze(context)[LifeAreaId.GROWTH].opportunities == [
            "Finish the course"
        ]


# =============================================================================
# INSIGHT GENERATOR
# =============================================================================


class TestInsightGenerator:
    """Tests for InsightGenerator.generate."""

    def test_one_data_gap_concern_per_area_on_cold_context(self, clock):
        analyses = AreaAnalyzer().analyze(make_context())
        insights = InsightGenerator(clock).generate(analyses)
        assert len(insights) == 6
        assert all(i.type == InsightType.CONCERN and i.priority == 8 for i in insights)
        assert {i.area for i in insights} == {a.value for a in LifeAreaId}
        assert insights[0].title == "Financial has no connected data"

    def test_low_score_concern_carries_recommendations(self, clock):
        analysis = AreaAnalysis(
            LifeAreaId.HEALTH, score=30, has_data=True, recommendations=["Sleep more"]
        )
        insights = InsightGenerator(clock).generate({LifeAreaId.HEALTH: analysis})
        assert len(insights) == 1
        assert insights[0].title == "Health needs attention"
        assert insights[0].recommendations == ["Sleep more"]

    def test_priority_order_is_stable(self, clock):
        analyses = {
            LifeAreaId.FINANCIAL: AreaAnalysis(
                LifeAreaId.FINANCIAL, has_data=True, opportunities=["Rebalance"]
            ),
            LifeAreaId.SAFETY: AreaAnalysis(LifeAreaId.SAFETY, has_data=True, concerns=["flood"]),
        }
        insights = InsightGenerator(clock).generate(analyses)
        assert [(i.type, i.priority) for i in insights] == [
            (InsightType.WARNING, 7),
            (InsightType.OPPORTUNITY, 5),
        ]

    def test_ids_are_deterministic(self, clock):
        analyses = AreaAnalyzer().analyze(make_context())
        first = [i.id for i in InsightGenerator(clock).generate(analyses)]
        clock.advance(3600)
        second = [i.id for i in InsightGenerator(clock).generate(analyses)]
        assert first == second

    def test_id_derivation(self):
        insight = Insight.build(LifeAreaId.HEALTH, InsightType.CONCERN, 8, "Title", "Body")
        assert insight.id == make_insight_id("health", "concern", "Title")
        assert insight.id.startswith("ins_")

    def test_priority_clamped(self):
        assert Insight.build("health", InsightType.ALERT, 15, "t", "c").priority == 10
        assert Insight.build("health", InsightType.ALERT, -3, "t", "c").priority == 1


# =============================================================================
# ACTION PLANNER
# =============================================================================


def insight(insight_type, priority, title="t", recommendations=None, area="health") -> Insight:
    return Insight.build(area, insight_type, priority, title, "c", recommendations=recommendations)


class TestActionPlanner:
    """Tests for ActionPlanner.plan."""

    def test_high_priority_concern_becomes_prompt(self):
        actions = ActionPlanner().plan([insight(InsightType.CONCERN, 8)])
        assert len(actions) == 1
        assert actions[0].type == ActionType.PROMPT
        assert actions[0].priority == 8
        assert actions[0].action_text == "Ask user about health"

    def test_low_priority_concern_is_not_prompted(self):
        assert ActionPlanner().plan([insight(InsightType.CONCERN, 6)]) == []

    def test_warning_becomes_alert(self):
        actions = ActionPlanner().plan([insight(InsightType.WARNING, 7, title="Flood watch")])
        assert [(a.type, a.action_text) for a in actions] == [(ActionType.ALERT, "Flood watch")]

    def test_recommendations_become_recommend_at_lower_priority(self):
        source = insight(InsightType.CONCERN, 8, recommendations=["Sleep more", "Walk"])
        actions = ActionPlanner().plan([source])
        recommend = [a for a in actions if a.type == ActionType.RECOMMEND]
        assert len(recommend) == 1
        assert recommend[0].action_text == "Sleep more"
        assert recommend[0].priority == 7
        assert recommend[0].insight_ref == source.id

    def test_duplicate_insights_planned_once(self):
        source = insight(InsightType.WARNING, 7)
        assert len(ActionPlanner().plan([source, source])) == 1

    def test_deterministic(self):
        insights = [
            insight(InsightType.CONCERN, 8, area="financial"),
            insight(InsightType.WARNING, 7, area="safety"),
        ]
        first = [a.to_dict() for a in ActionPlanner().plan(insights)]
        second = [a.to_dict() for a in ActionPlanner().plan(insights)]
        assert first == second

"""
Core value types shared across the pipeline: life areas, analyses,
insights and actions.

Closed sets are str enums so they serialize to the JSON state file
as plain strings and compare equal to those strings on reload.
"""

import enum
import hashlib
from dataclasses import dataclass, field
from typing import Any


class LifeAreaId(str, enum.Enum):
    FINANCIAL = "financial"
    HEALTH = "health"
    CAREER = "career"
    FAMILY = "family"
    SAFETY = "safety"
    GROWTH = "growth"


class AreaStatus(str, enum.Enum):
    STABLE = "stable"
    ATTENTION_NEEDED = "attention_needed"
    NEEDS_IMPROVEMENT = "needs_improvement"


class InsightType(str, enum.Enum):
    CONCERN = "concern"
    WARNING = "warning"
    OPPORTUNITY = "opportunity"
    ALERT = "alert"
    PREDICTION = "prediction"
    RECOMMENDATION = "recommendation"


class ActionType(str, enum.Enum):
    ANALYZE = "analyze"
    RECOMMEND = "recommend"
    REMIND = "remind"
    ALERT = "alert"
    TRACK = "track"
    PROMPT = "prompt"
    RESEARCH = "research"
    PLAN = "plan"


@dataclass(frozen=True)
class LifeArea:
    """Static description of a life area."""

    id: LifeAreaId
    name: str
    priority: int
    sub_areas: tuple[str, ...]
    provider_categories: tuple[str, ...]


LIFE_AREAS: tuple[LifeArea, ...] = (
    LifeArea(
        LifeAreaId.FINANCIAL,
        "Financial",
        1,
        ("investments", "cash_flow", "net_worth", "retirement"),
        ("financial",),
    ),
    LifeArea(
        LifeAreaId.HEALTH,
        "Health",
        2,
        ("sleep", "activity", "readiness", "nutrition"),
        ("health",),
    ),
    LifeArea(
        LifeAreaId.CAREER,
        "Career",
        3,
        ("skills", "network", "compensation"),
        ("identity",),
    ),
    LifeArea(
        LifeAreaId.FAMILY,
        "Family",
        4,
        ("quality_time", "relationships", "events"),
        ("calendar", "communication"),
    ),
    LifeArea(
        LifeAreaId.SAFETY,
        "Safety",
        5,
        ("disaster_planning", "insurance", "alerts"),
        ("safety",),
    ),
    LifeArea(
        LifeAreaId.GROWTH,
        "Growth",
        6,
        ("learning", "goals", "habits"),
        ("goals",),
    ),
)

AREAS_BY_ID: dict[LifeAreaId, LifeArea] = {a.id: a for a in LIFE_AREAS}

# Goal categories that map onto a life area when they are not already an area id
CATEGORY_ALIASES = {
    "finance": LifeAreaId.FINANCIAL,
    "money": LifeAreaId.FINANCIAL,
    "fitness": LifeAreaId.HEALTH,
    "work": LifeAreaId.CAREER,
    "learning": LifeAreaId.GROWTH,
    "personal": LifeAreaId.GROWTH,
}


def area_for_category(category: str | None) -> LifeAreaId | None:
    """Resolve a free-form goal category to a life area, or None."""
    if not category:
        return None
    key = category.strip().lower()
    try:
        return LifeAreaId(key)
    except ValueError:
        return CATEGORY_ALIASES.get(key)


@dataclass
class AreaAnalysis:
    """Per-area result of one analysis pass."""

    area: LifeAreaId
    score: int = 50
    status: AreaStatus = AreaStatus.STABLE
    concerns: list[str] = field(default_factory=list)
    opportunities: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    has_data: bool = False

    def to_dict(self) -> dict:
        return {
            "area": self.area.value,
            "score": self.score,
            "status": self.status.value,
            "concerns": list(self.concerns),
            "opportunities": list(self.opportunities),
            "recommendations": list(self.recommendations),
            "has_data": self.has_data,
        }


def make_insight_id(area: str, insight_type: str, title: str) -> str:
    """Stable id so a regenerated insight dedupes against the stored copy."""
    raw = f"{area}|{insight_type}|{title}"
    return f"ins_{hashlib.md5(raw.encode()).hexdigest()[:12]}"  # noqa: S324


@dataclass
class Insight:
    id: str
    area: str
    type: InsightType
    priority: int
    title: str
    content: str
    recommendations: list[str] = field(default_factory=list)
    created_at: str | None = None
    tags: list[str] = field(default_factory=list)
    action: dict | None = None

    @classmethod
    def build(
        cls,
        area: str,
        insight_type: InsightType,
        priority: int,
        title: str,
        content: str,
        recommendations: list[str] | None = None,
        created_at: str | None = None,
        **extra: Any,
    ) -> "Insight":
        area_value = area.value if isinstance(area, enum.Enum) else area
        return cls(
            id=make_insight_id(area_value, insight_type.value, title),
            area=area_value,
            type=insight_type,
            priority=max(1, min(10, priority)),
            title=title,
            content=content,
            recommendations=list(recommendations or []),
            created_at=created_at,
            **extra,
        )

    def to_dict(self) -> dict:
        data = {
            "id": self.id,
            "area": self.area,
            "type": self.type.value,
            "priority": self.priority,
            "title": self.title,
            "content": self.content,
            "recommendations": list(self.recommendations),
            "created_at": self.created_at,
        }
        if self.tags:
            data["tags"] = list(self.tags)
        if self.action is not None:
            data["action"] = dict(self.action)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Insight":
        return cls(
            id=data["id"],
            area=data.get("area", ""),
            type=InsightType(data.get("type", "concern")),
            priority=int(data.get("priority", 5)),
            title=data.get("title", ""),
            content=data.get("content", ""),
            recommendations=list(data.get("recommendations") or []),
            created_at=data.get("created_at"),
            tags=list(data.get("tags") or []),
            action=data.get("action"),
        )


@dataclass
class Action:
    type: ActionType
    priority: int
    insight_ref: str | None
    action_text: str
    area: str | None = None
    requires_approval: bool = False

    @property
    def key(self) -> tuple[str | None, str]:
        """Identity used for dedupe: (insight_id, type)."""
        return (self.insight_ref, self.type.value)

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "priority": self.priority,
            "insight_ref": self.insight_ref,
            "action_text": self.action_text,
            "area": self.area,
            "requires_approval": self.requires_approval,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Action":
        return cls(
            type=ActionType(data["type"]),
            priority=int(data.get("priority", 5)),
            insight_ref=data.get("insight_ref"),
            action_text=data.get("action_text", ""),
            area=data.get("area"),
            requires_approval=bool(data.get("requires_approval", False)),
        )

"""
Context - everything one cycle knows about the outside world.

Built by the gather-context step from the provider results. Readers go
through the accessors so a disconnected provider always looks like an
empty payload rather than stale data.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .coverage import CoverageSnapshot
from .providers.base import ProviderResult

# Sentinel data sources resolved from the criterion itself, not the context
SELF_REPORTED_SOURCES = frozenset({"manual_tracking", "user_input"})

# Named data sources that map onto a provider payload key
SOURCE_ALIASES = {
    "portfolio": ("portfolio", ("equity",)),
    "net_worth": ("bank_accounts", ("net_worth",)),
}


@dataclass
class Context:
    cycle: int
    gathered_at: datetime
    results: dict[str, ProviderResult]
    coverage: CoverageSnapshot
    categories: dict[str, str] = field(default_factory=dict)

    def connected(self, provider_id: str) -> bool:
        result = self.results.get(provider_id)
        return bool(result and result.connected)

    def payload(self, provider_id: str) -> dict:
        result = self.results.get(provider_id)
        if result is None or not result.connected or not isinstance(result.payload, dict):
            return {}
        return result.payload

    def connected_categories(self) -> set[str]:
        return {
            self.categories[pid]
            for pid, r in self.results.items()
            if r.connected and pid in self.categories
        }

    @property
    def life_scores(self) -> dict[str, float]:
        categories = self.payload("life_scores").get("categories") or {}
        scores = {}
        for area, value in categories.items():
            if isinstance(value, dict):
                value = value.get("score")
            if isinstance(value, (int, float)):
                scores[area] = float(value)
        return scores

    @property
    def opportunities(self) -> dict[str, list[str]]:
        return self.payload("life_scores").get("opportunities") or {}

    @property
    def active_goals(self) -> list[dict]:
        return list(self.payload("goals").get("active_goals") or [])

    @property
    def safety_alerts(self) -> list[dict]:
        return list(self.payload("safety").get("active_alerts") or [])

    @property
    def predictions(self) -> list[dict]:
        return list(self.payload("predictions").get("markets") or [])

    def resolve(self, source: str | None) -> Any:
        """
        Read a criterion data source from the gathered payloads.

        Accepts the named sources (portfolio, net_worth), dotted paths
        whose first segment is a provider id (health.sleep.score), or a
        bare provider id whose payload is a scalar or carries "value".
        Returns None when the source is unknown or disconnected.
        """
        if not source or source in SELF_REPORTED_SOURCES:
            return None

        if source in SOURCE_ALIASES:
            provider_id, path = SOURCE_ALIASES[source]
            return _dig(self.payload(provider_id), path) if self.connected(provider_id) else None

        head, _, rest = source.partition(".")
        if head not in self.results or not self.connected(head):
            return None
        result = self.results[head]
        if rest:
            return _dig(result.payload, tuple(rest.split(".")))
        if isinstance(result.payload, dict):
            return result.payload.get("value")
        return result.payload


def _dig(data: Any, path: tuple[str, ...]) -> Any:
    for key in path:
        if not isinstance(data, dict) or key not in data:
            return None
        data = data[key]
    return data

"""
Coverage Evaluator - how much of the input data the engine can see.

overall = sum(weight_i * field_coverage_i / 100) / sum(weight_i), as a
0-100 integer. Optimization is gated on overall >= 80. The evaluator is
pure: it only reads the ProviderResults it is given.
"""

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

from .providers.base import Provider, ProviderResult

READY_THRESHOLD = 80
INCOMPLETE_BELOW = 50


@dataclass(frozen=True)
class MissingProvider:
    provider_id: str
    name: str
    category: str
    weight: int
    required: bool
    reason: str  # "not connected" or "incomplete"
    field_coverage: float = 0.0

    def to_dict(self) -> dict:
        return {
            "provider_id": self.provider_id,
            "name": self.name,
            "category": self.category,
            "weight": self.weight,
            "required": self.required,
            "reason": self.reason,
            "field_coverage": round(self.field_coverage, 1),
        }


@dataclass
class CoverageSnapshot:
    overall: int
    per_provider: dict[str, float] = field(default_factory=dict)
    missing: list[MissingProvider] = field(default_factory=list)

    @property
    def ready(self) -> bool:
        return gate(self.overall)

    def to_dict(self) -> dict:
        return {
            "overall": self.overall,
            "ready": self.ready,
            "per_provider": {k: round(v, 1) for k, v in self.per_provider.items()},
            "missing": [m.to_dict() for m in self.missing],
        }


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def evaluate(
    results: Mapping[str, ProviderResult], providers: Sequence[Provider]
) -> CoverageSnapshot:
    """Weighted coverage over the declared providers."""
    total_weight = sum(p.weight for p in providers)
    weighted = 0.0
    per_provider: dict[str, float] = {}
    missing: list[MissingProvider] = []

    for p in providers:
        result = results.get(p.id)
        fc = result.field_coverage if result is not None and result.connected else 0.0
        per_provider[p.id] = fc
        weighted += p.weight * fc / 100

        if p.weight == 0:
            continue
        if result is None or not result.connected:
            missing.append(
                MissingProvider(p.id, p.name, p.category, p.weight, p.required, "not connected")
            )
        elif fc < INCOMPLETE_BELOW:
            missing.append(
                MissingProvider(p.id, p.name, p.category, p.weight, p.required, "incomplete", fc)
            )

    overall = round_half_up(weighted / total_weight * 100) if total_weight else 0
    # Stable sort keeps declaration order within equal (weight, required)
    missing.sort(key=lambda m: (-m.weight, not m.required))
    return CoverageSnapshot(overall=overall, per_provider=per_provider, missing=missing)


def gate(coverage: int | float) -> bool:
    """True once coverage reaches the optimization threshold."""
    return coverage >= READY_THRESHOLD

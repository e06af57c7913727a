"""
Provider model - declarations, per-cycle results, and the handle interface.

Every external data source is declared as a Provider (static, weighted)
and reached through a DataProvider handle whose fetch() the registry runs
under a deadline. Concrete clients for trading, health rings, email and
so on live outside the engine; they only need to satisfy DataProvider.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Provider:
    """Static declaration of an external data source."""

    id: str
    name: str
    category: str
    weight: int
    required: bool = False
    fields: tuple[str, ...] = ()

    def __post_init__(self):
        if not 0 <= self.weight <= 100:
            raise ValueError(f"Provider {self.id} weight {self.weight} outside [0, 100]")


@dataclass
class ProviderResult:
    """What one provider returned during one cycle."""

    provider_id: str
    connected: bool
    field_presence: dict[str, bool] = field(default_factory=dict)
    payload: Any = None
    fetched_at: datetime | None = None
    error: str | None = None

    @property
    def field_coverage(self) -> float:
        """Percentage of declared fields present (0 when disconnected)."""
        if not self.connected:
            return 0.0
        if not self.field_presence:
            return 100.0
        present = sum(1 for v in self.field_presence.values() if v)
        return present / len(self.field_presence) * 100

    @classmethod
    def disconnected(cls, provider_id: str, error: str | None, fetched_at: datetime | None = None):
        return cls(provider_id=provider_id, connected=False, fetched_at=fetched_at, error=error)

    def to_dict(self) -> dict:
        return {
            "provider_id": self.provider_id,
            "connected": self.connected,
            "field_presence": dict(self.field_presence),
            "field_coverage": round(self.field_coverage, 1),
            "fetched_at": self.fetched_at.isoformat() if self.fetched_at else None,
            "error": self.error,
        }


@dataclass(frozen=True)
class FetchContext:
    """Passed to every fetch so handles can see the cycle and their deadline."""

    cycle: int
    now: datetime
    deadline_seconds: float


def field_present(payload: Any, name: str) -> bool:
    """A field counts as present when the payload has a non-empty value for it."""
    if not isinstance(payload, dict) or name not in payload:
        return False
    value = payload[name]
    if value is None:
        return False
    if isinstance(value, (str, list, dict, tuple)) and len(value) == 0:
        return False
    return True


class DataProvider(ABC):
    """Handle to an external collaborator that produces a payload per cycle."""

    def __init__(self, spec: Provider):
        self.spec = spec

    @property
    def provider_id(self) -> str:
        return self.spec.id

    @abstractmethod
    async def fetch(self, ctx: FetchContext) -> "dict | ProviderResult | None":
        """
        Return the provider's payload.

        A dict is treated as a connected payload and field presence is
        derived from the declared fields. None means "not connected".
        A full ProviderResult may be returned for explicit control.
        Raise on transport errors; the registry records the failure.
        """

    async def health_check(self) -> bool:
        return True

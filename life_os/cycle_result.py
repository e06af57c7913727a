"""
Result variants for cycle execution.

The scheduler switches on StepOutcome instead of catching exceptions:
a timed-out step yields StepOutcome.TIMEOUT and downstream steps use
their defaults.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


class StepOutcome(str, enum.Enum):
    OK = "ok"
    TIMEOUT = "timeout"
    FAILED = "failed"


class TickOutcome(str, enum.Enum):
    RAN = "ran"
    DROPPED = "dropped"
    SKIPPED_BACKOFF = "skipped_backoff"


class CycleStatus(str, enum.Enum):
    COMPLETE = "complete"
    FAILED = "failed"
    ABORTED = "aborted"


@dataclass
class StepResult:
    """Result of a single step execution."""

    name: str
    outcome: StepOutcome
    value: Any = None
    error: str | None = None
    error_kind: str | None = None
    duration_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.outcome == StepOutcome.OK

    def value_or(self, default: Any) -> Any:
        """The step's value when it succeeded, otherwise the given default."""
        return self.value if self.ok else default


@dataclass
class CycleResult:
    """Result of a complete cycle."""

    cycle_number: int
    started_at: datetime
    completed_at: datetime
    status: CycleStatus = CycleStatus.COMPLETE
    steps: list[StepResult] = field(default_factory=list)
    error: str | None = None

    @property
    def duration_seconds(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()

    @property
    def succeeded(self) -> bool:
        return self.status == CycleStatus.COMPLETE

    @property
    def timed_out_steps(self) -> list[str]:
        return [s.name for s in self.steps if s.outcome == StepOutcome.TIMEOUT]

    @property
    def failed_steps(self) -> list[str]:
        return [s.name for s in self.steps if s.outcome == StepOutcome.FAILED]

    def step(self, name: str) -> StepResult | None:
        for s in self.steps:
            if s.name == name:
                return s
        return None

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/events."""
        return {
            "cycle_number": self.cycle_number,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat(),
            "duration_seconds": self.duration_seconds,
            "status": self.status.value,
            "error": self.error,
            "steps": [
                {
                    "name": s.name,
                    "outcome": s.outcome.value,
                    "error": s.error,
                    "duration_seconds": s.duration_seconds,
                }
                for s in self.steps
            ],
            "timed_out_steps": self.timed_out_steps,
            "failed_steps": self.failed_steps,
        }

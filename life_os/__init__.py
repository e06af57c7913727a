# LIFE OS - Autonomous life-management engine
"""
Exports for the daemon, CLI, API and other consumers.
"""

from .clock import Clock, ManualClock, SystemClock
from .config import EngineConfig, load_config
from .coverage import CoverageSnapshot, evaluate, gate
from .cycle_result import CycleResult, CycleStatus, StepOutcome, StepResult, TickOutcome
from .events import Event, EventBus, Topic
from .scheduler import CycleScheduler, TaskExecutor
from .state_store import EngineState, StateStore

__all__ = [
    "Clock",
    "SystemClock",
    "ManualClock",
    "EngineConfig",
    "load_config",
    "CoverageSnapshot",
    "evaluate",
    "gate",
    "CycleResult",
    "CycleStatus",
    "StepOutcome",
    "StepResult",
    "TickOutcome",
    "Event",
    "EventBus",
    "Topic",
    "CycleScheduler",
    "TaskExecutor",
    "EngineState",
    "StateStore",
]

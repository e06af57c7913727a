"""
State Store - crash-safe persistence of the engine state document.

One JSON document, written atomically: temp sibling file, flush, fsync,
then os.replace over the canonical path. A reader therefore always sees
either the previous document or the new one.

Writers are serialized with a lock. Only the scheduler writes the state
file; the health CLI and API only read.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
import os
import tempfile
import threading
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from .errors import PersistenceError

logger = logging.getLogger(__name__)

MAX_INSIGHTS = 100
MAX_COMPLETED_ACTIONS = 100
MAX_ACTION_HISTORY = 50


def default_error_recovery() -> dict:
    return {
        "consecutive_failures": 0,
        "backoff_ms": 0,
        "last_failure_at": None,
        "last_error": None,
        "persistence_failures": 0,
    }


@dataclass
class EngineState:
    """The persisted engine document. Unknown top-level keys ride along in `extras`."""

    initialized: bool = False
    cycle_count: int = 0
    last_cycle: str | None = None
    area_scores: dict = field(default_factory=dict)
    insights: list = field(default_factory=list)
    pending_actions: list = field(default_factory=list)
    completed_actions: list = field(default_factory=list)
    user_context: dict = field(default_factory=dict)
    current_goal: dict | None = None
    work_plan: dict | None = None
    goal_criteria: dict = field(default_factory=dict)
    goal_tasks: dict = field(default_factory=dict)
    on_hold_tasks: dict = field(default_factory=dict)
    on_hold_goals: dict = field(default_factory=dict)
    action_history: list = field(default_factory=list)
    error_recovery: dict = field(default_factory=default_error_recovery)
    goals: list = field(default_factory=list)
    completed_goals: list = field(default_factory=list)
    pending_questions: list = field(default_factory=list)
    messaging_usage: dict = field(default_factory=dict)
    coverage: dict | None = None
    optimization_started: bool = False
    extras: dict = field(default_factory=dict)

    @classmethod
    def field_names(cls) -> set[str]:
        return {f.name for f in fields(cls) if f.name != "extras"}

    @classmethod
    def from_dict(cls, data: dict) -> "EngineState":
        known = cls.field_names()
        state = cls()
        for key, value in data.items():
            if key in known:
                if value is None and key not in ("last_cycle", "current_goal", "work_plan", "coverage"):
                    continue
                setattr(state, key, value)
            else:
                state.extras[key] = value
        merged = default_error_recovery()
        merged.update(state.error_recovery or {})
        state.error_recovery = merged
        return state

    def to_dict(self) -> dict:
        data = dict(self.extras)
        for name in self.field_names():
            data[name] = getattr(self, name)
        return data

    def copy(self) -> "EngineState":
        return copy.deepcopy(self)

    # ---- bounded collections ----

    def add_insight(self, insight: dict) -> bool:
        """Unshift an insight unless one with the same id is stored. Returns True if added."""
        if any(existing.get("id") == insight.get("id") for existing in self.insights):
            return False
        self.insights.insert(0, insight)
        del self.insights[MAX_INSIGHTS:]
        return True

    def add_completed_action(self, record: dict) -> None:
        self.completed_actions.insert(0, record)
        del self.completed_actions[MAX_COMPLETED_ACTIONS:]

    def add_action_history(self, entry: dict) -> None:
        self.action_history.insert(0, entry)
        del self.action_history[MAX_ACTION_HISTORY:]


# =============================================================================
# Atomic JSON files
# =============================================================================


def write_json_atomic(path: Path, data: Any, lock: threading.Lock | None = None) -> None:
    """Write JSON to `path` atomically. Raises PersistenceError on failure."""
    text = json.dumps(data, indent=2, default=str)
    write_text_atomic(path, text, lock=lock)


def write_text_atomic(path: Path, text: str, lock: threading.Lock | None = None) -> None:
    path = Path(path)
    guard = lock or threading.Lock()
    with guard:
        tmp_name = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent)
            )
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
            tmp_name = None
            _fsync_dir(path.parent)
        except OSError as e:
            raise PersistenceError(path, e) from e
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)


def _fsync_dir(directory: Path) -> None:
    if os.name != "posix":
        return
    try:
        fd = os.open(str(directory), os.O_RDONLY)
    except OSError as e:
        logger.debug(f"Directory fsync skipped for {directory}: {e}")
        return
    try:
        os.fsync(fd)
    except OSError as e:
        logger.debug(f"Directory fsync failed for {directory}: {e}")
    finally:
        os.close(fd)


def read_json(path: Path) -> Any | None:
    """Read a JSON file. Returns None if missing or malformed."""
    path = Path(path)
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        logger.warning(f"Malformed JSON in {path}: {e}")
        return None
    except OSError as e:
        logger.warning(f"Could not read {path}: {e}")
        return None


class StateStore:
    """Atomic reader/writer for engine_state.json."""

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    def load(self) -> EngineState:
        """Load the state document; defaults when missing or malformed."""
        data = read_json(self.path)
        if data is None:
            return EngineState()
        if not isinstance(data, dict):
            logger.warning(f"State file {self.path} is not a JSON object, using defaults")
            return EngineState()
        return EngineState.from_dict(data)

    def save(self, state: EngineState) -> None:
        """Persist state atomically. Raises PersistenceError."""
        write_json_atomic(self.path, state.to_dict(), lock=self._lock)

    async def save_async(self, state: EngineState) -> None:
        # Snapshot first so the caller may keep mutating while the write runs
        snapshot = state.copy()
        await asyncio.to_thread(self.save, snapshot)

    def append_insight(self, insight: dict) -> bool:
        """Load, unshift the insight (dedupe by id), truncate to 100, save."""
        state = self.load()
        added = state.add_insight(insight)
        if added:
            self.save(state)
        return added

    def record_action(self, record: dict) -> None:
        """Load, push onto the completed_actions ring (cap 100), save."""
        state = self.load()
        state.add_completed_action(record)
        self.save(state)

"""
Heartbeat Recorder - externally visible liveness record.

The recorder keeps the heartbeat document in memory; flush() writes it
atomically to engine-heartbeat.json so the health CLI can read it at
any instant. The hourly log is a contiguous window of the 24 most
recent hours ending at the current hour, zero-filled where nothing
happened.
"""

import asyncio
import copy
import logging
import threading
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from .clock import Clock, SystemClock, parse_instant
from .state_store import read_json, write_json_atomic

logger = logging.getLogger(__name__)

HOURLY_BUCKETS = 24
MAX_RECENT_ACTIONS = 20
HOUR_FORMAT = "%Y-%m-%dT%H:00:00"

STATUS_RUNNING = "running"
STATUS_STALLED = "stalled"
STATUS_PAUSED = "paused"
STATUS_STOPPED = "stopped"


def default_heartbeat() -> dict:
    return {
        "status": STATUS_STOPPED,
        "last_beat": None,
        "last_work": None,
        "uptime_started": None,
        "total_work": 0,
        "total_errors": 0,
        "restarts": 0,
        "current_step": None,
        "last_error": None,
        "recent_actions": [],
        "hourly_log": [],
    }


def hour_key(when: datetime) -> str:
    return when.strftime(HOUR_FORMAT)


def rotate_hourly(log: list[dict], now: datetime) -> list[dict]:
    """Contiguous 24-bucket window ending at the hour containing `now`."""
    by_hour = {b.get("hour"): b for b in log}
    current = now.replace(minute=0, second=0, microsecond=0)
    window = []
    for offset in range(HOURLY_BUCKETS - 1, -1, -1):
        key = hour_key(current - timedelta(hours=offset))
        bucket = by_hour.get(key) or {"hour": key, "beats": 0, "work_items": 0, "errors": 0}
        window.append(bucket)
    return window


def _seconds_since(value: Any, now: datetime) -> float | None:
    when = parse_instant(value)
    if when is None:
        return None
    return (now - when).total_seconds()


def _minutes_since(value: Any, now: datetime) -> float | None:
    seconds = _seconds_since(value, now)
    return None if seconds is None else round(seconds / 60, 1)


def heartbeat_view(data: dict | None, now: datetime, step_timeout: float = 30.0) -> dict:
    """
    Observer summary of a heartbeat document.

    A recorder marked running whose last beat is older than twice the
    step timeout is reported as stalled.
    """
    if not data:
        return {"status": "no_data", "message": "No heartbeat recorded yet"}

    status = data.get("status", STATUS_STOPPED)
    beat_age = _seconds_since(data.get("last_beat"), now)
    if status == STATUS_RUNNING and (beat_age is None or beat_age > 2 * step_timeout):
        status = STATUS_STALLED

    hourly = data.get("hourly_log") or []
    return {
        "status": status,
        "current_step": data.get("current_step"),
        "last_beat": data.get("last_beat"),
        "last_work": data.get("last_work"),
        "minutes_since_beat": _minutes_since(data.get("last_beat"), now),
        "minutes_since_work": _minutes_since(data.get("last_work"), now),
        "uptime_minutes": _minutes_since(data.get("uptime_started"), now),
        "total_work": data.get("total_work", 0),
        "total_errors": data.get("total_errors", 0),
        "restarts": data.get("restarts", 0),
        "last_error": data.get("last_error"),
        "last_24h": {
            "beats": sum(b.get("beats", 0) for b in hourly),
            "work_items": sum(b.get("work_items", 0) for b in hourly),
            "errors": sum(b.get("errors", 0) for b in hourly),
        },
        "recent_actions": list(data.get("recent_actions") or [])[:10],
    }


def read_heartbeat(path: Path) -> dict | None:
    data = read_json(path)
    return data if isinstance(data, dict) else None


class HeartbeatRecorder:
    def __init__(self, path: Path, clock: Clock | None = None, step_timeout: float = 30.0):
        self.path = Path(path)
        self.clock = clock or SystemClock()
        self.step_timeout = step_timeout
        self._lock = threading.Lock()
        self.data = default_heartbeat()
        existing = read_heartbeat(self.path)
        if existing:
            self.data.update(existing)

    # ---- transitions ----

    def start(self) -> None:
        now = self.clock.now()
        if self.data.get("status") == STATUS_RUNNING:
            # previous process died without stop()
            self.data["restarts"] = self.data.get("restarts", 0) + 1
            logger.warning(f"Previous run did not stop cleanly (restarts={self.data['restarts']})")
        self.data["status"] = STATUS_RUNNING
        self.data["uptime_started"] = now.isoformat()
        self.data["last_beat"] = now.isoformat()
        self._rotate(now)

    def pause(self) -> None:
        self.data["status"] = STATUS_PAUSED
        self.data["current_step"] = None

    def stop(self) -> None:
        self.data["status"] = STATUS_STOPPED
        self.data["current_step"] = None

    # ---- counters ----

    def beat(self, step: str | None = None) -> None:
        now = self.clock.now()
        self.data["last_beat"] = now.isoformat()
        self.data["current_step"] = step
        self._bucket(now)["beats"] += 1

    def record_work(self, description: str, duration_ms: int | None = None) -> None:
        now = self.clock.now()
        self.data["last_work"] = now.isoformat()
        self.data["last_beat"] = now.isoformat()
        self.data["total_work"] = self.data.get("total_work", 0) + 1
        self.data["current_step"] = None
        recent = self.data.setdefault("recent_actions", [])
        recent.insert(0, {"action": description, "timestamp": now.isoformat(), "duration_ms": duration_ms})
        del recent[MAX_RECENT_ACTIONS:]
        self._bucket(now)["work_items"] += 1

    def record_error(self, message: str) -> None:
        now = self.clock.now()
        self.data["total_errors"] = self.data.get("total_errors", 0) + 1
        self.data["last_error"] = {"message": message, "timestamp": now.isoformat()}
        self._bucket(now)["errors"] += 1

    def _rotate(self, now: datetime) -> None:
        self.data["hourly_log"] = rotate_hourly(self.data.get("hourly_log") or [], now)

    def _bucket(self, now: datetime) -> dict:
        self._rotate(now)
        return self.data["hourly_log"][-1]

    # ---- persistence / observers ----

    def flush(self) -> None:
        """Write the heartbeat file atomically. Raises PersistenceError."""
        write_json_atomic(self.path, self.data, lock=self._lock)

    async def flush_async(self) -> None:
        snapshot = copy.deepcopy(self.data)
        await asyncio.to_thread(write_json_atomic, self.path, snapshot, self._lock)

    def view(self) -> dict:
        return heartbeat_view(self.data, self.clock.now(), self.step_timeout)

"""
In-process metrics for the engine.

Counters, gauges and histograms live in a MetricsRegistry that is passed
to the scheduler explicitly. The observer API renders it in Prometheus
text format at /api/metrics.
"""

import threading
from dataclasses import dataclass, field


@dataclass
class Counter:
    """Thread-safe monotonically increasing counter."""

    name: str
    description: str
    _value: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def inc(self, amount: int = 1) -> None:
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


@dataclass
class Gauge:
    """Thread-safe gauge metric."""

    name: str
    description: str
    _value: float = 0.0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def set(self, value: float) -> None:
        with self._lock:
            self._value = value

    @property
    def value(self) -> float:
        with self._lock:
            return self._value


@dataclass
class Histogram:
    """Rolling window of observations (last 1000)."""

    name: str
    description: str
    window: int = 1000
    _values: list[float] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def observe(self, value: float) -> None:
        with self._lock:
            self._values.append(value)
            if len(self._values) > self.window:
                del self._values[: -self.window]

    @property
    def count(self) -> int:
        with self._lock:
            return len(self._values)

    @property
    def sum(self) -> float:
        with self._lock:
            return float(sum(self._values))

    @property
    def max(self) -> float:
        with self._lock:
            return max(self._values) if self._values else 0.0


class MetricsRegistry:
    """Central registry for all metrics of one engine process."""

    def __init__(self) -> None:
        self._counters: dict[str, Counter] = {}
        self._gauges: dict[str, Gauge] = {}
        self._histograms: dict[str, Histogram] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, description: str = "") -> Counter:
        """Get or create a counter."""
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name, description)
            return self._counters[name]

    def gauge(self, name: str, description: str = "") -> Gauge:
        """Get or create a gauge."""
        with self._lock:
            if name not in self._gauges:
                self._gauges[name] = Gauge(name, description)
            return self._gauges[name]

    def histogram(self, name: str, description: str = "") -> Histogram:
        """Get or create a histogram."""
        with self._lock:
            if name not in self._histograms:
                self._histograms[name] = Histogram(name, description)
            return self._histograms[name]

    def to_prometheus(self) -> str:
        """Export metrics in Prometheus text format."""
        lines: list[str] = []
        with self._lock:
            counters = dict(self._counters)
            gauges = dict(self._gauges)
            histograms = dict(self._histograms)

        for name in sorted(counters):
            c = counters[name]
            if c.description:
                lines.append(f"# HELP {name} {c.description}")
            lines.append(f"# TYPE {name} counter")
            lines.append(f"{name} {c.value}")

        for name in sorted(gauges):
            g = gauges[name]
            if g.description:
                lines.append(f"# HELP {name} {g.description}")
            lines.append(f"# TYPE {name} gauge")
            lines.append(f"{name} {g.value}")

        for name in sorted(histograms):
            h = histograms[name]
            if h.description:
                lines.append(f"# HELP {name} {h.description}")
            lines.append(f"# TYPE {name} summary")
            lines.append(f"{name}_count {h.count}")
            lines.append(f"{name}_sum {h.sum}")

        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, dict]:
        """Export metrics as dictionary."""
        result: dict[str, dict] = {}
        with self._lock:
            for name, c in self._counters.items():
                result[name] = {"type": "counter", "value": c.value}
            for name, g in self._gauges.items():
                result[name] = {"type": "gauge", "value": g.value}
            for name, h in self._histograms.items():
                result[name] = {"type": "histogram", "count": h.count, "sum": h.sum, "max": h.max}
        return result


class EngineMetrics:
    """Named metrics the scheduler and dispatcher update."""

    def __init__(self, registry: MetricsRegistry):
        self.registry = registry
        self.cycles = registry.counter("life_cycles_total", "Cycles started")
        self.cycle_failures = registry.counter("life_cycle_failures_total", "Cycles that failed")
        self.cycle_aborts = registry.counter("life_cycle_aborts_total", "Cycles aborted")
        self.ticks_dropped = registry.counter(
            "life_ticks_dropped_total", "Ticks dropped while a cycle was running"
        )
        self.ticks_skipped = registry.counter(
            "life_ticks_skipped_total", "Ticks skipped inside the backoff window"
        )
        self.step_timeouts = registry.counter("life_step_timeouts_total", "Steps that timed out")
        self.persistence_failures = registry.counter(
            "life_persistence_failures_total", "Failed state writes"
        )
        self.actions_dispatched = registry.counter(
            "life_actions_dispatched_total", "Actions dispatched"
        )
        self.actions_blocked = registry.counter(
            "life_actions_blocked_total", "Actions blocked pending approval"
        )
        self.insights_added = registry.counter("life_insights_added_total", "Insights persisted")
        self.coverage = registry.gauge("life_coverage_percent", "Current data coverage")
        self.cycle_duration = registry.histogram("life_cycle_duration_seconds", "Cycle duration")
        self.step_duration = registry.histogram("life_step_duration_seconds", "Step duration")


# Default registry for the process boundary (CLI and API server)
REGISTRY = MetricsRegistry()

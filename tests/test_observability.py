"""
Tests for observability modules.

Covers:
- Metrics: Counter, Gauge, Histogram, MetricsRegistry, Prometheus export
- EngineMetrics names
- Logging: JSONFormatter, HumanFormatter, cycle ID propagation
"""

import json
import logging
import sys
import threading

from life_os.observability.context import CycleContext, generate_cycle_id, get_cycle_id
from life_os.observability.logging import HumanFormatter, JSONFormatter, configure_log_file
from life_os.observability.metrics import (
    Counter,
    EngineMetrics,
    Gauge,
    Histogram,
    MetricsRegistry,
)


def make_record(msg="Cycle 3 complete", level=logging.INFO, **extra):
    record = logging.LogRecord(
        name="life_os.scheduler",
        level=level,
        pathname="scheduler.py",
        lineno=42,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# =============================================================================
# METRICS
# =============================================================================


class TestCounter:
    """Tests for Counter metric."""

    def test_counter_increments(self):
        """Counter.inc() should increase value."""
        c = Counter("test_counter", "Test counter")
        assert c.value == 0
        c.inc()
        c.inc(3)
        assert c.value == 4

    def test_counter_thread_safe(self):
        """Concurrent increments should not be lost."""
        c = Counter("test_counter", "")

        def bump():
            for _ in range(1000):
                c.inc()

        threads = [threading.Thread(target=bump) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert c.value == 4000


class TestGauge:
    def test_gauge_set(self):
        g = Gauge("life_coverage_percent", "")
        g.set(82)
        assert g.value == 82


class TestHistogram:
    """Tests for Histogram metric."""

    def test_histogram_observe(self):
        h = Histogram("life_cycle_duration_seconds", "")
        h.observe(0.5)
        h.observe(1.5)
        assert h.count == 2
        assert h.sum == 2.0
        assert h.max == 1.5

    def test_histogram_keeps_window(self):
        """Histogram should keep only the last `window` observations."""
        h = Histogram("h", "", window=10)
        for n in range(25):
            h.observe(n)
        assert h.count == 10
        assert h.max == 24

    def test_empty_histogram_max(self):
        assert Histogram("h", "").max == 0.0


class TestMetricsRegistry:
    def test_get_or_create(self):
        registry = MetricsRegistry()
        assert registry.counter("a") is registry.counter("a")
        assert registry.gauge("b") is registry.gauge("b")
        assert registry.histogram("c") is registry.histogram("c")

    def test_to_prometheus(self):
        """Prometheus export should carry HELP/TYPE lines and values."""
        registry = MetricsRegistry()
        registry.counter("life_cycles_total", "Cycles started").inc(2)
        registry.gauge("life_coverage_percent").set(40)
        registry.histogram("life_step_duration_seconds").observe(0.25)

        text = registry.to_prometheus()

        assert "# HELP life_cycles_total Cycles started" in text
        assert "# TYPE life_cycles_total counter" in text
        assert "life_cycles_total 2" in text
        assert "# TYPE life_coverage_percent gauge" in text
        assert "life_step_duration_seconds_count 1" in text
        assert "life_step_duration_seconds_sum 0.25" in text
        assert text.endswith("\n")

    def test_to_dict(self):
        registry = MetricsRegistry()
        registry.counter("c").inc()
        registry.histogram("h").observe(2.0)
        data = registry.to_dict()
        assert data["c"] == {"type": "counter", "value": 1}
        assert data["h"]["max"] == 2.0


class TestEngineMetrics:
    def test_engine_metric_names(self):
        """EngineMetrics should register its series on the given registry."""
        registry = MetricsRegistry()
        metrics = EngineMetrics(registry)
        metrics.cycles.inc()
        metrics.actions_blocked.inc()
        metrics.coverage.set(82)

        text = registry.to_prometheus()
        for name in (
            "life_cycles_total",
            "life_cycle_failures_total",
            "life_ticks_dropped_total",
            "life_ticks_skipped_total",
            "life_step_timeouts_total",
            "life_persistence_failures_total",
            "life_actions_blocked_total",
            "life_insights_added_total",
            "life_coverage_percent",
            "life_cycle_duration_seconds_count",
        ):
            assert name in text
        assert "life_actions_blocked_total 1" in text


# =============================================================================
# CYCLE CONTEXT
# =============================================================================


class TestCycleContext:
    def test_generate_cycle_id(self):
        assert generate_cycle_id(7).startswith("cyc-7-")
        assert generate_cycle_id().startswith("cyc-")
        assert generate_cycle_id(1) != generate_cycle_id(1)

    def test_context_sets_and_resets(self):
        """CycleContext should set the cycle id only inside the block."""
        assert get_cycle_id() is None
        with CycleContext(cycle_id="cyc-test") as ctx:
            assert ctx.cycle_id == "cyc-test"
            assert get_cycle_id() == "cyc-test"
        assert get_cycle_id() is None

    def test_nested_contexts(self):
        with CycleContext(cycle_number=1):
            outer = get_cycle_id()
            with CycleContext(cycle_number=2):
                assert get_cycle_id().startswith("cyc-2-")
            assert get_cycle_id() == outer


# =============================================================================
# FORMATTERS
# =============================================================================


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_json_formatter_basic(self):
        """JSONFormatter should output valid JSON."""
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "life_os.scheduler"
        assert data["message"] == "Cycle 3 complete"
        assert data["timestamp"].endswith("Z")
        assert "cycle_id" not in data

    def test_json_formatter_includes_cycle_id(self):
        """JSONFormatter should include cycle_id from context."""
        with CycleContext(cycle_id="cyc-3-abcd1234"):
            data = json.loads(JSONFormatter().format(make_record()))
        assert data["cycle_id"] == "cyc-3-abcd1234"

    def test_json_formatter_extra_fields(self):
        data = json.loads(JSONFormatter().format(make_record(step="gather-context", count=4)))
        assert data["step"] == "gather-context"
        assert data["count"] == 4

    def test_json_formatter_exception(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = make_record(level=logging.ERROR)
            record.exc_info = sys.exc_info()
        data = json.loads(JSONFormatter().format(record))
        assert "RuntimeError: boom" in data["exception"]


class TestHumanFormatter:
    def test_human_formatter_basic(self):
        line = HumanFormatter().format(make_record())
        assert "[INFO] life_os.scheduler: Cycle 3 complete" in line

    def test_human_formatter_includes_cycle_id(self):
        with CycleContext(cycle_id="cyc-9-00000000"):
            line = HumanFormatter().format(make_record())
        assert "[cyc-9-00000000] Cycle 3 complete" in line


class TestLogFile:
    def test_configure_log_file(self, tmp_path):
        """A rotating JSON file handler should be attached to the root logger."""
        path = tmp_path / "logs" / "engine.log"
        root = logging.getLogger()
        before = list(root.handlers)
        configure_log_file(path)
        added = [h for h in root.handlers if h not in before]
        try:
            assert len(added) == 1
            assert isinstance(added[0].formatter, JSONFormatter)
            assert path.parent.is_dir()
        finally:
            for handler in added:
                root.removeHandler(handler)
                handler.close()

    def test_no_file_is_noop(self):
        root = logging.getLogger()
        before = list(root.handlers)
        configure_log_file(None)
        assert root.handlers == before

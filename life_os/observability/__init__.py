"""
Observability: structured logging, cycle IDs, metrics.

Usage:
    from life_os.observability import configure_logging, CycleContext, MetricsRegistry

    configure_logging("INFO")
    with CycleContext(cycle_number=3):
        logger.info("Step started", extra={"step": "gather-context"})
"""

from .context import CycleContext, generate_cycle_id, get_cycle_id, set_cycle_id
from .logging import HumanFormatter, JSONFormatter, configure_log_file, configure_logging, get_logger
from .metrics import REGISTRY, Counter, EngineMetrics, Gauge, Histogram, MetricsRegistry

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "configure_log_file",
    "JSONFormatter",
    "HumanFormatter",
    # Context
    "CycleContext",
    "get_cycle_id",
    "set_cycle_id",
    "generate_cycle_id",
    # Metrics
    "REGISTRY",
    "MetricsRegistry",
    "EngineMetrics",
    "Counter",
    "Gauge",
    "Histogram",
]

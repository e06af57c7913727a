"""
Life OS Daemon - composition root and process control.

Builds the engine from configuration and runs the scheduler until
SIGTERM/SIGINT, optionally serving the observer API alongside it.

Usage:
    life-os start              # Run in the foreground
    life-os start --bg         # Fork to the background (writes PID file)
    life-os start --api-port 8420
    life-os stop               # Signal the running daemon
    life-os status             # PID and heartbeat summary
    life-os run-once           # Boot, run exactly one cycle, exit
    life-os init               # Create directories and a starter engine.yaml
"""

import argparse
import asyncio
import dataclasses
import json
import logging
import os
import signal
import sys
import time
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from . import paths
from .actions import ActionDispatcher, ApprovalPolicy
from .clock import Clock, SystemClock
from .config import STARTER_CONFIG, EngineConfig, load_config
from .errors import ConfigError
from .events import EventBus
from .goals import AnthropicGoalPlanner, GoalManager
from .heartbeat import HeartbeatRecorder, heartbeat_view, read_heartbeat
from .notifier import MessagingPolicy, QuestionQueue, WebhookChannel
from .observability import REGISTRY, EngineMetrics, MetricsRegistry, configure_log_file, configure_logging
from .providers import (
    DEFAULT_PROVIDERS,
    DataProvider,
    FileSnapshotProvider,
    HttpProvider,
    Provider,
    ProviderRegistry,
    StaticProvider,
)
from .scheduler import CycleScheduler, TaskExecutor
from .state_store import StateStore

logger = logging.getLogger(__name__)


@dataclass
class Engine:
    """Every collaborator of one engine process, wired explicitly."""

    config: EngineConfig
    clock: Clock
    events: EventBus
    metrics: EngineMetrics
    store: StateStore
    heartbeat: HeartbeatRecorder
    registry: ProviderRegistry
    goals: GoalManager
    dispatcher: ActionDispatcher
    scheduler: CycleScheduler


def build_providers(config: EngineConfig) -> tuple[list[Provider], list[DataProvider]]:
    """Default declarations with config overrides applied, plus source handles."""
    declared = {p.id: p for p in DEFAULT_PROVIDERS}
    handles: list[DataProvider] = []

    for entry in config.providers:
        base = declared.get(entry.id)
        overrides = {
            k: v
            for k, v in {
                "name": entry.name,
                "category": entry.category,
                "weight": entry.weight,
                "required": entry.required,
                "fields": tuple(entry.fields) if entry.fields is not None else None,
            }.items()
            if v is not None
        }
        if base is None:
            spec = Provider(
                id=entry.id,
                name=overrides.get("name", entry.id),
                category=overrides.get("category", "other"),
                weight=overrides.get("weight", 0),
                required=overrides.get("required", False),
                fields=overrides.get("fields", ()),
            )
        else:
            spec = dataclasses.replace(base, **overrides)
        declared[entry.id] = spec

        if entry.source:
            handles.append(_handle_for(spec, entry.source))

    return list(declared.values()), handles


def _handle_for(spec: Provider, source: dict) -> DataProvider:
    kind = source.get("type")
    if kind == "file":
        return FileSnapshotProvider(spec, Path(source["path"]).expanduser())
    if kind == "http":
        return HttpProvider(spec, source["url"], headers=source.get("headers"))
    if kind == "static":
        return StaticProvider(spec, source.get("payload") or {}, source.get("connected", True))
    raise ConfigError(f"Provider {spec.id}: unknown source type {kind!r}")


def build_engine(
    config: EngineConfig | None = None,
    clock: Clock | None = None,
    registry: MetricsRegistry | None = None,
    handles: list[DataProvider] | None = None,
    task_executor: TaskExecutor | None = None,
) -> Engine:
    """Wire an engine from configuration. Nothing starts running."""
    config = config or EngineConfig()
    clock = clock or SystemClock()
    t = config.timeouts

    events = EventBus(clock)
    metrics = EngineMetrics(registry or REGISTRY)
    store = StateStore(paths.state_path())
    heartbeat = HeartbeatRecorder(paths.heartbeat_path(), clock, step_timeout=t.step_seconds)

    declared, configured_handles = build_providers(config)
    provider_registry = ProviderRegistry(
        declared,
        handles=list(configured_handles) + list(handles or []),
        fetch_timeout=t.provider_fetch_seconds,
        health_timeout=t.health_check_seconds,
        clock=clock,
    )

    planner = None
    if config.planner.enabled and config.planner.api_key:
        planner = AnthropicGoalPlanner(config.planner.api_key, model=config.planner.model)
    goals = GoalManager(
        events,
        clock,
        planner=planner,
        planner_timeout=config.planner.timeout_seconds,
        task_hold=timedelta(seconds=config.goals.task_hold_seconds),
        goal_hold=timedelta(seconds=config.goals.goal_hold_seconds),
    )

    m = config.messaging
    channel = None
    if m.webhook_url:
        policy = MessagingPolicy(
            m.quiet_hours_start, m.quiet_hours_end, m.max_messages_per_day, m.timezone, clock
        )
        channel = WebhookChannel(
            m.webhook_url,
            policy,
            phone_verified=m.phone_verified,
            dry_run=m.dry_run,
            timeout=m.send_timeout_seconds,
        )
    dispatcher = ActionDispatcher(
        events,
        QuestionQueue(),
        channel=channel,
        policy=ApprovalPolicy(),
        clock=clock,
        dedupe_window=timedelta(seconds=config.dedupe_window_seconds),
        send_timeout=m.send_timeout_seconds,
        metrics=metrics,
    )

    b = config.backoff
    digest = None
    if config.digest.enabled:
        digest = Path(config.digest.path).expanduser() if config.digest.path else paths.digest_path()
    scheduler = CycleScheduler(
        store,
        events,
        provider_registry,
        goals,
        dispatcher,
        heartbeat,
        clock=clock,
        metrics=metrics,
        task_executor=task_executor,
        interval=t.interval_seconds,
        step_timeout=t.step_seconds,
        cycle_timeout=t.cycle_seconds,
        shutdown_timeout=t.shutdown_seconds,
        backoff_base_ms=b.base_ms,
        backoff_cap_ms=b.cap_ms,
        max_consecutive_failures=b.max_consecutive_failures,
        digest_path=digest,
    )
    return Engine(
        config, clock, events, metrics, store, heartbeat, provider_registry, goals, dispatcher, scheduler
    )


# =============================================================================
# Process control
# =============================================================================


def is_running() -> tuple[bool, int | None]:
    """Check the PID file. Returns (is_running, pid)."""
    pid_file = paths.pid_path()
    if not pid_file.exists():
        return False, None
    try:
        pid = int(pid_file.read_text().strip())
        os.kill(pid, 0)
        return True, pid
    except (ProcessLookupError, ValueError):
        pid_file.unlink(missing_ok=True)
        return False, None
    except PermissionError:
        return True, pid


def _write_pid() -> None:
    pid_file = paths.pid_path()
    pid_file.write_text(str(os.getpid()))
    logger.info(f"PID {os.getpid()} written to {pid_file}")


async def serve(engine: Engine, api_port: int | None = None, api_host: str = "127.0.0.1") -> None:
    """Run the scheduler (and optionally the API) until SIGTERM/SIGINT."""
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    def _handle_signal(signum: int) -> None:
        logger.info(f"Received {signal.Signals(signum).name}, shutting down...")
        stop_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, _handle_signal, sig)

    server = None
    server_task = None
    if api_port:
        import uvicorn

        from api.server import create_app

        server = uvicorn.Server(
            uvicorn.Config(create_app(engine.scheduler), host=api_host, port=api_port, log_config=None)
        )
        # the engine owns SIGTERM/SIGINT
        server.install_signal_handlers = lambda: None
        server_task = asyncio.create_task(server.serve())
        logger.info(f"Observer API on http://{api_host}:{api_port}")

    engine.scheduler.start()
    await stop_event.wait()
    await engine.scheduler.stop()

    if server is not None:
        server.should_exit = True
        await server_task


async def run_once(engine: Engine) -> dict:
    await engine.scheduler.boot()
    result = await engine.scheduler.run_cycle()
    await engine.scheduler.stop()
    return result.to_dict()


def stop_daemon() -> bool:
    running, pid = is_running()
    if not running:
        logger.info("Daemon is not running")
        return False

    logger.info(f"Stopping daemon (PID {pid})...")
    try:
        os.kill(pid, signal.SIGTERM)
        for _ in range(20):
            time.sleep(0.5)
            if not is_running()[0]:
                logger.info("Daemon stopped")
                return True
        os.kill(pid, signal.SIGKILL)
        logger.info("Daemon force killed")
        return True
    except ProcessLookupError:
        paths.pid_path().unlink(missing_ok=True)
        logger.info("Daemon already stopped")
        return True


def daemon_status(config: EngineConfig) -> dict:
    running, pid = is_running()
    data = read_heartbeat(paths.heartbeat_path())
    return {
        "running": running,
        "pid": pid,
        "pid_file": str(paths.pid_path()),
        "state_file": str(paths.state_path()),
        "heartbeat": heartbeat_view(data, SystemClock().now(), config.timeouts.step_seconds),
    }


def init_home(force: bool = False) -> Path:
    """Create the config/data/output directories and a starter engine.yaml."""
    for d in (paths.config_dir(), paths.data_dir(), paths.out_dir()):
        logger.info(f"  {d}")
    target = paths.config_dir() / "engine.yaml"
    if target.exists() and not force:
        logger.info(f"Config already exists: {target}")
    else:
        target.write_text(STARTER_CONFIG)
        logger.info(f"Wrote starter config: {target}")
    return target


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(prog="life-os", description="Autonomous life-management engine")
    parser.add_argument(
        "action", choices=["start", "stop", "status", "run-once", "init"], help="Action to perform"
    )
    parser.add_argument("--bg", action="store_true", help="Run in background (start only)")
    parser.add_argument("--api-port", type=int, default=None, help="Serve the observer API")
    parser.add_argument("--api-host", default="127.0.0.1")
    parser.add_argument("--config", type=Path, default=None, help="Path to engine.yaml")
    parser.add_argument("--force", action="store_true", help="Overwrite config (init only)")
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        configure_logging("INFO")
        logger.error(f"Invalid configuration: {e}")
        return 2
    configure_logging(config.log_level, config.log_json)

    if args.action == "init":
        init_home(force=args.force)
        return 0

    if args.action == "stop":
        return 0 if stop_daemon() else 1

    if args.action == "status":
        print(json.dumps(daemon_status(config), indent=2, default=str))
        return 0

    if args.action == "run-once":
        engine = build_engine(config)
        result = asyncio.run(run_once(engine))
        print(json.dumps(result, indent=2, default=str))
        return 0 if result["status"] == "complete" else 1

    running, pid = is_running()
    if running:
        logger.info(f"Daemon already running (PID {pid})")
        return 1

    if args.bg:
        pid = os.fork()
        if pid > 0:
            logger.info(f"Daemon started in background (PID {pid})")
            return 0
        os.setsid()

    configure_log_file(paths.log_path())
    _write_pid()
    try:
        asyncio.run(serve(build_engine(config), api_port=args.api_port, api_host=args.api_host))
    finally:
        paths.pid_path().unlink(missing_ok=True)
        logger.info("Daemon stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())

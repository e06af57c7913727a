"""
Engine configuration.

Loaded from config_dir()/engine.yaml; a missing file yields the defaults.
Environment variables with the LIFE_OS_ prefix override the file:

    LIFE_OS_INTERVAL          scheduling interval (seconds)
    LIFE_OS_CYCLE_TIMEOUT     cycle deadline (seconds)
    LIFE_OS_STEP_TIMEOUT      step deadline (seconds)
    LIFE_OS_LOG_LEVEL         DEBUG / INFO / WARNING / ...
    LIFE_OS_WEBHOOK_URL       messaging webhook
    ANTHROPIC_API_KEY         enables the LLM goal planner
"""

import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

import yaml

from . import paths
from .errors import ConfigError

logger = logging.getLogger(__name__)

ENV_PREFIX = "LIFE_OS_"


@dataclass
class TimeoutConfig:
    step_seconds: float = 30.0
    cycle_seconds: float = 240.0
    interval_seconds: float = 300.0
    provider_fetch_seconds: float = 10.0
    health_check_seconds: float = 5.0
    shutdown_seconds: float = 10.0


@dataclass
class BackoffConfig:
    base_ms: int = 5000
    cap_ms: int = 60000
    max_consecutive_failures: int = 5


@dataclass
class MessagingConfig:
    webhook_url: str | None = None
    phone_verified: bool = False
    dry_run: bool = False
    quiet_hours_start: int = 22
    quiet_hours_end: int = 7
    max_messages_per_day: int = 10
    timezone: str | None = None
    send_timeout_seconds: float = 10.0


@dataclass
class ProviderConfig:
    """
    One provider declaration. Entries whose id matches a default provider
    override its fields; new ids are appended.

    source is one of:
        {"type": "file", "path": "..."}
        {"type": "http", "url": "...", "headers": {...}}
        {"type": "static", "payload": {...}}
    """

    id: str
    name: str | None = None
    category: str | None = None
    weight: float | None = None
    required: bool | None = None
    fields: list[str] | None = None
    source: dict | None = None


@dataclass
class PlannerConfig:
    enabled: bool = True
    api_key: str | None = None
    model: str = "claude-3-5-haiku-latest"
    timeout_seconds: float = 30.0


@dataclass
class GoalConfig:
    task_hold_seconds: float = 3600.0
    goal_hold_seconds: float = 86400.0


@dataclass
class DigestConfig:
    enabled: bool = True
    path: str | None = None


@dataclass
class EngineConfig:
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    backoff: BackoffConfig = field(default_factory=BackoffConfig)
    messaging: MessagingConfig = field(default_factory=MessagingConfig)
    providers: list[ProviderConfig] = field(default_factory=list)
    planner: PlannerConfig = field(default_factory=PlannerConfig)
    goals: GoalConfig = field(default_factory=GoalConfig)
    digest: DigestConfig = field(default_factory=DigestConfig)
    dedupe_window_seconds: float = 3600.0
    log_level: str = "INFO"
    log_json: bool | None = None

    def validate(self) -> "EngineConfig":
        t = self.timeouts
        for name, value in asdict(t).items():
            if value <= 0:
                raise ConfigError(f"timeouts.{name} must be positive, got {value}")
        if t.cycle_seconds >= t.interval_seconds:
            raise ConfigError(
                f"cycle timeout ({t.cycle_seconds}s) must be less than the interval ({t.interval_seconds}s)"
            )
        if self.backoff.base_ms <= 0 or self.backoff.cap_ms < self.backoff.base_ms:
            raise ConfigError("backoff.base_ms must be positive and not exceed backoff.cap_ms")
        if self.backoff.max_consecutive_failures < 1:
            raise ConfigError("backoff.max_consecutive_failures must be at least 1")

        m = self.messaging
        for name in ("quiet_hours_start", "quiet_hours_end"):
            hour = getattr(m, name)
            if not 0 <= hour <= 23:
                raise ConfigError(f"messaging.{name} must be in 0-23, got {hour}")
        if m.max_messages_per_day < 0:
            raise ConfigError("messaging.max_messages_per_day must be >= 0")

        seen = set()
        for p in self.providers:
            if p.id in seen:
                raise ConfigError(f"Duplicate provider id: {p.id}")
            seen.add(p.id)
            if p.weight is not None and not 0 <= p.weight <= 100:
                raise ConfigError(f"Provider {p.id} weight must be in [0, 100], got {p.weight}")

        if logging.getLevelName(self.log_level.upper()) == f"Level {self.log_level.upper()}":
            raise ConfigError(f"Unknown log level: {self.log_level}")
        return self


def _section(cls, data: Any, name: str):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"Config section '{name}' must be a mapping")
    try:
        return cls(**data)
    except TypeError as e:
        raise ConfigError(f"Invalid '{name}' section: {e}") from e


def config_from_dict(data: dict) -> EngineConfig:
    if not isinstance(data, dict):
        raise ConfigError("Config root must be a mapping")

    providers = []
    for i, entry in enumerate(data.get("providers") or []):
        if not isinstance(entry, dict) or "id" not in entry:
            raise ConfigError(f"providers[{i}] must be a mapping with an 'id'")
        providers.append(_section(ProviderConfig, entry, f"providers[{i}]"))

    known = {"timeouts", "backoff", "messaging", "providers", "planner", "goals", "digest"}
    scalars = {k: v for k, v in data.items() if k not in known}
    try:
        cfg = EngineConfig(
            timeouts=_section(TimeoutConfig, data.get("timeouts"), "timeouts"),
            backoff=_section(BackoffConfig, data.get("backoff"), "backoff"),
            messaging=_section(MessagingConfig, data.get("messaging"), "messaging"),
            providers=providers,
            planner=_section(PlannerConfig, data.get("planner"), "planner"),
            goals=_section(GoalConfig, data.get("goals"), "goals"),
            digest=_section(DigestConfig, data.get("digest"), "digest"),
            **scalars,
        )
    except TypeError as e:
        raise ConfigError(f"Unknown config key: {e}") from e
    return cfg


def _env_float(name: str) -> float | None:
    raw = os.environ.get(ENV_PREFIX + name)
    if raw is None or raw == "":
        return None
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX}{name} must be a number, got {raw!r}") from None


def apply_env_overrides(cfg: EngineConfig) -> EngineConfig:
    for env_name, attr in (
        ("INTERVAL", "interval_seconds"),
        ("CYCLE_TIMEOUT", "cycle_seconds"),
        ("STEP_TIMEOUT", "step_seconds"),
    ):
        value = _env_float(env_name)
        if value is not None:
            setattr(cfg.timeouts, attr, value)

    if os.environ.get(ENV_PREFIX + "LOG_LEVEL"):
        cfg.log_level = os.environ[ENV_PREFIX + "LOG_LEVEL"]
    if os.environ.get(ENV_PREFIX + "WEBHOOK_URL"):
        cfg.messaging.webhook_url = os.environ[ENV_PREFIX + "WEBHOOK_URL"]
    if os.environ.get("ANTHROPIC_API_KEY") and not cfg.planner.api_key:
        cfg.planner.api_key = os.environ["ANTHROPIC_API_KEY"]
    return cfg


def load_config(path: Path | None = None) -> EngineConfig:
    """Load, apply environment overrides, validate. Raises ConfigError."""
    path = Path(path) if path else paths.config_dir() / "engine.yaml"
    data: dict = {}
    if path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Could not parse {path}: {e}") from e
        logger.debug(f"Loaded config from {path}")
    else:
        logger.debug(f"No config at {path}, using defaults")

    cfg = apply_env_overrides(config_from_dict(data))
    return cfg.validate()


STARTER_CONFIG = """\
# Life engine configuration. Every key is optional.
timeouts:
  step_seconds: 30
  cycle_seconds: 240
  interval_seconds: 300
  provider_fetch_seconds: 10
  health_check_seconds: 5

backoff:
  base_ms: 5000
  cap_ms: 60000
  max_consecutive_failures: 5

messaging:
  webhook_url: null
  phone_verified: false
  dry_run: true
  quiet_hours_start: 22
  quiet_hours_end: 7
  max_messages_per_day: 10

planner:
  enabled: true
  model: claude-3-5-haiku-latest

digest:
  enabled: true

# providers:
#   - id: portfolio
#     source: {type: file, path: ~/.life_os/data/snapshots/portfolio.json}
#   - id: health
#     source: {type: http, url: http://localhost:8700/health/snapshot}

log_level: INFO
"""

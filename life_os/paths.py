from __future__ import annotations

import os
from pathlib import Path

APP_ENV_HOME = "LIFE_OS_HOME"
APP_ENV_STATE = "LIFE_OS_STATE_FILE"


def project_root() -> Path:
    """
    Repository/project root directory.
    Contains life_os/, api/, cli/, tests/.
    """
    return Path(__file__).parent.parent.resolve()


def app_home() -> Path:
    """
    User-writable home for the life engine.
    Override with LIFE_OS_HOME.
    """
    if os.environ.get(APP_ENV_HOME):
        return Path(os.environ[APP_ENV_HOME]).expanduser().resolve()
    return (Path.home() / ".life_os").resolve()


def config_dir() -> Path:
    d = app_home() / "config"
    d.mkdir(parents=True, exist_ok=True)
    return d


def data_dir() -> Path:
    d = app_home() / "data"
    d.mkdir(parents=True, exist_ok=True)
    return d


def out_dir() -> Path:
    """Output directory for generated artifacts (insights digest)."""
    d = app_home() / "output"
    d.mkdir(parents=True, exist_ok=True)
    return d


def state_path() -> Path:
    """
    Canonical engine state file.

    Resolution order:
    1. LIFE_OS_STATE_FILE env var (explicit override)
    2. ~/.life_os/data/engine_state.json (default)
    """
    if os.environ.get(APP_ENV_STATE):
        return Path(os.environ[APP_ENV_STATE]).expanduser().resolve()
    return data_dir() / "engine_state.json"


def heartbeat_path() -> Path:
    return data_dir() / "engine-heartbeat.json"


def digest_path() -> Path:
    return out_dir() / "life_insights.md"


def pid_path() -> Path:
    return data_dir() / "engine.pid"


def log_path() -> Path:
    return data_dir() / "engine.log"

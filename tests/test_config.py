"""
Tests for engine configuration: YAML loading, env overrides, validation.
"""

import pytest
import yaml

from life_os import paths
from life_os.config import (
    STARTER_CONFIG,
    EngineConfig,
    apply_env_overrides,
    config_from_dict,
    load_config,
)
from life_os.errors import ConfigError


class TestConfigFromDict:
    def test_empty_is_defaults(self):
        cfg = config_from_dict({})
        assert cfg.timeouts.interval_seconds == 300.0
        assert cfg.backoff.base_ms == 5000
        assert cfg.messaging.quiet_hours_start == 22
        assert cfg.providers == []

    def test_sections_and_scalars(self):
        cfg = config_from_dict(
            {
                "timeouts": {"step_seconds": 5, "cycle_seconds": 60, "interval_seconds": 120},
                "messaging": {"webhook_url": "https://relay", "phone_verified": True},
                "providers": [{"id": "portfolio", "source": {"type": "file", "path": "/tmp/p.json"}}],
                "log_level": "DEBUG",
            }
        )
        assert cfg.timeouts.step_seconds == 5
        assert cfg.messaging.phone_verified is True
        assert cfg.providers[0].source["type"] == "file"
        assert cfg.log_level == "DEBUG"

    def test_unknown_section_key(self):
        with pytest.raises(ConfigError, match="timeouts"):
            config_from_dict({"timeouts": {"forever": 1}})

    def test_unknown_top_level_key(self):
        with pytest.raises(ConfigError, match="Unknown config key"):
            config_from_dict({"colour": "blue"})

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigError, match="mapping"):
            config_from_dict({"backoff": [1, 2]})

    def test_provider_needs_id(self):
        with pytest.raises(ConfigError, match="providers\\[0\\]"):
            config_from_dict({"providers": [{"name": "nameless"}]})

    def test_starter_config_parses(self):
        cfg = config_from_dict(yaml.safe_load(STARTER_CONFIG)).validate()
        assert cfg.messaging.dry_run is True


class TestValidate:
    """Tests for EngineConfig.validate."""

    def test_defaults_valid(self):
        assert EngineConfig().validate() is not None

    def test_cycle_must_be_shorter_than_interval(self):
        cfg = config_from_dict({"timeouts": {"cycle_seconds": 300, "interval_seconds": 300}})
        with pytest.raises(ConfigError, match="less than the interval"):
            cfg.validate()

    def test_non_positive_timeout(self):
        with pytest.raises(ConfigError, match="step_seconds"):
            config_from_dict({"timeouts": {"step_seconds": 0}}).validate()

    def test_backoff_cap_below_base(self):
        with pytest.raises(ConfigError, match="backoff"):
            config_from_dict({"backoff": {"base_ms": 5000, "cap_ms": 1000}}).validate()

    def test_quiet_hours_range(self):
        with pytest.raises(ConfigError, match="quiet_hours_end"):
            config_from_dict({"messaging": {"quiet_hours_end": 24}}).validate()

    def test_duplicate_provider(self):
        cfg = config_from_dict({"providers": [{"id": "health"}, {"id": "health"}]})
        with pytest.raises(ConfigError, match="Duplicate"):
            cfg.validate()

    def test_provider_weight_range(self):
        cfg = config_from_dict({"providers": [{"id": "health", "weight": 150}]})
        with pytest.raises(ConfigError, match="weight"):
            cfg.validate()

    def test_unknown_log_level(self):
        with pytest.raises(ConfigError, match="log level"):
            config_from_dict({"log_level": "CHATTY"}).validate()


class TestEnvOverrides:
    def test_timeouts_from_env(self, monkeypatch):
        monkeypatch.setenv("LIFE_OS_INTERVAL", "600")
        monkeypatch.setenv("LIFE_OS_CYCLE_TIMEOUT", "120")
        monkeypatch.setenv("LIFE_OS_STEP_TIMEOUT", "15")
        cfg = apply_env_overrides(EngineConfig())
        assert cfg.timeouts.interval_seconds == 600.0
        assert cfg.timeouts.cycle_seconds == 120.0
        assert cfg.timeouts.step_seconds == 15.0

    def test_non_numeric_env(self, monkeypatch):
        monkeypatch.setenv("LIFE_OS_INTERVAL", "soon")
        with pytest.raises(ConfigError, match="LIFE_OS_INTERVAL"):
            apply_env_overrides(EngineConfig())

    def test_strings_from_env(self, monkeypatch):
        monkeypatch.setenv("LIFE_OS_LOG_LEVEL", "WARNING")
        monkeypatch.setenv("LIFE_OS_WEBHOOK_URL", "https://relay/env")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-test")
        cfg = apply_env_overrides(EngineConfig())
        assert cfg.log_level == "WARNING"
        assert cfg.messaging.webhook_url == "https://relay/env"
        assert cfg.planner.api_key == "sk-test"

    def test_file_api_key_wins(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "sk-env")
        cfg = config_from_dict({"planner": {"api_key": "sk-file"}})
        assert apply_env_overrides(cfg).planner.api_key == "sk-file"


class TestLoadConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = load_config(tmp_path / "engine.yaml")
        assert cfg.timeouts.cycle_seconds == 240.0

    def test_default_location(self):
        (paths.config_dir() / "engine.yaml").write_text("log_level: DEBUG\n")
        assert load_config().log_level == "DEBUG"

    def test_yaml_file_with_env_override(self, tmp_path, monkeypatch):
        path = tmp_path / "engine.yaml"
        path.write_text("timeouts:\n  step_seconds: 12\n  cycle_seconds: 100\n")
        monkeypatch.setenv("LIFE_OS_STEP_TIMEOUT", "7")
        cfg = load_config(path)
        assert cfg.timeouts.step_seconds == 7.0
        assert cfg.timeouts.cycle_seconds == 100

    def test_empty_file(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("")
        assert load_config(path).log_level == "INFO"

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "engine.yaml"
        path.write_text("timeouts: [unclosed\n")
        with pytest.raises(ConfigError, match="Could not parse"):
            load_config(path)

    def test_invalid_values_rejected_on_load(self, tmp_path, monkeypatch):
        monkeypatch.setenv("LIFE_OS_CYCLE_TIMEOUT", "900")
        with pytest.raises(ConfigError):
            load_config(tmp_path / "engine.yaml")

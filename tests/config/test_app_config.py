"""Tests for the configuration system."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
import yaml
from pydantic import ValidationError

from gatewarden.config.app import (
    GatewayConfig,
    PathsConfig,
    UpstreamConfig,
    WardenConfig,
    apply_overrides,
    default_config_file,
    generate_default_config,
    get_warden_home,
    load_config,
    read_config_file,
)

pytestmark = pytest.mark.unit


class TestWardenHome:
    """Tests for the agent home directory."""

    def test_env_var_wins(self, tmp_path: Path) -> None:
        """Test GATEWARDEN_HOME overrides the default."""
        with patch.dict("os.environ", {"GATEWARDEN_HOME": str(tmp_path)}):
            assert get_warden_home() == tmp_path
            assert default_config_file() == str(tmp_path / "config.yaml")

    def test_default_under_home(self, monkeypatch) -> None:
        """Test the default lives in ~/.gatewarden."""
        monkeypatch.delenv("GATEWARDEN_HOME", raising=False)
        assert get_warden_home() == Path.home() / ".gatewarden"


class TestPathsConfig:
    """Tests for PathsConfig."""

    def test_default_values(self) -> None:
        paths = PathsConfig()
        assert paths.openclaw_home == "~/.openclaw"
        assert paths.watchdog_dir == "~/.openclaw/watchdog"
        assert paths.config_file == "~/.openclaw/openclaw.json"
        assert paths.memory_dir == "~/.openclaw/workspace/memory"
        assert paths.backup_volume == "/Volumes/MacMini+"

    def test_resolve_expands_user(self) -> None:
        """Test resolve() expands ~."""
        resolved = PathsConfig().resolve("watchdog_dir")
        assert resolved == Path.home() / ".openclaw" / "watchdog"


class TestGatewayConfig:
    """Tests for GatewayConfig."""

    def test_default_values(self) -> None:
        gateway = GatewayConfig()
        assert gateway.url == "http://127.0.0.1:18789"
        assert gateway.process_pattern == "openclaw-gateway"
        assert gateway.supervisor_label == "ai.openclaw.gateway"
        assert gateway.graceful_signal == "SIGUSR1"

    def test_url_trailing_slash_stripped(self) -> None:
        assert GatewayConfig(url="http://localhost:9000/").url == "http://localhost:9000"

    def test_url_scheme_required(self) -> None:
        with pytest.raises(ValidationError, match="http"):
            GatewayConfig(url="localhost:9000")

    @pytest.mark.parametrize(("given", "expected"), [("hup", "SIGHUP"), ("SIGTERM", "SIGTERM"), ("usr2", "SIGUSR2")])
    def test_signal_name_normalised(self, given: str, expected: str) -> None:
        assert GatewayConfig(graceful_signal=given).graceful_signal == expected


class TestUpstreamConfig:
    def test_timeout_bounds(self) -> None:
        with pytest.raises(ValidationError):
            UpstreamConfig(timeout=0.1)


class TestWardenConfig:
    """Tests for the root model."""

    def test_sub_config_access(self) -> None:
        config = WardenConfig()
        assert config.watchdog.check_interval == 60.0
        assert config.thresholds.memory_critical_mb == 800
        assert config.snapshots.retention == 10
        assert config.alerts.remote.channel == "slack"
        assert config.logging.level == "info"

    def test_nested_dict_input(self) -> None:
        config = WardenConfig(**{"watchdog": {"check_interval": 30}, "snapshots": {"retention": 3}})
        assert config.watchdog.check_interval == 30.0
        assert config.snapshots.retention == 3


class TestReadConfigFile:
    """Tests for read_config_file."""

    def test_reads_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("watchdog:\n  check_interval: 30\n")
        assert read_config_file(str(path)) == {"watchdog": {"check_interval": 30}}

    def test_reads_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"gateway": {"url": "http://localhost:1"}}))
        assert read_config_file(str(path)) == {"gateway": {"url": "http://localhost:1"}}

    def test_load_nonexistent_file(self, tmp_path: Path) -> None:
        assert read_config_file(str(tmp_path / "missing.yaml")) == {}

    def test_load_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")
        assert read_config_file(str(path)) == {}

    def test_invalid_extension(self, tmp_path: Path) -> None:
        path = tmp_path / "config.txt"
        path.write_text("a: 1")
        with pytest.raises(ValueError, match="extension"):
            read_config_file(str(path))

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("watchdog: [unclosed")
        with pytest.raises(ValueError, match="Invalid YAML"):
            read_config_file(str(path))

    def test_invalid_json(self, tmp_path: Path) -> None:
        path = tmp_path / "config.json"
        path.write_text("{nope")
        with pytest.raises(ValueError, match="Invalid JSON"):
            read_config_file(str(path))

    def test_top_level_must_be_mapping(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError, match="mapping"):
            read_config_file(str(path))


class TestApplyOverrides:
    """Tests for dotted-key overrides."""

    def test_simple_override(self) -> None:
        assert apply_overrides({"a": 1}, {"a": 2}) == {"a": 2}

    def test_nested_override(self) -> None:
        result = apply_overrides({"logging": {"level": "info"}}, {"logging.level": "debug"})
        assert result == {"logging": {"level": "debug"}}

    def test_creates_nested_path(self) -> None:
        result = apply_overrides({}, {"watchdog.check_interval": 5})
        assert result == {"watchdog": {"check_interval": 5}}

    def test_none_overrides(self) -> None:
        assert apply_overrides({"a": 1}, None) == {"a": 1}

    def test_keeps_sibling_keys(self) -> None:
        data = {"watchdog": {"check_interval": 30, "alert_cooldown": 60}}
        apply_overrides(data, {"watchdog.check_interval": 5})
        assert data == {"watchdog": {"check_interval": 5, "alert_cooldown": 60}}


class TestLoadConfig:
    """Tests for load_config precedence and errors."""

    def test_load_default_config(self, tmp_path: Path) -> None:
        config = load_config(str(tmp_path / "missing.yaml"))
        assert config == WardenConfig()

    def test_load_with_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"thresholds": {"disk_warning_percent": 70}}))
        config = load_config(str(path))
        assert config.thresholds.disk_warning_percent == 70.0

    def test_cli_overrides_beat_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"watchdog": {"check_interval": 30}}))
        config = load_config(str(path), cli_overrides={"watchdog.check_interval": 15})
        assert config.watchdog.check_interval == 15.0

    def test_validation_error_wrapped(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump({"watchdog": {"check_interval": 0}}))
        with pytest.raises(ValueError, match="Configuration validation failed"):
            load_config(str(path))

    def test_create_default_config(self, tmp_path: Path) -> None:
        path = tmp_path / "nested" / "config.yaml"
        config = load_config(str(path), create_default=True)
        assert path.exists()
        assert config == WardenConfig()


class TestGenerateDefaultConfig:
    def test_round_trips_and_is_owner_only(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        generate_default_config(str(path))
        assert path.stat().st_mode & 0o777 == 0o600
        data = yaml.safe_load(path.read_text())
        assert data["gateway"]["url"] == "http://127.0.0.1:18789"
        assert "webhook_url" not in data["alerts"]["remote"]
        assert WardenConfig(**data) == WardenConfig()

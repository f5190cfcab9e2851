"""Tests for config/watchdog.py and config/alerts.py."""

import pytest
from pydantic import ValidationError

from gatewarden.config.alerts import AlertsConfig, RemoteChannelConfig
from gatewarden.config.watchdog import ThresholdsConfig, WatchdogConfig

pytestmark = pytest.mark.unit


class TestWatchdogConfig:
    """Test WatchdogConfig defaults and bounds."""

    def test_default_values(self) -> None:
        config = WatchdogConfig()
        assert config.check_interval == 60.0
        assert config.alert_cooldown == 1800.0
        assert config.max_restart_attempts == 3
        assert config.graceful_settle_seconds == 5.0
        assert config.hard_settle_seconds == 10.0
        assert config.heartbeat_every == 10
        assert config.job_check_every == 10

    def test_check_interval_lower_bound(self) -> None:
        with pytest.raises(ValidationError):
            WatchdogConfig(check_interval=0)

    def test_max_restart_attempts_bounds(self) -> None:
        with pytest.raises(ValidationError):
            WatchdogConfig(max_restart_attempts=0)
        with pytest.raises(ValidationError):
            WatchdogConfig(max_restart_attempts=11)


class TestThresholdsConfig:
    """Test ThresholdsConfig defaults and ordering."""

    def test_default_values(self) -> None:
        thresholds = ThresholdsConfig()
        assert thresholds.memory_warning_mb == 500
        assert thresholds.memory_critical_mb == 800
        assert thresholds.memory_leak_mb == 50
        assert thresholds.memory_window == 10
        assert thresholds.disk_warning_percent == 80.0
        assert thresholds.disk_critical_percent == 90.0
        assert thresholds.latency_warning_ms == 5000.0
        assert thresholds.latency_critical_ms == 10000.0
        assert thresholds.error_threshold == 10
        assert thresholds.error_tail_lines == 100
        assert thresholds.error_log_max_age == 300.0

    @pytest.mark.parametrize(
        "values",
        [
            {"memory_warning_mb": 900},
            {"disk_warning_percent": 95},
            {"latency_warning_ms": 20000},
        ],
    )
    def test_warning_above_critical_rejected(self, values: dict) -> None:
        with pytest.raises(ValidationError, match="must not exceed"):
            ThresholdsConfig(**values)

    def test_equal_thresholds_allowed(self) -> None:
        ThresholdsConfig(disk_warning_percent=90, disk_critical_percent=90)

    def test_disk_percent_bounds(self) -> None:
        with pytest.raises(ValidationError):
            ThresholdsConfig(disk_critical_percent=101)


class TestRemoteChannelConfig:
    """Test remote alert channel validation."""

    def test_default_command(self) -> None:
        config = RemoteChannelConfig()
        assert config.kind == "command"
        assert config.command == ["openclaw", "message", "send"]
        assert config.recipient == "robbie"

    def test_webhook_requires_url(self) -> None:
        with pytest.raises(ValidationError, match="webhook_url"):
            RemoteChannelConfig(kind="webhook")

    def test_disabled_webhook_without_url_allowed(self) -> None:
        RemoteChannelConfig(enabled=False, kind="webhook")

    def test_empty_command_rejected(self) -> None:
        with pytest.raises(ValidationError, match="command"):
            RemoteChannelConfig(command=[])

    def test_unknown_kind_rejected(self) -> None:
        with pytest.raises(ValidationError):
            RemoteChannelConfig(kind="pager")


class TestAlertsConfig:
    def test_defaults(self) -> None:
        config = AlertsConfig()
        assert config.desktop_enabled is True
        assert config.remote.enabled is True

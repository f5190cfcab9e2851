"""Pytest configuration and shared fixtures for gatewarden tests."""

from __future__ import annotations

import json
from collections.abc import Iterator
from pathlib import Path
from unittest.mock import patch

import pytest

from gatewarden.alerts import AlertDispatcher
from gatewarden.config.alerts import AlertsConfig, RemoteChannelConfig
from gatewarden.config.app import PathsConfig, WardenConfig
from gatewarden.journal import Journal
from gatewarden.scheduler import ManualScheduler
from gatewarden.snapshots import SnapshotManager
from tests.fakes import SESSIONS_URL, FakeFacade, FakeHttp, RecordingSink


@pytest.fixture
def facade() -> FakeFacade:
    return FakeFacade()


@pytest.fixture
def http() -> Iterator[FakeHttp]:
    fake = FakeHttp()
    with patch("gatewarden.probes.httpx.get", new=fake):
        yield fake


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def config(tmp_path: Path) -> WardenConfig:
    home = tmp_path / "openclaw"
    return WardenConfig(
        paths=PathsConfig(
            openclaw_home=str(home),
            watchdog_dir=str(home / "watchdog"),
            config_file=str(home / "openclaw.json"),
            memory_dir=str(home / "workspace" / "memory"),
            backup_volume=str(tmp_path / "backup"),
            error_log=str(tmp_path / "gateway-stderr.log"),
        ),
        alerts=AlertsConfig(desktop_enabled=False, remote=RemoteChannelConfig(enabled=False)),
    )


@pytest.fixture
def gateway_config(config: WardenConfig) -> Path:
    """A valid gateway config file."""
    path = config.paths.resolve("config_file")
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({"gateway": {"port": 18789}}))
    return path


@pytest.fixture
def journal(config: WardenConfig) -> Journal:
    return Journal(config.paths.resolve("memory_dir"))


@pytest.fixture
def dispatcher(
    config: WardenConfig, journal: Journal, sink: RecordingSink, scheduler: ManualScheduler
) -> AlertDispatcher:
    return AlertDispatcher(
        cooldown=config.watchdog.alert_cooldown,
        journal=journal,
        sinks=[sink],
        clock=scheduler.clock,
    )


@pytest.fixture
def snapshots(
    config: WardenConfig, dispatcher: AlertDispatcher, journal: Journal, facade: FakeFacade
) -> SnapshotManager:
    paths = config.paths
    return SnapshotManager(
        snapshot_dir=paths.resolve("watchdog_dir") / "snapshots",
        memory_dir=paths.resolve("memory_dir"),
        sessions_url=SESSIONS_URL,
        dispatcher=dispatcher,
        journal=journal,
        facade=facade,
        config_file=paths.resolve("config_file"),
        backup_volume=paths.resolve("backup_volume"),
        openclaw_home=paths.resolve("openclaw_home"),
    )

"""Configuration models and loaders for gatewarden."""

from gatewarden.config.alerts import AlertsConfig, RemoteChannelConfig
from gatewarden.config.app import (
    GatewayConfig,
    PathsConfig,
    SnapshotConfig,
    UpstreamConfig,
    WardenConfig,
    get_warden_home,
    load_config,
)
from gatewarden.config.logging import LoggingSettings
from gatewarden.config.watchdog import ThresholdsConfig, WatchdogConfig

__all__ = [
    "AlertsConfig",
    "GatewayConfig",
    "LoggingSettings",
    "PathsConfig",
    "RemoteChannelConfig",
    "SnapshotConfig",
    "ThresholdsConfig",
    "UpstreamConfig",
    "WardenConfig",
    "WatchdogConfig",
    "get_warden_home",
    "load_config",
]

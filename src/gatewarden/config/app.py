"""
Agent configuration: pydantic models plus the YAML/JSON file loader.

Settings resolve as CLI overrides, then the config file, then model defaults.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from gatewarden.config.alerts import AlertsConfig
from gatewarden.config.logging import LoggingSettings
from gatewarden.config.watchdog import ThresholdsConfig, WatchdogConfig
from gatewarden.utils.files import secure_write


def get_warden_home() -> Path:
    """Get gatewarden home directory, respecting GATEWARDEN_HOME env var."""
    warden_home = os.environ.get("GATEWARDEN_HOME")
    if warden_home:
        return Path(warden_home)
    return Path.home() / ".gatewarden"


def default_config_file() -> str:
    return str(get_warden_home() / "config.yaml")


class PathsConfig(BaseModel):
    """Filesystem locations the agent reads and writes."""

    openclaw_home: str = Field(
        default="~/.openclaw",
        description="Gateway home directory, copied whole by the emergency backup",
    )
    watchdog_dir: str = Field(
        default="~/.openclaw/watchdog",
        description="Directory for state, metrics and snapshots (owner-only)",
    )
    config_file: str = Field(
        default="~/.openclaw/openclaw.json",
        description="Gateway configuration file watched for validity and changes",
    )
    memory_dir: str = Field(
        default="~/.openclaw/workspace/memory",
        description="Gateway memory workspace; daily journals are written here",
    )
    backup_volume: str = Field(
        default="/Volumes/MacMini+",
        description="Mount point of the backup volume",
    )
    error_log: str = Field(
        default="/tmp/openclaw/openclaw-stderr.log",  # nosec B108 - gateway's own log location
        description="Gateway error log scanned for error density",
    )

    def resolve(self, name: str) -> Path:
        """Return the named path with ~ expanded."""
        return Path(getattr(self, name)).expanduser()


class GatewayConfig(BaseModel):
    """The supervised gateway service."""

    process_pattern: str = Field(
        default="openclaw-gateway",
        description="Substring matched against process command lines",
    )
    url: str = Field(
        default="http://127.0.0.1:18789",
        description="Gateway base URL; liveness is HTTP 200 on the root",
    )
    sessions_path: str = Field(default="/api/sessions")
    jobs_path: str = Field(default="/api/cron/status")
    supervisor_label: str = Field(
        default="ai.openclaw.gateway",
        description="Service label handed to the OS process supervisor",
    )
    graceful_signal: str = Field(
        default="SIGUSR1",
        description="Signal that asks the gateway to restart itself cleanly",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("url must start with http:// or https://")
        return v.rstrip("/")

    @field_validator("graceful_signal")
    @classmethod
    def validate_signal(cls, v: str) -> str:
        v = v.upper()
        if not v.startswith("SIG"):
            v = f"SIG{v}"
        return v


class UpstreamConfig(BaseModel):
    """External API used as a network/DNS reachability probe."""

    url: str = Field(default="https://api.anthropic.com")
    timeout: float = Field(default=10.0, ge=0.5, le=60.0)


class SnapshotConfig(BaseModel):
    """Pre-restart snapshot settings."""

    retention: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Snapshots of each kind kept after a capture",
    )


class WardenConfig(BaseModel):
    """Root of the agent configuration; one section per concern."""

    paths: PathsConfig = Field(default_factory=PathsConfig)
    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    upstream: UpstreamConfig = Field(default_factory=UpstreamConfig)
    watchdog: WatchdogConfig = Field(default_factory=WatchdogConfig)
    thresholds: ThresholdsConfig = Field(default_factory=ThresholdsConfig)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    snapshots: SnapshotConfig = Field(default_factory=SnapshotConfig)


def _parse_yaml(text: str) -> Any:
    try:
        return yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in config file: {e}") from e


def _parse_json(text: str) -> Any:
    if not text.strip():
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in config file: {e}") from e


_PARSERS = {".yaml": _parse_yaml, ".yml": _parse_yaml, ".json": _parse_json}


def read_config_file(config_file: str) -> dict[str, Any]:
    """
    Read a YAML or JSON config file into a plain dict.

    A missing or empty file reads as ``{}``.

    Raises:
        ValueError: Unsupported extension, unparsable content, or a
            top level that is not a mapping
    """
    path = Path(config_file).expanduser()
    if not path.exists():
        return {}

    parser = _PARSERS.get(path.suffix.lower())
    if parser is None:
        supported = ", ".join(sorted(_PARSERS))
        raise ValueError(f"Unsupported config extension {path.suffix!r} for {path} (expected one of {supported})")

    data = parser(path.read_text())
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping at the top level")
    return data


def apply_overrides(data: dict[str, Any], overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Merge overrides into data in place; dotted keys address nested sections."""
    for dotted, value in (overrides or {}).items():
        *sections, leaf = dotted.split(".")
        target = data
        for section in sections:
            target = target.setdefault(section, {})
        target[leaf] = value
    return data


def generate_default_config(config_file: str) -> Path:
    """Write every default setting as YAML, owner read/write only."""
    path = Path(config_file).expanduser()
    defaults = WardenConfig().model_dump(mode="python", exclude_none=True)
    secure_write(path, yaml.safe_dump(defaults, default_flow_style=False, sort_keys=False), 0o600)
    return path


def load_config(
    config_file: str | None = None,
    cli_overrides: dict[str, Any] | None = None,
    create_default: bool = False,
) -> WardenConfig:
    """
    Build the agent configuration.

    Values from ``cli_overrides`` beat the file, which beats the model
    defaults. With ``create_default`` a missing file is first written out
    with defaults.

    Raises:
        ValueError: The file cannot be read or the merged values fail validation
    """
    config_file = config_file or default_config_file()
    if create_default and not Path(config_file).expanduser().exists():
        generate_default_config(config_file)

    data = apply_overrides(read_config_file(config_file), cli_overrides)
    try:
        return WardenConfig.model_validate(data)
    except ValidationError as e:
        raise ValueError(f"Configuration validation failed for {config_file}:\n{e}") from e

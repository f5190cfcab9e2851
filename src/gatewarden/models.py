"""
Records shared between the probe battery, the recovery controller and the
files published for external readers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Severity(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass(frozen=True)
class HealthSnapshot:
    """Point-in-time result of one probe battery run."""

    process_running: bool = False
    http_healthy: bool = False
    pid: int | None = None
    latency_ms: float = 0.0
    memory_mb: int = 0
    cpu_percent: float = 0.0
    disk_percent: float = 0.0
    backup_mounted: bool = False
    api_reachable: bool = False
    error_count: int = 0
    taken_at: float = 0.0


@dataclass
class RestartState:
    """Restart attempts since the last confirmed recovery."""

    attempts: int = 0
    last_check: float = 0.0


@dataclass(frozen=True)
class SnapshotRecord:
    """Artifacts written by one pre-restart capture."""

    created_at: datetime
    sessions_file: Path | None = None
    memory_dir: Path | None = None


@dataclass(frozen=True)
class LeakSignal:
    """Sustained memory growth across a full sample window."""

    growth_mb: int
    oldest_mb: int
    latest_mb: int
    window: int


@dataclass
class RuntimeContext:
    """
    All mutable runtime state of the agent.

    Owned by the monitor loop and handed to each component at construction,
    so nothing lives in module globals.
    """

    restart: RestartState = field(default_factory=RestartState)
    alert_times: dict[str, float] = field(default_factory=dict)
    memory_history: list[int] = field(default_factory=list)
    config_hash: str | None = None
    cycle: int = 0


# ---------------------------------------------------------------------------
# Published file schemas
# ---------------------------------------------------------------------------


class GatewayMetrics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    pid: int | None = None
    memory_mb: int = 0
    cpu_percent: float = 0.0


class SystemMetrics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    disk_percent: float = 0.0
    backup_drive_mounted: bool = False


class HealthMetrics(BaseModel):
    model_config = ConfigDict(extra="forbid")

    gateway_running: bool = False
    gateway_healthy: bool = False
    api_reachable: bool = False


class MetricsRecord(BaseModel):
    """World-readable metrics file polled by the status display."""

    model_config = ConfigDict(extra="forbid")

    timestamp: int
    datetime: str
    gateway: GatewayMetrics = Field(default_factory=GatewayMetrics)
    system: SystemMetrics = Field(default_factory=SystemMetrics)
    health: HealthMetrics = Field(default_factory=HealthMetrics)

    @classmethod
    def from_snapshot(cls, snapshot: HealthSnapshot) -> MetricsRecord:
        taken = datetime.fromtimestamp(snapshot.taken_at)
        return cls(
            timestamp=int(snapshot.taken_at),
            datetime=taken.strftime("%Y-%m-%d %H:%M:%S"),
            gateway=GatewayMetrics(
                pid=snapshot.pid,
                memory_mb=snapshot.memory_mb,
                cpu_percent=snapshot.cpu_percent,
            ),
            system=SystemMetrics(
                disk_percent=snapshot.disk_percent,
                backup_drive_mounted=snapshot.backup_mounted,
            ),
            health=HealthMetrics(
                gateway_running=snapshot.process_running,
                gateway_healthy=snapshot.http_healthy,
                api_reachable=snapshot.api_reachable,
            ),
        )


class PersistedState(BaseModel):
    """Owner-only state file read once at startup."""

    restart_attempts: int = Field(default=0, ge=0)
    last_check: int = 0
    last_memory_mb: int = 0
    memory_history: list[int] = Field(default_factory=list)
    config_hash: str = ""

"""
Watchdog configuration module.

Contains the timing, escalation and threshold settings that drive the
monitor loop and the recovery state machine.
"""

from pydantic import BaseModel, Field, model_validator

__all__ = ["ThresholdsConfig", "WatchdogConfig"]


class WatchdogConfig(BaseModel):
    """Timing and escalation settings for the monitor loop."""

    check_interval: float = Field(
        default=60.0,
        ge=1.0,
        le=3600.0,
        description="Seconds between check cycles",
    )
    alert_cooldown: float = Field(
        default=1800.0,
        ge=0.0,
        description="Minimum seconds between two dispatched alerts of the same type",
    )
    max_restart_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Failed hard restarts before escalating to manual intervention",
    )
    graceful_settle_seconds: float = Field(
        default=5.0,
        ge=0.0,
        le=120.0,
        description="Wait after the graceful restart signal before re-probing",
    )
    hard_settle_seconds: float = Field(
        default=10.0,
        ge=0.0,
        le=300.0,
        description="Wait after a supervisor restart before re-probing",
    )
    heartbeat_every: int = Field(
        default=10,
        ge=1,
        description="Emit a heartbeat log line every N cycles",
    )
    job_check_every: int = Field(
        default=10,
        ge=1,
        description="Query scheduled job outcomes every N cycles",
    )
    http_timeout: float = Field(
        default=10.0,
        ge=0.5,
        le=60.0,
        description="Timeout in seconds for the gateway liveness request",
    )
    api_timeout: float = Field(
        default=5.0,
        ge=0.5,
        le=60.0,
        description="Timeout in seconds for gateway API calls (sessions, jobs)",
    )
    command_timeout: float = Field(
        default=10.0,
        ge=1.0,
        le=120.0,
        description="Timeout in seconds for supervisor and notification commands",
    )
    copy_timeout: float = Field(
        default=120.0,
        ge=1.0,
        le=3600.0,
        description="Timeout in seconds for snapshot and emergency backup tree copies",
    )


class ThresholdsConfig(BaseModel):
    """Warning and critical thresholds for the probe battery."""

    memory_warning_mb: int = Field(default=500, ge=1)
    memory_critical_mb: int = Field(default=800, ge=1)
    memory_leak_mb: int = Field(
        default=50,
        ge=1,
        description="Growth across the full memory window that counts as a leak",
    )
    memory_window: int = Field(
        default=10,
        ge=2,
        le=1000,
        description="Number of memory samples retained for leak detection",
    )
    disk_warning_percent: float = Field(default=80.0, ge=0.0, le=100.0)
    disk_critical_percent: float = Field(default=90.0, ge=0.0, le=100.0)
    latency_warning_ms: float = Field(default=5000.0, ge=0.0)
    latency_critical_ms: float = Field(default=10000.0, ge=0.0)
    error_threshold: int = Field(
        default=10,
        ge=0,
        description="Error lines in the log tail above which a warning fires",
    )
    error_tail_lines: int = Field(default=100, ge=1)
    error_log_max_age: float = Field(
        default=300.0,
        ge=1.0,
        description="Error log older than this (seconds since modification) is ignored",
    )

    @model_validator(mode="after")
    def validate_ordering(self) -> "ThresholdsConfig":
        """Warning thresholds must not exceed their critical counterparts."""
        if self.memory_warning_mb > self.memory_critical_mb:
            raise ValueError("memory_warning_mb must not exceed memory_critical_mb")
        if self.disk_warning_percent > self.disk_critical_percent:
            raise ValueError("disk_warning_percent must not exceed disk_critical_percent")
        if self.latency_warning_ms > self.latency_critical_ms:
            raise ValueError("latency_warning_ms must not exceed latency_critical_ms")
        return self

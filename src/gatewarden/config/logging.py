"""Settings for the watchdog's own log file."""

from typing import Literal

from pydantic import BaseModel, Field, ValidationInfo, field_validator

__all__ = ["LoggingSettings"]


class LoggingSettings(BaseModel):
    """Level, location and rotation of the watchdog log."""

    level: Literal["debug", "info", "warning", "error"] = Field(
        default="info",
        description="Minimum level written when --verbose is not given",
    )
    file: str = Field(
        default="~/.openclaw/watchdog/watchdog.log",
        description="Watchdog log file path",
    )
    max_size_mb: int = Field(
        default=10,
        description="Size in MB at which the log is rolled over",
    )
    backup_count: int = Field(
        default=5,
        description="Rolled-over log files kept next to the active one",
    )

    @field_validator("max_size_mb", "backup_count")
    @classmethod
    def require_positive(cls, v: int, info: ValidationInfo) -> int:
        if v < 1:
            raise ValueError(f"{info.field_name} must be positive")
        return v

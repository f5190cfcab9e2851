"""
Alert configuration module.

Settings for the local desktop sink and the optional remote channel.
"""

from typing import Literal

from pydantic import BaseModel, Field, model_validator

__all__ = ["AlertsConfig", "RemoteChannelConfig"]


class RemoteChannelConfig(BaseModel):
    """Remote notification channel (message-send CLI or webhook)."""

    enabled: bool = Field(
        default=True,
        description="Fan out fired alerts to the remote channel",
    )
    kind: Literal["command", "webhook"] = Field(
        default="command",
        description="Dispatch through a message-send command or an HTTP webhook",
    )
    command: list[str] = Field(
        default_factory=lambda: ["openclaw", "message", "send"],
        description="Message-send command prefix",
    )
    channel: str = Field(default="slack", description="Channel passed to the command")
    recipient: str = Field(default="robbie", description="Recipient passed to the command")
    webhook_url: str | None = Field(
        default=None,
        description="Webhook URL used when kind is 'webhook'",
    )
    timeout: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Timeout in seconds for a single remote dispatch",
    )
    max_workers: int = Field(
        default=2,
        ge=1,
        le=8,
        description="Bound on concurrently running remote dispatches",
    )

    @model_validator(mode="after")
    def validate_target(self) -> "RemoteChannelConfig":
        if self.enabled and self.kind == "webhook" and not self.webhook_url:
            raise ValueError("webhook_url is required when kind is 'webhook'")
        if self.enabled and self.kind == "command" and not self.command:
            raise ValueError("command must not be empty when kind is 'command'")
        return self


class AlertsConfig(BaseModel):
    """Alert dispatch configuration."""

    desktop_enabled: bool = Field(
        default=True,
        description="Show a local desktop notification for every fired alert",
    )
    remote: RemoteChannelConfig = Field(
        default_factory=RemoteChannelConfig,
        description="Remote channel configuration",
    )

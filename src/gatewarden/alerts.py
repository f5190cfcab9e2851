"""
Rate-limited alert dispatch.

Every alert type fires at most once per cooldown window. A fired alert is
logged at ALERT level, appended to the daily journal and handed to each
sink. Remote sinks run detached on a small thread pool so a slow channel
never stretches the check interval.
"""

from __future__ import annotations

import concurrent.futures
import logging
import subprocess  # nosec B404 - message-send CLI
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from typing import Protocol

import httpx

from gatewarden.config.alerts import RemoteChannelConfig
from gatewarden.journal import Journal
from gatewarden.models import Severity
from gatewarden.os_facade import OSFacade
from gatewarden.utils.files import sanitize
from gatewarden.utils.logs import ALERT

logger = logging.getLogger(__name__)

SEVERITY_EMOJI = {
    Severity.CRITICAL: "🚨",
    Severity.INFO: "ℹ️",
    Severity.SUCCESS: "✅",
    Severity.WARNING: "⚠️",
}


class AlertSink(Protocol):
    def send(self, alert_type: str, message: str, severity: Severity) -> None: ...


class DesktopSink:
    """Local desktop notification with a severity-dependent sound."""

    def __init__(self, facade: OSFacade):
        self.facade = facade

    def send(self, alert_type: str, message: str, severity: Severity) -> None:
        sound = "Sosumi" if severity == Severity.CRITICAL else "Basso"
        self.facade.notify_desktop(f"Watchdog [{severity.value}]", message, sound)


class RemoteSink(ABC):
    """
    Base for fire-and-forget remote channels.

    ``send`` only queues the delivery; failures are logged at DEBUG and
    never reach the caller.
    """

    def __init__(self, config: RemoteChannelConfig, executor: concurrent.futures.Executor | None = None):
        self.config = config
        self._executor = executor or concurrent.futures.ThreadPoolExecutor(
            max_workers=config.max_workers,
            thread_name_prefix="gatewarden-alert",
        )

    @staticmethod
    def format(message: str, severity: Severity) -> str:
        return f"{SEVERITY_EMOJI[severity]} *Watchdog [{severity.value}]*: {message}"

    def send(self, alert_type: str, message: str, severity: Severity) -> None:
        text = self.format(message, severity)
        try:
            future = self._executor.submit(self._deliver, text)
        except RuntimeError as e:
            logger.debug(f"Remote alert not queued ({alert_type}): {e}")
            return
        future.add_done_callback(lambda f: self._log_failure(alert_type, f))

    @staticmethod
    def _log_failure(alert_type: str, future: concurrent.futures.Future[None]) -> None:
        exc = future.exception()
        if exc is not None:
            logger.debug(f"Remote alert delivery failed ({alert_type}): {exc}")

    @abstractmethod
    def _deliver(self, text: str) -> None:
        """Send the formatted text; raise on failure."""

    def close(self) -> None:
        self._executor.shutdown(wait=False)


class CommandSink(RemoteSink):
    """Delivers through the gateway's message-send CLI."""

    def build_command(self, text: str) -> list[str]:
        return [
            *self.config.command,
            "--channel",
            self.config.channel,
            "--to",
            self.config.recipient,
            "--message",
            text,
            "--best-effort",
        ]

    def _deliver(self, text: str) -> None:
        subprocess.run(  # nosec B603 - argv list, no shell
            self.build_command(text),
            stdin=subprocess.DEVNULL,
            capture_output=True,
            timeout=self.config.timeout,
            check=True,
        )


class WebhookSink(RemoteSink):
    """Delivers as a JSON POST to an incoming-webhook URL."""

    def _deliver(self, text: str) -> None:
        if not self.config.webhook_url:
            raise ValueError("webhook_url is not configured")
        response = httpx.post(self.config.webhook_url, json={"text": text}, timeout=self.config.timeout)
        response.raise_for_status()


def build_remote_sink(config: RemoteChannelConfig) -> RemoteSink | None:
    if not config.enabled:
        return None
    if config.kind == "webhook":
        return WebhookSink(config)
    return CommandSink(config)


class AlertDispatcher:
    """Deduplicates alerts per type and fans fired ones out to the sinks."""

    def __init__(
        self,
        cooldown: float,
        journal: Journal,
        sinks: Sequence[AlertSink] = (),
        last_fired: dict[str, float] | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cooldown = cooldown
        self.journal = journal
        self.sinks = list(sinks)
        self.last_fired = last_fired if last_fired is not None else {}
        self._clock = clock

    def notify(self, alert_type: str, message: str, severity: Severity | str = Severity.WARNING) -> bool:
        """
        Fire an alert unless one of the same type fired within the cooldown.

        Returns:
            True if the alert was dispatched, False if it was suppressed
        """
        severity = Severity(severity)
        alert_type = sanitize(alert_type)
        message = sanitize(message)
        now = self._clock()

        last = self.last_fired.get(alert_type)
        if last is not None and now - last < self.cooldown:
            logger.debug(f"Alert {alert_type} suppressed ({now - last:.0f}s since last)")
            return False

        self.last_fired[alert_type] = now

        logger.log(ALERT, f"ALERT [{severity.value}] {alert_type}: {message}")
        try:
            self.journal.append(f"🚨 {severity.value.upper()}: {message}")
        except Exception as e:
            logger.warning(f"Could not journal alert {alert_type}: {e}")

        for sink in self.sinks:
            try:
                sink.send(alert_type, message, severity)
            except Exception as e:
                logger.debug(f"Alert sink {type(sink).__name__} failed: {e}")

        return True

    def close(self) -> None:
        for sink in self.sinks:
            close = getattr(sink, "close", None)
            if close is not None:
                close()

"""
Health probe battery.

Each check is independent: a check that cannot complete yields a negative
or zero result for its own field and never stops the others. Alerts that
belong to a single measurement (latency, disk, backup volume, config,
scheduled jobs, error density) fire from inside that check.
"""

from __future__ import annotations

import hashlib
import json
import logging
import re
import time
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, TypeVar

import httpx

from gatewarden.alerts import AlertDispatcher
from gatewarden.config.app import WardenConfig
from gatewarden.journal import Journal
from gatewarden.models import HealthSnapshot, RuntimeContext, Severity
from gatewarden.os_facade import OSFacade, ProcessStats
from gatewarden.snapshots import SnapshotManager
from gatewarden.utils.files import secure_write

logger = logging.getLogger(__name__)

T = TypeVar("T")

ERROR_LINE_RE = re.compile(r"error|exception|fatal", re.IGNORECASE)


class ConfigStatus(str, Enum):
    OK = "ok"
    MISSING = "missing"
    INVALID = "invalid"


@dataclass(frozen=True)
class HttpResult:
    healthy: bool
    latency_ms: float
    status_code: int | None = None


def hash_file(path: Path) -> str | None:
    try:
        return hashlib.sha256(path.read_bytes()).hexdigest()
    except OSError:
        return None


class HealthProbe:
    """Runs the gateway, system and config checks."""

    def __init__(
        self,
        config: WardenConfig,
        facade: OSFacade,
        dispatcher: AlertDispatcher,
        snapshots: SnapshotManager,
        journal: Journal,
        ctx: RuntimeContext,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.facade = facade
        self.dispatcher = dispatcher
        self.snapshots = snapshots
        self.journal = journal
        self.ctx = ctx
        self._clock = clock
        self._monotonic = monotonic

        self.config_file = config.paths.resolve("config_file")
        self.error_log = config.paths.resolve("error_log")
        self.response_time_file = config.paths.resolve("watchdog_dir") / "last_response_time"

    def _guard(self, name: str, check: Callable[[], T], default: T) -> T:
        try:
            return check()
        except Exception as e:
            logger.warning(f"Check {name} could not complete: {e}")
            return default

    # ------------------------------------------------------------------
    # Gateway checks
    # ------------------------------------------------------------------

    def check_process(self) -> int | None:
        """PID of the gateway process, or None if it is not running."""
        return self._guard(
            "process", lambda: self.facade.find_process(self.config.gateway.process_pattern), None
        )

    def process_stats(self, pid: int | None) -> ProcessStats:
        if pid is None:
            return ProcessStats()
        return self._guard("process_stats", lambda: self.facade.process_stats(pid), ProcessStats())

    def check_http(self) -> HttpResult:
        """
        GET the gateway root; healthy means HTTP 200 within the timeout.

        The wall-clock latency is classified against the warning and critical
        thresholds and alerts fire here as type ``response_slow``.
        """
        thresholds = self.config.thresholds
        start = self._monotonic()
        status_code: int | None = None
        try:
            response = httpx.get(f"{self.config.gateway.url}/", timeout=self.config.watchdog.http_timeout)
            status_code = response.status_code
        except httpx.ConnectError:
            logger.warning("Health check failed: connection refused")
        except httpx.TimeoutException:
            logger.warning("Health check failed: timeout")
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
        latency_ms = (self._monotonic() - start) * 1000.0

        try:
            secure_write(self.response_time_file, f"{int(latency_ms)}\n", 0o600)
        except OSError as e:
            logger.debug(f"Could not record response time: {e}")

        if latency_ms > thresholds.latency_critical_ms:
            self.dispatcher.notify(
                "response_slow", f"Gateway response time critical: {int(latency_ms)}ms", Severity.CRITICAL
            )
        elif latency_ms > thresholds.latency_warning_ms:
            self.dispatcher.notify(
                "response_slow", f"Gateway response time slow: {int(latency_ms)}ms", Severity.WARNING
            )

        if status_code is not None and status_code != 200:
            logger.warning(f"Health check returned status {status_code}")
        return HttpResult(healthy=status_code == 200, latency_ms=latency_ms, status_code=status_code)

    def is_healthy(self) -> bool:
        """Re-probe used by the recovery controller after a restart."""
        return self.check_http().healthy

    def check_upstream(self) -> bool:
        """True if any HTTP response at all came back; only connection failure counts."""
        try:
            httpx.get(self.config.upstream.url, timeout=self.config.upstream.timeout)
            return True
        except httpx.HTTPError as e:
            logger.debug(f"Upstream API unreachable: {e}")
            return False
        except Exception as e:
            logger.warning(f"Upstream check failed: {e}")
            return False

    def check_scheduled_jobs(self) -> list[str]:
        """Names of the gateway's scheduled jobs whose last run failed."""
        url = f"{self.config.gateway.url}{self.config.gateway.jobs_path}"
        try:
            response = httpx.get(url, timeout=self.config.watchdog.api_timeout)
            payload: Any = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.debug(f"Scheduled job status unavailable: {e}")
            return []

        jobs = payload.get("jobs") if isinstance(payload, dict) else None
        failed: list[str] = []
        for job in jobs or []:
            if not isinstance(job, dict):
                continue
            last_run = job.get("lastRun") or {}
            if isinstance(last_run, dict) and last_run.get("status") == "failed":
                failed.append(str(job.get("name", "unnamed")))

        if failed:
            self.dispatcher.notify("cron_failed", f"Cron jobs failed: {', '.join(failed)}", Severity.WARNING)
        return failed

    def count_recent_errors(self) -> int:
        """
        Error/exception/fatal lines in the tail of the gateway error log.

        A log not modified within ``error_log_max_age`` seconds is ignored.
        """
        thresholds = self.config.thresholds
        try:
            mtime = self.error_log.stat().st_mtime
        except OSError:
            return 0
        if self._clock() - mtime >= thresholds.error_log_max_age:
            return 0

        try:
            with open(self.error_log, errors="replace") as f:
                tail = deque(f, maxlen=thresholds.error_tail_lines)
        except OSError as e:
            logger.debug(f"Could not read error log: {e}")
            return 0

        count = sum(1 for line in tail if ERROR_LINE_RE.search(line))
        if count > thresholds.error_threshold:
            self.dispatcher.notify(
                "error_rate", f"High error rate: {count} errors in recent log", Severity.WARNING
            )
        return count

    # ------------------------------------------------------------------
    # System checks
    # ------------------------------------------------------------------

    def check_disk(self) -> float:
        thresholds = self.config.thresholds
        percent = self._guard("disk", lambda: self.facade.disk_usage_percent("/"), 0.0)

        if percent > thresholds.disk_critical_percent:
            self.dispatcher.notify("disk_critical", f"Disk {percent:.0f}% full", Severity.CRITICAL)
        elif percent > thresholds.disk_warning_percent:
            self.dispatcher.notify("disk_warning", f"Disk {percent:.0f}% full", Severity.WARNING)
        return percent

    def check_backup_volume(self) -> bool:
        volume = str(self.config.paths.resolve("backup_volume"))
        mounted = self._guard("backup_volume", lambda: self.facade.is_volume_mounted(volume), False)
        if not mounted:
            self.dispatcher.notify("backup_drive", f"Backup drive {volume} is NOT mounted!", Severity.CRITICAL)
        return mounted

    def check_config(self) -> ConfigStatus:
        """
        The gateway config must exist and parse as JSON.

        An unparsable config triggers a restore from backup. A valid config
        whose hash moved since the last cycle raises ``config_changed`` and
        nothing else.
        """
        if not self.config_file.exists():
            logger.critical("Config file missing!")
            self.dispatcher.notify("config_missing", "Config file missing!", Severity.CRITICAL)
            return ConfigStatus.MISSING

        try:
            json.loads(self.config_file.read_text())
        except (OSError, ValueError) as e:
            logger.error(f"Config file is invalid: {e}")
            self.dispatcher.notify("config_invalid", "Config file is invalid JSON!", Severity.CRITICAL)
            self.snapshots.restore_config_from_backup()
            # The restored file is the new baseline
            self.ctx.config_hash = hash_file(self.config_file)
            return ConfigStatus.INVALID

        current = hash_file(self.config_file)
        previous = self.ctx.config_hash
        if previous and current and current != previous:
            self.dispatcher.notify("config_changed", "Config file changed unexpectedly", Severity.WARNING)
            self.journal.append("⚙️ Config file changed")
        self.ctx.config_hash = current
        return ConfigStatus.OK

    # ------------------------------------------------------------------
    # Battery
    # ------------------------------------------------------------------

    def collect(self, disk_percent: float | None = None, backup_mounted: bool | None = None) -> HealthSnapshot:
        """
        Run the gateway battery and return one immutable snapshot.

        Disk and backup-volume readings already taken this cycle can be
        passed in so they are not measured (and alerted) twice.
        """
        if disk_percent is None:
            disk_percent = self.check_disk()
        if backup_mounted is None:
            backup_mounted = self.check_backup_volume()

        pid = self.check_process()
        stats = self.process_stats(pid)
        http = self._guard("http", self.check_http, HttpResult(healthy=False, latency_ms=0.0))
        api_reachable = self.check_upstream()
        error_count = self._guard("error_rate", self.count_recent_errors, 0)

        return HealthSnapshot(
            process_running=pid is not None,
            http_healthy=http.healthy,
            pid=pid,
            latency_ms=http.latency_ms,
            memory_mb=stats.memory_mb,
            cpu_percent=stats.cpu_percent,
            disk_percent=disk_percent,
            backup_mounted=backup_mounted,
            api_reachable=api_reachable,
            error_count=error_count,
            taken_at=self._clock(),
        )

"""
Gateway watchdog process.

Polls the gateway and the host every check interval, escalates through
graceful and hard restarts when the gateway fails, and alerts the operator.
Runs forever under an external process supervisor.

Usage:
    gatewarden run [--verbose]
"""

from __future__ import annotations

import getpass
import logging
import os
import signal
from logging.handlers import RotatingFileHandler

from gatewarden import __version__
from gatewarden.alerts import AlertDispatcher, AlertSink, DesktopSink, build_remote_sink
from gatewarden.config.app import WardenConfig
from gatewarden.journal import Journal
from gatewarden.memory_trend import MemoryTrendTracker
from gatewarden.metrics import MetricsPublisher
from gatewarden.models import HealthSnapshot, RuntimeContext, Severity
from gatewarden.os_facade import OSFacade, SystemFacade
from gatewarden.probes import ConfigStatus, HealthProbe
from gatewarden.recovery import RecoveryController, RecoveryOutcome
from gatewarden.scheduler import Scheduler
from gatewarden.snapshots import SnapshotManager
from gatewarden.state import StateStore
from gatewarden.utils.files import ensure_secure_dir, verify_ownership
from gatewarden.utils.logs import rotate_if_oversized

logger = logging.getLogger(__name__)


def _current_user() -> str:
    try:
        return getpass.getuser()
    except (KeyError, OSError):
        return str(os.getuid())


class Watchdog:
    """
    The monitor loop.

    One cycle is a single sequential pass:
    - cheap gates: log rotation, disk, backup volume, gateway config
    - gateway process and HTTP health, which may trigger recovery
    - memory trend, error density and upstream reachability
    - periodic scheduled-job check
    - persist metrics and state
    """

    def __init__(
        self,
        config: WardenConfig | None = None,
        facade: OSFacade | None = None,
        scheduler: Scheduler | None = None,
        log_handler: RotatingFileHandler | None = None,
        sinks: list[AlertSink] | None = None,
    ):
        self.config = config or WardenConfig()
        self.scheduler = scheduler or Scheduler()
        self.facade = facade or SystemFacade(
            command_timeout=self.config.watchdog.command_timeout,
            copy_timeout=self.config.watchdog.copy_timeout,
        )
        self.log_handler = log_handler
        self.ctx = RuntimeContext()
        self._last_job_check_cycle: int | None = None

        paths = self.config.paths
        self.watchdog_dir = paths.resolve("watchdog_dir")
        self.snapshot_dir = self.watchdog_dir / "snapshots"
        self.memory_dir = paths.resolve("memory_dir")
        self.config_file = paths.resolve("config_file")
        self.pid_file = self.watchdog_dir / "watchdog.pid"

        self.state_store = StateStore(self.watchdog_dir / "state.json")
        self.metrics = MetricsPublisher(self.watchdog_dir / "metrics.json")
        self.journal = Journal(self.memory_dir)

        if sinks is None:
            sinks = []
            if self.config.alerts.desktop_enabled:
                sinks.append(DesktopSink(self.facade))
            remote = build_remote_sink(self.config.alerts.remote)
            if remote is not None:
                sinks.append(remote)

        self.dispatcher = AlertDispatcher(
            cooldown=self.config.watchdog.alert_cooldown,
            journal=self.journal,
            sinks=sinks,
            last_fired=self.ctx.alert_times,
            clock=self.scheduler.clock,
        )
        self.snapshots = SnapshotManager(
            snapshot_dir=self.snapshot_dir,
            memory_dir=self.memory_dir,
            sessions_url=f"{self.config.gateway.url}{self.config.gateway.sessions_path}",
            dispatcher=self.dispatcher,
            journal=self.journal,
            facade=self.facade,
            config_file=self.config_file,
            backup_volume=paths.resolve("backup_volume"),
            openclaw_home=paths.resolve("openclaw_home"),
            retention=self.config.snapshots.retention,
            api_timeout=self.config.watchdog.api_timeout,
        )
        self.probe = HealthProbe(
            config=self.config,
            facade=self.facade,
            dispatcher=self.dispatcher,
            snapshots=self.snapshots,
            journal=self.journal,
            ctx=self.ctx,
            clock=self.scheduler.clock,
        )
        self.tracker = MemoryTrendTracker(
            window=self.config.thresholds.memory_window,
            threshold_mb=self.config.thresholds.memory_leak_mb,
            history=self.ctx.memory_history,
        )
        self.recovery = RecoveryController(
            config=self.config,
            facade=self.facade,
            health_check=self.probe.is_healthy,
            snapshots=self.snapshots,
            dispatcher=self.dispatcher,
            journal=self.journal,
            restart_state=self.ctx.restart,
            scheduler=self.scheduler,
        )

    def _handle_shutdown(self, signum: int, frame: object) -> None:
        """Handle shutdown signals gracefully."""
        logger.info(f"Received signal {signum}, shutting down watchdog")
        self.scheduler.cancel()

    def install_signal_handlers(self) -> None:
        signal.signal(signal.SIGTERM, self._handle_shutdown)
        signal.signal(signal.SIGINT, self._handle_shutdown)

    # ------------------------------------------------------------------
    # Startup
    # ------------------------------------------------------------------

    def startup(self) -> None:
        """Secure directories, resume persisted state and announce the start."""
        ensure_secure_dir(self.watchdog_dir, 0o700)
        ensure_secure_dir(self.snapshot_dir, 0o700)
        ensure_secure_dir(self.memory_dir, 0o755)

        for path in (self.config_file, self.state_store.path):
            if path.exists() and not verify_ownership(path):
                logger.critical(f"SECURITY: File ownership mismatch: {path}")
                self.dispatcher.notify(
                    "security_violation", f"File ownership mismatch: {path.name}", Severity.CRITICAL
                )

        # Restore before the first cycle so the tracker window and counters carry over
        self.state_store.restore(self.ctx)
        self.tracker.trim()

        logger.info("=" * 41)
        logger.info(f"Gateway watchdog v{__version__} started")
        logger.info("=" * 41)
        logger.info(f"Gateway: {self.config.gateway.url}")
        logger.info(f"PID: {os.getpid()}")
        logger.info(f"User: {_current_user()}")
        logger.info(
            f"Interval: {self.config.watchdog.check_interval}s, "
            f"restart attempts: {self.ctx.restart.attempts}/{self.config.watchdog.max_restart_attempts}"
        )
        logger.info("=" * 41)

        self.journal.append(f"🐕 Watchdog v{__version__} started")
        self.dispatcher.notify("startup", f"Watchdog v{__version__} started", Severity.INFO)

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    def _check_memory(self, snapshot: HealthSnapshot) -> None:
        thresholds = self.config.thresholds
        mem_mb = snapshot.memory_mb
        if mem_mb <= 0:
            return

        leak = self.tracker.observe(mem_mb)
        if leak is not None:
            self.dispatcher.notify(
                "memory_leak",
                f"Possible memory leak: grew {leak.growth_mb}MB over the last {leak.window} checks",
                Severity.WARNING,
            )

        if mem_mb > thresholds.memory_critical_mb:
            self.dispatcher.notify("memory_critical", f"Gateway using {mem_mb}MB RAM", Severity.CRITICAL)
            self.recovery.graceful_restart(snapshot.pid, f"Memory critical: {mem_mb}MB")
        elif mem_mb > thresholds.memory_warning_mb:
            self.dispatcher.notify("memory_warning", f"Gateway using {mem_mb}MB RAM", Severity.WARNING)

    def _job_check_due(self) -> bool:
        if self._last_job_check_cycle is None:
            return True
        return self.ctx.cycle - self._last_job_check_cycle >= self.config.watchdog.job_check_every

    def _finish_cycle(self, snapshot: HealthSnapshot | None, outcome: RecoveryOutcome | None = None) -> float:
        if snapshot is not None:
            self.metrics.publish(snapshot)
        self.state_store.save(self.ctx, self.scheduler.clock())

        delay = self.config.watchdog.check_interval
        if outcome is not None and outcome.pause > 0:
            logger.warning(f"Pausing recovery for {outcome.pause:.0f}s before resuming checks")
            delay += outcome.pause
        return delay

    def _heartbeat(self, healthy: bool) -> None:
        if self.ctx.cycle % self.config.watchdog.heartbeat_every != 0:
            return
        if healthy:
            logger.info("Heartbeat: All systems healthy")
        else:
            logger.info(f"Heartbeat: cycle {self.ctx.cycle}, gateway degraded")

    def run_cycle(self) -> float:
        """
        Run one check cycle.

        Returns:
            Seconds to wait before the next cycle
        """
        self.ctx.cycle += 1
        rotate_if_oversized(self.log_handler, self.config.logging.max_size_mb * 1024 * 1024)

        disk_percent = self.probe.check_disk()
        backup_mounted = self.probe.check_backup_volume()
        if self.probe.check_config() is not ConfigStatus.OK:
            self._heartbeat(healthy=False)
            return self._finish_cycle(None)

        snapshot = self.probe.collect(disk_percent=disk_percent, backup_mounted=backup_mounted)

        if not snapshot.process_running:
            logger.warning("Gateway process not found")
            if not snapshot.api_reachable:
                self.dispatcher.notify("network_issue", "Gateway down AND API unreachable", Severity.CRITICAL)
            outcome = self.recovery.handle_process_absent()
            self._heartbeat(healthy=False)
            return self._finish_cycle(snapshot, outcome)

        if not snapshot.http_healthy:
            logger.warning("Gateway not responding")
            outcome = self.recovery.handle_unhealthy(snapshot.pid)
            self._heartbeat(healthy=False)
            return self._finish_cycle(snapshot, outcome)

        self._check_memory(snapshot)
        if not snapshot.api_reachable:
            self.dispatcher.notify("api_unreachable", "Upstream API unreachable", Severity.WARNING)

        if self._job_check_due():
            self.probe.check_scheduled_jobs()
            self._last_job_check_cycle = self.ctx.cycle

        self.recovery.mark_healthy()
        self._heartbeat(healthy=True)
        return self._finish_cycle(snapshot)

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    def run(self, max_cycles: int | None = None) -> None:
        """Main watchdog loop."""
        logger.info(
            f"Watchdog starting: gateway={self.config.gateway.url}, "
            f"interval={self.config.watchdog.check_interval}s"
        )
        self.startup()

        ensure_secure_dir(self.watchdog_dir, 0o700)
        self.pid_file.write_text(str(os.getpid()))
        self.pid_file.chmod(0o600)

        try:
            while not self.scheduler.cancelled:
                try:
                    delay = self.run_cycle()
                except Exception as e:
                    logger.error(f"Check cycle {self.ctx.cycle} failed: {e}", exc_info=True)
                    delay = self.config.watchdog.check_interval

                if max_cycles is not None and self.ctx.cycle >= max_cycles:
                    break
                self.scheduler.sleep(delay)
        finally:
            self.pid_file.unlink(missing_ok=True)
            self.dispatcher.close()
            logger.info("Watchdog stopped")

"""
Restart escalation state machine.

Healthy -> Degraded -> GracefulRestartAttempted -> HardRestartAttempted
-> Exhausted, back to Healthy on any confirmed recovery. The attempt
counter only grows on failed hard restarts and drops to zero on recovery
or when the ceiling is hit.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from gatewarden.alerts import AlertDispatcher
from gatewarden.config.app import WardenConfig
from gatewarden.journal import Journal
from gatewarden.models import RestartState, Severity
from gatewarden.os_facade import OSFacade
from gatewarden.scheduler import Scheduler
from gatewarden.snapshots import SnapshotManager

logger = logging.getLogger(__name__)


class RecoveryState(str, Enum):
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    GRACEFUL_RESTART_ATTEMPTED = "graceful_restart_attempted"
    HARD_RESTART_ATTEMPTED = "hard_restart_attempted"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class RecoveryOutcome:
    recovered: bool
    state: RecoveryState
    pause: float = 0.0


class RecoveryController:
    """Decides and executes graceful and hard restarts."""

    def __init__(
        self,
        config: WardenConfig,
        facade: OSFacade,
        health_check: Callable[[], bool],
        snapshots: SnapshotManager,
        dispatcher: AlertDispatcher,
        journal: Journal,
        restart_state: RestartState,
        scheduler: Scheduler,
    ):
        self.config = config
        self.facade = facade
        self.health_check = health_check
        self.snapshots = snapshots
        self.dispatcher = dispatcher
        self.journal = journal
        self.restart_state = restart_state
        self.scheduler = scheduler
        self.state = RecoveryState.HEALTHY

    @property
    def attempts(self) -> int:
        return self.restart_state.attempts

    @property
    def max_attempts(self) -> int:
        return self.config.watchdog.max_restart_attempts

    def mark_healthy(self) -> None:
        """A fully healthy cycle confirms recovery."""
        self.restart_state.attempts = 0
        self.state = RecoveryState.HEALTHY

    def _capture_snapshot(self) -> None:
        try:
            self.snapshots.capture()
        except Exception as e:
            logger.error(f"Snapshot before restart failed: {e}", exc_info=True)

    def _recovered(self) -> None:
        self.restart_state.attempts = 0
        self.state = RecoveryState.HEALTHY

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def handle_process_absent(self) -> RecoveryOutcome:
        """No process to signal: go straight to the hard-restart path."""
        self.state = RecoveryState.DEGRADED
        return self._escalate(
            "gateway_down", "Gateway down! Max restart attempts reached. Manual intervention needed."
        )

    def handle_unhealthy(self, pid: int | None) -> RecoveryOutcome:
        """Process present but failing its health check: graceful first, then hard."""
        self.state = RecoveryState.DEGRADED
        if self.graceful_restart(pid, "Health check failed"):
            return RecoveryOutcome(recovered=True, state=self.state)
        return self._escalate("gateway_unresponsive", "Gateway unresponsive! Manual intervention needed.")

    # ------------------------------------------------------------------
    # Restart actions
    # ------------------------------------------------------------------

    def graceful_restart(self, pid: int | None, reason: str) -> bool:
        signal_name = self.config.gateway.graceful_signal
        logger.info(f"Attempting graceful restart via {signal_name}: {reason}")

        if pid is not None:
            self.state = RecoveryState.GRACEFUL_RESTART_ATTEMPTED
            self._capture_snapshot()
            if self.facade.send_signal(pid, signal_name):
                self.scheduler.sleep(self.config.watchdog.graceful_settle_seconds)
                if self.health_check():
                    logger.info("Graceful restart successful")
                    self.journal.append("🔄 Graceful restart successful")
                    self.dispatcher.notify("restart_success", "Graceful restart completed", Severity.INFO)
                    self._recovered()
                    return True

        logger.warning("Graceful restart failed")
        return False

    def hard_restart(self) -> bool:
        attempt = self.restart_state.attempts + 1
        logger.info(f"Attempting hard restart (attempt {attempt}/{self.max_attempts})...")
        self.journal.append(f"⚠️ Hard restart attempt {attempt}")
        self.state = RecoveryState.HARD_RESTART_ATTEMPTED

        self._capture_snapshot()

        label = self.config.gateway.supervisor_label
        if not self.facade.run_supervisor_restart(label):
            logger.warning(f"Supervisor restart command for {label} reported failure")
        self.scheduler.sleep(self.config.watchdog.hard_settle_seconds)

        if self.health_check():
            logger.info("Gateway recovered!")
            self.journal.append("✅ Gateway recovered")
            self.dispatcher.notify("recovery", "Gateway recovered after hard restart", Severity.SUCCESS)
            self._recovered()
            return True

        self.restart_state.attempts += 1
        logger.warning(f"Hard restart failed ({self.restart_state.attempts}/{self.max_attempts})")
        self.dispatcher.notify(
            "restart_failed",
            f"Hard restart attempt {self.restart_state.attempts}/{self.max_attempts} failed",
            Severity.WARNING,
        )
        return False

    def _escalate(self, alert_type: str, message: str) -> RecoveryOutcome:
        if self.restart_state.attempts >= self.max_attempts:
            return self._exhaust(alert_type, message)

        try:
            self.snapshots.emergency_backup()
        except Exception as e:
            logger.error(f"Emergency backup failed: {e}", exc_info=True)

        if self.hard_restart():
            return RecoveryOutcome(recovered=True, state=self.state)

        if self.restart_state.attempts >= self.max_attempts:
            return self._exhaust(alert_type, message)
        return RecoveryOutcome(recovered=False, state=self.state)

    def _exhaust(self, alert_type: str, message: str) -> RecoveryOutcome:
        self.state = RecoveryState.EXHAUSTED
        logger.critical(f"Restart attempts exhausted ({self.max_attempts}), pausing recovery")
        self.journal.append(f"🛑 {message}")
        self.dispatcher.notify(alert_type, message, Severity.CRITICAL)
        # Reset so the next episode starts over instead of alerting forever
        self.restart_state.attempts = 0
        return RecoveryOutcome(
            recovered=False, state=RecoveryState.EXHAUSTED, pause=self.config.watchdog.alert_cooldown
        )

"""
Narrow interface to the operating system.

The monitor core only talks to processes, mounts, tree copies, the process
supervisor and the desktop through this module, so tests can swap in a
double that simulates any process or mount state.
"""

from __future__ import annotations

import logging
import os
import shutil
import signal
import subprocess  # nosec B404 - subprocess needed for supervisor and notifications
import sys
from dataclasses import dataclass
from typing import Protocol

import psutil

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessStats:
    """Resource usage of a single process."""

    memory_mb: int = 0
    cpu_percent: float = 0.0


class OSFacade(Protocol):
    """Operations the monitor core needs from the host."""

    def find_process(self, pattern: str) -> int | None: ...

    def process_stats(self, pid: int) -> ProcessStats: ...

    def send_signal(self, pid: int, signal_name: str) -> bool: ...

    def is_volume_mounted(self, path: str) -> bool: ...

    def disk_usage_percent(self, path: str) -> float: ...

    def copy_tree(self, source: str, target: str) -> bool: ...

    def run_supervisor_restart(self, label: str) -> bool: ...

    def notify_desktop(self, title: str, message: str, sound: str) -> bool: ...


class SystemFacade:
    """OSFacade backed by psutil and bounded subprocess calls."""

    def __init__(self, command_timeout: float = 10.0, copy_timeout: float = 120.0):
        self.command_timeout = command_timeout
        self.copy_timeout = copy_timeout

    def find_process(self, pattern: str) -> int | None:
        """Return the PID of the first live process whose command line contains pattern."""
        current_pid = os.getpid()
        for proc in psutil.process_iter(["pid", "cmdline", "status"]):
            try:
                if proc.info["pid"] == current_pid:
                    continue
                if proc.info["status"] == psutil.STATUS_ZOMBIE:
                    continue
                cmdline = proc.info["cmdline"]
                if cmdline and pattern in " ".join(cmdline):
                    return int(proc.info["pid"])
            except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
                continue
        return None

    def process_stats(self, pid: int) -> ProcessStats:
        try:
            proc = psutil.Process(pid)
            with proc.oneshot():
                rss = proc.memory_info().rss
            cpu = proc.cpu_percent(interval=0.1)
            return ProcessStats(memory_mb=rss // (1024 * 1024), cpu_percent=round(cpu, 1))
        except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
            return ProcessStats()

    def send_signal(self, pid: int, signal_name: str) -> bool:
        sig = getattr(signal, signal_name, None)
        if sig is None:
            logger.error(f"Unknown signal {signal_name}")
            return False
        try:
            os.kill(pid, sig)
            return True
        except (ProcessLookupError, PermissionError) as e:
            logger.warning(f"Could not send {signal_name} to PID {pid}: {e}")
            return False

    def is_volume_mounted(self, path: str) -> bool:
        target = path.rstrip("/") or "/"
        try:
            for part in psutil.disk_partitions(all=True):
                if part.mountpoint.rstrip("/") == target.rstrip("/"):
                    return True
        except OSError as e:
            logger.debug(f"Could not list partitions: {e}")
        return os.path.ismount(path)

    def disk_usage_percent(self, path: str) -> float:
        return float(psutil.disk_usage(path).percent)

    def copy_tree(self, source: str, target: str) -> bool:
        """Copy the contents of source into the existing target directory, symlinks as links."""
        return self._run(["cp", "-RP", f"{source.rstrip('/')}/.", target], timeout=self.copy_timeout)

    def _supervisor_command(self, label: str) -> list[str]:
        if sys.platform == "darwin":
            return ["launchctl", "kickstart", "-k", f"gui/{os.getuid()}/{label}"]
        return ["systemctl", "--user", "restart", label]

    def run_supervisor_restart(self, label: str) -> bool:
        cmd = self._supervisor_command(label)
        return self._run(cmd)

    def notify_desktop(self, title: str, message: str, sound: str) -> bool:
        if sys.platform == "darwin":
            script = f'display notification "{message}" with title "{title}" sound name "{sound}"'
            cmd = ["osascript", "-e", script]
        else:
            cmd = ["notify-send", title, message]
        if shutil.which(cmd[0]) is None:
            logger.debug(f"Desktop notifier {cmd[0]} not available")
            return False
        return self._run(cmd)

    def _run(self, cmd: list[str], timeout: float | None = None) -> bool:
        timeout = timeout or self.command_timeout
        try:
            result = subprocess.run(  # nosec B603 - fixed argv, no shell
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired:
            logger.warning(f"Command timed out after {timeout}s: {cmd[0]}")
            return False
        except OSError as e:
            logger.warning(f"Command failed to start: {cmd[0]}: {e}")
            return False
        if result.returncode != 0:
            logger.warning(
                f"Command {cmd[0]} exited with {result.returncode}: "
                f"{result.stderr.decode(errors='replace').strip()}"
            )
            return False
        return True

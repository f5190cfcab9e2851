"""Tick source with a cancellation token for the monitor loop."""

from __future__ import annotations

import threading
import time


class Scheduler:
    """
    Interruptible sleeps backed by a ``threading.Event``.

    ``cancel()`` wakes any pending sleep immediately, so a shutdown signal
    never waits out a full check interval.
    """

    def __init__(self) -> None:
        self._stop = threading.Event()

    @property
    def cancelled(self) -> bool:
        return self._stop.is_set()

    def cancel(self) -> None:
        self._stop.set()

    def clock(self) -> float:
        return time.time()

    def sleep(self, seconds: float) -> bool:
        """
        Wait up to ``seconds``.

        Returns:
            True if the full wait elapsed, False if cancelled
        """
        if seconds <= 0:
            return not self.cancelled
        return not self._stop.wait(seconds)


class ManualScheduler(Scheduler):
    """
    Scheduler whose clock only moves when asked to.

    ``sleep`` advances the virtual clock instead of blocking, which lets
    cycles run synchronously.
    """

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        super().__init__()
        self.now = start
        self.sleeps: list[float] = []

    def clock(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> bool:
        self.sleeps.append(seconds)
        if self.cancelled:
            return False
        self.now += max(seconds, 0.0)
        return True

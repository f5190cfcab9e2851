"""Sliding-window memory leak detector."""

from __future__ import annotations

from gatewarden.models import LeakSignal


class MemoryTrendTracker:
    """
    Keeps the last ``window`` memory samples, oldest first.

    Once the window is full, growth is the latest sample minus the oldest
    retained one; growth above ``threshold_mb`` is reported as a leak. The
    baseline is therefore about ``window`` check intervals ago, not a fixed
    wall-clock duration.
    """

    def __init__(self, window: int = 10, threshold_mb: int = 50, history: list[int] | None = None):
        self.window = window
        self.threshold_mb = threshold_mb
        # Shared with RuntimeContext so the state file sees every sample
        self.history = history if history is not None else []
        self.trim()

    def trim(self) -> None:
        if len(self.history) > self.window:
            del self.history[: len(self.history) - self.window]

    @property
    def full(self) -> bool:
        return len(self.history) >= self.window

    def observe(self, sample_mb: int) -> LeakSignal | None:
        self.history.append(int(sample_mb))
        self.trim()

        if not self.full:
            return None

        oldest = self.history[0]
        latest = self.history[-1]
        growth = latest - oldest
        if growth > self.threshold_mb:
            return LeakSignal(growth_mb=growth, oldest_mb=oldest, latest_mb=latest, window=self.window)
        return None

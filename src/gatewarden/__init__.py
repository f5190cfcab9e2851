"""Gatewarden - a supervisory watchdog for a single gateway service.

Polls liveness and quality signals, detects degradation before it becomes
an outage, escalates through graceful and hard restarts, and notifies the
operator through rate-limited alerts.
"""

__version__ = "0.1.0"

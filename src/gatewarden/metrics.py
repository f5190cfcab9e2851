"""Publishes the latest health snapshot for the status display."""

from __future__ import annotations

import logging
from pathlib import Path

from gatewarden.models import HealthSnapshot, MetricsRecord
from gatewarden.utils.files import secure_write

logger = logging.getLogger(__name__)


class MetricsPublisher:
    """Writes ``metrics.json`` atomically and world-readable."""

    def __init__(self, path: Path):
        self.path = path

    def publish(self, snapshot: HealthSnapshot) -> MetricsRecord:
        record = MetricsRecord.from_snapshot(snapshot)
        try:
            secure_write(self.path, record.model_dump_json(indent=4), 0o644)
        except OSError as e:
            logger.error(f"Failed to write metrics to {self.path}: {e}")
        return record

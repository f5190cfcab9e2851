"""Dated, append-only Markdown journal of watchdog events."""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from gatewarden.utils.files import is_within, sanitize

logger = logging.getLogger(__name__)

SECTION_HEADING = "## Watchdog Events"


class Journal:
    """Appends one bulleted line per event to ``<memory_dir>/<YYYY-MM-DD>.md``."""

    def __init__(self, memory_dir: Path, now: Callable[[], datetime] = datetime.now):
        self.memory_dir = memory_dir
        self._now = now

    def path_for(self, day: datetime) -> Path:
        return self.memory_dir / f"{day:%Y-%m-%d}.md"

    def append(self, message: str) -> Path | None:
        now = self._now()
        path = self.path_for(now)

        if not is_within(path, self.memory_dir):
            logger.error("Invalid journal path attempted")
            return None

        try:
            self.memory_dir.mkdir(parents=True, exist_ok=True)
            if not path.exists():
                path.write_text(f"# {now:%Y-%m-%d}\n\n{SECTION_HEADING}\n", encoding="utf-8")
            elif SECTION_HEADING not in path.read_text(encoding="utf-8", errors="replace"):
                with open(path, "a", encoding="utf-8") as f:
                    f.write(f"\n{SECTION_HEADING}\n")

            with open(path, "a", encoding="utf-8") as f:
                f.write(f"- [{now:%H:%M}] {sanitize(message)}\n")
        except (OSError, ValueError) as e:
            logger.warning(f"Could not write journal entry to {path}: {e}")
            return None
        return path

"""
Pre-restart snapshots, emergency backups and config restore.
"""

from __future__ import annotations

import json
import logging
import re
import shutil
import stat
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

import httpx

from gatewarden.alerts import AlertDispatcher
from gatewarden.journal import Journal
from gatewarden.models import Severity, SnapshotRecord
from gatewarden.os_facade import OSFacade
from gatewarden.utils.files import OwnershipError, chmod_tree, ensure_secure_dir, require_ownership, secure_write

logger = logging.getLogger(__name__)

SESSIONS_PREFIX = "sessions-"
MEMORY_PREFIX = "memory-"
_STAMP_RE = re.compile(r"(\d{8}-\d{6})(?:-(\d+))?")


def _stamp_key(path: Path) -> tuple[str, int]:
    """Order snapshot artifacts by the creation stamp embedded in their name."""
    match = _STAMP_RE.search(path.name)
    if not match:
        return ("", 0)
    return (match.group(1), int(match.group(2) or 0))


class SnapshotManager:
    """
    Captures session data and the memory workspace before a restart.

    Only the newest ``retention`` artifacts of each kind are kept.
    """

    def __init__(
        self,
        snapshot_dir: Path,
        memory_dir: Path,
        sessions_url: str,
        dispatcher: AlertDispatcher,
        journal: Journal,
        facade: OSFacade,
        *,
        config_file: Path,
        backup_volume: Path,
        openclaw_home: Path,
        retention: int = 10,
        api_timeout: float = 5.0,
        now: Callable[[], datetime] = datetime.now,
    ):
        self.snapshot_dir = snapshot_dir
        self.memory_dir = memory_dir
        self.sessions_url = sessions_url
        self.dispatcher = dispatcher
        self.journal = journal
        self.facade = facade
        self.config_file = config_file
        self.backup_volume = backup_volume
        self.openclaw_home = openclaw_home
        self.retention = retention
        self.api_timeout = api_timeout
        self._now = now

    @property
    def backup_root(self) -> Path:
        return self.backup_volume / "openclaw_backup"

    def _unique_stamp(self, created: datetime) -> str:
        base = f"{created:%Y%m%d-%H%M%S}"
        stamp = base
        n = 0
        while (self.snapshot_dir / f"{SESSIONS_PREFIX}{stamp}.json").exists() or (
            self.snapshot_dir / f"{MEMORY_PREFIX}{stamp}"
        ).exists():
            n += 1
            stamp = f"{base}-{n:02d}"
        return stamp

    def _fetch_sessions(self) -> str | None:
        try:
            response = httpx.get(self.sessions_url, timeout=self.api_timeout)
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch sessions for snapshot: {e}")
            return None
        if response.status_code != 200:
            logger.warning(f"Sessions endpoint returned status {response.status_code}")
            return None
        body = response.text.strip()
        if not body or body == "null":
            return None
        return body

    def _copy_tree(self, source: Path, target: Path) -> bool:
        try:
            ensure_secure_dir(target)
        except OSError as e:
            logger.warning(f"Could not create {target}: {e}")
            return False
        copied = self.facade.copy_tree(str(source), str(target))
        chmod_tree(target, 0o700)
        return copied

    def capture(self) -> SnapshotRecord:
        """Persist current sessions and copy the memory workspace."""
        logger.info("Creating session snapshot before restart")
        ensure_secure_dir(self.snapshot_dir)
        created = self._now()
        stamp = self._unique_stamp(created)

        sessions_file: Path | None = None
        sessions = self._fetch_sessions()
        if sessions is not None:
            target = self.snapshot_dir / f"{SESSIONS_PREFIX}{stamp}.json"
            try:
                secure_write(target, sessions, 0o600)
                sessions_file = target
                logger.info(f"Session snapshot saved: {target.name}")
            except OSError as e:
                logger.warning(f"Could not write session snapshot: {e}")

        memory_copy: Path | None = None
        if self.memory_dir.is_dir():
            target = self.snapshot_dir / f"{MEMORY_PREFIX}{stamp}"
            if self._copy_tree(self.memory_dir, target):
                memory_copy = target
            else:
                logger.warning("Could not copy memory workspace")

        self.prune()
        return SnapshotRecord(created_at=created, sessions_file=sessions_file, memory_dir=memory_copy)

    def prune(self) -> list[Path]:
        """Delete all but the newest ``retention`` artifacts of each kind."""
        removed: list[Path] = []
        kinds = [
            sorted(self.snapshot_dir.glob(f"{SESSIONS_PREFIX}*.json"), key=_stamp_key, reverse=True),
            sorted(
                (p for p in self.snapshot_dir.glob(f"{MEMORY_PREFIX}*") if p.is_dir()),
                key=_stamp_key,
                reverse=True,
            ),
        ]
        for artifacts in kinds:
            for old in artifacts[self.retention :]:
                try:
                    if old.is_dir():
                        shutil.rmtree(old)
                    else:
                        old.unlink()
                    removed.append(old)
                except OSError as e:
                    logger.warning(f"Could not remove old snapshot {old}: {e}")
        return removed

    def emergency_backup(self) -> Path | None:
        """Copy the whole gateway home to the backup volume, if it is mounted."""
        if not self.facade.is_volume_mounted(str(self.backup_volume)):
            logger.info("Backup volume not mounted, skipping emergency backup")
            return None

        if not self.openclaw_home.is_dir():
            logger.error(f"Emergency backup failed: {self.openclaw_home} is not a directory")
            return None

        target = self.backup_root / f"emergency-{self._now():%Y%m%d-%H%M%S}"
        logger.info(f"Creating emergency backup at {target}")
        if not self._copy_tree(self.openclaw_home, target):
            logger.error(f"Emergency backup failed or timed out, partial copy left at {target}")
            return None
        self.journal.append("💾 Emergency backup created")
        return target

    def latest_config_backup(self) -> Path | None:
        """Newest regular backup file by mtime; entries that cannot be stat'ed are skipped."""
        newest: Path | None = None
        newest_mtime = 0.0
        for path in (self.backup_root / "configs").glob("openclaw-*.json"):
            try:
                st = path.stat()
            except OSError as e:
                logger.warning(f"Skipping unreadable config backup {path.name}: {e}")
                continue
            if not stat.S_ISREG(st.st_mode):
                continue
            if newest is None or st.st_mtime > newest_mtime:
                newest, newest_mtime = path, st.st_mtime
        return newest

    def restore_config_from_backup(self) -> bool:
        """
        Replace the live config with the newest trusted backup.

        The backup must be owned by the current user and parse as JSON.
        Without such a backup a critical alert fires instead.
        """
        reason = "no backup found"
        try:
            latest = self.latest_config_backup()
        except OSError as e:
            latest = None
            reason = f"backup lookup failed: {e}"

        if latest is not None:
            try:
                require_ownership(latest)
                content = latest.read_text()
                json.loads(content)
            except OwnershipError as e:
                logger.critical(f"SECURITY: {e}")
                reason = f"backup {latest.name} has untrusted owner"
            except (OSError, ValueError) as e:
                reason = f"backup {latest.name} unreadable: {e}"
            else:
                try:
                    secure_write(self.config_file, content, 0o600)
                except OSError as e:
                    reason = f"could not write config: {e}"
                else:
                    logger.info(f"Restored config from {latest}")
                    self.dispatcher.notify("config_restored", "Config restored from backup", Severity.WARNING)
                    return True

        logger.error(f"No valid config backup found! ({reason})")
        self.dispatcher.notify("config_no_backup", "Config invalid and NO BACKUP FOUND!", Severity.CRITICAL)
        return False

"""
File safety helpers.

Atomic writes, ownership checks and input sanitization shared by every
component that touches a file another process may read or plant.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path

logger = logging.getLogger(__name__)

# Characters that must never reach a shell or AppleScript string
UNSAFE_CHARS = ";|&`$(){}[]<>\\\"'"
_UNSAFE_TABLE = str.maketrans("", "", UNSAFE_CHARS)


class OwnershipError(PermissionError):
    """A trusted file is not owned by the current user."""


def sanitize(text: str) -> str:
    """Strip characters that are unsafe in downstream command contexts."""
    return str(text).translate(_UNSAFE_TABLE)


def secure_write(path: Path, content: str, mode: int = 0o600) -> None:
    """
    Write content atomically with the given permissions.

    The content goes to a temp file in the destination directory, which is
    then renamed over the target, so readers never see a partial file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp", prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    except BaseException:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def verify_ownership(path: Path) -> bool:
    """Return True if path exists and is owned by the current user."""
    try:
        return path.stat().st_uid == os.getuid()
    except OSError:
        return False


def require_ownership(path: Path) -> None:
    """Raise OwnershipError unless path is owned by the current user."""
    if not verify_ownership(path):
        raise OwnershipError(f"File ownership mismatch: {path}")


def ensure_secure_dir(path: Path, mode: int = 0o700) -> Path:
    """Create a directory if needed and enforce its permissions."""
    path.mkdir(parents=True, exist_ok=True)
    try:
        path.chmod(mode)
    except OSError as e:
        logger.warning(f"Could not set permissions on {path}: {e}")
    return path


def is_within(path: Path, root: Path) -> bool:
    """Return True if path resolves to a location under root."""
    try:
        path.resolve().relative_to(root.resolve())
        return True
    except ValueError:
        return False


def chmod_tree(root: Path, mode: int = 0o700) -> None:
    """Apply mode to a directory tree, skipping entries that refuse it."""
    for dirpath, dirnames, filenames in os.walk(root):
        for name in [*dirnames, *filenames]:
            try:
                os.chmod(os.path.join(dirpath, name), mode)
            except OSError:
                continue
    try:
        root.chmod(mode)
    except OSError:
        pass

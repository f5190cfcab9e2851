"""Durable restart counter, memory window and config hash."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import ValidationError

from gatewarden.models import PersistedState, RuntimeContext
from gatewarden.utils.files import secure_write, verify_ownership

logger = logging.getLogger(__name__)


class StateStore:
    """
    Reads the state file once at startup and rewrites it after every cycle.

    Writes are atomic and owner-only. A state file owned by someone else is
    never trusted; the agent starts fresh instead.
    """

    def __init__(self, path: Path):
        self.path = path

    def load(self) -> PersistedState:
        if not self.path.exists():
            return PersistedState()

        if not verify_ownership(self.path):
            logger.critical(f"SECURITY: File ownership mismatch: {self.path}, ignoring saved state")
            return PersistedState()

        try:
            return PersistedState.model_validate_json(self.path.read_text())
        except (OSError, ValidationError, ValueError) as e:
            logger.warning(f"Could not read state file {self.path}: {e}")
            return PersistedState()

    def restore(self, ctx: RuntimeContext) -> PersistedState:
        """Load persisted counters into the runtime context."""
        state = self.load()
        ctx.restart.attempts = state.restart_attempts
        ctx.restart.last_check = float(state.last_check)
        ctx.memory_history[:] = state.memory_history
        ctx.config_hash = state.config_hash or None
        return state

    def save(self, ctx: RuntimeContext, now: float) -> None:
        ctx.restart.last_check = now
        state = PersistedState(
            restart_attempts=ctx.restart.attempts,
            last_check=int(now),
            last_memory_mb=ctx.memory_history[-1] if ctx.memory_history else 0,
            memory_history=list(ctx.memory_history),
            config_hash=ctx.config_hash or "",
        )
        try:
            secure_write(self.path, state.model_dump_json(indent=2), 0o600)
        except OSError as e:
            logger.error(f"Failed to save state to {self.path}: {e}")

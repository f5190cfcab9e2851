"""Tests for the persisted state file."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from gatewarden.models import RuntimeContext
from gatewarden.state import StateStore

pytestmark = pytest.mark.unit


@pytest.fixture
def store(tmp_path: Path) -> StateStore:
    return StateStore(tmp_path / "watchdog" / "state.json")


class TestSave:
    def test_writes_owner_only_json(self, store: StateStore) -> None:
        ctx = RuntimeContext()
        ctx.restart.attempts = 2
        ctx.memory_history.extend([400, 410])
        ctx.config_hash = "abc"
        store.save(ctx, 1_700_000_123.7)

        data = json.loads(store.path.read_text())
        assert data == {
            "restart_attempts": 2,
            "last_check": 1_700_000_123,
            "last_memory_mb": 410,
            "memory_history": [400, 410],
            "config_hash": "abc",
        }
        assert store.path.stat().st_mode & 0o777 == 0o600
        assert ctx.restart.last_check == 1_700_000_123.7

    def test_empty_context(self, store: StateStore) -> None:
        store.save(RuntimeContext(), 0)
        data = json.loads(store.path.read_text())
        assert data["last_memory_mb"] == 0
        assert data["config_hash"] == ""


class TestLoad:
    def test_round_trip_through_context(self, store: StateStore) -> None:
        ctx = RuntimeContext()
        ctx.restart.attempts = 1
        ctx.memory_history.extend([1, 2, 3])
        ctx.config_hash = "deadbeef"
        store.save(ctx, 100)

        restored = RuntimeContext()
        history = restored.memory_history
        store.restore(restored)
        assert restored.restart.attempts == 1
        assert restored.restart.last_check == 100.0
        assert restored.memory_history is history
        assert history == [1, 2, 3]
        assert restored.config_hash == "deadbeef"

    def test_missing_file_defaults(self, store: StateStore) -> None:
        state = store.load()
        assert state.restart_attempts == 0
        assert state.memory_history == []

    def test_corrupt_file_defaults(self, store: StateStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text("{not json")
        assert store.load().restart_attempts == 0

    def test_negative_attempts_rejected(self, store: StateStore) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"restart_attempts": -1}))
        assert store.load().restart_attempts == 0

    def test_foreign_owner_ignored(self, store: StateStore, caplog: pytest.LogCaptureFixture) -> None:
        store.path.parent.mkdir(parents=True)
        store.path.write_text(json.dumps({"restart_attempts": 3}))
        with patch("gatewarden.state.verify_ownership", return_value=False):
            state = store.load()
        assert state.restart_attempts == 0
        assert "SECURITY" in caplog.text

    def test_empty_hash_restores_as_none(self, store: StateStore) -> None:
        store.save(RuntimeContext(), 0)
        ctx = RuntimeContext()
        ctx.config_hash = "stale"
        store.restore(ctx)
        assert ctx.config_hash is None

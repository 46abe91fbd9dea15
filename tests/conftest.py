"""Shared pytest fixtures for test modules."""

import os
import tempfile

os.environ["ENVIRONMENT"] = "testing"
os.environ["DISTRIBUTED_LOCKS"] = "false"
os.environ.setdefault("LOGS_DIR", tempfile.mkdtemp(prefix="tierboard-logs-"))

import pytest

from tierboard.config import Config
from tierboard.services.database_service import DatabaseService
from tierboard.services.event_bus import EventBus
from tierboard.services.lock_service import LockService


@pytest.fixture(autouse=True)
def reset_globals():
    """Class-level registries must not leak between tests."""
    EventBus.clear()
    LockService.reset()
    yield
    EventBus.clear()
    LockService.reset()


@pytest.fixture
async def database(tmp_path, monkeypatch):
    """A fresh SQLite database file per test, with tables created.

    A file rather than :memory: because the engine uses NullPool, and every
    new connection to :memory: would see an empty database.
    """
    monkeypatch.setattr(Config, "DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'tierboard.db'}")
    monkeypatch.setattr(Config, "DISTRIBUTED_LOCKS", False)

    await DatabaseService.initialize(max_retries=1, retry_delay=0)
    await DatabaseService.create_tables()
    yield DatabaseService
    await DatabaseService.shutdown()


@pytest.fixture
def collected_events():
    """Subscribe to every ranking topic and collect (topic, payload) pairs."""
    from tierboard.constants import EventNames

    events = []
    for topic in (
        EventNames.PLACEMENT_COMMITTED,
        EventNames.PLACEMENT_REMOVED,
        EventNames.PLAYER_DELETED,
        EventNames.BATCH_COMPLETED,
    ):
        EventBus.subscribe(topic, lambda data, topic=topic: events.append((topic, data)))
    return events

"""Pytest configuration and fixtures."""
import os

# Keep test runs from writing logs/app.log
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from organflow.core.config import Settings
from organflow.core.exceptions import PersistenceError
from organflow.main import create_app
from organflow.schemas.ledger import LifecycleSnapshot
from organflow.services.lifecycle_manager import OrganLifecycleManager
from organflow.services.snapshot_store import SnapshotStore


class MemorySnapshotStore(SnapshotStore):
    """Keeps the last saved snapshot in memory; can be told to fail or block."""

    name = "memory"

    def __init__(self, snapshot=None):
        self.saved = snapshot
        self.save_calls = 0
        self.save_count = 0
        self.fail_saves = False
        self.gate = None

    def load_snapshot(self):
        if self.saved is None:
            return LifecycleSnapshot()
        return self.saved.model_copy(deep=True)

    def save_snapshot(self, snapshot):
        self.save_calls += 1
        if self.gate is not None:
            self.gate.wait()
        if self.fail_saves:
            raise PersistenceError("disk full")
        self.saved = snapshot
        self.save_count += 1


@pytest.fixture
def store():
    return MemorySnapshotStore()


@pytest.fixture
def manager(store):
    manager = OrganLifecycleManager(store=store, persist_timeout=2.0)
    manager.load()
    yield manager
    if store.gate is not None:
        store.gate.set()
    store.fail_saves = False
    manager.close()


@pytest.fixture
def app_settings():
    return Settings(DEBUG=True, ALLOW_RESET=True, CORS_ORIGINS="http://localhost:5173")


@pytest.fixture
def client(app_settings, manager):
    app = create_app(app_settings, manager=manager)
    return TestClient(app)


@pytest.fixture
def transferred_organ(manager):
    """Heart from donor D1, transferred to H1."""
    organ = manager.register(donor="D1", organ_type="Heart", blood_type="A+")
    return manager.transfer(organ.id, "H1")



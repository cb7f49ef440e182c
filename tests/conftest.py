"""Shared test fixtures and configuration.

Sets up fake environment variables so src.config doesn't sys.exit(),
and provides common fixtures: a temp DB, a fixed clock, an in-memory
reminder service and the wired core objects.
"""

import os

# Patch env vars BEFORE any src imports
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "fake-token-for-tests")
os.environ.setdefault("ALLOWED_USER_IDS", "12345")
os.environ.setdefault("DATABASE_PATH", "data/test_plants.db")
os.environ.setdefault("TIMEZONE", "Europe/Zurich")
os.environ.setdefault("PERENUAL_API_KEY", "")

import pytest
from datetime import datetime

from fakes import FakeReminderService, FixedClock


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_plants.db")


@pytest.fixture
def plant_db(tmp_db_path):
    """Return a PlantDB instance backed by a temp file."""
    from src.data.db import PlantDB
    return PlantDB(db_path=tmp_db_path)


@pytest.fixture
def store(plant_db):
    from src.adapters.sqlite_store import SQLiteStore
    return SQLiteStore(plant_db)


@pytest.fixture
def clock():
    """Monday 2025-03-10 09:00 in Zurich."""
    return FixedClock(datetime(2025, 3, 10, 9, 0))


@pytest.fixture
def reminders():
    return FakeReminderService()


@pytest.fixture
def reconciler(reminders, clock):
    from src.core.reminder_reconciler import ReminderReconciler
    return ReminderReconciler(reminders, clock, timeout_seconds=0.5)


@pytest.fixture
def lifecycle(store, reconciler, clock):
    from src.core.task_lifecycle import TaskLifecycleManager
    return TaskLifecycleManager(store, reconciler, clock)


@pytest.fixture
def service(store, lifecycle, reconciler, clock):
    from src.core.plant_service import PlantCareService
    return PlantCareService(store, lifecycle, reconciler, clock)

"""SQLite store adapter: implements StorePort on top of PlantDB.

Every backend failure is re-raised as StoreIOError so callers only have to
know about the port's error type.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any

from src.data.db import PlantDB
from src.data.models import NewPlant, NewTask, Plant, Task
from src.ports.store_port import StoreIOError

logger = logging.getLogger(__name__)


class SQLiteStore:
    """SQLite implementation of StorePort."""

    def __init__(self, db: PlantDB) -> None:
        self._db = db

    async def get_plants(self) -> list[Plant]:
        try:
            return self._db.list_plants()
        except sqlite3.Error as exc:
            logger.error("SQLite error loading plants: %s", exc)
            raise StoreIOError(f"Failed to load plants: {exc}") from exc

    async def get_tasks(self) -> list[Task]:
        try:
            return self._db.list_tasks()
        except sqlite3.Error as exc:
            logger.error("SQLite error loading tasks: %s", exc)
            raise StoreIOError(f"Failed to load tasks: {exc}") from exc

    async def add_plant(self, data: NewPlant) -> Plant:
        try:
            return self._db.add_plant(data)
        except sqlite3.Error as exc:
            logger.error("SQLite error adding plant '%s': %s", data.name, exc)
            raise StoreIOError(f"Failed to add plant: {exc}") from exc

    async def update_plant(self, plant_id: int, patch: dict[str, Any]) -> None:
        try:
            self._db.update_plant(plant_id, patch)
        except sqlite3.Error as exc:
            logger.error("SQLite error updating plant #%d: %s", plant_id, exc)
            raise StoreIOError(f"Failed to update plant: {exc}") from exc

    async def delete_plant(self, plant_id: int) -> None:
        try:
            self._db.delete_plant(plant_id)
        except sqlite3.Error as exc:
            logger.error("SQLite error deleting plant #%d: %s", plant_id, exc)
            raise StoreIOError(f"Failed to delete plant: {exc}") from exc

    async def add_task(self, data: NewTask) -> Task:
        try:
            return self._db.add_task(data)
        except sqlite3.Error as exc:
            logger.error("SQLite error adding task '%s': %s", data.title, exc)
            raise StoreIOError(f"Failed to add task: {exc}") from exc

    async def update_task(self, task_id: int, patch: dict[str, Any]) -> None:
        try:
            self._db.update_task(task_id, patch)
        except sqlite3.Error as exc:
            logger.error("SQLite error updating task #%d: %s", task_id, exc)
            raise StoreIOError(f"Failed to update task: {exc}") from exc

    async def delete_task(self, task_id: int) -> None:
        try:
            self._db.delete_task(task_id)
        except sqlite3.Error as exc:
            logger.error("SQLite error deleting task #%d: %s", task_id, exc)
            raise StoreIOError(f"Failed to delete task: {exc}") from exc

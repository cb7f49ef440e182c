"""
PlantCare Assistant: plant and task database.

Plants and their care tasks persist in SQLite across restarts. Completed
tasks are never deleted: they are the history the chain is built from.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Any

from src.data.models import CareBenchmark, NewPlant, NewTask, Plant, Task, TaskType

logger = logging.getLogger(__name__)

# Patchable columns per table: field name -> serializer
_PLANT_FIELDS = {
    "name": lambda v: v,
    "scientific_names": lambda v: json.dumps(list(v or [])),
    "image_uri": lambda v: v,
    "watering": lambda v: v,
    "watering_benchmark": lambda v: _benchmark_to_str(v),
    "sunlight": lambda v: json.dumps(list(v or [])),
    "description": lambda v: v or "",
    "catalog_id": lambda v: v,
}

_TASK_FIELDS = {
    "type": lambda v: TaskType(v).value,
    "title": lambda v: v,
    "due_date": lambda v: v.isoformat(),
    "interval_days": lambda v: v,
    "completed": lambda v: int(bool(v)),
    "completed_at": lambda v: v.isoformat() if v is not None else None,
    "reminder_id": lambda v: v,
}


def _benchmark_to_str(benchmark: CareBenchmark | None) -> str | None:
    if benchmark is None:
        return None
    return json.dumps({"value": benchmark.value, "unit": benchmark.unit})


def _str_to_benchmark(raw: str | None) -> CareBenchmark | None:
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, dict):
        return None
    return CareBenchmark(value=data.get("value"), unit=data.get("unit") or "days")


def _str_to_list(raw: str | None) -> list[str]:
    if not raw:
        return []
    try:
        val = json.loads(raw)
    except ValueError:
        return []
    return [str(v) for v in val] if isinstance(val, list) else []


class PlantDB:
    """SQLite-backed storage for plants and their care tasks."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from src.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        """Create the plants and tasks tables if missing, and migrate schema."""
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS plants (
                    id                 INTEGER PRIMARY KEY AUTOINCREMENT,
                    name               TEXT    NOT NULL,
                    scientific_names   TEXT    NOT NULL DEFAULT '[]',
                    image_uri          TEXT,
                    watering           TEXT,
                    watering_benchmark TEXT,
                    sunlight           TEXT    NOT NULL DEFAULT '[]',
                    description        TEXT    NOT NULL DEFAULT '',
                    created_at         TEXT    NOT NULL
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id            INTEGER PRIMARY KEY AUTOINCREMENT,
                    plant_id      INTEGER NOT NULL,
                    type          TEXT    NOT NULL DEFAULT 'Water',
                    title         TEXT    NOT NULL,
                    due_date      TEXT    NOT NULL,
                    interval_days INTEGER,
                    completed     INTEGER NOT NULL DEFAULT 0,
                    completed_at  TEXT,
                    created_at    TEXT    NOT NULL
                )
            """)
            # Migrate existing DBs: add new columns if missing
            plant_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(plants)").fetchall()
            }
            if "catalog_id" not in plant_cols:
                conn.execute("ALTER TABLE plants ADD COLUMN catalog_id INTEGER")

            task_cols = {
                row[1] for row in conn.execute("PRAGMA table_info(tasks)").fetchall()
            }
            if "reminder_id" not in task_cols:
                conn.execute("ALTER TABLE tasks ADD COLUMN reminder_id TEXT")

            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_plant ON tasks(plant_id, type)")
        logger.debug("Plants/tasks tables initialized at %s", self._db_path)

    @staticmethod
    def _row_to_plant(row: sqlite3.Row) -> Plant:
        return Plant(
            id=row["id"],
            name=row["name"],
            scientific_names=_str_to_list(row["scientific_names"]),
            image_uri=row["image_uri"],
            watering=row["watering"],
            watering_benchmark=_str_to_benchmark(row["watering_benchmark"]),
            sunlight=_str_to_list(row["sunlight"]),
            description=row["description"] or "",
            catalog_id=row["catalog_id"],
            created_at=row["created_at"],
        )

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        completed_at = row["completed_at"]
        return Task(
            id=row["id"],
            plant_id=row["plant_id"],
            type=TaskType.from_db(row["type"]),
            title=row["title"],
            due_date=datetime.fromisoformat(row["due_date"]),
            interval_days=row["interval_days"],
            completed=bool(row["completed"]),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
            reminder_id=row["reminder_id"],
            created_at=row["created_at"],
        )

    # ---- plants ----

    def add_plant(self, data: NewPlant) -> Plant:
        """Insert a new plant and return it with its generated id."""
        now = datetime.now().isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO plants
                    (name, scientific_names, image_uri, watering,
                     watering_benchmark, sunlight, description, catalog_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    data.name,
                    json.dumps(list(data.scientific_names)),
                    data.image_uri,
                    data.watering,
                    _benchmark_to_str(data.watering_benchmark),
                    json.dumps(list(data.sunlight)),
                    data.description or "",
                    data.catalog_id,
                    now,
                ),
            )
            plant_id = cursor.lastrowid

        plant = Plant(
            id=plant_id,
            name=data.name,
            scientific_names=list(data.scientific_names),
            image_uri=data.image_uri,
            watering=data.watering,
            watering_benchmark=data.watering_benchmark,
            sunlight=list(data.sunlight),
            description=data.description or "",
            catalog_id=data.catalog_id,
            created_at=now,
        )
        logger.info("Plant added: #%d '%s'", plant_id, data.name)
        return plant

    def get_plant(self, plant_id: int) -> Plant | None:
        """Fetch a single plant by ID."""
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM plants WHERE id = ?", (plant_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_plant(row)

    def list_plants(self) -> list[Plant]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM plants ORDER BY id").fetchall()
        return [self._row_to_plant(r) for r in rows]

    def update_plant(self, plant_id: int, patch: dict[str, Any]) -> bool:
        """Apply a partial update. Returns False if the plant does not exist."""
        return self._update("plants", _PLANT_FIELDS, plant_id, patch)

    def delete_plant(self, plant_id: int) -> int:
        """Delete a plant and all of its tasks. Returns the number of tasks removed."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE plant_id = ?", (plant_id,))
            removed_tasks = cursor.rowcount
            conn.execute("DELETE FROM plants WHERE id = ?", (plant_id,))
        logger.info("Plant #%d deleted with %d task(s)", plant_id, removed_tasks)
        return removed_tasks

    # ---- tasks ----

    def add_task(self, data: NewTask) -> Task:
        """Insert a new pending task and return it with its generated id."""
        now = datetime.now().isoformat()
        with self._connect() as conn:
            cursor = conn.execute(
                """
                INSERT INTO tasks
                    (plant_id, type, title, due_date, interval_days,
                     completed, completed_at, reminder_id, created_at)
                VALUES (?, ?, ?, ?, ?, 0, NULL, NULL, ?)
                """,
                (
                    data.plant_id,
                    TaskType(data.type).value,
                    data.title,
                    data.due_date.isoformat(),
                    data.interval_days,
                    now,
                ),
            )
            task_id = cursor.lastrowid

        task = Task(
            id=task_id,
            plant_id=data.plant_id,
            type=TaskType(data.type),
            title=data.title,
            due_date=data.due_date,
            interval_days=data.interval_days,
            created_at=now,
        )
        logger.debug("Task added: #%d '%s' due %s", task_id, data.title, data.due_date.isoformat())
        return task

    def get_task(self, task_id: int) -> Task | None:
        """Fetch a single task by ID."""
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    def list_tasks(self, plant_id: int | None = None, pending_only: bool = False) -> list[Task]:
        """List tasks, optionally filtered to one plant and/or pending tasks."""
        conditions: list[str] = []
        params: list = []
        if plant_id is not None:
            conditions.append("plant_id = ?")
            params.append(plant_id)
        if pending_only:
            conditions.append("completed = 0")

        query = "SELECT * FROM tasks"
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY id"

        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()

        tasks = [self._row_to_task(r) for r in rows]
        # ISO strings with different UTC offsets don't sort lexically
        tasks.sort(key=lambda t: t.due_date)
        return tasks

    def update_task(self, task_id: int, patch: dict[str, Any]) -> bool:
        """Apply a partial update. Returns False if the task does not exist."""
        return self._update("tasks", _TASK_FIELDS, task_id, patch)

    def delete_task(self, task_id: int) -> bool:
        """Permanently delete a task by ID."""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
        deleted = cursor.rowcount > 0
        if deleted:
            logger.info("Task #%d deleted", task_id)
        return deleted

    def _update(
        self,
        table: str,
        allowed: dict[str, Any],
        row_id: int,
        patch: dict[str, Any],
    ) -> bool:
        unknown = set(patch) - set(allowed)
        if unknown:
            raise ValueError(f"Unknown {table} field(s): {sorted(unknown)}")
        if not patch:
            return self._exists(table, row_id)

        fields = [f"{name} = ?" for name in patch]
        params = [allowed[name](value) for name, value in patch.items()]
        params.append(row_id)

        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE {table} SET {', '.join(fields)} WHERE id = ?", params,
            )
        return cursor.rowcount > 0

    def _exists(self, table: str, row_id: int) -> bool:
        with self._connect() as conn:
            row = conn.execute(f"SELECT 1 FROM {table} WHERE id = ?", (row_id,)).fetchone()
        return row is not None


if __name__ == "__main__":
    from datetime import timedelta

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")

    db = PlantDB(db_path="data/test_plants.db")
    plant = db.add_plant(NewPlant(name="Aloe Vera", watering_benchmark=CareBenchmark("7")))
    print(f"Added: {plant}")

    task = db.add_task(NewTask(
        plant_id=plant.id,
        type=TaskType.WATER,
        title="Water Aloe Vera",
        due_date=datetime.now() + timedelta(days=7),
        interval_days=7,
    ))
    print(f"Added: {task}")
    print(f"\nTasks: {db.list_tasks(plant_id=plant.id)}")

    db.delete_plant(plant.id)
    print(f"After delete: {db.list_plants()}")

"""
PlantCare Assistant: data models.

Plants and their care tasks persist in SQLite across restarts. Reminders
are not part of the durable model: a task only remembers the handle of its
current reminder, and the reminder service itself is treated as a
disposable projection of the task table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class TaskType(str, Enum):
    """Kind of care a task asks for. One chain per (plant, type)."""

    WATER = "Water"
    LIGHT = "Light"
    PRUNE = "Prune"
    OTHER = "Other"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskType:
        if not raw:
            return cls.OTHER
        try:
            return cls(raw)
        except ValueError:
            return cls.OTHER


@dataclass
class CareBenchmark:
    """Catalog watering benchmark, e.g. value="7-10", unit="days"."""

    value: str | int | None = None
    unit: str = "days"


@dataclass
class NewPlant:
    """Plant data as entered by the user or picked from the catalog."""

    name: str
    scientific_names: list[str] = field(default_factory=list)
    image_uri: str | None = None
    watering: str | None = None              # catalog description, e.g. "Average"
    watering_benchmark: CareBenchmark | None = None
    sunlight: list[str] = field(default_factory=list)
    description: str = ""
    catalog_id: int | None = None


@dataclass
class Plant:
    """A plant owned by the store. Deleting it deletes all of its tasks."""

    id: int
    name: str
    scientific_names: list[str] = field(default_factory=list)
    image_uri: str | None = None
    watering: str | None = None
    watering_benchmark: CareBenchmark | None = None
    sunlight: list[str] = field(default_factory=list)
    description: str = ""
    catalog_id: int | None = None
    created_at: str = ""


@dataclass
class NewTask:
    """Task data before the store assigns an id."""

    plant_id: int
    type: TaskType
    title: str
    due_date: datetime
    interval_days: int | None = None         # None = one-shot


@dataclass
class Task:
    """A single care occurrence.

    Pending -> Completed is the only transition. Completed tasks are kept
    as history and never get a live reminder.
    """

    id: int
    plant_id: int
    type: TaskType
    title: str
    due_date: datetime
    interval_days: int | None = None
    completed: bool = False
    completed_at: datetime | None = None
    reminder_id: str | None = None           # handle of the live reminder, if any
    created_at: str = ""

    @property
    def recurring(self) -> bool:
        return self.interval_days is not None


@dataclass
class ReminderContent:
    """What the platform shows, plus the payload linking back to the task."""

    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)  # {"task_id", "plant_id", "plant_name"}

    @property
    def task_id(self) -> int | None:
        return self.data.get("task_id")

    @property
    def plant_id(self) -> int | None:
        return self.data.get("plant_id")


@dataclass
class ScheduledReminder:
    """A reminder as listed by the platform reminder service."""

    handle: str
    trigger: datetime
    content: ReminderContent


@dataclass
class CatalogEntry:
    """A species record from the plant catalog (informational only)."""

    catalog_id: int
    name: str
    scientific_names: list[str] = field(default_factory=list)
    family: str | None = None
    image_url: str | None = None
    watering: str | None = None
    watering_benchmark: CareBenchmark | None = None
    sunlight: list[str] = field(default_factory=list)
    description: str = ""
    plant_type: str | None = None
    cycle: str | None = None
    care_level: str | None = None

    def to_new_plant(self, name: str | None = None) -> NewPlant:
        """Turn catalog data into plant input, optionally renamed by the user."""
        return NewPlant(
            name=(name or self.name or "").strip(),
            scientific_names=list(self.scientific_names),
            image_uri=self.image_url,
            watering=self.watering,
            watering_benchmark=self.watering_benchmark,
            sunlight=list(self.sunlight),
            description=self.description,
            catalog_id=self.catalog_id,
        )

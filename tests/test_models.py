"""Tests for src.data.models: plant, task, reminder and catalog dataclasses."""

from datetime import datetime
from zoneinfo import ZoneInfo

from src.data.models import (
    CareBenchmark,
    CatalogEntry,
    ReminderContent,
    Task,
    TaskType,
)

DUE = datetime(2025, 3, 10, 18, 0, tzinfo=ZoneInfo("Europe/Zurich"))


def test_task_defaults():
    task = Task(id=1, plant_id=2, type=TaskType.WATER, title="Water Aloe", due_date=DUE)
    assert task.completed is False
    assert task.completed_at is None
    assert task.reminder_id is None
    assert task.interval_days is None
    assert task.recurring is False


def test_task_recurring():
    task = Task(id=1, plant_id=2, type=TaskType.WATER, title="Water", due_date=DUE, interval_days=7)
    assert task.recurring is True


def test_task_type_values():
    assert TaskType.WATER.value == "Water"
    assert TaskType("Prune") is TaskType.PRUNE


def test_task_type_from_db_unknown_is_other():
    assert TaskType.from_db("Fertilize") is TaskType.OTHER
    assert TaskType.from_db(None) is TaskType.OTHER
    assert TaskType.from_db("Light") is TaskType.LIGHT


def test_reminder_content_payload():
    content = ReminderContent("t", "b", {"task_id": 4, "plant_id": 9, "plant_name": "Fern"})
    assert content.task_id == 4
    assert content.plant_id == 9
    assert ReminderContent("t", "b").task_id is None


def test_catalog_entry_to_new_plant():
    entry = CatalogEntry(
        catalog_id=728,
        name="Aloe Vera",
        scientific_names=["Aloe barbadensis"],
        image_url="https://example.com/aloe.jpg",
        watering="Minimum",
        watering_benchmark=CareBenchmark("7-10", "days"),
        sunlight=["Full sun"],
        description="Succulent.",
    )
    plant = entry.to_new_plant()
    assert plant.name == "Aloe Vera"
    assert plant.catalog_id == 728
    assert plant.image_uri == "https://example.com/aloe.jpg"
    assert plant.watering_benchmark.value == "7-10"
    assert plant.sunlight == ["Full sun"]


def test_catalog_entry_custom_name():
    entry = CatalogEntry(catalog_id=1, name="European Silver Fir")
    assert entry.to_new_plant("  Office fir ").name == "Office fir"

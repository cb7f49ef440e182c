"""
PlantCare Assistant: UI-agnostic plant service.

The one context object of the application. It is constructed once at
process start and handed to the presentation layer, and it owns all
in-memory state (through the lifecycle manager). Every UI adapter calls
this service and renders the returned records in its own way.

start() is init-once: it loads the cache from the store and runs the full
reminder rebuild exactly once per process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import time, timedelta
from typing import TYPE_CHECKING, Any

from src.core import task_queries
from src.core.due_dates import DEFAULT_REMINDER_TIME, normalize_to_reminder_time
from src.core.errors import ValidationError
from src.data.models import NewPlant, NewTask, Plant, ScheduledReminder, Task

if TYPE_CHECKING:
    from src.core.due_dates import Clock
    from src.core.reminder_reconciler import ReminderReconciler
    from src.core.task_lifecycle import CompletionResult, TaskLifecycleManager
    from src.data.models import CatalogEntry
    from src.ports.catalog_port import CatalogPort
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)


@dataclass
class PlantStats:
    plant: Plant
    pending: int
    completed: int


class PlantCareService:
    """Facade exposed to the presentation layer."""

    def __init__(
        self,
        store: StorePort,
        lifecycle: TaskLifecycleManager,
        reconciler: ReminderReconciler,
        clock: Clock,
        catalog: CatalogPort | None = None,
        upcoming_window_days: int = 3,
        reminder_time: time = DEFAULT_REMINDER_TIME,
    ) -> None:
        self._store = store
        self._lifecycle = lifecycle
        self._reconciler = reconciler
        self._clock = clock
        self._catalog = catalog
        self._upcoming_window_days = upcoming_window_days
        self._reminder_time = reminder_time
        self._started = False

    async def start(self) -> None:
        """Load state and rebuild reminders. Later calls are no-ops."""
        if self._started:
            return
        self._started = True
        await self._lifecycle.refresh_data()
        await self.resync_reminders()

    # ---- state ----

    @property
    def plants(self) -> list[Plant]:
        return list(self._lifecycle.plants)

    @property
    def tasks(self) -> list[Task]:
        return list(self._lifecycle.tasks)

    @property
    def clock(self) -> Clock:
        return self._clock

    async def refresh_data(self) -> None:
        await self._lifecycle.refresh_data()

    def get_plant(self, plant_id: int) -> Plant:
        return self._lifecycle.get_plant(plant_id)

    # ---- mutations ----

    async def add_plant(self, data: NewPlant) -> Plant:
        return await self._lifecycle.add_plant(data)

    async def update_plant(self, plant_id: int, patch: dict[str, Any]) -> Plant:
        return await self._lifecycle.update_plant(plant_id, patch)

    async def delete_plant(self, plant_id: int) -> int:
        return await self._lifecycle.delete_plant(plant_id)

    async def add_task(self, data: NewTask) -> Task:
        return await self._lifecycle.add_task(data)

    async def update_task(self, task_id: int, patch: dict[str, Any]) -> Task:
        return await self._lifecycle.update_task(task_id, patch)

    async def complete_task(self, task_id: int) -> CompletionResult:
        return await self._lifecycle.complete_task(task_id)

    # ---- views ----

    def get_tasks_for_plant(self, plant_id: int) -> list[Task]:
        return task_queries.for_plant(self._lifecycle.tasks, plant_id)

    def get_upcoming_tasks(self, window_days: int | None = None) -> list[Task]:
        if window_days is None:
            window_days = self._upcoming_window_days
        return task_queries.upcoming(self._lifecycle.tasks, self._clock, window_days)

    def get_overdue_tasks(self) -> list[Task]:
        return task_queries.overdue(self._lifecycle.tasks, self._clock)

    def get_due_today_tasks(self) -> list[Task]:
        return task_queries.due_today(self._lifecycle.tasks, self._clock)

    # ---- reminders ----

    async def resync_reminders(self) -> int:
        """Rebuild all reminders from the store, then reload the cache."""
        scheduled = await self._reconciler.reschedule_all(self._store)
        await self._lifecycle.refresh_data()
        return scheduled

    async def list_scheduled_reminders(self) -> list[ScheduledReminder]:
        reminders = await self._reconciler.list_scheduled()
        return sorted(reminders, key=lambda r: r.trigger)

    async def send_test_reminder(self) -> bool:
        """Schedule a test reminder a few seconds from now. False if not possible."""
        return await self._reconciler.schedule_test() is not None

    def get_plant_stats(self) -> list[PlantStats]:
        """Pending and completed task counts per plant, in plant order."""
        stats = []
        for plant in self._lifecycle.plants:
            tasks = [t for t in self._lifecycle.tasks if t.plant_id == plant.id]
            done = sum(1 for t in tasks if t.completed)
            stats.append(PlantStats(plant=plant, pending=len(tasks) - done, completed=done))
        return stats

    # ---- catalog passthroughs ----

    async def search_catalog(self, query: str) -> list[CatalogEntry]:
        if self._catalog is None:
            return []
        try:
            return await self._catalog.search(query)
        except Exception as exc:
            logger.warning("Catalog search failed for '%s': %s", query, exc)
            return []

    async def get_catalog_details(self, catalog_id: int) -> CatalogEntry | None:
        if self._catalog is None:
            return None
        try:
            return await self._catalog.get_details(catalog_id)
        except Exception as exc:
            logger.warning("Catalog details failed for #%s: %s", catalog_id, exc)
            return None

    async def add_plant_from_catalog(self, catalog_id: int, name: str | None = None) -> Plant:
        """Add a plant using catalog care data; falls back to a manual plant.

        Raises:
            ValidationError: no catalog data and no name to fall back on.
        """
        entry = await self.get_catalog_details(catalog_id)
        if entry is None:
            if not name:
                raise ValidationError("Plant details unavailable; please enter a name")
            logger.info("No catalog data for #%s, adding '%s' manually", catalog_id, name)
            return await self.add_plant(NewPlant(name=name))
        return await self.add_plant(entry.to_new_plant(name))

    # ---- sample data ----

    async def clear_all_data(self) -> int:
        """Delete every plant, task and reminder. Returns the number of plants removed."""
        return await self._lifecycle.clear_all()

    async def load_sample_data(self, replace: bool = False) -> bool:
        """Seed the demo plants. Returns True if seeded.

        By default the store must hold no plants. With replace=True the
        existing data is cleared first.
        """
        from src.data.sample_data import SAMPLE_EXTRA_TASKS, SAMPLE_PLANTS

        if replace:
            await self.clear_all_data()
        elif self._lifecycle.plants:
            logger.info("Sample data skipped: %d plant(s) already exist", len(self._lifecycle.plants))
            return False

        added: dict[str, Plant] = {}
        for sample in SAMPLE_PLANTS:
            plant = await self.add_plant(sample)
            added[plant.name] = plant

        today = normalize_to_reminder_time(self._clock.now(), self._reminder_time)
        for plant_name, task_type, title, interval, first_in_days in SAMPLE_EXTRA_TASKS:
            plant = added.get(plant_name)
            if plant is None:
                continue
            await self.add_task(NewTask(
                plant_id=plant.id,
                type=task_type,
                title=title,
                due_date=today + timedelta(days=first_in_days),
                interval_days=interval,
            ))
        logger.info("Sample data loaded: %d plant(s)", len(SAMPLE_PLANTS))
        return True

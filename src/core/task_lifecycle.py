"""
PlantCare Assistant: task lifecycle manager.

Owns task creation, completion and next-occurrence chaining, and mirrors
the store in an in-memory cache of plants and tasks.

Chain rule: for one plant and one task type, pending due dates are spaced
exactly interval_days apart. Completing a task appends one successor after
the latest pending task of the chain (or after the completed task if it was
the last one), never "today + interval". Late or out-of-order completions
therefore don't compress the schedule.

Write order: the store is written first and the cache only after the write
succeeded, so a StoreIOError leaves the cache as it was. Reminder work
happens last and never fails the mutation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING, Any

from src.core.due_dates import DEFAULT_REMINDER_TIME, Clock, generate_series
from src.core.errors import NotFoundError, ValidationError
from src.core.interval_parser import DEFAULT_INTERVAL_DAYS, MAX_INTERVAL_DAYS, parse_interval
from src.data.models import CareBenchmark, NewPlant, NewTask, Plant, Task, TaskType
from src.ports.store_port import StoreIOError

if TYPE_CHECKING:
    from src.core.reminder_reconciler import ReminderReconciler
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)

DEFAULT_HORIZON_DAYS = 90


@dataclass
class CompletionResult:
    """Outcome of completing a task."""

    completed: Task
    successor: Task | None = None
    reminder_scheduled: bool = False


def _check_interval(interval_days: int | None) -> None:
    if interval_days is None:
        return
    if interval_days < 1:
        raise ValidationError("Task interval must be at least 1 day")
    if interval_days > MAX_INTERVAL_DAYS:
        raise ValidationError(f"Task interval must be at most {MAX_INTERVAL_DAYS} days")


class TaskLifecycleManager:
    """Creates, completes and chains care tasks; holds the plant/task cache."""

    def __init__(
        self,
        store: StorePort,
        reconciler: ReminderReconciler,
        clock: Clock,
        horizon_days: int = DEFAULT_HORIZON_DAYS,
        default_interval_days: int = DEFAULT_INTERVAL_DAYS,
        reminder_time: time = DEFAULT_REMINDER_TIME,
    ) -> None:
        self._store = store
        self._reconciler = reconciler
        self._clock = clock
        self._horizon_days = horizon_days
        self._default_interval = default_interval_days
        self._reminder_time = reminder_time
        self.plants: list[Plant] = []
        self.tasks: list[Task] = []

    # ---- cache ----

    async def refresh_data(self) -> None:
        """Reload plants and tasks from the store into the cache."""
        plants = await self._store.get_plants()
        tasks = await self._store.get_tasks()
        self.plants = plants
        self.tasks = tasks
        logger.info("Loaded %d plant(s) and %d task(s)", len(plants), len(tasks))

    def get_plant(self, plant_id: int) -> Plant:
        for plant in self.plants:
            if plant.id == plant_id:
                return plant
        raise NotFoundError(f"Plant {plant_id} not found")

    def get_task(self, task_id: int) -> Task:
        for task in self.tasks:
            if task.id == task_id:
                return task
        raise NotFoundError(f"Task {task_id} not found")

    def _replace_task(self, updated: Task) -> None:
        self.tasks = [updated if t.id == updated.id else t for t in self.tasks]

    def _replace_plant(self, updated: Plant) -> None:
        self.plants = [updated if p.id == updated.id else p for p in self.plants]

    async def _attach_reminders(self, handles: dict[int, str]) -> None:
        """Record reminder handles on tasks. Failures are left for the next rebuild."""
        for task_id, handle in handles.items():
            try:
                await self._store.update_task(task_id, {"reminder_id": handle})
            except StoreIOError as exc:
                logger.warning("Could not record reminder for task #%d: %s", task_id, exc)
                continue
            for task in self.tasks:
                if task.id == task_id:
                    self._replace_task(replace(task, reminder_id=handle))
                    break

    # ---- plants ----

    async def add_plant(self, data: NewPlant) -> Plant:
        """Persist a plant and create its initial watering chain.

        Raises:
            ValidationError: empty name (nothing is written).
            StoreIOError: the plant could not be stored.
        """
        name = (data.name or "").strip()
        if not name:
            raise ValidationError("Plant name is required")

        plant = await self._store.add_plant(replace(data, name=name))
        self.plants = [*self.plants, plant]
        await self.create_plant_tasks(plant, data.watering_benchmark)
        return plant

    async def create_plant_tasks(
        self, plant: Plant, benchmark: CareBenchmark | None,
    ) -> list[Task]:
        """Create the plant's pending Water tasks over the horizon and schedule reminders.

        The interval comes from the benchmark (missing or unparseable -> default).
        """
        if not plant.name.strip():
            raise ValidationError("Plant name is required")

        interval = parse_interval(benchmark.value if benchmark else None, self._default_interval)
        now = self._clock.now()
        due_dates = generate_series(
            interval, self._horizon_days, anchor=now, now=now, reminder_time=self._reminder_time,
        )

        created: list[Task] = []
        for due in due_dates:
            task = await self._store.add_task(NewTask(
                plant_id=plant.id,
                type=TaskType.WATER,
                title=f"Water {plant.name}",
                due_date=due,
                interval_days=interval,
            ))
            created.append(task)
            self.tasks = [*self.tasks, task]

        logger.info(
            "Created %d Water task(s) for plant #%d '%s' every %d day(s)",
            len(created), plant.id, plant.name, interval,
        )

        handles = await self._reconciler.schedule_batch(created, plant)
        await self._attach_reminders(handles)
        return [self.get_task(t.id) for t in created]

    async def update_plant(self, plant_id: int, patch: dict[str, Any]) -> Plant:
        """Apply a partial update. A rename rebuilds the plant's reminder text."""
        plant = self.get_plant(plant_id)
        if "name" in patch:
            name = (patch["name"] or "").strip()
            if not name:
                raise ValidationError("Plant name is required")
            patch = {**patch, "name": name}

        await self._store.update_plant(plant_id, patch)
        updated = replace(plant, **patch)
        self._replace_plant(updated)

        if "name" in patch and patch["name"] != plant.name:
            await self._reconciler.cancel_for_plant(plant_id)
            pending = [t for t in self.tasks if t.plant_id == plant_id and not t.completed]
            # The old handles are gone now
            pending = [replace(t, reminder_id=None) for t in pending]
            handles = await self._reconciler.schedule_batch(pending, updated)
            await self._attach_reminders(handles)
        return updated

    async def delete_plant(self, plant_id: int) -> int:
        """Delete a plant, all its tasks and their reminders. Returns tasks removed."""
        self.get_plant(plant_id)
        await self._store.delete_plant(plant_id)

        removed = sum(1 for t in self.tasks if t.plant_id == plant_id)
        self.plants = [p for p in self.plants if p.id != plant_id]
        self.tasks = [t for t in self.tasks if t.plant_id != plant_id]

        await self._reconciler.cancel_for_plant(plant_id)
        logger.info("Plant #%d deleted with %d task(s)", plant_id, removed)
        return removed

    async def clear_all(self) -> int:
        """Delete every plant (tasks cascade) and every reminder. Returns plants removed."""
        await self._reconciler.cancel_all()
        plants = await self._store.get_plants()
        for plant in plants:
            await self._store.delete_plant(plant.id)
        await self.refresh_data()
        logger.info("All data cleared: %d plant(s) removed", len(plants))
        return len(plants)

    # ---- tasks ----

    async def add_task(self, data: NewTask) -> Task:
        """Store a manually entered task and schedule its reminder."""
        plant = self.get_plant(data.plant_id)
        if not (data.title or "").strip():
            raise ValidationError("Task title is required")
        _check_interval(data.interval_days)
        data = replace(data, due_date=self._clock.localize(data.due_date))

        task = await self._store.add_task(data)
        self.tasks = [*self.tasks, task]

        handle = await self._reconciler.schedule_for_task(task, plant)
        if handle is not None:
            await self._attach_reminders({task.id: handle})
        return self.get_task(task.id)

    async def update_task(self, task_id: int, patch: dict[str, Any]) -> Task:
        """Permissive partial update used by screens. A new due date moves the reminder."""
        task = self.get_task(task_id)
        if "type" in patch:
            patch = {**patch, "type": TaskType(patch["type"])}
        if "interval_days" in patch:
            _check_interval(patch["interval_days"])
        if patch.get("due_date") is not None:
            patch = {**patch, "due_date": self._clock.localize(patch["due_date"])}
        await self._store.update_task(task_id, patch)
        updated = replace(task, **patch)
        self._replace_task(updated)

        if updated.completed:
            if updated.reminder_id:
                await self._reconciler.cancel_for_task(updated)
                await self._clear_reminder(updated)
        elif "due_date" in patch:
            plant = self.get_plant(updated.plant_id)
            handle = await self._reconciler.schedule_for_task(updated, plant)
            if handle is not None:
                await self._attach_reminders({task_id: handle})
            elif updated.reminder_id:
                # The old trigger is stale and nothing replaced it
                await self._reconciler.cancel_for_task(updated)
                await self._clear_reminder(updated)
        return self.get_task(task_id)

    async def _clear_reminder(self, task: Task) -> None:
        try:
            await self._store.update_task(task.id, {"reminder_id": None})
        except StoreIOError as exc:
            logger.warning("Could not clear reminder for task #%d: %s", task.id, exc)
            return
        self._replace_task(replace(task, reminder_id=None))

    def next_due_date(self, task: Task) -> datetime:
        """Due date of the successor of `task`, following the chain rule."""
        others = [
            t for t in self.tasks
            if t.plant_id == task.plant_id
            and t.type == task.type
            and not t.completed
            and t.id != task.id
        ]
        anchor = max((t.due_date for t in others), default=task.due_date)
        return self._clock.localize(anchor) + timedelta(days=task.interval_days)

    async def complete_task(self, task_id: int) -> CompletionResult:
        """Mark a task completed and, if recurring, append its successor.

        The completion write and the successor write are separate: a crash
        in between leaves a completed task without successor. Completing an
        already completed task changes nothing.

        Raises:
            NotFoundError: unknown task id.
            StoreIOError: the completion or successor could not be stored.
        """
        task = self.get_task(task_id)
        if task.completed:
            logger.info("Task #%d already completed, nothing to do", task_id)
            return CompletionResult(completed=task)

        now = self._clock.now()
        await self._store.update_task(
            task_id, {"completed": True, "completed_at": now, "reminder_id": None},
        )
        completed = replace(task, completed=True, completed_at=now, reminder_id=None)
        self._replace_task(completed)
        # Completed tasks never keep a live reminder
        await self._reconciler.cancel_for_task(task)

        if not task.recurring:
            logger.info("Task #%d '%s' completed (one-shot)", task_id, task.title)
            return CompletionResult(completed=completed)

        next_due = self.next_due_date(task)
        successor = await self._store.add_task(NewTask(
            plant_id=task.plant_id,
            type=task.type,
            title=task.title,
            due_date=next_due,
            interval_days=task.interval_days,
        ))
        self.tasks = [*self.tasks, successor]
        logger.info(
            "Task #%d '%s' completed, successor #%d due %s",
            task_id, task.title, successor.id, next_due.isoformat(),
        )

        scheduled = False
        try:
            plant = self.get_plant(task.plant_id)
        except NotFoundError:
            logger.warning("Task #%d belongs to unknown plant #%d", task_id, task.plant_id)
        else:
            handle = await self._reconciler.schedule_for_task(successor, plant)
            if handle is not None:
                await self._attach_reminders({successor.id: handle})
                scheduled = True

        return CompletionResult(
            completed=completed,
            successor=self.get_task(successor.id),
            reminder_scheduled=scheduled,
        )

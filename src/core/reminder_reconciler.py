"""
PlantCare Assistant: reminder reconciler.

Keeps the platform reminder service consistent with the task store. The
store is the single source of truth; the platform's scheduled set is a
disposable projection of it that may drift (lost state, duplicates, stale
entries, revoked permission).

Reminders are best-effort: nothing in this module raises to the caller.
Permission denial, service errors and timeouts all come back as
"not scheduled" (None) and are logged.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Iterable
from datetime import datetime, time, timedelta
from typing import TYPE_CHECKING, TypeVar

from src.core.due_dates import DEFAULT_REMINDER_TIME, Clock, normalize_to_reminder_time
from src.data.models import Plant, ReminderContent, ScheduledReminder, Task, TaskType
from src.ports.store_port import StoreIOError

if TYPE_CHECKING:
    from src.ports.reminder_port import ReminderPort
    from src.ports.store_port import StorePort

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Triggers closer than this are skipped: clock skew or a same-minute add
# would otherwise fire an alert immediately.
MIN_REMINDER_LEAD = timedelta(minutes=1)
DEFAULT_TIMEOUT_SECONDS = 10.0
TEST_REMINDER_DELAY = timedelta(seconds=5)


class _ReminderCallFailed(Exception):
    """Internal: a platform call failed or timed out (already logged)."""


def build_reminder_content(task: Task, plant: Plant) -> ReminderContent:
    """Reminder text for a task, with the payload that links it back."""
    if task.type == TaskType.WATER:
        title = "💧 Time to water!"
        body = f"Your {plant.name} needs watering today."
    else:
        title = f"🌱 {task.type.value} reminder"
        body = f"{task.title} is due today."
    return ReminderContent(
        title=title,
        body=body,
        data={"task_id": task.id, "plant_id": plant.id, "plant_name": plant.name},
    )


class ReminderReconciler:
    """Maps tasks to platform reminders: schedules, cancels and rebuilds."""

    def __init__(
        self,
        reminders: ReminderPort,
        clock: Clock,
        reminder_time: time = DEFAULT_REMINDER_TIME,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        min_lead: timedelta = MIN_REMINDER_LEAD,
    ) -> None:
        self._reminders = reminders
        self._clock = clock
        self._reminder_time = reminder_time
        self._timeout = timeout_seconds
        self._min_lead = min_lead

    # ---- platform call wrapper ----

    async def _call(self, awaitable: Awaitable[T], action: str) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout)
        except asyncio.TimeoutError:
            logger.warning("Reminder service timed out during %s", action)
            raise _ReminderCallFailed(action) from None
        except Exception as exc:
            logger.error("Reminder service failed during %s: %s", action, exc)
            raise _ReminderCallFailed(action) from exc

    async def _has_permission(self) -> bool:
        try:
            granted = await self._call(self._reminders.request_permission(), "permission request")
        except _ReminderCallFailed:
            return False
        if not granted:
            logger.info("Reminder permission not granted, skipping scheduling")
        return bool(granted)

    # ---- scheduling ----

    def trigger_for(self, task: Task) -> datetime:
        """The trigger timestamp: the task's due day at the reminder slot."""
        return normalize_to_reminder_time(self._clock.localize(task.due_date), self._reminder_time)

    def _too_soon(self, trigger: datetime) -> bool:
        return trigger < self._clock.now() + self._min_lead

    async def _schedule_one(self, task: Task, plant: Plant, trigger: datetime) -> str | None:
        content = build_reminder_content(task, plant)
        try:
            handle = await self._call(
                self._reminders.schedule(content, trigger), f"schedule task #{task.id}",
            )
        except _ReminderCallFailed:
            return None
        logger.debug("Reminder %s scheduled for task #%d at %s", handle, task.id, trigger.isoformat())
        return handle

    async def schedule_for_task(self, task: Task, plant: Plant) -> str | None:
        """Schedule the reminder for one task.

        Returns the platform handle, or None when the task is not eligible
        (completed, too soon, in the past) or scheduling was not possible.
        A reminder already recorded on the task is cancelled first, so a
        task never ends up with two.
        """
        if task.completed:
            return None

        trigger = self.trigger_for(task)
        if self._too_soon(trigger):
            logger.info(
                "Reminder for task #%d not scheduled: trigger %s is in the past or too soon",
                task.id, trigger.isoformat(),
            )
            return None

        if not await self._has_permission():
            return None

        if task.reminder_id:
            await self.cancel_for_task(task)

        return await self._schedule_one(task, plant, trigger)

    async def schedule_batch(self, tasks: Iterable[Task], plant: Plant) -> dict[int, str]:
        """Schedule reminders for a batch of one plant's tasks.

        Permission is checked once for the whole batch. Returns a mapping of
        task id -> handle for the tasks that got a reminder.
        """
        eligible: list[tuple[Task, datetime]] = []
        for task in tasks:
            if task.completed:
                continue
            trigger = self.trigger_for(task)
            if self._too_soon(trigger):
                continue
            eligible.append((task, trigger))

        if not eligible or not await self._has_permission():
            return {}

        handles: dict[int, str] = {}
        for task, trigger in eligible:
            if task.reminder_id:
                await self.cancel_for_task(task)
            handle = await self._schedule_one(task, plant, trigger)
            if handle is not None:
                handles[task.id] = handle

        logger.info(
            "Scheduled %d/%d reminder(s) for plant #%d '%s'",
            len(handles), len(eligible), plant.id, plant.name,
        )
        return handles

    async def schedule_test(self, delay: timedelta = TEST_REMINDER_DELAY) -> str | None:
        """Schedule a one-off reminder not tied to any task, to check delivery."""
        if not await self._has_permission():
            return None
        content = ReminderContent(
            title="🔔 Test reminder",
            body="Reminders are working. Your plants will be looked after.",
            data={"test": True},
        )
        trigger = self._clock.now() + delay
        try:
            handle = await self._call(self._reminders.schedule(content, trigger), "schedule test")
        except _ReminderCallFailed:
            return None
        logger.info("Test reminder %s scheduled at %s", handle, trigger.isoformat())
        return handle

    # ---- cancelling ----

    async def cancel_for_task(self, task: Task) -> bool:
        """Cancel the reminder recorded on a task. Returns True if a cancel was sent."""
        if not task.reminder_id:
            return False
        try:
            await self._call(self._reminders.cancel(task.reminder_id), f"cancel task #{task.id}")
        except _ReminderCallFailed:
            return False
        return True

    async def cancel_for_plant(self, plant_id: int) -> int:
        """Cancel every scheduled reminder whose payload names this plant.

        Scans the platform's list rather than trusting stored handles, so
        reminders orphaned by earlier failures are caught too. Returns the
        number cancelled.
        """
        scheduled = await self.list_scheduled()
        cancelled = 0
        for reminder in scheduled:
            if reminder.content.plant_id != plant_id:
                continue
            try:
                await self._call(self._reminders.cancel(reminder.handle), f"cancel {reminder.handle}")
            except _ReminderCallFailed:
                continue
            cancelled += 1
        logger.info("Cancelled %d reminder(s) for plant #%d", cancelled, plant_id)
        return cancelled

    async def cancel_all(self) -> bool:
        """Drop every reminder on the platform. Returns False if the call failed."""
        try:
            await self._call(self._reminders.cancel_all(), "cancel all")
        except _ReminderCallFailed:
            return False
        return True

    async def list_scheduled(self) -> list[ScheduledReminder]:
        """The platform's current scheduled set, or [] if it can't be listed."""
        try:
            return list(await self._call(self._reminders.list_scheduled(), "list scheduled"))
        except _ReminderCallFailed:
            return []

    # ---- full reconciliation ----

    async def reschedule_all(self, store: StorePort) -> int:
        """Cancel every platform reminder, then rebuild the set from the store.

        Idempotent and safe to run repeatedly or after a crash: this is the
        repair path for any drift between tasks and reminders. Handles are
        written back to the tasks. Returns the number of reminders scheduled.
        """
        if not await self.cancel_all():
            logger.warning("Could not clear reminders; rebuilding anyway")

        try:
            tasks = await store.get_tasks()
            plants = {p.id: p for p in await store.get_plants()}
        except StoreIOError as exc:
            logger.error("Reminder rebuild aborted, store unavailable: %s", exc)
            return 0

        pending = [t for t in tasks if not t.completed and t.due_date is not None]
        permitted = await self._has_permission() if pending else False

        scheduled = 0
        for task in pending:
            plant = plants.get(task.plant_id)
            handle: str | None = None
            if permitted and plant is not None:
                trigger = self.trigger_for(task)
                if not self._too_soon(trigger):
                    handle = await self._schedule_one(task, plant, trigger)
            if handle is not None:
                scheduled += 1
            if handle != task.reminder_id:
                await self._record_handle(store, task, handle)

        # Completed tasks must not point at a reminder
        for task in tasks:
            if task.completed and task.reminder_id:
                await self._record_handle(store, task, None)

        logger.info("Reminders rebuilt: %d scheduled for %d pending task(s)", scheduled, len(pending))
        return scheduled

    @staticmethod
    async def _record_handle(store: StorePort, task: Task, handle: str | None) -> None:
        try:
            await store.update_task(task.id, {"reminder_id": handle})
        except StoreIOError as exc:
            # Next rebuild fixes it
            logger.warning("Could not record reminder for task #%d: %s", task.id, exc)

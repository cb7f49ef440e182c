"""Test doubles: a settable clock and an in-memory reminder service."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta

from src.core.due_dates import Clock
from src.data.models import ReminderContent, ScheduledReminder
from src.ports.reminder_port import ReminderServiceError


class FixedClock(Clock):
    """Clock frozen at a given local time. Naive datetimes are taken as local."""

    def __init__(self, now: datetime, tz: str = "Europe/Zurich") -> None:
        super().__init__(tz)
        self.set(now)

    def now(self) -> datetime:
        return self._now

    def set(self, now: datetime) -> None:
        self._now = self.localize(now)

    def advance(self, **kwargs) -> None:
        self._now = self._now + timedelta(**kwargs)


class FakeReminderService:
    """In-memory ReminderPort that records every call."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted
        self.scheduled: dict[str, ScheduledReminder] = {}
        self.cancelled: list[str] = []
        self.permission_requests = 0
        self.cancel_all_calls = 0
        self.fail_schedule = False
        self.fail_list = False
        self.schedule_delay = 0.0
        self._counter = 0

    async def request_permission(self) -> bool:
        self.permission_requests += 1
        return self.granted

    async def schedule(self, content: ReminderContent, trigger: datetime) -> str:
        if self.schedule_delay:
            await asyncio.sleep(self.schedule_delay)
        if self.fail_schedule:
            raise ReminderServiceError("platform unavailable")
        return self.inject(content, trigger)

    async def cancel(self, handle: str) -> None:
        self.cancelled.append(handle)
        self.scheduled.pop(handle, None)

    async def cancel_all(self) -> None:
        self.cancel_all_calls += 1
        self.scheduled.clear()

    async def list_scheduled(self) -> list[ScheduledReminder]:
        if self.fail_list:
            raise ReminderServiceError("platform unavailable")
        return list(self.scheduled.values())

    def inject(self, content: ReminderContent, trigger: datetime) -> str:
        """Add a reminder directly, e.g. an orphan or a duplicate."""
        self._counter += 1
        handle = f"fake-{self._counter}"
        self.scheduled[handle] = ScheduledReminder(handle, trigger, content)
        return handle

    def for_task(self, task_id: int) -> list[ScheduledReminder]:
        return [r for r in self.scheduled.values() if r.content.task_id == task_id]

    def for_plant(self, plant_id: int) -> list[ScheduledReminder]:
        return [r for r in self.scheduled.values() if r.content.plant_id == plant_id]

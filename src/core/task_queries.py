"""Task query layer: pure derived views over the task list.

Every view excludes completed tasks and compares at day granularity:
"now" is cut to the start of the local day so hour drift can't push a
task across a day boundary.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import timedelta

from src.core.due_dates import Clock
from src.data.models import Task

# Longer upcoming windows are clamped to this
MAX_WINDOW_DAYS = 365


def _pending(tasks: Iterable[Task]) -> list[Task]:
    return [t for t in tasks if not t.completed]


def _by_due_date(tasks: list[Task]) -> list[Task]:
    return sorted(tasks, key=lambda t: t.due_date)


def upcoming(tasks: Iterable[Task], clock: Clock, window_days: int = 3) -> list[Task]:
    """Pending tasks due from the start of today through the end of today + window_days."""
    window_days = max(0, min(window_days, MAX_WINDOW_DAYS))
    start = clock.start_of_today()
    end = start + timedelta(days=window_days + 1)
    return _by_due_date([t for t in _pending(tasks) if start <= t.due_date < end])


def overdue(tasks: Iterable[Task], clock: Clock) -> list[Task]:
    """Pending tasks due strictly before the start of today."""
    start = clock.start_of_today()
    return _by_due_date([t for t in _pending(tasks) if t.due_date < start])


def due_today(tasks: Iterable[Task], clock: Clock) -> list[Task]:
    """Pending tasks whose due date falls on today's local calendar day."""
    today = clock.now().date()
    return _by_due_date([
        t for t in _pending(tasks)
        if clock.localize(t.due_date).date() == today
    ])


def for_plant(tasks: Iterable[Task], plant_id: int) -> list[Task]:
    """All pending tasks of one plant, earliest first."""
    return _by_due_date([t for t in _pending(tasks) if t.plant_id == plant_id])

"""Reminder port: abstract interface for the platform reminder service.

The service schedules time-triggered alerts. The core treats it as an
unreliable external system whose state may drift, not as a calendar.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from src.data.models import ReminderContent, ScheduledReminder


class ReminderServiceError(Exception):
    """Raised when the reminder service fails to schedule, cancel or list."""


class PermissionDeniedError(ReminderServiceError):
    """Raised when the platform refuses to deliver reminders."""


class ReminderPort(Protocol):
    """Abstract reminder interface used by the reconciler."""

    async def request_permission(self) -> bool: ...

    async def schedule(self, content: ReminderContent, trigger: datetime) -> str: ...

    async def cancel(self, handle: str) -> None: ...

    async def cancel_all(self) -> None: ...

    async def list_scheduled(self) -> list[ScheduledReminder]: ...

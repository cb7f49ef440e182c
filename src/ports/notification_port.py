"""Notification port: abstract interface for sending messages to users.

Reminder jobs depend on this protocol, never on a specific messaging provider.
"""

from __future__ import annotations

from typing import Protocol


class NotificationPort(Protocol):
    """Abstract notification interface used to deliver fired reminders."""

    async def send_message(self, user_id: int, text: str) -> None: ...

"""JobQueue reminder adapter: implements ReminderPort on the bot's job queue.

Each reminder is a one-off job named "reminder:<hex>" carrying its
ReminderContent as job data. When it fires, the text is delivered to every
allowed chat through the NotificationPort.

The job queue lives in memory, so the scheduled set is lost on restart.
That is expected: the store is authoritative and the reminder set is
rebuilt from it on startup.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from telegram.ext import ContextTypes, JobQueue

from src.data.models import ReminderContent, ScheduledReminder
from src.ports.reminder_port import PermissionDeniedError, ReminderServiceError

if TYPE_CHECKING:
    from src.ports.notification_port import NotificationPort

logger = logging.getLogger(__name__)

JOB_PREFIX = "reminder:"


def format_reminder(content: ReminderContent) -> str:
    """Message text for a fired reminder."""
    return f"{content.title}\n{content.body}"


class JobQueueReminderService:
    """python-telegram-bot JobQueue implementation of ReminderPort."""

    def __init__(
        self,
        job_queue: JobQueue,
        notifier: NotificationPort,
        chat_ids: list[int],
    ) -> None:
        self._job_queue = job_queue
        self._notifier = notifier
        self._chat_ids = list(chat_ids)

    async def request_permission(self) -> bool:
        # Nobody to notify means nothing may be scheduled
        return bool(self._chat_ids)

    async def schedule(self, content: ReminderContent, trigger: datetime) -> str:
        if not self._chat_ids:
            raise PermissionDeniedError("No allowed chats to deliver reminders to")
        handle = f"{JOB_PREFIX}{uuid.uuid4().hex}"
        try:
            self._job_queue.run_once(self._fire, when=trigger, data=content, name=handle)
        except Exception as exc:
            raise ReminderServiceError(f"Could not schedule reminder: {exc}") from exc
        return handle

    async def cancel(self, handle: str) -> None:
        try:
            for job in self._job_queue.get_jobs_by_name(handle):
                job.schedule_removal()
        except Exception as exc:
            raise ReminderServiceError(f"Could not cancel {handle}: {exc}") from exc

    async def cancel_all(self) -> None:
        removed = 0
        try:
            for job in self._job_queue.jobs():
                if job.name and job.name.startswith(JOB_PREFIX):
                    job.schedule_removal()
                    removed += 1
        except Exception as exc:
            raise ReminderServiceError(f"Could not cancel reminders: {exc}") from exc
        logger.info("Removed %d reminder job(s)", removed)

    async def list_scheduled(self) -> list[ScheduledReminder]:
        try:
            jobs = self._job_queue.jobs()
        except Exception as exc:
            raise ReminderServiceError(f"Could not list reminders: {exc}") from exc
        return [
            ScheduledReminder(handle=job.name, trigger=job.next_t, content=job.data)
            for job in jobs
            if job.name
            and job.name.startswith(JOB_PREFIX)
            and not job.removed
            and isinstance(job.data, ReminderContent)
        ]

    async def _fire(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        """Job callback: deliver the reminder to every recipient."""
        content: ReminderContent = context.job.data
        text = format_reminder(content)
        for chat_id in self._chat_ids:
            try:
                await self._notifier.send_message(chat_id, text)
            except Exception as exc:
                logger.error("Reminder %s not delivered to %d: %s", context.job.name, chat_id, exc)
        logger.info("Reminder fired for task #%s", content.task_id)

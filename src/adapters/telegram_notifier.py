"""Telegram notification adapter: implements NotificationPort.

Wraps a telegram.Bot instance to deliver fired plant care reminders.
"""

from __future__ import annotations

import logging

from telegram import Bot
from telegram.error import TelegramError

logger = logging.getLogger(__name__)


class TelegramNotifier:
    """Telegram implementation of NotificationPort."""

    def __init__(self, bot: Bot) -> None:
        self._bot = bot

    async def send_message(self, user_id: int, text: str) -> None:
        try:
            await self._bot.send_message(chat_id=user_id, text=text)
        except TelegramError as exc:
            logger.error("Failed to deliver reminder to %d: %s", user_id, exc)
            raise

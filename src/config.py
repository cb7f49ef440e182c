"""
PlantCare Assistant: centralized configuration.

Loads all settings from .env and validates required keys.
This module is the foundation for every other module in the project.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel, field_validator

# Load .env from project root (two levels up from src/config.py)
_ENV_PATH = Path(__file__).resolve().parent.parent / ".env"
load_dotenv(_ENV_PATH)


class Settings(BaseModel):
    """Application settings loaded from environment variables."""

    # Telegram (presentation layer + reminder delivery)
    TELEGRAM_BOT_TOKEN: str

    # Security: also the list of reminder recipients
    ALLOWED_USER_IDS: list[int] = []

    # SQLite
    DATABASE_PATH: str = "data/plants.db"

    # Reminder slot: every reminder fires at this local time of day
    TIMEZONE: str = "Europe/Zurich"
    REMINDER_HOUR: int = 18
    REMINDER_MINUTE: int = 0
    REMINDER_TIMEOUT_SECONDS: int = 10

    # Task generation
    TASK_HORIZON_DAYS: int = 90
    DEFAULT_INTERVAL_DAYS: int = 7
    UPCOMING_WINDOW_DAYS: int = 3

    # Perenual plant catalog (optional: empty key disables lookups)
    PERENUAL_API_KEY: str = ""
    PERENUAL_API_URL: str = "https://perenual.com/api"

    @field_validator("ALLOWED_USER_IDS", mode="before")
    @classmethod
    def parse_user_ids(cls, v: str | list[int]) -> list[int]:
        if isinstance(v, list):
            return v
        if isinstance(v, str) and v.strip():
            return [int(uid.strip()) for uid in v.split(",") if uid.strip()]
        return []

    @field_validator(
        "REMINDER_HOUR",
        "REMINDER_MINUTE",
        "REMINDER_TIMEOUT_SECONDS",
        "TASK_HORIZON_DAYS",
        "DEFAULT_INTERVAL_DAYS",
        "UPCOMING_WINDOW_DAYS",
        mode="before",
    )
    @classmethod
    def parse_int(cls, v: str | int) -> int:
        return int(v)

    @field_validator("REMINDER_HOUR")
    @classmethod
    def check_hour(cls, v: int) -> int:
        if not 0 <= v <= 23:
            raise ValueError(f"REMINDER_HOUR out of range: {v}")
        return v

    @field_validator("REMINDER_MINUTE")
    @classmethod
    def check_minute(cls, v: int) -> int:
        if not 0 <= v <= 59:
            raise ValueError(f"REMINDER_MINUTE out of range: {v}")
        return v


def _load_settings() -> Settings:
    """Load settings from environment, validating required keys."""
    token = os.getenv("TELEGRAM_BOT_TOKEN", "")

    if not token or token.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    return Settings(
        TELEGRAM_BOT_TOKEN=token,
        ALLOWED_USER_IDS=os.getenv("ALLOWED_USER_IDS", ""),
        DATABASE_PATH=os.getenv("DATABASE_PATH", "data/plants.db"),
        TIMEZONE=os.getenv("TIMEZONE", "Europe/Zurich"),
        REMINDER_HOUR=os.getenv("REMINDER_HOUR", "18"),
        REMINDER_MINUTE=os.getenv("REMINDER_MINUTE", "0"),
        REMINDER_TIMEOUT_SECONDS=os.getenv("REMINDER_TIMEOUT_SECONDS", "10"),
        TASK_HORIZON_DAYS=os.getenv("TASK_HORIZON_DAYS", "90"),
        DEFAULT_INTERVAL_DAYS=os.getenv("DEFAULT_INTERVAL_DAYS", "7"),
        UPCOMING_WINDOW_DAYS=os.getenv("UPCOMING_WINDOW_DAYS", "3"),
        PERENUAL_API_KEY=os.getenv("PERENUAL_API_KEY", ""),
        PERENUAL_API_URL=os.getenv("PERENUAL_API_URL", "https://perenual.com/api"),
    )


# Singleton, imported by all other modules as:
#   from src.config import settings
settings = _load_settings()

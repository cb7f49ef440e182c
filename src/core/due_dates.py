"""Due-date generator: pure business logic.

Produces a bounded, restartable series of due dates for a recurring task.
Every date is normalized to one fixed reminder slot (18:00 local by
default) so that all reminders of a plant share one daily time, no matter
when the plant was added or how often the chain was regenerated.

No I/O and no hidden wall-clock reads: "now" comes from an injected Clock.
"""

from __future__ import annotations

import math
from datetime import datetime, time, timedelta, tzinfo
from zoneinfo import ZoneInfo

DEFAULT_REMINDER_TIME = time(18, 0)
# A first date closer than this to "now" is rolled to the next day, so the
# reminder service never gets a trigger it would reject as already past.
MIN_GENERATION_LEAD = timedelta(minutes=2)


class Clock:
    """System clock bound to the configured local time zone.

    Tests substitute a subclass with a fixed now().
    """

    def __init__(self, tz: tzinfo | str = "UTC") -> None:
        self.tz = ZoneInfo(tz) if isinstance(tz, str) else tz

    def now(self) -> datetime:
        return datetime.now(self.tz)

    def localize(self, dt: datetime) -> datetime:
        """Express a timestamp in the local zone (naive input is taken as local)."""
        if dt.tzinfo is None:
            return dt.replace(tzinfo=self.tz)
        return dt.astimezone(self.tz)

    def start_of_today(self) -> datetime:
        return start_of_day(self.now())


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def normalize_to_reminder_time(
    dt: datetime, reminder_time: time = DEFAULT_REMINDER_TIME,
) -> datetime:
    """Move a timestamp to the reminder slot of the same calendar day."""
    return dt.replace(
        hour=reminder_time.hour,
        minute=reminder_time.minute,
        second=0,
        microsecond=0,
    )


def first_anchor(
    anchor: datetime,
    now: datetime | None = None,
    reminder_time: time = DEFAULT_REMINDER_TIME,
    min_lead: timedelta = MIN_GENERATION_LEAD,
) -> datetime:
    """Normalize the anchor, rolling forward one day if it is too close to now.

    Args:
        anchor: Usually "now"; only its calendar day matters after normalization.
        now: Reference time for the lead check. Defaults to the anchor itself.
        reminder_time: Local time-of-day slot.
        min_lead: Minimum distance between now and the first date.
    """
    if now is None:
        now = anchor
    first = normalize_to_reminder_time(anchor, reminder_time)
    if first <= now + min_lead:
        first += timedelta(days=1)
    return first


def generate_series(
    interval_days: int,
    horizon_days: int,
    anchor: datetime,
    now: datetime | None = None,
    reminder_time: time = DEFAULT_REMINDER_TIME,
    min_lead: timedelta = MIN_GENERATION_LEAD,
) -> list[datetime]:
    """Return ceil(horizon_days / interval_days) due dates, interval_days apart.

    The same arguments always give the same list.

    Raises:
        ValueError: if interval_days < 1.
    """
    if interval_days < 1:
        raise ValueError(f"interval_days must be >= 1, got {interval_days}")
    if horizon_days <= 0:
        return []

    count = math.ceil(horizon_days / interval_days)
    first = first_anchor(anchor, now, reminder_time, min_lead)
    step = timedelta(days=interval_days)
    return [first + step * i for i in range(count)]

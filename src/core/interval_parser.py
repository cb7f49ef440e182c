"""Watering interval parser: pure business logic.

Turns a free-form catalog benchmark value ("7", "7-10", 5, None) into a
usable day interval. Total: never raises, always returns a value in
[1, MAX_INTERVAL_DAYS].
"""

from __future__ import annotations

import logging
import math
import re

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_DAYS = 7
# Ten years. Longer intervals are treated as garbage input
MAX_INTERVAL_DAYS = 3650

_LEADING_INT = re.compile(r"^\s*[+-]?\d+")


def _leading_int(text: str) -> int | None:
    """Parse the leading integer of a string, like a lenient int() would."""
    match = _LEADING_INT.match(text)
    if match is None:
        return None
    return int(match.group())


def parse_interval(raw: object, default: int = DEFAULT_INTERVAL_DAYS) -> int:
    """Extract an integer day interval from a benchmark value.

    Args:
        raw: None, a number, or a string such as "7" or "7-10".
        default: Returned for missing, unparseable, non-positive or
            oversized input.

    Returns:
        Days in [1, MAX_INTERVAL_DAYS]. For a "min-max" range the lower bound is used.
    """
    if raw is None or raw == "" or isinstance(raw, bool):
        return default

    if isinstance(raw, (int, float)):
        if not math.isfinite(raw) or raw < 1 or raw > MAX_INTERVAL_DAYS:
            return default
        return int(raw)

    if not isinstance(raw, str):
        logger.debug("Unsupported interval value %r, using %d", raw, default)
        return default

    text = raw.strip().strip('"')
    if "-" in text[1:]:
        # "7-10" -> "7"; a leading sign is not a range separator
        text = text[0] + text[1:].split("-", 1)[0]

    value = _leading_int(text)
    if value is None or value < 1 or value > MAX_INTERVAL_DAYS:
        return default
    return value

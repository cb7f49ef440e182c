"""Domain errors raised by the core before any mutation happens."""

from __future__ import annotations


class ValidationError(Exception):
    """Raised on bad input (e.g. an empty plant name)."""


class NotFoundError(Exception):
    """Raised when an operation references an unknown plant or task id."""

"""Catalog port: abstract interface for plant species lookup.

Catalog data is informational input only. Implementations degrade to
"no data" rather than blocking plant creation.
"""

from __future__ import annotations

from typing import Protocol

from src.data.models import CatalogEntry


class CatalogError(Exception):
    """Raised when a catalog request fails or returns an unusable body."""


class CatalogPort(Protocol):
    """Abstract catalog interface used by the plant service."""

    async def search(self, query: str, page: int = 1) -> list[CatalogEntry]: ...

    async def get_details(self, catalog_id: int) -> CatalogEntry | None: ...

"""Perenual plant catalog: species search and care details.

Uses the species-list endpoint to search by common name and the
species/details endpoint for watering, sunlight and description data.

Gracefully degrades: returns [] or None on any failure (no API key,
timeout, invalid response, etc.). Catalog data is informational only and
must never block adding a plant.
"""

from __future__ import annotations

import logging

import httpx

from src.data.models import CareBenchmark, CatalogEntry
from src.ports.catalog_port import CatalogError

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 5
# Species ids at or above this are not available on the free tier
MAX_FREE_TIER_ID = 3000
_DEFAULT_BENCHMARK = CareBenchmark(value="7", unit="days")


def _image_url(raw: dict) -> str | None:
    image = raw.get("default_image") or {}
    return image.get("thumbnail") or image.get("small_url")


def _as_list(value: object) -> list[str]:
    if isinstance(value, list):
        return [str(v) for v in value]
    if value:
        return [str(value)]
    return []


def _parse_benchmark(raw: dict | None) -> CareBenchmark:
    if not raw:
        return CareBenchmark(_DEFAULT_BENCHMARK.value, _DEFAULT_BENCHMARK.unit)
    value = raw.get("value")
    if isinstance(value, str):
        value = value.replace('"', "")
    return CareBenchmark(
        value=value or _DEFAULT_BENCHMARK.value,
        unit=raw.get("unit") or "days",
    )


class PerenualCatalog:
    """Perenual implementation of CatalogPort."""

    def __init__(self, api_key: str, base_url: str = "https://perenual.com/api") -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")

    async def _get(self, path: str, params: dict) -> dict:
        """GET a catalog endpoint and return the decoded JSON body."""
        try:
            async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
                resp = await client.get(
                    f"{self._base_url}/{path}", params={**params, "key": self._api_key},
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise CatalogError(str(exc)) from exc
        if not isinstance(data, dict):
            raise CatalogError(f"Unexpected response from {path}")
        return data

    async def search(self, query: str, page: int = 1) -> list[CatalogEntry]:
        """Search species by name. Free-tier ids only; [] on any failure."""
        if not query or not query.strip() or not self._api_key:
            return []

        try:
            data = await self._get("species-list", {"q": query.strip(), "page": page})
        except CatalogError as exc:
            logger.warning("Perenual search failed for '%s': %s", query, exc)
            return []

        entries: list[CatalogEntry] = []
        for raw in data.get("data") or []:
            catalog_id = raw.get("id")
            if not isinstance(catalog_id, int) or catalog_id >= MAX_FREE_TIER_ID:
                continue
            entries.append(CatalogEntry(
                catalog_id=catalog_id,
                name=raw.get("common_name") or "",
                scientific_names=_as_list(raw.get("scientific_name")),
                family=raw.get("family"),
                image_url=_image_url(raw),
            ))

        logger.info("Perenual search '%s': %d result(s)", query, len(entries))
        return entries

    async def get_details(self, catalog_id: int) -> CatalogEntry | None:
        """Fetch care details for one species, or None on any failure."""
        if not catalog_id or catalog_id <= 0 or catalog_id >= MAX_FREE_TIER_ID:
            logger.info("Catalog id %s not available on the free tier", catalog_id)
            return None
        if not self._api_key:
            return None

        try:
            data = await self._get(f"species/details/{catalog_id}", {})
        except CatalogError as exc:
            logger.warning("Perenual details failed for #%s: %s", catalog_id, exc)
            return None

        return CatalogEntry(
            catalog_id=data.get("id", catalog_id),
            name=data.get("common_name") or "",
            scientific_names=_as_list(data.get("scientific_name")),
            family=data.get("family"),
            image_url=_image_url(data),
            watering=data.get("watering"),
            watering_benchmark=_parse_benchmark(data.get("watering_general_benchmark")),
            sunlight=_as_list(data.get("sunlight")),
            description=data.get("description") or "",
            plant_type=data.get("type"),
            cycle=data.get("cycle"),
            care_level=data.get("care_level"),
        )

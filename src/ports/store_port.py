"""Store port: abstract interface for durable plant and task records.

Core modules depend on this protocol, never on a specific backend.
"""

from __future__ import annotations

from typing import Any, Protocol

from src.data.models import NewPlant, NewTask, Plant, Task


class StoreIOError(Exception):
    """Raised when any persistence operation fails."""


class StorePort(Protocol):
    """Abstract key-value store of plants and tasks (CRUD, no transactions)."""

    async def get_plants(self) -> list[Plant]: ...

    async def get_tasks(self) -> list[Task]: ...

    async def add_plant(self, data: NewPlant) -> Plant: ...

    async def update_plant(self, plant_id: int, patch: dict[str, Any]) -> None: ...

    async def delete_plant(self, plant_id: int) -> None: ...

    async def add_task(self, data: NewTask) -> Task: ...

    async def update_task(self, task_id: int, patch: dict[str, Any]) -> None: ...

    async def delete_task(self, task_id: int) -> None: ...

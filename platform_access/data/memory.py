"""In-process data client for local development and tests."""

from __future__ import annotations

import asyncio
import copy
from typing import Any

from platform_access.data.client import StorageDataClient
from platform_access.data.entities import Entity
from platform_access.data.filters import matches
from platform_access.errors import DuplicateRecordError, WriteConflictError


class InMemoryDataClient(StorageDataClient):
    """Stores rows per entity type in insertion order."""

    def __init__(self) -> None:
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        self._lock = asyncio.Lock()

    def _table(self, entity: type[Entity]) -> dict[str, dict[str, Any]]:
        return self._tables.setdefault(entity.entity_name, {})

    async def _select(
        self,
        entity: type[Entity],
        where: dict[str, Any],
        *,
        limit: int | None = None,
        offset: int = 0,
        order_by: tuple[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        async with self._lock:
            rows = [copy.deepcopy(r) for r in self._table(entity).values() if matches(r, where)]

        if order_by is not None:
            field_name, direction = order_by
            rows.sort(key=lambda r: (r.get(field_name) is None, r.get(field_name)))
            if direction.lower() == "desc":
                rows.reverse()

        rows = rows[offset:]
        if limit is not None:
            rows = rows[:limit]
        return rows

    async def _insert(self, entity: type[Entity], row: dict[str, Any]) -> None:
        async with self._lock:
            table = self._table(entity)
            if row["id"] in table:
                raise DuplicateRecordError(f"{entity.entity_name} {row['id']} already exists")
            table[row["id"]] = copy.deepcopy(row)

    async def _replace(
        self, entity: type[Entity], row: dict[str, Any], expected: dict[str, Any]
    ) -> None:
        async with self._lock:
            table = self._table(entity)
            if table.get(row["id"]) != expected:
                raise WriteConflictError(f"{entity.entity_name} {row['id']} changed")
            table[row["id"]] = copy.deepcopy(row)

    async def _remove(self, entity: type[Entity], row: dict[str, Any]) -> None:
        async with self._lock:
            self._table(entity).pop(row["id"], None)

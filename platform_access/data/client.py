"""Generic data client interface and the storage-agnostic operation semantics."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import UTC, datetime
from typing import Any, TypeVar

from platform_access.data.entities import Entity
from platform_access.data.operations import DataOperation, OperationKind
from platform_access.errors import RecordNotFoundError, WriteConflictError
from platform_access.logger import get_logger

logger = get_logger(__name__)

E = TypeVar("E", bound=Entity)

# Re-reads allowed when concurrent writers keep replacing the same row.
_WRITE_ATTEMPTS = 5


class DataClient(ABC):
    """Executes `DataOperation`s. The convenience methods all funnel into `execute`."""

    @abstractmethod
    async def execute(self, operation: DataOperation) -> Any:
        """Run one operation and return its result."""

    async def find_many(
        self,
        entity: type[E],
        where: dict[str, Any] | None = None,
        *,
        limit: int | None = None,
        offset: int = 0,
        order_by: tuple[str, str] | None = None,
    ) -> list[E]:
        return await self.execute(
            DataOperation(
                OperationKind.FIND_MANY,
                entity,
                where=where or {},
                limit=limit,
                offset=offset,
                order_by=order_by,
            )
        )

    async def find_first(
        self,
        entity: type[E],
        where: dict[str, Any] | None = None,
        *,
        order_by: tuple[str, str] | None = None,
    ) -> E | None:
        return await self.execute(
            DataOperation(OperationKind.FIND_FIRST, entity, where=where or {}, order_by=order_by)
        )

    async def find_unique(self, entity: type[E], where: dict[str, Any]) -> E | None:
        return await self.execute(DataOperation(OperationKind.FIND_UNIQUE, entity, where=where))

    async def count(self, entity: type[Entity], where: dict[str, Any] | None = None) -> int:
        return await self.execute(DataOperation(OperationKind.COUNT, entity, where=where or {}))

    async def create(self, entity: type[E], data: dict[str, Any]) -> E:
        return await self.execute(DataOperation(OperationKind.CREATE, entity, data=data))

    async def update(self, entity: type[E], where: dict[str, Any], data: dict[str, Any]) -> E:
        return await self.execute(
            DataOperation(OperationKind.UPDATE, entity, where=where, data=data)
        )

    async def update_many(
        self, entity: type[Entity], where: dict[str, Any], data: dict[str, Any]
    ) -> int:
        return await self.execute(
            DataOperation(OperationKind.UPDATE_MANY, entity, where=where, data=data)
        )

    async def delete(self, entity: type[E], where: dict[str, Any]) -> E:
        return await self.execute(DataOperation(OperationKind.DELETE, entity, where=where))

    async def delete_many(self, entity: type[Entity], where: dict[str, Any]) -> int:
        return await self.execute(DataOperation(OperationKind.DELETE_MANY, entity, where=where))


class StorageDataClient(DataClient):
    """Implements operation semantics on top of four storage primitives.

    Backends supply `_select`, `_insert`, `_replace` and `_remove` (and may override
    `_count`); rows cross this boundary as JSON-compatible dicts. `_replace` is a
    compare-and-swap against the row as it was read, so an update only ever lands on
    a row that still matches its filter.
    """

    async def execute(self, operation: DataOperation) -> Any:
        handler = getattr(self, f"_op_{operation.kind.value}")
        return await handler(operation)

    # Storage primitives

    @abstractmethod
    async def _select(
        self,
        entity: type[Entity],
        where: dict[str, Any],
        *,
        limit: int | None = None,
        offset: int = 0,
        order_by: tuple[str, str] | None = None,
    ) -> list[dict[str, Any]]: ...

    @abstractmethod
    async def _insert(self, entity: type[Entity], row: dict[str, Any]) -> None: ...

    @abstractmethod
    async def _replace(
        self, entity: type[Entity], row: dict[str, Any], expected: dict[str, Any]
    ) -> None:
        """Store `row` unless the stored copy no longer equals `expected`.

        Raises WriteConflictError when it does not, including when the row is gone.
        """

    @abstractmethod
    async def _remove(self, entity: type[Entity], row: dict[str, Any]) -> None: ...

    async def _count(self, entity: type[Entity], where: dict[str, Any]) -> int:
        return len(await self._select(entity, where))

    # Operation semantics

    async def _op_find_many(self, op: DataOperation) -> list[Entity]:
        rows = await self._select(
            op.entity, op.where, limit=op.limit, offset=op.offset, order_by=op.order_by
        )
        return [op.entity.model_validate(row) for row in rows]

    async def _op_find_first(self, op: DataOperation) -> Entity | None:
        rows = await self._select(op.entity, op.where, limit=1, order_by=op.order_by)
        return op.entity.model_validate(rows[0]) if rows else None

    async def _op_find_unique(self, op: DataOperation) -> Entity | None:
        rows = await self._select(op.entity, op.where, limit=1)
        return op.entity.model_validate(rows[0]) if rows else None

    async def _op_count(self, op: DataOperation) -> int:
        return await self._count(op.entity, op.where)

    async def _op_create(self, op: DataOperation) -> Entity:
        record = op.entity.model_validate(op.data)
        await self._insert(op.entity, record.model_dump(mode="json"))
        return record

    async def _op_update(self, op: DataOperation) -> Entity:
        rows = await self._select(op.entity, op.where, limit=1)
        if not rows:
            raise RecordNotFoundError(f"No {op.entity.entity_name} matches the update filter")
        record = await self._update_row(op, rows[0])
        if record is None:
            raise RecordNotFoundError(f"No {op.entity.entity_name} matches the update filter")
        return record

    async def _op_update_many(self, op: DataOperation) -> int:
        updated = 0
        for row in await self._select(op.entity, op.where):
            if await self._update_row(op, row) is not None:
                updated += 1
        return updated

    async def _op_delete(self, op: DataOperation) -> Entity:
        rows = await self._select(op.entity, op.where, limit=1)
        if not rows:
            raise RecordNotFoundError(f"No {op.entity.entity_name} matches the delete filter")
        await self._remove(op.entity, rows[0])
        return op.entity.model_validate(rows[0])

    async def _op_delete_many(self, op: DataOperation) -> int:
        rows = await self._select(op.entity, op.where)
        for row in rows:
            await self._remove(op.entity, row)
        return len(rows)

    async def _apply_update(self, op: DataOperation, row: dict[str, Any]) -> Entity:
        # id is the storage key and never changes.
        changes = {k: v for k, v in op.data.items() if k != "id"}
        record = op.entity.model_validate({**row, **changes, "updated_at": datetime.now(UTC)})
        await self._replace(op.entity, record.model_dump(mode="json"), row)
        return record

    async def _update_row(self, op: DataOperation, row: dict[str, Any]) -> Entity | None:
        """Apply `op.data` to `row`; None once the row no longer matches `op.where`."""
        for _ in range(_WRITE_ATTEMPTS):
            try:
                return await self._apply_update(op, row)
            except WriteConflictError:
                logger.debug("write_conflict_retry", entity=op.entity.entity_name, id=row["id"])
            rows = await self._select(op.entity, {**op.where, "id": row["id"]}, limit=1)
            if not rows:
                return None
            row = rows[0]
        raise WriteConflictError(f"{op.entity.entity_name} {row['id']} kept changing")

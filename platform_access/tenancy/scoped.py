"""Tenant-bound wrapper around a data client.

Every read, count, update and delete against a tenant-scoped entity type has the bound
tenant id merged into its filter, so a handler cannot reach another tenant's rows even
if it forgets to filter. Creates are passed through: callers stamp `tenant_id` on the
payload themselves.
"""

from collections.abc import Callable
from dataclasses import replace

from platform_access.data.client import DataClient
from platform_access.data.entities import is_tenant_scoped
from platform_access.data.operations import DataOperation, OperationKind

ScopePolicy = Callable[[DataOperation, str], DataOperation]


def _bind_filter(operation: DataOperation, tenant_id: str) -> DataOperation:
    # The bound id wins over any caller-supplied tenant_id.
    return replace(operation, where={**operation.where, "tenant_id": tenant_id})


def _pass_through(operation: DataOperation, tenant_id: str) -> DataOperation:
    return operation


SCOPE_POLICIES: dict[OperationKind, ScopePolicy] = {
    OperationKind.FIND_MANY: _bind_filter,
    OperationKind.FIND_FIRST: _bind_filter,
    OperationKind.FIND_UNIQUE: _bind_filter,
    OperationKind.COUNT: _bind_filter,
    OperationKind.CREATE: _pass_through,
    OperationKind.UPDATE: _bind_filter,
    OperationKind.UPDATE_MANY: _bind_filter,
    OperationKind.DELETE: _bind_filter,
    OperationKind.DELETE_MANY: _bind_filter,
}

_missing = set(OperationKind) - set(SCOPE_POLICIES)
if _missing:
    raise RuntimeError(f"No tenant scope policy for operation kinds: {sorted(_missing)}")


class ScopedDataAccess(DataClient):
    """DataClient bound to one tenant for the lifetime of a request."""

    def __init__(self, base: DataClient, tenant_id: str) -> None:
        self._base = base
        self._tenant_id = tenant_id

    @property
    def tenant_id(self) -> str:
        return self._tenant_id

    def scope(self, operation: DataOperation) -> DataOperation:
        if not is_tenant_scoped(operation.entity):
            return operation
        return SCOPE_POLICIES[operation.kind](operation, self._tenant_id)

    async def execute(self, operation: DataOperation):
        return await self._base.execute(self.scope(operation))

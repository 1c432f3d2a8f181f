"""Data access layer."""

from platform_access.data.client import DataClient
from platform_access.data.memory import InMemoryDataClient
from platform_access.data.operations import DataOperation, OperationKind

__all__ = ["DataClient", "DataOperation", "InMemoryDataClient", "OperationKind"]

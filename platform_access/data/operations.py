"""Data operations understood by every data client."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from platform_access.data.entities import Entity


class OperationKind(str, Enum):
    """Closed set of operation kinds a data client executes."""

    FIND_MANY = "find_many"
    FIND_FIRST = "find_first"
    FIND_UNIQUE = "find_unique"
    COUNT = "count"
    CREATE = "create"
    UPDATE = "update"
    UPDATE_MANY = "update_many"
    DELETE = "delete"
    DELETE_MANY = "delete_many"


@dataclass(frozen=True)
class DataOperation:
    """A single request against a data client.

    `where` uses a small filter grammar shared by all backends:
      {"field": value}               equality
      {"field": {"in": [a, b]}}      membership
      {"field": {"not": value}}      inequality
    Conditions are combined with AND.
    """

    kind: OperationKind
    entity: type[Entity]
    where: dict[str, Any] = field(default_factory=dict)
    data: dict[str, Any] = field(default_factory=dict)
    limit: int | None = None
    offset: int = 0
    order_by: tuple[str, str] | None = None  # (field, "asc" | "desc")

"""Evaluation of the shared filter grammar against JSON rows."""

from enum import Enum
from typing import Any


def to_storage_value(value: Any) -> Any:
    """Normalize a filter operand to the form rows are stored in."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list | tuple | set | frozenset):
        return [to_storage_value(v) for v in value]
    return value


def matches(row: dict[str, Any], where: dict[str, Any]) -> bool:
    """Return True when the row satisfies every condition in `where`."""
    for field_name, condition in where.items():
        value = row.get(field_name)
        if isinstance(condition, dict):
            for operator, operand in condition.items():
                operand = to_storage_value(operand)
                if operator == "in":
                    if value not in operand:
                        return False
                elif operator == "not":
                    if value == operand:
                        return False
                else:
                    raise ValueError(f"Unsupported filter operator: {operator!r}")
        elif value != to_storage_value(condition):
            return False
    return True

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, List, Mapping, Optional

import strawberry
from strawberry import UNSET

from ..errors import ValidationError
from .descriptors import ColumnDescriptor, TableDescriptor


class _DirectionEnum(Enum):
    asc = "asc"
    desc = "desc"


OrderDirection = strawberry.enum(_DirectionEnum, name="OrderDirection")  # type: ignore


@strawberry.input(name="InnerOrder", description="Sort direction and priority of one column; lower priority sorts first")
class InnerOrder:
    direction: OrderDirection  # type: ignore[valid-type]
    priority: Optional[int] = UNSET


@dataclass(frozen=True)
class OrderClause:
    column: ColumnDescriptor
    direction: str
    priority: Optional[int] = None

    def to_sql(self):
        col = self.column.sa_column
        return col.desc() if self.direction == 'desc' else col.asc()


def _direction_of(raw: Any) -> str:
    if isinstance(raw, Enum):
        raw = raw.value
    d = str(raw).lower() if raw is not None else ''
    if d not in ('asc', 'desc'):
        raise ValidationError(f"Invalid direction '{raw}'. Must be 'asc' or 'desc'")
    return d


def _priority_of(key: str, raw: Any) -> Optional[int]:
    if raw is None or (isinstance(raw, int) and not isinstance(raw, bool)):
        return raw
    # Literal priorities on nested relation fields arrive as strings
    if isinstance(raw, str):
        try:
            return int(raw.strip())
        except ValueError:
            pass
    raise ValidationError(f"Invalid priority for column '{key}': {raw!r}")


def _entry_get(entry: Any, key: str) -> Any:
    if isinstance(entry, Mapping):
        return entry.get(key)
    value = getattr(entry, key, None)
    return None if value is UNSET else value


class OrderCompiler:
    """Compile ``{column: {direction, priority}}`` into ordered clauses.

    Clauses sort by ascending priority; entries without a priority come last
    and ties keep column declaration order.
    """

    def compile(self, table: TableDescriptor, order_by: Optional[Mapping[str, Any]]) -> List[OrderClause]:
        if not order_by:
            return []
        clauses: List[OrderClause] = []
        for key, entry in order_by.items():
            if entry is None:
                continue
            column = table.column_for(key)
            if column is None:
                raise ValidationError(f"Unknown column in orderBy for table '{table.name}': {key}")
            direction = _direction_of(_entry_get(entry, 'direction'))
            clauses.append(OrderClause(column, direction, _priority_of(key, _entry_get(entry, 'priority'))))
        clauses.sort(key=lambda c: (c.priority is None, c.priority or 0, table.column_index(c.column.name)))
        return clauses


__all__ = ['OrderDirection', 'InnerOrder', 'OrderClause', 'OrderCompiler']

"""Bidirectional value conversion between wire and storage representations.

``to_wire`` turns values read from the database into GraphQL-safe values;
``from_wire`` turns request values into what the relational layer expects.
Both directions are keyed by type tag and extensible independently.
"""
from __future__ import annotations

import json
from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Iterable, Mapping, Optional
from uuid import UUID

from ..errors import RegistryFrozenError, RemapError, ValidationError
from .descriptors import ColumnDescriptor, TableDescriptor
from .type_registry import enum_member_name

Converter = Callable[[Any, ColumnDescriptor], Any]

_INT64_MIN = -(2 ** 63)
_INT64_MAX = 2 ** 63 - 1


def _label(column: ColumnDescriptor) -> str:
    return f"{column.table}.{column.name}"


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        raise TypeError("binary values cannot be embedded in JSON")
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


# ----- to wire -----

def _temporal_to_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return str(value)


def _date_to_wire(value: Any, column: ColumnDescriptor) -> Any:
    # Date columns carry no time of day; datetimes are truncated.
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _binary_to_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, str):
        return list(value.encode('utf-8'))
    return list(bytes(value))


def _json_to_wire(value: Any, column: ColumnDescriptor) -> Any:
    try:
        return json.dumps(value, separators=(',', ':'), default=_json_default)
    except TypeError as exc:
        raise RemapError(f"Cannot serialize JSON in field '{_label(column)}': {exc}", column=_label(column)) from exc


def _geometry_to_wire(value: Any, column: ColumnDescriptor, mode: str) -> Any:
    if isinstance(value, Mapping):
        x, y = value['x'], value['y']
    elif isinstance(value, (list, tuple)):
        x, y = value[0], value[1]
    else:
        x, y = getattr(value, 'x'), getattr(value, 'y')
    if mode == 'tuple':
        return [float(x), float(y)]
    return {'x': float(x), 'y': float(y)}


def _enum_to_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, Enum):
        values = column.enum_values or ()
        if value.name in values:
            return value.name
        return value.value
    return value


# ----- from wire -----

def _parse_temporal(kind: type, value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, kind):
        return value
    if not isinstance(value, str):
        raise RemapError(f"Invalid {kind.__name__} value for field '{_label(column)}': {value!r}", column=_label(column))
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        return kind.fromisoformat(text)
    except ValueError:
        raise RemapError(f"Invalid {kind.__name__} value for field '{_label(column)}': {value!r}", column=_label(column)) from None


def _date_from_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, str) and 'T' in value:
        return _parse_temporal(datetime, value, column).date()
    return _parse_temporal(date, value, column)


def _bigint_from_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, bool):
        raise RemapError(f"Invalid BigInt value for field '{_label(column)}': {value!r}", column=_label(column))
    try:
        number = int(value) if not isinstance(value, str) else int(value.strip(), 10)
    except (TypeError, ValueError):
        raise RemapError(f"Invalid BigInt value for field '{_label(column)}': {value!r}", column=_label(column)) from None
    if not _INT64_MIN <= number <= _INT64_MAX:
        raise RemapError(f"BigInt value out of range for field '{_label(column)}': {value!r}", column=_label(column))
    return number


def _decimal_from_wire(value: Any, column: ColumnDescriptor) -> Any:
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise RemapError(f"Invalid Decimal value for field '{_label(column)}': {value!r}", column=_label(column)) from None
    if not number.is_finite():
        raise RemapError(f"Invalid Decimal value for field '{_label(column)}': {value!r}", column=_label(column))
    return number


def _binary_from_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return bytes(list(value))
    except (TypeError, ValueError):
        raise RemapError(
            f"Buffer values for field '{_label(column)}' must be integers between 0 and 255",
            column=_label(column),
        ) from None


def _json_from_wire(value: Any, column: ColumnDescriptor) -> Any:
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except ValueError:
        raise RemapError(f"Invalid JSON in field '{_label(column)}'", column=_label(column)) from None


def _uuid_from_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise RemapError(f"Invalid UUID value for field '{_label(column)}': {value!r}", column=_label(column)) from None


def _enum_from_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, Enum):
        value = value.value
    values = column.enum_values or ()
    if not values or value in values:
        return value
    for i, stored in enumerate(values):
        if enum_member_name(stored, i) == value:
            return stored
    raise RemapError(
        f"Invalid value for field '{_label(column)}': {value!r} (expected one of {', '.join(values)})",
        column=_label(column),
    )


def _integer_from_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise RemapError(f"Invalid Int value for field '{_label(column)}': {value!r}", column=_label(column)) from None
    return value


def _float_from_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError:
            raise RemapError(f"Invalid Float value for field '{_label(column)}': {value!r}", column=_label(column)) from None
    return value


def _geometry_from_wire(value: Any, column: ColumnDescriptor) -> Any:
    if isinstance(value, Mapping):
        return (float(value['x']), float(value['y']))
    if isinstance(value, (list, tuple)) and len(value) == 2:
        return (float(value[0]), float(value[1]))
    if hasattr(value, 'x') and hasattr(value, 'y'):
        return (float(value.x), float(value.y))
    raise RemapError(f"Invalid geometry value for field '{_label(column)}': {value!r}", column=_label(column))


class ValueRemapper:
    """Per-value converters keyed by column type or type tag."""

    def __init__(self, geometry_mode: str = 'xy'):
        self.geometry_mode = geometry_mode
        self._to_wire: Dict[str, Converter] = {}
        self._from_wire: Dict[str, Converter] = {}
        self._frozen = False
        self._builtin_to_wire: Dict[str, Converter] = {
            'timestamp': _temporal_to_wire,
            'time': _temporal_to_wire,
            'date': _date_to_wire,
            'bigint': lambda v, c: str(v),
            'decimal': lambda v, c: str(v),
            'uuid': lambda v, c: str(v),
            'binary': _binary_to_wire,
            'json': _json_to_wire,
            'array': self._array_to_wire,
            'vector': lambda v, c: [float(x) for x in v],
            'geometry': lambda v, c: _geometry_to_wire(v, c, c.options.get('mode') or self.geometry_mode),
            'enum': _enum_to_wire,
            'text': _enum_to_wire,
        }
        self._builtin_from_wire: Dict[str, Converter] = {
            'timestamp': lambda v, c: _parse_temporal(datetime, v, c),
            'time': lambda v, c: _parse_temporal(time, v, c),
            'date': _date_from_wire,
            'bigint': _bigint_from_wire,
            'decimal': _decimal_from_wire,
            'uuid': _uuid_from_wire,
            'binary': _binary_from_wire,
            'json': _json_from_wire,
            'array': self._array_from_wire,
            'vector': lambda v, c: [float(x) for x in v],
            'geometry': _geometry_from_wire,
            'enum': _enum_from_wire,
            'text': lambda v, c: _enum_from_wire(v, c) if c.enum_values else v,
            'integer': _integer_from_wire,
            'float': _float_from_wire,
        }

    # ----- registration -----
    def register_to_wire(self, tag: str, fn: Converter) -> None:
        self._check_frozen()
        self._to_wire[tag] = fn

    def register_from_wire(self, tag: str, fn: Converter) -> None:
        self._check_frozen()
        self._from_wire[tag] = fn

    def _check_frozen(self) -> None:
        if self._frozen:
            raise RegistryFrozenError("Value remapper is frozen; register converters before building the schema")

    def freeze(self) -> None:
        self._frozen = True

    @staticmethod
    def _lookup(column: ColumnDescriptor, *tables: Dict[str, Converter]) -> Optional[Converter]:
        for table in tables:
            fn = table.get(column.column_type) or table.get(column.type_tag)
            if fn is not None:
                return fn
        return None

    # ----- conversion -----
    def to_wire(self, value: Any, column: ColumnDescriptor) -> Any:
        if value is None:
            return None
        fn = self._lookup(column, self._to_wire, self._builtin_to_wire)
        return fn(value, column) if fn is not None else value

    def from_wire(self, value: Any, column: ColumnDescriptor) -> Any:
        if value is None:
            return None
        fn = self._lookup(column, self._from_wire, self._builtin_from_wire)
        return fn(value, column) if fn is not None else value

    def _array_to_wire(self, value: Any, column: ColumnDescriptor) -> Any:
        item = column.item or column
        return [self.to_wire(v, item) for v in value]

    def _array_from_wire(self, value: Any, column: ColumnDescriptor) -> Any:
        if not isinstance(value, (list, tuple)):
            raise RemapError(f"Expected a list for field '{_label(column)}'", column=_label(column))
        item = column.item or column
        return [self.from_wire(v, item) for v in value]

    # ----- rows -----
    def row_to_wire(
        self,
        table: TableDescriptor,
        row: Mapping[str, Any],
        columns: Optional[Iterable[str]] = None,
    ) -> Dict[str, Any]:
        """Remap a flat storage row; keys not naming a column are dropped."""
        out: Dict[str, Any] = {}
        for name in (columns if columns is not None else table.columns.keys()):
            column = table.columns.get(name)
            if column is None or name not in row:
                continue
            out[name] = self.to_wire(row[name], column)
        return out

    def input_row_from_wire(self, table: TableDescriptor, row: Mapping[str, Any]) -> Dict[str, Any]:
        """Convert one insert/update input object to storage values.

        Explicit nulls on NOT NULL columns are dropped so that the column
        default (or the existing value, for updates) applies.
        """
        out: Dict[str, Any] = {}
        for key, value in row.items():
            column = table.column_for(key)
            if column is None:
                raise ValidationError(f"Unknown column: {key}")
            if value is None and not column.nullable:
                continue
            out[column.name] = self.from_wire(value, column)
        return out


__all__ = ['ValueRemapper', 'Converter']

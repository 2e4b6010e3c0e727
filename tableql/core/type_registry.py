"""Mapping from column type tags to Strawberry annotations.

Resolution order for a column is: a factory registered for its concrete
column type, then one registered for its type tag, then the built-in mapping.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

import strawberry

from ..errors import RegistryFrozenError, SchemaBuildError
from ..naming import is_graphql_name, pascal_case
from .descriptors import ColumnDescriptor


@dataclass(frozen=True)
class ConvertedColumn:
    type: Any
    description: Optional[str] = None


TypeFactory = Callable[[ColumnDescriptor, bool], ConvertedColumn]

# Built-in scalar tags whose descriptions add nothing over the GraphQL type name.
_QUIET_TAGS = {'text', 'boolean', 'integer', 'float'}


@strawberry.type(name='GeometryXY', description='Geometry point with x and y coordinates')
class GeometryXY:
    @strawberry.field
    def x(self) -> float:
        return _coord(self, 'x', 0)

    @strawberry.field
    def y(self) -> float:
        return _coord(self, 'y', 1)


@strawberry.input(name='GeometryXYInput', description='Geometry point with x and y coordinates')
class GeometryXYInput:
    x: float
    y: float


def _coord(root: Any, key: str, index: int) -> float:
    if isinstance(root, dict):
        return float(root[key])
    if isinstance(root, (list, tuple)):
        return float(root[index])
    return float(getattr(root, key))


def enum_member_name(value: str, index: int) -> str:
    """GraphQL-safe member name for a stored enum value."""
    return value if is_graphql_name(value) else f"Option{index}"


def enum_type_name(column: ColumnDescriptor) -> str:
    return f"{pascal_case(column.table)}{pascal_case(column.name)}Enum"


class TypeRegistry:
    """Resolve columns to Strawberry type annotations.

    Factories receive the column descriptor and whether the input variant is
    requested, and return a :class:`ConvertedColumn`.
    """

    def __init__(self, geometry_mode: str = 'xy'):
        self._factories: Dict[str, TypeFactory] = {}
        self._frozen = False
        self.geometry_mode = geometry_mode
        self._enum_cache: Dict[Tuple[str, Tuple[str, ...]], Any] = {}
        self._builtins: Dict[str, TypeFactory] = {
            'integer': lambda c, i: ConvertedColumn(int),
            'float': lambda c, i: ConvertedColumn(float),
            'bigint': lambda c, i: ConvertedColumn(str, 'BigInt'),
            'decimal': lambda c, i: ConvertedColumn(str, 'Decimal'),
            'text': self._text,
            'enum': self._enum,
            'boolean': lambda c, i: ConvertedColumn(bool),
            'timestamp': lambda c, i: ConvertedColumn(str, 'Date'),
            'date': lambda c, i: ConvertedColumn(str, 'Date'),
            'time': lambda c, i: ConvertedColumn(str, 'Time'),
            'uuid': lambda c, i: ConvertedColumn(str, 'UUID'),
            'binary': lambda c, i: ConvertedColumn(List[int], 'Buffer'),
            'json': lambda c, i: ConvertedColumn(str, 'JSON'),
            'array': self._array,
            'vector': lambda c, i: ConvertedColumn(List[float], 'Vector'),
            'geometry': self._geometry,
        }

    # ----- registration -----
    def register(self, tag: str, factory: TypeFactory) -> None:
        """Register ``factory`` for a type tag or a concrete column type name."""
        if self._frozen:
            raise RegistryFrozenError("Type registry is frozen; register types before building the schema")
        self._factories[tag] = factory

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    # ----- resolution -----
    def resolve(self, column: ColumnDescriptor, is_input: bool = False) -> ConvertedColumn:
        factory = (
            self._factories.get(column.column_type)
            or self._factories.get(column.type_tag)
            or self._builtins.get(column.type_tag)
        )
        if factory is None:
            raise SchemaBuildError(
                f"No GraphQL type registered for column '{column.table}.{column.name}' "
                f"(type '{column.column_type}', tag '{column.type_tag}')"
            )
        converted = factory(column, is_input)
        if not isinstance(converted, ConvertedColumn):
            converted = ConvertedColumn(converted)
        return converted

    def annotate(
        self,
        column: ColumnDescriptor,
        *,
        is_input: bool = False,
        force_nullable: bool = False,
        default_is_nullable: bool = False,
    ) -> ConvertedColumn:
        """Resolve ``column`` and apply nullability.

        The result is non-null only for NOT NULL columns that are neither
        forced nullable nor (when ``default_is_nullable``) backed by a default.
        """
        converted = self.resolve(column, is_input)
        nullable = force_nullable or column.nullable or (default_is_nullable and column.has_default)
        ann = Optional[converted.type] if nullable else converted.type
        description = None if column.type_tag in _QUIET_TAGS else converted.description
        if column.description:
            description = f"{description}: {column.description}" if description else column.description
        return ConvertedColumn(ann, description)

    # ----- built-ins -----
    def _text(self, column: ColumnDescriptor, is_input: bool) -> ConvertedColumn:
        if column.enum_values:
            return self._enum(column, is_input)
        return ConvertedColumn(str)

    def _enum(self, column: ColumnDescriptor, is_input: bool) -> ConvertedColumn:
        values = tuple(column.enum_values or ())
        if not values:
            return ConvertedColumn(str)
        name = enum_type_name(column)
        key = (name, values)
        st_enum = self._enum_cache.get(key)
        if st_enum is None:
            members = {enum_member_name(v, i): v for i, v in enumerate(values)}
            py_enum = Enum(name, members)  # type: ignore[misc]
            st_enum = strawberry.enum(py_enum, name=name)  # type: ignore
            self._enum_cache[key] = st_enum
        return ConvertedColumn(st_enum, f"Enum: {', '.join(values)}")

    def _array(self, column: ColumnDescriptor, is_input: bool) -> ConvertedColumn:
        if column.item is None:
            raise SchemaBuildError(f"Array column '{column.table}.{column.name}' has no item type")
        inner = self.resolve(column.item, is_input)
        desc = f"Array<{inner.description}>" if inner.description else 'Array'
        return ConvertedColumn(List[inner.type], desc)

    def _geometry(self, column: ColumnDescriptor, is_input: bool) -> ConvertedColumn:
        mode = column.options.get('mode') or self.geometry_mode
        if mode == 'tuple':
            return ConvertedColumn(List[float], 'Geometry as [x, y]')
        return ConvertedColumn(GeometryXYInput if is_input else GeometryXY, 'Geometry as {x, y}')


__all__ = [
    'TypeRegistry',
    'ConvertedColumn',
    'GeometryXY',
    'GeometryXYInput',
    'enum_member_name',
    'enum_type_name',
]

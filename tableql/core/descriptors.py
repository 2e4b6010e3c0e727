"""Static table, column and relation descriptors.

Descriptors are derived once from SQLAlchemy ORM metadata and never mutated
afterwards. Everything downstream (type generation, filter compilation,
execution) works from descriptors rather than from ORM classes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import RelationshipDirection, configure_mappers
from sqlalchemy.orm.exc import UnmappedColumnError
from sqlalchemy.types import (
    ARRAY,
    JSON,
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Enum as SAEnum,
    Float,
    Integer,
    LargeBinary,
    Numeric,
    String,
    Time,
    TypeDecorator,
    Uuid,
)

from ..errors import SchemaBuildError
from ..naming import pascal_case, snake_to_camel

_logger = logging.getLogger("tableql")

RELATION_ONE = 'one'
RELATION_MANY = 'many'


@dataclass(frozen=True)
class ColumnDescriptor:
    """Immutable description of one table column."""

    name: str
    table: str
    type_tag: str
    column_type: str
    nullable: bool = True
    has_default: bool = False
    primary_key: bool = False
    enum_values: Optional[Tuple[str, ...]] = None
    item: Optional["ColumnDescriptor"] = None
    options: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)
    description: Optional[str] = None
    sa_column: Any = field(default=None, compare=False, hash=False, repr=False)

    @property
    def field_name(self) -> str:
        return snake_to_camel(self.name)

    @property
    def is_required_on_insert(self) -> bool:
        return not self.nullable and not self.has_default


@dataclass(frozen=True)
class RelationDescriptor:
    """A traversable edge from ``source`` to ``target`` over join-key pairs."""

    name: str
    kind: str
    source: str
    target: str
    pairs: Tuple[Tuple[str, str], ...]
    description: Optional[str] = None

    @property
    def field_name(self) -> str:
        return snake_to_camel(self.name)

    @property
    def is_many(self) -> bool:
        return self.kind == RELATION_MANY

    @property
    def local_keys(self) -> Tuple[str, ...]:
        return tuple(p[0] for p in self.pairs)

    @property
    def remote_keys(self) -> Tuple[str, ...]:
        return tuple(p[1] for p in self.pairs)


@dataclass
class TableDescriptor:
    name: str
    columns: Dict[str, ColumnDescriptor]
    relations: Dict[str, RelationDescriptor] = field(default_factory=dict)
    description: Optional[str] = None
    sa_table: Any = field(default=None, repr=False)

    def __post_init__(self):
        if not self.columns:
            raise SchemaBuildError(f"Table '{self.name}' declares no columns")
        self._by_field = {c.field_name: c for c in self.columns.values()}
        self._index = {k: i for i, k in enumerate(self.columns)}

    @property
    def field_name(self) -> str:
        """Lower camel name used for the collection query field."""
        return snake_to_camel(self.name)

    @property
    def type_name(self) -> str:
        """Upper camel name used as the prefix of every generated type."""
        return pascal_case(self.name)

    def column_for(self, key: str) -> Optional[ColumnDescriptor]:
        """Lookup by attribute key or GraphQL field name."""
        col = self.columns.get(key)
        if col is None:
            col = self._by_field.get(key)
        return col

    def relation_for(self, key: str) -> Optional[RelationDescriptor]:
        rel = self.relations.get(key)
        if rel is None:
            for candidate in self.relations.values():
                if candidate.field_name == key:
                    return candidate
        return rel

    def column_index(self, name: str) -> int:
        return self._index[name]

    @property
    def primary_key(self) -> List[ColumnDescriptor]:
        return [c for c in self.columns.values() if c.primary_key]


@dataclass
class SchemaCatalog:
    """Ordered collection of table descriptors keyed by table name."""

    tables: Dict[str, TableDescriptor]

    def __iter__(self):
        return iter(self.tables.values())

    def __len__(self) -> int:
        return len(self.tables)

    def table(self, name: str) -> TableDescriptor:
        try:
            return self.tables[name]
        except KeyError:
            raise SchemaBuildError(f"Unknown table '{name}'") from None


# --- Type classification -------------------------------------------------

# Ordered: subclasses must come before their bases.
_STANDARD_TAGS: List[Tuple[type, str]] = [
    (SAEnum, 'enum'),
    (Boolean, 'boolean'),
    (BigInteger, 'bigint'),
    (Integer, 'integer'),
    (Float, 'float'),
    (Numeric, 'decimal'),
    (DateTime, 'timestamp'),
    (Date, 'date'),
    (Time, 'time'),
    (Uuid, 'uuid'),
    (String, 'text'),
    (LargeBinary, 'binary'),
    (JSON, 'json'),
    (ARRAY, 'array'),
]

_NAMED_TAGS = (('vector', 'vector'), ('geometry', 'geometry'))


def classify_type(sa_type: Any, adapter: Any = None) -> str:
    """Return the type tag for a SQLAlchemy type instance.

    Dialect adapters are consulted first; unknown types yield their lowercased
    class name, which only compiles when a custom type is registered for it.
    """
    if adapter is not None:
        tag = adapter.classify(sa_type)
        if tag:
            return tag
    if isinstance(sa_type, TypeDecorator):
        impl = getattr(sa_type, 'impl_instance', None) or sa_type.impl
        return classify_type(impl, adapter)
    cls_name = type(sa_type).__name__.lower()
    for needle, tag in _NAMED_TAGS:
        if needle in cls_name:
            return tag
    for sa_cls, tag in _STANDARD_TAGS:
        if isinstance(sa_type, sa_cls):
            return tag
    return cls_name


def _column_has_default(column: Any) -> bool:
    if column.default is not None or column.server_default is not None:
        return True
    table = column.table
    # Single integer primary keys autoincrement unless told otherwise.
    if column.primary_key and len(table.primary_key.columns) == 1:
        if column.autoincrement is True:
            return True
        if column.autoincrement == 'auto' and classify_type(column.type) in ('integer', 'bigint'):
            return True
    return False


def _describe_column(key: str, column: Any, adapter: Any) -> ColumnDescriptor:
    sa_type = column.type
    tag = classify_type(sa_type, adapter)
    enum_values = None
    item = None
    if tag == 'enum':
        enum_values = tuple(str(v) for v in getattr(sa_type, 'enums', ()) or ())
    elif tag == 'array':
        item_type = getattr(sa_type, 'item_type', None)
        if item_type is None:
            raise SchemaBuildError(f"Array column '{column.table.name}.{key}' has no item type")
        item_tag = classify_type(item_type, adapter)
        item = ColumnDescriptor(
            name=key,
            table=column.table.name,
            type_tag=item_tag,
            column_type=type(item_type).__name__,
            nullable=False,
            enum_values=tuple(str(v) for v in getattr(item_type, 'enums', ()) or ()) if item_tag == 'enum' else None,
            options=dict(column.info or {}),
        )
    return ColumnDescriptor(
        name=key,
        table=column.table.name,
        type_tag=tag,
        column_type=type(sa_type).__name__,
        nullable=bool(column.nullable),
        has_default=_column_has_default(column),
        primary_key=bool(column.primary_key),
        enum_values=enum_values,
        item=item,
        options=dict(column.info or {}),
        description=column.comment,
        sa_column=column,
    )


def _mappers_of(models: Any) -> List[Any]:
    registry = getattr(models, 'registry', None)
    metadata = getattr(models, 'metadata', None)
    if registry is not None and metadata is not None and hasattr(registry, 'mappers'):
        order = {name: i for i, name in enumerate(metadata.tables)}
        mappers = [m for m in registry.mappers if getattr(m, 'local_table', None) is not None]
        return sorted(mappers, key=lambda m: order.get(m.local_table.name, len(order)))
    if isinstance(models, Iterable):
        return [sa_inspect(m) for m in models]
    raise SchemaBuildError(f"Cannot load tables from {models!r}")


def load_catalog(models: Any, adapter: Any = None) -> SchemaCatalog:
    """Build a :class:`SchemaCatalog` from a declarative base or mapped classes.

    Columns are collected for every table first so relation targets can be
    resolved regardless of declaration order.
    """
    if isinstance(models, SchemaCatalog):
        return models
    configure_mappers()
    mappers = _mappers_of(models)
    tables: Dict[str, TableDescriptor] = {}
    column_keys: Dict[str, Dict[Any, str]] = {}
    for mapper in mappers:
        table = mapper.local_table
        if table.name in tables:
            continue
        keys: Dict[Any, str] = {}
        columns: Dict[str, ColumnDescriptor] = {}
        for column in table.columns:
            try:
                key = mapper.get_property_by_column(column).key
            except UnmappedColumnError:
                key = column.key
            keys[column] = key
            columns[key] = _describe_column(key, column, adapter)
        column_keys[table.name] = keys
        tables[table.name] = TableDescriptor(
            name=table.name,
            columns=columns,
            description=table.comment or None,
            sa_table=table,
        )
    for mapper in mappers:
        source = tables[mapper.local_table.name]
        for rel in mapper.relationships:
            if rel.direction is RelationshipDirection.MANYTOMANY or rel.secondary is not None:
                _logger.warning(
                    "tableql: skipping relation %s.%s (association tables are not supported)",
                    source.name, rel.key,
                )
                continue
            target_name = rel.mapper.local_table.name
            if target_name not in tables:
                raise SchemaBuildError(
                    f"Relation '{source.name}.{rel.key}' references unknown table '{target_name}'"
                )
            local_keys = column_keys[source.name]
            remote_keys = column_keys[target_name]
            pairs = []
            for local, remote in rel.local_remote_pairs:
                if local not in local_keys or remote not in remote_keys:
                    raise SchemaBuildError(
                        f"Relation '{source.name}.{rel.key}' joins on columns outside its tables"
                    )
                pairs.append((local_keys[local], remote_keys[remote]))
            source.relations[rel.key] = RelationDescriptor(
                name=rel.key,
                kind=RELATION_MANY if rel.uselist else RELATION_ONE,
                source=source.name,
                target=target_name,
                pairs=tuple(pairs),
                description=rel.doc,
            )
    if not tables:
        raise SchemaBuildError("No tables found in the provided models")
    _logger.debug("tableql: loaded %d tables", len(tables))
    return SchemaCatalog(tables=tables)

"""Translate a GraphQL selection into a relational load specification.

Only requested columns and relation subtrees are loaded. Relations are keyed
by response key so aliased selections of the same relation with different
arguments load independently.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

from strawberry.types.nodes import FragmentSpread, InlineFragment, SelectedField

from ..errors import ValidationError
from .descriptors import RelationDescriptor, SchemaCatalog, TableDescriptor
from .filters import FilterCompiler
from .ordering import OrderClause, OrderCompiler
from .utils import input_to_dict


@dataclass
class RelationLoad:
    relation: RelationDescriptor
    spec: "LoadSpec"


@dataclass
class LoadSpec:
    """Read request for one table at one level of nesting."""

    table: TableDescriptor
    columns: List[str] = field(default_factory=list)
    where: Any = None
    order: List[OrderClause] = field(default_factory=list)
    offset: Optional[int] = None
    limit: Optional[int] = None
    relations: Dict[str, RelationLoad] = field(default_factory=dict)

    def add_column(self, name: str) -> None:
        if name not in self.columns:
            self.columns.append(name)


def _page_value(name: str, value: Any) -> Optional[int]:
    # Literal arguments of nested fields arrive as unparsed strings
    if value is None:
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{name} must be an integer")
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer") from None
    if number < 0:
        raise ValidationError(f"{name} must be non-negative")
    return number


def _argument(arguments: Mapping[str, Any], *names: str) -> Any:
    for name in names:
        if name in arguments:
            return input_to_dict(arguments[name])
    return None


class SelectionBuilder:
    """Build :class:`LoadSpec` trees from ``info.selected_fields``."""

    def __init__(self, catalog: SchemaCatalog, filters: FilterCompiler, ordering: OrderCompiler):
        self.catalog = catalog
        self.filters = filters
        self.ordering = ordering

    def build(
        self,
        table: TableDescriptor,
        *,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Optional[Mapping[str, Any]] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> LoadSpec:
        return LoadSpec(
            table=table,
            where=self.filters.compile(table, where),
            order=self.ordering.compile(table, order_by),
            offset=_page_value('offset', offset),
            limit=_page_value('limit', limit),
        )

    def root_spec(
        self,
        table: TableDescriptor,
        info: Any,
        *,
        where: Optional[Mapping[str, Any]] = None,
        order_by: Optional[Mapping[str, Any]] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        depth_budget: Optional[int] = None,
    ) -> LoadSpec:
        spec = self.build(table, where=where, order_by=order_by, offset=offset, limit=limit)
        selected = list(getattr(info, 'selected_fields', None) or [])
        if selected:
            self._collect(spec, selected[0].selections, depth=0, depth_budget=depth_budget)
        return spec

    def _collect(
        self,
        spec: LoadSpec,
        selections: Iterable[Any],
        *,
        depth: int,
        depth_budget: Optional[int],
    ) -> None:
        table = spec.table
        for sel in selections or []:
            if isinstance(sel, (InlineFragment, FragmentSpread)):
                self._collect(spec, sel.selections, depth=depth, depth_budget=depth_budget)
                continue
            if not isinstance(sel, SelectedField):
                continue
            name = sel.name
            if not name or name.startswith('__'):
                continue
            column = table.column_for(name)
            if column is not None:
                spec.add_column(column.name)
                continue
            rel = table.relation_for(name)
            if rel is None:
                continue
            if depth_budget is not None and depth + 1 > depth_budget:
                raise ValidationError(
                    f"Relation '{table.name}.{rel.name}' exceeds the maximum relation depth of {depth_budget}"
                )
            key = sel.alias or sel.name
            load = spec.relations.get(key)
            if load is None:
                load = RelationLoad(rel, self._relation_spec(rel, sel.arguments or {}))
                spec.relations[key] = load
            self._collect(load.spec, sel.selections, depth=depth + 1, depth_budget=depth_budget)

    def _relation_spec(self, rel: RelationDescriptor, arguments: Mapping[str, Any]) -> LoadSpec:
        target = self.catalog.table(rel.target)
        where = _argument(arguments, 'where')
        if not rel.is_many:
            return self.build(target, where=where)
        return self.build(
            target,
            where=where,
            order_by=_argument(arguments, 'orderBy', 'order_by'),
            offset=_argument(arguments, 'offset'),
            limit=_argument(arguments, 'limit'),
        )


__all__ = ['LoadSpec', 'RelationLoad', 'SelectionBuilder']

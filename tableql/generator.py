"""Schema generator: builds every GraphQL type and field and wires resolvers.

Types are built in two passes the same way for inputs and outputs: plain
classes are created first, annotations and fields are attached second, and
only then are the classes decorated with ``strawberry.input`` /
``strawberry.type``. Cross references (self-referencing filters, cyclic
relation graphs) therefore always point at an existing class.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Annotated, Any, Dict, List, Optional

import strawberry
from strawberry import UNSET
from strawberry.types import Info

from .adapters.base import BaseAdapter
from .config import BuildSchemaConfig
from .core.descriptors import ColumnDescriptor, SchemaCatalog, TableDescriptor
from .core.filters import FilterCompiler
from .core.graph import GraphEdge, GraphNode, RelationGraph
from .core.hydration import RELATIONS_ATTR, Hydrator
from .core.ordering import InnerOrder, OrderCompiler
from .core.selection import SelectionBuilder
from .core.utils import get_db_lock, get_db_session, input_to_dict
from .errors import ValidationError
from .naming import pascal_case, snake_to_camel
from .registry import Registry
from .sql.executor import RelationalExecutor, Success

_logger = logging.getLogger("tableql")

_ARG_DESC_WHERE = "Filter rows; column conditions, AND, OR and NOT are combined with AND"
_ARG_DESC_ORDER_BY = "Sort by columns; lower priority values sort first"
_ARG_DESC_OFFSET = "Number of rows to skip"
_ARG_DESC_LIMIT = "Maximum number of rows to return"

_COMPARISON_OPS = ('eq', 'ne', 'lt', 'lte', 'gt', 'gte')
_PATTERN_OPS = ('like', 'not_like', 'ilike', 'not_ilike')
_ARRAY_OPS = ('in_array', 'not_in_array')
_FLAG_OPS = ('is_null', 'is_not_null')


@strawberry.type(name='MutationReturn', description='Outcome of a mutation on a backend that cannot return rows')
class MutationReturn:
    is_success: bool = strawberry.field(name='isSuccess')


@dataclass
class GeneratedTypeSet:
    """Every generated type belonging to one table."""

    select_item: Any
    item: Any
    insert_input: Any
    update_input: Any
    filters: Any
    order_by: Any
    column_filters: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ResolverContext:
    """Per-request handle; created by each root resolver and dropped after it returns."""

    session: Any
    executor: RelationalExecutor
    lock: asyncio.Lock
    depth_budget: Optional[int] = None


@dataclass
class GeneratedEntities:
    queries: Dict[str, Any] = field(default_factory=dict)
    mutations: Dict[str, Any] = field(default_factory=dict)
    inputs: Dict[str, Any] = field(default_factory=dict)
    types: Dict[str, Any] = field(default_factory=dict)
    tables: Dict[str, GeneratedTypeSet] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Relation field resolvers. Relation rows are loaded by the root resolver;
# these only hand back what was hydrated under the field's response key.
# ---------------------------------------------------------------------------

def _make_many_relation_resolver(target_cls: Any, filters_t: Any, order_t: Any):
    def resolve_relation(self, info, where=None, order_by=None, offset=None, limit=None):
        return (getattr(self, RELATIONS_ATTR, None) or {}).get(info.path.key) or []
    resolve_relation.__annotations__ = {
        'info': Info,
        'where': Annotated[Optional[filters_t], strawberry.argument(description=_ARG_DESC_WHERE)],
        'order_by': Annotated[Optional[order_t], strawberry.argument(name='orderBy', description=_ARG_DESC_ORDER_BY)],
        'offset': Annotated[Optional[int], strawberry.argument(description=_ARG_DESC_OFFSET)],
        'limit': Annotated[Optional[int], strawberry.argument(description=_ARG_DESC_LIMIT)],
        'return': List[target_cls],
    }
    return resolve_relation


def _make_one_relation_resolver(target_cls: Any, filters_t: Any):
    def resolve_relation(self, info, where=None):
        return (getattr(self, RELATIONS_ATTR, None) or {}).get(info.path.key)
    resolve_relation.__annotations__ = {
        'info': Info,
        'where': Annotated[Optional[filters_t], strawberry.argument(description=_ARG_DESC_WHERE)],
        'return': Optional[target_cls],
    }
    return resolve_relation


class SchemaGenerator:
    """Build the Query/Mutation root types for a catalog."""

    def __init__(
        self,
        catalog: SchemaCatalog,
        registry: Registry,
        adapter: BaseAdapter,
        config: BuildSchemaConfig,
    ):
        self.catalog = catalog
        self.types = registry.types
        self.remapper = registry.remapper
        self.config = config
        self.capabilities = adapter.capabilities
        self.returnless = not self.capabilities.can_report_affected_rows
        self.filters = FilterCompiler(self.remapper)
        self.ordering = OrderCompiler()
        self.selection = SelectionBuilder(catalog, self.filters, self.ordering)
        self.executor = RelationalExecutor(self.capabilities)
        self.hydrator = Hydrator(self.remapper)
        self.graph = RelationGraph(catalog, config.relations_depth_limit)
        self.depth_budget = None if self.graph.bounded else config.max_relation_depth
        self.entities = GeneratedEntities()

    # ----- entry point -----
    def generate(self):
        """Return ``(query_type, mutation_type_or_None, entities)``."""
        inputs = {t.name: self._build_inputs(t) for t in self.catalog}
        self._build_nodes(inputs)
        for table in self.catalog:
            filters_t, order_t, insert_t, update_t, col_filters = inputs[table.name]
            item = MutationReturn if self.returnless else self._build_item(table)
            self.entities.tables[table.name] = GeneratedTypeSet(
                select_item=self.graph.root(table.name).cls,
                item=item,
                insert_input=insert_t,
                update_input=update_t,
                filters=filters_t,
                order_by=order_t,
                column_filters=col_filters,
            )
        query = self._build_query()
        mutation = self._build_mutation() if self.config.mutations else None
        _logger.debug(
            "tableql: generated %d queries, %d mutations (returnless=%s)",
            len(self.entities.queries), len(self.entities.mutations), self.returnless,
        )
        return query, mutation, self.entities

    # ----- inputs -----
    def _column_filters_type(self, table: TableDescriptor, column: ColumnDescriptor):
        name = f"{table.type_name}{pascal_case(column.name)}Filters"
        value_t = self.types.resolve(column, is_input=True).type
        anns: Dict[str, Any] = {}
        for op in _COMPARISON_OPS:
            anns[op] = Optional[value_t]
        for op in _PATTERN_OPS:
            anns[op] = Optional[str]
        for op in _ARRAY_OPS:
            anns[op] = Optional[List[value_t]]
        for op in _FLAG_OPS:
            anns[op] = Optional[bool]

        # Alternatives for one column carry the operators only
        or_name = f"{name}Or"
        or_plain = type(or_name, (), {})
        for op in anns:
            setattr(or_plain, op, strawberry.field(default=UNSET, name=snake_to_camel(op)))
        or_plain.__annotations__ = dict(anns)
        or_t = strawberry.input(or_plain, name=or_name)
        self.entities.inputs[or_name] = or_t

        plain = type(name, (), {})
        for op in anns:
            setattr(plain, op, strawberry.field(default=UNSET, name=snake_to_camel(op)))
        setattr(plain, 'OR', strawberry.field(default=UNSET, name='OR'))
        anns['OR'] = Optional[List[or_t]]
        plain.__annotations__ = anns
        st = strawberry.input(plain, name=name, description=f"Conditions on {table.name}.{column.name}")
        self.entities.inputs[name] = st
        return st

    def _build_inputs(self, table: TableDescriptor):
        col_filters = {c.name: self._column_filters_type(table, c) for c in table.columns.values()}

        # <Table>Filters references itself through AND/OR/NOT
        filters_name = f"{table.type_name}Filters"
        FiltersPlain = type(filters_name, (), {})
        anns: Dict[str, Any] = {}
        for col in table.columns.values():
            anns[col.name] = Optional[col_filters[col.name]]
            setattr(FiltersPlain, col.name, strawberry.field(default=UNSET, name=col.field_name))
        anns['AND'] = Optional[List[FiltersPlain]]
        anns['OR'] = Optional[List[FiltersPlain]]
        anns['NOT'] = Optional[FiltersPlain]
        for comb in ('AND', 'OR', 'NOT'):
            setattr(FiltersPlain, comb, strawberry.field(default=UNSET, name=comb))
        FiltersPlain.__annotations__ = anns
        filters_t = strawberry.input(FiltersPlain, name=filters_name, description=table.description)

        order_name = f"{table.type_name}OrderBy"
        OrderPlain = type(order_name, (), {})
        anns = {}
        for col in table.columns.values():
            anns[col.name] = Optional[InnerOrder]
            setattr(OrderPlain, col.name, strawberry.field(default=UNSET, name=col.field_name))
        OrderPlain.__annotations__ = anns
        order_t = strawberry.input(OrderPlain, name=order_name)

        insert_t = self._write_input(table, f"{table.type_name}InsertInput", insert=True)
        update_t = self._write_input(table, f"{table.type_name}UpdateInput", insert=False)

        for st in (filters_t, order_t, insert_t, update_t):
            self.entities.inputs[st.__name__] = st
        return filters_t, order_t, insert_t, update_t, col_filters

    def _write_input(self, table: TableDescriptor, name: str, *, insert: bool):
        plain = type(name, (), {})
        anns: Dict[str, Any] = {}
        for col in table.columns.values():
            if insert:
                conv = self.types.annotate(col, is_input=True, default_is_nullable=True)
            else:
                conv = self.types.annotate(col, is_input=True, force_nullable=True)
            anns[col.name] = conv.type
            setattr(plain, col.name, strawberry.field(default=UNSET, name=col.field_name, description=conv.description))
        plain.__annotations__ = anns
        return strawberry.input(plain, name=name)

    # ----- outputs -----
    def _build_nodes(self, inputs: Dict[str, Any]) -> None:
        nodes = self.graph.nodes
        # Pass 1: plain classes with column fields
        for node in nodes:
            plain = type(node.name, (), {})
            anns: Dict[str, Any] = {}
            for col in node.table.columns.values():
                conv = self.types.annotate(col)
                anns[col.name] = conv.type
                setattr(plain, col.name, strawberry.field(default=None, name=col.field_name, description=conv.description))
            plain.__annotations__ = anns
            node.cls = plain
        # Pass 2: relation fields; every target class exists by now
        for node in nodes:
            for edge in node.edges.values():
                self._attach_relation(node, edge, inputs)
        # Pass 3: decorate
        for node in nodes:
            node.cls = strawberry.type(node.cls, name=node.name, description=node.table.description)
            self.entities.types[node.name] = node.cls

    def _attach_relation(self, node: GraphNode, edge: GraphEdge, inputs: Dict[str, Any]) -> None:
        rel = edge.relation
        filters_t, order_t = inputs[rel.target][0], inputs[rel.target][1]
        if rel.is_many:
            resolver = _make_many_relation_resolver(edge.target.cls, filters_t, order_t)
        else:
            resolver = _make_one_relation_resolver(edge.target.cls, filters_t)
        setattr(node.cls, rel.name, strawberry.field(resolver=resolver, name=rel.field_name, description=rel.description))

    def _build_item(self, table: TableDescriptor):
        name = f"{table.type_name}Item"
        plain = type(name, (), {})
        anns: Dict[str, Any] = {}
        for col in table.columns.values():
            conv = self.types.annotate(col)
            anns[col.name] = conv.type
            setattr(plain, col.name, strawberry.field(default=None, name=col.field_name, description=conv.description))
        plain.__annotations__ = anns
        st = strawberry.type(plain, name=name, description=table.description)
        self.entities.types[name] = st
        return st

    # ----- request helpers -----
    def _context(self, info: Any) -> ResolverContext:
        session = get_db_session(info)
        if session is None:
            raise ValidationError("No database session found in GraphQL context (expected 'db_session')")
        return ResolverContext(session, self.executor, get_db_lock(info), self.depth_budget)

    async def read_many(self, info, table: TableDescriptor, *, where=None, order_by=None, offset=None, limit=None):
        ctx = self._context(info)
        spec = self.selection.root_spec(
            table, info,
            where=input_to_dict(where), order_by=input_to_dict(order_by),
            offset=offset, limit=limit,
            depth_budget=ctx.depth_budget,
        )
        async with ctx.lock:
            rows = await ctx.executor.find_many(ctx.session, spec)
        node = self.graph.root(table.name)
        return [self.hydrator.hydrate(node, spec, r) for r in rows]

    async def read_first(self, info, table: TableDescriptor, *, where=None, order_by=None, offset=None):
        ctx = self._context(info)
        spec = self.selection.root_spec(
            table, info,
            where=input_to_dict(where), order_by=input_to_dict(order_by),
            offset=offset,
            depth_budget=ctx.depth_budget,
        )
        async with ctx.lock:
            row = await ctx.executor.find_first(ctx.session, spec)
        if row is None:
            return None
        return self.hydrator.hydrate(self.graph.root(table.name), spec, row)

    def _mutation_result(self, table: TableDescriptor, outcome: Any, *, single: bool):
        if isinstance(outcome, Success):
            return MutationReturn(is_success=outcome.is_success)
        item_cls = self.entities.tables[table.name].item
        items = [self.hydrator.hydrate_item(item_cls, table, r) for r in outcome.rows]
        if single:
            return items[0] if items else None
        return items

    async def insert(self, info, table: TableDescriptor, values: Any, *, single: bool):
        raw = input_to_dict(values)
        rows_in = [raw] if single else list(raw or [])
        if not rows_in:
            raise ValidationError("No values were provided!")
        rows = []
        for r in rows_in:
            row = self.remapper.input_row_from_wire(table, r or {})
            missing = [c.field_name for c in table.columns.values() if c.is_required_on_insert and c.name not in row]
            if missing:
                raise ValidationError(f"Missing values for required columns: {', '.join(missing)}")
            rows.append(row)
        ctx = self._context(info)
        async with ctx.lock:
            outcome = await ctx.executor.insert(ctx.session, table, rows)
        return self._mutation_result(table, outcome, single=single)

    async def update(self, info, table: TableDescriptor, set_: Any, where: Any):
        values = self.remapper.input_row_from_wire(table, input_to_dict(set_) or {})
        if not values:
            raise ValidationError("Unable to update with no values specified!")
        predicate = self.filters.compile(table, input_to_dict(where))
        ctx = self._context(info)
        async with ctx.lock:
            outcome = await ctx.executor.update(ctx.session, table, values, predicate)
        return self._mutation_result(table, outcome, single=False)

    async def delete(self, info, table: TableDescriptor, where: Any):
        predicate = self.filters.compile(table, input_to_dict(where))
        ctx = self._context(info)
        async with ctx.lock:
            outcome = await ctx.executor.delete(ctx.session, table, predicate)
        return self._mutation_result(table, outcome, single=False)

    # ----- root types -----
    def _query_resolvers(self, table: TableDescriptor):
        gen = self
        types = self.entities.tables[table.name]
        node_cls = types.select_item

        async def resolve_many(self, info, where=None, order_by=None, offset=None, limit=None):
            return await gen.read_many(info, table, where=where, order_by=order_by, offset=offset, limit=limit)
        resolve_many.__annotations__ = {
            'info': Info,
            'where': Annotated[Optional[types.filters], strawberry.argument(description=_ARG_DESC_WHERE)],
            'order_by': Annotated[Optional[types.order_by], strawberry.argument(name='orderBy', description=_ARG_DESC_ORDER_BY)],
            'offset': Annotated[Optional[int], strawberry.argument(description=_ARG_DESC_OFFSET)],
            'limit': Annotated[Optional[int], strawberry.argument(description=_ARG_DESC_LIMIT)],
            'return': List[node_cls],
        }

        async def resolve_single(self, info, where=None, order_by=None, offset=None):
            return await gen.read_first(info, table, where=where, order_by=order_by, offset=offset)
        resolve_single.__annotations__ = {
            'info': Info,
            'where': Annotated[Optional[types.filters], strawberry.argument(description=_ARG_DESC_WHERE)],
            'order_by': Annotated[Optional[types.order_by], strawberry.argument(name='orderBy', description=_ARG_DESC_ORDER_BY)],
            'offset': Annotated[Optional[int], strawberry.argument(description=_ARG_DESC_OFFSET)],
            'return': Optional[node_cls],
        }
        return resolve_many, resolve_single

    def _build_query(self):
        QueryPlain = type('Query', (), {})
        QueryPlain.__annotations__ = {}
        for table in self.catalog:
            resolve_many, resolve_single = self._query_resolvers(table)
            many_name = table.field_name
            single_name = f"{table.field_name}Single"
            setattr(QueryPlain, many_name, strawberry.field(resolver=resolve_many, name=many_name, description=table.description))
            setattr(QueryPlain, single_name, strawberry.field(resolver=resolve_single, name=single_name, description=table.description))
            self.entities.queries[many_name] = resolve_many
            self.entities.queries[single_name] = resolve_single
        return strawberry.type(QueryPlain, name='Query')

    def _mutation_resolvers(self, table: TableDescriptor):
        gen = self
        types = self.entities.tables[table.name]
        many_ret = MutationReturn if self.returnless else List[types.item]
        single_ret = MutationReturn if self.returnless else Optional[types.item]
        where_ann = Annotated[Optional[types.filters], strawberry.argument(description=_ARG_DESC_WHERE)]

        async def insert_many(self, info, values):
            return await gen.insert(info, table, values, single=False)
        insert_many.__annotations__ = {
            'info': Info,
            'values': Annotated[List[types.insert_input], strawberry.argument(description="Rows to insert")],
            'return': many_ret,
        }

        async def insert_single(self, info, values):
            return await gen.insert(info, table, values, single=True)
        insert_single.__annotations__ = {
            'info': Info,
            'values': Annotated[types.insert_input, strawberry.argument(description="Row to insert")],
            'return': single_ret,
        }

        async def update_rows(self, info, set_, where=None):
            return await gen.update(info, table, set_, where)
        update_rows.__annotations__ = {
            'info': Info,
            'set_': Annotated[types.update_input, strawberry.argument(name='set', description="Values to assign")],
            'where': where_ann,
            'return': many_ret,
        }

        async def delete_rows(self, info, where=None):
            return await gen.delete(info, table, where)
        delete_rows.__annotations__ = {
            'info': Info,
            'where': where_ann,
            'return': many_ret,
        }
        return {
            f"insertInto{table.type_name}": insert_many,
            f"insertInto{table.type_name}Single": insert_single,
            f"update{table.type_name}": update_rows,
            f"deleteFrom{table.type_name}": delete_rows,
        }

    def _build_mutation(self):
        MutationPlain = type('Mutation', (), {})
        MutationPlain.__annotations__ = {}
        for table in self.catalog:
            for name, resolver in self._mutation_resolvers(table).items():
                setattr(MutationPlain, name, strawberry.field(resolver=resolver, name=name))
                self.entities.mutations[name] = resolver
        return strawberry.type(MutationPlain, name='Mutation')


__all__ = ['SchemaGenerator', 'GeneratedTypeSet', 'GeneratedEntities', 'MutationReturn', 'ResolverContext']

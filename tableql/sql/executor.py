"""Execution of load specifications and mutations on an ``AsyncSession``.

Nested relations are loaded one statement per relation per level, batched
over every parent row with ``IN``. Paged one-to-many relations use a
``ROW_NUMBER() OVER (PARTITION BY ...)`` window so each parent gets its own
page.
"""
from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from sqlalchemy import and_, delete, func, insert, select, tuple_, update

from ..adapters.base import BackendCapabilities
from ..core.descriptors import TableDescriptor
from ..core.selection import LoadSpec, RelationLoad

_logger = logging.getLogger("tableql")

# Key under which a loaded row keeps its nested relation results
RELATIONS = '__relations__'
_ROW_NUMBER = '__rn__'


@dataclass(frozen=True)
class Rows:
    rows: List[Dict[str, Any]]


@dataclass(frozen=True)
class Success:
    is_success: bool


MutationOutcome = Union[Rows, Success]


def _key_of(row: Mapping[str, Any], keys: Sequence[str]) -> Tuple[Any, ...]:
    return tuple(row.get(k) for k in keys)


class RelationalExecutor:
    """Bridge between load specifications and SQLAlchemy statements."""

    def __init__(self, capabilities: BackendCapabilities):
        self.capabilities = capabilities

    # ----- reads -----
    def _select_columns(self, spec: LoadSpec, extra: Sequence[str] = ()) -> List[Any]:
        table = spec.table
        names: List[str] = list(spec.columns)
        for load in spec.relations.values():
            for k in load.relation.local_keys:
                if k not in names:
                    names.append(k)
        for k in extra:
            if k not in names:
                names.append(k)
        if not names:
            names.append(next(iter(table.columns)))
        return [table.columns[n].sa_column.label(n) for n in names]

    def _apply_order(self, stmt, spec: LoadSpec):
        if spec.order:
            stmt = stmt.order_by(*[c.to_sql() for c in spec.order])
        return stmt

    async def find_many(self, session: Any, spec: LoadSpec) -> List[Dict[str, Any]]:
        stmt = select(*self._select_columns(spec)).where(spec.where)
        stmt = self._apply_order(stmt, spec)
        if spec.offset is not None:
            stmt = stmt.offset(spec.offset)
        if spec.limit is not None:
            stmt = stmt.limit(spec.limit)
        result = await session.execute(stmt)
        rows = [dict(r) for r in result.mappings().all()]
        await self.load_relations(session, spec, rows)
        return rows

    async def find_first(self, session: Any, spec: LoadSpec) -> Optional[Dict[str, Any]]:
        spec.limit = 1
        rows = await self.find_many(session, spec)
        return rows[0] if rows else None

    async def load_relations(self, session: Any, spec: LoadSpec, rows: List[Dict[str, Any]]) -> None:
        for row in rows:
            row.setdefault(RELATIONS, {})
        for key, load in spec.relations.items():
            await self._load_relation(session, key, load, rows)

    async def _load_relation(self, session: Any, key: str, load: RelationLoad, parents: List[Dict[str, Any]]) -> None:
        rel = load.relation
        child = load.spec
        local_keys = rel.local_keys
        remote_keys = rel.remote_keys
        parent_keys = {_key_of(p, local_keys) for p in parents}
        parent_keys = {k for k in parent_keys if None not in k}
        grouped: Dict[Tuple[Any, ...], List[Dict[str, Any]]] = defaultdict(list)
        if parent_keys:
            children = await self._fetch_children(session, load, sorted(parent_keys, key=repr))
            await self.load_relations(session, child, children)
            for c in children:
                grouped[_key_of(c, remote_keys)].append(c)
        for p in parents:
            matched = grouped.get(_key_of(p, local_keys), [])
            if rel.is_many:
                p[RELATIONS][key] = matched
            else:
                p[RELATIONS][key] = matched[0] if matched else None

    async def _fetch_children(self, session: Any, load: RelationLoad, parent_keys: List[Tuple[Any, ...]]) -> List[Dict[str, Any]]:
        rel = load.relation
        spec = load.spec
        table = spec.table
        remote_cols = [table.columns[k].sa_column for k in rel.remote_keys]
        if len(remote_cols) == 1:
            key_filter = remote_cols[0].in_([k[0] for k in parent_keys])
        else:
            key_filter = tuple_(*remote_cols).in_(parent_keys)
        columns = self._select_columns(spec, extra=rel.remote_keys)
        predicate = and_(key_filter, spec.where)
        paged = rel.is_many and (spec.limit is not None or spec.offset is not None)
        if not paged:
            stmt = self._apply_order(select(*columns).where(predicate), spec)
            result = await session.execute(stmt)
            return [dict(r) for r in result.mappings().all()]
        offset = spec.offset or 0
        if not self.capabilities.supports_window_functions:
            stmt = self._apply_order(select(*columns).where(predicate), spec)
            result = await session.execute(stmt)
            counts: Dict[Tuple[Any, ...], int] = defaultdict(int)
            out: List[Dict[str, Any]] = []
            for r in result.mappings().all():
                k = _key_of(r, rel.remote_keys)
                n = counts[k]
                counts[k] += 1
                if n < offset or (spec.limit is not None and n >= offset + spec.limit):
                    continue
                out.append(dict(r))
            return out
        order_by = [c.to_sql() for c in spec.order] or [c.sa_column for c in table.primary_key] or None
        row_number = func.row_number().over(partition_by=remote_cols, order_by=order_by).label(_ROW_NUMBER)
        inner = select(*columns, row_number).where(predicate).subquery()
        bounds = [inner.c[_ROW_NUMBER] > offset]
        if spec.limit is not None:
            bounds.append(inner.c[_ROW_NUMBER] <= offset + spec.limit)
        stmt = select(*[inner.c[c.key] for c in columns]).where(and_(*bounds)).order_by(inner.c[_ROW_NUMBER])
        result = await session.execute(stmt)
        return [dict(r) for r in result.mappings().all()]

    # ----- writes -----
    def _returning(self, table: TableDescriptor) -> List[Any]:
        return [c.sa_column for c in table.columns.values()]

    @staticmethod
    def _returned_rows(table: TableDescriptor, result: Any) -> List[Dict[str, Any]]:
        names = list(table.columns)
        return [dict(zip(names, r)) for r in result.all()]

    @staticmethod
    def _storage_values(table: TableDescriptor, values: Mapping[str, Any]) -> Dict[str, Any]:
        return {table.columns[k].sa_column.key: v for k, v in values.items()}

    async def insert(self, session: Any, table: TableDescriptor, rows: List[Dict[str, Any]]) -> MutationOutcome:
        returning = self.capabilities.can_report_affected_rows
        out: List[Dict[str, Any]] = []
        keysets = {tuple(sorted(r)) for r in rows}
        if len(keysets) == 1 and rows and rows[0]:
            batches = [rows]
        else:
            # Heterogeneous or empty key sets: one statement per row
            batches = [[r] for r in rows]
        for batch in batches:
            stmt = insert(table.sa_table)
            if batch[0]:
                payload = [self._storage_values(table, r) for r in batch]
                stmt = stmt.values(payload if len(payload) > 1 else payload[0])
            if returning:
                stmt = stmt.returning(*self._returning(table))
            result = await session.execute(stmt)
            if returning:
                out.extend(self._returned_rows(table, result))
        await session.commit()
        _logger.debug("tableql: inserted %d row(s) into %s", len(rows), table.name)
        return Rows(out) if returning else Success(True)

    async def update(self, session: Any, table: TableDescriptor, values: Dict[str, Any], where: Any) -> MutationOutcome:
        returning = self.capabilities.can_report_affected_rows
        stmt = update(table.sa_table).where(where).values(self._storage_values(table, values))
        if returning:
            stmt = stmt.returning(*self._returning(table))
        result = await session.execute(stmt)
        out = self._returned_rows(table, result) if returning else []
        await session.commit()
        return Rows(out) if returning else Success(True)

    async def delete(self, session: Any, table: TableDescriptor, where: Any) -> MutationOutcome:
        returning = self.capabilities.can_report_affected_rows
        stmt = delete(table.sa_table).where(where)
        if returning:
            stmt = stmt.returning(*self._returning(table))
        result = await session.execute(stmt)
        out = self._returned_rows(table, result) if returning else []
        await session.commit()
        return Rows(out) if returning else Success(True)


__all__ = ['RelationalExecutor', 'Rows', 'Success', 'MutationOutcome', 'RELATIONS']

from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional

from sqlalchemy import and_, not_, or_, true

from ..errors import ValidationError
from ..naming import camel_to_snake, snake_to_camel
from .descriptors import TableDescriptor
from .remap import ValueRemapper


def _as_list(v: Any) -> list:
    return list(v) if isinstance(v, (list, tuple, set)) else [v]


# Global operator registry (extensible)
OPERATOR_REGISTRY: Dict[str, Callable[[Any, Any], Any]] = {
    'eq': lambda col, v: col == v,
    'ne': lambda col, v: col != v,
    'lt': lambda col, v: col < v,
    'lte': lambda col, v: col <= v,
    'gt': lambda col, v: col > v,
    'gte': lambda col, v: col >= v,
    'like': lambda col, v: col.like(v),
    'not_like': lambda col, v: ~col.like(v),
    'ilike': lambda col, v: col.ilike(v),
    'not_ilike': lambda col, v: ~col.ilike(v),
    'in_array': lambda col, v: col.in_(_as_list(v)),
    'not_in_array': lambda col, v: col.not_in(_as_list(v)),
    'is_null': lambda col, v: col.is_(None),
    'is_not_null': lambda col, v: col.is_not(None),
}

# Operators whose operand is a list of column values.
ARRAY_OPERATORS = {'in_array', 'not_in_array'}
# Operators whose operand is a flag; they apply only when the flag is true.
FLAG_OPERATORS = {'is_null', 'is_not_null'}
# Operators whose operand is a pattern string rather than a column value.
PATTERN_OPERATORS = {'like', 'not_like', 'ilike', 'not_ilike'}

COMBINATORS = ('AND', 'OR', 'NOT')


def register_operator(name: str, fn: Callable[[Any, Any], Any]):  # pragma: no cover - simple
    OPERATOR_REGISTRY[camel_to_snake(name)] = fn


def operator_key(name: str) -> str:
    """Normalize ``inArray`` / ``in_array`` style operator names."""
    return camel_to_snake(str(name))


class FilterCompiler:
    """Compile nested filter mappings into SQLAlchemy predicates.

    A filter level combines, with AND:
      - every column predicate (``{col: {op: value}}``),
      - every element of ``AND``,
      - the disjunction of the ``OR`` elements,
      - the negation of ``NOT``.
    An absent or empty filter compiles to ``true()``.
    """

    def __init__(self, remapper: ValueRemapper):
        self.remapper = remapper

    def compile(self, table: TableDescriptor, filters: Optional[Mapping[str, Any]]):
        expr = self._compile_level(table, filters)
        return expr if expr is not None else true()

    def _compile_level(self, table: TableDescriptor, filters: Optional[Mapping[str, Any]]):
        if not filters:
            return None
        parts: List[Any] = []
        for key, value in filters.items():
            if key in COMBINATORS or value is None:
                continue
            parts.extend(self._column_predicates(table, key, value))
        and_items = filters.get('AND')
        if and_items:
            for item in _as_list(and_items):
                expr = self._compile_level(table, item)
                if expr is not None:
                    parts.append(expr)
        or_items = filters.get('OR')
        if or_items:
            alternatives = []
            for item in _as_list(or_items):
                expr = self._compile_level(table, item)
                # An empty alternative matches every row.
                alternatives.append(expr if expr is not None else true())
            parts.append(or_(*alternatives))
        not_item = filters.get('NOT')
        if not_item:
            expr = self._compile_level(table, not_item)
            if expr is not None:
                parts.append(not_(expr))
        if not parts:
            return None
        if len(parts) == 1:
            return parts[0]
        return and_(*parts)

    def _column_predicates(self, table: TableDescriptor, key: str, ops: Any) -> List[Any]:
        column = table.column_for(key)
        if column is None:
            raise ValidationError(f"Unknown column in filter for table '{table.name}': {key}")
        if not isinstance(ops, Mapping):
            raise ValidationError(f"Filter for column '{key}' must be an object of operators")
        if 'OR' in ops:
            variants = ops['OR']
            rest = {k: v for k, v in ops.items() if k != 'OR'}
            if not variants:
                ops = rest
            elif any(v is not None for v in rest.values()):
                raise ValidationError(
                    f"WHERE {column.field_name}: Cannot specify both fields and 'OR' in column operators!"
                )
            else:
                alternatives = []
                for variant in _as_list(variants):
                    preds = self._column_predicates(table, key, variant or {})
                    if preds:
                        alternatives.append(preds[0] if len(preds) == 1 else and_(*preds))
                return [or_(*alternatives)] if alternatives else []
        sa_col = column.sa_column
        out: List[Any] = []
        for raw_op, value in ops.items():
            op = operator_key(raw_op)
            fn = OPERATOR_REGISTRY.get(op)
            if fn is None:
                raise ValidationError(f"Unknown filter operator: {raw_op}")
            if value is None:
                continue
            if op in FLAG_OPERATORS:
                if value is True:
                    out.append(fn(sa_col, value))
                continue
            if op in ARRAY_OPERATORS:
                items = _as_list(value)
                if not items:
                    raise ValidationError(f"WHERE {column.field_name}: {snake_to_camel(op)} requires a non-empty array!")
                value = [self.remapper.from_wire(v, column) for v in items]
            elif op not in PATTERN_OPERATORS:
                value = self.remapper.from_wire(value, column)
            out.append(fn(sa_col, value))
        return out


__all__ = ['FilterCompiler', 'OPERATOR_REGISTRY', 'register_operator', 'operator_key', 'COMBINATORS']

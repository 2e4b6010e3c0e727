from __future__ import annotations

from typing import Any, Dict, Mapping, Optional

from ..sql.executor import RELATIONS
from .graph import GraphNode
from .remap import ValueRemapper
from .selection import LoadSpec

# Instance attribute holding hydrated relation results keyed by response key
RELATIONS_ATTR = '__tableql_relations__'


class Hydrator:
    """Build Strawberry instances from loaded rows.

    Column values are remapped to their wire form; nested relation rows are
    hydrated recursively into the target node's class and attached under
    :data:`RELATIONS_ATTR` so relation resolvers can return them by alias.
    """

    def __init__(self, remapper: ValueRemapper):
        self.remapper = remapper

    def hydrate(self, node: GraphNode, spec: LoadSpec, row: Mapping[str, Any]) -> Any:
        values = self.remapper.row_to_wire(spec.table, row, spec.columns)
        inst = node.cls(**values)
        nested = row.get(RELATIONS) or {}
        relations: Dict[str, Any] = {}
        for key, load in spec.relations.items():
            edge = node.edges.get(load.relation.name)
            if edge is None:
                continue
            data = nested.get(key)
            if load.relation.is_many:
                relations[key] = [self.hydrate(edge.target, load.spec, r) for r in (data or [])]
            else:
                relations[key] = self.hydrate(edge.target, load.spec, data) if data is not None else None
        setattr(inst, RELATIONS_ATTR, relations)
        return inst

    def hydrate_item(self, cls: Any, spec_table: Any, row: Optional[Mapping[str, Any]]) -> Any:
        """Flat mutation result row into a ``<Table>Item`` instance."""
        if row is None:
            return None
        return cls(**self.remapper.row_to_wire(spec_table, row))


__all__ = ['Hydrator', 'RELATIONS_ATTR']

"""Depth-limited, cycle-safe graph of relation fields.

Every node is allocated before any edge is populated so mutually or
self-referencing tables never need a node that does not exist yet.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..errors import SchemaBuildError
from .descriptors import RelationDescriptor, SchemaCatalog, TableDescriptor

_logger = logging.getLogger("tableql")


@dataclass(eq=False)
class GraphNode:
    """One output object type: a table seen at a given relation depth."""

    table: TableDescriptor
    level: Optional[int]
    name: str
    edges: Dict[str, "GraphEdge"] = field(default_factory=dict)
    # Strawberry class, attached by the schema generator
    cls: Any = None

    def __repr__(self) -> str:
        return f"GraphNode({self.name})"


@dataclass(frozen=True, eq=False)
class GraphEdge:
    relation: RelationDescriptor
    target: GraphNode


def validate_depth_limit(depth_limit: Any) -> Optional[int]:
    if depth_limit is None:
        return None
    if isinstance(depth_limit, bool) or not isinstance(depth_limit, int) or depth_limit < 0:
        raise SchemaBuildError(
            f"relations_depth_limit must be a nonnegative integer or None, got {depth_limit!r}"
        )
    return depth_limit


def node_name(table: TableDescriptor, level: Optional[int]) -> str:
    if not level:
        return f"{table.type_name}SelectItem"
    return f"{table.type_name}SelectItemDepth{level}"


class RelationGraph:
    """Relation graph over a catalog.

    With a depth limit ``N`` there is one node per table and level ``0..N``;
    level-``N`` nodes carry no relation edges, so every chain of relation
    fields is at most ``N`` hops. Without a limit there is one node per table
    and edges point back into the same set of nodes, forming a finite cyclic
    type graph.
    """

    def __init__(self, catalog: SchemaCatalog, depth_limit: Optional[int] = None):
        self.catalog = catalog
        self.depth_limit = validate_depth_limit(depth_limit)
        self._nodes: Dict[Tuple[str, Optional[int]], GraphNode] = {}
        self._allocate()
        self._populate()
        _logger.debug(
            "tableql: relation graph built with %d nodes (depth limit %s)",
            len(self._nodes), self.depth_limit,
        )

    @property
    def bounded(self) -> bool:
        return self.depth_limit is not None

    def _levels(self) -> List[Optional[int]]:
        if self.depth_limit is None:
            return [None]
        return list(range(self.depth_limit + 1))

    def _allocate(self) -> None:
        for table in self.catalog:
            for level in self._levels():
                self._nodes[(table.name, level)] = GraphNode(table, level, node_name(table, level))

    def _populate(self) -> None:
        for (table_name, level), node in self._nodes.items():
            if level is not None and level >= self.depth_limit:
                continue
            next_level = None if level is None else level + 1
            for rel in node.table.relations.values():
                target = self._nodes[(rel.target, next_level)]
                node.edges[rel.name] = GraphEdge(rel, target)

    def root(self, table_name: str) -> GraphNode:
        return self._nodes[(table_name, 0 if self.bounded else None)]

    @property
    def nodes(self) -> List[GraphNode]:
        return list(self._nodes.values())


__all__ = ['RelationGraph', 'GraphNode', 'GraphEdge', 'validate_depth_limit', 'node_name']
